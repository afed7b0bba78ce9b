"""Quiz engine: answer checking and the awaiting_topic/in_progress/complete driver."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from kellz_math.quiz_models import (
    AwaitingTopic,
    Complete,
    InProgress,
    QuizQuestion,
    QuizState,
)

logger = logging.getLogger(__name__)


class QuizStateError(RuntimeError):
    """Raised when a quiz operation is not valid in the current state."""


def answers_match(given: str, expected: str) -> bool:
    """Exact match after trimming whitespace and lowercasing both sides."""
    return given.strip().lower() == expected.strip().lower()


@dataclass(frozen=True)
class AnswerResult:
    """Outcome of submitting one answer."""

    correct: bool
    question: QuizQuestion
    next_question: QuizQuestion | None  # None once the quiz is complete
    next_number: int  # 1-based number of next_question
    total: int

    @property
    def complete(self) -> bool:
        return self.next_question is None


class QuizDriver:
    """Holds the quiz state for one session.

    A wrong answer advances the cursor just like a right one; there is no
    second attempt at the same question.
    """

    def __init__(self) -> None:
        self.state: QuizState = AwaitingTopic()

    @property
    def status(self) -> str:
        return self.state.status

    @property
    def awaiting_topic(self) -> bool:
        return isinstance(self.state, AwaitingTopic)

    @property
    def in_progress(self) -> bool:
        return isinstance(self.state, InProgress)

    @property
    def is_complete(self) -> bool:
        return isinstance(self.state, Complete)

    def begin(self, topic: str, questions: list[QuizQuestion]) -> QuizQuestion:
        """Start a quiz on `topic` and return the first question."""
        if not isinstance(self.state, AwaitingTopic):
            raise QuizStateError(f"Cannot start a quiz while {self.status}")
        if not questions:
            raise ValueError("A quiz needs at least one question")
        self.state = InProgress(topic=topic, questions=list(questions))
        logger.info("Quiz started: topic=%r questions=%d", topic, len(questions))
        return self.state.current

    def submit(self, answer: str) -> AnswerResult:
        """Record an answer to the current question and move the cursor on."""
        state = self.state
        if not isinstance(state, InProgress):
            raise QuizStateError(f"No question to answer while {self.status}")

        question = state.current
        correct = answers_match(answer, question.answer)
        answers = state.answers + [answer]
        next_index = state.index + 1
        total = len(state.questions)

        if next_index < total:
            self.state = InProgress(
                topic=state.topic,
                questions=state.questions,
                index=next_index,
                answers=answers,
            )
            next_question = state.questions[next_index]
        else:
            self.state = Complete(
                topic=state.topic, questions=state.questions, answers=answers
            )
            next_question = None
            logger.info("Quiz complete: topic=%r", state.topic)

        return AnswerResult(
            correct=correct,
            question=question,
            next_question=next_question,
            next_number=next_index + 1,
            total=total,
        )

    def restart(self) -> None:
        """Discard the current quiz and wait for a new topic."""
        self.state = AwaitingTopic()

"""Quiz data models: generated questions and the tagged quiz state."""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field


class QuizQuestion(BaseModel):
    """A single generated quiz question."""

    question: str
    answer: str  # Expected answer, compared trimmed and case-insensitive
    options: list[str] | None = None  # Choices, when the model offers them


class AwaitingTopic(BaseModel):
    """No quiz yet; the next user message names the topic."""

    status: Literal["awaiting_topic"] = "awaiting_topic"


class InProgress(BaseModel):
    """A quiz is running; `index` points at the question being asked."""

    status: Literal["in_progress"] = "in_progress"
    topic: str
    questions: list[QuizQuestion]
    index: int = 0
    answers: list[str] = Field(default_factory=list)

    @property
    def current(self) -> QuizQuestion:
        return self.questions[self.index]


class Complete(BaseModel):
    """Every question has been answered."""

    status: Literal["complete"] = "complete"
    topic: str
    questions: list[QuizQuestion]
    answers: list[str]


QuizState = Annotated[
    Union[AwaitingTopic, InProgress, Complete], Field(discriminator="status")
]

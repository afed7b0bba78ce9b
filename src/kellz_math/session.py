"""Tutor session: the application state behind one chat screen.

Owns the setup wizard, the transcript, the quiz driver and the remembered
problem, and routes each user input to the right tutoring call.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from contextlib import contextmanager
from typing import Callable, Iterator, Literal

from pydantic import BaseModel, Field

from kellz_math import tutor
from kellz_math.conversation import Transcript
from kellz_math.gateway import Gateway
from kellz_math.images import SCRATCHPAD_TEXT, upload_text, validate_base64
from kellz_math.models import (
    CREATE_LEARNING_PATH,
    NEXT_STEP,
    PRACTICE_AGAIN,
    ActionId,
    Mode,
    Turn,
    TutorConfig,
)
from kellz_math.prompts import QUIZ_LENGTH
from kellz_math.quiz_engine import QuizDriver
from kellz_math.quiz_models import QuizQuestion
from kellz_math.wizard import SetupWizard

logger = logging.getLogger(__name__)

DEFAULT_QUESTION_DELAY = 2.0
DEFAULT_IDLE_TTL = 3600.0
DEFAULT_MAX_SESSIONS = 1000

MISSING_PROBLEM_TEXT = (
    "I'm sorry, I don't seem to have the original problem. "
    "Could you please provide it again?"
)
CORRECT_TEXT = "That's correct! Great job. Here's the next one."
QUIZ_DONE_TEXT = "You've completed the quiz! Excellent work."
LAST_QUESTION_TEXT = "That was the last question! You've completed the quiz."
PRACTICE_AGAIN_TEXT = "Great! What topic would you like to practice today?"


class SessionBusyError(RuntimeError):
    """Raised when a user action arrives while another is still running."""


class SetupIncompleteError(RuntimeError):
    """Raised for chat input before difficulty, rigor and mode are chosen."""


class SessionUpdate(BaseModel):
    """Turns appended by one user action, plus a sound for the client to play."""

    turns: list[Turn] = Field(default_factory=list)
    sound_cue: Literal["correct"] | None = None


def question_text(question: QuizQuestion, number: int, total: int) -> str:
    text = f"Question {number} of {total}:\n\n{question.question}"
    if question.options:
        text += "\n\n" + "\n".join(f"- {o}" for o in question.options)
    return text


class TutorSession:
    def __init__(
        self,
        gateway: Gateway,
        question_delay: float = DEFAULT_QUESTION_DELAY,
        session_id: str | None = None,
    ) -> None:
        self.id = session_id or uuid.uuid4().hex[:12]
        self.gateway = gateway
        self.question_delay = question_delay
        self.wizard = SetupWizard()
        self.transcript = Transcript()
        self.quiz = QuizDriver()
        self.current_problem: str | None = None
        self._busy = threading.Lock()

    # --- State helpers ---

    @property
    def config(self) -> TutorConfig | None:
        return self.wizard.config

    @property
    def busy(self) -> bool:
        return self._busy.locked()

    def _require_config(self) -> TutorConfig:
        if self.config is None:
            raise SetupIncompleteError("Finish setup before chatting")
        return self.config

    @contextmanager
    def _action(self) -> Iterator[SessionUpdate]:
        """Hold the busy flag and collect the turns appended meanwhile."""
        if not self._busy.acquire(blocking=False):
            raise SessionBusyError(f"Session {self.id} is still working")
        start = len(self.transcript)
        update = SessionUpdate()
        try:
            yield update
        finally:
            update.turns = self.transcript.since(start)
            self._busy.release()

    # --- Setup ---

    def choose(self, value: str) -> SessionUpdate:
        """Apply a setup choice; the last one fetches the greeting."""
        with self._action() as update:
            config = self.wizard.choose(value)
            if config is not None:
                greeting = tutor.get_initial_greeting(self.gateway, config)
                self.transcript.add_assistant(greeting)
        return update

    # --- Chat input ---

    def send_message(self, text: str, image: str | None = None) -> SessionUpdate:
        config = self._require_config()
        text = text.strip()
        if image is not None:
            image = validate_base64(image)
        if not text:
            # Uploads and scratchpad work always carry text; it names the topic or problem
            raise ValueError("Message text is empty")

        with self._action() as update:
            if config.mode == Mode.practice and self.quiz.awaiting_topic:
                self._start_quiz(text, image, config)
            elif config.mode == Mode.practice and self.quiz.in_progress:
                update.sound_cue = self._answer_question(text, image, config)
            else:
                self._converse(text, image, config)
        return update

    def submit_upload(self, filename: str, data: str) -> SessionUpdate:
        """An image chosen with the file picker."""
        return self.send_message(upload_text(filename), image=data)

    def submit_scratchpad(self, data_url: str) -> SessionUpdate:
        """A drawing exported from the scratchpad canvas as a data URL."""
        return self.send_message(SCRATCHPAD_TEXT, image=data_url)

    def click_action(self, value: str, label: str | None = None) -> SessionUpdate:
        config = self._require_config()
        action = ActionId(value)
        if label is None:
            label = {
                ActionId.next_step: NEXT_STEP.label,
                ActionId.create_learning_path: CREATE_LEARNING_PATH.label,
                ActionId.practice_again: PRACTICE_AGAIN.label,
            }[action]

        with self._action() as update:
            self.transcript.add_user(label)
            if action == ActionId.practice_again:
                self.quiz.restart()
                self.transcript.add_assistant(PRACTICE_AGAIN_TEXT)
            elif action == ActionId.next_step:
                reply = tutor.get_next_response(
                    self.gateway, self.transcript.turns, config
                )
                self.transcript.add_assistant(
                    reply, actions=[NEXT_STEP, CREATE_LEARNING_PATH]
                )
            elif action == ActionId.create_learning_path:
                if self.current_problem:
                    path = tutor.generate_learning_path(
                        self.gateway, self.current_problem, config
                    )
                    self.transcript.add_assistant(path, actions=[NEXT_STEP])
                else:
                    self.transcript.add_assistant(MISSING_PROBLEM_TEXT)
        return update

    # --- Flows ---

    def _converse(self, text: str, image: str | None, config: TutorConfig) -> None:
        first = self.transcript.user_turn_count() == 0
        self.transcript.add_user(text, image=image)
        if config.mode == Mode.solver and first:
            self.current_problem = text
            logger.info("Session %s problem: %r", self.id, text)

        reply = tutor.get_next_response(self.gateway, self.transcript.turns, config)
        actions = [NEXT_STEP, CREATE_LEARNING_PATH] if config.mode == Mode.solver else []
        self.transcript.add_assistant(reply, actions=actions)

    def _start_quiz(
        self, topic: str, image: str | None, config: TutorConfig
    ) -> None:
        self.transcript.add_user(topic, image=image)
        self.transcript.add_assistant(
            f'Excellent choice! Generating a {QUIZ_LENGTH}-question quiz on "{topic}" for you now...'
        )
        questions = tutor.generate_quiz(self.gateway, topic, config)
        first = self.quiz.begin(topic, questions)
        self.transcript.add_assistant(question_text(first, 1, len(questions)))

    def _answer_question(
        self, answer: str, image: str | None, config: TutorConfig
    ) -> Literal["correct"] | None:
        result = self.quiz.submit(answer)
        self.transcript.add_user(answer, image=image, is_correct_answer=result.correct)

        if result.correct:
            if result.complete:
                self.transcript.add_assistant(QUIZ_DONE_TEXT, actions=[PRACTICE_AGAIN])
            else:
                self.transcript.add_assistant(CORRECT_TEXT)
                self.transcript.add_assistant(
                    question_text(result.next_question, result.next_number, result.total)
                )
            return "correct"

        analysis = tutor.analyze_incorrect_work(
            self.gateway, result.question.question, answer, config, image
        )
        self.transcript.add_assistant(analysis, requesting_work=not image)
        if result.complete:
            self.transcript.add_assistant(LAST_QUESTION_TEXT, actions=[PRACTICE_AGAIN])
        else:
            if self.question_delay > 0:
                time.sleep(self.question_delay)
            self.transcript.add_assistant(
                question_text(result.next_question, result.next_number, result.total)
            )
        return None


class SessionStore:
    """In-memory sessions keyed by id. Nothing is persisted.

    Sessions idle for longer than `idle_ttl` seconds are dropped, and once
    `max_sessions` are live the least recently used one makes room for a
    new session.
    """

    def __init__(
        self,
        idle_ttl: float = DEFAULT_IDLE_TTL,
        max_sessions: int = DEFAULT_MAX_SESSIONS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.idle_ttl = idle_ttl
        self.max_sessions = max_sessions
        self._clock = clock
        self._sessions: dict[str, TutorSession] = {}
        self._last_seen: dict[str, float] = {}
        self._lock = threading.Lock()

    def _drop(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)
        self._last_seen.pop(session_id, None)

    def _prune(self, now: float) -> None:
        expired = [
            sid
            for sid, seen in self._last_seen.items()
            if now - seen > self.idle_ttl and not self._sessions[sid].busy
        ]
        for sid in expired:
            self._drop(sid)
        if expired:
            logger.info("Expired %d idle sessions", len(expired))

    def create(
        self, gateway: Gateway, question_delay: float = DEFAULT_QUESTION_DELAY
    ) -> TutorSession:
        session = TutorSession(gateway, question_delay=question_delay)
        with self._lock:
            now = self._clock()
            self._prune(now)
            while len(self._sessions) >= self.max_sessions:
                oldest = min(self._last_seen, key=self._last_seen.get)
                logger.info("Session limit reached, evicting %s", oldest)
                self._drop(oldest)
            self._sessions[session.id] = session
            self._last_seen[session.id] = now
        logger.info("Session created: %s", session.id)
        return session

    def get(self, session_id: str) -> TutorSession:
        """Look up a session and mark it as active."""
        with self._lock:
            now = self._clock()
            self._prune(now)
            try:
                session = self._sessions[session_id]
            except KeyError:
                raise KeyError(f"Session not found: {session_id}") from None
            self._last_seen[session_id] = now
        return session

    def delete(self, session_id: str) -> None:
        with self._lock:
            self._drop(session_id)

    def __len__(self) -> int:
        return len(self._sessions)

"""Tutor configuration and transcript models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Difficulty(str, Enum):
    elementary = "Elementary"
    middle_school = "Middle School"
    high_school = "High School"
    college = "College"


class Rigor(str, Enum):
    """Explanatory depth, independent of difficulty."""

    novice = "Novice"
    intermediate = "Intermediate"
    pro = "Pro"


class Mode(str, Enum):
    solver = "solver"  # Step-by-step help on one problem
    practice = "practice"  # Short generated quiz on a topic


class Sender(str, Enum):
    user = "user"
    assistant = "assistant"


class ActionId(str, Enum):
    next_step = "next_step"
    create_learning_path = "create_learning_path"
    practice_again = "practice_again"


class TutorConfig(BaseModel):
    """Choices made in the setup wizard. Read-only once the session starts."""

    model_config = ConfigDict(frozen=True)

    difficulty: Difficulty
    rigor: Rigor
    mode: Mode


class Action(BaseModel):
    """A follow-up button offered under an assistant turn."""

    model_config = ConfigDict(frozen=True)

    label: str
    value: ActionId


class Turn(BaseModel):
    """One message in the transcript."""

    model_config = ConfigDict(frozen=True)

    id: str
    sender: Sender
    text: str
    image: str | None = None  # base64 PNG payload, no data: prefix
    actions: list[Action] = Field(default_factory=list)
    requesting_work: bool = False
    is_correct_answer: bool | None = None


NEXT_STEP = Action(label="Next Step", value=ActionId.next_step)
CREATE_LEARNING_PATH = Action(
    label="Create Learning Path", value=ActionId.create_learning_path
)
PRACTICE_AGAIN = Action(label="Practice another topic", value=ActionId.practice_again)

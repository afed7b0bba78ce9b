"""Setup wizard: difficulty, then rigor, then mode."""

from __future__ import annotations

import logging
from enum import Enum

from kellz_math.models import Difficulty, Mode, Rigor, TutorConfig

logger = logging.getLogger(__name__)

# Step index -> enum offered on that screen
STEPS: list[type[Enum]] = [Difficulty, Rigor, Mode]


class SetupError(ValueError):
    """Raised for a choice that is not offered on the current step."""


class SetupWizard:
    """Three sequential single-choice screens. Forward only."""

    def __init__(self) -> None:
        self.step = 0
        self.difficulty: Difficulty | None = None
        self.rigor: Rigor | None = None
        self.config: TutorConfig | None = None

    @property
    def complete(self) -> bool:
        return self.config is not None

    def options(self) -> list[str]:
        """Values offered on the current step (empty once complete)."""
        if self.complete:
            return []
        return [member.value for member in STEPS[self.step]]

    def choose(self, value: str) -> TutorConfig | None:
        """Apply the choice for the current step.

        Returns the finished configuration after the mode step, None before.
        """
        if self.complete:
            raise SetupError("Setup is already complete")

        enum_type = STEPS[self.step]
        try:
            member = enum_type(value)
        except ValueError:
            raise SetupError(
                f"Unknown {enum_type.__name__.lower()} '{value}'. "
                f"Available: {self.options()}"
            ) from None

        if self.step == 0:
            self.difficulty = member
        elif self.step == 1:
            self.rigor = member
        else:
            self.config = TutorConfig(
                difficulty=self.difficulty, rigor=self.rigor, mode=member
            )
            logger.info(
                "Setup complete: difficulty=%s rigor=%s mode=%s",
                self.config.difficulty.value,
                self.config.rigor.value,
                self.config.mode.value,
            )
        self.step += 1
        return self.config

"""MCP tool for generating practice quizzes (nothing is stored on the server)."""

from __future__ import annotations

from mcp.server.fastmcp import FastMCP

from kellz_math import tutor
from kellz_math.gateway import Gateway
from kellz_math.models import Difficulty, Mode, Rigor, TutorConfig


def register(mcp: FastMCP, gateway: Gateway) -> None:
    @mcp.tool()
    def generate_quiz(
        topic: str,
        difficulty: str = "Middle School",
        rigor: str = "Intermediate",
    ) -> list[dict]:
        """Generate a 5-question math quiz on a topic.

        Each question comes with the exact expected answer. Answers are
        checked trimmed and case-insensitive, so they are kept short
        (a number, a letter or a single word). If the model cannot be
        reached a 2-question placeholder quiz is returned instead.

        Args:
            topic: What to practice (e.g. "fractions", "linear equations")
            difficulty: Elementary, Middle School, High School or College
            rigor: Novice, Intermediate or Pro
        """
        config = TutorConfig(
            difficulty=Difficulty(difficulty), rigor=Rigor(rigor), mode=Mode.practice
        )
        questions = tutor.generate_quiz(gateway, topic, config)
        return [q.model_dump(exclude_none=True) for q in questions]

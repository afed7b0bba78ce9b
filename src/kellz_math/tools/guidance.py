"""MCP tools for learning paths and mistake analysis."""

from __future__ import annotations

from mcp.server.fastmcp import FastMCP

from kellz_math import tutor
from kellz_math.gateway import Gateway
from kellz_math.images import validate_base64
from kellz_math.models import Difficulty, Mode, Rigor, TutorConfig


def _config(difficulty: str, rigor: str) -> TutorConfig:
    return TutorConfig(
        difficulty=Difficulty(difficulty), rigor=Rigor(rigor), mode=Mode.solver
    )


def register(mcp: FastMCP, gateway: Gateway) -> None:
    @mcp.tool()
    def create_learning_path(
        problem: str,
        difficulty: str = "Middle School",
        rigor: str = "Intermediate",
    ) -> str:
        """Build a numbered learning path of the concepts needed for a problem.

        Starts from prerequisites and builds up to what the problem
        directly needs, with key topics in **bold**.

        Args:
            problem: The math problem, verbatim
            difficulty: Elementary, Middle School, High School or College
            rigor: Novice, Intermediate or Pro
        """
        return tutor.generate_learning_path(
            gateway, problem, _config(difficulty, rigor)
        )

    @mcp.tool()
    def analyze_work(
        problem: str,
        user_answer: str,
        difficulty: str = "Middle School",
        rigor: str = "Intermediate",
        image: str | None = None,
    ) -> str:
        """Find the mistake behind a wrong answer and give the first correct step.

        Args:
            problem: The question the student was answering
            user_answer: The student's incorrect answer
            difficulty: Elementary, Middle School, High School or College
            rigor: Novice, Intermediate or Pro
            image: Optional base64 PNG (or data URL) of the student's work
        """
        if image:
            image = validate_base64(image)
        return tutor.analyze_incorrect_work(
            gateway, problem, user_answer, _config(difficulty, rigor), image
        )

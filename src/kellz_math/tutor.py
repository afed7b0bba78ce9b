"""Tutoring calls: one per prompt template, each with its own canned fallback."""

from __future__ import annotations

import json
import logging
from typing import Sequence

from pydantic import TypeAdapter, ValidationError

from kellz_math import prompts
from kellz_math.gateway import (
    FailureReason,
    Gateway,
    GatewayResult,
    history_contents,
    prompt_with_image,
)
from kellz_math.models import Mode, Turn, TutorConfig
from kellz_math.quiz_models import QuizQuestion

logger = logging.getLogger(__name__)

NEXT_STEP_FALLBACK = "I'm sorry, I encountered an error. Could you please try that again?"
LEARNING_PATH_FALLBACK = (
    "I'm sorry, I had trouble creating a learning path for that problem. "
    "Let's try focusing on the next step instead."
)
ANALYSIS_FALLBACK = (
    "I'm having trouble analyzing the work, but let's walk through the problem "
    "together. What is the first step?"
)

_questions_adapter = TypeAdapter(list[QuizQuestion])


def greeting_fallback(mode: Mode) -> str:
    subject = "topic" if mode == Mode.practice else "problem"
    return (
        "I'm sorry, I'm having a little trouble starting. Let's try again. "
        f"What {subject} would you like to work on?"
    )


def fallback_quiz(topic: str) -> list[QuizQuestion]:
    return [
        QuizQuestion(
            question=f"What is 2 + 2? (Error generating quiz for {topic})", answer="4"
        ),
        QuizQuestion(question="What is 5 * 5?", answer="25"),
    ]


def get_initial_greeting(gateway: Gateway, config: TutorConfig) -> str:
    result = gateway.generate(prompts.initial_greeting_prompt(config))
    return result.or_fallback(greeting_fallback(config.mode))


def parse_quiz(result: GatewayResult) -> GatewayResult | list[QuizQuestion]:
    """Validate a quiz reply; a failed result comes back when it doesn't fit."""
    if not result.ok:
        return result
    try:
        questions = _questions_adapter.validate_python(json.loads(result.text.strip()))
    except (json.JSONDecodeError, ValidationError) as e:
        return GatewayResult.failed(FailureReason.unparseable, str(e))
    if not questions:
        return GatewayResult.failed(FailureReason.unparseable, "empty quiz")
    return questions


def generate_quiz(
    gateway: Gateway,
    topic: str,
    config: TutorConfig,
    count: int = prompts.QUIZ_LENGTH,
) -> list[QuizQuestion]:
    """Ask the model for `count` question/answer pairs on `topic`."""
    result = gateway.generate(
        prompts.quiz_prompt(topic, config, count),
        response_schema=prompts.QUIZ_RESPONSE_SCHEMA,
    )
    parsed = parse_quiz(result)
    if isinstance(parsed, GatewayResult):
        logger.error(
            "Quiz generation failed for %r (%s): %s",
            topic,
            parsed.failure.value,
            parsed.detail,
        )
        return fallback_quiz(topic)
    return parsed


def get_next_response(
    gateway: Gateway, history: Sequence[Turn], config: TutorConfig
) -> str:
    """Guide the user one step further, given the whole transcript."""
    result = gateway.generate(
        history_contents(history),
        system_instruction=prompts.next_step_instruction(config),
    )
    return result.or_fallback(NEXT_STEP_FALLBACK)


def generate_learning_path(gateway: Gateway, problem: str, config: TutorConfig) -> str:
    result = gateway.generate(prompts.learning_path_prompt(problem, config))
    return result.or_fallback(LEARNING_PATH_FALLBACK)


def analyze_incorrect_work(
    gateway: Gateway,
    problem: str,
    user_answer: str,
    config: TutorConfig,
    image: str | None = None,
) -> str:
    prompt = prompts.incorrect_work_prompt(
        problem, user_answer, config, has_image=bool(image)
    )
    result = gateway.generate(prompt_with_image(prompt, image))
    return result.or_fallback(ANALYSIS_FALLBACK)

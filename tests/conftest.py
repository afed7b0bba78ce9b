"""Shared fixtures: a scripted stand-in for the Gemini gateway."""

import json

import pytest

from kellz_math.gateway import FailureReason, GatewayResult
from kellz_math.models import Difficulty, Mode, Rigor, TutorConfig
from kellz_math.session import TutorSession


class ScriptedGateway:
    """Returns queued replies in order, then `default`. Records every call."""

    def __init__(self, replies=None, default="OK"):
        self.replies = list(replies or [])
        self.default = default
        self.calls = []

    def generate(self, contents, *, system_instruction=None, response_schema=None):
        self.calls.append(
            {
                "contents": contents,
                "system_instruction": system_instruction,
                "response_schema": response_schema,
            }
        )
        reply = self.replies.pop(0) if self.replies else self.default
        if isinstance(reply, GatewayResult):
            return reply
        return GatewayResult.success(reply)


FAILED = GatewayResult.failed(FailureReason.request_failed, "boom")


def quiz_json(*pairs):
    return json.dumps([{"question": q, "answer": a} for q, a in pairs])


@pytest.fixture
def gateway():
    return ScriptedGateway()


@pytest.fixture
def solver_config():
    return TutorConfig(
        difficulty=Difficulty.high_school, rigor=Rigor.pro, mode=Mode.solver
    )


@pytest.fixture
def practice_config():
    return TutorConfig(
        difficulty=Difficulty.elementary, rigor=Rigor.novice, mode=Mode.practice
    )


def make_session(gateway, mode="solver", difficulty="College", rigor="Novice"):
    """A session taken through setup; the greeting consumes one reply."""
    session = TutorSession(gateway, question_delay=0)
    session.choose(difficulty)
    session.choose(rigor)
    session.choose(mode)
    return session

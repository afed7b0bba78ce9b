"""Settings read from the environment (and a `.env` file, when present)."""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from kellz_math.gateway import DEFAULT_MODEL
from kellz_math.session import (
    DEFAULT_IDLE_TTL,
    DEFAULT_MAX_SESSIONS,
    DEFAULT_QUESTION_DELAY,
)


@dataclass(frozen=True)
class Settings:
    gemini_api_key: str | None
    model: str = DEFAULT_MODEL
    question_delay: float = DEFAULT_QUESTION_DELAY  # seconds before the next question after a wrong answer
    api_key: str | None = None  # x-api-key for the HTTP API; None disables the check
    port: int = 8000
    session_ttl: float = DEFAULT_IDLE_TTL  # idle seconds before a session is dropped
    max_sessions: int = DEFAULT_MAX_SESSIONS


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be a number, got {raw!r}") from None
    if value < 0:
        raise RuntimeError(f"{name} must not be negative")
    return value


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    if not raw.isdigit():
        raise RuntimeError(f"{name} must be an integer, got {raw!r}")
    return int(raw)


def load_settings() -> Settings:
    load_dotenv()
    max_sessions = _int_env("KELLZ_MAX_SESSIONS", DEFAULT_MAX_SESSIONS)
    if max_sessions < 1:
        raise RuntimeError("KELLZ_MAX_SESSIONS must be at least 1")

    return Settings(
        gemini_api_key=os.getenv("GOOGLE_API_KEY") or os.getenv("GEMINI_API_KEY") or None,
        model=os.getenv("KELLZ_MODEL", DEFAULT_MODEL).strip() or DEFAULT_MODEL,
        question_delay=_float_env("KELLZ_QUESTION_DELAY", DEFAULT_QUESTION_DELAY),
        api_key=os.getenv("API_KEY") or None,
        port=_int_env("PORT", 8000),
        session_ttl=_float_env("KELLZ_SESSION_TTL", DEFAULT_IDLE_TTL),
        max_sessions=max_sessions,
    )

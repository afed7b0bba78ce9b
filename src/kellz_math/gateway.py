"""Model gateway: the single call into the Google Gemini API."""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol, Sequence, Union

from google import genai
from google.genai import types

from kellz_math.images import IMAGE_MIME_TYPE
from kellz_math.models import Sender, Turn

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"

Contents = Union[str, list[types.Content]]


class FailureReason(str, Enum):
    request_failed = "request_failed"  # Transport or service error
    empty_response = "empty_response"  # Call succeeded but no text came back
    unparseable = "unparseable"  # Text came back but not in the requested shape


@dataclass(frozen=True)
class GatewayResult:
    """Either the model's text or the reason there is none."""

    text: str | None = None
    failure: FailureReason | None = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def success(cls, text: str) -> GatewayResult:
        return cls(text=text)

    @classmethod
    def failed(cls, reason: FailureReason, detail: str = "") -> GatewayResult:
        return cls(failure=reason, detail=detail)

    def or_fallback(self, fallback: str) -> str:
        return self.text if self.ok else fallback


class Gateway(Protocol):
    def generate(
        self,
        contents: Contents,
        *,
        system_instruction: str | None = None,
        response_schema: dict[str, Any] | None = None,
    ) -> GatewayResult: ...


def turn_to_content(turn: Turn) -> types.Content:
    """Text part first, then the attached image as an inline PNG."""
    parts: list[types.Part] = []
    if turn.text:
        parts.append(types.Part(text=turn.text))
    if turn.image:
        parts.append(
            types.Part.from_bytes(
                data=base64.b64decode(turn.image), mime_type=IMAGE_MIME_TYPE
            )
        )
    role = "user" if turn.sender == Sender.user else "model"
    return types.Content(role=role, parts=parts)


def prompt_with_image(prompt: str, image: str | None = None) -> Contents:
    """A single-turn request: the prompt, plus an inline image when given."""
    if not image:
        return prompt
    parts = [
        types.Part(text=prompt),
        types.Part.from_bytes(data=base64.b64decode(image), mime_type=IMAGE_MIME_TYPE),
    ]
    return [types.Content(role="user", parts=parts)]


def history_contents(history: Sequence[Turn]) -> list[types.Content]:
    return [turn_to_content(t) for t in history]


class GeminiGateway:
    """Calls `generate_content` once per request. No retries."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        client: genai.Client | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self._shared_client = client

    def _client(self) -> genai.Client:
        if self._shared_client is not None:
            return self._shared_client
        # Without an explicit key the client reads GOOGLE_API_KEY / GEMINI_API_KEY
        return genai.Client(api_key=self.api_key) if self.api_key else genai.Client()

    def generate(
        self,
        contents: Contents,
        *,
        system_instruction: str | None = None,
        response_schema: dict[str, Any] | None = None,
    ) -> GatewayResult:
        size = (
            len(contents)
            if isinstance(contents, str)
            else sum(len(c.parts or []) for c in contents)
        )
        logger.info(
            "llm_usage: model=%s contents=%s system_instruction=%s json=%s",
            self.model,
            size,
            system_instruction is not None,
            response_schema is not None,
        )

        config = None
        if system_instruction is not None or response_schema is not None:
            config = types.GenerateContentConfig(
                system_instruction=system_instruction,
                response_mime_type="application/json" if response_schema else None,
                response_schema=response_schema,
            )

        try:
            response = self._client().models.generate_content(
                model=self.model,
                contents=contents,
                config=config,
            )
            text = response.text
        except Exception as e:
            logger.error("Gemini request failed: %s", e)
            return GatewayResult.failed(FailureReason.request_failed, str(e))

        if not text or not text.strip():
            logger.error("Gemini returned no text")
            return GatewayResult.failed(FailureReason.empty_response)
        return GatewayResult.success(text)

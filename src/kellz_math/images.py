"""Work images: file uploads and scratchpad drawings, both as base64 PNG."""

from __future__ import annotations

import base64
import binascii

IMAGE_MIME_TYPE = "image/png"

SCRATCHPAD_TEXT = "Here's my work from the scratchpad."


def upload_text(filename: str) -> str:
    """Transcript text for an uploaded picture."""
    return f"Image uploaded: {filename}"


def strip_data_url(data: str) -> str:
    """`data:image/png;base64,AAAA` -> `AAAA`. Bare payloads pass through."""
    data = data.strip()
    if data.startswith("data:"):
        _, sep, payload = data.partition(",")
        if not sep:
            raise ValueError("Malformed data URL: missing ','")
        return payload
    return data


def validate_base64(data: str) -> str:
    """Return the payload if it decodes as base64, raise ValueError otherwise."""
    payload = strip_data_url(data)
    if not payload:
        raise ValueError("Image payload is empty")
    try:
        base64.b64decode(payload, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Image is not valid base64: {e}") from None
    return payload

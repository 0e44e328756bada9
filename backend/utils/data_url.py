"""Helpers for base64 data URLs posted by the onboarding form."""
import base64
import binascii
import re
from typing import Optional, Tuple

_DATA_URL_RE = re.compile(r"^data:([^;,]*)((?:;[^;,]*)*),(.*)$", re.DOTALL)


def parse_data_url(value: Optional[str]) -> Optional[Tuple[str, bytes]]:
    """
    Split a data URL into (media_type, payload bytes).
    Returns None when the value is empty, not a data URL, not base64 encoded, or corrupt.
    """
    text = (value or "").strip()
    if not text:
        return None
    match = _DATA_URL_RE.match(text)
    if not match:
        return None
    media_type, params, payload = match.groups()
    if ";base64" not in params.lower():
        return None
    try:
        content = base64.b64decode("".join(payload.split()), validate=True)
    except (binascii.Error, ValueError):
        return None
    return media_type.strip().lower(), content


def to_data_url(media_type: str, content: bytes) -> str:
    return f"data:{media_type};base64,{base64.b64encode(content).decode('ascii')}"

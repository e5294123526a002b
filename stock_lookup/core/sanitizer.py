"""
String sanitization for untrusted request input.
"""

import re
from typing import Any, Dict

MAX_LENGTH = 1000

# Order matters: tags first, then script schemes, then inline handlers
_UNSAFE_PATTERNS = (
    re.compile(r"<[^>]*>"),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"on\w+=", re.IGNORECASE),
)


def _strip_unsafe(text: str) -> str:
    # Removing one match can splice a new one together ("javajavascript:script:"),
    # so repeat until nothing changes.
    while True:
        cleaned = text
        for pattern in _UNSAFE_PATTERNS:
            cleaned = pattern.sub("", cleaned)
        if cleaned == text:
            return cleaned
        text = cleaned


def sanitize(value: Any) -> str:
    """
    Sanitize a single untrusted value.

    - Non-string input becomes an empty string
    - HTML tags, ``javascript:`` and ``on<event>=`` fragments are removed
    - Leading/trailing whitespace is trimmed
    - Output is capped at 1000 characters

    The result is a fixed point: sanitizing it again returns it unchanged.
    """
    if not isinstance(value, str):
        return ""

    cleaned = _strip_unsafe(value).strip()
    return cleaned[:MAX_LENGTH].rstrip()


def sanitize_body(body: Dict[str, Any]) -> Dict[str, Any]:
    """
    Sanitize the top-level string fields of a request body.
    Nested objects and lists are passed through untouched.
    """
    return {
        key: sanitize(value) if isinstance(value, str) else value
        for key, value in body.items()
    }

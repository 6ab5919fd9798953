"""Turns raw model text into candidate JSON text."""

from __future__ import annotations

import re
from typing import Optional

from .errors import EmptyResponseError, RefusalError
from .utils import preview_text

REFUSAL_PATTERNS = (
    re.compile(r"I apologi[sz]e,? but I (?:couldn't|could not|can't|cannot|am unable to) generate", re.IGNORECASE),
    re.compile(r"please try rephrasing your request", re.IGNORECASE),
    re.compile(r"^I'?m sorry,? but I (?:can't|cannot|am unable to)", re.IGNORECASE),
)

_JSON_FENCE_RE = re.compile(r"^```json\s*", re.IGNORECASE)
_FENCE_RE = re.compile(r"^```\s*")
_FENCE_END_RE = re.compile(r"\s*```$")
_EDGE_BACKTICKS_RE = re.compile(r"^`+|`+$")


def _looks_like_json(text: str) -> bool:
    stripped = _JSON_FENCE_RE.sub("", text).lstrip("`").lstrip()
    return stripped[:1] in ("{", "[")


def is_refusal(text: str) -> bool:
    if _looks_like_json(text):
        return False
    return any(pattern.search(text) for pattern in REFUSAL_PATTERNS)


def strip_code_fence(text: str) -> str:
    if _JSON_FENCE_RE.match(text):
        text = _FENCE_END_RE.sub("", _JSON_FENCE_RE.sub("", text, count=1))
    elif text.startswith("```"):
        text = _FENCE_END_RE.sub("", _FENCE_RE.sub("", text, count=1))
    return _EDGE_BACKTICKS_RE.sub("", text).strip()


def normalize_response(text: Optional[str]) -> str:
    """Validates and unwraps raw model output.

    Raises:
        EmptyResponseError: the text is missing or blank.
        RefusalError: the model answered with apology prose instead of JSON.
    """
    if not text or not text.strip():
        raise EmptyResponseError()
    cleaned = text.strip()
    if is_refusal(cleaned):
        raise RefusalError(preview=preview_text(cleaned, 200))
    return strip_code_fence(cleaned)

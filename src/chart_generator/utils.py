"""Utility helpers."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

PREVIEW_CHARS = 500


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def compact_json(data: Any) -> str:
    """Serializes ``data`` without insignificant whitespace."""
    return json.dumps(data, ensure_ascii=False, separators=(",", ":"))


def preview_text(text: str | None, limit: int = PREVIEW_CHARS) -> str:
    if not text:
        return ""
    if len(text) <= limit:
        return text
    return f"{text[:limit]}..."

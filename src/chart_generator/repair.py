"""Strict JSON parsing with ordered salvage stages for model output.

Model responses are usually valid JSON. When they are not, the damage tends
to fall into a few shapes: literal newlines inside string values (HTML
content is the usual culprit), text appended after a complete object, and
output cut off mid-structure. Each shape has one stage below. Stages are pure
``text -> text`` functions that return their input unchanged when they do not
apply; the engine re-parses after every stage and stops at the first success.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Tuple

from .errors import (
    DIAGNOSIS_EMPTY_INPUT,
    DIAGNOSIS_NOT_JSON_SHAPED,
    DIAGNOSIS_TRUNCATED,
    DIAGNOSIS_UNKNOWN,
    RepairExhaustedError,
)
from .utils import preview_text

logger = logging.getLogger(__name__)

STAGE_STRICT = "strict"
STAGE_ESCAPE_CONTROL_CHARS = "escape_control_chars"
STAGE_TRUNCATE_TRAILING_GARBAGE = "truncate_trailing_garbage"
STAGE_CLOSE_COLOR_ARRAY = "close_color_array"
STAGE_CLOSE_UNTERMINATED_STRING = "close_unterminated_string"
STAGE_CLOSE_OPEN_BRACKETS = "close_open_brackets"

_CONTROL_ESCAPES = {"\n": "\\n", "\r": "\\r", "\t": "\\t"}
_CLOSERS = {"{": "}", "[": "]"}
_OPENERS = {"}": "{", "]": "["}

_COLOR_TOKEN_RE = re.compile(r'"rgba?\([^"\n]+\)"')
_DANGLING_KEY_RE = re.compile(r'"(?:[^"\\]|\\.)*"\s*:$')


@dataclass
class RepairState:
    """String-aware cursor state after scanning a candidate text."""

    in_string: bool = False
    escape_next: bool = False
    brace_depth: int = 0
    bracket_depth: int = 0
    last_valid_object_end: Optional[int] = None
    first_valid_object_end: Optional[int] = None
    last_open_quote: Optional[int] = None
    open_stack: List[str] = field(default_factory=list)
    over_closed: bool = False


@dataclass(frozen=True)
class RepairResult:
    value: Any
    stage: str
    text: str


def scan(text: str) -> RepairState:
    """Walks ``text`` once, tracking strings, nesting and the last complete object."""
    state = RepairState()
    for index, char in enumerate(text):
        if state.escape_next:
            state.escape_next = False
            continue
        if state.in_string:
            if char == "\\":
                state.escape_next = True
            elif char == '"':
                state.in_string = False
            continue

        if char == '"':
            state.in_string = True
            state.last_open_quote = index
        elif char in _CLOSERS:
            state.open_stack.append(char)
            if char == "{":
                state.brace_depth += 1
            else:
                state.bracket_depth += 1
        elif char in _OPENERS:
            if state.open_stack and state.open_stack[-1] == _OPENERS[char]:
                state.open_stack.pop()
            else:
                state.over_closed = True
            if char == "}":
                state.brace_depth -= 1
                if state.brace_depth == 0:
                    state.last_valid_object_end = index
                    if state.first_valid_object_end is None:
                        state.first_valid_object_end = index
            else:
                state.bracket_depth -= 1
    return state


def _try_parse(text: str) -> Tuple[bool, Any]:
    try:
        return True, json.loads(text)
    except ValueError:
        return False, None


def _closing_sequence(open_stack: List[str]) -> str:
    return "".join(_CLOSERS[opener] for opener in reversed(open_stack))


def _trim_dangling(text: str) -> str:
    """Drops a trailing comma or an unfinished ``"key":`` so closers can follow."""
    trimmed = text.rstrip()
    if trimmed.endswith(":"):
        trimmed = _DANGLING_KEY_RE.sub("", trimmed).rstrip()
    if trimmed.endswith(","):
        trimmed = trimmed[:-1].rstrip()
    return trimmed


def escape_control_chars(text: str) -> str:
    """Rewrites literal newlines, carriage returns and tabs found inside strings."""
    out: List[str] = []
    in_string = False
    escape_next = False
    for char in text:
        if escape_next:
            escape_next = False
        elif in_string:
            if char == "\\":
                escape_next = True
            elif char == '"':
                in_string = False
            elif char in _CONTROL_ESCAPES:
                out.append(_CONTROL_ESCAPES[char])
                continue
        elif char == '"':
            in_string = True
        out.append(char)
    return "".join(out)


def truncate_trailing_garbage(text: str) -> str:
    """Cuts everything after the last point where the top-level object closed.

    When the trailing text itself holds a balanced object (or the last cut
    does not parse), the cut at the first top-level close is tried as well.
    """
    state = scan(text)
    ends = []
    for end in (state.last_valid_object_end, state.first_valid_object_end):
        if end is not None and end < len(text) - 1 and end not in ends:
            ends.append(end)
    if not ends:
        return text
    for end in ends:
        candidate = text[: end + 1]
        ok, _ = _try_parse(candidate)
        if ok:
            return candidate
    return text[: ends[0] + 1]


def close_color_array(text: str) -> str:
    """Closes a list of ``"rgba(...)"`` tokens that trails off into junk.

    Narrow on purpose: it only fires when the innermost open container after
    the last colour token is a list and no ``]`` follows, and it only hands
    back its rewrite when that rewrite parses. Text that the later string or
    bracket closers already recover is left alone, so elements after the
    last colour are never dropped.
    """
    matches = list(_COLOR_TOKEN_RE.finditer(text))
    if not matches:
        return text
    for later in (close_unterminated_string, close_open_brackets):
        ok, _ = _try_parse(later(text))
        if ok:
            return text
    cut = matches[-1].end()
    tail = text[cut:]
    if not tail.strip() or "]" in tail:
        return text

    prefix = text[:cut]
    state = scan(prefix)
    if state.in_string or state.over_closed or not state.open_stack:
        return text
    if state.open_stack[-1] != "[":
        return text

    candidate = prefix + _closing_sequence(state.open_stack)
    ok, _ = _try_parse(candidate)
    return candidate if ok else text


def close_unterminated_string(text: str) -> str:
    """Terminates a string the output was cut off in, then balances the structure."""
    state = scan(text)
    if not state.in_string or state.last_open_quote is None:
        return text

    body = text[:-1] if state.escape_next else text
    kept = body + '"' + _closing_sequence(state.open_stack)
    ok, _ = _try_parse(kept)
    if ok:
        return kept

    # The partial string was a key or ended mid-escape; drop it instead.
    dropped = _trim_dangling(text[: state.last_open_quote])
    dropped_state = scan(dropped)
    if not dropped_state.over_closed and not dropped_state.in_string:
        candidate = dropped + _closing_sequence(dropped_state.open_stack)
        ok, _ = _try_parse(candidate)
        if ok:
            return candidate
    return kept


def close_open_brackets(text: str) -> str:
    """Appends closers for every unclosed ``[``/``{`` in LIFO order."""
    state = scan(text)
    if state.over_closed:
        logger.debug("Could not repair JSON: too many closing brackets")
        return text
    if state.in_string or not state.open_stack:
        return text
    return _trim_dangling(text) + _closing_sequence(state.open_stack)


REPAIR_STAGES: Tuple[Tuple[str, Callable[[str], str]], ...] = (
    (STAGE_ESCAPE_CONTROL_CHARS, escape_control_chars),
    (STAGE_TRUNCATE_TRAILING_GARBAGE, truncate_trailing_garbage),
    (STAGE_CLOSE_COLOR_ARRAY, close_color_array),
    (STAGE_CLOSE_UNTERMINATED_STRING, close_unterminated_string),
    (STAGE_CLOSE_OPEN_BRACKETS, close_open_brackets),
)


def diagnose(text: str) -> str:
    stripped = (text or "").strip()
    if not stripped:
        return DIAGNOSIS_EMPTY_INPUT
    if not stripped.startswith("{"):
        return DIAGNOSIS_NOT_JSON_SHAPED
    if not stripped.endswith("}"):
        return DIAGNOSIS_TRUNCATED
    return DIAGNOSIS_UNKNOWN


def repair_json(text: Optional[str]) -> RepairResult:
    """Parses ``text``, running the salvage stages in order when strict parsing fails.

    Raises:
        RepairExhaustedError: no stage produced valid JSON.
    """
    original = text or ""
    candidate = original.strip()
    ok, value = _try_parse(candidate)
    if ok:
        return RepairResult(value=value, stage=STAGE_STRICT, text=candidate)

    logger.warning(
        "JSON parse failed (length=%d), attempting repair. Preview: %s",
        len(original),
        preview_text(original, 300),
    )
    for name, transform in REPAIR_STAGES:
        repaired = transform(candidate)
        if repaired == candidate:
            continue
        ok, value = _try_parse(repaired)
        if ok:
            logger.debug("JSON recovered by repair stage '%s'", name)
            return RepairResult(value=value, stage=name, text=repaired)
        logger.debug("Repair stage '%s' changed the text but it is still invalid", name)
        candidate = repaired

    raise RepairExhaustedError(
        text_length=len(original),
        preview=preview_text(original),
        diagnosis=diagnose(original),
    )


def parse_json(text: Optional[str]) -> Any:
    return repair_json(text).value

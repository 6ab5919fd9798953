"""Loads the instructional documents sent ahead of every request, with fallbacks."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

GENERATION = "generation"
MODIFICATION = "modification"

BUILTIN_GENERATION_RULES = """\
You turn natural-language requests into chart definitions for Chart.js.

Response contract:
- Respond with a single JSON object and nothing else: no prose, no markdown fences.
- Required keys: "chartType" (a Chart.js type such as bar, line, pie, doughnut,
  radar, polarArea, scatter or bubble) and "chartData" (a Chart.js data object
  with "labels" and "datasets").
- Optional keys: "chartConfig" (Chart.js options, including plugins.title),
  "user_message" (one or two sentences describing the chart).

Data rules:
- Use realistic, internally consistent numbers. Say so in user_message when the
  figures are illustrative rather than sourced.
- Every dataset needs a "label" and a "data" array whose length matches "labels".
- Colours are strings such as "rgba(54, 162, 235, 0.6)". Give each dataset or
  slice a distinct colour and keep borderColor arrays the same length as data.
- Keep configuration minimal: responsive true, a title, and axis titles where the
  chart has axes.
"""

BUILTIN_MODIFICATION_RULES = """\
You update an existing Chart.js chart according to the user's request.

Rules:
- Start from the current chart state below. Keep labels, datasets, colours and
  options that the user did not ask to change.
- Apply only the requested changes and list each one in "changes".
- When the request is about a different topic from the current chart, build a
  new chart from scratch instead of forcing the old data into it.
- Respond with a single JSON object and nothing else: no prose, no markdown fences.
"""

BUILTIN_DOCUMENTS: Dict[str, str] = {
    GENERATION: BUILTIN_GENERATION_RULES,
    MODIFICATION: BUILTIN_MODIFICATION_RULES,
}

DOCUMENT_PATH_KEYS: Dict[str, str] = {
    GENERATION: "generation_context",
    MODIFICATION: "modification_context",
}


class InstructionContext:
    """Write-once cache of the instructional documents.

    The first successful read of a document wins. Two concurrent first reads
    both store the same immutable text, so no lock is taken.
    """

    def __init__(self, paths: Optional[Mapping[str, str]] = None) -> None:
        self.paths: Dict[str, str] = dict(paths or {})
        self._cache: Dict[str, str] = {}

    @classmethod
    def from_settings(cls, config: Dict[str, Any]) -> "InstructionContext":
        configured = config.get("paths", {})
        paths = {
            name: configured[key]
            for name, key in DOCUMENT_PATH_KEYS.items()
            if configured.get(key)
        }
        return cls(paths)

    def get(self, name: str) -> str:
        cached = self._cache.get(name)
        if cached is not None:
            return cached
        text = self._read(name)
        self._cache[name] = text
        return text

    def generation_rules(self) -> str:
        return self.get(GENERATION)

    def modification_rules(self) -> str:
        return self.get(MODIFICATION)

    def clear(self) -> None:
        self._cache = {}

    def _read(self, name: str) -> str:
        if name not in BUILTIN_DOCUMENTS:
            raise KeyError(f"Unknown context document: {name}")
        raw_path = self.paths.get(name)
        if raw_path:
            path = Path(raw_path)
            if path.exists():
                text = path.read_text(encoding="utf-8").strip()
                if text:
                    return text
                logger.warning("Context document %s is empty, using built-in rules", path)
        return BUILTIN_DOCUMENTS[name].strip()

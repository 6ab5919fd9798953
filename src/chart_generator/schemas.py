"""Caller-supplied inputs: current chart state and template layout."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

CONTENT_TYPE_HTML = "html"
CONTENT_TYPE_TEXT = "text"
CHART_SECTION_TYPE = "chart"


@dataclass(frozen=True)
class ChartState:
    chart_type: str
    chart_data: Any = None
    chart_config: Any = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ChartState":
        return cls(
            chart_type=str(payload.get("chartType") or payload.get("chart_type") or ""),
            chart_data=payload.get("chartData", payload.get("chart_data")),
            chart_config=payload.get("chartConfig", payload.get("chart_config")),
        )


@dataclass(frozen=True)
class TemplateSection:
    name: str
    type: str
    content_type: str = CONTENT_TYPE_TEXT
    note: Optional[str] = None

    @property
    def is_html(self) -> bool:
        return self.content_type == CONTENT_TYPE_HTML

    @property
    def is_chart(self) -> bool:
        return self.type == CHART_SECTION_TYPE

    @property
    def has_note(self) -> bool:
        return bool(self.note and self.note.strip())

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "TemplateSection":
        content_type = payload.get("contentType") or payload.get("content_type") or CONTENT_TYPE_TEXT
        return cls(
            name=str(payload.get("name") or ""),
            type=str(payload.get("type") or ""),
            content_type=str(content_type),
            note=payload.get("note"),
        )


@dataclass(frozen=True)
class TemplateStructure:
    width: int
    height: int
    chart_width: int
    chart_height: int
    sections: List[TemplateSection] = field(default_factory=list)

    def text_sections(self) -> List[TemplateSection]:
        """Every section the model writes content for, in layout order."""
        return [section for section in self.sections if not section.is_chart]

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "TemplateStructure":
        chart_area: Dict[str, Any] = payload.get("chartArea") or payload.get("chart_area") or {}
        return cls(
            width=int(payload.get("width") or 0),
            height=int(payload.get("height") or 0),
            chart_width=int(chart_area.get("width") or 0),
            chart_height=int(chart_area.get("height") or 0),
            sections=[TemplateSection.from_dict(s) for s in payload.get("sections") or []],
        )

"""Classified failures raised while turning model output into a chart."""

from __future__ import annotations

from typing import Optional

DIAGNOSIS_EMPTY_INPUT = "empty_input"
DIAGNOSIS_NOT_JSON_SHAPED = "not_json_shaped"
DIAGNOSIS_TRUNCATED = "truncated"
DIAGNOSIS_UNKNOWN = "unknown"

_DIAGNOSIS_DETAILS = {
    DIAGNOSIS_EMPTY_INPUT: "response was empty",
    DIAGNOSIS_NOT_JSON_SHAPED: "response does not appear to be JSON (missing opening brace)",
    DIAGNOSIS_TRUNCATED: "response appears to be truncated (missing closing brace)",
    DIAGNOSIS_UNKNOWN: "response could not be repaired",
}


class ChartGenerationError(RuntimeError):
    """Base class for every error surfaced by the generation pipeline."""

    def __init__(self, message: str, service: Optional[str] = None) -> None:
        super().__init__(message)
        self.service = service


class EmptyResponseError(ChartGenerationError):
    """The backend returned no text at all."""

    def __init__(self, service: Optional[str] = None) -> None:
        super().__init__("Empty response from AI service", service=service)


class RefusalError(ChartGenerationError):
    """The backend answered in prose instead of producing chart JSON."""

    def __init__(self, preview: str = "", service: Optional[str] = None) -> None:
        super().__init__(
            "AI service could not generate chart data - please try rephrasing your request",
            service=service,
        )
        self.preview = preview


class RepairExhaustedError(ChartGenerationError):
    """Every repair stage ran and the text still is not valid JSON."""

    def __init__(
        self,
        text_length: int,
        preview: str,
        diagnosis: str,
        service: Optional[str] = None,
    ) -> None:
        detail = _DIAGNOSIS_DETAILS.get(diagnosis, _DIAGNOSIS_DETAILS[DIAGNOSIS_UNKNOWN])
        super().__init__(f"Failed to parse response as valid JSON: {detail}", service=service)
        self.text_length = text_length
        self.preview = preview
        self.diagnosis = diagnosis


class MissingFieldError(ChartGenerationError):
    """A parsed chart result lacks a field the caller depends on."""

    def __init__(self, field: str, service: Optional[str] = None) -> None:
        super().__init__(f"AI response missing {field} field", service=service)
        self.field = field

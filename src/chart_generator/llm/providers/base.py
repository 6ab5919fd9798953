"""Provider adapter interface and the shared error taxonomy."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Protocol

from ...errors import ChartGenerationError
from ..types import (
    KIND_AUTH,
    KIND_RATE_LIMIT,
    KIND_SERVER_ERROR,
    KIND_UNKNOWN,
    GenerationRequest,
    GenerationResponse,
    ProviderError,
)


class ProviderAdapter(Protocol):
    name: str
    label: str
    default_model: str

    def generate_content(self, request: GenerationRequest) -> GenerationResponse:
        ...

    def validate_api_key(self) -> bool:
        ...

    def get_additional_metadata(self, response: GenerationResponse, model: str) -> Dict[str, Any]:
        ...

    def enhance_error(self, error: BaseException) -> Exception:
        ...

    def get_available_models(self) -> List[Dict[str, Any]]:
        ...


def status_from_exception(error: BaseException) -> Optional[int]:
    """Finds an HTTP status on SDK errors (``status_code``) or requests errors (``response``)."""
    for attr in ("status_code", "status"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(error, "response", None)
    value = getattr(response, "status_code", None)
    return value if isinstance(value, int) else None


def classify_status(status: Optional[int], vendor_codes: Optional[Mapping[int, str]] = None) -> str:
    if status is None:
        return KIND_UNKNOWN
    if vendor_codes and status in vendor_codes:
        return vendor_codes[status]
    if status == 401:
        return KIND_AUTH
    if status == 429:
        return KIND_RATE_LIMIT
    if status >= 500:
        return KIND_SERVER_ERROR
    return KIND_UNKNOWN


def attribute_error(error: ChartGenerationError, service: str) -> ChartGenerationError:
    """Stamps an already-classified error with the service that produced it."""
    if not error.service:
        error.service = service
    return error


def build_provider_error(
    error: BaseException,
    service: str,
    label: str,
    vendor_codes: Optional[Mapping[int, str]] = None,
    messages: Optional[Mapping[str, str]] = None,
    status_messages: Optional[Mapping[int, str]] = None,
) -> Exception:
    """Maps an arbitrary transport/SDK failure onto ``ProviderError``.

    ``messages`` overrides the message for a kind and ``status_messages`` for
    one status; otherwise ``unknown`` errors keep the original message.
    """
    if isinstance(error, ChartGenerationError):
        return attribute_error(error, service)

    status = status_from_exception(error)
    kind = classify_status(status, vendor_codes)
    defaults = {
        KIND_AUTH: f"Invalid {label} API key",
        KIND_RATE_LIMIT: f"{label} API rate limit exceeded",
        KIND_SERVER_ERROR: f"{label} API server error",
    }
    defaults.update(messages or {})
    message = (status_messages or {}).get(status) if status is not None else None
    message = message or defaults.get(kind) or f"{label} API error: {error}"
    return ProviderError(message, kind=kind, service=service, status=status)

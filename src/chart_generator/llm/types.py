"""Shared LLM data structures."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from ..errors import ChartGenerationError

KIND_AUTH = "auth"
KIND_RATE_LIMIT = "rate_limit"
KIND_SERVER_ERROR = "server_error"
KIND_CONTENT_BLOCKED = "content_blocked"
KIND_UNKNOWN = "unknown"

PROVIDER_ERROR_KINDS = (
    KIND_AUTH,
    KIND_RATE_LIMIT,
    KIND_SERVER_ERROR,
    KIND_CONTENT_BLOCKED,
    KIND_UNKNOWN,
)


@dataclass(frozen=True)
class GenerationRequest:
    user_prompt: str
    model: str
    max_tokens: int
    temperature: float
    system_prompt: Optional[str] = None
    top_p: Optional[float] = None


@dataclass
class GenerationResponse:
    content: str
    tokens_used: Optional[int] = None
    raw: Any = None
    latency_ms: int = 0


class ProviderError(ChartGenerationError):
    """Provider failed to return a valid generation."""

    def __init__(
        self,
        message: str,
        kind: str = KIND_UNKNOWN,
        service: Optional[str] = None,
        status: Optional[int] = None,
    ) -> None:
        if kind not in PROVIDER_ERROR_KINDS:
            kind = KIND_UNKNOWN
        super().__init__(message, service=service)
        self.kind = kind
        self.status = status

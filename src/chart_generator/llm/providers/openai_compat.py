"""Chat Completions adapter shared by OpenAI-compatible vendors."""

from __future__ import annotations

import logging
import os
import time
from typing import Any, Dict, List, Mapping, Optional

from openai import OpenAI

from ..types import KIND_AUTH, GenerationRequest, GenerationResponse, ProviderError
from .base import build_provider_error

logger = logging.getLogger(__name__)


def first_choice(raw: Any) -> Any:
    choices = getattr(raw, "choices", None) or []
    return choices[0] if choices else None


class OpenAICompatibleAdapter:
    """Talks to any vendor exposing ``/chat/completions`` through the ``openai`` SDK.

    Subclasses set the class attributes and extend ``get_additional_metadata``.
    """

    name = "openai_compatible"
    label = "OpenAI-compatible"
    base_url = ""
    api_key_env = ""
    default_model = ""
    probe_model = ""
    vendor_codes: Mapping[int, str] = {}
    status_messages: Mapping[int, str] = {}
    models: List[Dict[str, Any]] = []

    fallback_max_tokens = 2000
    fallback_temperature = 0.3
    fallback_top_p = 0.9

    def __init__(
        self,
        client: Any = None,
        api_key: Optional[str] = None,
        timeout_seconds: float = 120,
        default_model: Optional[str] = None,
    ) -> None:
        self._api_key = api_key or os.getenv(self.api_key_env)
        self.timeout_seconds = timeout_seconds
        if default_model:
            self.default_model = default_model
        self._client = client
        if self._client is None and self._api_key:
            self._client = OpenAI(
                api_key=self._api_key,
                base_url=self.base_url,
                default_headers=self.default_headers() or None,
                timeout=timeout_seconds,
            )

    def default_headers(self) -> Dict[str, str]:
        return {}

    def _messages(self, request: GenerationRequest) -> List[Dict[str, str]]:
        messages = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        messages.append({"role": "user", "content": request.user_prompt})
        return messages

    def generate_content(self, request: GenerationRequest) -> GenerationResponse:
        if self._client is None:
            raise ProviderError(f"{self.api_key_env} missing", kind=KIND_AUTH, service=self.name)

        start = time.perf_counter()
        try:
            response = self._client.chat.completions.create(
                model=request.model or self.default_model,
                messages=self._messages(request),
                max_tokens=request.max_tokens or self.fallback_max_tokens,
                temperature=(
                    request.temperature if request.temperature is not None else self.fallback_temperature
                ),
                top_p=request.top_p if request.top_p is not None else self.fallback_top_p,
            )
        except Exception as exc:
            raise self.enhance_error(exc) from exc

        latency_ms = int((time.perf_counter() - start) * 1000)
        choice = first_choice(response)
        message = getattr(choice, "message", None)
        usage = getattr(response, "usage", None)
        total_tokens = getattr(usage, "total_tokens", None)

        return GenerationResponse(
            content=getattr(message, "content", None) or "",
            tokens_used=int(total_tokens) if total_tokens is not None else None,
            raw=response,
            latency_ms=latency_ms,
        )

    def validate_api_key(self) -> bool:
        if self._client is None:
            return False
        try:
            response = self._client.chat.completions.create(
                model=self.probe_model or self.default_model,
                messages=[{"role": "user", "content": "Test connection"}],
                max_tokens=10,
            )
        except Exception as exc:
            logger.warning("%s API key validation failed: %s", self.label, exc)
            return False
        message = getattr(first_choice(response), "message", None)
        return bool(getattr(message, "content", None))

    def get_additional_metadata(self, response: GenerationResponse, model: str) -> Dict[str, Any]:
        return {"finish_reason": getattr(first_choice(response.raw), "finish_reason", None)}

    def enhance_error(self, error: BaseException) -> Exception:
        return build_provider_error(
            error,
            service=self.name,
            label=self.label,
            vendor_codes=self.vendor_codes,
            status_messages=self.status_messages,
        )

    def get_available_models(self) -> List[Dict[str, Any]]:
        return [dict(model) for model in self.models]

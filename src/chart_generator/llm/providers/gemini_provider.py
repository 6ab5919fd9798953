"""Google Gemini REST provider."""

from __future__ import annotations

import logging
import os
import time
from typing import Any, Dict, List, Optional

import requests

from ..types import (
    KIND_AUTH,
    KIND_CONTENT_BLOCKED,
    KIND_UNKNOWN,
    GenerationRequest,
    GenerationResponse,
    ProviderError,
)
from .base import build_provider_error

logger = logging.getLogger(__name__)

API_ROOT = "https://generativelanguage.googleapis.com/v1beta"
MODIFICATION_ALIAS = "modification"
MODIFICATION_MODEL = "gemini-2.5-pro"

GEMINI_MODELS = [
    {
        "id": "gemini-2.5-flash",
        "name": "Gemini 2.5 Flash",
        "description": "Fast model for everyday chart generation",
        "context_length": 1048576,
        "cost_tier": "low",
    },
    {
        "id": "gemini-2.5-pro",
        "name": "Gemini 2.5 Pro",
        "description": "Stronger reasoning, used for chart modifications",
        "context_length": 1048576,
        "cost_tier": "high",
    },
    {
        "id": "gemini-2.0-flash",
        "name": "Gemini 2.0 Flash",
        "description": "Previous-generation fast model",
        "context_length": 1048576,
        "cost_tier": "low",
    },
]


def _first_candidate(data: Any) -> Dict[str, Any]:
    if not isinstance(data, dict):
        return {}
    candidates = data.get("candidates") or []
    return candidates[0] if candidates and isinstance(candidates[0], dict) else {}


class GeminiAdapter:
    name = "google"
    label = "Google Gemini"

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout_seconds: float = 120,
        default_model: Optional[str] = None,
    ) -> None:
        self._api_key = api_key or os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
        self.timeout_seconds = timeout_seconds
        self.default_model = default_model or "gemini-2.5-flash"

    def _headers(self) -> Dict[str, str]:
        # The key never goes in the URL: HTTPError messages quote it.
        return {"x-goog-api-key": self._api_key or ""}

    def resolve_model(self, model: Optional[str]) -> str:
        if model == MODIFICATION_ALIAS:
            return MODIFICATION_MODEL
        return model or self.default_model

    def generate_content(self, request: GenerationRequest) -> GenerationResponse:
        if not self._api_key:
            raise ProviderError("GEMINI_API_KEY/GOOGLE_API_KEY missing", kind=KIND_AUTH, service=self.name)

        model = self.resolve_model(request.model)
        url = f"{API_ROOT}/models/{model}:generateContent"
        prompt = request.user_prompt
        if request.system_prompt:
            prompt = f"{request.system_prompt}\n\nUser request: {request.user_prompt}"
        generation_config: Dict[str, Any] = {
            "temperature": request.temperature,
            "maxOutputTokens": request.max_tokens,
        }
        if request.top_p is not None:
            generation_config["topP"] = request.top_p
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": generation_config,
        }

        start = time.perf_counter()
        try:
            res = requests.post(url, json=payload, headers=self._headers(), timeout=self.timeout_seconds)
            res.raise_for_status()
            data = res.json()
        except Exception as exc:
            raise self.enhance_error(exc) from exc

        latency_ms = int((time.perf_counter() - start) * 1000)
        if not isinstance(data, dict):
            data = {}
        block_reason = (data.get("promptFeedback") or {}).get("blockReason")
        candidate = _first_candidate(data)
        if block_reason or candidate.get("finishReason") == "SAFETY":
            raise ProviderError(
                "Google Gemini blocked the request due to safety concerns",
                kind=KIND_CONTENT_BLOCKED,
                service=self.name,
            )

        parts = (candidate.get("content") or {}).get("parts") or []
        text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))

        usage = data.get("usageMetadata")
        tokens_used = None
        if usage:
            tokens_used = int(usage.get("promptTokenCount", 0) or 0) + int(
                usage.get("candidatesTokenCount", 0) or 0
            )

        return GenerationResponse(content=text, tokens_used=tokens_used, raw=data, latency_ms=latency_ms)

    def validate_api_key(self) -> bool:
        if not self._api_key:
            return False
        try:
            res = requests.get(f"{API_ROOT}/models", headers=self._headers(), timeout=self.timeout_seconds)
        except requests.RequestException as exc:
            logger.warning("Google API key validation failed: %s", exc)
            return False
        return res.ok

    def get_additional_metadata(self, response: GenerationResponse, model: str) -> Dict[str, Any]:
        candidate = _first_candidate(response.raw)
        return {
            "model_full_name": self.resolve_model(model),
            "safety_ratings": candidate.get("safetyRatings"),
            "finish_reason": candidate.get("finishReason"),
        }

    def enhance_error(self, error: BaseException) -> Exception:
        enhanced = build_provider_error(error, service=self.name, label=self.label)
        if enhanced is error or not isinstance(enhanced, ProviderError) or enhanced.kind != KIND_UNKNOWN:
            return enhanced
        # Gemini reports bad keys as 400 INVALID_ARGUMENT and safety blocks in the message body.
        detail = f"{error} {getattr(getattr(error, 'response', None), 'text', '') or ''}"
        if "API key" in detail:
            return ProviderError(
                "Invalid Google Gemini API key", kind=KIND_AUTH, service=self.name, status=enhanced.status
            )
        if "SAFETY" in detail:
            return ProviderError(
                "Google Gemini blocked the request due to safety concerns",
                kind=KIND_CONTENT_BLOCKED,
                service=self.name,
                status=enhanced.status,
            )
        return enhanced

    def get_available_models(self) -> List[Dict[str, Any]]:
        return [dict(model) for model in GEMINI_MODELS]

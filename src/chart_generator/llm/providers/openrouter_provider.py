"""OpenRouter provider."""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

import requests

from ..types import GenerationResponse, KIND_CONTENT_BLOCKED
from .openai_compat import OpenAICompatibleAdapter, first_choice

logger = logging.getLogger(__name__)

ACCOUNT_URL = "https://openrouter.ai/api/v1/auth/key"

OPENROUTER_MODELS = [
    {
        "id": "openai/gpt-4o-mini",
        "name": "GPT-4o Mini",
        "provider": "OpenAI",
        "description": "Fast and efficient model for most tasks",
        "context_length": 128000,
        "cost_tier": "low",
    },
    {
        "id": "openai/gpt-4o",
        "name": "GPT-4o",
        "provider": "OpenAI",
        "description": "Most capable multimodal model",
        "context_length": 128000,
        "cost_tier": "high",
    },
    {
        "id": "anthropic/claude-3.5-sonnet",
        "name": "Claude 3.5 Sonnet",
        "provider": "Anthropic",
        "description": "Excellent reasoning and analysis capabilities",
        "context_length": 200000,
        "cost_tier": "medium",
    },
    {
        "id": "anthropic/claude-3-haiku",
        "name": "Claude 3 Haiku",
        "provider": "Anthropic",
        "description": "Fast and cost-effective",
        "context_length": 200000,
        "cost_tier": "low",
    },
    {
        "id": "google/gemini-pro-1.5",
        "name": "Gemini Pro 1.5",
        "provider": "Google",
        "description": "Advanced reasoning with large context",
        "context_length": 1000000,
        "cost_tier": "medium",
    },
    {
        "id": "meta-llama/llama-3.1-70b-instruct",
        "name": "Llama 3.1 70B",
        "provider": "Meta",
        "description": "Open-source model with strong performance",
        "context_length": 131072,
        "cost_tier": "medium",
    },
    {
        "id": "mistralai/mistral-7b-instruct",
        "name": "Mistral 7B",
        "provider": "Mistral AI",
        "description": "Efficient open-source model",
        "context_length": 32768,
        "cost_tier": "low",
    },
    {
        "id": "deepseek/deepseek-chat-v3-0324:free",
        "name": "DeepSeek V3 (free)",
        "provider": "DeepSeek",
        "description": "Free-tier general chat model",
        "context_length": 163840,
        "cost_tier": "free",
    },
]


class OpenRouterAdapter(OpenAICompatibleAdapter):
    name = "openrouter"
    label = "OpenRouter"
    base_url = "https://openrouter.ai/api/v1"
    api_key_env = "OPENROUTER_API_KEY"
    default_model = "openai/gpt-4o-mini"
    probe_model = "openai/gpt-4o-mini"
    # 403 is returned when the model's moderation flags the input.
    vendor_codes = {403: KIND_CONTENT_BLOCKED}
    status_messages = {
        402: "OpenRouter insufficient credits",
        403: "OpenRouter moderation blocked the request",
    }
    models = OPENROUTER_MODELS

    def default_headers(self) -> Dict[str, str]:
        return {
            "HTTP-Referer": os.getenv("OPENROUTER_SITE_URL", "http://localhost:3001"),
            "X-Title": os.getenv("OPENROUTER_SITE_NAME", "Chart Generator"),
        }

    def get_additional_metadata(self, response: GenerationResponse, model: str) -> Dict[str, Any]:
        usage = getattr(response.raw, "usage", None)
        return {
            "provider": extract_vendor(model),
            "model_full_name": model,
            "finish_reason": getattr(first_choice(response.raw), "finish_reason", None),
            "prompt_tokens": getattr(usage, "prompt_tokens", None),
            "completion_tokens": getattr(usage, "completion_tokens", None),
        }

    def get_account_info(self) -> Optional[Dict[str, Any]]:
        """Returns key usage and credit limits, or ``None`` when unavailable."""
        if not self._api_key:
            return None
        try:
            res = requests.get(
                ACCOUNT_URL,
                headers={"Authorization": f"Bearer {self._api_key}"},
                timeout=self.timeout_seconds,
            )
            res.raise_for_status()
            return res.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Error fetching OpenRouter account info: %s", exc)
            return None


def extract_vendor(model: Optional[str]) -> str:
    if not model or "/" not in model:
        return "unknown"
    return model.split("/", 1)[0]

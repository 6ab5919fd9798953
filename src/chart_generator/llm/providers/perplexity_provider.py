"""Perplexity provider."""

from __future__ import annotations

from typing import Any, Dict, Optional

from ..types import GenerationResponse
from .openai_compat import OpenAICompatibleAdapter, first_choice

PERPLEXITY_MODELS = [
    {
        "id": "sonar-pro",
        "name": "Sonar Pro",
        "description": "Advanced search with grounding for complex queries",
        "context_length": 200000,
        "cost_tier": "premium",
    },
    {
        "id": "sonar",
        "name": "Sonar",
        "description": "Lightweight search-grounded model",
        "context_length": 128000,
        "cost_tier": "basic",
    },
    {
        "id": "sonar-reasoning",
        "name": "Sonar Reasoning",
        "description": "Multi-step reasoning with search grounding",
        "context_length": 128000,
        "cost_tier": "standard",
    },
    {
        "id": "sonar-reasoning-pro",
        "name": "Sonar Reasoning Pro",
        "description": "Deeper reasoning for complex analytical requests",
        "context_length": 128000,
        "cost_tier": "premium",
    },
]

_MODEL_FAMILIES = ("codellama", "sonar", "mistral", "llama")


def model_family(model: Optional[str]) -> str:
    for family in _MODEL_FAMILIES:
        if model and family in model:
            return family
    return "unknown"


class PerplexityAdapter(OpenAICompatibleAdapter):
    name = "perplexity"
    label = "Perplexity"
    base_url = "https://api.perplexity.ai"
    api_key_env = "PERPLEXITY_API_KEY"
    default_model = "sonar-pro"
    probe_model = "sonar"
    models = PERPLEXITY_MODELS

    def get_additional_metadata(self, response: GenerationResponse, model: str) -> Dict[str, Any]:
        return {
            "model_family": model_family(model),
            "finish_reason": getattr(first_choice(response.raw), "finish_reason", None),
            "citations": getattr(response.raw, "citations", None),
        }

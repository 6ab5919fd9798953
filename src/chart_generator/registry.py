"""Service id -> adapter wiring."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from .config import service_settings
from .context_loader import InstructionContext
from .llm.providers.gemini_provider import GeminiAdapter
from .llm.providers.openrouter_provider import OpenRouterAdapter
from .llm.providers.perplexity_provider import PerplexityAdapter
from .processor import ChartProcessor

ADAPTER_CLASSES: Dict[str, Any] = {
    OpenRouterAdapter.name: OpenRouterAdapter,
    PerplexityAdapter.name: PerplexityAdapter,
    GeminiAdapter.name: GeminiAdapter,
}


def build_adapter(service: str, config: Dict[str, Any]):
    adapter_cls = ADAPTER_CLASSES.get(service)
    if adapter_cls is None:
        known = ", ".join(sorted(ADAPTER_CLASSES))
        raise ValueError(f"Unknown service '{service}' (expected one of: {known})")
    cfg = service_settings(config, service)
    return adapter_cls(
        timeout_seconds=float(cfg.get("timeout_seconds", 120)),
        default_model=cfg.get("default_model"),
    )


def build_adapters(config: Dict[str, Any]) -> Dict[str, Any]:
    return {service: build_adapter(service, config) for service in ADAPTER_CLASSES}


def build_processor(
    service: str,
    config: Dict[str, Any],
    adapters: Optional[Mapping[str, Any]] = None,
    context: Optional[InstructionContext] = None,
) -> ChartProcessor:
    """Returns a processor for ``service``, reusing ``adapters[service]`` when given."""
    adapter = (adapters or {}).get(service) or build_adapter(service, config)
    return ChartProcessor(adapter, context=context, settings=config)

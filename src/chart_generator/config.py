"""Configuration loading and defaults."""

from __future__ import annotations

from copy import deepcopy
from pathlib import Path
from typing import Any, Dict

import yaml

DEFAULT_SETTINGS: Dict[str, Any] = {
    "default_service": "openrouter",
    "paths": {
        "generation_context": "./context/generation_rules.md",
        "modification_context": "./context/modification_rules.md",
    },
    "generation": {
        "max_tokens": 4000,
        "temperature": 0.2,
        "top_p": 0.85,
    },
    "modification": {
        "max_tokens": 5000,
        "temperature": 0.2,
        "strict_validation": False,
    },
    "history": {
        "max_messages": 5,
        "max_message_chars": 300,
    },
    "services": {
        "openrouter": {
            "default_model": "openai/gpt-4o-mini",
            "timeout_seconds": 120,
        },
        "perplexity": {
            "default_model": "sonar-pro",
            "timeout_seconds": 120,
        },
        "google": {
            "default_model": "gemini-2.5-flash",
            "timeout_seconds": 120,
        },
    },
}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_settings(settings_path: str = "config/settings.yaml") -> Dict[str, Any]:
    """Loads settings.yaml and merges it onto defaults."""
    merged = deepcopy(DEFAULT_SETTINGS)
    config_path = Path(settings_path)
    if config_path.exists():
        with config_path.open("r", encoding="utf-8") as f:
            user_cfg = yaml.safe_load(f) or {}
        merged = _deep_merge(merged, user_cfg)
    return merged


def service_settings(config: Dict[str, Any], service: str) -> Dict[str, Any]:
    return dict(config.get("services", {}).get(service, {}))


def parse_route(route: str) -> tuple[str, str]:
    """Parses 'service:model' route strings. The model part may itself contain ':'."""
    if ":" not in route:
        raise ValueError(f"Invalid route format: {route}")
    service, model = route.split(":", 1)
    return service.strip(), model.strip()

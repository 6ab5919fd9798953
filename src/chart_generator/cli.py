"""Command-line entrypoint: generate or modify charts from a terminal."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from .config import load_settings, parse_route
from .errors import ChartGenerationError, RefusalError, RepairExhaustedError
from .llm.types import KIND_AUTH, KIND_CONTENT_BLOCKED, KIND_RATE_LIMIT, KIND_SERVER_ERROR, ProviderError
from .registry import ADAPTER_CLASSES, build_processor
from .schemas import ChartState, TemplateStructure


def _read_json(path: Optional[str]) -> Any:
    if not path:
        return None
    with Path(path).open("r", encoding="utf-8") as f:
        return json.load(f)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Generate Chart.js charts from natural-language requests")
    parser.add_argument("--settings", default="config/settings.yaml", help="Path to settings.yaml")
    parser.add_argument(
        "--route",
        help="service:model to use, e.g. openrouter:openai/gpt-4o-mini (defaults to settings)",
    )
    parser.add_argument("--log-level", default="WARNING", help="Python logging level")

    subparsers = parser.add_subparsers(dest="command", required=True)

    gen = subparsers.add_parser("generate", help="Create a new chart")
    gen.add_argument("request", help="What to chart")
    gen.add_argument("--template", help="Path to a template structure JSON file")

    mod = subparsers.add_parser("modify", help="Change an existing chart")
    mod.add_argument("request", help="What to change")
    mod.add_argument("--state", required=True, help="Path to the current chart state JSON file")
    mod.add_argument("--history", help="Path to a JSON list of {role, content} messages")
    mod.add_argument("--template", help="Path to a template structure JSON file")

    subparsers.add_parser("validate-key", help="Check the configured API key for the service")
    subparsers.add_parser("models", help="List models known for the service")
    return parser


def _resolve_route(args: argparse.Namespace, config: Dict[str, Any]) -> tuple[str, Optional[str]]:
    if args.route:
        if ":" not in args.route:
            return args.route.strip(), None
        return parse_route(args.route)
    return str(config.get("default_service", "openrouter")), None


def hint_for_error(error: ChartGenerationError) -> str:
    if isinstance(error, ProviderError):
        if error.kind in (KIND_RATE_LIMIT, KIND_SERVER_ERROR):
            return "The AI service is busy or unavailable. Try again shortly."
        if error.kind == KIND_AUTH:
            return "API key missing or invalid. Check your environment configuration."
        if error.kind == KIND_CONTENT_BLOCKED:
            return "The request was blocked by the provider's content filter."
        return "The AI service returned an error."
    if isinstance(error, (RefusalError, RepairExhaustedError)):
        return "The AI could not produce a usable chart. Try rephrasing your request."
    return "The AI response was incomplete. Try again or rephrase your request."


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, str(args.log_level).upper(), logging.WARNING))

    config = load_settings(args.settings)
    service, model = _resolve_route(args, config)
    if service not in ADAPTER_CLASSES:
        parser.error(f"unknown service '{service}' (expected one of: {', '.join(sorted(ADAPTER_CLASSES))})")
    processor = build_processor(service, config)

    if args.command == "validate-key":
        ok = processor.validate_api_key()
        print(f"{service} API key: {'valid' if ok else 'invalid'}")
        return 0 if ok else 1

    if args.command == "models":
        for item in processor.get_available_models():
            print(f"- {item['id']}: {item['name']} ({item['cost_tier']}, {item['context_length']} ctx)")
        return 0

    template_payload = _read_json(getattr(args, "template", None))
    template = TemplateStructure.from_dict(template_payload) if template_payload else None
    try:
        if args.command == "generate":
            result = processor.generate(args.request, model=model, template=template)
        else:
            state = ChartState.from_dict(_read_json(args.state) or {})
            history = _read_json(args.history) or []
            result = processor.modify(args.request, state, history, model=model, template=template)
    except ChartGenerationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        print(hint_for_error(exc), file=sys.stderr)
        return 1

    print(json.dumps(result, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""Generation pipeline: prompt -> provider -> normalize -> repair -> validated chart."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from .config import DEFAULT_SETTINGS
from .context_loader import InstructionContext
from .errors import DIAGNOSIS_NOT_JSON_SHAPED, MissingFieldError, RepairExhaustedError
from .llm.providers.base import ProviderAdapter
from .llm.types import GenerationRequest, GenerationResponse
from .normalizer import normalize_response
from .prompts import build_modification_prompt, build_system_prompt, build_user_prompt
from .repair import STAGE_STRICT, repair_json
from .schemas import ChartState, TemplateStructure
from .utils import preview_text, utc_now_iso

logger = logging.getLogger(__name__)

ACTION_CREATE = "create"
ACTION_MODIFY = "modify"


class ChartProcessor:
    """Runs one adapter through the full generate/modify pipeline.

    Holds no per-call state; the only shared state is the instruction context
    cache, which is write-once.
    """

    def __init__(
        self,
        adapter: ProviderAdapter,
        context: Optional[InstructionContext] = None,
        settings: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.adapter = adapter
        self.settings = settings or DEFAULT_SETTINGS
        self.context = context or InstructionContext.from_settings(self.settings)

    @property
    def service(self) -> str:
        return self.adapter.name

    def generate(
        self,
        input_text: str,
        model: Optional[str] = None,
        template: Optional[TemplateStructure] = None,
    ) -> Dict[str, Any]:
        model = model or self.adapter.default_model
        cfg = self.settings.get("generation", {})
        request = GenerationRequest(
            system_prompt=build_system_prompt(self.context.generation_rules(), template),
            user_prompt=build_user_prompt(input_text, template),
            model=model,
            max_tokens=int(cfg.get("max_tokens", 4000)),
            temperature=float(cfg.get("temperature", 0.2)),
            top_p=cfg.get("top_p"),
        )
        return self._run(request, self._finish_generation, ACTION_CREATE)

    def modify(
        self,
        input_text: str,
        chart_state: ChartState,
        history: Optional[Iterable[Mapping[str, Any]]] = None,
        model: Optional[str] = None,
        template: Optional[TemplateStructure] = None,
    ) -> Dict[str, Any]:
        model = model or self.adapter.default_model
        cfg = self.settings.get("modification", {})
        history_cfg = self.settings.get("history", {})
        prompt = build_modification_prompt(
            self.context.modification_rules(),
            chart_state,
            history,
            input_text,
            template,
            max_messages=int(history_cfg.get("max_messages", 5)),
            max_message_chars=int(history_cfg.get("max_message_chars", 300)),
        )
        request = GenerationRequest(
            user_prompt=prompt,
            model=model,
            max_tokens=int(cfg.get("max_tokens", 5000)),
            temperature=float(cfg.get("temperature", 0.2)),
            top_p=cfg.get("top_p"),
        )
        strict = bool(cfg.get("strict_validation", False))
        return self._run(
            request,
            lambda result: self._finish_modification(result, chart_state, strict),
            ACTION_MODIFY,
        )

    def validate_api_key(self) -> bool:
        try:
            return bool(self.adapter.validate_api_key())
        except Exception as exc:
            logger.error("Error validating %s API key: %s", self.service, exc)
            return False

    def get_available_models(self) -> List[Dict[str, Any]]:
        return self.adapter.get_available_models()

    def _run(
        self,
        request: GenerationRequest,
        finish: Callable[[Dict[str, Any]], None],
        action: str,
    ) -> Dict[str, Any]:
        try:
            response = self.adapter.generate_content(request)
            result = self._parse(response.content)
            finish(result)
        except Exception as exc:
            logger.error("Error during chart %s with %s: %s", action, self.service, exc)
            enhanced = self.adapter.enhance_error(exc)
            if enhanced is exc:
                raise
            raise enhanced from exc

        result["_metadata"] = self.build_metadata(response, request.model)
        return result

    def _parse(self, content: Optional[str]) -> Dict[str, Any]:
        candidate = normalize_response(content)
        repaired = repair_json(candidate)
        if repaired.stage != STAGE_STRICT:
            logger.info("%s response recovered by %s repair", self.service, repaired.stage)
        if not isinstance(repaired.value, dict):
            raise RepairExhaustedError(
                text_length=len(candidate),
                preview=preview_text(candidate),
                diagnosis=DIAGNOSIS_NOT_JSON_SHAPED,
            )
        return repaired.value

    def _finish_generation(self, result: Dict[str, Any]) -> None:
        _normalize_aliases(result)
        _require_fields(result)
        if result.get("chartConfig") is None:
            result["chartConfig"] = {}
        if not result.get("user_message"):
            result["user_message"] = f"Chart generated successfully using {self.service}"
        result.setdefault("action", ACTION_CREATE)
        result.setdefault("changes", [])

    def _finish_modification(self, result: Dict[str, Any], chart_state: ChartState, strict: bool) -> None:
        """Applies partial-patch semantics unless strict validation is configured.

        In the default mode any of chartType/chartData/chartConfig the model
        left out is carried over from the current chart.
        """
        _normalize_aliases(result)
        if strict:
            _require_fields(result)
        if not result.get("chartType"):
            result["chartType"] = chart_state.chart_type
        if result.get("chartData") is None:
            result["chartData"] = chart_state.chart_data
        if result.get("chartConfig") is None:
            result["chartConfig"] = chart_state.chart_config if chart_state.chart_config is not None else {}
        if not result.get("user_message"):
            result["user_message"] = f"Chart updated using {self.service}"
        result.setdefault("action", ACTION_MODIFY)
        result.setdefault("changes", [])

    def build_metadata(self, response: GenerationResponse, model: str) -> Dict[str, Any]:
        metadata: Dict[str, Any] = {
            "service": self.service,
            "model": model,
            "timestamp": utc_now_iso(),
            "tokens_used": response.tokens_used,
            "latency_ms": response.latency_ms,
        }
        metadata.update(self.adapter.get_additional_metadata(response, model))
        return metadata


def _normalize_aliases(result: Dict[str, Any]) -> None:
    """Moves Chart.js-style ``data``/``options`` keys onto ``chartData``/``chartConfig``."""
    if result.get("chartData") is None and "data" in result:
        result["chartData"] = result.pop("data")
    if result.get("chartConfig") is None and "options" in result:
        result["chartConfig"] = result.pop("options")


def _require_fields(result: Dict[str, Any]) -> None:
    if not result.get("chartType"):
        raise MissingFieldError("chartType")
    if result.get("chartData") is None:
        raise MissingFieldError("chartData")

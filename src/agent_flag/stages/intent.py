"""Stage 1: intent analysis."""

from __future__ import annotations

from typing import Any

from agent_flag.llm.generator import Generator
from agent_flag.obs.logging import get_logger
from agent_flag.stages.base import generate_text, parse_json_object
from agent_flag.types import ErrorInfo, Failure, IntentInput, IntentResult, Outcome, PromptConfig, Success

logger = get_logger("agent_flag.stages.intent")

CLASSIFICATION_PROMPT = """
You are a customer support assistant. Analyze the customer inquiry and classify it into one of these categories: CRITICAL, FEATURE, INTEGRATION, QUICK.
Also determine the urgency level (high, medium, low) and provide a confidence score (0.0 to 1.0).

Respond in JSON format: { "category": "CATEGORY", "urgency": "URGENCY", "confidence": 0.95 }
""".strip()

LOW_TEMPERATURE_THRESHOLD = 0.6

DEFAULT_CATEGORY = "FEATURE"
DEFAULT_URGENCY = "medium"
PARSED_DEFAULT_CONFIDENCE = 0.85
UNPARSED_CONFIDENCE = 0.75


class IntentAnalysisProcessor:
    """Classifies an inquiry into category, urgency and confidence."""

    stage_name = "Intent Analysis"

    def __init__(self, generator: Generator | None = None, *, default_model: str = "gpt-4") -> None:
        self.generator = generator
        self.default_model = default_model

    async def execute(self, stage_input: IntentInput, config: PromptConfig) -> Outcome[IntentResult]:
        logger.info(
            "[Stage 1] %s | inquiry=%s | model=%s | temperature=%.2f | message_length=%d",
            self.stage_name,
            stage_input.inquiry_id,
            config.model,
            config.temperature,
            len(stage_input.message),
        )
        try:
            try:
                text = await generate_text(
                    self.generator,
                    config,
                    system_prompt=config.system_prompt or CLASSIFICATION_PROMPT,
                    user_content=stage_input.message,
                    default_model=self.default_model,
                )
            except Exception as exc:
                result = fallback_intent(config)
                logger.warning(
                    "[Stage 1] Generation failed for %s, using fallback %s: %s",
                    stage_input.inquiry_id,
                    result,
                    exc,
                )
                return Success(result)

            result = parse_intent(text)
            logger.debug("[Stage 1] Intent for %s: %s", stage_input.inquiry_id, result)
            return Success(result)
        except Exception as exc:
            logger.exception("[Stage 1] Intent analysis failed for %s", stage_input.inquiry_id)
            return Failure(ErrorInfo.from_exception(exc, stage=self.stage_name))


def fallback_intent(config: PromptConfig) -> IntentResult:
    """Deterministic classification used when generation is unavailable."""
    if config.temperature < LOW_TEMPERATURE_THRESHOLD:
        return IntentResult(category="CRITICAL", urgency="high", confidence=0.95)
    return IntentResult(category=DEFAULT_CATEGORY, urgency=DEFAULT_URGENCY, confidence=PARSED_DEFAULT_CONFIDENCE)


def parse_intent(text: str) -> IntentResult:
    record = parse_json_object(text)
    if record is None:
        return IntentResult(category=DEFAULT_CATEGORY, urgency=DEFAULT_URGENCY, confidence=UNPARSED_CONFIDENCE)
    return IntentResult(
        category=_text_field(record, "category", DEFAULT_CATEGORY),
        urgency=_text_field(record, "urgency", DEFAULT_URGENCY),
        confidence=_confidence(record.get("confidence")),
    )


def _text_field(record: dict[str, Any], key: str, default: str) -> str:
    value = record.get(key)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def _confidence(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return PARSED_DEFAULT_CONFIDENCE
    return min(1.0, max(0.0, float(value)))

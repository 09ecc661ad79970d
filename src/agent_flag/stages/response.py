"""Stage 3: customer-facing response generation."""

from __future__ import annotations

import json

from agent_flag.llm.generator import Generator
from agent_flag.obs.logging import get_logger
from agent_flag.stages.base import find_json_object, generate_text
from agent_flag.types import (
    ErrorInfo,
    Failure,
    IntentResult,
    Outcome,
    PromptConfig,
    ResponseInput,
    ResponseResult,
    RetrievalResult,
    Success,
)

logger = get_logger("agent_flag.stages.response")

STRUCTURED_STRATEGY = "structured"


def build_response_prompt(intent: IntentResult, retrieval: RetrievalResult, *, structured: bool) -> str:
    if structured:
        return (
            "You are a customer support response generator. Generate a structured JSON response "
            "for the customer.\n\n"
            f"Intent: {intent.category} ({intent.urgency} urgency, {intent.confidence} confidence)\n"
            f"Available Documents: {', '.join(retrieval.documents)}\n"
            f"Sources: {', '.join(retrieval.sources)}\n\n"
            'Respond in JSON format: { "greeting": "...", "assessment": "...", "action": "...", '
            '"resources": [...], "ticketId": "TKT-12345" }'
        )
    return (
        "You are a customer support response generator. Generate a helpful text response for "
        "the customer.\n\n"
        f"Intent: {intent.category} ({intent.urgency} urgency)\n"
        f"Available Documents: {len(retrieval.documents)} relevant documents found\n"
        f"Sources: {', '.join(retrieval.sources)}\n\n"
        "Generate a concise, professional response explaining how we can help."
    )


class ResponseGenerationProcessor:
    """Writes the final reply as plain text or a structured JSON payload."""

    stage_name = "Response Generation"

    def __init__(self, generator: Generator | None = None, *, default_model: str = "gpt-4") -> None:
        self.generator = generator
        self.default_model = default_model

    async def execute(self, stage_input: ResponseInput, config: PromptConfig) -> Outcome[ResponseResult]:
        structured = config.strategy == STRUCTURED_STRATEGY
        logger.info(
            "[Stage 3] %s | inquiry=%s | model=%s | format=%s | documents=%d",
            self.stage_name,
            stage_input.inquiry_id,
            config.model,
            "structured" if structured else "text",
            len(stage_input.retrieval.documents),
        )
        try:
            try:
                text = await generate_text(
                    self.generator,
                    config,
                    system_prompt=build_response_prompt(
                        stage_input.intent, stage_input.retrieval, structured=structured
                    ),
                    user_content=(
                        f"Generate a {'structured JSON' if structured else 'text'} response "
                        "for this support inquiry."
                    ),
                    default_model=self.default_model,
                )
            except Exception as exc:
                logger.warning("[Stage 3] Generation failed for %s, using fallback: %s", stage_input.inquiry_id, exc)
                text = ""

            result = _structured_result(text, stage_input) if structured else _text_result(text, stage_input)
            logger.debug("[Stage 3] Generated %s response for %s", result.format, stage_input.inquiry_id)
            return Success(result)
        except Exception as exc:
            logger.exception("[Stage 3] Response generation failed for %s", stage_input.inquiry_id)
            return Failure(ErrorInfo.from_exception(exc, stage=self.stage_name))


def structured_fallback(stage_input: ResponseInput) -> str:
    return json.dumps(
        {
            "greeting": "Thank you for contacting support",
            "assessment": f"We've identified this as a {stage_input.intent.category} inquiry",
            "action": "Our team will assist you shortly",
            "resources": list(stage_input.retrieval.documents),
            "ticketId": f"TKT-{stage_input.inquiry_id}",
        },
        indent=2,
    )


def apology_message(intent: IntentResult) -> str:
    return (
        f"Thank you for your inquiry. We've identified this as a {intent.category} issue, "
        "and our support team will review your request and respond shortly."
    )


def _structured_result(text: str, stage_input: ResponseInput) -> ResponseResult:
    payload = find_json_object(text)
    return ResponseResult(message=payload or structured_fallback(stage_input), format="structured")


def _text_result(text: str, stage_input: ResponseInput) -> ResponseResult:
    message = text.strip()
    return ResponseResult(message=message or apology_message(stage_input.intent), format="text")

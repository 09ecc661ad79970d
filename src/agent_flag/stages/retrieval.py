"""Stage 2: knowledge-base retrieval."""

from __future__ import annotations

from typing import Any

from agent_flag.llm.generator import Generator
from agent_flag.obs.logging import get_logger
from agent_flag.stages.base import generate_text, parse_json_object
from agent_flag.types import ErrorInfo, Failure, IntentResult, Outcome, PromptConfig, RetrievalInput, RetrievalResult, Success

logger = get_logger("agent_flag.stages.retrieval")

RAG_STRATEGY = "rag"

RAG_FALLBACK = RetrievalResult(
    documents=[
        "KB-001: Critical Issue Resolution Guide",
        "KB-045: Production Incident Procedures",
        "KB-089: Emergency Contact List",
    ],
    sources=["knowledge-base", "vector-db", "recent-tickets"],
)
STANDARD_FALLBACK = RetrievalResult(
    documents=[
        "KB-012: Feature Request Guidelines",
        "KB-034: Standard Support Process",
    ],
    sources=["knowledge-base"],
)
PARSED_DEFAULT_DOCUMENTS = ["KB-001", "KB-045"]
PARSED_DEFAULT_SOURCES = ["knowledge-base"]


def build_retrieval_prompt(intent: IntentResult) -> str:
    return (
        "You are a knowledge base retrieval assistant. Based on the customer inquiry category "
        "and urgency, identify relevant knowledge base articles.\n\n"
        f"Category: {intent.category}\n"
        f"Urgency: {intent.urgency}\n"
        f"Confidence: {intent.confidence}\n\n"
        "Respond with a JSON object of relevant document IDs and sources.\n"
        'Format: { "documents": ["KB-001", "KB-045"], "sources": ["knowledge-base", "vector-db"] }'
    )


class InfoRetrievalProcessor:
    """Selects knowledge-base documents for a classified inquiry."""

    stage_name = "Information Retrieval"

    def __init__(self, generator: Generator | None = None, *, default_model: str = "gpt-4") -> None:
        self.generator = generator
        self.default_model = default_model

    async def execute(self, stage_input: RetrievalInput, config: PromptConfig) -> Outcome[RetrievalResult]:
        intent = stage_input.intent
        logger.info(
            "[Stage 2] %s | inquiry=%s | model=%s | strategy=%s | category=%s",
            self.stage_name,
            stage_input.inquiry_id,
            config.model,
            config.strategy,
            intent.category,
        )
        try:
            try:
                text = await generate_text(
                    self.generator,
                    config,
                    system_prompt=build_retrieval_prompt(intent),
                    user_content=f"Find relevant documents for a {intent.category} inquiry with {intent.urgency} urgency.",
                    default_model=self.default_model,
                )
            except Exception as exc:
                result = fallback_retrieval(config)
                logger.warning(
                    "[Stage 2] Generation failed for %s, using %s fallback: %s",
                    stage_input.inquiry_id,
                    config.strategy or "standard",
                    exc,
                )
                return Success(result)

            result = parse_retrieval(text, config)
            logger.debug("[Stage 2] Retrieved %d documents for %s", len(result.documents), stage_input.inquiry_id)
            return Success(result)
        except Exception as exc:
            logger.exception("[Stage 2] Information retrieval failed for %s", stage_input.inquiry_id)
            return Failure(ErrorInfo.from_exception(exc, stage=self.stage_name))


def fallback_retrieval(config: PromptConfig) -> RetrievalResult:
    template = RAG_FALLBACK if config.strategy == RAG_STRATEGY else STANDARD_FALLBACK
    return RetrievalResult(documents=list(template.documents), sources=list(template.sources))


def parse_retrieval(text: str, config: PromptConfig) -> RetrievalResult:
    record = parse_json_object(text)
    if record is None:
        return fallback_retrieval(config)
    return RetrievalResult(
        documents=_string_list(record.get("documents"), PARSED_DEFAULT_DOCUMENTS),
        sources=_string_list(record.get("sources"), PARSED_DEFAULT_SOURCES),
    )


def _string_list(value: Any, default: list[str]) -> list[str]:
    if not isinstance(value, list) or not value:
        return list(default)
    return [str(item) for item in value]

"""Sequential three-stage workflow driven by feature flags."""

from __future__ import annotations

from agent_flag.config import FlagKeys
from agent_flag.flags.context import build_base_context, build_combo_context
from agent_flag.flags.service import FeatureFlagService
from agent_flag.llm.generator import Generator
from agent_flag.obs.logging import get_logger
from agent_flag.obs.tracing import Timer
from agent_flag.stages.base import StageProcessor
from agent_flag.stages.intent import IntentAnalysisProcessor
from agent_flag.stages.response import ResponseGenerationProcessor
from agent_flag.stages.retrieval import InfoRetrievalProcessor
from agent_flag.types import (
    ErrorInfo,
    Failure,
    Inquiry,
    IntentInput,
    IntentResult,
    Outcome,
    PromptConfig,
    ResponseInput,
    ResponseResult,
    RetrievalInput,
    RetrievalResult,
    Success,
    WorkflowResult,
)

logger = get_logger("agent_flag.workflow.executor")


class WorkflowExecutor:
    """Runs intent -> retrieval -> response for one inquiry at a time.

    The combo flag is evaluated once per inquiry and the resulting context is
    reused for all three stage-config lookups. A failed stage aborts the run;
    no partial result is returned. Exceptions never escape `execute`.
    """

    def __init__(
        self,
        flag_service: FeatureFlagService,
        *,
        intent_processor: StageProcessor[IntentInput, IntentResult],
        retrieval_processor: StageProcessor[RetrievalInput, RetrievalResult],
        response_processor: StageProcessor[ResponseInput, ResponseResult],
        flag_keys: FlagKeys | None = None,
    ) -> None:
        self.flag_service = flag_service
        self.flag_keys = flag_keys or flag_service.flag_keys
        self.intent_processor = intent_processor
        self.retrieval_processor = retrieval_processor
        self.response_processor = response_processor

    @classmethod
    def with_default_stages(
        cls,
        flag_service: FeatureFlagService,
        generator: Generator | None,
        *,
        default_model: str = "gpt-4",
    ) -> WorkflowExecutor:
        return cls(
            flag_service,
            intent_processor=IntentAnalysisProcessor(generator, default_model=default_model),
            retrieval_processor=InfoRetrievalProcessor(generator, default_model=default_model),
            response_processor=ResponseGenerationProcessor(generator, default_model=default_model),
        )

    async def execute(self, inquiry: Inquiry) -> Outcome[WorkflowResult]:
        with Timer() as timer:
            outcome = await self._run(inquiry, timer)

        if isinstance(outcome, Failure):
            logger.error(
                "[WORKFLOW] Failed | inquiry=%s | stage=%s | %s: %s | %.1fms",
                inquiry.id,
                outcome.error.stage or "-",
                outcome.error.error_type,
                outcome.error.message,
                timer.elapsed_ms,
            )
            return outcome

        logger.info(
            "[WORKFLOW] Completed | inquiry=%s | combo=%s | category=%s | %.1fms",
            inquiry.id,
            outcome.value.combo,
            outcome.value.intent.category,
            outcome.value.execution_time_ms,
        )
        return outcome

    async def _run(self, inquiry: Inquiry, timer: Timer) -> Outcome[WorkflowResult]:
        try:
            logger.info(
                "[WORKFLOW] Processing inquiry %s | user=%s | type=%s",
                inquiry.id,
                inquiry.user_id,
                inquiry.type,
            )
            base_context = build_base_context(inquiry)
            combo = await self.flag_service.resolve_combo(base_context)
            combo_context = build_combo_context(base_context, combo)
            logger.info(
                "[WORKFLOW] Assigned combo %s to inquiry %s | optimized=%s",
                combo,
                inquiry.id,
                self.flag_service.is_optimized(combo),
            )

            intent_config = await self.flag_service.resolve_stage_config(self.flag_keys.intent_analysis, combo_context)
            intent = await self.intent_processor.execute(
                IntentInput(inquiry_id=inquiry.id, message=inquiry.message), intent_config
            )
            if isinstance(intent, Failure):
                return intent

            retrieval_config = await self.flag_service.resolve_stage_config(
                self.flag_keys.info_retrieval, combo_context
            )
            retrieval = await self.retrieval_processor.execute(
                RetrievalInput(inquiry_id=inquiry.id, intent=intent.value), retrieval_config
            )
            if isinstance(retrieval, Failure):
                return retrieval

            response_config = await self.flag_service.resolve_stage_config(
                self.flag_keys.response_generation, combo_context
            )
            _log_strategy(combo, intent_config, retrieval_config, response_config)
            response = await self.response_processor.execute(
                ResponseInput(inquiry_id=inquiry.id, intent=intent.value, retrieval=retrieval.value),
                response_config,
            )
            if isinstance(response, Failure):
                return response

            return Success(
                WorkflowResult(
                    inquiry_id=inquiry.id,
                    combo=combo,
                    intent=intent.value,
                    retrieval=retrieval.value,
                    response=response.value,
                    execution_time_ms=timer.lap_ms(),
                )
            )
        except Exception as exc:
            logger.exception("[WORKFLOW] Unhandled error for inquiry %s", inquiry.id)
            return Failure(ErrorInfo.from_exception(exc))


def _log_strategy(combo: str, intent: PromptConfig, retrieval: PromptConfig, response: PromptConfig) -> None:
    logger.info(
        "[WORKFLOW] Strategy %s | analyze-intent=%s (%s) | retrieve-information=%s (%s) | generate-response=%s (%s)",
        combo,
        intent.version or "default",
        (intent.system_prompt or intent.system_prompt_url or "")[:30],
        retrieval.version or "default",
        retrieval.strategy,
        response.version or "default",
        response.strategy,
    )

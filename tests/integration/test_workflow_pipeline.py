import asyncio
import json
import logging

from agent_flag.cli import SAMPLE_INQUIRIES
from agent_flag.flags.service import FeatureFlagService
from agent_flag.types import (
    ErrorInfo,
    Failure,
    Inquiry,
    IntentResult,
    ResponseResult,
    RetrievalResult,
    Success,
)
from agent_flag.workflow.executor import WorkflowExecutor

CRITICAL_INQUIRY = Inquiry(
    id="INQ-001",
    user_id="user-123",
    type="critical",
    message="Our production API is down and returning 500 errors for all requests!",
)

OPTIMIZED_CONFIGS = {
    "intent-analysis": {"model": "gpt-4o", "temperature": 0.2, "systemPrompt": "Triage support tickets", "version": "v2"},
    "info-retrieval": {"model": "gpt-4o", "temperature": 0.1, "strategy": "rag", "version": "v2"},
    "response-generation": {"model": "gpt-4o", "temperature": 0.5, "strategy": "structured", "version": "v2"},
}


class _RecordingStage:
    def __init__(self, stage_name: str, outcome) -> None:
        self.stage_name = stage_name
        self.outcome = outcome
        self.inputs = []

    async def execute(self, stage_input, config):
        self.inputs.append((stage_input, config))
        return self.outcome


def _run(executor: WorkflowExecutor, inquiry: Inquiry = CRITICAL_INQUIRY):
    async def scenario():
        await executor.flag_service.initialize()
        return await executor.execute(inquiry)

    return asyncio.run(scenario())


def test_critical_inquiry_with_flag_defaults(make_flag_client) -> None:
    client = make_flag_client(combo="combo_a")
    executor = WorkflowExecutor.with_default_stages(FeatureFlagService(client), None)

    outcome = _run(executor)

    assert isinstance(outcome, Success)
    result = outcome.value
    assert result.inquiry_id == "INQ-001"
    assert result.combo == "combo_a"
    # The default intent config runs at temperature 0.7.
    assert result.intent == IntentResult(category="FEATURE", urgency="medium", confidence=0.85)
    assert len(result.retrieval.documents) == 2
    assert result.response.format == "text"
    assert "FEATURE" in result.response.message
    assert result.execution_time_ms >= 0


def test_every_stage_lookup_carries_the_assigned_combo(make_flag_client) -> None:
    client = make_flag_client(combo="combo_b", configs=OPTIMIZED_CONFIGS)
    executor = WorkflowExecutor.with_default_stages(FeatureFlagService(client), None)

    outcome = _run(executor)

    assert isinstance(outcome, Success)
    string_calls = [call for call in client.calls if call[0] == "string"]
    json_calls = [call for call in client.calls if call[0] == "json"]
    assert len(string_calls) == 1
    assert string_calls[0][1] == "customer-support-workflow"
    assert "combo" not in string_calls[0][2].attributes
    assert [key for _, key, _ in json_calls] == ["intent-analysis", "info-retrieval", "response-generation"]
    for _, _, context in json_calls:
        assert context.user_id == "user-123"
        assert context.attributes == {"inquiryType": "critical", "combo": "combo_b"}


def test_optimized_combo_configs_shape_every_stage(make_flag_client) -> None:
    client = make_flag_client(combo="combo_b", configs=OPTIMIZED_CONFIGS)
    executor = WorkflowExecutor.with_default_stages(FeatureFlagService(client), None)

    result = _run(executor).value

    assert result.combo == "combo_b"
    assert result.intent == IntentResult(category="CRITICAL", urgency="high", confidence=0.95)
    assert len(result.retrieval.documents) == 3
    assert result.response.format == "structured"
    payload = json.loads(result.response.message)
    assert payload["resources"] == result.retrieval.documents
    assert payload["ticketId"] == "TKT-INQ-001"


def test_generated_text_flows_through_all_stages(make_flag_client, make_generator) -> None:
    generator = make_generator(
        '{"category": "INTEGRATION", "urgency": "medium", "confidence": 0.9}',
        '{"documents": ["KB-210: CORS Setup"], "sources": ["knowledge-base"]}',
        "Add your origin to the allowed list in the dashboard.",
    )
    client = make_flag_client(combo="combo_a")
    executor = WorkflowExecutor.with_default_stages(FeatureFlagService(client), generator)
    inquiry = Inquiry(
        id="INQ-003",
        user_id="user-789",
        type="integration",
        message="Getting CORS errors when integrating your API with our React app",
    )

    result = _run(executor, inquiry).value

    assert result.intent.category == "INTEGRATION"
    assert result.retrieval.documents == ["KB-210: CORS Setup"]
    assert result.response.message == "Add your origin to the allowed list in the dashboard."
    assert [request.temperature for request in generator.requests] == [0.7, 0.3, 0.8]
    assert "Category: INTEGRATION" in generator.requests[1].messages[0].content


def test_failed_stage_stops_the_pipeline(make_flag_client) -> None:
    intent = _RecordingStage(
        "Intent Analysis",
        Failure(ErrorInfo(message="classifier crashed", error_type="RuntimeError", stage="Intent Analysis")),
    )
    retrieval = _RecordingStage(
        "Information Retrieval", Success(RetrievalResult(documents=["KB-001"], sources=["knowledge-base"]))
    )
    response = _RecordingStage("Response Generation", Success(ResponseResult(message="hi", format="text")))
    client = make_flag_client()
    executor = WorkflowExecutor(
        FeatureFlagService(client),
        intent_processor=intent,
        retrieval_processor=retrieval,
        response_processor=response,
    )

    outcome = _run(executor)

    assert isinstance(outcome, Failure)
    assert outcome.error.stage == "Intent Analysis"
    assert outcome.error.message == "classifier crashed"
    assert len(intent.inputs) == 1
    assert retrieval.inputs == []
    assert response.inputs == []
    assert [key for _, key, _ in client.calls] == ["customer-support-workflow", "intent-analysis"]


def test_stage_exception_becomes_failure(make_flag_client) -> None:
    class _Exploding:
        stage_name = "Information Retrieval"

        async def execute(self, stage_input, config):
            raise RuntimeError("index offline")

    intent = _RecordingStage("Intent Analysis", Success(IntentResult("QUICK", "low", 0.9)))
    response = _RecordingStage("Response Generation", Success(ResponseResult(message="hi", format="text")))
    executor = WorkflowExecutor(
        FeatureFlagService(make_flag_client()),
        intent_processor=intent,
        retrieval_processor=_Exploding(),
        response_processor=response,
    )

    outcome = _run(executor)

    assert isinstance(outcome, Failure)
    assert outcome.error.error_type == "RuntimeError"
    assert response.inputs == []


def test_uninitialized_flag_service_yields_failure(make_flag_client) -> None:
    executor = WorkflowExecutor.with_default_stages(FeatureFlagService(make_flag_client()), None)

    outcome = asyncio.run(executor.execute(CRITICAL_INQUIRY))

    assert isinstance(outcome, Failure)
    assert outcome.error.error_type == "FlagClientNotInitializedError"


def test_flag_errors_fall_back_to_baseline_and_defaults(make_flag_client) -> None:
    client = make_flag_client(combo="combo_b", configs=OPTIMIZED_CONFIGS, fail_evaluation=True)
    executor = WorkflowExecutor.with_default_stages(FeatureFlagService(client), None)

    result = _run(executor).value

    assert result.combo == "combo_a"
    assert result.response.format == "text"
    assert len(result.retrieval.documents) == 2


class _ListHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__(level=logging.DEBUG)
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


def test_unhandled_error_is_logged_with_traceback(make_flag_client) -> None:
    class _Exploding:
        stage_name = "Intent Analysis"

        async def execute(self, stage_input, config):
            raise RuntimeError("classifier offline")

    unused = _RecordingStage("unused", Success(ResponseResult(message="hi", format="text")))
    executor = WorkflowExecutor(
        FeatureFlagService(make_flag_client()),
        intent_processor=_Exploding(),
        retrieval_processor=unused,
        response_processor=unused,
    )
    handler = _ListHandler()
    executor_logger = logging.getLogger("agent_flag.workflow.executor")
    executor_logger.addHandler(handler)
    try:
        outcome = _run(executor)
    finally:
        executor_logger.removeHandler(handler)

    assert isinstance(outcome, Failure)
    logged = [record for record in handler.records if record.exc_info is not None]
    assert len(logged) == 1
    assert logged[0].levelno == logging.ERROR
    assert logged[0].exc_info[0] is RuntimeError


def test_concurrent_inquiries_keep_their_own_combo(make_flag_client) -> None:
    combos = {"user-123": "combo_b", "user-456": "combo_a", "user-789": "combo_b"}
    client = make_flag_client(combo=lambda context: combos[context.user_id])
    service = FeatureFlagService(client)
    executor = WorkflowExecutor.with_default_stages(service, None)

    async def scenario():
        await service.initialize()
        return await asyncio.gather(*(executor.execute(inquiry) for inquiry in SAMPLE_INQUIRIES))

    outcomes = asyncio.run(scenario())

    for inquiry, outcome in zip(SAMPLE_INQUIRIES, outcomes):
        assert isinstance(outcome, Success)
        assert outcome.value.inquiry_id == inquiry.id
        assert outcome.value.combo == combos[inquiry.user_id]

    json_calls = [call for call in client.calls if call[0] == "json"]
    assert len(json_calls) == 9
    for _, _, context in json_calls:
        assert context.attributes["combo"] == combos[context.user_id]
    assert client.init_calls == 1

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from agent_flag.config import get_settings
from agent_flag.llm.generator import GenerationRequest, GenerationResponse
from agent_flag.types import EvaluationContext


class FakeFlagClient:
    """In-memory stand-in for the FeatBit client.

    `combo` is returned for the workflow flag; a callable receives the
    evaluation context.
    """

    def __init__(
        self,
        *,
        combo: Any = "combo_a",
        configs: dict[str, Any] | None = None,
        fail_init: bool = False,
        fail_evaluation: bool = False,
    ) -> None:
        self.combo = combo
        self.configs = configs or {}
        self.fail_init = fail_init
        self.fail_evaluation = fail_evaluation
        self.calls: list[tuple[str, str, EvaluationContext]] = []
        self.init_calls = 0
        self.close_calls = 0

    async def wait_for_initialization(self) -> None:
        self.init_calls += 1
        if self.fail_init:
            raise ConnectionError("flag service unreachable")

    async def string_variation(self, flag_key: str, context: EvaluationContext, default: str) -> Any:
        self.calls.append(("string", flag_key, context))
        if self.fail_evaluation:
            raise ConnectionError("evaluation failed")
        await asyncio.sleep(0)
        if self.combo is None:
            return default
        return self.combo(context) if callable(self.combo) else self.combo

    async def json_variation(self, flag_key: str, context: EvaluationContext, default: Any) -> Any:
        self.calls.append(("json", flag_key, context))
        if self.fail_evaluation:
            raise ConnectionError("evaluation failed")
        await asyncio.sleep(0)
        return self.configs.get(flag_key, default)

    async def close(self) -> None:
        self.close_calls += 1


class FakeGenerator:
    """Returns canned replies in order, or raises `error` on every call."""

    def __init__(self, *replies: str, error: Exception | None = None) -> None:
        self.replies = list(replies)
        self.error = error
        self.requests: list[GenerationRequest] = []

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        text = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        return GenerationResponse(text=text, usage={"input_tokens": 10, "output_tokens": 5})


@pytest.fixture
def make_flag_client():
    return FakeFlagClient


@pytest.fixture
def make_generator():
    return FakeGenerator


_ENV_VARS = (
    "FEATBIT_SDK_KEY",
    "FEATBIT_STREAMING_URI",
    "FEATBIT_EVENTS_URI",
    "AZURE_RESOURCE_NAME",
    "AZURE_API_KEY",
    "AZURE_MODEL_NAME",
    "OPENAI_API_KEY",
    "OPENAI_MODEL",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path):
    """Keep host credentials and a local .env out of the tests."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()

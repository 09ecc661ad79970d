"""Chat-generation capability backed by LangChain chat models."""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from agent_flag.config import GenerationConfig
from agent_flag.exceptions import GenerationError
from agent_flag.obs.logging import get_logger
from agent_flag.types import PromptConfig

logger = get_logger("agent_flag.llm.generator")

# Reasoning models reject an explicit temperature.
_REASONING_MODEL_PATTERN = re.compile(r"o1|o3|gpt-5", flags=re.IGNORECASE)

ChatModelFactory = Callable[[str, float | None], Any]


@dataclass(slots=True, frozen=True)
class ChatMessage:
    role: Literal["system", "user", "assistant"]
    content: str


@dataclass(slots=True, frozen=True)
class GenerationRequest:
    model: str
    messages: list[ChatMessage]
    temperature: float | None = None


@dataclass(slots=True)
class GenerationResponse:
    text: str
    usage: dict[str, int] = field(default_factory=dict)


class Generator(Protocol):
    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        """Run one chat completion and return its text."""


def is_reasoning_model(model: str) -> bool:
    return _REASONING_MODEL_PATTERN.search(model) is not None


def build_request(
    config: PromptConfig,
    *,
    system_prompt: str,
    user_content: str,
    default_model: str,
) -> GenerationRequest:
    """Build a system+user request, dropping temperature for reasoning models."""
    model = config.model or default_model
    return GenerationRequest(
        model=model,
        messages=[
            ChatMessage(role="system", content=system_prompt),
            ChatMessage(role="user", content=user_content),
        ],
        temperature=None if is_reasoning_model(model) else config.temperature,
    )


class LangChainGenerator:
    """Generator that dispatches requests to OpenAI or Azure OpenAI chat models.

    Chat model instances are cached per (model, temperature) pair, since the
    flag service may hand out a different pair on every request.
    """

    def __init__(
        self,
        config: GenerationConfig,
        *,
        chat_model_factory: ChatModelFactory | None = None,
    ) -> None:
        self.config = config
        self._factory = chat_model_factory or self._default_factory
        self._models: dict[tuple[str, float | None], Any] = {}

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        llm = self._chat_model(request.model, request.temperature)
        try:
            response = await llm.ainvoke(_to_langchain_messages(request.messages))
        except Exception as exc:
            raise GenerationError(f"Generation failed for model {request.model}: {exc}") from exc

        usage = getattr(response, "usage_metadata", None) or {}
        return GenerationResponse(
            text=_extract_text(response),
            usage={key: int(value) for key, value in dict(usage).items() if isinstance(value, int)},
        )

    def _chat_model(self, model: str, temperature: float | None) -> Any:
        key = (model, temperature)
        llm = self._models.get(key)
        if llm is None:
            llm = self._factory(model, temperature)
            self._models[key] = llm
        return llm

    def _default_factory(self, model: str, temperature: float | None) -> Any:
        kwargs: dict[str, Any] = {}
        if temperature is not None:
            kwargs["temperature"] = temperature

        if self.config.provider == "azure":
            from langchain_openai import AzureChatOpenAI

            return AzureChatOpenAI(
                azure_deployment=model,
                azure_endpoint=self.config.azure_endpoint,
                api_key=self.config.azure_api_key,
                api_version=self.config.azure_api_version,
                **kwargs,
            )

        from langchain_openai import ChatOpenAI

        return ChatOpenAI(model=model, api_key=self.config.openai_api_key, **kwargs)


def create_generator(config: GenerationConfig) -> LangChainGenerator | None:
    """Return a generator when credentials are configured, otherwise None."""
    if config.provider is None:
        logger.warning("No generation backend configured; stages will use deterministic fallbacks")
        return None
    logger.info("Generation backend: %s (default model %s)", config.provider, config.default_model)
    return LangChainGenerator(config)


def _to_langchain_messages(messages: list[ChatMessage]) -> list[BaseMessage]:
    converted: list[BaseMessage] = []
    for message in messages:
        if message.role == "system":
            converted.append(SystemMessage(content=message.content))
        elif message.role == "assistant":
            converted.append(AIMessage(content=message.content))
        else:
            converted.append(HumanMessage(content=message.content))
    return converted


def _extract_text(response: Any) -> str:
    content = getattr(response, "content", response)
    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if isinstance(item, dict) and "text" in item:
                parts.append(str(item["text"]))
            else:
                parts.append(str(item))
        return " ".join(parts).strip()
    return str(content)

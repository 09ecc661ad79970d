"""Shared contract and helpers for the three workflow stages."""

from __future__ import annotations

import json
import re
from typing import Any, Protocol, TypeVar

from agent_flag.exceptions import GenerationUnavailableError
from agent_flag.llm.generator import Generator, build_request
from agent_flag.types import Outcome, PromptConfig

InputT = TypeVar("InputT", contravariant=True)
OutputT = TypeVar("OutputT", covariant=True)

# Greedy: spans from the first "{" to the last "}" in the output.
_JSON_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")


class StageProcessor(Protocol[InputT, OutputT]):
    """One pipeline stage: render prompt, generate, parse, fall back."""

    stage_name: str

    async def execute(self, stage_input: InputT, config: PromptConfig) -> Outcome[OutputT]:
        """Run the stage. Must not raise."""


def find_json_object(text: str) -> str | None:
    """Return the brace-delimited span of `text`, if any."""
    match = _JSON_OBJECT_PATTERN.search(text)
    return match.group(0) if match else None


def parse_json_object(text: str) -> dict[str, Any] | None:
    """Best-effort parse of the brace-delimited span as a JSON object.

    Returns None when no span is found, the span is not valid JSON, or the
    JSON value is not an object.
    """
    candidate = find_json_object(text)
    if candidate is None:
        return None
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


async def generate_text(
    generator: Generator | None,
    config: PromptConfig,
    *,
    system_prompt: str,
    user_content: str,
    default_model: str,
) -> str:
    """Call the generation backend; a missing backend counts as unreachable."""
    if generator is None:
        raise GenerationUnavailableError("No generation backend configured")
    request = build_request(
        config,
        system_prompt=system_prompt,
        user_content=user_content,
        default_model=default_model,
    )
    response = await generator.generate(request)
    return response.text

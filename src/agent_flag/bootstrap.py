"""Wiring of settings into the flag service, generator and executor."""

from __future__ import annotations

from dataclasses import dataclass

from agent_flag.config import Settings
from agent_flag.exceptions import FlagServiceError
from agent_flag.flags.client import FeatBitFlagClient, FlagClient
from agent_flag.flags.service import FeatureFlagService
from agent_flag.llm.generator import Generator, create_generator
from agent_flag.obs.logging import setup_logging
from agent_flag.types import Failure
from agent_flag.workflow.executor import WorkflowExecutor


@dataclass(slots=True)
class Runtime:
    flag_service: FeatureFlagService
    executor: WorkflowExecutor
    generator: Generator | None


def build_runtime(
    settings: Settings,
    *,
    flag_client: FlagClient | None = None,
    generator: Generator | None = None,
) -> Runtime:
    """Assemble the workflow from settings.

    `flag_client` and `generator` override the FeatBit and LangChain
    defaults. The flag client is not connected yet; see `start_runtime`.
    """
    setup_logging(settings.log_level)
    if flag_client is None:
        flag_client = FeatBitFlagClient(settings.featbit())
    generation = settings.generation()
    if generator is None:
        generator = create_generator(generation)

    flag_service = FeatureFlagService(
        flag_client,
        flag_keys=settings.flag_keys(),
        combos=settings.combos(),
    )
    executor = WorkflowExecutor.with_default_stages(
        flag_service,
        generator,
        default_model=generation.default_model,
    )
    return Runtime(flag_service=flag_service, executor=executor, generator=generator)


async def start_runtime(runtime: Runtime) -> None:
    """Connect the flag service; raise FlagServiceError when it cannot."""
    outcome = await runtime.flag_service.initialize()
    if isinstance(outcome, Failure):
        raise FlagServiceError(f"Failed to initialize flag service: {outcome.error.message}")

"""Feature-flag adapter consumed by the workflow executor."""

from __future__ import annotations

import json
from typing import Any

from pydantic import ValidationError

from agent_flag.config import ComboConfig, FlagKeys
from agent_flag.exceptions import FlagClientNotInitializedError
from agent_flag.flags.client import FlagClient
from agent_flag.obs.logging import get_logger
from agent_flag.types import ErrorInfo, EvaluationContext, Failure, Outcome, PromptConfig, Success

logger = get_logger("agent_flag.flags.service")

FALLBACK_PROMPT_CONFIG = PromptConfig(model="gpt-4", temperature=0.5)


def default_stage_configs(flag_keys: FlagKeys) -> dict[str, PromptConfig]:
    """Hard-coded stage configurations used when the flag service cannot answer."""
    return {
        flag_keys.intent_analysis: PromptConfig(
            model="gpt-4",
            temperature=0.7,
            system_prompt="Classify customer inquiries",
        ),
        flag_keys.info_retrieval: PromptConfig(model="gpt-4", temperature=0.3, strategy="standard"),
        flag_keys.response_generation: PromptConfig(model="gpt-4", temperature=0.8, strategy="text"),
    }


class FeatureFlagService:
    """Owns the flag client lifecycle and exposes combo/stage lookups.

    Lookups never fail outward once the service is initialized: any SDK
    error or malformed payload is logged and replaced by the baseline combo
    or the flag key's complete default config. Looking up flags before
    `initialize()` (or after `close()`) raises
    `FlagClientNotInitializedError`.
    """

    def __init__(
        self,
        client: FlagClient,
        *,
        flag_keys: FlagKeys | None = None,
        combos: ComboConfig | None = None,
    ) -> None:
        self.client = client
        self.flag_keys = flag_keys or FlagKeys()
        self.combos = combos or ComboConfig()
        self._defaults = default_stage_configs(self.flag_keys)
        self._ready = False

    @property
    def ready(self) -> bool:
        return self._ready

    async def initialize(self) -> Outcome[None]:
        if self._ready:
            return Success(None)
        try:
            logger.info("Initializing flag client")
            await self.client.wait_for_initialization()
        except Exception as exc:
            logger.error("Failed to initialize flag client: %s", exc)
            return Failure(ErrorInfo.from_exception(exc))
        self._ready = True
        logger.info("Flag client initialized")
        return Success(None)

    async def resolve_combo(self, context: EvaluationContext) -> str:
        self._require_ready()
        baseline = self.combos.baseline
        try:
            raw = await self.client.string_variation(self.flag_keys.workflow, context, baseline)
            combo = _coerce_combo(raw)
        except Exception as exc:
            logger.warning("Failed to get workflow combo, using %s: %s", baseline, exc)
            return baseline
        if combo is None:
            logger.warning("Workflow combo flag returned %r, using %s", raw, baseline)
            return baseline
        return combo

    async def resolve_stage_config(self, flag_key: str, context: EvaluationContext) -> PromptConfig:
        self._require_ready()
        default = self.default_config(flag_key)
        try:
            raw = await self.client.json_variation(
                flag_key,
                context,
                default.model_dump(by_alias=True, exclude_none=True),
            )
            if isinstance(raw, PromptConfig):
                return raw
            return PromptConfig.model_validate(raw)
        except ValidationError as exc:
            logger.warning("Malformed config for %s, using default: %s", flag_key, exc.errors()[:1])
        except Exception as exc:
            logger.warning("Failed to get config for %s, using default: %s", flag_key, exc)
        return default

    def is_optimized(self, combo: str) -> bool:
        return combo == self.combos.optimized

    def default_config(self, flag_key: str) -> PromptConfig:
        return self._defaults.get(flag_key, FALLBACK_PROMPT_CONFIG)

    async def close(self) -> None:
        if not self._ready:
            return
        self._ready = False
        logger.info("Closing flag client")
        await self.client.close()

    def _require_ready(self) -> None:
        if not self._ready:
            raise FlagClientNotInitializedError("Flag client not initialized")


def _coerce_combo(raw: Any) -> str | None:
    if isinstance(raw, str):
        text = raw.strip()
        if text.startswith("{"):
            try:
                raw = json.loads(text)
            except json.JSONDecodeError:
                return None
        else:
            return text or None
    if isinstance(raw, dict):
        combo = raw.get("combo")
        if isinstance(combo, str) and combo.strip():
            return combo.strip()
    return None

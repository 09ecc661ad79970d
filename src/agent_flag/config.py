"""Configuration models for the flag-driven support workflow."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from agent_flag.exceptions import ConfigError

_LOG_LEVELS = ("debug", "info", "warning", "error")
_LOG_LEVEL_ALIASES = {"warn": "warning", "fatal": "error", "critical": "error"}


class FeatBitConfig(BaseModel):
    """Connection settings for the FeatBit evaluation server."""

    sdk_key: str = Field(min_length=1)
    streaming_uri: str = "wss://global-eval.featbit.co"
    events_uri: str = "https://global-eval.featbit.co"
    start_wait_seconds: float = Field(default=15.0, gt=0.0)


class FlagKeys(BaseModel):
    """Flag keys consulted for one workflow run."""

    workflow: str = "customer-support-workflow"
    intent_analysis: str = "intent-analysis"
    info_retrieval: str = "info-retrieval"
    response_generation: str = "response-generation"


class ComboConfig(BaseModel):
    baseline: str = "combo_a"
    optimized: str = "combo_b"


class GenerationConfig(BaseModel):
    """Configures the chat-completion backend used by the stages.

    Azure takes precedence when both a resource name and an API key are
    present. Without any credentials the stages run on their deterministic
    fallbacks only.
    """

    default_model: str = "gpt-4"
    azure_resource_name: str | None = None
    azure_api_key: str | None = None
    azure_api_version: str = "2024-10-21"
    openai_api_key: str | None = None

    @property
    def provider(self) -> Literal["azure", "openai"] | None:
        if self.azure_resource_name and self.azure_api_key:
            return "azure"
        if self.openai_api_key:
            return "openai"
        return None

    @property
    def azure_endpoint(self) -> str:
        return f"https://{self.azure_resource_name}.openai.azure.com"


class Settings(BaseSettings):
    featbit_sdk_key: str = ""
    featbit_streaming_uri: str = "wss://global-eval.featbit.co"
    featbit_events_uri: str = "https://global-eval.featbit.co"
    featbit_start_wait_seconds: float = 15.0

    flag_workflow: str = "customer-support-workflow"
    flag_intent_analysis: str = "intent-analysis"
    flag_info_retrieval: str = "info-retrieval"
    flag_response_generation: str = "response-generation"

    combo_baseline: str = "combo_a"
    combo_optimized: str = "combo_b"

    azure_resource_name: str | None = None
    azure_api_key: str | None = None
    azure_api_version: str = "2024-10-21"
    azure_model_name: str = "gpt-4"
    openai_api_key: str | None = None
    openai_model: str | None = None

    log_level: Literal["debug", "info", "warning", "error"] = "info"

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value: object) -> object:
        """Accept any casing and `warn`; unknown levels fall back to info."""
        if not isinstance(value, str):
            return value
        level = value.strip().lower()
        level = _LOG_LEVEL_ALIASES.get(level, level)
        return level if level in _LOG_LEVELS else "info"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True,
    )

    def featbit(self) -> FeatBitConfig:
        """Return the FeatBit section, failing when the SDK key is missing."""
        try:
            return FeatBitConfig(
                sdk_key=self.featbit_sdk_key,
                streaming_uri=self.featbit_streaming_uri,
                events_uri=self.featbit_events_uri,
                start_wait_seconds=self.featbit_start_wait_seconds,
            )
        except ValidationError as exc:
            raise ConfigError(f"Invalid FeatBit configuration (FEATBIT_SDK_KEY is required): {exc}") from exc

    def flag_keys(self) -> FlagKeys:
        return FlagKeys(
            workflow=self.flag_workflow,
            intent_analysis=self.flag_intent_analysis,
            info_retrieval=self.flag_info_retrieval,
            response_generation=self.flag_response_generation,
        )

    def combos(self) -> ComboConfig:
        return ComboConfig(baseline=self.combo_baseline, optimized=self.combo_optimized)

    def generation(self) -> GenerationConfig:
        uses_azure = bool(self.azure_resource_name and self.azure_api_key)
        default_model = self.azure_model_name if uses_azure else (self.openai_model or self.azure_model_name)
        return GenerationConfig(
            default_model=default_model,
            azure_resource_name=self.azure_resource_name,
            azure_api_key=self.azure_api_key,
            azure_api_version=self.azure_api_version,
            openai_api_key=self.openai_api_key,
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    try:
        return Settings()
    except ValidationError as exc:
        raise ConfigError(f"Invalid environment configuration: {exc}") from exc

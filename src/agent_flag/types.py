"""Shared domain models."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Generic, Literal, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field

InquiryType = Literal["critical", "feature", "integration", "quick"]
ResponseFormat = Literal["text", "structured"]

T = TypeVar("T")


@dataclass(slots=True, frozen=True)
class Inquiry:
    """A customer inquiry handed to the workflow by the caller."""

    id: str
    user_id: str
    type: InquiryType
    message: str
    timestamp: datetime | None = None


@dataclass(slots=True, frozen=True)
class EvaluationContext:
    """Targeting context for one flag lookup.

    Attributes are exposed read-only; `with_attribute` returns a new context
    instead of changing this one.
    """

    user_id: str
    attributes: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "attributes", MappingProxyType(dict(self.attributes)))

    def with_attribute(self, key: str, value: str) -> EvaluationContext:
        return EvaluationContext(user_id=self.user_id, attributes={**self.attributes, key: value})


class PromptConfig(BaseModel):
    """Per-stage prompt configuration served by a feature flag."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    model: str
    temperature: float = Field(ge=0.0, le=1.0)
    system_prompt: str | None = Field(default=None, alias="systemPrompt")
    system_prompt_url: str | None = Field(default=None, alias="systemPromptUrl")
    strategy: str | None = None
    version: str | int | None = None


@dataclass(slots=True, frozen=True)
class IntentResult:
    category: str
    urgency: str
    confidence: float


@dataclass(slots=True, frozen=True)
class RetrievalResult:
    documents: list[str]
    sources: list[str]


@dataclass(slots=True, frozen=True)
class ResponseResult:
    message: str
    format: ResponseFormat


@dataclass(slots=True, frozen=True)
class IntentInput:
    inquiry_id: str
    message: str


@dataclass(slots=True, frozen=True)
class RetrievalInput:
    inquiry_id: str
    intent: IntentResult


@dataclass(slots=True, frozen=True)
class ResponseInput:
    inquiry_id: str
    intent: IntentResult
    retrieval: RetrievalResult


@dataclass(slots=True, frozen=True)
class WorkflowResult:
    """Aggregated output of one successful three-stage run."""

    inquiry_id: str
    combo: str
    intent: IntentResult
    retrieval: RetrievalResult
    response: ResponseResult
    execution_time_ms: float


@dataclass(slots=True, frozen=True)
class ErrorInfo:
    message: str
    error_type: str
    stage: str | None = None

    @classmethod
    def from_exception(cls, exc: BaseException, *, stage: str | None = None) -> ErrorInfo:
        return cls(message=str(exc) or exc.__class__.__name__, error_type=exc.__class__.__name__, stage=stage)


@dataclass(slots=True, frozen=True)
class Success(Generic[T]):
    value: T

    @property
    def success(self) -> Literal[True]:
        return True


@dataclass(slots=True, frozen=True)
class Failure:
    error: ErrorInfo

    @property
    def success(self) -> Literal[False]:
        return False


Outcome = Union[Success[T], Failure]

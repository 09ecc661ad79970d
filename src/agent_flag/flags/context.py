"""Evaluation-context builders for workflow and stage flag lookups."""

from __future__ import annotations

from agent_flag.types import EvaluationContext, Inquiry

INQUIRY_TYPE_ATTRIBUTE = "inquiryType"
COMBO_ATTRIBUTE = "combo"


def build_base_context(inquiry: Inquiry) -> EvaluationContext:
    """Context used to pick the workflow combo for an inquiry."""
    return EvaluationContext(
        user_id=inquiry.user_id,
        attributes={INQUIRY_TYPE_ATTRIBUTE: inquiry.type},
    )


def build_combo_context(base_context: EvaluationContext, combo: str) -> EvaluationContext:
    """Context shared by every stage-config lookup of one request."""
    return base_context.with_attribute(COMBO_ATTRIBUTE, combo)

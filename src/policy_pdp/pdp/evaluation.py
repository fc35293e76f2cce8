"""Request context and evaluation result models."""

from __future__ import annotations

__all__ = [
    "PolicyEvaluationContext",
    "PolicyEvaluationResult",
    "PolicyTrace",
]

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from policy_pdp.pdp.decision import Effect
from policy_pdp.pdp.policy import utc_now


class PolicyEvaluationContext(BaseModel):
    """The access request being decided.

    Attributes:
        user_id: Requesting principal.
        resource: Concrete resource, e.g. "device:42".
        action: Concrete action, e.g. "read".
        attributes: Request attributes consulted by policy conditions.
        session_id: Optional session correlation id.
        ip_address: Optional client address.
        request_time: When the request was made.
    """

    user_id: str
    resource: str
    action: str
    attributes: dict[str, Any] = Field(default_factory=dict)
    session_id: str | None = None
    ip_address: str | None = None
    request_time: datetime = Field(default_factory=utc_now)

    model_config = ConfigDict(frozen=True)

    def for_user(self, user_id: str) -> "PolicyEvaluationContext":
        """Same request on behalf of another user."""
        return self.model_copy(update={"user_id": user_id})


class PolicyTrace(BaseModel):
    """One policy attempted during an evaluation."""

    policy_id: str
    policy_name: str
    effect: Effect
    priority: int
    matched: bool
    failure_reason: str | None = None

    model_config = ConfigDict(frozen=True)


class PolicyEvaluationResult(BaseModel):
    """Outcome of an evaluation.

    Attributes:
        is_allowed: Final decision.
        matched_policy_id: Policy that decided, None for a default decision.
        matched_policy_name: Name of that policy.
        applied_effect: Effect of that policy.
        reason: Human-readable explanation.
        evaluation_trace: Every policy attempted, in evaluation order.
        evaluation_time_ms: Wall time spent deciding.
    """

    is_allowed: bool
    matched_policy_id: str | None = None
    matched_policy_name: str | None = None
    applied_effect: Effect | None = None
    reason: str
    evaluation_trace: list[PolicyTrace] = Field(default_factory=list)
    evaluation_time_ms: float = 0.0

    model_config = ConfigDict(frozen=True)

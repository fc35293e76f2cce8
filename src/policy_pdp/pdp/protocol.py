"""Protocol for pluggable decision engines.

Defines the interface callers rely on, so that an external engine (OPA,
Cedar, Casbin) can be substituted through an adapter without inheriting
from our code (structural subtyping).

Example adapter:

    class OpaDecisionEngine:
        async def evaluate_user_access(self, user_id, context):
            allowed = await self._client.query(user_id, context.resource, context.action)
            return PolicyEvaluationResult(is_allowed=allowed, reason="OPA decision")
"""

from __future__ import annotations

__all__ = ["DecisionEngineProtocol"]

from collections.abc import Iterable
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from policy_pdp.pdp.evaluation import PolicyEvaluationContext, PolicyEvaluationResult


@runtime_checkable
class DecisionEngineProtocol(Protocol):
    """Protocol for access decision engines.

    Required methods:
    - evaluate_user_access(): core decision for a user
    - evaluate_group_access(): decision for a group
    - bulk_evaluate(): same request for many users
    - get_allowed_actions() / get_accessible_resources(): permission listings

    Concurrency:
    - every method must be safe to await concurrently
    """

    async def evaluate_user_access(
        self, user_id: str, context: "PolicyEvaluationContext"
    ) -> "PolicyEvaluationResult":
        """Decide access for a user.

        Args:
            user_id: Requesting user.
            context: The request.

        Returns:
            Final decision with evaluation trace.
        """
        ...

    async def evaluate_group_access(
        self, group_id: str, context: "PolicyEvaluationContext"
    ) -> "PolicyEvaluationResult":
        """Decide access for a group."""
        ...

    async def bulk_evaluate(
        self, user_ids: Iterable[str], context: "PolicyEvaluationContext"
    ) -> dict[str, "PolicyEvaluationResult"]:
        """Decide the same request for several users."""
        ...

    async def get_allowed_actions(self, user_id: str, resource: str) -> list[str]:
        """Actions the user may perform on resource (permissive superset)."""
        ...

    async def get_accessible_resources(self, user_id: str, action: str) -> list[str]:
        """Resource patterns the user may perform action on."""
        ...

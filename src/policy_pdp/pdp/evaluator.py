"""Single-policy evaluation.

PolicyEvaluator answers one question: does this policy apply to this
request, and if so, what does it say? Checks short-circuit in order:

1. policy is active
2. some resource pattern matches
3. some action pattern matches
4. every condition holds

The evaluator is pure: no I/O, no caching, no audit. A condition that raises
is logged and treated as a non-match; evaluation never raises for a bad policy.
"""

from __future__ import annotations

__all__ = [
    "POLICY_NOT_ACTIVE",
    "PolicyEvaluator",
]

import logging
import time

from policy_pdp.pdp.conditions import evaluate_conditions
from policy_pdp.pdp.decision import Effect
from policy_pdp.pdp.evaluation import PolicyEvaluationContext, PolicyEvaluationResult, PolicyTrace
from policy_pdp.pdp.matcher import matches_any
from policy_pdp.pdp.policy import Policy
from policy_pdp.telemetry.system.system_logger import get_system_logger
from policy_pdp.utils.logging.logging_helpers import elapsed_ms

POLICY_NOT_ACTIVE = "Policy is not active"
RESOURCE_MISMATCH = "Resource does not match"
ACTION_MISMATCH = "Action does not match"


class PolicyEvaluator:
    """Evaluates one policy against one request context."""

    def __init__(self, system_logger: logging.Logger | None = None) -> None:
        self._system_logger = system_logger or get_system_logger()

    def check(self, policy: Policy, context: PolicyEvaluationContext) -> str | None:
        """Return the failure reason, or None when the policy matches.

        Args:
            policy: Policy to check.
            context: Request being decided.

        Returns:
            None on match, otherwise a short failure reason.
        """
        if not policy.is_active:
            return POLICY_NOT_ACTIVE
        if not matches_any(policy.resources, context.resource):
            return RESOURCE_MISMATCH
        if not matches_any(policy.actions, context.action):
            return ACTION_MISMATCH
        if not policy.conditions:
            return None

        try:
            result = evaluate_conditions(policy.conditions, context.attributes)
        except Exception as e:
            self._system_logger.warning(
                {
                    "event": "condition_evaluation_failed",
                    "message": f"Condition evaluation failed for policy {policy.id}: {e}",
                    "policy_id": policy.id,
                    "error_type": type(e).__name__,
                }
            )
            return f"Condition evaluation failed: {e}"

        if not result.matched:
            return f"Conditions not met: {', '.join(result.failed_keys)}"
        return None

    def trace(self, policy: Policy, context: PolicyEvaluationContext) -> PolicyTrace:
        """Evaluate and return only the trace entry."""
        failure = self.check(policy, context)
        return PolicyTrace(
            policy_id=policy.id,
            policy_name=policy.name,
            effect=policy.effect,
            priority=policy.priority,
            matched=failure is None,
            failure_reason=failure,
        )

    def evaluate_policy(
        self, policy: Policy, context: PolicyEvaluationContext
    ) -> PolicyEvaluationResult:
        """Evaluate one policy, producing a result with a single trace entry.

        Args:
            policy: Policy to evaluate.
            context: Request being decided.

        Returns:
            Allowed iff the policy matches and its effect is Allow.
        """
        start = time.perf_counter()
        entry = self.trace(policy, context)

        if not entry.matched:
            return PolicyEvaluationResult(
                is_allowed=False,
                reason=entry.failure_reason or "",
                evaluation_trace=[entry],
                evaluation_time_ms=elapsed_ms(start),
            )

        allowed = policy.effect == Effect.ALLOW
        return PolicyEvaluationResult(
            is_allowed=allowed,
            matched_policy_id=policy.id,
            matched_policy_name=policy.name,
            applied_effect=policy.effect,
            reason=f"Policy '{policy.name}' {'allows' if allowed else 'denies'} access",
            evaluation_trace=[entry],
            evaluation_time_ms=elapsed_ms(start),
        )

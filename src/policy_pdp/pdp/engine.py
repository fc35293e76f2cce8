"""Access decision engine.

Combines the effective policy set of a principal into a single decision.

Evaluation flow (evaluate_user_access):
1. Cache lookup on (user, resource, action) -> return cached result
2. Aggregate the user's effective policies
3. Sort by priority descending, Deny before Allow at equal priority
4. Evaluate in order:
   - a matched Deny terminates immediately (is_allowed=False)
   - the first matched Allow is remembered and evaluation continues,
     so a later Deny can still override it
5. Nothing matched -> default decision (deny unless default_deny_all is off)
6. Cache the result for the evaluation TTL and write an audit entry

Design principles:
1. Deny overrides Allow, regardless of which was found first
2. Default deny (zero trust)
3. The trace lists every policy attempted, including the decisive one
4. Audit and metrics failures never change a decision
"""

from __future__ import annotations

__all__ = [
    "AccessDecisionEngine",
    "evaluation_cache_key",
    "evaluation_order",
]

import asyncio
import json
import time
from collections.abc import Iterable, Sequence

from policy_pdp.aggregator import EffectivePolicyAggregator
from policy_pdp.cache.protocol import Cache
from policy_pdp.catalog.catalog import PolicyCatalog
from policy_pdp.config import PolicyEngineOptions
from policy_pdp.constants import CACHE_KEY_EVALUATION
from policy_pdp.pdp.decision import Effect
from policy_pdp.pdp.evaluation import PolicyEvaluationContext, PolicyEvaluationResult, PolicyTrace
from policy_pdp.pdp.evaluator import PolicyEvaluator
from policy_pdp.pdp.matcher import matches_any
from policy_pdp.pdp.policy import Policy
from policy_pdp.telemetry.audit.trail import AuditTrail
from policy_pdp.telemetry.metrics.recorder import MetricsRecorder
from policy_pdp.telemetry.models.audit import AuditAction
from policy_pdp.utils.logging.logging_helpers import elapsed_ms

NO_MATCH_DENY = "No matching policy found (default deny)"
NO_MATCH_ALLOW = "No matching policy found (default allow)"
POLICY_NOT_FOUND = "Policy not found"


def evaluation_order(policies: Iterable[Policy]) -> list[Policy]:
    """Sort policies by priority descending, Deny before Allow on ties.

    The sort is stable, so equal (priority, effect) keep aggregation order.
    """
    return sorted(policies, key=lambda p: (-p.priority, 0 if p.effect == Effect.DENY else 1))


def evaluation_cache_key(user_id: str, resource: str, action: str) -> str:
    """Cache key for one (user, resource, action) decision.

    Distinct tuples never share a key, whatever characters the fields hold.
    """
    return CACHE_KEY_EVALUATION.format(request=json.dumps([user_id, resource, action]))


class AccessDecisionEngine:
    """Decides access for users and groups.

    Implements the DecisionEngine protocol (pdp/protocol.py).
    """

    def __init__(
        self,
        *,
        aggregator: EffectivePolicyAggregator,
        catalog: PolicyCatalog,
        evaluator: PolicyEvaluator,
        cache: Cache,
        audit: AuditTrail,
        metrics: MetricsRecorder,
        options: PolicyEngineOptions,
    ) -> None:
        self._aggregator = aggregator
        self._catalog = catalog
        self._evaluator = evaluator
        self._cache = cache
        self._audit = audit
        self._metrics = metrics
        self._options = options

    # =========================================================================
    # Combining
    # =========================================================================

    async def _combine(
        self, policies: Sequence[Policy], context: PolicyEvaluationContext, start: float
    ) -> PolicyEvaluationResult:
        trace: list[PolicyTrace] = []
        first_allow: Policy | None = None
        deny: Policy | None = None

        for policy in evaluation_order(policies):
            policy_start = time.perf_counter()
            entry = self._evaluator.trace(policy, context)
            trace.append(entry)
            if not entry.matched:
                continue

            allowed = policy.effect == Effect.ALLOW
            await self._metrics.record_match(policy.id, allowed, elapsed_ms(policy_start))
            if not allowed:
                deny = policy
                break
            if first_allow is None:
                first_allow = policy

        decisive = deny or first_allow
        if decisive is None:
            return PolicyEvaluationResult(
                is_allowed=not self._options.default_deny_all,
                reason=NO_MATCH_DENY if self._options.default_deny_all else NO_MATCH_ALLOW,
                evaluation_trace=trace,
                evaluation_time_ms=elapsed_ms(start),
            )

        verb = "Denied" if decisive is deny else "Allowed"
        return PolicyEvaluationResult(
            is_allowed=decisive is not deny,
            matched_policy_id=decisive.id,
            matched_policy_name=decisive.name,
            applied_effect=decisive.effect,
            reason=f"{verb} by policy '{decisive.name}'",
            evaluation_trace=trace,
            evaluation_time_ms=elapsed_ms(start),
        )

    # =========================================================================
    # Decisions
    # =========================================================================

    async def evaluate_user_access(
        self, user_id: str, context: PolicyEvaluationContext
    ) -> PolicyEvaluationResult:
        """Decide whether user_id may perform context.action on context.resource.

        Args:
            user_id: Requesting user.
            context: Request; its user_id is replaced by user_id.

        Returns:
            Final decision with full trace. May be a cached result.
        """
        if context.user_id != user_id:
            context = context.for_user(user_id)

        key = evaluation_cache_key(user_id, context.resource, context.action)
        cached = await self._cache.get(key)
        if cached is not None:
            return cached

        start = time.perf_counter()
        policies = await self._aggregator.get_effective_policies(user_id)
        result = await self._combine(policies, context, start)

        await self._cache.set(key, result, self._options.evaluation_cache_ttl_seconds)
        await self._audit.record(
            AuditAction.POLICY_EVALUATION,
            "User",
            user_id,
            after={
                "allowed": result.is_allowed,
                "resource": context.resource,
                "action": context.action,
                "matched_policy_id": result.matched_policy_id,
                "evaluation_time_ms": result.evaluation_time_ms,
            },
            metadata={"session_id": context.session_id, "ip_address": context.ip_address},
        )
        return result

    async def evaluate_group_access(
        self, group_id: str, context: PolicyEvaluationContext
    ) -> PolicyEvaluationResult:
        """Decide access for a group using its direct and role policies.

        Same ordering and combination as user evaluation; never cached.
        """
        start = time.perf_counter()
        policies = await self._aggregator.get_group_policies(group_id)
        result = await self._combine(policies, context, start)

        await self._audit.record(
            AuditAction.GROUP_EVALUATION,
            "Group",
            group_id,
            after={
                "allowed": result.is_allowed,
                "resource": context.resource,
                "action": context.action,
                "matched_policy_id": result.matched_policy_id,
                "evaluation_time_ms": result.evaluation_time_ms,
            },
        )
        return result

    async def evaluate_policy(
        self, policy_id: str, context: PolicyEvaluationContext
    ) -> PolicyEvaluationResult:
        """Evaluate a single policy by id.

        Returns:
            is_allowed=False with reason "Policy not found" for an unknown id.
        """
        policy = await self._catalog.get_policy(policy_id)
        if policy is None:
            return PolicyEvaluationResult(is_allowed=False, reason=POLICY_NOT_FOUND)

        result = self._evaluator.evaluate_policy(policy, context)
        if result.matched_policy_id is not None:
            await self._metrics.record_match(
                policy.id, result.is_allowed, result.evaluation_time_ms
            )
        return result

    async def bulk_evaluate(
        self, user_ids: Iterable[str], context: PolicyEvaluationContext
    ) -> dict[str, PolicyEvaluationResult]:
        """Evaluate the same request for several users concurrently.

        Args:
            user_ids: Users to evaluate (duplicates collapse).
            context: Request template; user_id is replaced per user.

        Returns:
            Mapping user_id -> result.
        """
        unique_ids = list(dict.fromkeys(user_ids))
        results = await asyncio.gather(
            *(self.evaluate_user_access(user_id, context) for user_id in unique_ids)
        )
        return dict(zip(unique_ids, results))

    # =========================================================================
    # Permission Listings
    # =========================================================================

    async def _active_effective(self, user_id: str) -> list[Policy]:
        policies = await self._aggregator.get_effective_policies(user_id)
        return evaluation_order(p for p in policies if p.is_active)

    async def get_allowed_actions(self, user_id: str, resource: str) -> list[str]:
        """Actions a user may perform on a resource.

        Walks active effective policies in evaluation order. Allow policies
        add their actions unless already denied; Deny policies add theirs to
        the denied set and remove them from the allowed set. Conditions are
        not consulted, so the result is a permissive superset of what
        evaluate_user_access would allow.

        Returns:
            Action patterns in discovery order.
        """
        allowed: dict[str, None] = {}
        denied: set[str] = set()

        for policy in await self._active_effective(user_id):
            if not matches_any(policy.resources, resource):
                continue
            if policy.effect == Effect.ALLOW:
                for action in policy.actions:
                    if action not in denied:
                        allowed.setdefault(action)
            else:
                for action in policy.actions:
                    denied.add(action)
                    allowed.pop(action, None)

        return list(allowed)

    async def get_accessible_resources(self, user_id: str, action: str) -> list[str]:
        """Resource patterns a user may perform action on.

        Patterns of active Allow policies whose actions match, minus patterns
        listed verbatim by an active Deny policy whose actions match.
        Wildcard patterns are returned unexpanded.
        """
        allowed: dict[str, None] = {}
        denied: set[str] = set()

        for policy in await self._active_effective(user_id):
            if not matches_any(policy.actions, action):
                continue
            if policy.effect == Effect.ALLOW:
                for resource in policy.resources:
                    allowed.setdefault(resource)
            else:
                denied.update(policy.resources)

        return [resource for resource in allowed if resource not in denied]

"""Effective policy aggregation.

The effective policy set of a user is the union, de-duplicated by id, of:

1. unexpired direct policy assignments
2. policies of the user's roles
3. for every group the user belongs to: the group's direct and role policies
4. policies delegated to the user whose window contains "now"
5. with inheritance enabled: every ancestor of each policy collected above

Order is preserved (first occurrence wins). The direct+role portion is
cached under user:policies:{user_id} for the policy cache TTL; group,
delegation and inheritance contributions are always read fresh. Passing an
explicit now bypasses that cache.
"""

from __future__ import annotations

__all__ = ["EffectivePolicyAggregator"]

from collections.abc import Iterable
from datetime import datetime
from typing import Callable

from policy_pdp.cache.protocol import Cache
from policy_pdp.config import PolicyEngineOptions
from policy_pdp.constants import CACHE_KEY_USER_POLICIES
from policy_pdp.hierarchy import HierarchyResolver
from policy_pdp.pdp.policy import Policy, utc_now
from policy_pdp.store.graph import UserAccessGraph
from policy_pdp.store.protocol import PolicyStore


def _dedupe(policies: Iterable[Policy]) -> list[Policy]:
    unique: dict[str, Policy] = {}
    for policy in policies:
        unique.setdefault(policy.id, policy)
    return list(unique.values())


def _direct_and_role_policies(graph: UserAccessGraph, now: datetime) -> list[Policy]:
    policies = [g.policy for g in graph.direct if not g.assignment.is_expired(now)]
    for grant in graph.roles:
        policies.extend(grant.policies)
    return _dedupe(policies)


class EffectivePolicyAggregator:
    """Builds the candidate policy set for a user or group."""

    def __init__(
        self,
        store: PolicyStore,
        cache: Cache,
        hierarchy: HierarchyResolver,
        options: PolicyEngineOptions,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._cache = cache
        self._hierarchy = hierarchy
        self._options = options
        self._clock = clock

    async def _base(
        self, user_id: str, graph: UserAccessGraph, now: datetime | None
    ) -> list[Policy]:
        # An explicit reference time bypasses the cache, which holds "now" results
        if now is not None:
            return _direct_and_role_policies(graph, now)
        now = self._clock()
        key = CACHE_KEY_USER_POLICIES.format(user_id=user_id)
        cached = await self._cache.get(key)
        if cached is not None:
            return cached
        base = _direct_and_role_policies(graph, now)
        await self._cache.set(key, base, self._options.policy_cache_ttl_seconds)
        return base

    async def get_user_policies(self, user_id: str, now: datetime | None = None) -> list[Policy]:
        """Unexpired direct policies plus role policies of a user.

        Cached when now is omitted; an explicit now is always computed fresh.
        """
        graph = await self._store.get_user_access_graph(user_id)
        return await self._base(user_id, graph, now)

    async def get_effective_policies(
        self, user_id: str, now: datetime | None = None
    ) -> list[Policy]:
        """Every policy that applies to a user at time now.

        Args:
            user_id: User to aggregate for.
            now: Reference time for expiry and delegation windows
                (defaults to the clock). An explicit now skips the cached
                direct+role list.

        Returns:
            De-duplicated policies, first occurrence order.
        """
        graph = await self._store.get_user_access_graph(user_id)
        policies = list(await self._base(user_id, graph, now))
        now = now or self._clock()
        for group in graph.groups:
            policies.extend(group.all_policies())
        policies.extend(
            grant.policy for grant in graph.delegations_received if grant.delegation.is_in_effect(now)
        )

        policies = _dedupe(policies)
        if self._options.enable_policy_inheritance:
            policies = await self._with_ancestors(policies)
        return policies

    async def get_group_policies(self, group_id: str) -> list[Policy]:
        """Direct and role policies of a group, de-duplicated."""
        graph = await self._store.get_group_access_graph(group_id)
        return _dedupe(graph.all_policies())

    async def _with_ancestors(self, policies: list[Policy]) -> list[Policy]:
        collected = list(policies)
        for policy in policies:
            if policy.parent_id is not None:
                chain = await self._hierarchy.get_hierarchy(policy.id)
                collected.extend(chain[1:])
        return _dedupe(collected)

"""Policy inheritance hierarchy.

Each policy may name a parent. A policy's hierarchy is the chain from the
policy itself up through its ancestors:

    get_hierarchy(child) -> [child, parent, grandparent, ...]

The walk stops at a policy with no parent, at a missing policy, or after
max_policy_depth entries (silently truncated). set_parent refuses any
assignment that would make a policy its own ancestor, so stored chains
never cycle.
"""

from __future__ import annotations

__all__ = ["HierarchyResolver"]

from datetime import datetime
from typing import Callable

from policy_pdp.cache.protocol import Cache
from policy_pdp.catalog.catalog import PolicyCatalog
from policy_pdp.config import PolicyEngineOptions
from policy_pdp.constants import CACHE_KEY_POLICY
from policy_pdp.exceptions import CircularDependencyError
from policy_pdp.pdp.policy import Policy, utc_now
from policy_pdp.store.protocol import PolicyStore
from policy_pdp.telemetry.audit.trail import AuditTrail
from policy_pdp.telemetry.models.audit import AuditAction


class HierarchyResolver:
    """Reads and changes parent/child links between policies."""

    def __init__(
        self,
        store: PolicyStore,
        catalog: PolicyCatalog,
        cache: Cache,
        audit: AuditTrail,
        options: PolicyEngineOptions,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._catalog = catalog
        self._cache = cache
        self._audit = audit
        self._options = options
        self._clock = clock

    async def get_hierarchy(self, policy_id: str) -> list[Policy]:
        """Return the policy followed by its ancestors, nearest first.

        Args:
            policy_id: Policy to start from.

        Returns:
            At most max_policy_depth policies; empty if policy_id is unknown.
        """
        chain: list[Policy] = []
        seen: set[str] = set()
        current_id: str | None = policy_id

        while current_id is not None and len(chain) < self._options.max_policy_depth:
            if current_id in seen:
                break
            policy = await self._catalog.get_policy(current_id)
            if policy is None:
                break
            chain.append(policy)
            seen.add(current_id)
            current_id = policy.parent_id

        return chain

    async def _would_cycle(self, policy_id: str, parent_id: str) -> bool:
        # Walk upward from the proposed parent; reaching policy_id means a cycle
        seen: set[str] = set()
        current_id: str | None = parent_id
        while current_id is not None and current_id not in seen:
            if current_id == policy_id:
                return True
            seen.add(current_id)
            current = await self._store.get_policy(current_id)
            current_id = current.parent_id if current is not None else None
        return False

    async def set_parent(self, policy_id: str, parent_id: str) -> bool:
        """Make parent_id the parent of policy_id.

        Args:
            policy_id: Child policy.
            parent_id: New parent policy.

        Returns:
            False if either policy is unknown, True once linked.

        Raises:
            CircularDependencyError: If policy_id == parent_id, or if
                parent_id already descends from policy_id. Nothing is changed.
        """
        if policy_id == parent_id:
            raise CircularDependencyError("Policy cannot be its own parent")

        policy = await self._store.get_policy(policy_id)
        if policy is None or await self._store.get_policy(parent_id) is None:
            return False

        if await self._would_cycle(policy_id, parent_id):
            raise CircularDependencyError("Setting parent would create circular dependency")

        updated = policy.model_copy(update={"parent_id": parent_id, "updated_at": self._clock()})
        await self._store.update_policy(updated)
        await self._cache.remove(CACHE_KEY_POLICY.format(policy_id=policy_id))
        await self._audit.record(
            AuditAction.POLICY_PARENT_SET,
            "Policy",
            policy_id,
            before={"parent_id": policy.parent_id},
            after={"parent_id": parent_id},
        )
        return True

    async def get_children(self, parent_id: str) -> list[Policy]:
        """Policies whose parent is parent_id."""
        return await self._store.get_child_policies(parent_id)

"""Time-bounded policy delegation between users.

A delegation lets one user lend a policy they currently hold to another
user for a window [start_date, end_date]. It contributes to the delegate's
effective policies only while active and inside the window; revocation is
terminal.
"""

from __future__ import annotations

__all__ = ["DelegationManager"]

from datetime import datetime
from typing import Callable

from policy_pdp.aggregator import EffectivePolicyAggregator
from policy_pdp.catalog.catalog import PolicyCatalog
from policy_pdp.exceptions import DelegationError, PolicyValidationError
from policy_pdp.pdp.policy import PolicyDelegation, as_utc, utc_now
from policy_pdp.store.protocol import PolicyStore
from policy_pdp.telemetry.audit.trail import AuditTrail
from policy_pdp.telemetry.models.audit import AuditAction


class DelegationManager:
    """Creates, revokes and lists policy delegations."""

    def __init__(
        self,
        store: PolicyStore,
        catalog: PolicyCatalog,
        aggregator: EffectivePolicyAggregator,
        audit: AuditTrail,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._catalog = catalog
        self._aggregator = aggregator
        self._audit = audit
        self._clock = clock

    async def delegate(
        self,
        from_user_id: str,
        to_user_id: str,
        policy_id: str,
        start_date: datetime,
        end_date: datetime,
        reason: str | None = None,
    ) -> PolicyDelegation:
        """Lend a policy from one user to another.

        Args:
            from_user_id: Delegator; must currently hold the policy.
            to_user_id: Delegate.
            policy_id: Policy to lend.
            start_date: Start of the window (inclusive).
            end_date: End of the window (inclusive).
            reason: Optional free text.

        Returns:
            The stored, active delegation.

        Raises:
            PolicyValidationError: If end_date is not after start_date.
            DelegationError: If the delegator does not hold the policy.
        """
        start_date, end_date = as_utc(start_date), as_utc(end_date)
        if end_date <= start_date:
            raise PolicyValidationError(
                "Invalid delegation window", ["End date must be after start date"]
            )

        held = await self._aggregator.get_effective_policies(from_user_id)
        if not any(p.id == policy_id for p in held):
            raise DelegationError("User does not have the policy to delegate")

        delegation = PolicyDelegation(
            from_user_id=from_user_id,
            to_user_id=to_user_id,
            policy_id=policy_id,
            start_date=start_date,
            end_date=end_date,
            reason=reason,
            created_at=self._clock(),
        )
        await self._store.add_delegation(delegation)
        await self._catalog.clear_user_cache(to_user_id)
        await self._audit.record(
            AuditAction.POLICY_DELEGATED,
            "PolicyDelegation",
            delegation.id,
            after=delegation.model_dump(mode="json"),
            metadata={
                "from_user_id": from_user_id,
                "to_user_id": to_user_id,
                "policy_id": policy_id,
            },
        )
        return delegation

    async def revoke(self, delegation_id: str) -> bool:
        """Deactivate a delegation permanently.

        Returns:
            False if delegation_id is unknown.
        """
        delegation = await self._store.get_delegation(delegation_id)
        if delegation is None:
            return False

        revoked = delegation.model_copy(update={"is_active": False, "updated_at": self._clock()})
        await self._store.update_delegation(revoked)
        await self._catalog.clear_user_cache(delegation.to_user_id)
        await self._audit.record(
            AuditAction.POLICY_DELEGATION_REVOKED,
            "PolicyDelegation",
            delegation_id,
            before=delegation.model_dump(mode="json"),
        )
        return True

    async def get_user_delegations(self, user_id: str) -> list[PolicyDelegation]:
        """Active delegations granted by user_id (any window)."""
        return [d for d in await self._store.get_delegations_from(user_id) if d.is_active]

    async def get_delegated_policies(
        self, user_id: str, now: datetime | None = None
    ) -> list[PolicyDelegation]:
        """Delegations to user_id that are active and inside their window."""
        now = now or self._clock()
        return [d for d in await self._store.get_delegations_to(user_id) if d.is_in_effect(now)]

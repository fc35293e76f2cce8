"""Conflict detection and policy analytics.

A conflict is a pair of active policies with different effects whose
resource patterns overlap and whose action patterns overlap. Conflicts are
derived on demand; only their administrative resolution is stored.

Conflict ids are deterministic (hash of the sorted policy id pair), so a
resolution recorded for a pair is found again on the next detection run.
"""

from __future__ import annotations

__all__ = ["ConflictDetector", "conflict_id"]

import hashlib
from datetime import datetime
from itertools import combinations
from typing import Callable

from policy_pdp.config import ConflictResolution
from policy_pdp.constants import REPORT_POLICY_STATS_LIMIT
from policy_pdp.pdp.matcher import actions_overlap, resources_overlap
from policy_pdp.pdp.policy import (
    Policy,
    PolicyConflict,
    PolicyEffectivenessReport,
    PolicyUsageStats,
    utc_now,
)
from policy_pdp.store.protocol import PolicyStore
from policy_pdp.telemetry.audit.trail import AuditTrail
from policy_pdp.telemetry.metrics.recorder import MetricsRecorder
from policy_pdp.telemetry.models.audit import AuditAction

EFFECT_CONFLICT = "EffectConflict"
EFFECT_CONFLICT_DESCRIPTION = (
    "Policies have overlapping resources and actions but different effects"
)


def conflict_id(first_policy_id: str, second_policy_id: str) -> str:
    """Stable id for an unordered pair of policies."""
    pair = "|".join(sorted((first_policy_id, second_policy_id)))
    return hashlib.sha256(pair.encode("utf-8")).hexdigest()[:32]


def _in_conflict(first: Policy, second: Policy) -> bool:
    if first.effect == second.effect:
        return False
    resource_overlap = any(
        resources_overlap(r1, r2) for r1 in first.resources for r2 in second.resources
    )
    if not resource_overlap:
        return False
    return any(actions_overlap(a1, a2) for a1 in first.actions for a2 in second.actions)


class ConflictDetector:
    """Finds conflicting policy pairs and reports on policy usage."""

    def __init__(
        self,
        store: PolicyStore,
        audit: AuditTrail,
        metrics: MetricsRecorder,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._audit = audit
        self._metrics = metrics
        self._clock = clock

    # =========================================================================
    # Conflicts
    # =========================================================================

    async def detect_conflicts(self) -> list[PolicyConflict]:
        """Pairwise scan of active policies.

        Returns:
            One conflict per conflicting pair, in store order, with any
            recorded resolution attached.
        """
        active = [p for p in await self._store.list_policies() if p.is_active]
        resolutions = await self._store.get_conflict_resolutions()

        conflicts = []
        for first, second in combinations(active, 2):
            if not _in_conflict(first, second):
                continue
            cid = conflict_id(first.id, second.id)
            conflicts.append(
                PolicyConflict(
                    id=cid,
                    policy1_id=first.id,
                    policy2_id=second.id,
                    conflict_type=EFFECT_CONFLICT,
                    description=EFFECT_CONFLICT_DESCRIPTION,
                    resolution=resolutions.get(cid),
                )
            )
        return conflicts

    async def resolve_conflict(self, conflict_id: str, resolution: ConflictResolution) -> bool:
        """Record how a detected conflict was settled.

        Evaluation is unaffected; deny still overrides allow at decision time.

        Returns:
            False if no currently detected conflict has this id.
        """
        conflicts = await self.detect_conflicts()
        conflict = next((c for c in conflicts if c.id == conflict_id), None)
        if conflict is None:
            return False

        await self._store.put_conflict_resolution(conflict_id, resolution)
        await self._audit.record(
            AuditAction.POLICY_CONFLICT_RESOLVED,
            "PolicyConflict",
            conflict_id,
            before={"resolution": conflict.resolution.value if conflict.resolution else None},
            after={"resolution": resolution.value},
            metadata={"policy1_id": conflict.policy1_id, "policy2_id": conflict.policy2_id},
        )
        return True

    # =========================================================================
    # Analytics
    # =========================================================================

    async def _stats_for(self, policy: Policy) -> PolicyUsageStats:
        allows, denies, timer = await self._metrics.usage(policy.id)
        return PolicyUsageStats(
            policy_id=policy.id,
            policy_name=policy.name,
            evaluation_count=int(allows + denies),
            allow_count=int(allows),
            deny_count=int(denies),
            average_evaluation_time_ms=timer.average_ms,
        )

    async def get_policy_usage_stats(self, policy_id: str) -> PolicyUsageStats | None:
        """Usage counters for one policy, read from the metrics sink.

        Returns:
            None if the policy is unknown.
        """
        policy = await self._store.get_policy(policy_id)
        if policy is None:
            return None
        return await self._stats_for(policy)

    async def generate_effectiveness_report(self) -> PolicyEffectivenessReport:
        """Summarize policy counts, usage, conflicts and cleanup suggestions."""
        policies = await self._store.list_policies()
        active = [p for p in policies if p.is_active]
        inactive_count = len(policies) - len(active)

        stats = {p.id: await self._stats_for(p) for p in policies}
        unused = [p.id for p in active if stats[p.id].evaluation_count == 0]
        conflicts = await self.detect_conflicts()

        recommendations = []
        if unused:
            recommendations.append(f"Review {len(unused)} active policies that never matched a request")
        if inactive_count:
            recommendations.append(f"Delete {inactive_count} inactive policies")
        unresolved = [c for c in conflicts if c.resolution is None]
        if unresolved:
            recommendations.append(f"Resolve {len(unresolved)} policy conflicts")

        return PolicyEffectivenessReport(
            generated_at=self._clock(),
            total_policies=len(policies),
            active_policies=len(active),
            unused_policies=unused,
            policy_stats=list(stats.values())[:REPORT_POLICY_STATS_LIMIT],
            conflicts=conflicts,
            recommendations=recommendations,
        )

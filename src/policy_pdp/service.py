"""PolicyEngineService: single entry point for callers.

Wires the components together and exposes every administrative, decision
and analytics operation on one object:

    PolicyEngineService
    ├── catalog      PolicyCatalog            (policies, roles, assignments, templates)
    ├── hierarchy    HierarchyResolver        (parent links)
    ├── aggregator   EffectivePolicyAggregator
    ├── engine       AccessDecisionEngine     (decisions, listings)
    ├── delegations  DelegationManager
    ├── conflicts    ConflictDetector         (conflicts, usage, reports)
    └── transfer     PolicyTransfer           (JSON export/import)

This module is designed for programmatic use:
- create_service(options) builds a service over in-memory collaborators
- pass store/cache/audit_sink/metrics_sink to plug in external backends
- the CLI builds a service over a JSON state snapshot
"""

from __future__ import annotations

__all__ = [
    "PolicyEngineService",
    "create_service",
]

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Any, Callable

from policy_pdp.aggregator import EffectivePolicyAggregator
from policy_pdp.cache.memory import InMemoryCache
from policy_pdp.cache.protocol import Cache
from policy_pdp.catalog.catalog import PolicyCatalog
from policy_pdp.config import ConflictResolution, PolicyEngineOptions
from policy_pdp.conflicts import ConflictDetector
from policy_pdp.constants import SYSTEM_ACTOR
from policy_pdp.delegation import DelegationManager
from policy_pdp.hierarchy import HierarchyResolver
from policy_pdp.pdp.engine import AccessDecisionEngine
from policy_pdp.pdp.evaluation import PolicyEvaluationContext, PolicyEvaluationResult
from policy_pdp.pdp.evaluator import PolicyEvaluator
from policy_pdp.pdp.policy import (
    Policy,
    PolicyConflict,
    PolicyDefinition,
    PolicyDelegation,
    PolicyEffectivenessReport,
    PolicyTemplate,
    PolicyUsageStats,
    PolicyValidationResult,
    Role,
    RoleDefinition,
    UserGroupMembership,
    utc_now,
)
from policy_pdp.store.memory import InMemoryPolicyStore
from policy_pdp.store.protocol import PolicyStore
from policy_pdp.telemetry.audit.protocol import AuditSink
from policy_pdp.telemetry.audit.trail import AuditTrail
from policy_pdp.telemetry.metrics.memory import InMemoryMetrics
from policy_pdp.telemetry.metrics.protocol import MetricsSink
from policy_pdp.telemetry.metrics.recorder import MetricsRecorder
from policy_pdp.telemetry.system.system_logger import get_system_logger
from policy_pdp.transfer import PolicyTransfer


class PolicyEngineService:
    """Facade over the policy decision point and its administration."""

    def __init__(
        self,
        *,
        store: PolicyStore,
        cache: Cache,
        audit: AuditTrail,
        metrics: MetricsRecorder,
        options: PolicyEngineOptions,
        clock: Callable[[], datetime] = utc_now,
        system_logger: logging.Logger | None = None,
    ) -> None:
        """Wire the components.

        Args:
            store: Persistence backend.
            cache: Cache for entities, per-user lists and decisions.
            audit: Audit trail (already honoring enable_policy_auditing).
            metrics: Metrics recorder for evaluation counters and timers.
            options: Engine options.
            clock: Wall-clock source; injectable for tests.
            system_logger: Operational logger (defaults to the system logger).
        """
        self.store = store
        self.options = options
        self.metrics = metrics

        self.catalog = PolicyCatalog(store, cache, audit, options, clock)
        self.hierarchy = HierarchyResolver(store, self.catalog, cache, audit, options, clock)
        self.aggregator = EffectivePolicyAggregator(store, cache, self.hierarchy, options, clock)
        self.engine = AccessDecisionEngine(
            aggregator=self.aggregator,
            catalog=self.catalog,
            evaluator=PolicyEvaluator(system_logger or get_system_logger()),
            cache=cache,
            audit=audit,
            metrics=metrics,
            options=options,
        )
        self.delegations = DelegationManager(store, self.catalog, self.aggregator, audit, clock)
        self.conflicts = ConflictDetector(store, audit, metrics, clock)
        self.transfer = PolicyTransfer(store, self.catalog, audit, clock)

    # =========================================================================
    # Policies
    # =========================================================================

    async def create_policy(
        self, definition: PolicyDefinition, *, created_by: str = SYSTEM_ACTOR
    ) -> Policy:
        return await self.catalog.create_policy(definition, created_by=created_by)

    async def update_policy(self, policy_id: str, definition: PolicyDefinition) -> Policy:
        return await self.catalog.update_policy(policy_id, definition)

    async def set_policy_active(self, policy_id: str, is_active: bool) -> Policy:
        return await self.catalog.set_policy_active(policy_id, is_active)

    async def delete_policy(self, policy_id: str) -> bool:
        return await self.catalog.delete_policy(policy_id)

    async def get_policy(self, policy_id: str) -> Policy | None:
        return await self.catalog.get_policy(policy_id)

    async def get_policies(
        self, resource: str | None = None, action: str | None = None
    ) -> list[Policy]:
        return await self.catalog.get_policies(resource, action)

    def validate_policy(self, definition: PolicyDefinition) -> PolicyValidationResult:
        return self.catalog.validate_policy(definition)

    # =========================================================================
    # Roles
    # =========================================================================

    async def create_role(self, definition: RoleDefinition) -> Role:
        return await self.catalog.create_role(definition)

    async def update_role(self, role_id: str, definition: RoleDefinition) -> Role:
        return await self.catalog.update_role(role_id, definition)

    async def delete_role(self, role_id: str) -> bool:
        return await self.catalog.delete_role(role_id)

    async def get_role(self, role_id: str) -> Role | None:
        return await self.catalog.get_role(role_id)

    async def get_roles(self) -> list[Role]:
        return await self.catalog.get_roles()

    async def attach_policy_to_role(self, role_id: str, policy_id: str) -> bool:
        return await self.catalog.attach_policy_to_role(role_id, policy_id)

    async def detach_policy_from_role(self, role_id: str, policy_id: str) -> bool:
        return await self.catalog.detach_policy_from_role(role_id, policy_id)

    # =========================================================================
    # Assignments
    # =========================================================================

    async def assign_role_to_user(
        self, user_id: str, role_id: str, *, assigned_by: str = SYSTEM_ACTOR
    ) -> bool:
        return await self.catalog.assign_role_to_user(user_id, role_id, assigned_by=assigned_by)

    async def remove_role_from_user(self, user_id: str, role_id: str) -> bool:
        return await self.catalog.remove_role_from_user(user_id, role_id)

    async def assign_policy_to_user(
        self,
        user_id: str,
        policy_id: str,
        expires_at: datetime | None = None,
        *,
        assigned_by: str = SYSTEM_ACTOR,
    ) -> bool:
        return await self.catalog.assign_policy_to_user(
            user_id, policy_id, expires_at, assigned_by=assigned_by
        )

    async def remove_policy_from_user(self, user_id: str, policy_id: str) -> bool:
        return await self.catalog.remove_policy_from_user(user_id, policy_id)

    async def get_user_roles(self, user_id: str) -> list[Role]:
        return await self.catalog.get_user_roles(user_id)

    async def get_user_policies(self, user_id: str) -> list[Policy]:
        """Unexpired direct policies plus role policies of a user."""
        return await self.aggregator.get_user_policies(user_id)

    async def get_effective_policies(self, user_id: str) -> list[Policy]:
        """Everything that applies to a user: direct, roles, groups, delegations, ancestors."""
        return await self.aggregator.get_effective_policies(user_id)

    async def bulk_assign_role(self, user_ids: Iterable[str], role_id: str) -> bool:
        return await self.catalog.bulk_assign_role(user_ids, role_id)

    async def bulk_remove_role(self, user_ids: Iterable[str], role_id: str) -> bool:
        return await self.catalog.bulk_remove_role(user_ids, role_id)

    async def assign_role_to_group(self, group_id: str, role_id: str) -> bool:
        return await self.catalog.assign_role_to_group(group_id, role_id)

    async def remove_role_from_group(self, group_id: str, role_id: str) -> bool:
        return await self.catalog.remove_role_from_group(group_id, role_id)

    async def assign_policy_to_group(self, group_id: str, policy_id: str) -> bool:
        return await self.catalog.assign_policy_to_group(group_id, policy_id)

    async def remove_policy_from_group(self, group_id: str, policy_id: str) -> bool:
        return await self.catalog.remove_policy_from_group(group_id, policy_id)

    async def add_user_to_group(self, user_id: str, group_id: str, *, external: bool = False) -> bool:
        """Record group membership. Membership itself is owned by the identity source."""
        added = await self.store.add_user_to_group(
            UserGroupMembership(user_id=user_id, group_id=group_id, external=external)
        )
        await self.catalog.clear_user_cache(user_id)
        return added

    async def remove_user_from_group(self, user_id: str, group_id: str) -> bool:
        removed = await self.store.remove_user_from_group(user_id, group_id)
        await self.catalog.clear_user_cache(user_id)
        return removed

    # =========================================================================
    # Evaluation
    # =========================================================================

    async def evaluate_policy(
        self, policy_id: str, context: PolicyEvaluationContext
    ) -> PolicyEvaluationResult:
        return await self.engine.evaluate_policy(policy_id, context)

    async def evaluate_user_access(
        self, user_id: str, context: PolicyEvaluationContext
    ) -> PolicyEvaluationResult:
        return await self.engine.evaluate_user_access(user_id, context)

    async def evaluate_group_access(
        self, group_id: str, context: PolicyEvaluationContext
    ) -> PolicyEvaluationResult:
        return await self.engine.evaluate_group_access(group_id, context)

    async def get_allowed_actions(self, user_id: str, resource: str) -> list[str]:
        return await self.engine.get_allowed_actions(user_id, resource)

    async def get_accessible_resources(self, user_id: str, action: str) -> list[str]:
        return await self.engine.get_accessible_resources(user_id, action)

    async def bulk_evaluate(
        self, user_ids: Iterable[str], context: PolicyEvaluationContext
    ) -> dict[str, PolicyEvaluationResult]:
        return await self.engine.bulk_evaluate(user_ids, context)

    # =========================================================================
    # Delegation
    # =========================================================================

    async def delegate_policy(
        self,
        from_user_id: str,
        to_user_id: str,
        policy_id: str,
        start_date: datetime,
        end_date: datetime,
        reason: str | None = None,
    ) -> PolicyDelegation:
        return await self.delegations.delegate(
            from_user_id, to_user_id, policy_id, start_date, end_date, reason
        )

    async def revoke_delegation(self, delegation_id: str) -> bool:
        return await self.delegations.revoke(delegation_id)

    async def get_user_delegations(self, user_id: str) -> list[PolicyDelegation]:
        return await self.delegations.get_user_delegations(user_id)

    async def get_delegated_policies(self, user_id: str) -> list[PolicyDelegation]:
        return await self.delegations.get_delegated_policies(user_id)

    # =========================================================================
    # Hierarchy
    # =========================================================================

    async def set_policy_parent(self, policy_id: str, parent_id: str) -> bool:
        return await self.hierarchy.set_parent(policy_id, parent_id)

    async def get_policy_hierarchy(self, policy_id: str) -> list[Policy]:
        return await self.hierarchy.get_hierarchy(policy_id)

    async def get_child_policies(self, parent_id: str) -> list[Policy]:
        return await self.hierarchy.get_children(parent_id)

    # =========================================================================
    # Conflicts and Analytics
    # =========================================================================

    async def detect_conflicts(self) -> list[PolicyConflict]:
        return await self.conflicts.detect_conflicts()

    async def resolve_conflict(
        self, conflict_id: str, resolution: ConflictResolution | None = None
    ) -> bool:
        """Record a resolution; defaults to the configured strategy."""
        return await self.conflicts.resolve_conflict(
            conflict_id, resolution or self.options.conflict_resolution
        )

    async def get_policy_usage_stats(self, policy_id: str) -> PolicyUsageStats | None:
        return await self.conflicts.get_policy_usage_stats(policy_id)

    async def generate_effectiveness_report(self) -> PolicyEffectivenessReport:
        return await self.conflicts.generate_effectiveness_report()

    # =========================================================================
    # Templates
    # =========================================================================

    async def create_template(self, template: PolicyTemplate) -> PolicyTemplate:
        return await self.catalog.create_template(template)

    async def get_templates(self, category: str | None = None) -> list[PolicyTemplate]:
        return await self.catalog.get_templates(category)

    async def create_policy_from_template(
        self,
        template_id: str,
        parameters: dict[str, Any],
        *,
        created_by: str = SYSTEM_ACTOR,
    ) -> Policy:
        return await self.catalog.create_policy_from_template(
            template_id, parameters, created_by=created_by
        )

    # =========================================================================
    # Import/Export
    # =========================================================================

    async def export_policies(self, policy_ids: Iterable[str] | None = None) -> str:
        return await self.transfer.export_policies(policy_ids)

    async def import_policies(self, document: str) -> list[Policy]:
        return await self.transfer.import_policies(document)

    async def export_roles(self, role_ids: Iterable[str] | None = None) -> str:
        return await self.transfer.export_roles(role_ids)

    async def import_roles(self, document: str) -> list[Role]:
        return await self.transfer.import_roles(document)


def create_service(
    options: PolicyEngineOptions | None = None,
    *,
    store: PolicyStore | None = None,
    cache: Cache | None = None,
    audit_sink: AuditSink | None = None,
    metrics_sink: MetricsSink | None = None,
    clock: Callable[[], datetime] = utc_now,
    system_logger: logging.Logger | None = None,
) -> PolicyEngineService:
    """Build a PolicyEngineService, filling gaps with in-memory collaborators.

    Args:
        options: Engine options (defaults if None).
        store: Persistence backend (InMemoryPolicyStore if None).
        cache: Cache (InMemoryCache if None).
        audit_sink: Audit sink; None disables auditing.
        metrics_sink: Metrics sink (InMemoryMetrics if None).
        clock: Wall-clock source.
        system_logger: Operational logger.

    Returns:
        Ready-to-use service.
    """
    options = options or PolicyEngineOptions()
    system_logger = system_logger or get_system_logger()
    audit = AuditTrail(
        audit_sink,
        enabled=options.enable_policy_auditing,
        system_logger=system_logger,
    )
    return PolicyEngineService(
        store=store if store is not None else InMemoryPolicyStore(),
        cache=cache if cache is not None else InMemoryCache(),
        audit=audit,
        metrics=MetricsRecorder(metrics_sink or InMemoryMetrics(), system_logger),
        options=options,
        clock=clock,
        system_logger=system_logger,
    )

"""In-memory PolicyStore.

Reference implementation used by the tests and the CLI. Entities are kept
in insertion-ordered dicts; lists returned to callers are fresh copies, and
stored models are frozen, so callers cannot mutate store state.
"""

from __future__ import annotations

__all__ = ["InMemoryPolicyStore"]

from collections.abc import Iterable
from typing import Any

from policy_pdp.config import ConflictResolution
from policy_pdp.exceptions import DuplicateNameError
from policy_pdp.pdp.policy import (
    GroupPolicyAssignment,
    GroupRoleAssignment,
    Policy,
    PolicyDelegation,
    PolicyTemplate,
    Role,
    UserGroupMembership,
    UserPolicyAssignment,
    UserRoleAssignment,
)
from policy_pdp.store.graph import (
    DelegatedGrant,
    DirectGrant,
    GroupAccessGraph,
    RoleGrant,
    UserAccessGraph,
)


class InMemoryPolicyStore:
    """PolicyStore backed by plain dictionaries."""

    def __init__(self) -> None:
        self._policies: dict[str, Policy] = {}
        self._roles: dict[str, Role] = {}
        self._user_policies: dict[tuple[str, str], UserPolicyAssignment] = {}
        self._user_roles: dict[tuple[str, str], UserRoleAssignment] = {}
        self._group_policies: dict[tuple[str, str], GroupPolicyAssignment] = {}
        self._group_roles: dict[tuple[str, str], GroupRoleAssignment] = {}
        self._memberships: dict[tuple[str, str], UserGroupMembership] = {}
        self._delegations: dict[str, PolicyDelegation] = {}
        self._templates: dict[str, PolicyTemplate] = {}
        self._conflict_resolutions: dict[str, ConflictResolution] = {}

    # =========================================================================
    # Policies
    # =========================================================================

    async def get_policy(self, policy_id: str) -> Policy | None:
        return self._policies.get(policy_id)

    async def get_policy_by_name(self, name: str) -> Policy | None:
        return next((p for p in self._policies.values() if p.name == name), None)

    async def list_policies(self) -> list[Policy]:
        return list(self._policies.values())

    def _check_policy_name(self, policy: Policy) -> None:
        for existing in self._policies.values():
            if existing.name == policy.name and existing.id != policy.id:
                raise DuplicateNameError("Policy", policy.name)

    async def add_policy(self, policy: Policy) -> None:
        self._check_policy_name(policy)
        self._policies[policy.id] = policy

    async def update_policy(self, policy: Policy) -> None:
        self._check_policy_name(policy)
        self._policies[policy.id] = policy

    async def delete_policy(self, policy_id: str) -> bool:
        return self._policies.pop(policy_id, None) is not None

    async def get_child_policies(self, parent_id: str) -> list[Policy]:
        return [p for p in self._policies.values() if p.parent_id == parent_id]

    async def is_policy_in_use(self, policy_id: str) -> bool:
        if any(policy_id in role.policy_ids for role in self._roles.values()):
            return True
        if any(pid == policy_id for _, pid in self._user_policies):
            return True
        return any(pid == policy_id for _, pid in self._group_policies)

    # =========================================================================
    # Roles
    # =========================================================================

    async def get_role(self, role_id: str) -> Role | None:
        return self._roles.get(role_id)

    async def get_role_by_name(self, name: str) -> Role | None:
        return next((r for r in self._roles.values() if r.name == name), None)

    async def list_roles(self) -> list[Role]:
        return list(self._roles.values())

    def _check_role_name(self, role: Role) -> None:
        for existing in self._roles.values():
            if existing.name == role.name and existing.id != role.id:
                raise DuplicateNameError("Role", role.name)

    async def add_role(self, role: Role) -> None:
        self._check_role_name(role)
        self._roles[role.id] = role

    async def update_role(self, role: Role) -> None:
        self._check_role_name(role)
        self._roles[role.id] = role

    async def delete_role(self, role_id: str) -> bool:
        return self._roles.pop(role_id, None) is not None

    async def is_role_in_use(self, role_id: str) -> bool:
        if any(rid == role_id for _, rid in self._user_roles):
            return True
        return any(rid == role_id for _, rid in self._group_roles)

    # =========================================================================
    # User Assignments
    # =========================================================================

    async def get_user_policy_assignments(self, user_id: str) -> list[UserPolicyAssignment]:
        return [a for (uid, _), a in self._user_policies.items() if uid == user_id]

    async def put_user_policy_assignment(self, assignment: UserPolicyAssignment) -> None:
        self._user_policies[(assignment.user_id, assignment.policy_id)] = assignment

    async def remove_user_policy_assignment(self, user_id: str, policy_id: str) -> bool:
        return self._user_policies.pop((user_id, policy_id), None) is not None

    async def get_user_role_assignments(self, user_id: str) -> list[UserRoleAssignment]:
        return [a for (uid, _), a in self._user_roles.items() if uid == user_id]

    async def add_user_role_assignment(self, assignment: UserRoleAssignment) -> bool:
        key = (assignment.user_id, assignment.role_id)
        if key in self._user_roles:
            return False
        self._user_roles[key] = assignment
        return True

    async def remove_user_role_assignment(self, user_id: str, role_id: str) -> bool:
        return self._user_roles.pop((user_id, role_id), None) is not None

    # =========================================================================
    # Group Assignments
    # =========================================================================

    async def get_group_policy_assignments(self, group_id: str) -> list[GroupPolicyAssignment]:
        return [a for (gid, _), a in self._group_policies.items() if gid == group_id]

    async def add_group_policy_assignment(self, assignment: GroupPolicyAssignment) -> bool:
        key = (assignment.group_id, assignment.policy_id)
        if key in self._group_policies:
            return False
        self._group_policies[key] = assignment
        return True

    async def remove_group_policy_assignment(self, group_id: str, policy_id: str) -> bool:
        return self._group_policies.pop((group_id, policy_id), None) is not None

    async def get_group_role_assignments(self, group_id: str) -> list[GroupRoleAssignment]:
        return [a for (gid, _), a in self._group_roles.items() if gid == group_id]

    async def add_group_role_assignment(self, assignment: GroupRoleAssignment) -> bool:
        key = (assignment.group_id, assignment.role_id)
        if key in self._group_roles:
            return False
        self._group_roles[key] = assignment
        return True

    async def remove_group_role_assignment(self, group_id: str, role_id: str) -> bool:
        return self._group_roles.pop((group_id, role_id), None) is not None

    # =========================================================================
    # Group Membership
    # =========================================================================

    async def get_user_groups(self, user_id: str) -> list[UserGroupMembership]:
        return [m for (uid, _), m in self._memberships.items() if uid == user_id]

    async def add_user_to_group(self, membership: UserGroupMembership) -> bool:
        key = (membership.user_id, membership.group_id)
        if key in self._memberships:
            return False
        self._memberships[key] = membership
        return True

    async def remove_user_from_group(self, user_id: str, group_id: str) -> bool:
        return self._memberships.pop((user_id, group_id), None) is not None

    # =========================================================================
    # Delegations
    # =========================================================================

    async def add_delegation(self, delegation: PolicyDelegation) -> None:
        self._delegations[delegation.id] = delegation

    async def get_delegation(self, delegation_id: str) -> PolicyDelegation | None:
        return self._delegations.get(delegation_id)

    async def update_delegation(self, delegation: PolicyDelegation) -> None:
        self._delegations[delegation.id] = delegation

    async def get_delegations_from(self, user_id: str) -> list[PolicyDelegation]:
        return [d for d in self._delegations.values() if d.from_user_id == user_id]

    async def get_delegations_to(self, user_id: str) -> list[PolicyDelegation]:
        return [d for d in self._delegations.values() if d.to_user_id == user_id]

    # =========================================================================
    # Templates
    # =========================================================================

    async def add_template(self, template: PolicyTemplate) -> None:
        self._templates[template.id] = template

    async def get_template(self, template_id: str) -> PolicyTemplate | None:
        return self._templates.get(template_id)

    async def list_templates(self) -> list[PolicyTemplate]:
        return list(self._templates.values())

    # =========================================================================
    # Conflict Resolutions
    # =========================================================================

    async def put_conflict_resolution(
        self, conflict_id: str, resolution: ConflictResolution
    ) -> None:
        self._conflict_resolutions[conflict_id] = resolution

    async def get_conflict_resolutions(self) -> dict[str, ConflictResolution]:
        return dict(self._conflict_resolutions)

    # =========================================================================
    # Hydrated Aggregates
    # =========================================================================

    def _resolve(self, policy_ids: Iterable[str]) -> list[Policy]:
        return [self._policies[pid] for pid in policy_ids if pid in self._policies]

    def _role_grants(self, role_ids: Iterable[str]) -> list[RoleGrant]:
        grants = []
        for role_id in role_ids:
            role = self._roles.get(role_id)
            if role is not None:
                grants.append(RoleGrant(role=role, policies=self._resolve(role.policy_ids)))
        return grants

    async def get_group_access_graph(self, group_id: str) -> GroupAccessGraph:
        return GroupAccessGraph(
            group_id=group_id,
            direct_policies=self._resolve(
                a.policy_id for a in await self.get_group_policy_assignments(group_id)
            ),
            roles=self._role_grants(
                a.role_id for a in await self.get_group_role_assignments(group_id)
            ),
        )

    async def get_user_access_graph(self, user_id: str) -> UserAccessGraph:
        direct = [
            DirectGrant(assignment=a, policy=self._policies[a.policy_id])
            for a in await self.get_user_policy_assignments(user_id)
            if a.policy_id in self._policies
        ]
        roles = self._role_grants(a.role_id for a in await self.get_user_role_assignments(user_id))
        groups = [
            await self.get_group_access_graph(m.group_id)
            for m in await self.get_user_groups(user_id)
        ]
        delegations = [
            DelegatedGrant(delegation=d, policy=self._policies[d.policy_id])
            for d in await self.get_delegations_to(user_id)
            if d.policy_id in self._policies
        ]
        return UserAccessGraph(
            user_id=user_id,
            direct=direct,
            roles=roles,
            groups=groups,
            delegations_received=delegations,
        )

    # =========================================================================
    # Snapshot
    # =========================================================================

    def dump(self) -> dict[str, Any]:
        """Every stored entity grouped by kind, keyed like StateSnapshot fields."""
        return {
            "policies": list(self._policies.values()),
            "roles": list(self._roles.values()),
            "user_policy_assignments": list(self._user_policies.values()),
            "user_role_assignments": list(self._user_roles.values()),
            "group_policy_assignments": list(self._group_policies.values()),
            "group_role_assignments": list(self._group_roles.values()),
            "memberships": list(self._memberships.values()),
            "delegations": list(self._delegations.values()),
            "templates": list(self._templates.values()),
            "conflict_resolutions": dict(self._conflict_resolutions),
        }

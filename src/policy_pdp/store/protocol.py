"""Protocol for policy persistence.

Any backend (relational, document, in-memory) implements PolicyStore.
Each mutating call is expected to be individually transactional; the
engine does not coordinate mutations with in-flight evaluations.

Name uniqueness for policies and roles is enforced here, at the store
boundary, by raising DuplicateNameError.
"""

from __future__ import annotations

__all__ = ["PolicyStore"]

from typing import Protocol, runtime_checkable

from policy_pdp.config import ConflictResolution
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
from policy_pdp.store.graph import GroupAccessGraph, UserAccessGraph


@runtime_checkable
class PolicyStore(Protocol):
    """Async persistence for every entity the engine reads or writes."""

    # --- Policies ---------------------------------------------------------

    async def get_policy(self, policy_id: str) -> Policy | None: ...

    async def get_policy_by_name(self, name: str) -> Policy | None: ...

    async def list_policies(self) -> list[Policy]: ...

    async def add_policy(self, policy: Policy) -> None:
        """Insert a new policy. Raises DuplicateNameError on a name clash."""
        ...

    async def update_policy(self, policy: Policy) -> None:
        """Replace a stored policy. Raises DuplicateNameError on a name clash."""
        ...

    async def delete_policy(self, policy_id: str) -> bool: ...

    async def get_child_policies(self, parent_id: str) -> list[Policy]: ...

    async def is_policy_in_use(self, policy_id: str) -> bool:
        """True if any role or user/group assignment references the policy."""
        ...

    # --- Roles ------------------------------------------------------------

    async def get_role(self, role_id: str) -> Role | None: ...

    async def get_role_by_name(self, name: str) -> Role | None: ...

    async def list_roles(self) -> list[Role]: ...

    async def add_role(self, role: Role) -> None:
        """Insert a new role. Raises DuplicateNameError on a name clash."""
        ...

    async def update_role(self, role: Role) -> None:
        """Replace a stored role. Raises DuplicateNameError on a name clash."""
        ...

    async def delete_role(self, role_id: str) -> bool: ...

    async def is_role_in_use(self, role_id: str) -> bool:
        """True if any user or group holds the role."""
        ...

    # --- User assignments -------------------------------------------------

    async def get_user_policy_assignments(self, user_id: str) -> list[UserPolicyAssignment]: ...

    async def put_user_policy_assignment(self, assignment: UserPolicyAssignment) -> None:
        """Insert, or replace the existing (user, policy) assignment."""
        ...

    async def remove_user_policy_assignment(self, user_id: str, policy_id: str) -> bool: ...

    async def get_user_role_assignments(self, user_id: str) -> list[UserRoleAssignment]: ...

    async def add_user_role_assignment(self, assignment: UserRoleAssignment) -> bool:
        """Insert; returns False if the user already holds the role."""
        ...

    async def remove_user_role_assignment(self, user_id: str, role_id: str) -> bool: ...

    # --- Group assignments ------------------------------------------------

    async def get_group_policy_assignments(self, group_id: str) -> list[GroupPolicyAssignment]: ...

    async def add_group_policy_assignment(self, assignment: GroupPolicyAssignment) -> bool: ...

    async def remove_group_policy_assignment(self, group_id: str, policy_id: str) -> bool: ...

    async def get_group_role_assignments(self, group_id: str) -> list[GroupRoleAssignment]: ...

    async def add_group_role_assignment(self, assignment: GroupRoleAssignment) -> bool: ...

    async def remove_group_role_assignment(self, group_id: str, role_id: str) -> bool: ...

    # --- Group membership -------------------------------------------------

    async def get_user_groups(self, user_id: str) -> list[UserGroupMembership]: ...

    async def add_user_to_group(self, membership: UserGroupMembership) -> bool: ...

    async def remove_user_from_group(self, user_id: str, group_id: str) -> bool: ...

    # --- Delegations ------------------------------------------------------

    async def add_delegation(self, delegation: PolicyDelegation) -> None: ...

    async def get_delegation(self, delegation_id: str) -> PolicyDelegation | None: ...

    async def update_delegation(self, delegation: PolicyDelegation) -> None: ...

    async def get_delegations_from(self, user_id: str) -> list[PolicyDelegation]: ...

    async def get_delegations_to(self, user_id: str) -> list[PolicyDelegation]: ...

    # --- Templates --------------------------------------------------------

    async def add_template(self, template: PolicyTemplate) -> None: ...

    async def get_template(self, template_id: str) -> PolicyTemplate | None: ...

    async def list_templates(self) -> list[PolicyTemplate]: ...

    # --- Conflict resolutions ---------------------------------------------

    async def put_conflict_resolution(
        self, conflict_id: str, resolution: ConflictResolution
    ) -> None: ...

    async def get_conflict_resolutions(self) -> dict[str, ConflictResolution]: ...

    # --- Hydrated aggregates ----------------------------------------------

    async def get_user_access_graph(self, user_id: str) -> UserAccessGraph:
        """Direct, role, group and received-delegation grants for a user."""
        ...

    async def get_group_access_graph(self, group_id: str) -> GroupAccessGraph:
        """Direct and role grants for a group."""
        ...

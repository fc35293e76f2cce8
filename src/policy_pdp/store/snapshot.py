"""JSON snapshot persistence for the in-memory store.

The CLI keeps its state in a single JSON document. Writes are atomic
(temp file + rename) with owner-only permissions.

Snapshot structure:
    {
      "policies": [...], "roles": [...],
      "user_policy_assignments": [...], "user_role_assignments": [...],
      "group_policy_assignments": [...], "group_role_assignments": [...],
      "memberships": [...], "delegations": [...], "templates": [...],
      "conflict_resolutions": {conflict_id: resolution}
    }
"""

from __future__ import annotations

__all__ = [
    "StateSnapshot",
    "load_state",
    "save_state",
    "snapshot_store",
]

import json
from pathlib import Path

from pydantic import BaseModel, Field

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
from policy_pdp.store.memory import InMemoryPolicyStore
from policy_pdp.utils.file_helpers import atomic_write_text, load_validated_json


class StateSnapshot(BaseModel):
    """Full contents of an InMemoryPolicyStore."""

    policies: list[Policy] = Field(default_factory=list)
    roles: list[Role] = Field(default_factory=list)
    user_policy_assignments: list[UserPolicyAssignment] = Field(default_factory=list)
    user_role_assignments: list[UserRoleAssignment] = Field(default_factory=list)
    group_policy_assignments: list[GroupPolicyAssignment] = Field(default_factory=list)
    group_role_assignments: list[GroupRoleAssignment] = Field(default_factory=list)
    memberships: list[UserGroupMembership] = Field(default_factory=list)
    delegations: list[PolicyDelegation] = Field(default_factory=list)
    templates: list[PolicyTemplate] = Field(default_factory=list)
    conflict_resolutions: dict[str, ConflictResolution] = Field(default_factory=dict)

    model_config = {"extra": "ignore"}

    async def restore(self) -> InMemoryPolicyStore:
        """Build a store holding this snapshot's entities.

        Raises:
            DuplicateNameError: If the snapshot holds two policies or roles
                with the same name.
        """
        store = InMemoryPolicyStore()
        for policy in self.policies:
            await store.add_policy(policy)
        for role in self.roles:
            await store.add_role(role)
        for upa in self.user_policy_assignments:
            await store.put_user_policy_assignment(upa)
        for ura in self.user_role_assignments:
            await store.add_user_role_assignment(ura)
        for gpa in self.group_policy_assignments:
            await store.add_group_policy_assignment(gpa)
        for gra in self.group_role_assignments:
            await store.add_group_role_assignment(gra)
        for membership in self.memberships:
            await store.add_user_to_group(membership)
        for delegation in self.delegations:
            await store.add_delegation(delegation)
        for template in self.templates:
            await store.add_template(template)
        for conflict_id, resolution in self.conflict_resolutions.items():
            await store.put_conflict_resolution(conflict_id, resolution)
        return store


async def snapshot_store(store: InMemoryPolicyStore) -> StateSnapshot:
    """Capture every entity held by store."""
    return StateSnapshot(**store.dump())


async def load_state(path: Path) -> InMemoryPolicyStore:
    """Load a state snapshot into a new in-memory store.

    A missing file yields an empty store.

    Args:
        path: Snapshot file.

    Returns:
        Populated InMemoryPolicyStore.

    Raises:
        ValueError: If the file is not valid JSON or fails validation.
    """
    if not path.exists():
        return InMemoryPolicyStore()
    snapshot = load_validated_json(path, StateSnapshot, file_type="state")
    return await snapshot.restore()


async def save_state(store: InMemoryPolicyStore, path: Path) -> None:
    """Write store contents to path atomically.

    Args:
        store: Store to persist.
        path: Destination snapshot file.
    """
    snapshot = await snapshot_store(store)
    content = json.dumps(snapshot.model_dump(mode="json"), indent=2) + "\n"
    atomic_write_text(path, content)

"""Unit tests for policy, role and assignment administration."""

from datetime import timedelta

import pytest

from policy_pdp.exceptions import (
    DuplicateNameError,
    PolicyNotFoundError,
    PolicyValidationError,
    ResourceInUseError,
    RoleNotFoundError,
    SystemRoleError,
)
from policy_pdp.pdp.policy import RoleDefinition

from .conftest import FIXED_NOW


# ============================================================================
# Tests: Policies
# ============================================================================


class TestPolicyLifecycle:
    """Tests for policy create/update/delete."""

    @pytest.mark.asyncio
    async def test_create_policy(self, service, make_definition, audit_sink) -> None:
        """Given a valid definition, the stored policy is active at version 1."""
        # Act
        policy = await service.create_policy(make_definition("read-docs"), created_by="admin")

        # Assert
        assert policy.version == 1
        assert policy.is_active is True
        assert policy.created_by == "admin"
        assert policy.created_at == FIXED_NOW
        assert await service.get_policy(policy.id) == policy
        assert audit_sink.actions() == ["policy.created"]

    @pytest.mark.asyncio
    async def test_invalid_definition_is_rejected(self, service, make_definition, store) -> None:
        """Given an invalid definition, nothing is stored."""
        # Act
        with pytest.raises(PolicyValidationError) as exc_info:
            await service.create_policy(make_definition("bad", actions=[]))

        # Assert
        assert exc_info.value.errors == ["At least one action is required"]
        assert await store.list_policies() == []

    @pytest.mark.asyncio
    async def test_duplicate_name(self, service, make_definition) -> None:
        """Given a taken name, DuplicateNameError is raised."""
        # Arrange
        await service.create_policy(make_definition("read-docs"))

        # Act & Assert
        with pytest.raises(DuplicateNameError, match="read-docs"):
            await service.create_policy(make_definition("read-docs"))

    @pytest.mark.asyncio
    async def test_update_bumps_version(self, service, make_definition) -> None:
        """Given an update, the version increments and fields change."""
        # Arrange
        policy = await service.create_policy(make_definition("read-docs"))

        # Act
        updated = await service.update_policy(
            policy.id, make_definition("read-docs", actions=["read", "list"])
        )

        # Assert
        assert updated.version == 2
        assert updated.actions == ["read", "list"]
        assert updated.id == policy.id

    @pytest.mark.asyncio
    async def test_update_unknown_policy(self, service, make_definition) -> None:
        """Given an unknown id, PolicyNotFoundError is raised."""
        # Act & Assert
        with pytest.raises(PolicyNotFoundError):
            await service.update_policy("missing", make_definition("x"))

    @pytest.mark.asyncio
    async def test_set_policy_active(self, service, make_definition) -> None:
        """Given deactivation, the policy is inactive with a bumped version."""
        # Arrange
        policy = await service.create_policy(make_definition("read-docs"))

        # Act
        updated = await service.set_policy_active(policy.id, False)

        # Assert
        assert updated.is_active is False
        assert updated.version == 2

    @pytest.mark.asyncio
    async def test_delete_unused_policy(self, service, make_definition) -> None:
        """Given an unreferenced policy, it is deleted."""
        # Arrange
        policy = await service.create_policy(make_definition("read-docs"))

        # Act
        deleted = await service.delete_policy(policy.id)

        # Assert
        assert deleted is True
        assert await service.get_policy(policy.id) is None
        assert await service.delete_policy(policy.id) is False

    @pytest.mark.asyncio
    async def test_delete_policy_in_use(self, service, make_definition) -> None:
        """Given a policy assigned to a user, deletion is refused."""
        # Arrange
        policy = await service.create_policy(make_definition("read-docs"))
        await service.assign_policy_to_user("alice", policy.id)

        # Act & Assert
        with pytest.raises(ResourceInUseError):
            await service.delete_policy(policy.id)

    @pytest.mark.asyncio
    async def test_get_policies_filters(self, service, make_definition) -> None:
        """Given resource and action filters, only matching policies are listed."""
        # Arrange
        await service.create_policy(make_definition("docs-read"))
        await service.create_policy(make_definition("docs-write", actions=["write"]))
        await service.create_policy(make_definition("images", resources=["images/*"]))

        # Act
        found = await service.get_policies(resource="documents/a", action="read")

        # Assert
        assert [p.name for p in found] == ["docs-read"]


# ============================================================================
# Tests: Roles
# ============================================================================


class TestRoles:
    """Tests for role administration."""

    @pytest.mark.asyncio
    async def test_create_role_requires_known_policies(self, service) -> None:
        """Given a role referencing a missing policy, PolicyNotFoundError is raised."""
        # Act & Assert
        with pytest.raises(PolicyNotFoundError):
            await service.create_role(RoleDefinition(name="readers", policy_ids=["missing"]))

    @pytest.mark.asyncio
    async def test_attach_and_detach(self, service, make_definition) -> None:
        """Given a role, policies can be attached and detached."""
        # Arrange
        policy = await service.create_policy(make_definition("read-docs"))
        role = await service.create_role(RoleDefinition(name="readers"))

        # Act
        attached = await service.attach_policy_to_role(role.id, policy.id)
        after_attach = await service.get_role(role.id)
        detached = await service.detach_policy_from_role(role.id, policy.id)
        after_detach = await service.get_role(role.id)

        # Assert
        assert attached is True
        assert after_attach.policy_ids == [policy.id]
        assert detached is True
        assert after_detach.policy_ids == []

    @pytest.mark.asyncio
    async def test_attach_unknown(self, service) -> None:
        """Given an unknown role or policy, attach returns False."""
        # Act & Assert
        assert await service.attach_policy_to_role("missing", "missing") is False

    @pytest.mark.asyncio
    async def test_system_roles_are_protected(self, service) -> None:
        """Given a system role, update and delete are refused."""
        # Arrange
        role = await service.create_role(RoleDefinition(name="admins", is_system=True))

        # Act & Assert
        with pytest.raises(SystemRoleError, match="Cannot modify system roles"):
            await service.update_role(role.id, RoleDefinition(name="renamed"))
        with pytest.raises(SystemRoleError, match="Cannot delete system roles"):
            await service.delete_role(role.id)

    @pytest.mark.asyncio
    async def test_update_unknown_role(self, service) -> None:
        """Given an unknown role id, RoleNotFoundError is raised."""
        # Act & Assert
        with pytest.raises(RoleNotFoundError):
            await service.update_role("missing", RoleDefinition(name="x"))

    @pytest.mark.asyncio
    async def test_delete_role_in_use(self, service) -> None:
        """Given a role held by a user, deletion is refused."""
        # Arrange
        role = await service.create_role(RoleDefinition(name="readers"))
        await service.assign_role_to_user("alice", role.id)

        # Act & Assert
        with pytest.raises(ResourceInUseError):
            await service.delete_role(role.id)

    def test_blank_role_name_is_rejected(self) -> None:
        """Given a whitespace-only role name, the definition is invalid."""
        # Act & Assert
        with pytest.raises(ValueError):
            RoleDefinition(name="   ")


# ============================================================================
# Tests: Assignments
# ============================================================================


class TestAssignments:
    """Tests for user and group assignments."""

    @pytest.mark.asyncio
    async def test_user_roles_and_policies(self, service, make_definition) -> None:
        """Given a direct policy and a role, both contribute to user policies."""
        # Arrange
        direct = await service.create_policy(make_definition("direct"))
        via_role = await service.create_policy(make_definition("via-role"))
        role = await service.create_role(RoleDefinition(name="readers", policy_ids=[via_role.id]))

        # Act
        await service.assign_policy_to_user("alice", direct.id)
        await service.assign_role_to_user("alice", role.id)

        # Assert
        assert [r.name for r in await service.get_user_roles("alice")] == ["readers"]
        assert [p.name for p in await service.get_user_policies("alice")] == ["direct", "via-role"]

    @pytest.mark.asyncio
    async def test_assign_unknown_policy(self, service) -> None:
        """Given an unknown policy, assignment returns False."""
        # Act & Assert
        assert await service.assign_policy_to_user("alice", "missing") is False

    @pytest.mark.asyncio
    async def test_expired_assignment_is_ignored(self, service, make_definition, clock) -> None:
        """Given an assignment whose expiry has passed, it no longer applies."""
        # Arrange
        policy = await service.create_policy(make_definition("temporary"))
        await service.assign_policy_to_user(
            "alice", policy.id, expires_at=FIXED_NOW + timedelta(hours=1)
        )
        before = await service.get_user_policies("alice")

        # Act
        clock.advance(hours=2)
        after = await service.get_user_policies("alice")

        # Assert
        assert [p.name for p in before] == ["temporary"]
        assert after == []

    @pytest.mark.asyncio
    async def test_reassign_replaces_expiry(self, service, make_definition, store) -> None:
        """Given a re-assignment, the single assignment takes the new expiry."""
        # Arrange
        policy = await service.create_policy(make_definition("temporary"))
        await service.assign_policy_to_user("alice", policy.id, expires_at=FIXED_NOW)

        # Act
        await service.assign_policy_to_user("alice", policy.id)

        # Assert
        assignments = await store.get_user_policy_assignments("alice")
        assert len(assignments) == 1
        assert assignments[0].expires_at is None

    @pytest.mark.asyncio
    async def test_remove_assignments(self, service, make_definition) -> None:
        """Given removals, True only when something was removed."""
        # Arrange
        policy = await service.create_policy(make_definition("read-docs"))
        role = await service.create_role(RoleDefinition(name="readers"))
        await service.assign_policy_to_user("alice", policy.id)
        await service.assign_role_to_user("alice", role.id)

        # Act & Assert
        assert await service.remove_policy_from_user("alice", policy.id) is True
        assert await service.remove_policy_from_user("alice", policy.id) is False
        assert await service.remove_role_from_user("alice", role.id) is True
        assert await service.remove_role_from_user("alice", role.id) is False

    @pytest.mark.asyncio
    async def test_bulk_role_assignment(self, service) -> None:
        """Given several users, the role is assigned to and removed from each."""
        # Arrange
        role = await service.create_role(RoleDefinition(name="readers"))

        # Act
        assigned = await service.bulk_assign_role(["alice", "bob"], role.id)
        bob_roles = await service.get_user_roles("bob")
        await service.bulk_remove_role(["alice", "bob"], role.id)

        # Assert
        assert assigned is True
        assert [r.id for r in bob_roles] == [role.id]
        assert await service.get_user_roles("alice") == []
        assert await service.bulk_assign_role(["alice"], "missing") is False

    @pytest.mark.asyncio
    async def test_group_assignments(self, service, make_definition) -> None:
        """Given group grants, they can be removed once."""
        # Arrange
        policy = await service.create_policy(make_definition("read-docs"))
        role = await service.create_role(RoleDefinition(name="readers"))

        # Act
        await service.assign_policy_to_group("eng", policy.id)
        await service.assign_role_to_group("eng", role.id)

        # Assert
        assert await service.remove_policy_from_group("eng", policy.id) is True
        assert await service.remove_role_from_group("eng", role.id) is True
        assert await service.remove_role_from_group("eng", role.id) is False
        assert await service.assign_role_to_group("eng", "missing") is False

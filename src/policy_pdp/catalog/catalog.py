"""Policy catalog: validated CRUD for policies and roles, plus assignments.

Every mutation follows the same sequence:
1. check existence (soft operations return False, hard ones raise)
2. validate / check invariants (raise before any state change)
3. persist through the store
4. drop the affected cache entries
5. write an audit entry (failures swallowed by AuditTrail)

Reads of single policies and roles go through the cache.
"""

from __future__ import annotations

__all__ = ["PolicyCatalog"]

from collections.abc import Iterable
from datetime import datetime
from typing import Any, Callable

from policy_pdp.cache.protocol import Cache
from policy_pdp.catalog.templates import expand_template
from policy_pdp.catalog.validation import PolicyValidator
from policy_pdp.config import PolicyEngineOptions
from policy_pdp.constants import (
    CACHE_KEY_POLICY,
    CACHE_KEY_ROLE,
    CACHE_KEY_USER_POLICIES,
    CACHE_KEY_USER_ROLES,
    SYSTEM_ACTOR,
)
from policy_pdp.exceptions import (
    PolicyNotFoundError,
    PolicyValidationError,
    ResourceInUseError,
    RoleNotFoundError,
    SystemRoleError,
    TemplateNotFoundError,
)
from policy_pdp.pdp.matcher import matches_any
from policy_pdp.pdp.policy import (
    GroupPolicyAssignment,
    GroupRoleAssignment,
    Policy,
    PolicyDefinition,
    PolicyTemplate,
    PolicyValidationResult,
    Role,
    RoleDefinition,
    UserPolicyAssignment,
    UserRoleAssignment,
    as_utc,
    utc_now,
)
from policy_pdp.store.protocol import PolicyStore
from policy_pdp.telemetry.audit.trail import AuditTrail
from policy_pdp.telemetry.models.audit import AuditAction


def _dump(entity: Any) -> dict[str, Any]:
    return entity.model_dump(mode="json")


class PolicyCatalog:
    """Administrative operations on policies, roles and assignments."""

    def __init__(
        self,
        store: PolicyStore,
        cache: Cache,
        audit: AuditTrail,
        options: PolicyEngineOptions,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the catalog.

        Args:
            store: Persistence backend.
            cache: Cache for policies, roles and per-user lists.
            audit: Audit trail for mutations.
            options: Engine options (validation switches, cache TTL).
            clock: Wall-clock source for timestamps and expiry checks.
        """
        self._store = store
        self._cache = cache
        self._audit = audit
        self._options = options
        self._validator = PolicyValidator(options)
        self._clock = clock

    # =========================================================================
    # Policies
    # =========================================================================

    def validate_policy(self, definition: PolicyDefinition) -> PolicyValidationResult:
        """Validate a definition without saving it."""
        return self._validator.validate(definition)

    def _require_valid(self, definition: PolicyDefinition) -> None:
        result = self._validator.validate(definition)
        if not result.is_valid:
            raise PolicyValidationError("Invalid policy", result.errors)

    async def create_policy(
        self, definition: PolicyDefinition, *, created_by: str = SYSTEM_ACTOR
    ) -> Policy:
        """Validate and store a new policy.

        Args:
            definition: Authoring shape of the policy.
            created_by: Identity recorded on the policy.

        Returns:
            The stored policy (version 1, active).

        Raises:
            PolicyValidationError: If the definition is invalid.
            DuplicateNameError: If the name is taken.
        """
        self._require_valid(definition)
        policy = Policy.from_definition(definition, created_by=created_by, now=self._clock())
        await self._store.add_policy(policy)

        await self._audit.record(
            AuditAction.POLICY_CREATED,
            "Policy",
            policy.id,
            after=_dump(policy),
            metadata={"policy_name": policy.name},
        )
        return policy

    async def update_policy(self, policy_id: str, definition: PolicyDefinition) -> Policy:
        """Replace a policy's definition and bump its version.

        Raises:
            PolicyNotFoundError: If policy_id is unknown.
            PolicyValidationError: If the definition is invalid.
            DuplicateNameError: If renaming onto another policy's name.
        """
        existing = await self._store.get_policy(policy_id)
        if existing is None:
            raise PolicyNotFoundError(policy_id)
        self._require_valid(definition)

        updated = existing.with_definition(definition, now=self._clock())
        await self._store.update_policy(updated)
        await self._cache.remove(CACHE_KEY_POLICY.format(policy_id=policy_id))

        await self._audit.record(
            AuditAction.POLICY_UPDATED,
            "Policy",
            policy_id,
            before={"version": existing.version},
            after={"version": updated.version},
            metadata={"policy_name": updated.name},
        )
        return updated

    async def set_policy_active(self, policy_id: str, is_active: bool) -> Policy:
        """Activate or deactivate a policy. Inactive policies never match.

        Raises:
            PolicyNotFoundError: If policy_id is unknown.
        """
        existing = await self._store.get_policy(policy_id)
        if existing is None:
            raise PolicyNotFoundError(policy_id)
        updated = existing.model_copy(
            update={
                "is_active": is_active,
                "version": existing.version + 1,
                "updated_at": self._clock(),
            }
        )
        await self._store.update_policy(updated)
        await self._cache.remove(CACHE_KEY_POLICY.format(policy_id=policy_id))
        await self._audit.record(
            AuditAction.POLICY_UPDATED,
            "Policy",
            policy_id,
            before={"is_active": existing.is_active},
            after={"is_active": is_active, "version": updated.version},
        )
        return updated

    async def delete_policy(self, policy_id: str) -> bool:
        """Delete a policy no role or assignment references.

        Returns:
            False if policy_id is unknown, True once deleted.

        Raises:
            ResourceInUseError: If a role or assignment references the policy.
        """
        existing = await self._store.get_policy(policy_id)
        if existing is None:
            return False
        if await self._store.is_policy_in_use(policy_id):
            raise ResourceInUseError("Cannot delete policy that is in use")

        await self._store.delete_policy(policy_id)
        await self._cache.remove(CACHE_KEY_POLICY.format(policy_id=policy_id))
        await self._audit.record(
            AuditAction.POLICY_DELETED,
            "Policy",
            policy_id,
            before=_dump(existing),
            metadata={"policy_name": existing.name},
        )
        return True

    async def get_policy(self, policy_id: str) -> Policy | None:
        """Fetch a policy, going through the cache."""
        key = CACHE_KEY_POLICY.format(policy_id=policy_id)
        cached = await self._cache.get(key)
        if cached is not None:
            return cached

        policy = await self._store.get_policy(policy_id)
        if policy is not None:
            await self._cache.set(key, policy, self._options.policy_cache_ttl_seconds)
        return policy

    async def get_policies(
        self, resource: str | None = None, action: str | None = None
    ) -> list[Policy]:
        """List policies, optionally only those whose patterns match resource/action."""
        policies = await self._store.list_policies()
        if resource:
            policies = [p for p in policies if matches_any(p.resources, resource)]
        if action:
            policies = [p for p in policies if matches_any(p.actions, action)]
        return policies

    # =========================================================================
    # Roles
    # =========================================================================

    async def _require_policies(self, policy_ids: Iterable[str]) -> None:
        for policy_id in policy_ids:
            if await self._store.get_policy(policy_id) is None:
                raise PolicyNotFoundError(policy_id)

    async def create_role(self, definition: RoleDefinition) -> Role:
        """Store a new role.

        Raises:
            PolicyNotFoundError: If a referenced policy does not exist.
            DuplicateNameError: If the name is taken.
        """
        await self._require_policies(definition.policy_ids)
        now = self._clock()
        role = Role(
            name=definition.name,
            description=definition.description,
            is_system=definition.is_system,
            policy_ids=list(dict.fromkeys(definition.policy_ids)),
            tags=dict(definition.tags),
            created_at=now,
            updated_at=now,
        )
        await self._store.add_role(role)
        await self._audit.record(
            AuditAction.ROLE_CREATED,
            "Role",
            role.id,
            after=_dump(role),
            metadata={"role_name": role.name},
        )
        return role

    async def update_role(self, role_id: str, definition: RoleDefinition) -> Role:
        """Replace a role's name, description, tags and policy set.

        Raises:
            RoleNotFoundError: If role_id is unknown.
            SystemRoleError: If the role is a system role.
            PolicyNotFoundError: If a referenced policy does not exist.
            DuplicateNameError: If renaming onto another role's name.
        """
        existing = await self._store.get_role(role_id)
        if existing is None:
            raise RoleNotFoundError(role_id)
        if existing.is_system:
            raise SystemRoleError("Cannot modify system roles")
        await self._require_policies(definition.policy_ids)

        updated = existing.model_copy(
            update={
                "name": definition.name,
                "description": definition.description,
                "tags": dict(definition.tags),
                "policy_ids": list(dict.fromkeys(definition.policy_ids)),
                "updated_at": self._clock(),
            }
        )
        await self._store.update_role(updated)
        await self._cache.remove(CACHE_KEY_ROLE.format(role_id=role_id))
        await self._audit.record(
            AuditAction.ROLE_UPDATED,
            "Role",
            role_id,
            before=_dump(existing),
            after=_dump(updated),
            metadata={"role_name": updated.name},
        )
        return updated

    async def delete_role(self, role_id: str) -> bool:
        """Delete a non-system role that nobody holds.

        Returns:
            False if role_id is unknown, True once deleted.

        Raises:
            SystemRoleError: If the role is a system role.
            ResourceInUseError: If a user or group holds the role.
        """
        existing = await self._store.get_role(role_id)
        if existing is None:
            return False
        if existing.is_system:
            raise SystemRoleError("Cannot delete system roles")
        if await self._store.is_role_in_use(role_id):
            raise ResourceInUseError("Cannot delete role that is in use")

        await self._store.delete_role(role_id)
        await self._cache.remove(CACHE_KEY_ROLE.format(role_id=role_id))
        await self._audit.record(
            AuditAction.ROLE_DELETED,
            "Role",
            role_id,
            before=_dump(existing),
            metadata={"role_name": existing.name},
        )
        return True

    async def get_role(self, role_id: str) -> Role | None:
        """Fetch a role, going through the cache."""
        key = CACHE_KEY_ROLE.format(role_id=role_id)
        cached = await self._cache.get(key)
        if cached is not None:
            return cached

        role = await self._store.get_role(role_id)
        if role is not None:
            await self._cache.set(key, role, self._options.policy_cache_ttl_seconds)
        return role

    async def get_roles(self) -> list[Role]:
        return await self._store.list_roles()

    async def attach_policy_to_role(self, role_id: str, policy_id: str) -> bool:
        """Add a policy to a role. Idempotent.

        Returns:
            False if the role or policy is unknown, True otherwise.
        """
        role = await self._store.get_role(role_id)
        if role is None or await self._store.get_policy(policy_id) is None:
            return False
        if policy_id in role.policy_ids:
            return True

        updated = role.model_copy(
            update={"policy_ids": [*role.policy_ids, policy_id], "updated_at": self._clock()}
        )
        await self._store.update_role(updated)
        await self._cache.remove(CACHE_KEY_ROLE.format(role_id=role_id))
        await self._audit.record(
            AuditAction.ROLE_POLICY_ATTACHED, "Role", role_id, after={"policy_id": policy_id}
        )
        return True

    async def detach_policy_from_role(self, role_id: str, policy_id: str) -> bool:
        """Remove a policy from a role.

        Returns:
            False if the role is unknown or does not hold the policy.
        """
        role = await self._store.get_role(role_id)
        if role is None or policy_id not in role.policy_ids:
            return False

        updated = role.model_copy(
            update={
                "policy_ids": [pid for pid in role.policy_ids if pid != policy_id],
                "updated_at": self._clock(),
            }
        )
        await self._store.update_role(updated)
        await self._cache.remove(CACHE_KEY_ROLE.format(role_id=role_id))
        await self._audit.record(
            AuditAction.ROLE_POLICY_DETACHED, "Role", role_id, before={"policy_id": policy_id}
        )
        return True

    # =========================================================================
    # User Assignments
    # =========================================================================

    async def clear_user_cache(self, user_id: str) -> None:
        """Drop the cached role and policy lists of a user."""
        await self._cache.remove(CACHE_KEY_USER_ROLES.format(user_id=user_id))
        await self._cache.remove(CACHE_KEY_USER_POLICIES.format(user_id=user_id))

    async def assign_role_to_user(
        self, user_id: str, role_id: str, *, assigned_by: str = SYSTEM_ACTOR
    ) -> bool:
        """Give a user a role. Idempotent.

        Returns:
            False if the role is unknown, True otherwise.
        """
        if await self._store.get_role(role_id) is None:
            return False
        assignment = UserRoleAssignment(
            user_id=user_id, role_id=role_id, assigned_at=self._clock(), assigned_by=assigned_by
        )
        if not await self._store.add_user_role_assignment(assignment):
            return True

        await self.clear_user_cache(user_id)
        await self._audit.record(
            AuditAction.USER_ROLE_ASSIGNED, "User", user_id, after={"role_id": role_id}
        )
        return True

    async def remove_role_from_user(self, user_id: str, role_id: str) -> bool:
        """Take a role away from a user. False if the user did not hold it."""
        if not await self._store.remove_user_role_assignment(user_id, role_id):
            return False
        await self.clear_user_cache(user_id)
        await self._audit.record(
            AuditAction.USER_ROLE_REMOVED, "User", user_id, before={"role_id": role_id}
        )
        return True

    async def assign_policy_to_user(
        self,
        user_id: str,
        policy_id: str,
        expires_at: datetime | None = None,
        *,
        assigned_by: str = SYSTEM_ACTOR,
    ) -> bool:
        """Grant a policy directly to a user.

        Re-assigning an already assigned policy replaces its expiry.

        Returns:
            False if the policy is unknown, True otherwise.
        """
        if await self._store.get_policy(policy_id) is None:
            return False
        if expires_at is not None:
            expires_at = as_utc(expires_at)

        existing = next(
            (
                a
                for a in await self._store.get_user_policy_assignments(user_id)
                if a.policy_id == policy_id
            ),
            None,
        )
        if existing is not None:
            assignment = existing.model_copy(update={"expires_at": expires_at})
        else:
            assignment = UserPolicyAssignment(
                user_id=user_id,
                policy_id=policy_id,
                assigned_at=self._clock(),
                expires_at=expires_at,
                assigned_by=assigned_by,
            )
        await self._store.put_user_policy_assignment(assignment)

        await self.clear_user_cache(user_id)
        await self._audit.record(
            AuditAction.USER_POLICY_ASSIGNED,
            "User",
            user_id,
            after={
                "policy_id": policy_id,
                "expires_at": expires_at.isoformat() if expires_at else None,
            },
        )
        return True

    async def remove_policy_from_user(self, user_id: str, policy_id: str) -> bool:
        """Revoke a direct policy grant. False if there was none."""
        if not await self._store.remove_user_policy_assignment(user_id, policy_id):
            return False
        await self.clear_user_cache(user_id)
        await self._audit.record(
            AuditAction.USER_POLICY_REMOVED, "User", user_id, before={"policy_id": policy_id}
        )
        return True

    async def get_user_roles(self, user_id: str) -> list[Role]:
        """Roles held directly by a user, going through the cache."""
        key = CACHE_KEY_USER_ROLES.format(user_id=user_id)
        cached = await self._cache.get(key)
        if cached is not None:
            return cached

        roles = []
        for assignment in await self._store.get_user_role_assignments(user_id):
            role = await self._store.get_role(assignment.role_id)
            if role is not None:
                roles.append(role)
        await self._cache.set(key, roles, self._options.policy_cache_ttl_seconds)
        return roles

    async def bulk_assign_role(self, user_ids: Iterable[str], role_id: str) -> bool:
        """Assign a role to every listed user.

        Returns:
            False (and assigns nothing) if the role is unknown.
        """
        if await self._store.get_role(role_id) is None:
            return False
        for user_id in user_ids:
            await self.assign_role_to_user(user_id, role_id)
        return True

    async def bulk_remove_role(self, user_ids: Iterable[str], role_id: str) -> bool:
        """Remove a role from every listed user. Users without it are skipped."""
        for user_id in user_ids:
            await self.remove_role_from_user(user_id, role_id)
        return True

    # =========================================================================
    # Group Assignments
    # =========================================================================

    async def assign_role_to_group(self, group_id: str, role_id: str) -> bool:
        """Give a group a role. False if the role is unknown."""
        if await self._store.get_role(role_id) is None:
            return False
        added = await self._store.add_group_role_assignment(
            GroupRoleAssignment(group_id=group_id, role_id=role_id, assigned_at=self._clock())
        )
        if added:
            await self._audit.record(
                AuditAction.GROUP_ROLE_ASSIGNED, "Group", group_id, after={"role_id": role_id}
            )
        return True

    async def remove_role_from_group(self, group_id: str, role_id: str) -> bool:
        if not await self._store.remove_group_role_assignment(group_id, role_id):
            return False
        await self._audit.record(
            AuditAction.GROUP_ROLE_REMOVED, "Group", group_id, before={"role_id": role_id}
        )
        return True

    async def assign_policy_to_group(self, group_id: str, policy_id: str) -> bool:
        """Grant a policy to a group. False if the policy is unknown."""
        if await self._store.get_policy(policy_id) is None:
            return False
        added = await self._store.add_group_policy_assignment(
            GroupPolicyAssignment(group_id=group_id, policy_id=policy_id, assigned_at=self._clock())
        )
        if added:
            await self._audit.record(
                AuditAction.GROUP_POLICY_ASSIGNED, "Group", group_id, after={"policy_id": policy_id}
            )
        return True

    async def remove_policy_from_group(self, group_id: str, policy_id: str) -> bool:
        if not await self._store.remove_group_policy_assignment(group_id, policy_id):
            return False
        await self._audit.record(
            AuditAction.GROUP_POLICY_REMOVED, "Group", group_id, before={"policy_id": policy_id}
        )
        return True

    # =========================================================================
    # Templates
    # =========================================================================

    async def create_template(self, template: PolicyTemplate) -> PolicyTemplate:
        """Store a policy template."""
        await self._store.add_template(template)
        await self._audit.record(
            AuditAction.TEMPLATE_CREATED,
            "PolicyTemplate",
            template.id,
            metadata={"template_name": template.name, "category": template.category},
        )
        return template

    async def get_templates(self, category: str | None = None) -> list[PolicyTemplate]:
        """List templates, optionally only one category."""
        templates = await self._store.list_templates()
        if category:
            templates = [t for t in templates if t.category == category]
        return templates

    async def create_policy_from_template(
        self,
        template_id: str,
        parameters: dict[str, Any],
        *,
        created_by: str = SYSTEM_ACTOR,
    ) -> Policy:
        """Expand a template and create the resulting policy.

        Raises:
            TemplateNotFoundError: If template_id is unknown.
            PolicyValidationError: If parameters or the expanded policy are invalid.
            DuplicateNameError: If the expanded name is taken.
        """
        template = await self._store.get_template(template_id)
        if template is None:
            raise TemplateNotFoundError(template_id)
        definition = expand_template(template, parameters)
        return await self.create_policy(definition, created_by=created_by)

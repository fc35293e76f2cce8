"""JSON export and import of policies and roles.

Documents use camelCase keys and are re-importable by definition, not by id:

    {
      "version": "1.0",
      "exportDate": "2026-01-01T00:00:00Z",
      "policies": [{"id": ..., "name": ..., "effect": "Allow", "resources": [...],
                    "actions": [...], "conditions": {...}, "notPrincipals": [...],
                    "priority": 0, "isActive": true, "version": 1,
                    "parentId": null, "tags": {...}}]
    }

Import is all-or-nothing with respect to validation: every entry (definition
rules, name clashes with the store and within the document, role policy
references) is checked before the first entity is created. New ids are
assigned; parent links are not carried over because parent ids refer to the
exporting store.
"""

from __future__ import annotations

__all__ = [
    "PolicyExportDocument",
    "PolicyRecord",
    "PolicyTransfer",
    "RoleExportDocument",
    "RoleRecord",
]

import json
from datetime import datetime
from collections.abc import Iterable
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from policy_pdp.catalog.catalog import PolicyCatalog
from policy_pdp.constants import EXPORT_FORMAT_VERSION, SYSTEM_ACTOR
from policy_pdp.exceptions import PolicyValidationError
from policy_pdp.pdp.decision import Effect
from policy_pdp.pdp.policy import Policy, PolicyDefinition, Role, RoleDefinition, utc_now
from policy_pdp.store.protocol import PolicyStore
from policy_pdp.telemetry.audit.trail import AuditTrail
from policy_pdp.telemetry.models.audit import AuditAction
from policy_pdp.utils.file_helpers import format_validation_errors

# =============================================================================
# Document Models
# =============================================================================


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PolicyRecord(_CamelModel):
    """One exported policy."""

    id: str | None = None
    name: str = ""
    description: str = ""
    effect: Effect = Effect.ALLOW
    resources: list[str] = Field(default_factory=list)
    actions: list[str] = Field(default_factory=list)
    conditions: dict[str, Any] | None = None
    principals: list[str] = Field(default_factory=list)
    not_principals: list[str] = Field(default_factory=list)
    priority: int = 0
    is_active: bool = True
    version: int = 1
    parent_id: str | None = None
    tags: dict[str, str] | None = None

    @classmethod
    def from_policy(cls, policy: Policy) -> "PolicyRecord":
        return cls(
            id=policy.id,
            name=policy.name,
            description=policy.description,
            effect=policy.effect,
            resources=list(policy.resources),
            actions=list(policy.actions),
            conditions=policy.raw_conditions or None,
            principals=list(policy.principals),
            not_principals=list(policy.not_principals),
            priority=policy.priority,
            is_active=policy.is_active,
            version=policy.version,
            parent_id=policy.parent_id,
            tags=dict(policy.tags) or None,
        )

    def to_definition(self) -> PolicyDefinition:
        """Raises pydantic.ValidationError for an unparseable condition."""
        return PolicyDefinition(
            name=self.name,
            description=self.description,
            effect=self.effect,
            resources=self.resources,
            actions=self.actions,
            conditions=self.conditions or {},
            principals=self.principals,
            not_principals=self.not_principals,
            priority=self.priority,
            tags=self.tags or {},
        )


class RoleRecord(_CamelModel):
    """One exported role. Policies are referenced by name and by id."""

    id: str | None = None
    name: str = ""
    description: str = ""
    policy_ids: list[str] = Field(default_factory=list)
    policy_names: list[str] = Field(default_factory=list)
    is_active: bool = True
    is_system: bool = False
    tags: dict[str, str] | None = None


class PolicyExportDocument(_CamelModel):
    version: str = EXPORT_FORMAT_VERSION
    export_date: datetime = Field(default_factory=utc_now)
    policies: list[PolicyRecord] = Field(default_factory=list)


class RoleExportDocument(_CamelModel):
    version: str = EXPORT_FORMAT_VERSION
    export_date: datetime = Field(default_factory=utc_now)
    roles: list[RoleRecord] = Field(default_factory=list)


def _parse_document(document: str, model: type[_CamelModel]) -> Any:
    try:
        data = json.loads(document)
    except json.JSONDecodeError as e:
        raise PolicyValidationError("Invalid import format", [f"Invalid JSON: {e}"]) from e
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise PolicyValidationError("Invalid import format", format_validation_errors(e)) from e


def _dump_document(document: _CamelModel) -> str:
    return json.dumps(document.model_dump(mode="json", by_alias=True), indent=2)


# =============================================================================
# Transfer
# =============================================================================


class PolicyTransfer:
    """Serializes policies and roles to documents and creates them back."""

    def __init__(
        self,
        store: PolicyStore,
        catalog: PolicyCatalog,
        audit: AuditTrail,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._catalog = catalog
        self._audit = audit
        self._clock = clock

    # -------------------------------------------------------------------------
    # Policies
    # -------------------------------------------------------------------------

    async def export_policies(self, policy_ids: Iterable[str] | None = None) -> str:
        """Export policies as a JSON document.

        Args:
            policy_ids: Only these policies (unknown ids are skipped).
                None or empty exports every policy.
        """
        policies = await self._store.list_policies()
        wanted = set(policy_ids or ())
        if wanted:
            policies = [p for p in policies if p.id in wanted]
        document = PolicyExportDocument(
            export_date=self._clock(),
            policies=[PolicyRecord.from_policy(p) for p in policies],
        )
        return _dump_document(document)

    async def import_policies(
        self, document: str, *, created_by: str = SYSTEM_ACTOR
    ) -> list[Policy]:
        """Create every policy in a document.

        Returns:
            The created policies, in document order.

        Raises:
            PolicyValidationError: If the document is malformed or any entry
                is invalid. Nothing is created in that case.
        """
        parsed: PolicyExportDocument = _parse_document(document, PolicyExportDocument)

        errors: list[str] = []
        definitions: list[tuple[PolicyRecord, PolicyDefinition]] = []
        seen_names: set[str] = set()
        for index, record in enumerate(parsed.policies):
            label = f"Policy '{record.name}'" if record.name else f"Policy #{index}"
            try:
                definition = record.to_definition()
            except ValidationError as e:
                errors.extend(f"{label}: {line}" for line in format_validation_errors(e))
                continue

            result = self._catalog.validate_policy(definition)
            errors.extend(f"{label}: {error}" for error in result.errors)

            if record.name in seen_names:
                errors.append(f"{label}: duplicate name in document")
            elif record.name and await self._store.get_policy_by_name(record.name) is not None:
                errors.append(f"{label}: name already exists")
            seen_names.add(record.name)
            definitions.append((record, definition))

        if errors:
            raise PolicyValidationError("Policy import rejected", errors)

        imported = []
        for record, definition in definitions:
            policy = await self._catalog.create_policy(definition, created_by=created_by)
            if not record.is_active:
                policy = await self._catalog.set_policy_active(policy.id, False)
            imported.append(policy)

        await self._audit.record(
            AuditAction.POLICY_IMPORTED,
            "Policy",
            "bulk",
            metadata={"count": len(imported), "policy_ids": [p.id for p in imported]},
        )
        return imported

    # -------------------------------------------------------------------------
    # Roles
    # -------------------------------------------------------------------------

    async def export_roles(self, role_ids: Iterable[str] | None = None) -> str:
        """Export roles as a JSON document, with policy names for portability."""
        roles = await self._store.list_roles()
        wanted = set(role_ids or ())
        if wanted:
            roles = [r for r in roles if r.id in wanted]

        records = []
        for role in roles:
            names = []
            for policy_id in role.policy_ids:
                policy = await self._store.get_policy(policy_id)
                if policy is not None:
                    names.append(policy.name)
            records.append(
                RoleRecord(
                    id=role.id,
                    name=role.name,
                    description=role.description,
                    policy_ids=list(role.policy_ids),
                    policy_names=names,
                    is_active=role.is_active,
                    is_system=role.is_system,
                    tags=dict(role.tags) or None,
                )
            )
        return _dump_document(RoleExportDocument(export_date=self._clock(), roles=records))

    async def _resolve_role_policies(self, record: RoleRecord) -> tuple[list[str], list[str]]:
        """Map a record's policy references to local ids.

        Names are tried first; ids are the fallback for records without names.
        """
        resolved: list[str] = []
        missing: list[str] = []
        if record.policy_names:
            for name in record.policy_names:
                policy = await self._store.get_policy_by_name(name)
                if policy is None:
                    missing.append(name)
                else:
                    resolved.append(policy.id)
        else:
            for policy_id in record.policy_ids:
                if await self._store.get_policy(policy_id) is None:
                    missing.append(policy_id)
                else:
                    resolved.append(policy_id)
        return list(dict.fromkeys(resolved)), missing

    async def import_roles(self, document: str) -> list[Role]:
        """Create every role in a document as a non-system role.

        Raises:
            PolicyValidationError: If the document is malformed, a name clashes
                or a referenced policy cannot be found. Nothing is created.
        """
        parsed: RoleExportDocument = _parse_document(document, RoleExportDocument)

        errors: list[str] = []
        definitions: list[RoleDefinition] = []
        seen_names: set[str] = set()
        for index, record in enumerate(parsed.roles):
            label = f"Role '{record.name}'" if record.name else f"Role #{index}"
            policy_ids, missing = await self._resolve_role_policies(record)
            errors.extend(f"{label}: unknown policy '{ref}'" for ref in missing)

            if record.name in seen_names:
                errors.append(f"{label}: duplicate name in document")
            elif record.name and await self._store.get_role_by_name(record.name) is not None:
                errors.append(f"{label}: name already exists")
            seen_names.add(record.name)

            try:
                definitions.append(
                    RoleDefinition(
                        name=record.name,
                        description=record.description,
                        policy_ids=policy_ids,
                        tags=record.tags or {},
                        is_system=False,
                    )
                )
            except ValidationError as e:
                errors.extend(f"{label}: {line}" for line in format_validation_errors(e))

        if errors:
            raise PolicyValidationError("Role import rejected", errors)

        return [await self._catalog.create_role(definition) for definition in definitions]

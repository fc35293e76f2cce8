"""Policy, role and assignment models.

Entity overview:
    Policy
    ├── effect: Allow | Deny
    ├── resources / actions: glob patterns (non-empty)
    ├── conditions: attribute -> Condition (AND logic)
    ├── priority: higher evaluates first
    ├── version: starts at 1, bumped on every update
    └── parent_id: optional, inherited when inheritance is enabled
    Role
    └── policy_ids: policies granted to every holder
    Assignment edges
    ├── UserPolicyAssignment / UserRoleAssignment
    ├── GroupPolicyAssignment / GroupRoleAssignment
    └── UserGroupMembership
    PolicyDelegation: time-bounded grant of a held policy to another user

Design principles:
1. Definitions (authoring shape) are lenient; persisted entities are strict
2. Condition shapes are parsed once, at construction
3. Entities are frozen; updates produce a new instance via model_copy
4. Deny overrides Allow at evaluation time
"""

from __future__ import annotations

__all__ = [
    "GroupPolicyAssignment",
    "GroupRoleAssignment",
    "Policy",
    "PolicyConflict",
    "PolicyDefinition",
    "PolicyDelegation",
    "PolicyEffectivenessReport",
    "PolicyParameter",
    "PolicyTemplate",
    "PolicyUsageStats",
    "PolicyValidationResult",
    "Role",
    "RoleDefinition",
    "UserGroupMembership",
    "UserPolicyAssignment",
    "UserRoleAssignment",
    "as_utc",
    "new_id",
    "utc_now",
]

from datetime import datetime, timezone
from typing import Any, Literal
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)

from policy_pdp.config import ConflictResolution
from policy_pdp.constants import SYSTEM_ACTOR
from policy_pdp.pdp.conditions import Condition, condition_to_raw, parse_conditions
from policy_pdp.pdp.decision import Effect


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat a datetime without tzinfo as UTC; aware values pass through."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def new_id() -> str:
    """Fresh opaque identifier."""
    return uuid4().hex


# =============================================================================
# Policies
# =============================================================================


class _PolicyFields(BaseModel):
    """Fields shared by the authoring shape and the stored policy."""

    description: str = ""
    effect: Effect = Effect.ALLOW
    conditions: dict[str, Condition] = Field(default_factory=dict)
    principals: list[str] = Field(default_factory=list)
    not_principals: list[str] = Field(default_factory=list)
    priority: int = 0
    tags: dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    @field_validator("conditions", mode="before")
    @classmethod
    def parse_condition_shapes(cls, v: Any) -> Any:
        """Turn raw JSON condition shapes into condition variants.

        Unrecognised shapes fail here, at definition time.
        """
        if v is None:
            return {}
        if not isinstance(v, dict):
            raise ValueError("conditions must be an object mapping attribute names to conditions")
        return parse_conditions(v)

    @field_serializer("conditions")
    def dump_condition_shapes(self, conditions: dict[str, Condition]) -> dict[str, Any]:
        """Serialize conditions back to the shapes an author writes."""
        return {key: condition_to_raw(condition) for key, condition in conditions.items()}

    @property
    def raw_conditions(self) -> dict[str, Any]:
        """Conditions in their raw JSON shape."""
        return self.dump_condition_shapes(self.conditions)


class PolicyDefinition(_PolicyFields):
    """Authoring shape of a policy, validated by the catalog before saving.

    Name, resources and actions are deliberately unconstrained here so that
    PolicyCatalog.validate_policy can report every problem at once instead
    of failing on the first.

    Attributes:
        name: Unique policy name.
        description: Free text.
        effect: Allow or Deny.
        resources: Resource patterns.
        actions: Action patterns.
        conditions: Attribute conditions (AND logic).
        principals: Stored and exported, not consulted by evaluation.
        not_principals: Stored and exported, not consulted by evaluation.
        priority: Higher priorities evaluate first.
        tags: Free-form labels.
    """

    name: str = ""
    resources: list[str] = Field(default_factory=list)
    actions: list[str] = Field(default_factory=list)


class Policy(_PolicyFields):
    """A stored policy.

    Invariants: name non-empty, at least one resource and one action,
    version >= 1. The parent chain is kept acyclic by HierarchyResolver.
    """

    id: str = Field(default_factory=new_id)
    name: str = Field(min_length=1)
    resources: list[str] = Field(min_length=1)
    actions: list[str] = Field(min_length=1)
    is_active: bool = True
    version: int = Field(default=1, ge=1)
    parent_id: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    created_by: str = SYSTEM_ACTOR

    @classmethod
    def from_definition(
        cls,
        definition: PolicyDefinition,
        *,
        created_by: str = SYSTEM_ACTOR,
        now: datetime | None = None,
    ) -> "Policy":
        """Build a new version-1 policy from a validated definition."""
        now = now or utc_now()
        return cls(
            name=definition.name,
            description=definition.description,
            effect=definition.effect,
            resources=list(definition.resources),
            actions=list(definition.actions),
            conditions=dict(definition.conditions),
            principals=list(definition.principals),
            not_principals=list(definition.not_principals),
            priority=definition.priority,
            tags=dict(definition.tags),
            created_at=now,
            updated_at=now,
            created_by=created_by,
        )

    def with_definition(self, definition: PolicyDefinition, *, now: datetime | None = None) -> "Policy":
        """Return this policy with definition fields replaced and version bumped."""
        return self.model_copy(
            update={
                "name": definition.name,
                "description": definition.description,
                "effect": definition.effect,
                "resources": list(definition.resources),
                "actions": list(definition.actions),
                "conditions": dict(definition.conditions),
                "principals": list(definition.principals),
                "not_principals": list(definition.not_principals),
                "priority": definition.priority,
                "tags": dict(definition.tags),
                "version": self.version + 1,
                "updated_at": now or utc_now(),
            }
        )

    def to_definition(self) -> PolicyDefinition:
        """Authoring shape of this policy."""
        return PolicyDefinition(
            name=self.name,
            description=self.description,
            effect=self.effect,
            resources=list(self.resources),
            actions=list(self.actions),
            conditions=dict(self.conditions),
            principals=list(self.principals),
            not_principals=list(self.not_principals),
            priority=self.priority,
            tags=dict(self.tags),
        )


# =============================================================================
# Roles
# =============================================================================


class RoleDefinition(BaseModel):
    """Authoring shape of a role."""

    name: str = Field(min_length=1)
    description: str = ""
    policy_ids: list[str] = Field(default_factory=list)
    tags: dict[str, str] = Field(default_factory=dict)
    is_system: bool = False

    model_config = ConfigDict(frozen=True)

    @field_validator("name", mode="after")
    @classmethod
    def reject_blank_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Role name cannot be empty or whitespace-only")
        return v


class Role(BaseModel):
    """A stored role. System roles can be neither updated nor deleted."""

    id: str = Field(default_factory=new_id)
    name: str = Field(min_length=1)
    description: str = ""
    is_system: bool = False
    is_active: bool = True
    policy_ids: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    tags: dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)


# =============================================================================
# Assignment Edges
# =============================================================================


class UserPolicyAssignment(BaseModel):
    """Direct grant of a policy to a user. Inert once expires_at has passed."""

    user_id: str
    policy_id: str
    assigned_at: datetime = Field(default_factory=utc_now)
    expires_at: datetime | None = None
    assigned_by: str = SYSTEM_ACTOR

    model_config = ConfigDict(frozen=True)

    @field_validator("expires_at")
    @classmethod
    def expiry_is_utc(cls, v: datetime | None) -> datetime | None:
        return as_utc(v) if v is not None else None

    def is_expired(self, now: datetime) -> bool:
        """True once expires_at is in the past."""
        return self.expires_at is not None and self.expires_at <= as_utc(now)


class UserRoleAssignment(BaseModel):
    """User holds a role."""

    user_id: str
    role_id: str
    assigned_at: datetime = Field(default_factory=utc_now)
    assigned_by: str = SYSTEM_ACTOR

    model_config = ConfigDict(frozen=True)


class GroupPolicyAssignment(BaseModel):
    """Direct grant of a policy to every member of a group."""

    group_id: str
    policy_id: str
    assigned_at: datetime = Field(default_factory=utc_now)
    assigned_by: str = SYSTEM_ACTOR

    model_config = ConfigDict(frozen=True)


class GroupRoleAssignment(BaseModel):
    """Group holds a role."""

    group_id: str
    role_id: str
    assigned_at: datetime = Field(default_factory=utc_now)
    assigned_by: str = SYSTEM_ACTOR

    model_config = ConfigDict(frozen=True)


class UserGroupMembership(BaseModel):
    """User is a member of a group. External memberships come from an upstream directory."""

    user_id: str
    group_id: str
    external: bool = False

    model_config = ConfigDict(frozen=True)


# =============================================================================
# Delegation
# =============================================================================


class PolicyDelegation(BaseModel):
    """Time-bounded grant of a policy from one user to another.

    Self-expires when end_date passes; is_active=False is terminal.
    """

    id: str = Field(default_factory=new_id)
    from_user_id: str
    to_user_id: str
    policy_id: str
    start_date: datetime
    end_date: datetime
    is_active: bool = True
    reason: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime | None = None

    model_config = ConfigDict(frozen=True)

    @field_validator("start_date", "end_date")
    @classmethod
    def window_is_utc(cls, v: datetime) -> datetime:
        return as_utc(v)

    @model_validator(mode="after")
    def check_window(self) -> "PolicyDelegation":
        """Reject an empty or inverted delegation window."""
        if self.end_date <= self.start_date:
            raise ValueError("Delegation end_date must be after start_date")
        return self

    def is_in_effect(self, now: datetime) -> bool:
        """Active and start_date <= now <= end_date."""
        return self.is_active and self.start_date <= as_utc(now) <= self.end_date


# =============================================================================
# Templates
# =============================================================================


class PolicyParameter(BaseModel):
    """One substitutable parameter of a policy template.

    Attributes:
        name: Placeholder name, referenced as "{name}" in the template.
        type: Expected JSON type of the supplied value.
        required: Instantiation fails when a required parameter is missing
            and has no default.
        default_value: Used when the parameter is not supplied.
        allowed_values: When set, the supplied value must be one of these.
    """

    name: str = Field(min_length=1)
    description: str = ""
    type: Literal["string", "number", "boolean", "array"] = "string"
    required: bool = True
    default_value: Any = None
    allowed_values: list[Any] | None = None

    model_config = ConfigDict(frozen=True)


class PolicyTemplate(BaseModel):
    """Parameterised policy definition.

    template holds a PolicyDefinition document whose strings may contain
    "{parameter}" placeholders.
    """

    id: str = Field(default_factory=new_id)
    name: str = Field(min_length=1)
    description: str = ""
    category: str = "general"
    template: dict[str, Any]
    parameters: list[PolicyParameter] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def check_unique_parameters(self) -> "PolicyTemplate":
        names = [p.name for p in self.parameters]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate template parameters: {duplicates}")
        return self


# =============================================================================
# Analysis Results
# =============================================================================


class PolicyValidationResult(BaseModel):
    """Result of validating a policy definition."""

    is_valid: bool = True
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


class PolicyConflict(BaseModel):
    """Two active policies whose resources and actions overlap with different effects.

    id is a deterministic hash of the policy pair, so repeated detection runs
    produce the same id.
    """

    id: str
    policy1_id: str
    policy2_id: str
    conflict_type: str = "EffectConflict"
    description: str
    resolution: ConflictResolution | None = None

    model_config = ConfigDict(frozen=True)


class PolicyUsageStats(BaseModel):
    """Evaluation counters and latency for one policy, read from the metrics sink."""

    policy_id: str
    policy_name: str
    evaluation_count: int = 0
    allow_count: int = 0
    deny_count: int = 0
    average_evaluation_time_ms: float = 0.0

    model_config = ConfigDict(frozen=True)


class PolicyEffectivenessReport(BaseModel):
    """Summary of how the policy set is used."""

    generated_at: datetime = Field(default_factory=utc_now)
    total_policies: int = 0
    active_policies: int = 0
    unused_policies: list[str] = Field(default_factory=list)
    policy_stats: list[PolicyUsageStats] = Field(default_factory=list)
    conflicts: list[PolicyConflict] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

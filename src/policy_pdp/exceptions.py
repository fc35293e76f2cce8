"""Custom exceptions for policy-pdp.

This module contains all custom exceptions used throughout the package.
Exceptions are organized into three categories:

Validation Errors (rejected before persistence):
    - PolicyValidationError: Definition, pattern, condition or document malformed

Not Found Errors (id was expected to exist):
    - NotFoundError: Base for unknown ids
    - PolicyNotFoundError, RoleNotFoundError, TemplateNotFoundError

Conflict Errors (invariant would be violated, nothing is mutated):
    - PolicyConflictError: Base for invariant violations
    - DuplicateNameError: Name already taken at the store boundary
    - ResourceInUseError: Policy/role still referenced by an assignment
    - SystemRoleError: System roles are immutable
    - CircularDependencyError: Parent assignment would create a cycle
    - DelegationError: Delegator does not hold the policy

Soft existence checks (delete, detach, remove, revoke) return False instead
of raising. Policy evaluation never raises for a bad policy; it simply does
not match.

Usage:
    from policy_pdp.exceptions import PolicyValidationError, ResourceInUseError
"""

from __future__ import annotations

__all__ = [
    "CircularDependencyError",
    "DelegationError",
    "DuplicateNameError",
    "NotFoundError",
    "PolicyConflictError",
    "PolicyEngineError",
    "PolicyNotFoundError",
    "PolicyValidationError",
    "ResourceInUseError",
    "RoleNotFoundError",
    "SystemRoleError",
    "TemplateNotFoundError",
]


class PolicyEngineError(Exception):
    """Base exception for all policy engine errors.

    Attributes:
        error_type: Category string for logging and CLI output.
    """

    error_type: str = "unknown"


# =============================================================================
# Validation Errors
# =============================================================================


class PolicyValidationError(PolicyEngineError):
    """A definition or document failed validation.

    Raised when:
    - Policy name is empty, or resources/actions are missing
    - A resource pattern is illegal (contains "..", leading/trailing "/")
    - Condition complexity exceeds the configured maximum
    - A condition value has an unrecognized shape
    - An import document or template parameter set is malformed

    Attributes:
        errors: Every violated rule, in the order detected.
    """

    error_type = "validation_error"

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        """Initialize PolicyValidationError.

        Args:
            message: Human-readable summary.
            errors: Individual violated rules.
        """
        self.errors = errors or []
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        """Return summary followed by the individual errors."""
        if not self.errors:
            return self.message
        return f"{self.message}: {', '.join(self.errors)}"

    def __repr__(self) -> str:
        """Return detailed representation for debugging."""
        return f"PolicyValidationError({self.message!r}, errors={self.errors!r})"


# =============================================================================
# Not Found Errors
# =============================================================================


class NotFoundError(PolicyEngineError):
    """An entity id that was expected to exist is unknown.

    Attributes:
        entity_type: Kind of entity ("Policy", "Role", ...).
        entity_id: The id that was not found.
    """

    error_type = "not_found"
    entity_type: str = "Entity"

    def __init__(self, entity_id: str) -> None:
        """Initialize NotFoundError.

        Args:
            entity_id: The id that was not found.
        """
        self.entity_id = entity_id
        super().__init__(f"{self.entity_type} {entity_id} not found")


class PolicyNotFoundError(NotFoundError):
    """Policy id is unknown."""

    entity_type = "Policy"


class RoleNotFoundError(NotFoundError):
    """Role id is unknown."""

    entity_type = "Role"


class TemplateNotFoundError(NotFoundError):
    """Policy template id is unknown."""

    entity_type = "Template"


# =============================================================================
# Conflict Errors
# =============================================================================


class PolicyConflictError(PolicyEngineError):
    """A mutation would violate a store or engine invariant.

    Always raised before any state is changed.
    """

    error_type = "conflict"


class DuplicateNameError(PolicyConflictError):
    """An entity with the same name already exists.

    Attributes:
        entity_type: Kind of entity ("Policy", "Role", ...).
        name: The duplicated name.
    """

    def __init__(self, entity_type: str, name: str) -> None:
        """Initialize DuplicateNameError.

        Args:
            entity_type: Kind of entity ("Policy", "Role", ...).
            name: The duplicated name.
        """
        self.entity_type = entity_type
        self.name = name
        super().__init__(f"{entity_type} with name '{name}' already exists")


class ResourceInUseError(PolicyConflictError):
    """A policy or role cannot be deleted while assignments reference it."""


class SystemRoleError(PolicyConflictError):
    """System roles cannot be updated or deleted."""


class CircularDependencyError(PolicyConflictError):
    """Setting a parent would make a policy its own ancestor."""


class DelegationError(PolicyConflictError):
    """The delegating user does not hold the policy being delegated."""

"""Policy definition validation.

Checks run in order and every violation is reported, not only the first:
- name is non-empty
- at least one resource and one action
- each resource pattern is non-blank, has no "..", and neither starts nor
  ends with "/"
- wildcards are permitted by configuration
- condition complexity stays within the configured maximum

A catch-all "*" resource on an Allow policy is legal but produces a warning.
"""

from __future__ import annotations

__all__ = [
    "PolicyValidator",
    "is_valid_resource_pattern",
]

from policy_pdp.config import PolicyEngineOptions
from policy_pdp.constants import WILDCARD
from policy_pdp.pdp.conditions import condition_complexity
from policy_pdp.pdp.decision import Effect
from policy_pdp.pdp.policy import PolicyDefinition, PolicyValidationResult


def is_valid_resource_pattern(pattern: str) -> bool:
    """Check the structural rules for a resource pattern.

    Args:
        pattern: Resource pattern.

    Returns:
        False for blank patterns, patterns containing "..", and patterns
        with a leading or trailing "/".
    """
    if not pattern or not pattern.strip():
        return False
    if ".." in pattern:
        return False
    return not (pattern.startswith("/") or pattern.endswith("/"))


class PolicyValidator:
    """Validates policy definitions against engine options."""

    def __init__(self, options: PolicyEngineOptions) -> None:
        self._options = options

    def validate(self, definition: PolicyDefinition) -> PolicyValidationResult:
        """Validate a definition.

        Args:
            definition: Definition to check.

        Returns:
            PolicyValidationResult with every error and warning found.
        """
        errors: list[str] = []
        warnings: list[str] = []

        if not definition.name or not definition.name.strip():
            errors.append("Policy name is required")
        if not definition.resources:
            errors.append("At least one resource is required")
        if not definition.actions:
            errors.append("At least one action is required")

        for resource in definition.resources:
            if not is_valid_resource_pattern(resource):
                errors.append(f"Invalid resource pattern: {resource}")
            elif WILDCARD in resource and not self._options.allow_wildcard_resources:
                errors.append(f"Wildcard resource patterns are disabled: {resource}")

        for action in definition.actions:
            if not action or not action.strip():
                errors.append("Action patterns cannot be empty")
            elif WILDCARD in action and not self._options.allow_wildcard_actions:
                errors.append(f"Wildcard action patterns are disabled: {action}")

        if self._options.enable_policy_validation and definition.conditions:
            complexity = condition_complexity(definition.raw_conditions)
            if complexity > self._options.max_condition_complexity:
                errors.append(
                    f"Condition complexity ({complexity}) exceeds maximum allowed "
                    f"({self._options.max_condition_complexity})"
                )

        if definition.effect == Effect.ALLOW and WILDCARD in definition.resources:
            warnings.append("Policy allows access to all resources ('*')")

        return PolicyValidationResult(is_valid=not errors, errors=errors, warnings=warnings)

"""Policy template expansion.

A template is a PolicyDefinition document whose strings may contain
"{parameter}" placeholders. Expansion:

1. Checks the supplied parameters: unknown names are rejected, missing
   required parameters without a default are rejected, and values outside
   allowed_values are rejected. Defaults fill in the rest.
2. Walks the document structurally. A string that is exactly one
   placeholder takes the parameter's value with its JSON type (so
   "{priority}" can become 100); placeholders inside longer strings are
   replaced by the value's string form.
3. Builds a PolicyDefinition from the result.

Substitution is structural, not textual, so a value containing quotes or
braces cannot break the document.
"""

from __future__ import annotations

__all__ = [
    "expand_template",
    "resolve_parameters",
]

import re
from typing import Any

from pydantic import ValidationError

from policy_pdp.exceptions import PolicyValidationError
from policy_pdp.pdp.policy import PolicyDefinition, PolicyParameter, PolicyTemplate
from policy_pdp.utils.file_helpers import format_validation_errors

_PLACEHOLDER = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)\}")

_TYPE_CHECKS: dict[str, tuple[type, ...]] = {
    "string": (str,),
    "number": (int, float),
    "boolean": (bool,),
    "array": (list, tuple),
}


def _type_matches(parameter: PolicyParameter, value: Any) -> bool:
    if parameter.type == "number" and isinstance(value, bool):
        return False
    return isinstance(value, _TYPE_CHECKS[parameter.type])


def resolve_parameters(template: PolicyTemplate, supplied: dict[str, Any]) -> dict[str, Any]:
    """Apply defaults and check supplied parameter values.

    Args:
        template: Template declaring the parameters.
        supplied: Caller's values.

    Returns:
        Complete parameter mapping.

    Raises:
        PolicyValidationError: Listing every parameter problem.
    """
    declared = {p.name: p for p in template.parameters}
    errors = [f"Unknown parameter: {name}" for name in supplied if name not in declared]
    values: dict[str, Any] = {}

    for name, parameter in declared.items():
        if name in supplied:
            value = supplied[name]
        elif parameter.default_value is not None:
            value = parameter.default_value
        elif parameter.required:
            errors.append(f"Missing required parameter: {name}")
            continue
        else:
            continue

        if not _type_matches(parameter, value):
            errors.append(f"Parameter {name} must be of type {parameter.type}")
        elif parameter.allowed_values is not None and value not in parameter.allowed_values:
            errors.append(f"Parameter {name} must be one of {parameter.allowed_values}")
        else:
            values[name] = value

    if errors:
        raise PolicyValidationError(f"Invalid parameters for template '{template.name}'", errors)
    return values


def _replace_text(text: str, values: dict[str, Any]) -> str:
    def replace(match: re.Match[str]) -> str:
        name = match.group(1)
        return str(values[name]) if name in values else match.group(0)

    return _PLACEHOLDER.sub(replace, text)


def _substitute(node: Any, values: dict[str, Any]) -> Any:
    if isinstance(node, dict):
        return {_replace_text(str(k), values): _substitute(v, values) for k, v in node.items()}
    if isinstance(node, list):
        return [_substitute(item, values) for item in node]
    if not isinstance(node, str):
        return node

    # A string that is exactly one placeholder keeps the value's JSON type
    whole = _PLACEHOLDER.fullmatch(node)
    if whole and whole.group(1) in values:
        return values[whole.group(1)]
    return _replace_text(node, values)


def expand_template(template: PolicyTemplate, supplied: dict[str, Any]) -> PolicyDefinition:
    """Instantiate a template into a policy definition.

    Args:
        template: Template to expand.
        supplied: Parameter values.

    Returns:
        The expanded definition (not yet validated against engine options).

    Raises:
        PolicyValidationError: If parameters are invalid or the expanded
            document is not a valid definition.
    """
    values = resolve_parameters(template, supplied)
    document = _substitute(template.template, values)
    try:
        return PolicyDefinition.model_validate(document)
    except ValidationError as e:
        raise PolicyValidationError(
            f"Template '{template.name}' does not expand to a valid policy",
            format_validation_errors(e),
        ) from e

"""Attribute conditions for policies.

A policy's conditions map attribute names to a Condition. All conditions
must hold (AND); a request lacking an attribute fails that condition.

Condition shapes (raw JSON form -> variant):
    "eu-west" / true / 42      -> LiteralCondition
    {"min": 3, "max": 5}       -> RangeCondition
    {"contains": "admin"}      -> ContainsCondition
    {"in": ["a", "b"]}         -> InSetCondition
    ["a", "b"]                 -> ArrayCondition

The shape is decided once, when a policy definition is built. Any other
shape is rejected there rather than silently never matching at runtime.

Comparisons use a canonical string form: booleans render as "true"/"false",
integral floats render without a fractional part, everything else uses str().
"""

from __future__ import annotations

__all__ = [
    "ArrayCondition",
    "Condition",
    "ConditionResult",
    "ContainsCondition",
    "InSetCondition",
    "LiteralCondition",
    "RangeCondition",
    "ScalarValue",
    "condition_complexity",
    "condition_to_raw",
    "evaluate_condition",
    "evaluate_conditions",
    "parse_condition",
    "parse_conditions",
]

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator

from policy_pdp.constants import (
    CONDITION_DEPTH_PENALTY,
    CONDITION_MAX_NESTING_DEPTH,
    NUMERIC_TOLERANCE,
)

ScalarValue = bool | int | float | str


# =============================================================================
# Condition Variants
# =============================================================================


class LiteralCondition(BaseModel):
    """Attribute must equal a scalar.

    - str: attribute's string form must be equal
    - bool: attribute must be a bool with the same value
    - int/float: attribute must be numeric (or a numeric string) within 1e-4
    """

    kind: Literal["literal"] = "literal"
    value: ScalarValue

    model_config = ConfigDict(frozen=True)


class RangeCondition(BaseModel):
    """Numeric attribute must lie in [min, max] inclusive."""

    kind: Literal["range"] = "range"
    min: float
    max: float

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def check_bounds(self) -> "RangeCondition":
        """Reject an empty range."""
        if self.min > self.max:
            raise ValueError(f"Range min ({self.min}) must not exceed max ({self.max})")
        return self


class ContainsCondition(BaseModel):
    """Collection attribute must contain value; scalar attribute must contain it as substring."""

    kind: Literal["contains"] = "contains"
    value: ScalarValue

    model_config = ConfigDict(frozen=True)


class InSetCondition(BaseModel):
    """Attribute's string form must equal one of values."""

    kind: Literal["in"] = "in"
    values: list[ScalarValue]

    model_config = ConfigDict(frozen=True)


class ArrayCondition(BaseModel):
    """Attribute's string form must be a member of values (bare-list form)."""

    kind: Literal["array"] = "array"
    values: list[ScalarValue]

    model_config = ConfigDict(frozen=True)


Condition = Annotated[
    Union[LiteralCondition, RangeCondition, ContainsCondition, InSetCondition, ArrayCondition],
    Field(discriminator="kind"),
]

_condition_adapter: TypeAdapter[Condition] = TypeAdapter(Condition)

_CONDITION_TYPES = (
    LiteralCondition,
    RangeCondition,
    ContainsCondition,
    InSetCondition,
    ArrayCondition,
)


# =============================================================================
# Parsing
# =============================================================================


def _require_scalar(value: Any, where: str) -> ScalarValue:
    if isinstance(value, (bool, int, float, str)):
        return value
    raise ValueError(f"{where} must be a string, number or boolean, got {type(value).__name__}")


def _require_number(value: Any, where: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{where} must be a number, got {type(value).__name__}")
    return float(value)


def parse_condition(raw: Any) -> Condition:
    """Build the condition variant for a raw JSON value.

    Args:
        raw: Scalar, list, or dict in one of the recognised shapes. An
            already-built variant, or a dict carrying a "kind" tag, is
            accepted as well.

    Returns:
        The matching condition variant.

    Raises:
        ValueError: If the shape is not recognised.
    """
    if isinstance(raw, _CONDITION_TYPES):
        return raw
    if isinstance(raw, (bool, int, float, str)):
        return LiteralCondition(value=raw)
    if isinstance(raw, (list, tuple)):
        return ArrayCondition(
            values=[_require_scalar(item, "Array condition item") for item in raw]
        )
    if isinstance(raw, Mapping):
        keys = set(raw)
        if "kind" in keys:
            return _condition_adapter.validate_python(dict(raw))
        if keys == {"min", "max"}:
            return RangeCondition(
                min=_require_number(raw["min"], "Range min"),
                max=_require_number(raw["max"], "Range max"),
            )
        if keys == {"contains"}:
            return ContainsCondition(value=_require_scalar(raw["contains"], "Contains value"))
        if keys == {"in"}:
            members = raw["in"]
            if not isinstance(members, (list, tuple)):
                raise ValueError("'in' condition requires a list of values")
            return InSetCondition(
                values=[_require_scalar(item, "'in' condition item") for item in members]
            )
        raise ValueError(
            f"Unrecognized condition shape with keys {sorted(keys)}; "
            "expected {min, max}, {contains} or {in}"
        )
    raise ValueError(f"Unsupported condition value of type {type(raw).__name__}")


def parse_conditions(raw: Mapping[str, Any] | None) -> dict[str, Condition]:
    """Parse a whole conditions map, naming the offending key on failure.

    Raises:
        ValueError: If any condition has an unrecognised shape.
    """
    parsed: dict[str, Condition] = {}
    for key, value in (raw or {}).items():
        try:
            parsed[key] = parse_condition(value)
        except ValueError as e:
            raise ValueError(f"Condition '{key}': {e}") from e
    return parsed


def condition_to_raw(condition: Condition) -> Any:
    """Inverse of parse_condition: the JSON shape an author would write."""
    if isinstance(condition, LiteralCondition):
        return condition.value
    if isinstance(condition, RangeCondition):
        return {"min": _compact_number(condition.min), "max": _compact_number(condition.max)}
    if isinstance(condition, ContainsCondition):
        return {"contains": condition.value}
    if isinstance(condition, InSetCondition):
        return {"in": list(condition.values)}
    return list(condition.values)


def condition_complexity(raw: Any, depth: int = 0) -> int:
    """Complexity score of a raw conditions structure.

    Each node scores 1 plus the scores of its children. A node nested deeper
    than the maximum depth scores a flat penalty.
    """
    if depth > CONDITION_MAX_NESTING_DEPTH:
        return CONDITION_DEPTH_PENALTY
    if isinstance(raw, Mapping):
        return 1 + sum(condition_complexity(v, depth + 1) for v in raw.values())
    if isinstance(raw, (list, tuple)):
        return 1 + sum(condition_complexity(v, depth + 1) for v in raw)
    return 1


# =============================================================================
# Evaluation
# =============================================================================


@dataclass(frozen=True, slots=True)
class ConditionResult:
    """Outcome of evaluating a conditions map.

    Attributes:
        matched: True when every condition held.
        failed_keys: Every key whose condition failed, in map order.
    """

    matched: bool
    failed_keys: tuple[str, ...] = field(default_factory=tuple)


def _compact_number(value: float) -> int | float:
    return int(value) if value.is_integer() else value


def _as_string(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _is_collection(value: Any) -> bool:
    return isinstance(value, (list, tuple, set, frozenset))


def evaluate_condition(condition: Condition, attribute: Any) -> bool:
    """Check one condition against one attribute value.

    Args:
        condition: Parsed condition variant.
        attribute: The request attribute value (may be None).

    Returns:
        True if the attribute satisfies the condition.
    """
    if isinstance(condition, LiteralCondition):
        expected = condition.value
        if isinstance(expected, bool):
            return isinstance(attribute, bool) and attribute == expected
        if isinstance(expected, str):
            return _as_string(attribute) == expected
        actual = _as_number(attribute)
        return actual is not None and abs(actual - expected) < NUMERIC_TOLERANCE

    if isinstance(condition, RangeCondition):
        actual = _as_number(attribute)
        return actual is not None and condition.min <= actual <= condition.max

    if isinstance(condition, ContainsCondition):
        needle = _as_string(condition.value)
        if _is_collection(attribute):
            return any(_as_string(item) == needle for item in attribute)
        haystack = _as_string(attribute)
        return haystack is not None and needle is not None and needle in haystack

    # InSetCondition and ArrayCondition share membership semantics
    actual_str = _as_string(attribute)
    return actual_str is not None and actual_str in {_as_string(v) for v in condition.values}


def evaluate_conditions(
    conditions: Mapping[str, Condition], attributes: Mapping[str, Any]
) -> ConditionResult:
    """Evaluate every condition against the request attributes.

    All conditions are checked so that every failing key is reported.

    Args:
        conditions: Attribute name -> condition.
        attributes: Request attributes.

    Returns:
        ConditionResult with matched flag and failing keys.
    """
    failed = [
        key
        for key, condition in conditions.items()
        if key not in attributes or not evaluate_condition(condition, attributes[key])
    ]
    return ConditionResult(matched=not failed, failed_keys=tuple(failed))

"""Unit tests for attribute conditions: parsing, evaluation and complexity."""

import pytest

from policy_pdp.pdp.conditions import (
    ArrayCondition,
    ContainsCondition,
    InSetCondition,
    LiteralCondition,
    RangeCondition,
    condition_complexity,
    condition_to_raw,
    evaluate_condition,
    evaluate_conditions,
    parse_condition,
    parse_conditions,
)


# ============================================================================
# Tests: Parsing
# ============================================================================


class TestParseCondition:
    """Tests for turning raw JSON shapes into condition variants."""

    @pytest.mark.parametrize(
        "raw,expected_type",
        [
            ("eu-west", LiteralCondition),
            (True, LiteralCondition),
            (42, LiteralCondition),
            ({"min": 1, "max": 5}, RangeCondition),
            ({"contains": "admin"}, ContainsCondition),
            ({"in": ["a", "b"]}, InSetCondition),
            (["a", "b"], ArrayCondition),
        ],
    )
    def test_recognised_shapes(self, raw, expected_type) -> None:
        """Given a recognised shape, the matching variant is built."""
        # Act
        condition = parse_condition(raw)

        # Assert
        assert isinstance(condition, expected_type)

    @pytest.mark.parametrize(
        "raw",
        [
            {"gt": 5},
            {"min": 1},
            {"in": "not-a-list"},
            {"min": "low", "max": 5},
            None,
        ],
    )
    def test_unrecognised_shapes_are_rejected(self, raw) -> None:
        """Given an unknown shape, parsing raises ValueError."""
        # Act & Assert
        with pytest.raises(ValueError):
            parse_condition(raw)

    def test_inverted_range_is_rejected(self) -> None:
        """Given min > max, parsing fails."""
        # Act & Assert
        with pytest.raises(ValueError):
            parse_condition({"min": 5, "max": 1})

    def test_parse_conditions_names_offending_key(self) -> None:
        """Given a bad entry, the error names its key."""
        # Act & Assert
        with pytest.raises(ValueError, match="Condition 'level'"):
            parse_conditions({"region": "eu", "level": {"bogus": 1}})

    def test_raw_shape_round_trips(self) -> None:
        """Given parsed conditions, condition_to_raw restores the author's shape."""
        # Arrange
        raw = {
            "region": "eu",
            "level": {"min": 1, "max": 5},
            "roles": {"contains": "admin"},
            "tier": {"in": ["gold", "silver"]},
            "team": ["a", "b"],
        }

        # Act
        restored = {k: condition_to_raw(v) for k, v in parse_conditions(raw).items()}

        # Assert
        assert restored == raw


# ============================================================================
# Tests: Evaluation
# ============================================================================


class TestEvaluateCondition:
    """Tests for single-condition semantics."""

    def test_string_literal_compares_string_form(self) -> None:
        """Given a string literal, the attribute's string form must be equal."""
        # Arrange
        condition = parse_condition("42")

        # Act & Assert
        assert evaluate_condition(condition, 42) is True
        assert evaluate_condition(condition, "43") is False

    def test_numeric_literal_uses_tolerance(self) -> None:
        """Given a numeric literal, values within 1e-4 match."""
        # Arrange
        condition = parse_condition(3.5)

        # Act & Assert
        assert evaluate_condition(condition, 3.50001) is True
        assert evaluate_condition(condition, "3.5") is True
        assert evaluate_condition(condition, 3.6) is False
        assert evaluate_condition(condition, "abc") is False

    def test_boolean_literal_requires_boolean(self) -> None:
        """Given a boolean literal, only an equal boolean matches."""
        # Arrange
        condition = parse_condition(True)

        # Act & Assert
        assert evaluate_condition(condition, True) is True
        assert evaluate_condition(condition, 1) is False
        assert evaluate_condition(condition, "true") is False

    def test_range_is_inclusive(self) -> None:
        """Given a range, both bounds are included."""
        # Arrange
        condition = parse_condition({"min": 3, "max": 5})

        # Act & Assert
        assert evaluate_condition(condition, 3) is True
        assert evaluate_condition(condition, 5) is True
        assert evaluate_condition(condition, "4") is True
        assert evaluate_condition(condition, 6) is False
        assert evaluate_condition(condition, "high") is False

    def test_contains_on_collection_and_string(self) -> None:
        """Given contains, collections test membership and strings test substring."""
        # Arrange
        condition = parse_condition({"contains": "admin"})

        # Act & Assert
        assert evaluate_condition(condition, ["user", "admin"]) is True
        assert evaluate_condition(condition, ["user"]) is False
        assert evaluate_condition(condition, "sysadmin") is True

    def test_in_and_array_membership(self) -> None:
        """Given {"in": [...]} or a bare list, the attribute must be a member."""
        # Act & Assert
        assert evaluate_condition(parse_condition({"in": ["gold", "silver"]}), "gold") is True
        assert evaluate_condition(parse_condition(["gold", "silver"]), "bronze") is False
        assert evaluate_condition(parse_condition([1, 2]), 2) is True

    def test_none_attribute_never_matches(self) -> None:
        """Given a None attribute, no condition matches."""
        # Act & Assert
        assert evaluate_condition(parse_condition("x"), None) is False
        assert evaluate_condition(parse_condition({"min": 0, "max": 1}), None) is False


class TestEvaluateConditions:
    """Tests for the AND combination of conditions."""

    def test_all_conditions_must_hold(self) -> None:
        """Given several conditions, all must match."""
        # Arrange
        conditions = parse_conditions({"region": "eu", "level": {"min": 2, "max": 4}})

        # Act
        result = evaluate_conditions(conditions, {"region": "eu", "level": 3})

        # Assert
        assert result.matched is True
        assert result.failed_keys == ()

    def test_missing_attribute_fails_and_every_failure_is_reported(self) -> None:
        """Given a missing and a wrong attribute, both keys are reported."""
        # Arrange
        conditions = parse_conditions({"region": "eu", "level": {"min": 2, "max": 4}})

        # Act
        result = evaluate_conditions(conditions, {"level": 9})

        # Assert
        assert result.matched is False
        assert result.failed_keys == ("region", "level")


# ============================================================================
# Tests: Complexity
# ============================================================================


class TestConditionComplexity:
    """Tests for the complexity score used by validation."""

    def test_flat_map_scores_one_per_node(self) -> None:
        """Given a flat map of two scalars, score is 1 + 2."""
        # Act & Assert
        assert condition_complexity({"a": 1, "b": "x"}) == 3

    def test_nested_structures_add_children(self) -> None:
        """Given nested shapes, each node adds its children's scores."""
        # Act & Assert
        assert condition_complexity({"a": {"min": 1, "max": 2}, "b": ["x", "y"]}) == 7

    def test_deep_nesting_is_penalised(self) -> None:
        """Given nesting beyond the maximum depth, the deep node scores 100."""
        # Arrange
        raw: object = 1
        for _ in range(12):
            raw = [raw]

        # Act & Assert
        assert condition_complexity(raw) >= 100

"""Unit tests for resource/action pattern matching."""

import pytest

from policy_pdp.pdp.matcher import (
    actions_overlap,
    matches,
    matches_any,
    resources_overlap,
)


class TestMatches:
    """Tests for single-pattern matching."""

    @pytest.mark.parametrize(
        "pattern,value",
        [
            ("*", "anything/at/all"),
            ("documents/report", "documents/report"),
            ("documents/*", "documents/report"),
            ("documents/*", "documents/2026/q1/report"),
            ("device:*:screen", "device:42:screen"),
            ("*.pdf", "reports/summary.pdf"),
        ],
    )
    def test_matching_patterns(self, pattern: str, value: str) -> None:
        """Given a glob that covers the value, matches returns True."""
        # Act & Assert
        assert matches(pattern, value) is True

    @pytest.mark.parametrize(
        "pattern,value",
        [
            ("documents/*", "images/report"),
            ("documents/report", "documents/report2"),
            ("device:*:screen", "device:42:keyboard"),
        ],
    )
    def test_non_matching_patterns(self, pattern: str, value: str) -> None:
        """Given a glob that does not cover the value, matches returns False."""
        # Act & Assert
        assert matches(pattern, value) is False

    def test_matching_is_case_insensitive(self) -> None:
        """Given different casing, the pattern still matches."""
        # Act & Assert
        assert matches("Documents/*", "documents/REPORT") is True

    def test_regex_metacharacters_are_literal(self) -> None:
        """Given regex metacharacters in a pattern, they match only themselves."""
        # Act & Assert
        assert matches("reports/(q1).pdf", "reports/(q1).pdf") is True
        assert matches("reports/q1.pdf", "reports/q1Xpdf") is False

    def test_matches_any(self) -> None:
        """Given several patterns, one match is enough."""
        # Act & Assert
        assert matches_any(["images/*", "documents/*"], "documents/a") is True
        assert matches_any(["images/*"], "documents/a") is False
        assert matches_any([], "documents/a") is False


class TestOverlap:
    """Tests for pattern overlap used by conflict detection."""

    def test_wildcard_overlaps_everything(self) -> None:
        """Given "*" on either side, patterns overlap."""
        # Act & Assert
        assert resources_overlap("*", "documents/a") is True
        assert resources_overlap("documents/a", "*") is True

    def test_glob_overlaps_concrete_value_symmetrically(self) -> None:
        """Given a glob and a value it covers, overlap holds in both orders."""
        # Act & Assert
        assert resources_overlap("documents/*", "documents/a") is True
        assert resources_overlap("documents/a", "documents/*") is True

    def test_disjoint_patterns_do_not_overlap(self) -> None:
        """Given unrelated patterns, no overlap."""
        # Act & Assert
        assert resources_overlap("documents/*", "images/*") is False
        assert actions_overlap("read", "write") is False

    def test_actions_overlap(self) -> None:
        """Given matching action patterns, overlap holds."""
        # Act & Assert
        assert actions_overlap("read*", "readMetadata") is True

"""Pattern matching for policy resources and actions.

Patterns are flat globs:
- "*" alone matches every value
- "*" elsewhere matches zero or more characters, including ":" and "/"
- every other character is literal
- matching is anchored at both ends and case-insensitive

Resources are not path-structured: "device:*" matches "device:1:screen".
"""

from __future__ import annotations

__all__ = [
    "actions_overlap",
    "compile_pattern",
    "matches",
    "matches_any",
    "resources_overlap",
]

import re
from collections.abc import Iterable
from functools import lru_cache

from policy_pdp.constants import WILDCARD


@lru_cache(maxsize=1024)
def compile_pattern(pattern: str) -> re.Pattern[str]:
    """Compile a glob pattern to an anchored, case-insensitive regex.

    Args:
        pattern: Glob pattern such as "device:*".

    Returns:
        Compiled regular expression.
    """
    regex = ".*".join(re.escape(part) for part in pattern.split(WILDCARD))
    return re.compile(f"^{regex}$", re.IGNORECASE | re.DOTALL)


def matches(pattern: str, value: str) -> bool:
    """Check whether value matches a resource or action pattern.

    Args:
        pattern: Glob pattern.
        value: Concrete resource or action.

    Returns:
        True if pattern is "*", equals value, or globs to value.
    """
    if pattern == WILDCARD or pattern == value:
        return True
    return compile_pattern(pattern).match(value) is not None


def matches_any(patterns: Iterable[str], value: str) -> bool:
    """True if any pattern in patterns matches value."""
    return any(matches(pattern, value) for pattern in patterns)


def _patterns_overlap(first: str, second: str) -> bool:
    if first == second or first == WILDCARD or second == WILDCARD:
        return True
    return matches(first, second) or matches(second, first)


def resources_overlap(first: str, second: str) -> bool:
    """Symmetric overlap test for two resource patterns.

    Either pattern is treated as a literal and matched against the other.
    Two patterns with wildcards in different places (e.g. "a*" and "*b")
    are not detected as overlapping.
    """
    return _patterns_overlap(first, second)


def actions_overlap(first: str, second: str) -> bool:
    """Symmetric overlap test for two action patterns."""
    return _patterns_overlap(first, second)

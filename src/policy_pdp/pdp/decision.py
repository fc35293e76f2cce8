"""Policy effect enum.

A policy either grants (Allow) or forbids (Deny) the actions it lists.
"""

from __future__ import annotations

__all__ = ["Effect"]

from enum import Enum


class Effect(str, Enum):
    """Effect of a policy when it matches.

    Inherits from str for easy serialization and comparison. Lookup is
    case-insensitive so "allow", "ALLOW" and "Allow" all parse.

    Attributes:
        ALLOW: Matching requests are permitted unless a Deny also matches.
        DENY: Matching requests are refused; Deny always dominates.
    """

    ALLOW = "Allow"
    DENY = "Deny"

    @classmethod
    def _missing_(cls, value: object) -> "Effect | None":
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.lower():
                    return member
        return None

"""Logging helper utilities.

- serialize_audit_event: consistent model_dump for audit events
- elapsed_ms: millisecond latency from a perf_counter start
"""

from __future__ import annotations

__all__ = [
    "elapsed_ms",
    "serialize_audit_event",
]

import time
from typing import Any

from pydantic import BaseModel


def serialize_audit_event(event: BaseModel) -> dict[str, Any]:
    """Serialize a Pydantic event model for audit logging.

    - Excludes the 'time' field (added by ISO8601Formatter at log time)
    - Excludes None values for cleaner logs
    - Uses JSON mode so datetimes and enums are plain strings

    Args:
        event: Pydantic model instance (e.g., AuditEvent).

    Returns:
        dict: Serialized event data ready for logging.

    Example:
        >>> event = AuditEvent(action="policy.created", resource_type="Policy", ...)
        >>> serialize_audit_event(event)
        {"action": "policy.created", "resource_type": "Policy", ...}
    """
    return event.model_dump(mode="json", exclude={"time"}, exclude_none=True)


def elapsed_ms(start: float) -> float:
    """Milliseconds since a time.perf_counter() reading, rounded to 3 places."""
    return round((time.perf_counter() - start) * 1000, 3)

"""Protocol for audit sinks.

Any backend (file, database, message bus) can receive audit entries by
implementing log_action. Structural subtyping: no inheritance required.
"""

from __future__ import annotations

__all__ = ["AuditSink"]

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class AuditSink(Protocol):
    """Receives one entry per audited action.

    Failures raised here never fail the operation being audited; the
    caller logs and swallows them.
    """

    async def log_action(
        self,
        action: str,
        resource_type: str,
        resource_id: str,
        before: dict[str, Any] | None = None,
        after: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Record an audited action.

        Args:
            action: Action name, e.g. "policy.created".
            resource_type: Kind of entity acted upon.
            resource_id: Id of the entity acted upon.
            before: Entity state before the change.
            after: Entity state after the change.
            metadata: Free-form details.
        """
        ...

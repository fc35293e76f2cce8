"""Failure-isolating wrapper around an AuditSink.

Audit writes are fire-and-forget from the engine's point of view: a failing
sink is reported on the system logger and never changes the outcome of the
operation being audited.
"""

from __future__ import annotations

__all__ = ["AuditTrail"]

import logging
from enum import Enum
from typing import Any

from policy_pdp.telemetry.audit.protocol import AuditSink
from policy_pdp.telemetry.system.system_logger import get_system_logger


class AuditTrail:
    """Forwards audit entries to a sink, swallowing and logging its failures.

    Attributes:
        enabled: When False, nothing is forwarded.
    """

    def __init__(
        self,
        sink: AuditSink | None,
        *,
        enabled: bool = True,
        system_logger: logging.Logger | None = None,
    ) -> None:
        self._sink = sink
        self.enabled = enabled and sink is not None
        self._system_logger = system_logger or get_system_logger()

    async def record(
        self,
        action: str | Enum,
        resource_type: str,
        resource_id: str,
        *,
        before: dict[str, Any] | None = None,
        after: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Send one entry to the sink.

        Args:
            action: Action name, e.g. "policy.created".
            resource_type: Kind of entity acted upon.
            resource_id: Id of the entity acted upon.
            before: Entity state before the change.
            after: Entity state after the change.
            metadata: Free-form details.
        """
        if not self.enabled or self._sink is None:
            return
        if isinstance(action, Enum):
            action = action.value
        try:
            await self._sink.log_action(
                action,
                resource_type,
                resource_id,
                before=before,
                after=after,
                metadata=metadata,
            )
        except Exception as e:
            self._system_logger.warning(
                {
                    "event": "audit_write_failed",
                    "message": f"Audit write failed for {action} on {resource_type} {resource_id}: {e}",
                    "action": action,
                    "error_type": type(e).__name__,
                }
            )

"""JSONL audit sink.

Writes one line per audited action to <log_dir>/audit/decisions.jsonl.
"""

from __future__ import annotations

__all__ = [
    "JsonlAuditSink",
    "create_audit_logger",
]

import logging
from pathlib import Path
from typing import Any

from policy_pdp.constants import APP_NAME
from policy_pdp.telemetry.models.audit import AuditEvent
from policy_pdp.utils.logging.logger_setup import setup_jsonl_logger
from policy_pdp.utils.logging.logging_helpers import serialize_audit_event


def create_audit_logger(log_path: Path) -> logging.Logger:
    """Create logger for audit events.

    Args:
        log_path: Path to decisions.jsonl file.

    Returns:
        Configured logger instance.
    """
    return setup_jsonl_logger(f"{APP_NAME}.audit", log_path, log_level=logging.INFO)


class JsonlAuditSink:
    """AuditSink that writes AuditEvent records through a JSONL logger."""

    def __init__(self, logger: logging.Logger) -> None:
        """Initialize the sink.

        Args:
            logger: Logger created by create_audit_logger().
        """
        self._logger = logger

    @classmethod
    def from_path(cls, log_path: Path) -> "JsonlAuditSink":
        """Create a sink writing to log_path."""
        return cls(create_audit_logger(log_path))

    async def log_action(
        self,
        action: str,
        resource_type: str,
        resource_id: str,
        before: dict[str, Any] | None = None,
        after: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        event = AuditEvent(
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            before=before,
            after=after,
            metadata=metadata,
        )
        self._logger.info(serialize_audit_event(event))

    def close(self) -> None:
        """Close the underlying file handlers."""
        for handler in self._logger.handlers:
            handler.close()
        self._logger.handlers.clear()

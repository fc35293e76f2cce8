"""System logger for operational events.

Provides a singleton logger for events that are not part of the audit trail
(e.g., audit sink failures, metrics failures, condition evaluation errors).

Logging strategy:
- Console (stderr): INFO and above, human-readable
- File (system.jsonl): WARNING and above only, once configured
"""

from __future__ import annotations

__all__ = [
    "ConsoleFormatter",
    "configure_system_logger_file",
    "get_system_logger",
]

import logging
import sys
from pathlib import Path

from policy_pdp.constants import APP_NAME
from policy_pdp.utils.logging.iso_formatter import ISO8601Formatter
from policy_pdp.utils.logging.logger_setup import ensure_secure_log_directory


class ConsoleFormatter(logging.Formatter):
    """Human-readable formatter for console output.

    Extracts 'message' or 'event' field from dict messages.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record for console output.

        Args:
            record: The log record to format.

        Returns:
            str: Formatted log message with level prefix.
        """
        if isinstance(record.msg, dict):
            msg = record.msg.get("message") or record.msg.get("event", "")
            return f"{record.levelname}: {msg}"
        return f"{record.levelname}: {record.getMessage()}"


# Module-level singleton logger
_system_logger: logging.Logger | None = None
_file_handler_configured: bool = False


def get_system_logger() -> logging.Logger:
    """Get the singleton system logger instance.

    Creates the logger on first call with a stderr handler only.
    A file handler is added later via configure_system_logger_file().

    Returns:
        logging.Logger: Configured system logger instance.

    Example:
        >>> logger = get_system_logger()
        >>> logger.warning({"event": "audit_write_failed", "message": "..."})
    """
    global _system_logger

    if _system_logger is not None:
        return _system_logger

    _system_logger = logging.getLogger(f"{APP_NAME}.system")
    _system_logger.setLevel(logging.INFO)
    _system_logger.propagate = False  # Don't propagate to root logger

    for handler in _system_logger.handlers:
        handler.close()
    _system_logger.handlers.clear()

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(logging.INFO)
    stderr_handler.setFormatter(ConsoleFormatter())
    _system_logger.addHandler(stderr_handler)

    return _system_logger


def configure_system_logger_file(log_path: Path, console_level: str = "INFO") -> None:
    """Attach the system.jsonl file handler and set the console level.

    Only the first call adds a file handler; later calls just update the
    console level.

    Args:
        log_path: Path to the system log file.
        console_level: Level name for the stderr handler.
    """
    global _file_handler_configured

    logger = get_system_logger()
    for handler in logger.handlers:
        if not isinstance(handler, logging.FileHandler):
            handler.setLevel(console_level)

    if _file_handler_configured:
        return

    try:
        ensure_secure_log_directory(log_path)
    except OSError:
        return  # stderr still works

    file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
    file_handler.setLevel(logging.WARNING)
    file_handler.setFormatter(ISO8601Formatter())
    logger.addHandler(file_handler)

    _file_handler_configured = True

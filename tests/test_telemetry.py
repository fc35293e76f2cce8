"""Unit tests for the audit trail, JSONL sink and log formatting."""

import json
import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from policy_pdp.config import PolicyEngineOptions
from policy_pdp.service import create_service
from policy_pdp.telemetry.audit.jsonl_sink import JsonlAuditSink
from policy_pdp.telemetry.audit.protocol import AuditSink
from policy_pdp.telemetry.audit.trail import AuditTrail
from policy_pdp.telemetry.models.audit import AuditAction
from policy_pdp.telemetry.system.system_logger import ConsoleFormatter
from policy_pdp.utils.logging.iso_formatter import ISO8601Formatter


def _record(msg) -> logging.LogRecord:
    return logging.LogRecord("test", logging.WARNING, __file__, 1, msg, None, None)


# ============================================================================
# Tests: AuditTrail
# ============================================================================


class TestAuditTrail:
    """Tests for failure isolation and the enabled switch."""

    @pytest.mark.asyncio
    async def test_enum_action_is_sent_as_value(self, audit_sink) -> None:
        """Given an AuditAction, the sink receives its string value."""
        # Arrange
        trail = AuditTrail(audit_sink, system_logger=MagicMock())

        # Act
        await trail.record(AuditAction.POLICY_CREATED, "Policy", "p1", after={"name": "x"})

        # Assert
        assert audit_sink.events[0]["action"] == "policy.created"
        assert type(audit_sink.events[0]["action"]) is str
        assert isinstance(audit_sink, AuditSink)

    @pytest.mark.asyncio
    async def test_sink_failure_is_logged_not_raised(self) -> None:
        """Given a failing sink, a warning is logged and nothing propagates."""
        # Arrange
        sink = MagicMock()
        sink.log_action = AsyncMock(side_effect=RuntimeError("disk full"))
        logger = MagicMock()
        trail = AuditTrail(sink, system_logger=logger)

        # Act
        await trail.record("policy.created", "Policy", "p1")

        # Assert
        logger.warning.assert_called_once()
        payload = logger.warning.call_args[0][0]
        assert payload["event"] == "audit_write_failed"
        assert payload["error_type"] == "RuntimeError"

    @pytest.mark.asyncio
    async def test_disabled_trail_writes_nothing(self, audit_sink) -> None:
        """Given enabled=False, the sink is never called."""
        # Arrange
        trail = AuditTrail(audit_sink, enabled=False, system_logger=MagicMock())

        # Act
        await trail.record("policy.created", "Policy", "p1")

        # Assert
        assert audit_sink.events == []
        assert trail.enabled is False

    def test_missing_sink_disables_trail(self) -> None:
        """Given no sink, the trail is disabled."""
        # Act & Assert
        assert AuditTrail(None, system_logger=MagicMock()).enabled is False

    @pytest.mark.asyncio
    async def test_decision_survives_audit_failure(self, make_definition, make_context) -> None:
        """Given a failing audit sink, evaluation still returns its decision."""
        # Arrange
        sink = MagicMock()
        sink.log_action = AsyncMock(side_effect=OSError("read-only"))
        service = create_service(
            PolicyEngineOptions(evaluation_cache_ttl_seconds=0),
            audit_sink=sink,
            system_logger=MagicMock(),
        )
        policy = await service.create_policy(make_definition("read-docs"))
        await service.assign_policy_to_user("alice", policy.id)

        # Act
        result = await service.evaluate_user_access("alice", make_context())

        # Assert
        assert result.is_allowed is True


# ============================================================================
# Tests: JSONL Output
# ============================================================================


class TestJsonlAuditSink:
    """Tests for decisions.jsonl writing."""

    @pytest.mark.asyncio
    async def test_writes_one_line_per_action(self, tmp_path) -> None:
        """Given two actions, two JSON lines with timestamps are written."""
        # Arrange
        log_path = tmp_path / "audit" / "decisions.jsonl"
        sink = JsonlAuditSink.from_path(log_path)

        # Act
        await sink.log_action("policy.created", "Policy", "p1", after={"name": "read-docs"})
        await sink.log_action("policy.deleted", "Policy", "p1")
        sink.close()

        # Assert
        lines = [json.loads(line) for line in log_path.read_text().splitlines()]
        assert [entry["action"] for entry in lines] == ["policy.created", "policy.deleted"]
        assert lines[0]["after"] == {"name": "read-docs"}
        assert lines[0]["time"].endswith("Z")
        assert "before" not in lines[1]


class TestFormatters:
    """Tests for the JSONL and console formatters."""

    def test_iso_formatter_dict_message(self) -> None:
        """Given a dict message, its keys follow time and level."""
        # Act
        output = json.loads(ISO8601Formatter().format(_record({"event": "x", "message": "m"})))

        # Assert
        assert list(output)[:2] == ["time", "level"]
        assert output["event"] == "x"
        assert output["level"] == "WARNING"

    def test_iso_formatter_plain_message(self) -> None:
        """Given a string message, it is wrapped under "message"."""
        # Act
        output = json.loads(ISO8601Formatter().format(_record("plain text")))

        # Assert
        assert output["message"] == "plain text"

    def test_console_formatter_prefers_message(self) -> None:
        """Given a dict message, the console shows its message field."""
        # Act & Assert
        assert ConsoleFormatter().format(_record({"event": "e", "message": "m"})) == "WARNING: m"
        assert ConsoleFormatter().format(_record({"event": "e"})) == "WARNING: e"

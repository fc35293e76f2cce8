"""Pydantic models for telemetry events."""

from policy_pdp.telemetry.models.audit import AuditAction, AuditEvent

__all__ = ["AuditAction", "AuditEvent"]

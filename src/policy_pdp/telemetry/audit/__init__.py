"""Audit trail for decisions and mutations.

- protocol.py: AuditSink protocol (what the engine needs)
- jsonl_sink.py: JsonlAuditSink writing <log_dir>/audit/decisions.jsonl
- trail.py: AuditTrail, the failure-swallowing wrapper the engine calls
"""

from policy_pdp.telemetry.audit.jsonl_sink import JsonlAuditSink, create_audit_logger
from policy_pdp.telemetry.audit.protocol import AuditSink
from policy_pdp.telemetry.audit.trail import AuditTrail

__all__ = [
    "AuditSink",
    "AuditTrail",
    "JsonlAuditSink",
    "create_audit_logger",
]

"""Telemetry domain: audit trail, metrics, and system events.

Structure:
    audit/          Audit trail of decisions and mutations (decisions.jsonl)
                    - AuditSink: protocol consumed by the engine
                    - JsonlAuditSink: file-backed implementation
    metrics/        Evaluation counters and latency timers
                    - MetricsSink: protocol consumed by the engine
                    - InMemoryMetrics: process-local implementation
    models/         Pydantic models for audit events
    system/         System operational logs (stderr, system.jsonl)
"""

__all__: list[str] = []

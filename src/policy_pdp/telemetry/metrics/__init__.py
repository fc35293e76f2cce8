"""Evaluation metrics.

- protocol.py: MetricsSink protocol and TimerSummary
- memory.py: InMemoryMetrics (process-local) and NullMetrics
- recorder.py: MetricsRecorder, the failure-swallowing wrapper
"""

from policy_pdp.telemetry.metrics.memory import InMemoryMetrics, NullMetrics
from policy_pdp.telemetry.metrics.protocol import MetricsSink, TimerSummary
from policy_pdp.telemetry.metrics.recorder import MetricsRecorder

__all__ = [
    "InMemoryMetrics",
    "MetricsRecorder",
    "MetricsSink",
    "NullMetrics",
    "TimerSummary",
]

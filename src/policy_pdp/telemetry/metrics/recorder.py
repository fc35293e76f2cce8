"""Failure-isolating wrapper around a MetricsSink."""

from __future__ import annotations

__all__ = ["MetricsRecorder"]

import logging

from policy_pdp.constants import (
    METRIC_EVALUATION_ALLOW,
    METRIC_EVALUATION_DENY,
    METRIC_EVALUATION_TIMER,
)
from policy_pdp.telemetry.metrics.protocol import MetricsSink, TimerSummary
from policy_pdp.telemetry.system.system_logger import get_system_logger


class MetricsRecorder:
    """Records evaluation outcomes; sink failures are logged and swallowed.

    Reads (usage statistics) go straight to the sink and do propagate errors,
    since analytics callers asked for the numbers explicitly.
    """

    def __init__(self, sink: MetricsSink, system_logger: logging.Logger | None = None) -> None:
        self.sink = sink
        self._system_logger = system_logger or get_system_logger()

    async def record_match(self, policy_id: str, allowed: bool, duration_ms: float) -> None:
        """Record a matched policy: allow/deny counter and latency timer."""
        tags = {"policy_id": policy_id}
        name = METRIC_EVALUATION_ALLOW if allowed else METRIC_EVALUATION_DENY
        try:
            await self.sink.record_counter(name, 1, tags)
            await self.sink.record_timer(METRIC_EVALUATION_TIMER, duration_ms, tags)
        except Exception as e:
            self._system_logger.warning(
                {
                    "event": "metrics_write_failed",
                    "message": f"Metrics write failed for policy {policy_id}: {e}",
                    "policy_id": policy_id,
                    "error_type": type(e).__name__,
                }
            )

    async def usage(self, policy_id: str) -> tuple[float, float, TimerSummary]:
        """Allow count, deny count and timer summary for one policy."""
        tags = {"policy_id": policy_id}
        allows = await self.sink.get_counter_value(METRIC_EVALUATION_ALLOW, tags)
        denies = await self.sink.get_counter_value(METRIC_EVALUATION_DENY, tags)
        timer = await self.sink.get_timer_summary(METRIC_EVALUATION_TIMER, tags)
        return allows, denies, timer

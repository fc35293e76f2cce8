"""Unit tests for the TTL cache and metrics sinks."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from policy_pdp.cache.memory import InMemoryCache
from policy_pdp.cache.protocol import Cache
from policy_pdp.config import PolicyEngineOptions
from policy_pdp.service import create_service
from policy_pdp.telemetry.metrics.memory import InMemoryMetrics, NullMetrics
from policy_pdp.telemetry.metrics.protocol import MetricsSink, TimerSummary
from policy_pdp.telemetry.metrics.recorder import MetricsRecorder


class FakeMonotonic:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class TestInMemoryCache:
    """Tests for TTL expiry."""

    @pytest.mark.asyncio
    async def test_entry_expires(self) -> None:
        """Given an entry past its TTL, it is dropped on read."""
        # Arrange
        clock = FakeMonotonic()
        cache = InMemoryCache(clock=clock)
        await cache.set("k", "v", 10)

        # Act
        fresh = await cache.get("k")
        clock.now += 10
        expired = await cache.get("k")

        # Assert
        assert fresh == "v"
        assert expired is None
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_zero_ttl_disables_caching(self) -> None:
        """Given ttl 0, nothing is stored."""
        # Arrange
        cache = InMemoryCache()

        # Act
        await cache.set("k", "v", 0)

        # Assert
        assert await cache.get("k") is None
        assert isinstance(cache, Cache)

    @pytest.mark.asyncio
    async def test_remove(self) -> None:
        """Given a removed key, it is gone; removing a missing key is a no-op."""
        # Arrange
        cache = InMemoryCache()
        await cache.set("k", "v", 60)

        # Act
        await cache.remove("k")
        await cache.remove("missing")

        # Assert
        assert await cache.get("k") is None


class TestMetricsSinks:
    """Tests for InMemoryMetrics and NullMetrics."""

    @pytest.mark.asyncio
    async def test_counters_are_keyed_by_tags(self) -> None:
        """Given the same counter with different tags, values are separate."""
        # Arrange
        metrics = InMemoryMetrics()

        # Act
        await metrics.record_counter("hits", 1, {"policy_id": "a"})
        await metrics.record_counter("hits", 2, {"policy_id": "a"})
        await metrics.record_counter("hits", 5, {"policy_id": "b"})

        # Assert
        assert await metrics.get_counter_value("hits", {"policy_id": "a"}) == 3
        assert await metrics.get_counter_value("hits", {"policy_id": "b"}) == 5
        assert await metrics.get_counter_value("hits") == 0

    @pytest.mark.asyncio
    async def test_timer_summary(self) -> None:
        """Given three timings, count, min, max and average are aggregated."""
        # Arrange
        metrics = InMemoryMetrics()

        # Act
        for duration in (1.0, 3.0, 5.0):
            await metrics.record_timer("eval", duration)
        summary = await metrics.get_timer_summary("eval")

        # Assert
        assert summary.count == 3
        assert summary.min_ms == 1.0
        assert summary.max_ms == 5.0
        assert summary.average_ms == 3.0

    def test_empty_summary_average(self) -> None:
        """Given no timings, the average is zero."""
        # Act & Assert
        assert TimerSummary().average_ms == 0.0

    @pytest.mark.asyncio
    async def test_null_metrics_report_zero(self) -> None:
        """Given NullMetrics, writes are dropped and reads are zero."""
        # Arrange
        metrics = NullMetrics()

        # Act
        await metrics.record_counter("hits")
        await metrics.record_timer("eval", 2.0)

        # Assert
        assert await metrics.get_counter_value("hits") == 0
        assert (await metrics.get_timer_summary("eval")).count == 0
        assert isinstance(metrics, MetricsSink)


class TestMetricsRecorder:
    """Tests for the failure-isolating recorder."""

    @pytest.mark.asyncio
    async def test_record_match_and_usage(self) -> None:
        """Given an allow and a deny, usage reports both."""
        # Arrange
        recorder = MetricsRecorder(InMemoryMetrics(), MagicMock())

        # Act
        await recorder.record_match("p1", True, 2.0)
        await recorder.record_match("p1", False, 4.0)
        allows, denies, timer = await recorder.usage("p1")

        # Assert
        assert (allows, denies) == (1, 1)
        assert timer.average_ms == 3.0

    @pytest.mark.asyncio
    async def test_sink_failure_is_logged(self) -> None:
        """Given a failing sink, record_match logs a warning and returns."""
        # Arrange
        sink = MagicMock()
        sink.record_counter = AsyncMock(side_effect=RuntimeError("down"))
        logger = MagicMock()
        recorder = MetricsRecorder(sink, logger)

        # Act
        await recorder.record_match("p1", True, 1.0)

        # Assert
        assert logger.warning.call_args[0][0]["event"] == "metrics_write_failed"

    @pytest.mark.asyncio
    async def test_null_metrics_service_reports_no_usage(
        self, make_definition, make_context
    ) -> None:
        """Given a service over NullMetrics, usage stats stay at zero."""
        # Arrange
        service = create_service(
            PolicyEngineOptions(evaluation_cache_ttl_seconds=0), metrics_sink=NullMetrics()
        )
        policy = await service.create_policy(make_definition("read-docs"))
        await service.assign_policy_to_user("alice", policy.id)
        await service.evaluate_user_access("alice", make_context())

        # Act
        stats = await service.get_policy_usage_stats(policy.id)

        # Assert
        assert stats.evaluation_count == 0

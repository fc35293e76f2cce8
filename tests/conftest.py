"""Shared fixtures for policy-pdp tests.

Services are built over in-memory collaborators with a fixed clock. Caching
is disabled by default so that every test observes the latest state; tests
of caching behavior build their own options.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import pytest

from policy_pdp.cache.memory import InMemoryCache
from policy_pdp.config import PolicyEngineOptions
from policy_pdp.pdp.evaluation import PolicyEvaluationContext
from policy_pdp.pdp.policy import PolicyDefinition
from policy_pdp.service import PolicyEngineService, create_service
from policy_pdp.store.memory import InMemoryPolicyStore
from policy_pdp.telemetry.metrics.memory import InMemoryMetrics

FIXED_NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


# ============================================================================
# Collaborators
# ============================================================================


class RecordingAuditSink:
    """AuditSink that keeps every entry in memory."""

    def __init__(self) -> None:
        self.events: list[dict[str, Any]] = []

    async def log_action(
        self,
        action: str,
        resource_type: str,
        resource_id: str,
        before: dict[str, Any] | None = None,
        after: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        self.events.append(
            {
                "action": action,
                "resource_type": resource_type,
                "resource_id": resource_id,
                "before": before,
                "after": after,
                "metadata": metadata,
            }
        )

    def actions(self) -> list[str]:
        return [e["action"] for e in self.events]


class MutableClock:
    """Clock returning a settable time."""

    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def options() -> PolicyEngineOptions:
    """Engine options with caching disabled."""
    return PolicyEngineOptions(policy_cache_ttl_seconds=0, evaluation_cache_ttl_seconds=0)


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock()


@pytest.fixture
def store() -> InMemoryPolicyStore:
    return InMemoryPolicyStore()


@pytest.fixture
def cache() -> InMemoryCache:
    return InMemoryCache()


@pytest.fixture
def audit_sink() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture
def metrics_sink() -> InMemoryMetrics:
    return InMemoryMetrics()


@pytest.fixture
def make_service(
    store: InMemoryPolicyStore,
    cache: InMemoryCache,
    audit_sink: RecordingAuditSink,
    metrics_sink: InMemoryMetrics,
    clock: MutableClock,
) -> Callable[..., PolicyEngineService]:
    """Factory building a service over the shared collaborators."""

    def _make(options: PolicyEngineOptions | None = None) -> PolicyEngineService:
        return create_service(
            options or PolicyEngineOptions(policy_cache_ttl_seconds=0, evaluation_cache_ttl_seconds=0),
            store=store,
            cache=cache,
            audit_sink=audit_sink,
            metrics_sink=metrics_sink,
            clock=clock,
        )

    return _make


@pytest.fixture
def service(make_service: Callable[..., PolicyEngineService], options: PolicyEngineOptions) -> PolicyEngineService:
    return make_service(options)


@pytest.fixture
def make_definition() -> Callable[..., PolicyDefinition]:
    """Factory for policy definitions with sensible defaults."""

    def _make(
        name: str,
        *,
        effect: str = "Allow",
        resources: list[str] | None = None,
        actions: list[str] | None = None,
        priority: int = 0,
        conditions: dict[str, Any] | None = None,
    ) -> PolicyDefinition:
        return PolicyDefinition(
            name=name,
            effect=effect,
            resources=resources if resources is not None else ["documents/*"],
            actions=actions if actions is not None else ["read"],
            priority=priority,
            conditions=conditions or {},
        )

    return _make


@pytest.fixture
def make_context() -> Callable[..., PolicyEvaluationContext]:
    """Factory for evaluation contexts."""

    def _make(
        resource: str = "documents/report",
        action: str = "read",
        user_id: str = "alice",
        **attributes: Any,
    ) -> PolicyEvaluationContext:
        return PolicyEvaluationContext(
            user_id=user_id,
            resource=resource,
            action=action,
            attributes=attributes,
            request_time=FIXED_NOW,
        )

    return _make

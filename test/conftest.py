from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Iterator, List

import httpx
import pytest

from trustgate_ai.trust_core.audit import AuditLogger, InMemoryAuditStore
from trustgate_ai.trust_core.engine import DecisionEngine
from trustgate_ai.trust_core.metrics import MetricsCollector, MetricsConfig
from trustgate_ai.trust_core.policy import PolicyDocument, PolicyRuleStore, default_policy
from trustgate_ai.trust_core.rate_limiter import HourlyRateLimiter
from trustgate_ai.trust_core.schemas.domain import Operation
from trustgate_ai.trust_core.security import SecurityMonitor
from trustgate_ai.trust_core.service import TrustService


class FakeClock:
    """Manually advanced UTC clock for time-dependent components."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 1, 15, 10, 30, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_op() -> Callable[..., Operation]:
    def _make(command: str, *args: str, **kwargs) -> Operation:
        return Operation(command=command, args=tuple(args), **kwargs)

    return _make


@pytest.fixture
def policy() -> PolicyDocument:
    return default_policy()


@pytest.fixture
def make_policy() -> Callable[..., PolicyDocument]:
    """Default policy with overridden security settings."""

    def _make(**security: object) -> PolicyDocument:
        base = default_policy()
        return base.model_copy(update={"security": base.security.model_copy(update=security)})

    return _make


@pytest.fixture
def service_factory() -> Iterator[Callable[..., TrustService]]:
    created: List[TrustService] = []

    def _build(
        policy: PolicyDocument | None = None,
        *,
        audit_store=None,
        clock: Callable[[], datetime] | None = None,
        metrics_config: MetricsConfig | None = None,
    ) -> TrustService:
        store = PolicyRuleStore(policy or default_policy())
        service = TrustService(
            store=store,
            engine=DecisionEngine(store, HourlyRateLimiter(clock=clock), security=SecurityMonitor(clock=clock)),
            audit=AuditLogger(audit_store or InMemoryAuditStore(), clock=clock),
            metrics=MetricsCollector(metrics_config, clock=clock, autostart=False),
        )
        created.append(service)
        return service

    yield _build
    for service in created:
        service.close()


@pytest.fixture
def trust_service(service_factory, policy: PolicyDocument) -> TrustService:
    return service_factory(policy)


@pytest.fixture(autouse=True)
def _global_offline_http_guard(monkeypatch: pytest.MonkeyPatch):
    allowed_prefixes: Iterable[str] = (
        "http://localhost",
        "http://127.0.0.1",
        "http://0.0.0.0",
        "/",  # Allow relative paths (used by ASGI transport)
    )

    orig_sync = httpx._client.Client.request
    orig_async = httpx._client.AsyncClient.request

    def _is_allowed(url_str: str) -> bool:
        return any(url_str.startswith(p) for p in allowed_prefixes)

    def offline_sync(self, method, url, *args, **kwargs):
        url_str = str(url)
        if _is_allowed(url_str):
            return orig_sync(self, method, url, *args, **kwargs)
        raise RuntimeError(f"External HTTP blocked by global offline guard: {url_str}")

    async def offline_async(self, method, url, *args, **kwargs):
        url_str = str(url)
        if _is_allowed(url_str):
            return await orig_async(self, method, url, *args, **kwargs)
        raise RuntimeError(f"External HTTP blocked by global offline guard (async): {url_str}")

    monkeypatch.setattr(httpx._client.Client, "request", offline_sync, raising=True)
    monkeypatch.setattr(httpx._client.AsyncClient, "request", offline_async, raising=True)

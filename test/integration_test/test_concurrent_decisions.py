"""Integration tests for concurrent decisions through the file-backed trust service."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from pathlib import Path

import pytest

from trustgate_ai.server.core.config import Settings
from trustgate_ai.server.services.trust import build_trust_service
from trustgate_ai.trust_core.audit import JsonlAuditStore
from trustgate_ai.trust_core.schemas.domain import DecisionOutcome, Operation
from trustgate_ai.trust_core.service import TrustService


@pytest.fixture
def service(tmp_path: Path):
    config = Settings(
        policy_file=str(tmp_path / "trust-policy.json"),
        reports_dir=str(tmp_path / "reports"),
        audit_dir=str(tmp_path / "audit"),
        metrics_dir=str(tmp_path / "metrics"),
        security_dir=str(tmp_path / "security"),
    )
    service = build_trust_service(config)
    yield service
    service.close()


def _limited(service: TrustService, limit: int) -> None:
    policy = service.current_policy()
    service.update_policy(
        policy.model_copy(
            update={"security": policy.security.model_copy(update={"max_auto_approval_per_hour": limit})}
        )
    )


class TestConcurrentDecisions:
    def test_rate_limit_holds_under_contention(self, service: TrustService):
        _limited(service, 25)

        with ThreadPoolExecutor(max_workers=16) as pool:
            decisions = list(
                pool.map(lambda _: service.evaluate(Operation(command="git", args=("status",))), range(200))
            )

        auto = [d for d in decisions if d.outcome == DecisionOutcome.auto]
        limited = [d for d in decisions if d.rate_limited]
        assert len(auto) == 25
        assert len(limited) == 175

    def test_audit_trail_is_gap_free(self, service: TrustService, tmp_path: Path):
        commands = [("status",), ("branch", "-D", "x"), ("rebase", "main"), ("log",)]

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(lambda i: service.evaluate(Operation(command="git", args=commands[i % 4])), range(120)))

        persisted = [r.sequence_number for r in JsonlAuditStore(tmp_path / "audit").read()]
        assert persisted == list(range(1, 121))

        metrics = service.aggregate(
            min(r.recorded_at for r in service.audit_records()) - timedelta(seconds=1),
            max(r.recorded_at for r in service.audit_records()) + timedelta(seconds=1),
        )
        assert metrics.total_operations == 120
        assert metrics.auto_approved_operations == 60

    def test_policy_swaps_during_decisions(self, service: TrustService):
        stop = threading.Event()
        versions = set()

        def swap() -> None:
            base = service.current_policy()
            i = 0
            while not stop.is_set():
                i += 1
                service.update_policy(base.model_copy(update={"version": f"1.{i}"}))
                stop.wait(0.005)

        swapper = threading.Thread(target=swap)
        swapper.start()
        try:
            for _ in range(50):
                decision = service.evaluate(Operation(command="git", args=("status",)))
                assert decision.outcome == DecisionOutcome.auto
                versions.add(decision.policy_version)
        finally:
            stop.set()
            swapper.join()

        assert all(v is not None and v.startswith("1.") for v in versions)

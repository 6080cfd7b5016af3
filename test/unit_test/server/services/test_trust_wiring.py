"""Unit tests for trust service wiring and the dependency used by the API."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from trustgate_ai.server.core.config import Settings
from trustgate_ai.server.services import trust as trust_module
from trustgate_ai.server.services.deps import TrustServiceDep
from trustgate_ai.server.services.trust import build_trust_service, get_trust_service, shutdown_trust_service
from trustgate_ai.trust_core.schemas.domain import DecisionOutcome, Operation
from trustgate_ai.trust_core.service import TrustService


@pytest.fixture
def file_settings(tmp_path: Path) -> Settings:
    return Settings(
        policy_file=str(tmp_path / "policy" / "trust-policy.json"),
        reports_dir=str(tmp_path / "reports"),
        audit_dir=str(tmp_path / "audit"),
        metrics_dir=str(tmp_path / "metrics"),
        security_dir=str(tmp_path / "security"),
    )


@pytest.fixture
def reset_singleton():
    shutdown_trust_service()
    yield
    shutdown_trust_service()


class TestBuildTrustService:
    def test_uses_default_policy_when_file_missing(self, file_settings: Settings):
        service = build_trust_service(file_settings)
        try:
            assert service.current_policy().version == "1.0"
            assert service.policy_source is not None
            assert service.reports_dir == Path(file_settings.reports_dir)
        finally:
            service.close()

    def test_loads_policy_file(self, file_settings: Settings):
        path = Path(file_settings.policy_file)
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps({"version": "4.2", "autoApprove": {"gitOperations": ["log"]}}), encoding="utf-8")

        service = build_trust_service(file_settings)
        try:
            assert service.current_policy().version == "4.2"
            status = service.evaluate(Operation(command="git", args=("status",)))
            assert status.outcome == DecisionOutcome.manual
        finally:
            service.close()

    def test_decisions_are_written_to_files(self, file_settings: Settings):
        service = build_trust_service(file_settings)
        try:
            service.evaluate(Operation(command="git", args=("status",)))
            service.metrics.flush()
        finally:
            service.close()

        assert len(list(Path(file_settings.audit_dir).glob("audit-*.jsonl"))) == 1
        assert len(list(Path(file_settings.metrics_dir).glob("trust-metrics-*.jsonl"))) == 1

    def test_metrics_can_stay_in_memory(self, file_settings: Settings):
        config = file_settings.model_copy(update={"metrics_dir": None})
        service = build_trust_service(config)
        try:
            assert service.metrics._sink is None
        finally:
            service.close()

    def test_metrics_retention_follows_settings(self, file_settings: Settings):
        config = file_settings.model_copy(update={"metrics_retention_days": 7})
        service = build_trust_service(config)
        try:
            assert service.metrics.config.retention_days == 7
        finally:
            service.close()

    def test_security_events_are_written_to_files(self, file_settings: Settings):
        service = build_trust_service(file_settings)
        try:
            service.evaluate(Operation(command="git", args=("add", "../outside")))
        finally:
            service.close()

        assert len(list(Path(file_settings.security_dir).glob("security-events-*.jsonl"))) == 1

    def test_manual_only_mode_survives_rebuild(self, file_settings: Settings):
        first = build_trust_service(file_settings)
        first.enter_manual_mode("incident")
        first.close()

        second = build_trust_service(file_settings)
        try:
            assert second.security_state().manual_only is True
            status = second.evaluate(Operation(command="git", args=("status",)))
            assert status.outcome == DecisionOutcome.manual
        finally:
            second.close()

    def test_policy_update_writes_file_and_report(self, file_settings: Settings):
        service = build_trust_service(file_settings)
        try:
            service.update_policy(service.current_policy().model_copy(update={"version": "1.1"}))
        finally:
            service.close()

        assert json.loads(Path(file_settings.policy_file).read_text(encoding="utf-8"))["version"] == "1.1"
        assert len(list(Path(file_settings.reports_dir).glob("*.md"))) == 1


class TestSingleton:
    def test_get_trust_service_is_cached(self, file_settings: Settings, reset_singleton):
        with patch.object(trust_module, "settings", file_settings):
            first = get_trust_service()
            second = get_trust_service()

        assert first is second
        assert isinstance(first, TrustService)

    def test_shutdown_drops_instance(self, file_settings: Settings, reset_singleton):
        with patch.object(trust_module, "settings", file_settings):
            first = get_trust_service()
            shutdown_trust_service()
            second = get_trust_service()

        assert first is not second
        assert not first.metrics.running


class TestTrustServiceDep:
    def test_dep_is_annotated(self):
        assert hasattr(TrustServiceDep, "__metadata__")

    def test_dep_uses_get_trust_service(self):
        depends_obj = TrustServiceDep.__metadata__[0]
        assert depends_obj.dependency == get_trust_service

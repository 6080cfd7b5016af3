"""
Trust Service Wiring.

Builds the process-wide ``TrustService`` from application settings and exposes
it as a lazily created singleton for the API layer.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Optional

from trustgate_ai.core.logging_config import get_logger
from trustgate_ai.server.core.config import Settings, settings
from trustgate_ai.trust_core.audit import AuditLogger, JsonlAuditStore
from trustgate_ai.trust_core.engine import DecisionEngine
from trustgate_ai.trust_core.metrics import JsonlMetricsSink, MetricsCollector, MetricsConfig
from trustgate_ai.trust_core.policy import PolicyFileSource, PolicyRuleStore
from trustgate_ai.trust_core.rate_limiter import HourlyRateLimiter
from trustgate_ai.trust_core.security import JsonlSecurityEventStore, SecurityMonitor
from trustgate_ai.trust_core.service import TrustService

logger = get_logger(__name__)


def build_trust_service(config: Settings) -> TrustService:
    """Assemble a ``TrustService`` with file-backed policy, audit, metrics and security events."""
    policy_cfg = config.policy
    audit_cfg = config.audit
    metrics_cfg = config.metrics
    security_cfg = config.security

    source = PolicyFileSource(policy_cfg.path, backup=policy_cfg.backup)
    store = PolicyRuleStore(source.load())

    security = SecurityMonitor(
        JsonlSecurityEventStore(security_cfg.directory) if security_cfg.directory else None
    )
    sink = JsonlMetricsSink(metrics_cfg.directory) if metrics_cfg.directory else None
    metrics = MetricsCollector(
        MetricsConfig(
            queue_size=metrics_cfg.queue_size,
            rolling_window=metrics_cfg.rolling_window,
            alert_threshold_ms=metrics_cfg.alert_threshold_ms,
            fast_threshold_ms=metrics_cfg.fast_threshold_ms,
            slow_threshold_ms=metrics_cfg.slow_threshold_ms,
            retention_days=metrics_cfg.retention_days,
        ),
        sink=sink,
    )

    service = TrustService(
        store=store,
        engine=DecisionEngine(store, HourlyRateLimiter(), security=security),
        audit=AuditLogger(JsonlAuditStore(audit_cfg.directory)),
        metrics=metrics,
        policy_source=source,
        reports_dir=Path(policy_cfg.reports_dir),
    )
    logger.info(
        f"Trust service ready: policy={policy_cfg.path} (version {store.current().version}), "
        f"audit={audit_cfg.directory}, metrics={metrics_cfg.directory or 'memory'}, "
        f"manual_only={security.manual_only}"
    )
    return service


# Global singleton
_trust_service: Optional[TrustService] = None
_lock = threading.Lock()


def get_trust_service() -> TrustService:
    global _trust_service
    if _trust_service is None:
        with _lock:
            if _trust_service is None:
                _trust_service = build_trust_service(settings)
    return _trust_service


def shutdown_trust_service() -> None:
    """Stop the metrics consumer and drop the singleton."""
    global _trust_service
    with _lock:
        service, _trust_service = _trust_service, None
    if service is not None:
        service.close()

"""Trust service facade.

``TrustService`` wires the classifier, the decision engine, the audit logger
and the metrics collector into the one call the agent runtime makes per
operation::

    decision = service.evaluate(operation)

The order inside ``evaluate`` is fixed: classify, capture the policy
snapshot, decide, audit, then record metrics. A decision is only returned once
its audit record is durable. Metrics are best effort and never affect the
result.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from .audit.logger import AuditLogger, AuditQuery
from .classifier import OperationClassifier
from .engine import DecisionEngine
from .errors import AuditError
from .metrics.collector import MetricsCollector
from .policy.loader import PolicyFileSource
from .policy.models import PolicyDocument
from .policy.store import PolicyRuleStore, validate_policy
from .reporting.policy_changes import PolicyChangeReport, PolicyChangeReporter
from .schemas.domain import (
    AggregatedMetrics,
    AuditLogStats,
    AuditRecord,
    ClassificationResult,
    Decision,
    DecisionOutcome,
    MetricsSample,
    MetricsSnapshot,
    Operation,
)
from .security import SecurityEvent, SecurityEventStats, SecurityMonitor, SecurityState

logger = logging.getLogger(__name__)

REASON_AUDIT_FAILURE = "audit failure"


@dataclass(frozen=True)
class Evaluation:
    """Decision together with the classification and audit record behind it."""

    decision: Decision
    classification: ClassificationResult
    record: AuditRecord


class TrustService:
    def __init__(
        self,
        store: PolicyRuleStore,
        engine: DecisionEngine,
        audit: AuditLogger,
        metrics: MetricsCollector,
        *,
        classifier: Optional[OperationClassifier] = None,
        reporter: Optional[PolicyChangeReporter] = None,
        policy_source: Optional[PolicyFileSource] = None,
        reports_dir: Optional[Path] = None,
    ) -> None:
        self.store = store
        self.engine = engine
        self.audit = audit
        self.metrics = metrics
        self.classifier = classifier or OperationClassifier()
        self.reporter = reporter or PolicyChangeReporter()
        self.policy_source = policy_source
        self.reports_dir = reports_dir

    def evaluate(self, op: Operation) -> Decision:
        return self.evaluate_detailed(op).decision

    def evaluate_detailed(self, op: Operation) -> Evaluation:
        """
        Classify, decide, audit and record one operation.

        Args:
            op: The operation the agent wants to perform.

        Returns:
            The audited decision with its classification and audit record.

        Raises:
            AuditError: If the audit record could not be persisted. The
                error's ``fallback_decision`` is a manual decision the caller
                must act on instead.
        """
        started = time.perf_counter()
        classification = self.classifier.classify(op)
        policy = self.store.current()
        decision = self.engine.decide(op, classification, policy)
        elapsed_ms = (time.perf_counter() - started) * 1000

        try:
            record = self.audit.append(op, decision, elapsed_ms)
        except AuditError as e:
            fallback = decision.model_copy(
                update={
                    "outcome": DecisionOutcome.manual,
                    "reason": REASON_AUDIT_FAILURE,
                    "matched_rule": None,
                }
            )
            logger.error(f"Audit failed for operation {op.id}, falling back to manual approval: {e}")
            raise e.with_fallback(fallback) from e

        try:
            self.metrics.record(MetricsSample.from_audit_record(record))
        except Exception as e:
            logger.warning(f"Failed to record metrics for operation {op.id}: {e}")

        return Evaluation(decision=decision, classification=classification, record=record)

    # -- policy ------------------------------------------------------------------------

    def current_policy(self) -> PolicyDocument:
        return self.store.current()

    def preview_policy_change(self, next_policy: PolicyDocument, generated_by: str = "preview") -> PolicyChangeReport:
        """Diff ``next_policy`` against the active policy without installing it.

        Raises:
            PolicyConflict: If ``next_policy`` contradicts itself.
        """
        validate_policy(next_policy)
        return self.reporter.diff(self.store.current(), next_policy, generated_by)

    def update_policy(self, next_policy: PolicyDocument, generated_by: str = "system") -> PolicyChangeReport:
        """
        Install ``next_policy`` and report what changed.

        The policy file and the markdown report are written when a policy
        source and reports directory are configured. Failing to write the
        report is logged and does not undo the update.

        Raises:
            PolicyConflict: If ``next_policy`` contradicts itself. The active
                policy is left unchanged.
            OSError: If the policy file could not be saved. The new policy is
                already active at that point.
        """
        previous = self.store.replace(next_policy)
        report = self.reporter.diff(previous, next_policy, generated_by)
        if self.policy_source is not None:
            self.policy_source.save(next_policy)
        if self.reports_dir is not None:
            try:
                self.reporter.write(report, self.reports_dir)
            except OSError as e:
                logger.error(f"Failed to write policy update report: {e}")
        return report

    # -- metrics and audit -----------------------------------------------------------------

    def aggregate(self, start: datetime, end: datetime) -> AggregatedMetrics:
        self.metrics.flush()
        return self.metrics.aggregate(start, end)

    def current_metrics(self) -> MetricsSnapshot:
        self.metrics.flush()
        return self.metrics.current_snapshot()

    def audit_records(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        from_sequence: Optional[int] = None,
    ) -> AuditQuery:
        return self.audit.query(start=start, end=end, from_sequence=from_sequence)

    def audit_stats(self, days: int = 7) -> AuditLogStats:
        return self.audit.stats(days)

    def replay_audit(self, start: Optional[datetime] = None, end: Optional[datetime] = None) -> int:
        """Rebuild metrics from persisted audit records, e.g. after a restart."""
        return self.metrics.replay(self.audit.query(start=start, end=end))

    # -- security ----------------------------------------------------------------------

    @property
    def security(self) -> SecurityMonitor:
        return self.engine.security

    def security_state(self) -> SecurityState:
        return self.security.state()

    def enter_manual_mode(self, reason: str) -> bool:
        return self.security.enter_manual_mode(reason)

    def restore_auto_approval(self, reason: str = "manual restoration") -> bool:
        return self.security.restore_auto_approval(reason)

    def security_events(self, start: Optional[datetime] = None, end: Optional[datetime] = None) -> List[SecurityEvent]:
        return self.security.events(start, end)

    def security_stats(self, days: int = 7) -> SecurityEventStats:
        return self.security.stats(days)

    def purge_expired(self, audit_retention_days: int, metrics_retention_days: int) -> List[int]:
        """Apply retention to audit records, metrics and security events.

        Security events share the audit retention. Returns the removed counts
        as ``[audit, metrics, security]``.
        """
        return [
            self.audit.purge(audit_retention_days),
            self.metrics.purge(metrics_retention_days),
            self.security.purge(audit_retention_days),
        ]

    def close(self) -> None:
        self.metrics.stop()

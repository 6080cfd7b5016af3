"""Trust decision core: classification, policy, decisions, audit, metrics and security.

Decision flow
-------------

``TrustService.evaluate`` runs one operation through:

1. ``OperationClassifier``: derive the operation type and risk flags from the
   command line.
2. ``PolicyRuleStore``: capture the active policy document.
3. ``DecisionEngine``: deny list, suspicious patterns, manual-only mode, rate
   limit, dangerous override, allow list, default manual.
4. ``AuditLogger``: persist the decision with the next sequence number. A
   decision is never returned unaudited.
5. ``MetricsCollector``: enqueue a metrics sample, best effort.

Policy changes go through ``TrustService.update_policy`` which swaps the
active document and returns a ``PolicyChangeReport``. Suspicious command lines
are logged by the ``SecurityMonitor``, which can hold the engine in
manual-only mode until an operator restores auto approval.
"""

from .audit import AuditLogger, InMemoryAuditStore, JsonlAuditStore
from .classifier import OperationClassifier, classify
from .engine import DecisionEngine
from .errors import AuditError, PolicyConflict, PolicyLoadError, TrustPolicyError
from .metrics import JsonlMetricsSink, MetricsCollector, MetricsConfig
from .policy import PolicyDocument, PolicyFileSource, PolicyRuleStore, default_policy
from .rate_limiter import HourlyRateLimiter, RateLimitResult
from .reporting import PolicyChangeReport, PolicyChangeReporter
from .schemas import (
    ClassificationResult,
    Decision,
    DecisionOutcome,
    Operation,
    OperationContext,
    OperationType,
    RiskFlag,
)
from .security import SecurityMonitor
from .service import TrustService

__all__ = [
    "AuditLogger",
    "InMemoryAuditStore",
    "JsonlAuditStore",
    "OperationClassifier",
    "classify",
    "DecisionEngine",
    "AuditError",
    "PolicyConflict",
    "PolicyLoadError",
    "TrustPolicyError",
    "JsonlMetricsSink",
    "MetricsCollector",
    "MetricsConfig",
    "PolicyDocument",
    "PolicyFileSource",
    "PolicyRuleStore",
    "default_policy",
    "HourlyRateLimiter",
    "RateLimitResult",
    "PolicyChangeReport",
    "PolicyChangeReporter",
    "ClassificationResult",
    "Decision",
    "DecisionOutcome",
    "Operation",
    "OperationContext",
    "OperationType",
    "RiskFlag",
    "SecurityMonitor",
    "TrustService",
]

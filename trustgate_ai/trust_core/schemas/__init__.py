"""Domain schemas shared by every trust core component."""

from .base import BaseSchema, FrozenSchema, PolicySchema
from .domain import (
    AggregatedMetrics,
    AuditLogStats,
    AuditRecord,
    ClassificationResult,
    DailyAuditStats,
    Decision,
    DecisionOutcome,
    MetricsSample,
    MetricsSnapshot,
    Operation,
    OperationContext,
    OperationType,
    PerformanceBuckets,
    RiskFlag,
    RiskLevel,
    approval_rate,
    ensure_utc,
    trailing_days,
)

__all__ = [
    "BaseSchema",
    "FrozenSchema",
    "PolicySchema",
    "AggregatedMetrics",
    "AuditLogStats",
    "AuditRecord",
    "ClassificationResult",
    "DailyAuditStats",
    "Decision",
    "DecisionOutcome",
    "MetricsSample",
    "MetricsSnapshot",
    "Operation",
    "OperationContext",
    "OperationType",
    "PerformanceBuckets",
    "RiskFlag",
    "RiskLevel",
    "approval_rate",
    "ensure_utc",
    "trailing_days",
]

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple
from uuid import uuid4

from pydantic import Field, field_validator

from .base import BaseSchema, FrozenSchema


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and normalize aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class OperationType(str, Enum):
    git = "git"
    file = "file"
    cli = "cli"
    script = "script"
    unknown = "unknown"


class RiskFlag(str, Enum):
    deletion = "deletion"
    force = "force"
    production_impact = "production_impact"


class RiskLevel(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


class DecisionOutcome(str, Enum):
    auto = "auto"
    manual = "manual"


class OperationContext(FrozenSchema):
    working_directory: str = "."
    user_id: str = "unknown"
    session_id: Optional[str] = None


class Operation(FrozenSchema):
    """A single action the agent wants to perform.

    Created by the caller for each attempted action and never mutated. The
    ``operation_type`` is the caller's claim; the classifier derives the type
    that the engine actually acts on.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    operation_type: OperationType = OperationType.unknown
    command: str
    args: Tuple[str, ...] = ()
    context: OperationContext = Field(default_factory=OperationContext)
    timestamp: datetime = Field(default_factory=_utc_now)

    @field_validator("timestamp")
    @classmethod
    def _normalize_timestamp(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @property
    def tokens(self) -> Tuple[str, ...]:
        """The command line as a token tuple: ``(command, *args)``."""
        command = self.command.strip()
        if not command:
            return tuple(self.args)
        return (command, *self.args)

    @property
    def command_line(self) -> str:
        return " ".join(self.tokens)


@dataclass(frozen=True)
class ClassificationResult:
    """
    Result of classifying an operation.

    Attributes:
        operation_type: The type derived from the command.
        risk_flags: Independent risk categories detected in the command line.
    """
    operation_type: OperationType
    risk_flags: FrozenSet[RiskFlag] = field(default_factory=frozenset)

    @property
    def is_dangerous(self) -> bool:
        return bool(self.risk_flags)


class Decision(FrozenSchema):
    operation_id: str
    outcome: DecisionOutcome
    operation_type: OperationType = OperationType.unknown
    matched_rule: Optional[str] = None
    rate_limited: bool = False
    reason: str
    policy_version: Optional[str] = None
    risk_flags: Tuple[RiskFlag, ...] = ()
    decided_at: datetime = Field(default_factory=_utc_now)

    @property
    def is_auto(self) -> bool:
        return self.outcome == DecisionOutcome.auto


class AuditRecord(FrozenSchema):
    sequence_number: int = Field(ge=1)
    operation: Operation
    decision: Decision
    recorded_at: datetime = Field(default_factory=_utc_now)
    processing_time_ms: float = Field(default=0.0, ge=0.0)

    @field_validator("recorded_at")
    @classmethod
    def _normalize_recorded_at(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class MetricsSample(FrozenSchema):
    timestamp: datetime
    operation_type: OperationType
    decision: DecisionOutcome
    processing_time_ms: float = Field(default=0.0, ge=0.0)

    @field_validator("timestamp")
    @classmethod
    def _normalize_timestamp(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @classmethod
    def from_audit_record(cls, record: AuditRecord) -> "MetricsSample":
        """Derive the metrics sample for an audited decision.

        Live recording and audit replay both go through this method so the
        two paths produce identical samples.
        """
        return cls(
            timestamp=record.recorded_at,
            operation_type=record.decision.operation_type,
            decision=record.decision.outcome,
            processing_time_ms=record.processing_time_ms,
        )


class PerformanceBuckets(BaseSchema):
    fast: int = 0
    normal: int = 0
    slow: int = 0


class AggregatedMetrics(BaseSchema):
    """Metrics recomputed on demand over a ``[period_start, period_end)`` window."""

    period_start: datetime
    period_end: datetime
    total_operations: int = 0
    auto_approved_operations: int = 0
    manual_approved_operations: int = 0
    auto_approval_rate: float = 0.0
    average_processing_time: float = 0.0
    max_processing_time: float = 0.0
    total_processing_time: float = 0.0
    trust_dialog_display_count: int = 0
    operations_by_type: Dict[str, int] = Field(default_factory=dict)
    performance_buckets: PerformanceBuckets = Field(default_factory=PerformanceBuckets)

    @classmethod
    def combine(cls, parts: Iterable["AggregatedMetrics"]) -> "AggregatedMetrics":
        """
        Merge aggregates of contiguous sub-windows into one aggregate.

        Counts and totals are summed; averages and rates are recomputed from
        the merged totals rather than averaged.

        Raises:
            ValueError: If ``parts`` is empty.
        """
        items = sorted(parts, key=lambda m: m.period_start)
        if not items:
            raise ValueError("cannot combine an empty sequence of aggregates")

        total = sum(m.total_operations for m in items)
        auto = sum(m.auto_approved_operations for m in items)
        manual = sum(m.manual_approved_operations for m in items)
        total_time = sum(m.total_processing_time for m in items)
        by_type: Dict[str, int] = {}
        for m in items:
            for key, count in m.operations_by_type.items():
                by_type[key] = by_type.get(key, 0) + count

        return cls(
            period_start=items[0].period_start,
            period_end=items[-1].period_end,
            total_operations=total,
            auto_approved_operations=auto,
            manual_approved_operations=manual,
            auto_approval_rate=approval_rate(auto, total),
            average_processing_time=total_time / total if total else 0.0,
            max_processing_time=max(m.max_processing_time for m in items),
            total_processing_time=total_time,
            trust_dialog_display_count=manual,
            operations_by_type=by_type,
            performance_buckets=PerformanceBuckets(
                fast=sum(m.performance_buckets.fast for m in items),
                normal=sum(m.performance_buckets.normal for m in items),
                slow=sum(m.performance_buckets.slow for m in items),
            ),
        )


def approval_rate(auto: int, total: int) -> float:
    """Percentage of auto approvals; 0.0 for an empty window."""
    if total == 0:
        return 0.0
    return auto / total * 100


class MetricsSnapshot(BaseSchema):
    today_operations: int = 0
    today_auto_approval_rate: float = 0.0
    recent_average_processing_time: float = 0.0
    alerts_count: int = 0
    dropped_samples: int = 0


def trailing_days(now: datetime, days: int) -> Tuple[datetime, datetime]:
    """Window covering the last ``days`` whole UTC days, today included."""
    if days < 1:
        raise ValueError(f"days must be at least 1, got {days}")
    day_start = ensure_utc(now).replace(hour=0, minute=0, second=0, microsecond=0)
    return day_start - timedelta(days=days - 1), day_start + timedelta(days=1)


class DailyAuditStats(BaseSchema):
    day: date
    total_operations: int = 0
    auto_approvals: int = 0
    manual_approvals: int = 0
    rate_limited: int = 0


class AuditLogStats(BaseSchema):
    """Decision counts from the audit trail, totalled and per UTC day."""

    period_start: datetime
    period_end: datetime
    total_operations: int = 0
    auto_approvals: int = 0
    manual_approvals: int = 0
    rate_limited: int = 0
    days: List[DailyAuditStats] = Field(default_factory=list)

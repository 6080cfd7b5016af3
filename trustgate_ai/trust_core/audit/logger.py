"""Ordered, fail-closed audit logging.

``AuditLogger`` is the single writer in front of an ``AuditStore``. It hands
out sequence numbers under a lock and only advances its high-water mark once
the store has acknowledged the write, so a failed write never leaves a gap.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterator, List, Optional

from ..errors import AuditError
from ..schemas.domain import (
    AuditLogStats,
    AuditRecord,
    DailyAuditStats,
    Decision,
    DecisionOutcome,
    Operation,
    trailing_days,
)
from .interfaces import AuditStore

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AuditQuery:
    """Lazy, restartable view over audit records.

    Each iteration re-reads the store and stops at the sequence number that
    was current when that iteration began, so the view is finite even while
    new records are being appended.
    """

    def __init__(
        self,
        audit_logger: "AuditLogger",
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        from_sequence: Optional[int] = None,
    ) -> None:
        self._logger = audit_logger
        self.start = start
        self.end = end
        self.from_sequence = from_sequence

    def __iter__(self) -> Iterator[AuditRecord]:
        upto = self._logger.last_sequence
        for record in self._logger.store.read(self.start, self.end):
            if record.sequence_number > upto:
                continue
            if self.from_sequence is not None and record.sequence_number < self.from_sequence:
                continue
            yield record

    def to_list(self, limit: Optional[int] = None) -> List[AuditRecord]:
        records: List[AuditRecord] = []
        for record in self:
            if limit is not None and len(records) >= limit:
                break
            records.append(record)
        return records


class AuditLogger:
    def __init__(self, store: AuditStore, *, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._store = store
        self._clock = clock or _utc_now
        self._lock = threading.Lock()
        self._hwm = store.last_sequence()
        logger.debug(f"Audit logger starting at sequence {self._hwm}")

    @property
    def store(self) -> AuditStore:
        return self._store

    @property
    def last_sequence(self) -> int:
        """Sequence number of the last successfully persisted record."""
        return self._hwm

    def append(self, operation: Operation, decision: Decision, processing_time_ms: float = 0.0) -> AuditRecord:
        """
        Persist one decision.

        Args:
            operation: The evaluated operation.
            decision: The decision made for it.
            processing_time_ms: Time spent deciding, carried into metrics.

        Returns:
            The stored record with its assigned sequence number.

        Raises:
            AuditError: If the store did not acknowledge the write. The
                sequence number is not consumed.
        """
        with self._lock:
            record = AuditRecord(
                sequence_number=self._hwm + 1,
                operation=operation,
                decision=decision,
                recorded_at=self._clock(),
                processing_time_ms=max(processing_time_ms, 0.0),
            )
            try:
                self._store.write(record)
            except Exception as e:
                logger.error(f"Failed to persist audit record {record.sequence_number}: {e}")
                raise AuditError(f"audit write failed: {e}") from e
            self._hwm = record.sequence_number
        return record

    def query(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        from_sequence: Optional[int] = None,
    ) -> AuditQuery:
        return AuditQuery(self, start=start, end=end, from_sequence=from_sequence)

    def purge(self, retention_days: int) -> int:
        """Remove records older than ``retention_days`` days."""
        cutoff = self._clock() - timedelta(days=retention_days)
        removed = self._store.purge(cutoff)
        if removed:
            logger.info(f"Purged {removed} audit entries older than {cutoff.isoformat()}")
        return removed

    def stats(self, days: int = 7) -> AuditLogStats:
        """
        Count audited decisions over the last ``days`` UTC days.

        Every day in the window has an entry in ``days``, including days with
        no decisions.

        Raises:
            ValueError: If ``days`` is less than 1.
        """
        start, end = trailing_days(self._clock(), days)
        by_day = {
            (start + timedelta(days=i)).date(): DailyAuditStats(day=(start + timedelta(days=i)).date())
            for i in range(days)
        }
        for record in self.query(start=start, end=end):
            entry = by_day.get(record.recorded_at.date())
            if entry is None:
                continue
            entry.total_operations += 1
            if record.decision.outcome == DecisionOutcome.auto:
                entry.auto_approvals += 1
            else:
                entry.manual_approvals += 1
            if record.decision.rate_limited:
                entry.rate_limited += 1

        daily = list(by_day.values())
        return AuditLogStats(
            period_start=start,
            period_end=end,
            total_operations=sum(d.total_operations for d in daily),
            auto_approvals=sum(d.auto_approvals for d in daily),
            manual_approvals=sum(d.manual_approvals for d in daily),
            rate_limited=sum(d.rate_limited for d in daily),
            days=daily,
        )

"""Decision metrics.

``MetricsCollector`` decouples the decision path from metrics bookkeeping:
``record`` only enqueues onto a bounded queue and a daemon thread ingests the
samples. When the queue is full the newest sample is dropped and counted.
Aggregates are recomputed from the stored samples on every query.
"""

from __future__ import annotations

import logging
import queue
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Deque, Dict, Iterable, List, Optional

from ..schemas.domain import (
    AggregatedMetrics,
    AuditRecord,
    DecisionOutcome,
    MetricsSample,
    MetricsSnapshot,
    PerformanceBuckets,
    approval_rate,
    ensure_utc,
)
from .sinks import MetricsSink

logger = logging.getLogger(__name__)

_STOP = object()

RETENTION_CHECK_INTERVAL = timedelta(hours=1)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class MetricsConfig:
    """
    Tunables for ``MetricsCollector``.

    Attributes:
        queue_size: Capacity of the ingest queue.
        rolling_window: Number of recent samples in the rolling average.
        alert_threshold_ms: Rolling average above this raises an alert.
        fast_threshold_ms: Samples below this are ``fast``.
        slow_threshold_ms: Samples above this are ``slow``; the rest are ``normal``.
        retention_days: When set, samples older than this are forgotten while
            the collector runs, checked at most once per hour of ingest.
    """

    queue_size: int = 10000
    rolling_window: int = 10
    alert_threshold_ms: float = 100.0
    fast_threshold_ms: float = 50.0
    slow_threshold_ms: float = 100.0
    retention_days: Optional[int] = None


class MetricsCollector:
    def __init__(
        self,
        config: Optional[MetricsConfig] = None,
        *,
        sink: Optional[MetricsSink] = None,
        clock: Optional[Callable[[], datetime]] = None,
        autostart: bool = True,
    ) -> None:
        self.config = config or MetricsConfig()
        self._sink = sink
        self._clock = clock or _utc_now
        self._queue: "queue.Queue[object]" = queue.Queue(maxsize=self.config.queue_size)
        self._lock = threading.Lock()
        self._samples: List[MetricsSample] = []
        self._recent: Deque[float] = deque(maxlen=self.config.rolling_window)
        self._alerts = 0
        self._above_threshold = False
        self._dropped = 0
        self._next_retention_at: Optional[datetime] = None
        self._thread: Optional[threading.Thread] = None
        self._stop_requested = threading.Event()
        if autostart:
            self.start()

    # -- lifecycle -----------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            if not self._stop_requested.is_set():
                return
            # A previous stop timed out; let that consumer finish before replacing it.
            assert self._thread is not None
            self._thread.join()
        self._stop_requested.clear()
        self._thread = threading.Thread(target=self._consume, name="trust-metrics-consumer", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """Drain outstanding samples and stop the consumer thread.

        If the consumer does not exit within ``timeout`` it keeps its reference,
        so ``running`` stays true and a later ``start`` waits for it.
        """
        if not self.running:
            self._drain()
            return
        if not self._stop_requested.is_set():
            self._stop_requested.set()
            self._queue.put(_STOP)
        assert self._thread is not None
        self._thread.join(timeout)
        if self._thread.is_alive():
            logger.warning(f"Metrics consumer did not stop within {timeout}s")
            return
        self._thread = None

    def flush(self) -> None:
        """Block until every sample enqueued so far has been ingested."""
        if self.running:
            self._queue.join()
        else:
            self._drain()

    # -- recording -----------------------------------------------------------------

    @property
    def dropped_samples(self) -> int:
        with self._lock:
            return self._dropped

    def record(self, sample: MetricsSample) -> bool:
        """
        Enqueue a sample without blocking.

        Returns:
            False when the sample was dropped because the queue is full.
            This method never raises.
        """
        try:
            self._queue.put_nowait(sample)
            return True
        except queue.Full:
            with self._lock:
                self._dropped += 1
                dropped = self._dropped
            logger.warning(f"Metrics queue full, dropped sample (total dropped: {dropped})")
            return False

    def replay(self, records: Iterable[AuditRecord], *, persist: bool = False) -> int:
        """Ingest audit records synchronously, bypassing the queue.

        Replayed samples are not written to the sink unless ``persist`` is set,
        since they were already persisted when first recorded.
        """
        count = 0
        for record in records:
            self._ingest(MetricsSample.from_audit_record(record), persist=persist)
            count += 1
        return count

    def _consume(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                self._ingest(item)  # type: ignore[arg-type]
            except Exception as e:
                logger.error(f"Failed to ingest metrics sample: {e}")
            finally:
                self._queue.task_done()

    def _drain(self) -> None:
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return
            try:
                if item is not _STOP:
                    self._ingest(item)  # type: ignore[arg-type]
            finally:
                self._queue.task_done()

    def _ingest(self, sample: MetricsSample, persist: bool = True) -> None:
        with self._lock:
            self._samples.append(sample)
            self._recent.append(sample.processing_time_ms)
            average = sum(self._recent) / len(self._recent)
            crossed = average > self.config.alert_threshold_ms and not self._above_threshold
            if crossed:
                self._alerts += 1
            self._above_threshold = average > self.config.alert_threshold_ms

        if crossed:
            logger.warning(
                f"Rolling average processing time {average:.1f}ms exceeds "
                f"{self.config.alert_threshold_ms:.0f}ms threshold"
            )
        if persist and self._sink is not None:
            try:
                self._sink.write(sample)
            except Exception as e:
                logger.warning(f"Metrics sink write failed: {e}")
        self._apply_retention_if_due()

    def _apply_retention_if_due(self) -> None:
        if self.config.retention_days is None:
            return
        now = ensure_utc(self._clock())
        with self._lock:
            if self._next_retention_at is not None and now < self._next_retention_at:
                return
            self._next_retention_at = now + RETENTION_CHECK_INTERVAL
        removed = self.purge(self.config.retention_days)
        if removed:
            logger.debug(f"Retention dropped {removed} metrics samples")

    # -- queries -------------------------------------------------------------------

    def samples(self) -> List[MetricsSample]:
        with self._lock:
            return list(self._samples)

    def aggregate(self, start: datetime, end: datetime) -> AggregatedMetrics:
        """
        Aggregate samples whose timestamp falls in ``[start, end)``.

        Args:
            start: Inclusive lower bound.
            end: Exclusive upper bound.

        Returns:
            Totals, rates and buckets for the window. An empty window yields
            zero counts and an approval rate of 0.0.
        """
        start, end = ensure_utc(start), ensure_utc(end)
        window = [s for s in self.samples() if start <= s.timestamp < end]

        total = len(window)
        auto = sum(1 for s in window if s.decision == DecisionOutcome.auto)
        manual = total - auto
        times = [s.processing_time_ms for s in window]
        total_time = sum(times)
        by_type: Dict[str, int] = {}
        for s in window:
            by_type[s.operation_type.value] = by_type.get(s.operation_type.value, 0) + 1

        return AggregatedMetrics(
            period_start=start,
            period_end=end,
            total_operations=total,
            auto_approved_operations=auto,
            manual_approved_operations=manual,
            auto_approval_rate=approval_rate(auto, total),
            average_processing_time=total_time / total if total else 0.0,
            max_processing_time=max(times) if times else 0.0,
            total_processing_time=total_time,
            trust_dialog_display_count=manual,
            operations_by_type=by_type,
            performance_buckets=self._buckets(times),
        )

    def _buckets(self, times: Iterable[float]) -> PerformanceBuckets:
        fast = normal = slow = 0
        for t in times:
            if t < self.config.fast_threshold_ms:
                fast += 1
            elif t > self.config.slow_threshold_ms:
                slow += 1
            else:
                normal += 1
        return PerformanceBuckets(fast=fast, normal=normal, slow=slow)

    def current_snapshot(self) -> MetricsSnapshot:
        now = ensure_utc(self._clock())
        day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        today = self.aggregate(day_start, day_start + timedelta(days=1))
        with self._lock:
            recent = list(self._recent)
            alerts = self._alerts
            dropped = self._dropped
        return MetricsSnapshot(
            today_operations=today.total_operations,
            today_auto_approval_rate=today.auto_approval_rate,
            recent_average_processing_time=sum(recent) / len(recent) if recent else 0.0,
            alerts_count=alerts,
            dropped_samples=dropped,
        )

    def purge(self, retention_days: int) -> int:
        """Forget samples older than ``retention_days`` and purge the sink."""
        cutoff = ensure_utc(self._clock()) - timedelta(days=retention_days)
        with self._lock:
            kept = [s for s in self._samples if s.timestamp >= cutoff]
            removed = len(self._samples) - len(kept)
            self._samples = kept
        if self._sink is not None:
            try:
                self._sink.purge(cutoff)
            except Exception as e:
                logger.warning(f"Metrics sink purge failed: {e}")
        return removed

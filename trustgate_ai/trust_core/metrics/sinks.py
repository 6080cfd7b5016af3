"""Persistence for metrics samples."""

from __future__ import annotations

import logging
import threading
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Protocol

from ..schemas.domain import MetricsSample, ensure_utc

logger = logging.getLogger(__name__)

METRICS_FILE_PREFIX = "trust-metrics-"
METRICS_FILE_SUFFIX = ".jsonl"


class MetricsSink(Protocol):
    def write(self, sample: MetricsSample) -> None: ...

    def purge(self, before: datetime) -> int: ...


class JsonlMetricsSink:
    """Append samples to ``trust-metrics-YYYY-MM-DD.jsonl`` files.

    Metrics are best effort: the collector logs and drops any error raised
    here. Unlike the audit store there is no fsync per sample.
    """

    def __init__(self, directory: str | Path) -> None:
        self._dir = Path(directory)
        self._dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def path_for(self, day: date) -> Path:
        return self._dir / f"{METRICS_FILE_PREFIX}{day.isoformat()}{METRICS_FILE_SUFFIX}"

    def write(self, sample: MetricsSample) -> None:
        path = self.path_for(sample.timestamp.date())
        with self._lock:
            with path.open("a", encoding="utf-8") as f:
                f.write(sample.model_dump_json() + "\n")

    def purge(self, before: datetime) -> int:
        cutoff = ensure_utc(before)
        removed = 0
        with self._lock:
            for path in sorted(self._dir.glob(f"{METRICS_FILE_PREFIX}*{METRICS_FILE_SUFFIX}")):
                stamp = path.name[len(METRICS_FILE_PREFIX) : -len(METRICS_FILE_SUFFIX)]
                try:
                    day = date.fromisoformat(stamp)
                except ValueError:
                    continue
                day_end = datetime(day.year, day.month, day.day, tzinfo=cutoff.tzinfo) + timedelta(days=1)
                if day_end <= cutoff:
                    path.unlink()
                    removed += 1
        if removed:
            logger.info(f"Purged {removed} metrics files older than {cutoff.date().isoformat()}")
        return removed

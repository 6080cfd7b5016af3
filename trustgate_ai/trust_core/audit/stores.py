"""Audit store implementations."""

from __future__ import annotations

import json
import logging
import os
import threading
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Iterator, List, Optional

from pydantic import ValidationError

from ..schemas.domain import AuditRecord, ensure_utc

logger = logging.getLogger(__name__)

AUDIT_FILE_PREFIX = "audit-"
AUDIT_FILE_SUFFIX = ".jsonl"
HWM_FILENAME = "sequence.hwm"


def _in_range(record: AuditRecord, start: Optional[datetime], end: Optional[datetime]) -> bool:
    if start is not None and record.recorded_at < ensure_utc(start):
        return False
    if end is not None and record.recorded_at >= ensure_utc(end):
        return False
    return True


class InMemoryAuditStore:
    """Keeps records in a list. Intended for tests and embedding.

    Subclass and override ``write`` to inject persistence failures.
    """

    def __init__(self) -> None:
        self._records: List[AuditRecord] = []
        self._hwm = 0
        self._lock = threading.Lock()

    def write(self, record: AuditRecord) -> None:
        with self._lock:
            self._records.append(record)
            self._hwm = max(self._hwm, record.sequence_number)

    def read(self, start: Optional[datetime] = None, end: Optional[datetime] = None) -> Iterator[AuditRecord]:
        with self._lock:
            snapshot = list(self._records)
        snapshot.sort(key=lambda r: r.sequence_number)
        for record in snapshot:
            if _in_range(record, start, end):
                yield record

    def last_sequence(self) -> int:
        with self._lock:
            return self._hwm

    def purge(self, before: datetime) -> int:
        cutoff = ensure_utc(before)
        with self._lock:
            kept = [r for r in self._records if r.recorded_at >= cutoff]
            removed = len(self._records) - len(kept)
            self._records = kept
        return removed


class JsonlAuditStore:
    """One JSONL file per UTC day under ``directory``.

    Layout::

        <directory>/audit-2025-01-31.jsonl   one AuditRecord per line
        <directory>/sequence.hwm             highest sequence ever issued

    Each write is flushed and fsynced before returning. The high-water mark
    file is refreshed before any purge so that sequence numbers are never
    reused after old files are removed and the process restarts.
    """

    def __init__(self, directory: str | Path) -> None:
        self._dir = Path(directory)
        self._dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._hwm = self._recover_hwm()

    @property
    def directory(self) -> Path:
        return self._dir

    def path_for(self, day: date) -> Path:
        return self._dir / f"{AUDIT_FILE_PREFIX}{day.isoformat()}{AUDIT_FILE_SUFFIX}"

    def write(self, record: AuditRecord) -> None:
        """Append ``record`` durably.

        If the append or the fsync fails the file is truncated back to its
        previous length before the error propagates, so a record reported as
        failed is never read back later.
        """
        line = (record.model_dump_json() + "\n").encode("utf-8")
        path = self.path_for(record.recorded_at.date())
        with self._lock:
            with path.open("ab") as f:
                position = f.seek(0, os.SEEK_END)
                try:
                    f.write(line)
                    f.flush()
                    os.fsync(f.fileno())
                except BaseException:
                    self._rollback(f, position)
                    raise
            self._hwm = max(self._hwm, record.sequence_number)

    def _rollback(self, f, position: int) -> None:
        try:
            f.truncate(position)
            f.flush()
            os.fsync(f.fileno())
        except OSError as e:
            logger.error(f"Could not roll back partial audit write in {f.name}: {e}")

    def read(self, start: Optional[datetime] = None, end: Optional[datetime] = None) -> Iterator[AuditRecord]:
        first_day = ensure_utc(start).date() if start is not None else None
        last_day = ensure_utc(end).date() if end is not None else None
        for day, path in self._day_files():
            if first_day is not None and day < first_day:
                continue
            if last_day is not None and day > last_day:
                continue
            records = sorted(self._read_file(path), key=lambda r: r.sequence_number)
            for record in records:
                if _in_range(record, start, end):
                    yield record

    def last_sequence(self) -> int:
        with self._lock:
            return self._hwm

    def purge(self, before: datetime) -> int:
        """Delete every day file whose whole day lies before ``before``.

        Returns:
            The number of files removed.
        """
        cutoff = ensure_utc(before)
        with self._lock:
            self._write_hwm(self._hwm)
            removed = 0
            for day, path in self._day_files():
                day_end = datetime(day.year, day.month, day.day, tzinfo=cutoff.tzinfo) + timedelta(days=1)
                if day_end <= cutoff:
                    path.unlink()
                    removed += 1
                    logger.info(f"Purged audit file {path.name}")
        return removed

    def _day_files(self) -> List[tuple]:
        files = []
        for path in self._dir.glob(f"{AUDIT_FILE_PREFIX}*{AUDIT_FILE_SUFFIX}"):
            stamp = path.name[len(AUDIT_FILE_PREFIX) : -len(AUDIT_FILE_SUFFIX)]
            try:
                day = date.fromisoformat(stamp)
            except ValueError:
                logger.warning(f"Ignoring unexpected file in audit directory: {path.name}")
                continue
            files.append((day, path))
        files.sort()
        return files

    def _read_file(self, path: Path) -> Iterator[AuditRecord]:
        with path.open("r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    yield AuditRecord.model_validate_json(line)
                except ValidationError as e:
                    logger.warning(f"Skipping malformed audit entry {path.name}:{line_num}: {e}")

    def _recover_hwm(self) -> int:
        persisted = 0
        hwm_path = self._dir / HWM_FILENAME
        if hwm_path.exists():
            try:
                persisted = int(hwm_path.read_text(encoding="utf-8").strip() or 0)
            except (OSError, ValueError) as e:
                logger.warning(f"Could not read {hwm_path}: {e}")
        scanned = 0
        for _, path in self._day_files():
            for record in self._read_file(path):
                scanned = max(scanned, record.sequence_number)
        return max(persisted, scanned)

    def _write_hwm(self, value: int) -> None:
        hwm_path = self._dir / HWM_FILENAME
        tmp_path = hwm_path.with_suffix(".tmp")
        with tmp_path.open("w", encoding="utf-8") as f:
            f.write(str(value))
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, hwm_path)

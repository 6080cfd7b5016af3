"""Security event storage."""

from __future__ import annotations

import logging
import threading
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Iterator, List, Optional, Protocol

from pydantic import ValidationError

from ..schemas.domain import ensure_utc
from .models import SecurityEvent

logger = logging.getLogger(__name__)

SECURITY_FILE_PREFIX = "security-events-"
SECURITY_FILE_SUFFIX = ".jsonl"


class SecurityEventStore(Protocol):
    def write(self, event: SecurityEvent) -> None: ...

    def read(self, start: Optional[datetime] = None, end: Optional[datetime] = None) -> Iterator[SecurityEvent]: ...

    def purge(self, before: datetime) -> int: ...


def _in_range(event: SecurityEvent, start: Optional[datetime], end: Optional[datetime]) -> bool:
    if start is not None and event.timestamp < ensure_utc(start):
        return False
    if end is not None and event.timestamp >= ensure_utc(end):
        return False
    return True


class InMemorySecurityEventStore:
    def __init__(self) -> None:
        self._events: List[SecurityEvent] = []
        self._lock = threading.Lock()

    def write(self, event: SecurityEvent) -> None:
        with self._lock:
            self._events.append(event)

    def read(self, start: Optional[datetime] = None, end: Optional[datetime] = None) -> Iterator[SecurityEvent]:
        with self._lock:
            snapshot = sorted(self._events, key=lambda e: e.timestamp)
        return (e for e in snapshot if _in_range(e, start, end))

    def purge(self, before: datetime) -> int:
        cutoff = ensure_utc(before)
        with self._lock:
            kept = [e for e in self._events if e.timestamp >= cutoff]
            removed = len(self._events) - len(kept)
            self._events = kept
        return removed


class JsonlSecurityEventStore:
    """Append events to ``security-events-YYYY-MM-DD.jsonl`` files."""

    def __init__(self, directory: str | Path) -> None:
        self._dir = Path(directory)
        self._dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def path_for(self, day: date) -> Path:
        return self._dir / f"{SECURITY_FILE_PREFIX}{day.isoformat()}{SECURITY_FILE_SUFFIX}"

    def write(self, event: SecurityEvent) -> None:
        path = self.path_for(event.timestamp.date())
        with self._lock:
            with path.open("a", encoding="utf-8") as f:
                f.write(event.model_dump_json() + "\n")

    def read(self, start: Optional[datetime] = None, end: Optional[datetime] = None) -> Iterator[SecurityEvent]:
        first_day = ensure_utc(start).date() if start is not None else None
        last_day = ensure_utc(end).date() if end is not None else None
        for day, path in self._day_files():
            if first_day is not None and day < first_day:
                continue
            if last_day is not None and day > last_day:
                continue
            events = sorted(self._read_file(path), key=lambda e: e.timestamp)
            for event in events:
                if _in_range(event, start, end):
                    yield event

    def purge(self, before: datetime) -> int:
        cutoff = ensure_utc(before)
        removed = 0
        with self._lock:
            for day, path in self._day_files():
                day_end = datetime(day.year, day.month, day.day, tzinfo=cutoff.tzinfo) + timedelta(days=1)
                if day_end <= cutoff:
                    path.unlink()
                    removed += 1
        if removed:
            logger.info(f"Purged {removed} security event files older than {cutoff.date().isoformat()}")
        return removed

    def _day_files(self) -> List[tuple]:
        files = []
        for path in self._dir.glob(f"{SECURITY_FILE_PREFIX}*{SECURITY_FILE_SUFFIX}"):
            stamp = path.name[len(SECURITY_FILE_PREFIX) : -len(SECURITY_FILE_SUFFIX)]
            try:
                files.append((date.fromisoformat(stamp), path))
            except ValueError:
                continue
        files.sort()
        return files

    def _read_file(self, path: Path) -> Iterator[SecurityEvent]:
        with path.open("r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    yield SecurityEvent.model_validate_json(line)
                except ValidationError as e:
                    logger.warning(f"Skipping malformed security event {path.name}:{line_num}: {e}")

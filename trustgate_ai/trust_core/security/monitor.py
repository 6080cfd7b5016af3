"""Security protection state.

``SecurityMonitor`` keeps the security event log and the manual-only switch.
A suspicious command line is recorded as an event; a high-severity one also
switches the engine into manual-only mode, where no operation is
auto-approved until an operator calls ``restore_auto_approval``.

The mode is recovered from the last ``mode_change`` event on start-up, so a
lockdown survives a restart when the events are kept on disk.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Sequence

from ..schemas.domain import Operation, trailing_days
from .models import SecurityEvent, SecurityEventStats, SecurityEventType, SecuritySeverity, SecurityState
from .stores import InMemorySecurityEventStore, SecurityEventStore

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SecurityMonitor:
    def __init__(
        self,
        store: Optional[SecurityEventStore] = None,
        *,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._store = store or InMemorySecurityEventStore()
        self._clock = clock or _utc_now
        self._lock = threading.Lock()
        self._state = self._recover_state()

    @property
    def store(self) -> SecurityEventStore:
        return self._store

    @property
    def manual_only(self) -> bool:
        return self._state.manual_only

    def state(self) -> SecurityState:
        with self._lock:
            return self._state.model_copy()

    def record_suspicious(self, op: Operation, patterns: Sequence[str], severity: SecuritySeverity) -> None:
        """
        Log a suspicious command line as a security event.

        Args:
            op: The operation whose command line matched.
            patterns: Names of the matched pattern categories.
            severity: The highest severity among the matches. ``high``
                switches to manual-only mode.
        """
        now = self._clock()
        names = ", ".join(patterns)
        logger.warning(f"Suspicious pattern ({names}) in operation {op.id}: '{op.command_line}'")
        self._write(
            SecurityEvent(
                event_type=SecurityEventType.suspicious_pattern,
                severity=severity,
                description=f"Suspicious command line: {names}",
                timestamp=now,
                operation_id=op.id,
                command_line=op.command_line,
                patterns=tuple(patterns),
            )
        )
        with self._lock:
            self._state = self._state.model_copy(update={"last_incident_at": now})
        if severity == SecuritySeverity.high:
            self.enter_manual_mode(f"high-severity suspicious pattern ({names})")

    def enter_manual_mode(self, reason: str) -> bool:
        """Stop all auto approvals. Returns False if already in manual-only mode."""
        return self._set_mode(True, reason)

    def restore_auto_approval(self, reason: str = "manual restoration") -> bool:
        """Leave manual-only mode. Returns False if it was not active."""
        return self._set_mode(False, reason)

    def events(self, start: Optional[datetime] = None, end: Optional[datetime] = None) -> List[SecurityEvent]:
        return list(self._store.read(start, end))

    def stats(self, days: int = 7) -> SecurityEventStats:
        start, end = trailing_days(self._clock(), days)
        events = self.events(start, end)
        return SecurityEventStats(
            period_start=start,
            period_end=end,
            total_events=len(events),
            suspicious_patterns=sum(1 for e in events if e.event_type == SecurityEventType.suspicious_pattern),
            mode_changes=sum(1 for e in events if e.event_type == SecurityEventType.mode_change),
            high_severity=sum(1 for e in events if e.severity == SecuritySeverity.high),
            manual_only=self.manual_only,
        )

    def purge(self, retention_days: int) -> int:
        cutoff = self._clock() - timedelta(days=retention_days)
        try:
            return self._store.purge(cutoff)
        except Exception as e:
            logger.warning(f"Security event purge failed: {e}")
            return 0

    def _set_mode(self, manual_only: bool, reason: str) -> bool:
        now = self._clock()
        with self._lock:
            if self._state.manual_only == manual_only:
                return False
            self._state = self._state.model_copy(
                update={"manual_only": manual_only, "reason": reason, "changed_at": now}
            )

        if manual_only:
            logger.warning(f"Switched to manual-only approval: {reason}")
        else:
            logger.info(f"Auto approval restored: {reason}")
        self._write(
            SecurityEvent(
                event_type=SecurityEventType.mode_change,
                severity=SecuritySeverity.high if manual_only else SecuritySeverity.info,
                description=("Switched to manual-only approval: " if manual_only else "Auto approval restored: ")
                + reason,
                timestamp=now,
                manual_only=manual_only,
            )
        )
        return True

    def _write(self, event: SecurityEvent) -> None:
        try:
            self._store.write(event)
        except Exception as e:
            logger.error(f"Failed to record security event {event.event_type.value}: {e}")

    def _recover_state(self) -> SecurityState:
        state = SecurityState()
        try:
            for event in self._store.read():
                if event.event_type == SecurityEventType.suspicious_pattern:
                    state.last_incident_at = event.timestamp
                elif event.manual_only is not None:
                    state.manual_only = event.manual_only
                    state.reason = event.description
                    state.changed_at = event.timestamp
        except Exception as e:
            logger.error(f"Could not recover security state, starting with auto approval enabled: {e}")
            return SecurityState()
        if state.manual_only:
            logger.warning(f"Manual-only approval mode still active: {state.reason}")
        return state

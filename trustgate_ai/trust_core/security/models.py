from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Tuple
from uuid import uuid4

from pydantic import Field, field_validator

from ..schemas.base import BaseSchema, FrozenSchema
from ..schemas.domain import ensure_utc


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SecurityEventType(str, Enum):
    suspicious_pattern = "suspicious_pattern"
    mode_change = "mode_change"


class SecuritySeverity(str, Enum):
    info = "info"
    medium = "medium"
    high = "high"


class SecurityEvent(FrozenSchema):
    """One entry in the security event log.

    ``manual_only`` is set on ``mode_change`` events and holds the mode that
    was switched to, which is how the mode is recovered after a restart.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    event_type: SecurityEventType
    severity: SecuritySeverity
    description: str
    timestamp: datetime = Field(default_factory=_utc_now)
    operation_id: Optional[str] = None
    command_line: Optional[str] = None
    patterns: Tuple[str, ...] = ()
    manual_only: Optional[bool] = None

    @field_validator("timestamp")
    @classmethod
    def _normalize_timestamp(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class SecurityState(BaseSchema):
    manual_only: bool = False
    reason: Optional[str] = None
    changed_at: Optional[datetime] = None
    last_incident_at: Optional[datetime] = None


class SecurityEventStats(BaseSchema):
    period_start: datetime
    period_end: datetime
    total_events: int = 0
    suspicious_patterns: int = 0
    mode_changes: int = 0
    high_severity: int = 0
    manual_only: bool = False

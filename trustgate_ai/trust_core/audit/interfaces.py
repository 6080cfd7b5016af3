from __future__ import annotations

from datetime import datetime
from typing import Iterator, Optional, Protocol

from ..schemas.domain import AuditRecord


class AuditStore(Protocol):
    """Durable storage for audit records.

    Implementations must make ``write`` durable before returning and must
    raise on failure. ``read`` yields records in ascending sequence order.
    ``last_sequence`` reports the highest sequence number ever written, even
    if that record has since been purged.
    """

    def write(self, record: AuditRecord) -> None: ...

    def read(self, start: Optional[datetime] = None, end: Optional[datetime] = None) -> Iterator[AuditRecord]: ...

    def last_sequence(self) -> int: ...

    def purge(self, before: datetime) -> int: ...

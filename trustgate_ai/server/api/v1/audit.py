"""
Audit Log Endpoints.

Read-only, paginated access to the audit trail in sequence order, plus
per-day approval counts.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Query
from starlette.concurrency import run_in_threadpool

from trustgate_ai.server.schemas import AuditPage
from trustgate_ai.server.services.deps import TrustServiceDep
from trustgate_ai.trust_core.schemas.domain import AuditLogStats

router = APIRouter()


@router.get(
    "",
    response_model=AuditPage,
    summary="List Audit Records",
    description="Page through audit records, optionally filtered by time window and starting sequence number.",
)
async def list_audit_records(
    service: TrustServiceDep,
    start: Optional[datetime] = Query(default=None, description="Inclusive lower bound on recorded_at."),
    end: Optional[datetime] = Query(default=None, description="Exclusive upper bound on recorded_at."),
    from_sequence: Optional[int] = Query(default=None, ge=1, description="First sequence number to return."),
    limit: int = Query(default=100, ge=1, le=1000, description="Maximum number of records."),
) -> AuditPage:
    query = service.audit_records(start=start, end=end, from_sequence=from_sequence)
    records = await run_in_threadpool(query.to_list, limit + 1)
    next_sequence = None
    if len(records) > limit:
        next_sequence = records[limit].sequence_number
        records = records[:limit]
    return AuditPage(records=records, next_sequence=next_sequence)


@router.get(
    "/stats",
    response_model=AuditLogStats,
    summary="Audit Statistics",
    description="Auto, manual and rate-limited decision counts per UTC day, covering today and the days before it.",
)
async def audit_stats(
    service: TrustServiceDep,
    days: int = Query(default=7, ge=1, le=366, description="Number of days to cover, including today."),
) -> AuditLogStats:
    return await run_in_threadpool(service.audit_stats, days)

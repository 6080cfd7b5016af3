"""
Metrics Endpoints.

Aggregates are recomputed from recorded samples on every request. The
projections in policy change reports are estimates and never appear here.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, HTTPException, Query
from starlette.concurrency import run_in_threadpool

from trustgate_ai.server.services.deps import TrustServiceDep
from trustgate_ai.trust_core.schemas.domain import AggregatedMetrics, MetricsSnapshot, ensure_utc

router = APIRouter()


@router.get(
    "",
    response_model=AggregatedMetrics,
    summary="Aggregate Metrics",
    description="Aggregate decisions recorded in the half-open window [start, end). Defaults to the last 24 hours.",
    responses={422: {"description": "start is not before end"}},
)
async def aggregate_metrics(
    service: TrustServiceDep,
    start: Optional[datetime] = Query(default=None, description="Inclusive window start (UTC if naive)."),
    end: Optional[datetime] = Query(default=None, description="Exclusive window end (UTC if naive)."),
) -> AggregatedMetrics:
    window_end = ensure_utc(end) if end is not None else datetime.now(timezone.utc)
    window_start = ensure_utc(start) if start is not None else window_end - timedelta(days=1)
    if window_start >= window_end:
        raise HTTPException(status_code=422, detail="start must be before end")
    return await run_in_threadpool(service.aggregate, window_start, window_end)


@router.get(
    "/current",
    response_model=MetricsSnapshot,
    summary="Current Metrics",
    description="Today's totals, the recent rolling average and the alert count.",
)
async def current_metrics(service: TrustServiceDep) -> MetricsSnapshot:
    return await run_in_threadpool(service.current_metrics)

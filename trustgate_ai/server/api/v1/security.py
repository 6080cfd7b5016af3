"""
Security Endpoints.

Inspect the security event log and switch between normal and manual-only
approval. While manual-only mode is active no operation is auto-approved.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Query
from starlette.concurrency import run_in_threadpool

from trustgate_ai.core.logging_config import get_logger
from trustgate_ai.server.schemas import SecurityModeRequest, SecurityModeResponse
from trustgate_ai.server.services.deps import TrustServiceDep
from trustgate_ai.trust_core.security import SecurityEvent, SecurityEventStats, SecurityState

logger = get_logger(__name__)

router = APIRouter()


@router.get(
    "/state",
    response_model=SecurityState,
    summary="Security State",
    description="Whether manual-only mode is active, why, and when the last suspicious operation was seen.",
)
async def security_state(service: TrustServiceDep) -> SecurityState:
    return service.security_state()


@router.get(
    "/events",
    response_model=List[SecurityEvent],
    summary="List Security Events",
    description="Security events in time order, optionally limited to the half-open window [start, end).",
)
async def list_security_events(
    service: TrustServiceDep,
    start: Optional[datetime] = Query(default=None, description="Inclusive lower bound on the event timestamp."),
    end: Optional[datetime] = Query(default=None, description="Exclusive upper bound on the event timestamp."),
) -> List[SecurityEvent]:
    return await run_in_threadpool(service.security_events, start, end)


@router.get(
    "/stats",
    response_model=SecurityEventStats,
    summary="Security Statistics",
    description="Event counts for today and the days before it.",
)
async def security_stats(
    service: TrustServiceDep,
    days: int = Query(default=7, ge=1, le=366, description="Number of days to cover, including today."),
) -> SecurityEventStats:
    return await run_in_threadpool(service.security_stats, days)


@router.post(
    "/manual-mode",
    response_model=SecurityModeResponse,
    summary="Enter Manual-Only Mode",
    description="Stop all auto approvals until auto approval is restored.",
)
async def enter_manual_mode(service: TrustServiceDep, request: SecurityModeRequest) -> SecurityModeResponse:
    changed = await run_in_threadpool(service.enter_manual_mode, request.reason)
    logger.info(f"Manual-only mode requested via API (changed={changed}): {request.reason}")
    return SecurityModeResponse(changed=changed, state=service.security_state())


@router.post(
    "/restore",
    response_model=SecurityModeResponse,
    summary="Restore Auto Approval",
    description="Leave manual-only mode so the policy's allow lists apply again.",
)
async def restore_auto_approval(service: TrustServiceDep, request: SecurityModeRequest) -> SecurityModeResponse:
    changed = await run_in_threadpool(service.restore_auto_approval, request.reason)
    logger.info(f"Auto approval restore requested via API (changed={changed}): {request.reason}")
    return SecurityModeResponse(changed=changed, state=service.security_state())

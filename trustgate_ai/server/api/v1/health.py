"""
Health Check Endpoints.

This module provides system status endpoints (health, version) used for
monitoring and deployment verification. ``/health`` reports whether the audit
store can still accept records and whether the metrics consumer is alive.
"""

import os

from fastapi import APIRouter

from trustgate_ai.server.core import constant
from trustgate_ai.server.schemas import AuditHealth, HealthResponse, MetricsHealth
from trustgate_ai.server.services.deps import TrustServiceDep

router = APIRouter()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health Check",
    description="Check the audit store, the metrics consumer and the approval mode.",
    response_description="Status object.",
)
async def health_check(service: TrustServiceDep) -> HealthResponse:
    """
    Health check endpoint.

    The status is ``degraded`` when the audit directory is not writable, since
    every decision would then fall back to manual approval, or when the
    metrics consumer thread has died.
    """
    directory = getattr(service.audit.store, "directory", None)
    writable = directory is None or (os.path.isdir(directory) and os.access(directory, os.W_OK))
    audit = AuditHealth(
        last_sequence=service.audit.last_sequence,
        directory=str(directory) if directory is not None else None,
        writable=writable,
    )
    metrics = MetricsHealth(
        consumer_running=service.metrics.running,
        dropped_samples=service.metrics.dropped_samples,
    )
    status = "ok" if audit.writable and metrics.consumer_running else "degraded"
    return HealthResponse(status=status, audit=audit, metrics=metrics, manual_only=service.security.manual_only)


@router.get(
    "/version",
    summary="Get Version",
    description="Retrieve version information for the API server.",
    response_description="Version object.",
)
async def version():
    return {"version": constant.VERSION, "schema_version": constant.SCHEMA_VERSION}

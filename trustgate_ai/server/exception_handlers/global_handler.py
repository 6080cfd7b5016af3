"""
Exception Handlers for FastAPI Application.

This module maps trust core errors to HTTP responses and provides a global
handler that catches all other unhandled exceptions, logging detailed
information including an error ID and request context.
"""

import traceback

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from trustgate_ai.core.logging_config import get_logger
from trustgate_ai.trust_core.errors import AuditError, PolicyConflict

logger = get_logger(__name__)


async def policy_conflict_handler(request: Request, exc: PolicyConflict) -> JSONResponse:
    """Reject a self-contradicting policy document with 409."""
    logger.warning(f"Rejected policy in {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=409,
        content={"detail": str(exc), "fields": list(exc.fields), "pattern": exc.pattern},
    )


async def audit_error_handler(request: Request, exc: AuditError) -> JSONResponse:
    """
    Report an audit failure with 503.

    The body carries the manual fallback decision so the caller still has a
    decision to act on.
    """
    logger.error(f"Audit failure in {request.method} {request.url.path}: {exc}")
    fallback = exc.fallback_decision
    return JSONResponse(
        status_code=503,
        content={
            "detail": str(exc),
            "decision": fallback.model_dump(mode="json") if fallback is not None else None,
        },
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Global exception handler to log detailed error information.

    This handler is called for any unhandled exception in the application.
    It logs the full error context and returns a JSON response with an error ID
    that clients can use to reference the error when reporting issues.

    Args:
        request: The HTTP request that caused the exception
        exc: The exception that was raised

    Returns:
        JSONResponse with error details and error ID
    """
    error_id = id(exc)

    logger.error(
        f"Unhandled exception [{error_id}] in {request.method} {request.url.path}: {str(exc)}",
        exc_info=True,
        extra={
            "error_id": error_id,
            "method": request.method,
            "path": request.url.path,
            "query_params": dict(request.query_params),
            "client": request.client.host if request.client else "unknown",
            "error_type": type(exc).__name__,
            "traceback": traceback.format_exc(),
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "error_id": error_id,
            "error_type": type(exc).__name__,
        },
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """
    Register exception handlers with the FastAPI application.

    Args:
        app: The FastAPI application instance
    """
    app.add_exception_handler(PolicyConflict, policy_conflict_handler)
    app.add_exception_handler(AuditError, audit_error_handler)
    app.add_exception_handler(Exception, global_exception_handler)
    logger.debug("Exception handlers registered successfully")

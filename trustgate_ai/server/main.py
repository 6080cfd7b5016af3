"""
Main Application Entry Point.

This module initializes the FastAPI application, configures middleware (CORS),
registers exception handlers and includes all API routers. It serves as the
root of the web server.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from trustgate_ai.core.logging_config import get_logger, setup_logging
from trustgate_ai.core.monitoring import initialize_logfire

from .api.v1 import audit, decisions, health, metrics, policies, security
from .core import constant
from .core.config import settings
from .exception_handlers import setup_exception_handlers
from .services.trust import get_trust_service, shutdown_trust_service

# Initialize logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifespan events.

    On startup the trust service is built (loading the policy file, recovering
    the audit sequence and replaying the retained audit window into metrics) and
    retention is applied. On shutdown the metrics consumer is drained.
    """
    logger.info("Starting up TrustGate-AI Server...")
    service = get_trust_service()
    try:
        service.purge_expired(settings.audit.retention_days, settings.metrics.retention_days)
        replayed = service.replay_audit(start=_replay_start(settings.metrics.retention_days))
        logger.info(f"Replayed {replayed} audit records into metrics")
    except Exception as e:
        logger.error(f"Startup maintenance failed: {e}", exc_info=True)

    yield

    logger.info("Shutting down TrustGate-AI Server...")
    shutdown_trust_service()


def _replay_start(retention_days: int) -> datetime:
    return datetime.now(timezone.utc) - timedelta(days=retention_days)


app = FastAPI(
    title=constant.PROJECT_NAME,
    description="""
    TrustGate-AI Server API

    Trust-approval policy engine for an automated coding agent. Every operation the
    agent wants to perform is classified and decided as auto or manual approval,
    audited, and recorded in metrics.
    """,
    version=constant.VERSION,
    openapi_url=f"{constant.API_V1_STR}/openapi.json",
    docs_url=f"{constant.API_V1_STR}/docs",
    redoc_url=f"{constant.API_V1_STR}/redoc",
    lifespan=lifespan,
)

# Set all CORS enabled origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_exception_handlers(app)
initialize_logfire(app)

app.include_router(health.router, tags=["health"])
app.include_router(decisions.router, prefix=f"{constant.API_V1_STR}/decisions", tags=["decisions"])
app.include_router(policies.router, prefix=f"{constant.API_V1_STR}/policies", tags=["policies"])
app.include_router(metrics.router, prefix=f"{constant.API_V1_STR}/metrics", tags=["metrics"])
app.include_router(audit.router, prefix=f"{constant.API_V1_STR}/audit", tags=["audit"])
app.include_router(security.router, prefix=f"{constant.API_V1_STR}/security", tags=["security"])


def run() -> None:
    """Run the server with uvicorn using the configured host and port."""
    uvicorn.run(
        "trustgate_ai.server.main:app",
        host=settings.server_host,
        port=settings.server_port,
        log_level=settings.log_level.lower(),
    )

"""
Leave Engine - Main Application Entry Point
"""
import logging
from urllib.parse import urlparse, urlunparse

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi import HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from app.api.router import api_router
from app.core.config import settings
from app.core.errors import (
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)
from app.core.logging import setup_logging
from app.db.session import SessionLocal, create_sqlite_tables
from app.services.escalation_scheduler import EscalationScheduler
from app.services.notification_service import InAppNotifier

# Setup logging first
setup_logging()
logger = logging.getLogger(__name__)


def _mask_database_url(url: str) -> str:
    """Mask password in DATABASE_URL for safe logging; show full path for sqlite."""
    try:
        parsed = urlparse(url)
        if parsed.scheme.startswith("sqlite"):
            return url
        if parsed.password:
            netloc = f"{parsed.username}:****@{parsed.hostname or ''}"
            if parsed.port:
                netloc += f":{parsed.port}"
            return urlunparse(parsed._replace(netloc=netloc))
    except ValueError:
        return "***"
    return url


# Create FastAPI app
app = FastAPI(
    title="Leave Engine",
    description="Leave request lifecycle: balances, approval chains, escalation and signed documents",
    version=settings.VERSION or "1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register exception handlers
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# Include all API routes under /api/v1
app.include_router(api_router, prefix="/api/v1")

app.state.escalation_scheduler = EscalationScheduler(SessionLocal, InAppNotifier)


@app.on_event("startup")
def startup_log_config() -> None:
    """Log DATABASE_URL at startup so it can be verified against Alembic."""
    masked = _mask_database_url(settings.DATABASE_URL)
    logger.info("DATABASE_URL (app): %s", masked)
    create_sqlite_tables()


@app.on_event("startup")
def start_escalation_scheduler() -> None:
    if settings.ENABLE_ESCALATION_SCHEDULER:
        app.state.escalation_scheduler.start()
    else:
        logger.info("escalation scheduler not started (ENABLE_ESCALATION_SCHEDULER=false)")


@app.on_event("shutdown")
def stop_escalation_scheduler() -> None:
    app.state.escalation_scheduler.stop()


async def _handle_operational_error(request, exc: Exception):
    if "no such table" in str(exc).lower():
        return JSONResponse(
            status_code=500,
            content={"detail": "Run alembic upgrade head"},
        )
    return await generic_exception_handler(request, exc)


app.add_exception_handler(OperationalError, _handle_operational_error)

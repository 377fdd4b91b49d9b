"""BloodTrack API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Database and the unit ledger initialized on startup via lifespan context manager
    - app.state.ledger is the process-wide UnitLedger over the SQL store
    - Catch-all error handler never leaks internal details

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - Only smoke and health probes are served; ledger operations are embedded by callers
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from bloodtrack.core.errors import ErrorSeverity
from bloodtrack.infrastructure.database import init_db
from bloodtrack.infrastructure.observability import setup_logging
from bloodtrack.services.sql_store import SqlUnitStore
from bloodtrack.services.unit_ledger import UnitLedger
from bloodtrack.config import get_settings
from bloodtrack.api.routes import health, smoke

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    manager = init_db(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    app.state.ledger = UnitLedger(SqlUnitStore(manager))
    logger.info(f"{settings.service_name} started")
    yield
    logger.info(f"{settings.service_name} shutting down")
    await manager.dispose()


app = FastAPI(
    title="BloodTrack API", version="1.0.0", lifespan=lifespan,
)

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(smoke.router)
app.include_router(health.router)


@app.exception_handler(Exception)
async def generic_error_handler(request: Request, exc: Exception):
    """Catch-all — never leaks internal details."""
    logger.error(
        f"Unhandled exception on {request.url.path}: {exc}",
        exc_info=True,
        extra={"path": request.url.path},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
                "category": "internal",
                "severity": ErrorSeverity.CRITICAL.value,
            },
        },
    )

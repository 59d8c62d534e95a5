# src/skillboard/main.py

"""Main FastAPI application for SkillBoard."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from skillboard import config
from skillboard.api import leaderboard, leagues, users
from skillboard.db.session import create_tables, engine
from skillboard.exceptions import (
    LeagueRuleError,
    ResourceNotFoundError,
    SkillBoardError,
    SnapshotJobBusyError,
    ValidationError,
)
from skillboard.middleware.logging import RequestLoggingMiddleware
from skillboard.services.scheduler import SnapshotScheduler
from skillboard.services.snapshot_service import snapshot_aggregator

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Creates tables, starts the snapshot scheduler, releases the engine."""
    await create_tables()

    scheduler = None
    if config.SNAPSHOT_SCHEDULER_ENABLED:
        scheduler = SnapshotScheduler(
            snapshot_aggregator,
            hour=config.SNAPSHOT_RUN_HOUR_UTC,
            minute=config.SNAPSHOT_RUN_MINUTE_UTC,
        )
        await scheduler.start()
    yield
    if scheduler is not None:
        await scheduler.stop()
    await engine.dispose()


app = FastAPI(title="SkillBoard API", lifespan=lifespan)

app.add_middleware(RequestLoggingMiddleware)


# =============================================================================
# Global Exception Handlers
# =============================================================================


def _error_response(status_code: int, exc: SkillBoardError) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "detail": exc.message,
            "error_type": type(exc).__name__,
            **({"context": exc.details} if exc.details else {}),
        },
    )


@app.exception_handler(ResourceNotFoundError)
async def resource_not_found_handler(
    request: Request, exc: ResourceNotFoundError
) -> JSONResponse:
    """Handle all resource not found errors -> 404."""
    logger.warning("Resource not found: %s", exc.message, extra=exc.details)
    return _error_response(404, exc)


@app.exception_handler(ValidationError)
async def validation_error_handler(
    request: Request, exc: ValidationError
) -> JSONResponse:
    """Handle all validation errors -> 422."""
    logger.warning("Validation error: %s", exc.message, extra=exc.details)
    return _error_response(422, exc)


@app.exception_handler(LeagueRuleError)
async def league_rule_error_handler(
    request: Request, exc: LeagueRuleError
) -> JSONResponse:
    """Join and submission rule violations -> 409."""
    logger.info("League rule violated: %s", exc.message, extra=exc.details)
    return _error_response(409, exc)


@app.exception_handler(SnapshotJobBusyError)
async def snapshot_busy_handler(
    request: Request, exc: SnapshotJobBusyError
) -> JSONResponse:
    logger.info("Snapshot run rejected: %s", exc.message)
    return _error_response(409, exc)


@app.exception_handler(SkillBoardError)
async def skillboard_error_handler(
    request: Request, exc: SkillBoardError
) -> JSONResponse:
    """Catch-all for any other SkillBoard errors -> 500."""
    logger.error("SkillBoard error: %s", exc.message, extra=exc.details, exc_info=True)
    return _error_response(500, exc)


@app.exception_handler(StaleDataError)
async def stale_data_handler(request: Request, exc: StaleDataError) -> JSONResponse:
    """A participant row changed under a concurrent submission -> 409."""
    logger.warning("Concurrent update rejected: %s", exc)
    return JSONResponse(
        status_code=409,
        content={"detail": "The resource was modified concurrently, retry"},
    )


@app.exception_handler(IntegrityError)
async def integrity_error_handler(
    request: Request, exc: IntegrityError
) -> JSONResponse:
    """Handle database integrity constraint violations."""
    error_msg = str(exc.orig) if exc.orig else str(exc)
    logger.warning("Database integrity error: %s", error_msg)

    # Unique constraint violations -> 409 Conflict
    if "UNIQUE constraint failed" in error_msg or "duplicate key" in error_msg:
        return JSONResponse(
            status_code=409,
            content={"detail": "Resource already exists with given unique field(s)"},
        )

    # Foreign key violations -> 400 Bad Request
    fk_error = "FOREIGN KEY constraint failed" in error_msg
    if fk_error or "violates foreign key" in error_msg:
        return JSONResponse(
            status_code=400,
            content={"detail": "Referenced resource does not exist"},
        )

    return JSONResponse(
        status_code=400,
        content={"detail": "Database constraint violation"},
    )


@app.exception_handler(SQLAlchemyError)
async def sqlalchemy_error_handler(
    request: Request, exc: SQLAlchemyError
) -> JSONResponse:
    """Catch-all for other SQLAlchemy database errors."""
    logger.error("Database error: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "An internal database error occurred"},
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions."""
    logger.error("Unhandled exception: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "An internal server error occurred"},
    )


app.include_router(users.router)
app.include_router(leagues.router)
app.include_router(leaderboard.router)


@app.get("/", tags=["Root"])
async def read_root() -> dict[str, str]:
    """Provides a welcome message."""
    return {"message": "Welcome to the SkillBoard API"}


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint for monitoring."""
    return {"status": "healthy"}

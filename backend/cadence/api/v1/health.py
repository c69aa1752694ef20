"""Liveness and readiness endpoints."""

import structlog
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cadence.config import get_settings
from cadence.db.session import get_db_session
from cadence.utils.clock import ClockDep

router = APIRouter()
logger = structlog.get_logger()
settings = get_settings()


async def _check_database(db: AsyncSession) -> str:
    try:
        await db.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        logger.warning("readiness_database_failed", error=str(e))
        return f"unavailable: {e.__class__.__name__}"
    return "ok"


@router.get("/health")
async def health_check() -> dict[str, str]:
    """Liveness: the process is up and knows which zone it schedules in."""
    return {
        "status": "healthy",
        "app": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "civil_timezone": settings.civil_timezone,
    }


@router.get("/health/ready")
async def readiness_check(
    response: Response,
    clock: ClockDep,
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    """Readiness: the database answers and the civil clock resolves.

    Responds 503 while any dependency is down so load balancers stop routing.
    """
    database = await _check_database(db)
    ready = database == "ok"
    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return {
        "status": "healthy" if ready else "unhealthy",
        "version": settings.app_version,
        "database": database,
        "clock": {"timezone": clock.tz_name, "now": clock.format(clock.now())},
    }

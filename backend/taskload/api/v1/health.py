"""Health check endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from taskload.config import get_settings
from taskload.db.session import get_db_session
from taskload.rate_limit import limiter
from taskload.services.cache import cache

router = APIRouter()
settings = get_settings()


@router.get("/health")
@limiter.exempt
async def health_check() -> dict[str, str]:
    """Basic health check."""
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
    }


@router.get("/health/ready")
@limiter.exempt
async def readiness_check(
    db: AsyncSession = Depends(get_db_session),
) -> dict[str, str | dict[str, str]]:
    """Readiness check covering the database and, when enabled, Redis."""
    checks: dict[str, str] = {}

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "healthy"
    except Exception as e:
        checks["database"] = f"unhealthy: {e}"

    if cache.enabled:
        try:
            await cache.ping()
            checks["cache"] = "healthy"
        except Exception as e:
            checks["cache"] = f"unhealthy: {e}"

    overall_status = "healthy" if all(v == "healthy" for v in checks.values()) else "unhealthy"

    return {
        "status": overall_status,
        "version": settings.app_version,
        "checks": checks,
    }

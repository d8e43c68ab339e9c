"""Health check routes."""

from fastapi import APIRouter
import redis
from sqlalchemy import text

from radiocap.config import get_settings
from radiocap.schemas.schemas import HealthResponse
from radiocap.services.storage import StorageService

router = APIRouter(tags=["System"])

settings = get_settings()

VERSION = "1.0.0"


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Check the health status of the service and its dependencies.",
)
async def health_check():
    """
    Health check endpoint.

    Returns the status of:
    - Database connection
    - Redis connection (Celery broker)
    - Object storage connection
    """
    # Check Redis
    redis_status = "ok"
    try:
        r = redis.from_url(settings.redis_url)
        r.ping()
    except Exception:
        redis_status = "error"

    # Check storage
    storage_status = "ok" if StorageService(settings).health_check() else "error"

    # Check database
    db_status = "ok"
    try:
        from radiocap.db.session import engine
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception:
        db_status = "error"

    overall_status = "healthy"
    if any(s == "error" for s in [redis_status, storage_status, db_status]):
        overall_status = "degraded"

    return HealthResponse(
        status=overall_status,
        version=VERSION,
        database=db_status,
        redis=redis_status,
        storage=storage_status,
    )

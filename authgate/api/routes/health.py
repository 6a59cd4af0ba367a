"""
Health Check Endpoints.

Provides health status for the API and its dependencies.
"""
import os
import time
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import text

from ..models import HealthStatus
from ..deps import get_db, get_redis_client, get_settings
from ...database.user_db import UserDB
from ...utils.config import Settings

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/health", tags=["Health"])

VERSION = os.getenv("APP_VERSION", "0.1.0")


@router.get("", response_model=HealthStatus)
def health_check(
    db: UserDB = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Basic health check endpoint.

    The database is required; Redis is only used by the local 2FA provider
    and falls back to memory, so its failure does not make the API unhealthy.
    """
    services = {}
    overall_healthy = True

    try:
        start = time.time()
        with db.get_session() as session:
            session.execute(text("SELECT 1"))
        latency = (time.time() - start) * 1000
        services["database"] = f"healthy ({latency:.1f}ms)"
    except Exception as e:
        logger.warning(f"Database health check failed: {e}")
        services["database"] = f"unhealthy: {str(e)}"
        overall_healthy = False

    if settings.twofa.provider == "local":
        redis_client = get_redis_client()
        if redis_client is None:
            services["redis"] = "fallback_mode (in-memory)"
        else:
            try:
                start = time.time()
                redis_client.ping()
                latency = (time.time() - start) * 1000
                services["redis"] = f"healthy ({latency:.1f}ms)"
            except Exception as e:
                services["redis"] = f"unhealthy: {str(e)}"

    services["twofa_provider"] = settings.twofa.provider

    return HealthStatus(
        status="healthy" if overall_healthy else "unhealthy",
        version=VERSION,
        services=services,
        timestamp=datetime.now(timezone.utc),
    )

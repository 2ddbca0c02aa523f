"""
Health check endpoint for load balancers and monitoring.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Request

from retail_scraper.config.database import check_database_connection
from retail_scraper.config.settings import get_settings

router = APIRouter()


@router.get("/health", response_model=Dict[str, Any])
async def health_check(request: Request):
    """
    Report service, database and browser pool status.

    The browser starts lazily, so a pool that is not running yet is healthy.
    """
    settings = get_settings()
    database_ok = await check_database_connection(getattr(request.app.state, "engine", None))
    pool = getattr(request.app.state, "pool", None)

    return {
        "status": "healthy" if database_ok else "degraded",
        "service": settings.PROJECT_NAME,
        "version": settings.app_version,
        "environment": settings.ENVIRONMENT,
        "database": "healthy" if database_ok else "unhealthy",
        "browser_pool": pool.stats() if pool is not None else None,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

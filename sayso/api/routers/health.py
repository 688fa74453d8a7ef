"""
Health Check Endpoints
GET /health - Liveness
GET /status - Component checks and latency percentiles
"""

import logging
from typing import Any, Dict

import redis
from fastapi import APIRouter, Depends, status
from sqlalchemy import text
from sqlalchemy.orm import Session

from ..config import APISettings, get_settings
from ..dependencies import get_db
from ..middleware.timing import get_latency_tracker
from ...db.models import utcnow

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
async def health_check() -> Dict[str, str]:
    return {"status": "healthy", "timestamp": utcnow().isoformat()}


@router.get("/status", status_code=status.HTTP_200_OK)
async def status_check(
    settings: APISettings = Depends(get_settings),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """
    Detailed status check.

    Checks the database and Redis, and reports request latency against the
    p95 target. A failing component marks the service ``degraded``.
    """
    status_info: Dict[str, Any] = {
        "status": "healthy",
        "timestamp": utcnow().isoformat(),
        "version": settings.version,
        "environment": settings.environment,
        "components": {},
    }

    try:
        db.execute(text("SELECT 1"))
        status_info["components"]["database"] = {"status": "healthy"}
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        status_info["components"]["database"] = {"status": "unhealthy", "error": str(e)}
        status_info["status"] = "degraded"

    try:
        client = redis.Redis.from_url(settings.redis_url, socket_connect_timeout=1, socket_timeout=1)
        healthy = bool(client.ping())
        status_info["components"]["redis"] = {"status": "healthy" if healthy else "unhealthy"}
        if not healthy:
            status_info["status"] = "degraded"
    except Exception as e:
        logger.warning(f"Redis health check failed: {e}")
        status_info["components"]["redis"] = {"status": "unhealthy", "error": str(e)}
        status_info["status"] = "degraded"

    stats = get_latency_tracker().get_stats()
    status_info["performance"] = {
        "request_count": stats["count"],
        "latency_p50_ms": round(stats["p50"], 2),
        "latency_p95_ms": round(stats["p95"], 2),
        "latency_p99_ms": round(stats["p99"], 2),
        "target_p95_ms": settings.target_p95_latency_ms,
        "meets_target": stats["p95"] <= settings.target_p95_latency_ms,
    }

    return status_info

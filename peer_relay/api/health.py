"""
Health endpoints.

``/health`` is a liveness probe. ``/api/health`` reports whether the relay
can actually serve peers: database reachable with its tables in place,
signing secret configured and rate limit storage answering.
"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from peer_relay import __version__
from peer_relay.core.config import settings
from peer_relay.core.limiter import get_limiter_storage
from peer_relay.core.utils.database_helpers import check_database_health

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

# Ordered from best to worst; the overall status is the worst section
_SEVERITY = ("healthy", "degraded", "unhealthy")


def _worst(*statuses: str) -> str:
    return max(statuses, key=_SEVERITY.index)


def database_section() -> Dict[str, Any]:
    db_health = check_database_health()
    return {
        "status": {"healthy": "healthy", "warning": "degraded"}.get(db_health["status"], "unhealthy"),
        "type": db_health["database_type"],
        "connected": db_health["connected"],
        "table_count": db_health["table_count"],
        "last_error": db_health["last_error"],
    }


def signaling_section() -> Dict[str, Any]:
    configured = bool(settings.SECRET_KEY)
    return {
        "status": "healthy" if configured else "unhealthy",
        "secret_configured": configured,
        "access_key_required": bool(settings.PEER_API_KEY),
        "poll_interval_ms": settings.PEER_POLL_INTERVAL,
        "auth_timeout_seconds": settings.AUTH_TIMEOUT_SECONDS,
    }


def check_storage_health(redis_url: Optional[str]) -> Dict[str, Any]:
    """Reachability of the storage behind the HTTP rate limiter"""
    if not redis_url:
        return {"type": "memory", "healthy": True, "message": "In-memory storage active"}

    try:
        import redis

        redis.from_url(redis_url, socket_timeout=2).ping()
    except ImportError:
        return {"type": "redis", "healthy": False, "message": "Redis client not installed"}
    except Exception as e:
        logger.warning("Redis health check failed", extra={"error_type": type(e).__name__})
        return {"type": "redis", "healthy": False, "message": f"Redis connection failed: {e}"}

    return {"type": "redis", "healthy": True, "message": "Redis connection successful"}


def rate_limiting_section() -> Dict[str, Any]:
    storage = check_storage_health(get_limiter_storage())
    return {
        "status": "enabled" if storage["healthy"] else "degraded",
        "storage": storage,
        "configuration": {"http_endpoints": settings.rate_limit_http_endpoints},
    }


@router.get("/health")
def health_check():
    """Liveness probe"""
    return {"status": "healthy"}


@router.get("/api/health")
def api_health_check():
    """Readiness report; 503 when the relay cannot serve peers"""
    database = database_section()
    signaling = signaling_section()
    rate_limiting = rate_limiting_section()

    overall = _worst(
        database["status"],
        signaling["status"],
        "healthy" if rate_limiting["status"] == "enabled" else "degraded",
    )

    body = {
        "status": overall,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": __version__,
        "environment": {
            "dev_mode": settings.DEV_MODE,
            "python_version": ".".join(str(part) for part in sys.version_info[:3]),
        },
        "services": {
            "database": database,
            "signaling": signaling,
            "rate_limiting": rate_limiting,
        },
    }
    code = status.HTTP_503_SERVICE_UNAVAILABLE if overall == "unhealthy" else status.HTTP_200_OK
    return JSONResponse(content=body, status_code=code)

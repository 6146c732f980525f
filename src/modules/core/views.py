import time
from typing import Any, Dict

import structlog
from django.core.cache import cache
from django.db import DatabaseError, connections
from django.http import HttpRequest, JsonResponse
from django.utils import timezone

logger = structlog.get_logger()


def _timed_ms(start: float) -> float:
    return round((time.monotonic() - start) * 1000, 2)


def health_check(request: HttpRequest) -> JsonResponse:
    services: Dict[str, Dict[str, Any]] = {}
    healthy = True

    start = time.monotonic()
    try:
        conn = connections["default"]
        conn.ensure_connection()
        with conn.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        services["database"] = {"status": "up", "response_time_ms": _timed_ms(start)}
    except DatabaseError:
        services["database"] = {"status": "down"}
        healthy = False
        logger.error("health_check_db_failure")

    # Cache backends raise their own client errors (redis.ConnectionError, ...)
    start = time.monotonic()
    try:
        cache.set("_health_check", "ok", 10)
        if cache.get("_health_check") != "ok":
            raise ConnectionError("Cache read failed")
        services["cache"] = {"status": "up", "response_time_ms": _timed_ms(start)}
    except Exception:
        services["cache"] = {"status": "down"}
        healthy = False
        logger.error("health_check_cache_failure")

    label = "healthy" if healthy else "unhealthy"
    logger.info("health_check_completed", status=label)

    return JsonResponse(
        {
            "status": label,
            "timestamp": timezone.now().isoformat(),
            "services": services,
        },
        status=200 if healthy else 503,
    )

"""
Infrastructure endpoints that are not part of the chat domain.
"""

import logging

from django.core.cache import cache
from django.db import DatabaseError, connection
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def health_check(request):
    """
    Health check endpoint for load balancers and container probes.

    The database is required; the cache is reported but a cache outage only
    degrades the service.

    HTTP Status Codes:
        200: Database reachable
        503: Database unreachable

    Example Response:
        {"status": "healthy", "database": "connected", "cache": "connected"}
    """
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "cache": "unknown",
    }

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        health_status["database"] = "connected"
    except DatabaseError:
        logger.exception("Health check: database unreachable")
        health_status["database"] = "disconnected"
        health_status["status"] = "unhealthy"

    try:
        cache.set("health_check", "ok", timeout=1)
        connected = cache.get("health_check") == "ok"
    except Exception:
        logger.warning("Health check: cache unreachable", exc_info=True)
        connected = False
    health_status["cache"] = "connected" if connected else "disconnected"

    status_code = 200 if health_status["status"] == "healthy" else 503
    return JsonResponse(health_status, status=status_code)

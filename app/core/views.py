"""
Core views providing infrastructure endpoints.

This module contains views that are not part of the business domain but are
essential for application infrastructure, such as health checks.
"""

import logging

from django.db import DatabaseError, connection
from django.http import JsonResponse
from django_redis import get_redis_connection
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


def health_check(request):
    """
    Health check endpoint for Docker, Kubernetes probes and load balancers.

    The database is required: every ledger read and write goes through it.
    Redis only backs the reconciliation run lock, so losing it degrades
    the service without taking it down.

    Returns:
        JsonResponse with:
        - status: "healthy", "degraded" or "unhealthy"
        - database: "connected" or "disconnected"
        - redis: "connected" or "disconnected"

    HTTP Status Codes:
        200: Database reachable (Redis may be down)
        503: Database unreachable
    """
    health_status = {
        "status": "healthy",
        "database": "connected",
        "redis": "connected",
    }

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
    except DatabaseError:
        logger.exception("Health check: database unreachable")
        health_status["database"] = "disconnected"

    try:
        get_redis_connection("default").ping()
    except (RedisError, NotImplementedError):
        logger.warning("Health check: redis unreachable")
        health_status["redis"] = "disconnected"

    if health_status["database"] != "connected":
        health_status["status"] = "unhealthy"
        return JsonResponse(health_status, status=503)
    if health_status["redis"] != "connected":
        health_status["status"] = "degraded"
    return JsonResponse(health_status, status=200)

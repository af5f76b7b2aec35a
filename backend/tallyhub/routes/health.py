"""
TallyHub Backend — Health, Info & Metrics Routes
==================================================

What:  Operational endpoints outside the /api namespace.
Who:   Docker health checks, load balancers, operators.

Endpoints:
    GET /health           liveness: process is up (never touches the database)
    GET /health/detailed  readiness: application + database (SELECT 1); 503 if any check fails
    GET /info             name, version, runtime and the endpoint map
    GET /metrics          uptime, peak memory, CPU times, OS info

Status levels for /health/detailed:
    healthy:   every check passed (HTTP 200)
    unhealthy: at least one check failed (HTTP 503, stop routing traffic)
"""

import logging
import os
import platform
import resource
import sys
import time

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from tallyhub import __version__
from tallyhub.schemas.envelope import error_response, iso_timestamp, success_response
from tallyhub.schemas.health import (
    ApplicationCheck,
    DatabaseCheck,
    DetailedHealthResponse,
    HealthChecks,
    HealthResponse,
    MemoryUsage,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

APP_NAME = "TallyHub API"
APP_DESCRIPTION = "Access counter and user management API"

ENDPOINTS = {
    "access": {
        "increment": "POST /api/access/increment",
        "count": "GET /api/access/count",
        "statistics": "GET /api/access/statistics",
        "health": "GET /api/access/health",
        "reset": "POST /api/access/reset",
    },
    "users": {
        "create": "POST /api/users",
        "list": "GET /api/users",
        "getById": "GET /api/users/{id}",
        "update": "PUT /api/users/{id}",
        "delete": "DELETE /api/users/{id}",
        "exists": "GET /api/users/{id}/exists",
        "statistics": "GET /api/users/statistics",
        "searchByEmail": "GET /api/users/search/email?email=",
    },
    "health": {
        "basic": "GET /health",
        "detailed": "GET /health/detailed",
        "info": "GET /info",
        "metrics": "GET /metrics",
    },
}

_start_time = time.time()


def uptime_seconds() -> float:
    return round(time.time() - _start_time, 3)


def _peak_rss_bytes() -> int:
    # ru_maxrss is kilobytes on Linux, bytes on macOS
    rss = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    return rss if sys.platform == "darwin" else rss * 1024


def _memory_usage() -> MemoryUsage:
    rss = _peak_rss_bytes()
    return MemoryUsage(max_rss=rss, formatted={"maxRss": f"{round(rss / 1024 / 1024)} MB"})


@router.get("/health", summary="Liveness check")
async def health_check(request: Request) -> JSONResponse:
    settings = request.app.state.settings
    payload = HealthResponse(
        status="healthy",
        timestamp=iso_timestamp(),
        uptime=uptime_seconds(),
        environment=settings.environment,
        version=__version__,
    )
    return success_response(payload, "Application is running")


@router.get("/health/detailed", summary="Readiness check including dependencies")
async def detailed_health_check(request: Request) -> JSONResponse:
    """
    Check the application and its database.

    The database check is SELECT 1 on a pooled connection; response_time is
    the measured round trip in milliseconds.
    """
    application = ApplicationCheck(
        status="healthy",
        uptime=uptime_seconds(),
        memory=_memory_usage(),
        timestamp=iso_timestamp(),
    )

    try:
        elapsed = await request.app.state.database.ping()
        database = DatabaseCheck(status="healthy", connected=True, response_time=round(elapsed, 2))
    except Exception as e:
        logger.warning("Health check: database unreachable: %s", str(e))
        database = DatabaseCheck(status="unhealthy", connected=False, response_time=0)

    failing = [
        name for name, check in (("application", application), ("database", database))
        if check.status != "healthy"
    ]
    if failing:
        return error_response(
            "Some services are unhealthy",
            status_code=503,
            error=f"Unhealthy: {', '.join(failing)}",
        )

    checks = HealthChecks(application=application, database=database)
    payload = DetailedHealthResponse(status="healthy", timestamp=iso_timestamp(), checks=checks)
    return success_response(payload, "All services are running")


@router.get("/info", summary="Application information and endpoint map")
async def app_info(request: Request) -> JSONResponse:
    settings = request.app.state.settings
    info = {
        "name": APP_NAME,
        "description": APP_DESCRIPTION,
        "version": __version__,
        "environment": settings.environment,
        "pythonVersion": platform.python_version(),
        "platform": sys.platform,
        "architecture": platform.machine(),
        "uptime": uptime_seconds(),
        "timestamp": iso_timestamp(),
        "endpoints": ENDPOINTS,
    }
    return success_response(info, "Application information")


@router.get("/metrics", summary="Process metrics")
async def app_metrics() -> JSONResponse:
    times = os.times()
    metrics = {
        "timestamp": iso_timestamp(),
        "uptime": uptime_seconds(),
        "memory": _memory_usage(),
        "cpu": {
            "user": times.user,
            "system": times.system,
        },
        "os": {
            "platform": sys.platform,
            "arch": platform.machine(),
            "pythonVersion": platform.python_version(),
            "pid": os.getpid(),
        },
    }
    return success_response(metrics, "Application metrics")

"""
TallyHub Backend — Request Logging Middleware
===============================================

What:  One access-log line per HTTP request on the `tallyhub.access` logger.
Why:   Uvicorn's access log has no request ID, no duration and no
       severity by outcome.
How:   Times the downstream call and logs method, path, status, duration,
       request ID and client IP. Severity follows the status class:
       5xx → ERROR, 4xx → WARNING, everything else → INFO.

What we log vs what we DON'T log (privacy):
    Log:       method, path, status, duration, IP, user-agent, request ID
    Never log: request bodies (passwords, e-mail addresses), auth headers
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from tallyhub.middleware.request_id import request_id_var

logger = logging.getLogger("tallyhub.access")

# Polled every few seconds by orchestrators; logging them buries real traffic
QUIET_PATHS = {"/health"}


def client_ip_of(request: Request) -> str:
    return request.client.host if request.client else "unknown"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in QUIET_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        method = request.method
        client_ip = client_ip_of(request)
        rid = request_id_var.get("")

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] from %s",
            method,
            path,
            status,
            duration_ms,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "method": method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
                "user_agent": request.headers.get("user-agent", ""),
            },
        )
        return response

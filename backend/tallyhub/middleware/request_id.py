"""
TallyHub Backend — Request ID Middleware
==========================================

What:  Assigns a correlation ID to each request and echoes it in the response.
Why:   Every log line written while serving a request can carry the same ID,
       and clients can quote it when reporting a failure.
How:   Reuses the caller's X-Request-ID header when present, otherwise
       generates a short UUID. The ID lives in a ContextVar (for loggers and
       exception handlers) and on request.state (for route handlers).
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"

# Coroutine-local: concurrent requests on the same thread each see their own value
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def new_request_id() -> str:
    # 8 hex chars: enough to correlate, short enough to read in logs
    return uuid.uuid4().hex[:8]


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get(REQUEST_ID_HEADER) or new_request_id()
        token = request_id_var.set(rid)
        request.state.request_id = rid
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)

        response.headers[REQUEST_ID_HEADER] = rid
        return response

"""
TallyHub Backend — Request Timeout Middleware
===============================================

What:  Gives every HTTP request a fixed wall-clock budget (default 30 s).
How:   Pure ASGI middleware. The downstream app runs under asyncio.wait_for;
       a send() wrapper records whether the response has started. On timeout:
         - response not started → 504 envelope
         - response started     → nothing can be changed, the stream is dropped
       The downstream call is cancelled. A database statement already sent to
       the server may still complete there.

Placed outermost so the budget covers every other middleware as well.
"""

import asyncio
import logging

from tallyhub.exceptions import RequestTimeoutError
from tallyhub.middleware.request_id import request_id_var
from tallyhub.schemas.envelope import error_response

logger = logging.getLogger(__name__)


class TimeoutMiddleware:
    def __init__(self, app, timeout: float = 30.0):
        self.app = app
        self.timeout = timeout

    async def __call__(self, scope, receive, send):
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message):
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await asyncio.wait_for(self.app(scope, receive, send_wrapper), timeout=self.timeout)
        except asyncio.TimeoutError:
            exc = RequestTimeoutError(timeout=self.timeout)
            logger.error(
                "[%s] %s %s exceeded %.1fs budget",
                request_id_var.get(""),
                scope.get("method", ""),
                scope.get("path", ""),
                self.timeout,
            )
            if response_started:
                return
            response = error_response(message=exc.message, status_code=exc.status_code)
            await response(scope, receive, send)

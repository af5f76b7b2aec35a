"""
TallyHub Backend — Request Body Size Limit
============================================

What:  Rejects requests whose declared Content-Length exceeds the configured
       maximum (default 10 MiB) with a 400 envelope, before the body is read.
How:   Pure ASGI check on the request headers. A malformed Content-Length is
       rejected the same way.
"""

import logging

from tallyhub.exceptions import ValidationError
from tallyhub.schemas.envelope import error_response

logger = logging.getLogger(__name__)


class BodySizeLimitMiddleware:
    def __init__(self, app, max_body_size: int = 10 * 1024 * 1024):
        self.app = app
        self.max_body_size = max_body_size

    async def __call__(self, scope, receive, send):
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        declared = None
        for name, value in scope.get("headers", []):
            if name == b"content-length":
                declared = value
                break

        if declared is not None:
            error = self._check(declared)
            if error is not None:
                logger.warning("Rejected request body: %s", error.error)
                response = error_response(
                    message=error.message,
                    status_code=error.status_code,
                    error=error.error,
                )
                await response(scope, receive, send)
                return

        await self.app(scope, receive, send)

    def _check(self, declared: bytes):
        try:
            length = int(declared)
        except ValueError:
            return ValidationError(message="Invalid Content-Length header", error=declared.decode("latin-1"))
        if length < 0:
            return ValidationError(message="Invalid Content-Length header", error=str(length))
        if length > self.max_body_size:
            return ValidationError(
                message="Request body too large",
                error=f"Maximum body size is {self.max_body_size} bytes",
            )
        return None

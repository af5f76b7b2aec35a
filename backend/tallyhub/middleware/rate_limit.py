"""
TallyHub Backend — Rate Limiting Middleware
=============================================

What:  Per-IP sliding window rate limits.
Why:   Caps abuse of the public API, with a much tighter budget on account
       creation than on everything else.
How:   Two independent windows per client IP:
         - global:        every request except health checks and docs
         - user creation: POST /api/users only (counted in both windows)
       A request that exceeds either budget gets a 429 envelope with a
       Retry-After header; nothing downstream runs.

Algorithm: Sliding Window Log
    1. Each IP has a list of request timestamps per window
    2. On each request, drop timestamps older than the window
    3. If the remaining count >= limit, reject with 429
    4. Otherwise record the current timestamp and let the request through

The windows live in process memory, so limits are per worker process. That
is acceptable for the single-node deployment this service targets.
"""

import logging
import time
from collections import defaultdict
from typing import Dict, List, Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from tallyhub.config import Settings
from tallyhub.config import settings as default_settings
from tallyhub.exceptions import RateLimitExceededError
from tallyhub.middleware.logging import client_ip_of
from tallyhub.schemas.envelope import error_response

logger = logging.getLogger(__name__)

USER_CREATION_PATH = "/api/users"


class SlidingWindow:
    """Request timestamps per key over the last `window` seconds."""

    def __init__(self, limit: int, window: int):
        self.limit = limit
        self.window = window
        self._hits: Dict[str, List[float]] = defaultdict(list)

    def hit(self, key: str, now: Optional[float] = None) -> Optional[int]:
        """
        Record a request for `key`.

        Returns:
            None when allowed, otherwise the seconds until a slot frees up
            (the request is not recorded in that case).
        """
        now = time.time() if now is None else now
        window_start = now - self.window
        hits = [ts for ts in self._hits[key] if ts > window_start]

        if len(hits) >= self.limit:
            self._hits[key] = hits
            return int(hits[0] + self.window - now) + 1

        hits.append(now)
        self._hits[key] = hits

        if sum(len(v) for v in self._hits.values()) % 1000 == 0:
            self._cleanup(window_start)
        return None

    def _cleanup(self, window_start: float) -> None:
        inactive = [
            key for key, timestamps in self._hits.items()
            if not timestamps or timestamps[-1] < window_start
        ]
        for key in inactive:
            del self._hits[key]
        if inactive:
            logger.debug("Cleaned up %d inactive rate limit entries", len(inactive))


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Global plus user-creation rate limiting.

    Excluded paths:
        /health, /health/detailed, /: health checks must always get through
        /docs, /redoc, /openapi.json: documentation
    """

    EXCLUDED_PATHS = {"/", "/docs", "/openapi.json", "/redoc"}
    EXCLUDED_PREFIXES = ("/health",)

    def __init__(self, app, settings: Optional[Settings] = None, **kwargs):
        super().__init__(app, **kwargs)
        cfg = settings or default_settings
        self.global_window = SlidingWindow(cfg.rate_limit_requests, cfg.rate_limit_window)
        self.creation_window = SlidingWindow(
            cfg.user_creation_rate_limit_requests,
            cfg.user_creation_rate_limit_window,
        )

    def _is_excluded(self, path: str) -> bool:
        return path in self.EXCLUDED_PATHS or path.startswith(self.EXCLUDED_PREFIXES)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if self._is_excluded(path):
            return await call_next(request)

        client_ip = client_ip_of(request)
        now = time.time()

        retry_after = self.global_window.hit(client_ip, now)
        if retry_after is not None:
            logger.warning(
                "Rate limit exceeded for IP %s on %s %s", client_ip, request.method, path
            )
            return self._reject(RateLimitExceededError(retry_after=retry_after))

        if request.method == "POST" and path.rstrip("/") == USER_CREATION_PATH:
            retry_after = self.creation_window.hit(client_ip, now)
            if retry_after is not None:
                logger.warning("User creation rate limit exceeded for IP %s", client_ip)
                return self._reject(
                    RateLimitExceededError(
                        retry_after=retry_after,
                        message="Too many user creation attempts. Please try again later.",
                    )
                )

        return await call_next(request)

    @staticmethod
    def _reject(exc: RateLimitExceededError) -> Response:
        return error_response(
            message=exc.message,
            status_code=exc.status_code,
            headers={"Retry-After": str(exc.retry_after)},
        )

"""
TallyHub Backend — Security Headers Middleware
================================================

What:  Adds browser hardening headers to every response.

Headers:
    Content-Security-Policy     default-src 'self'; no plugins, no framing
    Strict-Transport-Security   1 year, includeSubDomains, preload
    X-Content-Type-Options      nosniff
    X-Frame-Options             DENY
    Referrer-Policy             no-referrer
    Cross-Origin-Opener-Policy  same-origin

The interactive docs pages (/docs, /redoc) load their assets from a CDN, so
they get the same headers minus the CSP.
"""

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

CONTENT_SECURITY_POLICY = (
    "default-src 'self'; "
    "style-src 'self' 'unsafe-inline'; "
    "script-src 'self'; "
    "img-src 'self' data: https:; "
    "object-src 'none'; "
    "frame-ancestors 'none'"
)

SECURITY_HEADERS = {
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains; preload",
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Opener-Policy": "same-origin",
}

DOCS_PATHS = {"/docs", "/redoc"}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        if request.url.path not in DOCS_PATHS:
            response.headers.setdefault("Content-Security-Policy", CONTENT_SECURITY_POLICY)
        return response

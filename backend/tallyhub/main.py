"""
TallyHub Backend — FastAPI Application Factory
================================================

What:  Creates and configures the FastAPI application instance.
Why:   Centralizes configuration, middleware registration, route mounting,
       exception handling and lifecycle management in one place.
How:   create_app() returns a configured FastAPI instance. Settings and the
       Database handle are attached to `app.state`; nothing downstream reads
       a module-level engine.
Who:   uvicorn (tallyhub.main:app), the `tallyhub` console script and tests.

Lifecycle:
    Startup:
    1. Configure logging
    2. Validate mandatory configuration (DATABASE_URL, JWT_SECRET); abort if missing
    3. Build the Database handle (unless one was injected)
    4. Connect with retries (tenacity); abort if the database never answers

    Shutdown:
    1. Dispose the engine if this app created it
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from tallyhub import __version__
from tallyhub.config import Settings
from tallyhub.config import settings as default_settings
from tallyhub.database import Database
from tallyhub.exceptions import (
    DatabaseError,
    TallyHubError,
    ValidationError,
)
from tallyhub.middleware.body_limit import BodySizeLimitMiddleware
from tallyhub.middleware.logging import RequestLoggingMiddleware
from tallyhub.middleware.rate_limit import RateLimitMiddleware
from tallyhub.middleware.request_id import RequestIDMiddleware, request_id_var
from tallyhub.middleware.security_headers import SecurityHeadersMiddleware
from tallyhub.middleware.timeout import TimeoutMiddleware
from tallyhub.routes import access, health, root, users
from tallyhub.schemas.envelope import error_response

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(level: str = "INFO") -> None:
    """
    Configure the root logger once for the whole process.

    Format: 2024-01-15T12:00:00 [INFO] tallyhub.access: POST /api/users 201 ...
    """
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Chatty at INFO; our own access log covers requests
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings: Settings = app.state.settings

    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging(settings.log_level)
    logger.info("=" * 60)
    logger.info("TallyHub Backend %s starting (environment=%s)", __version__, settings.environment)

    try:
        settings.validate_required()
    except ValueError as e:
        logger.error("Configuration error: %s", str(e))
        logger.error("Fix the configuration and restart the server.")
        raise

    owns_database = app.state.database is None
    if owns_database:
        app.state.database = Database.from_settings(settings)

    try:
        await app.state.database.connect(
            attempts=settings.db_connect_attempts,
            wait=settings.db_connect_wait,
        )
    except Exception as e:
        logger.error(
            "Could not connect to the database after %d attempts: %s",
            settings.db_connect_attempts,
            str(e),
        )
        if owns_database:
            await app.state.database.dispose()
        raise

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("TallyHub Backend shutting down...")
    if owns_database:
        await app.state.database.dispose()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _describe_validation_errors(exc: RequestValidationError) -> tuple:
    """Map FastAPI's parsing errors to (message, joined detail)."""
    details = []
    for err in exc.errors():
        if err.get("type") == "json_invalid":
            return "Invalid JSON in request body", None
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        field = ".".join(loc)
        details.append(f"{field}: {err.get('msg')}" if field else str(err.get("msg")))
    return "Invalid data", ", ".join(details) or None


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register global exception handlers that render the error envelope.

    Handler hierarchy:
        ValidationError         → 400
        RequestValidationError  → 400 (malformed JSON, wrong types, unknown fields)
        DatabaseError           → 500, generic message
        TallyHubError (base)    → the exception's own status code
        HTTPException           → 404 "Route ... not found", others pass through
        Exception (fallback)    → 500; detail only in development

    Context dicts and stack traces are logged, never returned.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        rid = request_id_var.get("")
        logger.warning("[%s] Validation error: %s %s", rid, exc.message, exc.error or "")
        return error_response(exc.message, exc.status_code, error=exc.error)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        rid = request_id_var.get("")
        message, detail = _describe_validation_errors(exc)
        logger.warning("[%s] Request validation failed: %s %s", rid, message, detail or "")
        return error_response(message, 400, error=detail)

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        rid = request_id_var.get("")
        logger.error("[%s] Database error: %s | Context: %s", rid, exc.message, exc.context)
        return error_response("An internal error occurred. Please try again later.", 500)

    @app.exception_handler(TallyHubError)
    async def handle_app_error(request: Request, exc: TallyHubError):
        rid = request_id_var.get("")
        log = logger.error if exc.status_code >= 500 else logger.warning
        log("[%s] %s: %s | Context: %s", rid, type(exc).__name__, exc.message, exc.context)
        return error_response(exc.message, exc.status_code, error=exc.error)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            path = request.url.path
            if request.url.query:
                path = f"{path}?{request.url.query}"
            return error_response(f"Route {request.method} {path} not found", 404)
        if exc.status_code == 405:
            return error_response(
                f"Method {request.method} not allowed for {request.url.path}",
                405,
                headers=getattr(exc, "headers", None),
            )
        return error_response(str(exc.detail), exc.status_code, headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        settings: Settings = request.app.state.settings
        detail = f"{type(exc).__name__}: {exc}" if settings.is_development else None
        return error_response("Internal server error", 500, error=detail)


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: configuration; defaults to the environment-derived singleton
        database: pre-built handle (tests); when omitted the lifespan builds
                  one from settings and owns its lifecycle
    """
    settings = settings or default_settings

    app = FastAPI(
        title="TallyHub API",
        description="Atomic access counter and user management API.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.database = database

    # ── Register Middleware ───────────────────────────────────────────────
    # Executes in REVERSE order of addition (last added = outermost).
    # Resulting order: Timeout → RateLimit → RequestID → Logging → BodySize
    #                  → SecurityHeaders → GZip → CORS → route

    if settings.is_development:
        cors_kwargs = {"allow_origin_regex": ".*"}
    else:
        cors_kwargs = {"allow_origins": settings.cors_origins_list}
    app.add_middleware(
        CORSMiddleware,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
        expose_headers=["X-Request-ID", "Retry-After"],
        **cors_kwargs,
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(BodySizeLimitMiddleware, max_body_size=settings.max_body_size)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware, settings=settings)
    app.add_middleware(TimeoutMiddleware, timeout=settings.request_timeout)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(access.router)
    app.include_router(users.router)
    app.include_router(health.router)
    app.include_router(root.router)

    return app


def run() -> None:
    """Console entry point: `tallyhub`."""
    uvicorn.run(
        "tallyhub.main:app",
        host=default_settings.backend_host,
        port=default_settings.backend_port,
        log_level=default_settings.log_level.lower(),
    )


app = create_app()

"""
Bookshelf API — FastAPI Application Factory
============================================

What:  Creates and configures the FastAPI application instance.
Why:   Centralizes middleware registration, exception handlers, route
       mounting and lifecycle management in one place.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   uvicorn (`uvicorn bookshelf.main:app`) and the test suite.

Application Architecture:
    ┌─────────────────────────────────────────────────────────┐
    │                      FastAPI App                        │
    │                                                         │
    │  Middleware Chain (outermost first):                    │
    │  RequestContext → RateLimit → Authentication → Logging  │
    │  → GZip → CORS                                          │
    │                                                         │
    │  Routes:                                                │
    │  /api/v1/books  /api/v1/users  /api/v1/auth  /health    │
    │                                                         │
    │  Exception Handlers (one envelope for every error):     │
    │  BookshelfError → its status │ RequestValidation → 400  │
    │  HTTPException → its status  │ Exception → 500          │
    └─────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Configure logging (request IDs on every line)
    2. Validate configuration (logged, not fatal)
    3. Wait for the database (tenacity backoff)
    4. Create tables if AUTO_CREATE_SCHEMA is set
    5. Purge expired idempotency records

    Shutdown:
    1. Dispose database engine (close all connections)
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from bookshelf import __version__
from bookshelf.config import settings
from bookshelf.context import RequestIdLogFilter
from bookshelf.database import (
    async_session_factory,
    create_schema,
    dispose_engine,
    wait_for_database,
)
from bookshelf.exceptions import BookshelfError
from bookshelf.middleware import (
    AuthenticationMiddleware,
    RateLimitMiddleware,
    RequestContextMiddleware,
    RequestLoggingMiddleware,
)
from bookshelf.repositories import IdempotencyRepository
from bookshelf.responses import error_response, unexpected_error_response
from bookshelf.routes import books, health, users
from bookshelf.services.idempotency_service import IdempotencyService

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s [%(request_id)s] %(message)s

    The request ID comes from RequestIdLogFilter, which reads the request
    context; lines logged outside a request show "-".
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestIdLogFilter())

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s [%(request_id)s] %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[handler],
        force=True,
    )

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("passlib").setLevel(logging.ERROR)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

async def purge_expired_idempotency_records() -> None:
    """Drop stored Idempotency-Key responses whose TTL has passed."""
    async with async_session_factory() as session:
        removed = await IdempotencyService(IdempotencyRepository(session)).purge_expired()
        await session.commit()
    logger.info("Startup purge removed %d expired idempotency records", removed)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("Bookshelf API %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        logger.error("Configuration error: %s", str(e))

    await wait_for_database()

    if settings.auto_create_schema:
        await create_schema()
        logger.info("Database schema created from model metadata")

    await purge_expired_idempotency_records()

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("Bookshelf API shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

HTTP_ERROR_CODES = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    429: "rate_limit_exceeded",
}


def _validation_errors(exc: RequestValidationError) -> list:
    """Flatten pydantic errors into [{location, field, message}]."""
    errors = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ())]
        errors.append({
            "location": loc[0] if loc else "",
            "field": ".".join(loc[1:]),
            "message": err.get("msg", "Invalid value"),
        })
    return errors


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register global exception handlers for consistent error responses.

    Security: 5xx responses never carry internal details (stack traces,
    SQL, constraint names). Those are logged server-side with the request ID.
    """

    @app.exception_handler(BookshelfError)
    async def handle_bookshelf_error(request: Request, exc: BookshelfError):
        if exc.status_code >= 500:
            logger.error("%s: %s | Context: %s", type(exc).__name__, exc.message, exc.context)
            return error_response(
                status_code=exc.status_code,
                error=exc.error_code,
                message=exc.message,
                headers=exc.headers,
            )

        logger.info("%s: %s", type(exc).__name__, exc.message)
        return error_response(
            status_code=exc.status_code,
            error=exc.error_code,
            message=exc.message,
            details=exc.context,
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        """Malformed body, query, path or header → 400 with per-field messages."""
        errors = _validation_errors(exc)
        logger.info("Request validation failed: %s", errors)
        return error_response(
            status_code=400,
            error="validation_error",
            message="Request validation failed",
            details={"errors": errors},
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        """Framework-raised errors (unknown route, wrong method) in the same envelope."""
        return error_response(
            status_code=exc.status_code,
            error=HTTP_ERROR_CODES.get(exc.status_code, "http_error"),
            message=str(exc.detail),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        return unexpected_error_response(exc)


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Why factory (not only a module-level app):
        Tests can build fresh instances; importing has no side effects
        beyond construction.
    """
    app = FastAPI(
        title="Bookshelf API",
        description=(
            "Reference REST API: layered handlers/services/repositories, a "
            "middleware pipeline, request-scoped context, paginated lists and "
            "idempotent creates."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Register Middleware ───────────────────────────────────────────────
    # Middleware executes in REVERSE order of addition (last added = outermost).
    # Added: CORS → GZip → Logging → Authentication → RateLimit → RequestContext
    # Runs:  RequestContext → RateLimit → Authentication → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[
            "X-Request-ID",
            "X-Total-Count",
            "Link",
            "Location",
            "Retry-After",
            "Idempotent-Replayed",
        ],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(AuthenticationMiddleware)
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(RequestContextMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(books.router)
    app.include_router(users.router)
    app.include_router(health.router)

    return app


# uvicorn expects `bookshelf.main:app` to be importable
app = create_app()

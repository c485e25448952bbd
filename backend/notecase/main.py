"""
Notecase Backend — FastAPI Application Factory
================================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() registers middleware, exception handlers and routers and
       returns the app; `app` at module level is what uvicorn serves.
Who:   uvicorn (uvicorn notecase.main:app) and the route tests.

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │                                                     │
    │  Middleware Chain:                                  │
    │  ┌──────────┐ ┌──────────┐ ┌─────────┐ ┌─────────┐  │
    │  │  Req ID  │→│ Logging  │→│ API Key │→│GZip/CORS│  │
    │  └──────────┘ └──────────┘ └─────────┘ └─────────┘  │
    │                                                     │
    │  Routes:                                            │
    │  ┌────────────────────┐ ┌──────────┐ ┌───────────┐  │
    │  │ /api/notes (CRUD)  │ │/api/files│ │ /health   │  │
    │  └────────────────────┘ └──────────┘ └───────────┘  │
    │                                                     │
    │  Exception Handlers:                                │
    │  ┌───────────────────────────────────────────────┐  │
    │  │ Decode/Validation→400 │ NotFound→404 │ ...    │  │
    │  └───────────────────────────────────────────────┘  │
    └─────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging, configuration check, storage backend report
    Shutdown: dispose the database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from notecase import __version__
from notecase.config import settings
from notecase.exceptions import (
    AccessDeniedError,
    AuthenticationError,
    DecodeError,
    NotecaseError,
    NotFoundError,
    PayloadTooLargeError,
    RepositoryUnavailableError,
    StorageUnavailableError,
    ValidationError,
)
from notecase.middleware.api_key import ApiKeyMiddleware
from notecase.middleware.logging import RequestLoggingMiddleware
from notecase.middleware.request_id import RequestIDMiddleware, request_id_var
from notecase.routes import health, notes

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the whole process.

    Format: 2024-01-15T12:00:00 [INFO] notecase.services.note_service: Note ... created

    Called once during startup, before anything else logs.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # These log every call at DEBUG/INFO
    for noisy in ("uvicorn.access", "sqlalchemy.engine", "botocore", "boto3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("Notecase Backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Keep serving: /health and the error bodies show the problem
        logger.error("Configuration error: %s", str(e))
        logger.error("Fix the configuration and restart the server.")

    if settings.storage_backend == "s3":
        logger.info("Attachment storage: s3://%s/%s", settings.s3_bucket, settings.s3_prefix)
    else:
        logger.info("Attachment storage: local directory %s", settings.storage_root)
    if not settings.api_key:
        logger.warning("API_KEY is empty; the notes API accepts unauthenticated requests")

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("Notecase Backend shutting down...")
    from notecase.database import dispose_engine

    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def error_response(
    status_code: int,
    error: str,
    message: str,
    details: Optional[dict] = None,
) -> JSONResponse:
    content = {"error": error, "message": message, "request_id": request_id_var.get("")}
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map the NotecaseError hierarchy onto HTTP responses.

    Handler table:
        DecodeError                → 400 decode_error
        ValidationError            → 400 validation_error
        AuthenticationError        → 401 authentication_error
        AccessDeniedError          → 403 access_denied
        NotFoundError              → 404 not_found
        PayloadTooLargeError       → 413 payload_too_large
        StorageUnavailableError    → 503 storage_unavailable
        RepositoryUnavailableError → 500 server_error
        NotecaseError (base)       → 500 server_error
        Exception (fallback)       → 500 internal_server_error

    5xx bodies carry a generic message; the context is logged server-side only.
    """

    @app.exception_handler(DecodeError)
    async def handle_decode_error(request: Request, exc: DecodeError):
        logger.warning("[%s] Decode error: %s", request_id_var.get(""), exc.message)
        return error_response(400, "decode_error", exc.message, exc.context)

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        """Client sent unacceptable input; tell them which field."""
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return error_response(400, "validation_error", exc.message, exc.context)

    @app.exception_handler(AuthenticationError)
    async def handle_authentication_error(request: Request, exc: AuthenticationError):
        return error_response(401, "authentication_error", exc.message)

    @app.exception_handler(AccessDeniedError)
    async def handle_access_denied(request: Request, exc: AccessDeniedError):
        logger.warning("[%s] Access denied: %s | %s", request_id_var.get(""), exc.message, exc.context)
        return error_response(403, "access_denied", exc.message)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return error_response(404, "not_found", exc.message)

    @app.exception_handler(PayloadTooLargeError)
    async def handle_payload_too_large(request: Request, exc: PayloadTooLargeError):
        return error_response(413, "payload_too_large", exc.message, exc.context)

    @app.exception_handler(StorageUnavailableError)
    async def handle_storage_unavailable(request: Request, exc: StorageUnavailableError):
        rid = request_id_var.get("")
        logger.error("[%s] Attachment storage error: %s | Context: %s", rid, exc.message, exc.context)
        return error_response(503, "storage_unavailable", exc.message)

    @app.exception_handler(RepositoryUnavailableError)
    async def handle_repository_error(request: Request, exc: RepositoryUnavailableError):
        rid = request_id_var.get("")
        logger.error("[%s] Repository error: %s | Context: %s", rid, exc.message, exc.context)
        return error_response(500, "server_error", "An internal error occurred. Please try again later.")

    @app.exception_handler(NotecaseError)
    async def handle_notecase_error(request: Request, exc: NotecaseError):
        rid = request_id_var.get("")
        logger.error("[%s] Unhandled application error: %s | Context: %s", rid, exc.message, exc.context)
        return error_response(500, "server_error", "An internal error occurred. Please try again later.")

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        """Catch-all: generic 500 with the request ID, full traceback in the log."""
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return error_response(
            500,
            "internal_server_error",
            "An unexpected error occurred. Please try again or contact support.",
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Tests call this for a fresh instance and swap the stores through
    app.dependency_overrides.
    """
    app = FastAPI(
        title="Notecase API",
        description=(
            "Personal notes with an optional attached file per note. Attachments "
            "live in blob storage and are served through time-limited signed URLs."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added runs first: RequestID → Logging → ApiKey → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(ApiKeyMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(notes.router)
    app.include_router(health.router)

    return app


# ── Application Instance ─────────────────────────────────────────────────
app = create_app()

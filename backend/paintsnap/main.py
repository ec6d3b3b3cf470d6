"""
PaintSnap Backend — FastAPI Application Factory
=================================================

What:  Creates and configures the FastAPI application instance.
How:   `create_app()` assembles settings, the database, the identity
       provider, the blob store and the limit enforcer onto `app.state`,
       then registers middleware, exception handlers and routers.
Who:   uvicorn imports `paintsnap.main:app`; tests call `create_app()` with
       their own collaborators.

Application Architecture:
    ┌───────────────────────────────────────────────────────────┐
    │                      FastAPI App                          │
    │                                                           │
    │  Middleware: AuthRateLimit → RequestID → Logging          │
    │              → Session → GZip → CORS                      │
    │                                                           │
    │  Routes: /api/auth  /api/projects  /api/areas             │
    │          /api/photos  /api/photos/{id}/tags  /health      │
    │                                                           │
    │  app.state: settings, database, identity_provider,        │
    │             blob_store, limits                            │
    └───────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging → config validation (fatal) → storage directory
              → identity provider → optional create_all
    Shutdown: identity provider closed → engine disposed
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from paintsnap import __version__
from paintsnap.config import Settings, get_settings
from paintsnap.database import Database
from paintsnap.exceptions import PaintSnapError, RateLimitExceededError
from paintsnap.middleware.logging import RequestLoggingMiddleware
from paintsnap.middleware.rate_limit import AuthRateLimitMiddleware
from paintsnap.middleware.request_id import RequestIDMiddleware, request_id_var
from paintsnap.routes import areas, auth, health, photos, projects, tags
from paintsnap.services.blob_store import BlobStore
from paintsnap.services.identity_provider import FirebaseIdentityProvider, IdentityProvider
from paintsnap.services.limits import AccountLimitEnforcer

logger = logging.getLogger(__name__)

GENERIC_SERVER_ERROR = "An internal error occurred. Please try again later."


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(level: str = "INFO") -> None:
    """
    Configure the root logger once at startup.

    Format: `%(asctime)s [%(levelname)s] %(name)s: %(message)s` to stdout,
    which the container runtime collects.
    """
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party libraries that are chatty at INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("google").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup fails loudly on bad configuration: serving requests without a
    session secret or identity credentials would only produce confusing
    401s and forgeable cookies.
    """
    settings: Settings = app.state.settings

    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging(settings.log_level)
    logger.info("=" * 60)
    logger.info("PaintSnap Backend %s starting up...", __version__)

    try:
        settings.validate_required()
    except ValueError as e:
        logger.error("Configuration error: %s", str(e))
        logger.error("Fix the configuration and restart the server.")
        raise

    # What: Creates STORAGE_ROOT and initializes the Firebase app
    app.state.blob_store.start()
    app.state.identity_provider.start()

    # Development and tests only; deployments run `alembic upgrade head`
    if settings.create_tables_on_startup:
        await app.state.database.create_all()

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("API docs: http://%s:%d/docs", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("PaintSnap Backend shutting down...")
    # Reverse order of startup
    app.state.identity_provider.close()
    await app.state.database.dispose()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_body(error: str, message: str, details: Optional[dict] = None) -> dict:
    body = {"error": error, "message": message, "request_id": request_id_var.get("")}
    if details:
        body["details"] = details
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exceptions onto the shared error body.

    Handler hierarchy:
        RequestValidationError  → 400 with per-field messages
        RateLimitExceededError  → 429 with Retry-After
        PaintSnapError          → exc.status_code / exc.error_code
        HTTPException           → its own status (unknown route, bad method)
        Exception (fallback)    → 500

    5xx bodies never carry internal detail; the context is logged
    server-side under the request ID instead.
    """

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        # What: Flatten pydantic errors to {field, message}; the location prefix
        # (body, query, path, form) says nothing to API clients
        problems = []
        for err in exc.errors():
            loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path", "form")]
            problems.append({"field": ".".join(loc) or None, "message": err.get("msg", "Invalid value")})
        # The top-level message names the first problem only
        first = problems[0] if problems else {"field": None, "message": "Invalid request"}
        message = f"{first['field']}: {first['message']}" if first["field"] else first["message"]
        logger.warning("[%s] Request validation failed: %s", request_id_var.get(""), message)
        return JSONResponse(
            status_code=400,
            content=_error_body("validation_error", message, {"errors": problems}),
        )

    # Matched ahead of PaintSnapError (closest class in the MRO wins); adds Retry-After
    @app.exception_handler(RateLimitExceededError)
    async def handle_rate_limit(request: Request, exc: RateLimitExceededError):
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.error_code, exc.message, exc.context),
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(PaintSnapError)
    async def handle_paintsnap_error(request: Request, exc: PaintSnapError):
        rid = request_id_var.get("")
        # 5xx context (SQL errors, SDK messages) stays in the log
        if exc.status_code >= 500:
            logger.error(
                "[%s] %s: %s | Context: %s",
                rid,
                type(exc).__name__,
                exc.message,
                exc.context,
            )
            return JSONResponse(
                status_code=exc.status_code,
                content=_error_body(exc.error_code, GENERIC_SERVER_ERROR),
            )
        logger.warning("[%s] %s: %s", rid, type(exc).__name__, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.error_code, exc.message, exc.context),
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        # Raised by routing itself: unknown path, wrong method
        error = "not_found" if exc.status_code == 404 else "http_error"
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(error, str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content=_error_body(
                "internal_server_error",
                "An unexpected error occurred. Please try again or contact support.",
            ),
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    identity_provider: Optional[IdentityProvider] = None,
    blob_store: Optional[BlobStore] = None,
) -> FastAPI:
    """
    Assemble the application.

    Every collaborator can be injected; anything omitted is built from
    `settings`. Nothing connects to the network until the lifespan runs.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="PaintSnap API",
        description=(
            "Organize wall photos into projects and areas, and pin paint-color "
            "tags onto them. Sign in with a password or a Firebase ID token."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Shared Collaborators ──────────────────────────────────────────────
    # Handlers reach these through paintsnap.dependencies, never by import
    app.state.settings = settings
    app.state.database = database or Database(settings)
    app.state.identity_provider = identity_provider or FirebaseIdentityProvider(settings)
    app.state.blob_store = blob_store or BlobStore.from_settings(settings)
    app.state.limits = AccountLimitEnforcer.from_settings(settings)

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added runs first: AuthRateLimit → RequestID → Logging → Session → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        # Credentials on: the session cookie must cross origins to the SPA
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    # Compresses JSON listings; bodies under 500 bytes go out as-is
    app.add_middleware(GZipMiddleware, minimum_size=500)
    # Signed (itsdangerous), not encrypted: the cookie holds only the user id
    # and auth state, never tokens or profile data
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret,
        session_cookie=settings.session_cookie_name,
        max_age=settings.session_max_age,
        same_site="lax",
        https_only=settings.session_cookie_secure,
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        AuthRateLimitMiddleware,
        max_requests=settings.auth_rate_limit_requests,
        window=settings.auth_rate_limit_window,
    )

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(auth.router)
    app.include_router(projects.router)
    app.include_router(areas.router)
    app.include_router(photos.router)
    app.include_router(tags.router)
    app.include_router(health.router)

    return app


# Module-level app for `uvicorn paintsnap.main:app`
app = create_app()

"""
api/main.py -- FastAPI application entry point for SonicGate.

Two API surfaces share one app:
  /rest/*    -- the Subsonic/OpenSubsonic wire protocol used by music players.
               Every response, including every error, is a subsonic-response
               envelope in the format the request asked for (f=xml|json|jsonp).
  /api/v1/*  -- the JSON web API (login bridge, health). Errors use the
               {"error": {"code", "message"}} shape.

Run with:  uvicorn asgi:app --reload
           python main.py serve

Middleware (Starlette wraps the last one added outermost):
  SlowAPIMiddleware      -- per-route rate limits from api.limiter
  CORSMiddleware         -- browser origins from Settings.cors_origins
  TrustedHostMiddleware  -- Host header check against Settings.allowed_hosts

Lifespan opens the credential and library stores on startup, creates the
first admin account when the user table is empty, and closes both stores
on shutdown.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.rest.browsing import router as browsing_router
from api.routes.rest.media import router as media_router
from api.routes.rest.playlists import router as playlists_router
from api.routes.rest.system import router as system_router
from api.routes.rest.users import router as users_router
from api.routes.v1.auth import router as auth_router
from auth.credentials import hash_password
from auth.store import UserStore
from core.config import get_settings
from library.store import LibraryStore
from subsonic.envelope import Envelope, subsonic_response
from subsonic.errors import ErrorCode, SubsonicError

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("sonicgate.api")

REST_PREFIX = "/rest"


def _is_rest(request: Request) -> bool:
    return request.url.path.startswith(REST_PREFIX + "/")


def _bootstrap_admin(user_store: UserStore) -> None:
    """Create the configured admin account on first run (empty user table only)."""
    settings = get_settings()
    if user_store.has_users():
        return
    if not settings.admin_password:
        logger.warning("No users exist and ADMIN_PASSWORD is not set -- create one with 'python main.py create-user'")
        return
    user_store.create_user(
        settings.admin_username,
        hash_password(settings.admin_password),
        legacy_password=settings.admin_password if settings.store_legacy_passwords else None,
        is_admin=True,
    )
    logger.info("Created initial admin user '%s'", settings.admin_username)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open stores on startup and close them on shutdown.

    Everything before yield runs on startup; everything after yield runs on
    shutdown.
    """
    settings = get_settings()
    logger.info("SonicGate starting up")
    app.state.user_store = UserStore(db_url=settings.auth_db_url)
    _bootstrap_admin(app.state.user_store)
    logger.info("Auth store initialized")
    app.state.library = LibraryStore(db_url=settings.library_db_url)
    logger.info("Library initialized (%d songs)", app.state.library.count_songs())

    yield

    app.state.library.close()
    app.state.user_store.close()
    logger.info("SonicGate shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="SonicGate",
    description="Subsonic/OpenSubsonic-compatible music server.",
    version=get_settings().server_version,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack (see module docstring for order)
# ---------------------------------------------------------------------------

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=get_settings().allowed_hosts,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter

# ---------------------------------------------------------------------------
# Request logging middleware
#
# Logs the path only. The /rest query string carries credentials (p, t, s,
# apiKey) and must never reach the log.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    client = request.client.host if request.client else "-"
    logger.info("%s %s -> %d in %.1fms from %s", request.method, request.url.path, response.status_code, elapsed_ms, client)
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(system_router, prefix=REST_PREFIX, tags=["Subsonic: System"])
app.include_router(users_router, prefix=REST_PREFIX, tags=["Subsonic: Users"])
app.include_router(browsing_router, prefix=REST_PREFIX, tags=["Subsonic: Browsing"])
app.include_router(playlists_router, prefix=REST_PREFIX, tags=["Subsonic: Playlists"])
app.include_router(media_router, prefix=REST_PREFIX, tags=["Subsonic: Media"])
app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# /rest/* failures are rendered as subsonic-response envelopes; everything
# else gets the web API's ErrorResponse JSON.
# ---------------------------------------------------------------------------


def _web_error(status_code: int, code: str, message: str, detail: str | None = None, headers=None) -> JSONResponse:
    body = ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail))
    return JSONResponse(status_code=status_code, content=body.model_dump(), headers=headers)


@app.exception_handler(SubsonicError)
async def subsonic_error_handler(request: Request, exc: SubsonicError) -> Response:
    return subsonic_response(request, Envelope.from_error(exc))


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """429 with Retry-After. slowapi puts the wait (seconds) on exc.retry_after."""
    wait = int(getattr(exc, "retry_after", 60))
    return _web_error(429, "rate_limited", "Too many requests.", str(exc), headers={"Retry-After": str(wait)})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> Response:
    """Code 10 envelope on /rest, 422 JSON on the web API."""
    if _is_rest(request):
        return subsonic_response(request, Envelope.failed(ErrorCode.MISSING_PARAMETER, "Required parameter is missing."))
    return _web_error(422, "validation_error", "Request validation failed.", str(exc.errors()))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> Response:
    """Render Starlette HTTP errors; an unknown /rest endpoint is a code 70 envelope."""
    if _is_rest(request) and exc.status_code == 404:
        return subsonic_response(request, Envelope.failed(ErrorCode.NOT_FOUND, "Endpoint not found."))
    headers = getattr(exc, "headers", None)
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=headers)
    return _web_error(exc.status_code, f"http_{exc.status_code}", str(exc.detail), headers=headers)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> Response:
    """Last resort. The exception text goes to the log, never to the client."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    if _is_rest(request):
        return subsonic_response(request, Envelope.failed(ErrorCode.GENERIC, "Internal server error."))
    return _web_error(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
#
# Unauthenticated and not rate limited. Queries both stores.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return liveness, version and the state of both stores."""
    components = {"app": "ok"}
    try:
        request.app.state.user_store.has_users()
        request.app.state.library.count_songs()
        components["database"] = "ok"
    except SQLAlchemyError:
        logger.exception("Health check database query failed")
        components["database"] = "error"
    return HealthResponse(version=get_settings().server_version, components=components)

"""
api/main.py -- FastAPI application entry point for F1 Stats.

Run with:  uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. log_requests          -- method, path, status, latency, client host
  2. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  3. CORSMiddleware        -- CORS headers for CORS_ORIGINS, credentials allowed
  4. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter
  5. api_write_guard       -- POST/PUT/PATCH/DELETE on /api/* need a live session
  6. slide_session         -- authenticated writes extend the session by 7 days

add_middleware() (and @app.middleware) insert at the front of the stack, so
the registrations below run in the reverse of the order listed above.

Lifespan builds every store and service once, stores them on app.state, seeds
the admin account from configuration, and starts the session purge task.
Shutdown cancels the task and disposes the engines.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.routes.admin import router as admin_router
from api.routes.auth import router as auth_router
from api.routes.contact import router as contact_router
from api.routes.constructors import router as constructors_router
from api.routes.drivers import router as drivers_router
from api.routes.notifications import router as notifications_router
from api.routes.search import APP_VERSION
from api.routes.search import router as search_router
from auth.dependencies import session_token, try_get_current_user
from auth.models import Account
from auth.service import AuthService
from auth.sessions import SessionStore, set_session_cookie
from auth.store import AccountStore
from core.config import Settings, get_settings
from core.errors import AppError, AuthenticationError
from stats.store import StatsStore

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("f1stats.api")

PURGE_INTERVAL_SECONDS = 6 * 60 * 60
_WRITE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
_PUBLIC_API_PATHS = frozenset({"/api/auth/status"})

# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_loop(app: FastAPI) -> None:
    """Delete expired sessions every 6 hours.

    CancelledError from task.cancel() during shutdown propagates out of
    asyncio.sleep and unwinds the coroutine.
    """
    while True:
        await asyncio.sleep(PURGE_INTERVAL_SECONDS)
        removed = await run_in_threadpool(app.state.session_store.purge_expired)
        if removed:
            logger.info("Purged %d expired sessions", removed)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


def seed_admin(service: AuthService, settings: Settings) -> Optional[Account]:
    """Create or repair the configured admin without blocking startup.

    A bad ADMIN_USERNAME, ADMIN_EMAIL, or ADMIN_PASSWORD (or an unreachable
    database) is logged and the app starts without a seeded admin.
    """
    try:
        return service.ensure_admin_user(settings.admin_email, settings.admin_username, settings.admin_password)
    except AppError as exc:
        logger.error("Admin seed skipped: %s", exc.message)
    except SQLAlchemyError:
        logger.exception("Admin seed failed: database error")
    return None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build stores and services, seed the admin, start the purge task.

    Startup order matters: the auth service needs both stores, and the admin
    seed needs the auth service.
    """
    settings = get_settings()
    logger.info("F1 Stats API starting up")

    app.state.account_store = AccountStore()
    app.state.session_store = SessionStore()
    app.state.stats_store = StatsStore()
    app.state.auth_service = AuthService(app.state.account_store, app.state.session_store)
    seed_admin(app.state.auth_service, settings)
    app.state.purge_task = asyncio.create_task(_purge_loop(app))

    yield

    app.state.purge_task.cancel()
    app.state.account_store.close()
    app.state.session_store.close()
    app.state.stats_store.close()
    logger.info("F1 Stats API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="F1 Stats API",
    description="Formula 1 constructors, drivers, favorites, and account administration.",
    version=APP_VERSION,
    lifespan=lifespan,
)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter

# ---------------------------------------------------------------------------
# Session middleware (innermost)
# ---------------------------------------------------------------------------


@app.middleware("http")
async def slide_session(request: Request, call_next):
    """Re-issue the session cookie with a fresh max-age after an authenticated write.

    The account is resolved before the handler runs. A handler that destroys
    the session (logout, login with a new account) makes touch() return False,
    so the cookie the handler set is left alone.
    """
    if request.method not in _WRITE_METHODS:
        return await call_next(request)

    account = await run_in_threadpool(try_get_current_user, request)
    response = await call_next(request)
    token = session_token(request)
    if account is not None and token:
        if await run_in_threadpool(request.app.state.session_store.touch, token):
            set_session_cookie(response, token)
    return response


@app.middleware("http")
async def api_write_guard(request: Request, call_next):
    """Reject unauthenticated POST/PUT/PATCH/DELETE on /api/* with a 401 envelope.

    Route dependencies still apply the finer admin/authenticated checks; this
    filter guarantees no API write slips through a route that forgot one.
    """
    path = request.url.path
    if request.method in _WRITE_METHODS and path.startswith("/api/") and path not in _PUBLIC_API_PATHS:
        account = await run_in_threadpool(try_get_current_user, request)
        if account is None:
            return JSONResponse(
                status_code=401,
                content=AuthenticationError("Authentication required").to_payload(),
            )
    return await call_next(request)


# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "X-Requested-With"],
    max_age=3600,
)

app.add_middleware(TrustedHostMiddleware, allowed_hosts=get_settings().allowed_hosts)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, tags=["Auth"])
app.include_router(admin_router, tags=["Admin"])
app.include_router(notifications_router, tags=["Notifications & Favorites"])
app.include_router(constructors_router, tags=["Constructors"])
app.include_router(drivers_router, tags=["Drivers"])
app.include_router(search_router, tags=["Search"])
app.include_router(contact_router, tags=["Contact"])
# Web UI router is mounted by asgi.py, not here.
# api/ and web/ are independent layers -- only the top-level asgi.py imports both.


# ---------------------------------------------------------------------------
# Exception handlers
#
# Every handler returns the same {"success": false, "code", "message"}
# envelope so clients can parse errors without branching on status codes.
# ---------------------------------------------------------------------------


def _envelope(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "code": code, "message": message})


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with Retry-After when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _envelope(429, "rate_limited", "Too many requests. Please try again later.")
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies, ids, and query values are client errors: 400, not 422."""
    errors = exc.errors()
    message = "Request validation failed."
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "path", "query"))
        message = f"{field}: {first.get('msg', 'invalid value')}" if field else str(first.get("msg", message))
    return _envelope(400, "validation_error", message)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _envelope(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected server errors.

    The exception is written to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _envelope(500, "internal_error", "An unexpected error occurred.")

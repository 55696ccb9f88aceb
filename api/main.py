"""
api/main.py -- FastAPI application entry point for ProfileAuth.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware     -- adds CORS headers for allowed browser origins,
                           including on 429 and error responses
  2. SlowAPIMiddleware  -- enforces per-route rate limits from api.limiter
  3. log_requests       -- one access log line per request

Lifespan handles startup (settings check, user store, denylist, token
service, dummy hash, purge task) and shutdown (cancel purge task, close stores)
symmetrically.

Startup fails closed: get_settings() raises when SECRET_KEY is missing outside
DEBUG mode, so the app never serves authentication with a default secret.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, FieldErrorItem, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.users import router as users_router
from auth.denylist import RevokedTokenStore
from auth.errors import AuthError, UnauthenticatedError
from auth.passwords import prepare_dummy_hash
from auth.store import UserStore
from auth.tokens import TokenService
from auth.validation import field_errors
from core.config import get_settings

VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("profileauth.api")

# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


def purge_denylist(denylist: RevokedTokenStore) -> int:
    """Drop expired denylist rows and return how many were removed."""
    removed = denylist.purge_expired()
    if removed:
        logger.info("Purged %d expired revoked-token entries (%d still active)", removed, denylist.count())
    return removed


async def _purge_loop(app: FastAPI) -> None:
    """Run purge_denylist() every hour.

    CancelledError from task.cancel() during shutdown propagates out of
    asyncio.sleep and unwinds the coroutine cleanly.
    """
    while True:
        await asyncio.sleep(60 * 60)
        purge_denylist(app.state.denylist)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the stores and token service on startup; close them on shutdown.

    Startup order matters:
      1. Settings first -- a missing/short SECRET_KEY aborts startup here.
      2. Stores second -- the token service needs the denylist.
      3. Dummy hash -- built before the first login so an unknown email
         never pays for it.
      4. Purge task last -- references app.state.denylist.
    """
    settings = get_settings()
    logger.info("ProfileAuth API starting up (debug=%s)", settings.debug)
    app.state.user_store = UserStore(db_url=settings.database_url)
    app.state.denylist = RevokedTokenStore(settings.denylist_path)
    app.state.token_service = TokenService.from_settings(settings, denylist=app.state.denylist)
    prepare_dummy_hash()
    logger.info(
        "Auth initialized (%d users, token ttl=%ds)",
        app.state.user_store.count_users(),
        settings.token_expire_seconds,
    )
    app.state.purge_task = asyncio.create_task(_purge_loop(app))

    yield

    app.state.purge_task.cancel()
    app.state.denylist.close()
    app.state.user_store.close()
    logger.info("ProfileAuth API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="ProfileAuth API",
    description="User registration, login and profile management with stateless session tokens.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

# Starlette wraps middleware in reverse registration order: the last
# add_middleware() call is the outermost layer.


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


app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_methods=["GET", "POST", "PUT"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(users_router, prefix="/api/v1", tags=["Users"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _error(status_code: int, code: str, message: str, detail=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(),
    )


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Render the auth error taxonomy.

    Only the class-level code and the curated message reach the client.
    UnauthenticatedError also advertises the Bearer scheme.
    """
    response = _error(exc.status_code, exc.code, exc.message)
    if isinstance(exc, UnauthenticatedError):
        response.headers["WWW-Authenticate"] = "Bearer"
    if exc.status_code == 401:
        response.headers["Cache-Control"] = "no-store"
    return response


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error(429, "rate_limited", "Too many requests.", str(exc.detail))
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with one {field, message} entry per failed field.

    Submitted values are not echoed back -- a rejected password must never
    appear in a response.
    """
    errors = [
        FieldErrorItem(field=e.field, message=e.message)
        for e in field_errors(exc.errors(), strip_prefix=("body", "query", "path"))
    ]
    return _error(422, "validation_error", "Request validation failed.", errors)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for FastAPI/Starlette HTTP exceptions (404, 405, ...)."""
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
    return _error(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort 500 for anything the handlers above did not claim.

    The raw exception is logged, never written to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
#
# No rate limit and no auth -- load balancers must always reach it.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", response_model=HealthResponse, tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version and database reachability."""
    database = "ok" if request.app.state.user_store.ping() else "error"
    status = "healthy" if database == "ok" else "degraded"
    return HealthResponse(status=status, version=VERSION, components={"app": "ok", "database": database})

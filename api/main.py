"""
api/main.py -- FastAPI application entry point for PulseAuth.

Exposes the session credential core (auth/) over HTTP.

Run with:      uvicorn asgi:app --reload

Middleware, in request order:
  TrustedHost (ALLOWED_HOSTS) -> CORS (CORS_ORIGINS) -> SlowAPI (LOGIN_RATE_LIMIT
  on POST /auth/login via api.limiter)

Lifespan handles startup (wire auth components, start the expired refresh
token sweep) and shutdown (cancel the sweep, dispose the engine)
symmetrically.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse, Response
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from auth.container import build_components
from core.config import get_settings
from core.result import Err

VERSION = "0.1.0"

_settings = get_settings()

logging.basicConfig(
    level=logging.DEBUG if _settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
)
logger = logging.getLogger("pulseauth.api")

# ---------------------------------------------------------------------------
# Background sweep task
# ---------------------------------------------------------------------------


async def _sweep_loop(app: FastAPI, interval: int) -> None:
    """Delete expired refresh token records every `interval` seconds.

    The store call is synchronous, so it runs in a worker thread. It needs no
    coordination with request traffic: a refresh racing the sweep just sees
    "not found". A failed sweep is logged by the store and retried on the
    next tick. CancelledError from task.cancel() during shutdown propagates
    out of asyncio.sleep and unwinds the coroutine cleanly.
    """
    while True:
        await asyncio.sleep(interval)
        result = await asyncio.to_thread(app.state.auth.sessions.sweep_expired)
        if isinstance(result, Err):
            logger.warning("Expired refresh token sweep failed; will retry in %ds", interval)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Everything before yield runs on startup; everything after yield runs on
    shutdown.
    """
    logger.info("PulseAuth API starting up")
    app.state.auth = build_components(_settings)
    logger.info("Auth components initialized (database=%s)", app.state.auth.users.engine.url.render_as_string())
    app.state.sweep_task = None
    if _settings.sweep_interval_seconds > 0:
        app.state.sweep_task = asyncio.create_task(_sweep_loop(app, _settings.sweep_interval_seconds))

    yield

    if app.state.sweep_task is not None:
        app.state.sweep_task.cancel()
    app.state.auth.close()
    logger.info("PulseAuth API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="PulseAuth API",
    description="Session credentials: access tokens, rotating refresh tokens, password verification.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPIMiddleware reads the limiter from app.state.
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Access log
#
# One line per request: method, path, status, duration. Headers and bodies
# are never logged; both carry credentials.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def access_log(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    logger.info(
        "%s %s -> %d (%.1fms)",
        request.method,
        request.url.path,
        response.status_code,
        (time.perf_counter() - started) * 1000,
    )
    return response


app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# Every error leaves the API as {"error": {"code", "message"[, "detail"]}},
# the same envelope the auth routes build from ServiceError.to_public().
# ---------------------------------------------------------------------------


def _envelope(status_code: int, code: str, message: str, detail: str | None = None, headers=None) -> JSONResponse:
    body = ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail))
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True), headers=headers)


@app.exception_handler(RateLimitExceeded)
def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """429 for POST /auth/login over LOGIN_RATE_LIMIT.

    Plain def: SlowAPIMiddleware calls this handler directly and returns its
    result without awaiting it.
    """
    retry_after = int(getattr(exc, "retry_after", 60))
    return _envelope(
        429,
        "rate_limited",
        "Too many login attempts.",
        detail=str(exc.detail),
        headers={"Retry-After": str(retry_after)},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """400 for a body that does not match the request model, like any other malformed input.

    Only field paths and messages are echoed, never the submitted values
    (they may be passwords or tokens).
    """
    problems = [".".join(str(part) for part in err.get("loc", ())) + ": " + err.get("msg", "") for err in exc.errors()]
    return _envelope(400, "validation_error", "Request body failed validation.", detail="; ".join(problems))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Pass HTTPException through in the error envelope.

    auth/dependencies.py raises with detail=ServiceError.to_public(), which
    is already the inner envelope and is used as-is.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)
    return _envelope(exc.status_code, f"http_{exc.status_code}", str(exc.detail), headers=exc.headers)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """500 for anything unexpected. The traceback goes to the log only."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _envelope(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health and metrics (unauthenticated, never rate limited)
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version and database reachability."""
    database = "ok" if request.app.state.auth.users.ping() else "error"
    return HealthResponse(
        status="healthy" if database == "ok" else "degraded",
        version=VERSION,
        components={"app": "ok", "database": database},
    )


@app.get("/metrics", include_in_schema=False)
def metrics(request: Request) -> Response:
    """Prometheus text exposition of the login counters."""
    login_metrics = request.app.state.auth.metrics
    return Response(content=login_metrics.render(), media_type=login_metrics.content_type)

"""
api/main.py -- FastAPI application entry point for the auth service.

Run with:  uvicorn asgi:app --reload
           python main.py --host 0.0.0.0 --port 3000

Middleware stack (outermost to innermost):
  1. CORSMiddleware -- adds CORS headers for the configured browser origins
  2. log_requests   -- one log line per request with status and latency

Lifespan resolves Settings once, builds the AuthService (store backends and
email client chosen from Settings), and closes every backend on shutdown.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.models import ErrorResponse, HealthResponse
from api.routes.auth import router as auth_router
from auth.errors import AuthAPIError, UnexpectedError
from auth.service import build_auth_service
from core.config import get_settings

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("authservice.api")

# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build shared resources on startup; release them on shutdown.

    Everything before yield runs on startup; everything after yield runs on
    shutdown. Settings are read exactly once here and handed down.
    """
    logger.info("Auth service starting up")
    settings = get_settings()
    app.state.settings = settings
    app.state.auth_service = build_auth_service(settings)
    logger.info(
        "Auth initialized (email=%s, token_ttl=%ss)",
        settings.email_backend,
        settings.token_ttl_seconds,
    )

    yield

    app.state.auth_service.state.close()
    logger.info("Auth service shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Auth Service",
    description="Email/password authentication with optional emailed 2FA and JWT cookie sessions.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# CORS origins are resolved at import time because Starlette freezes the
# middleware stack when the app starts; they cannot come from the lifespan.
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type"],
    max_age=3600,
)


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


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly: {"error": "<message>"}.
# ---------------------------------------------------------------------------


@app.exception_handler(AuthAPIError)
async def auth_error_handler(request: Request, exc: AuthAPIError) -> JSONResponse:
    """Render a protocol error with its own status code and message.

    UnexpectedError is logged with its chained cause; the client only ever
    sees the generic message.
    """
    if isinstance(exc, UnexpectedError):
        logger.error(
            "Unexpected error on %s %s: %r",
            request.method,
            request.url.path,
            exc.__cause__,
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=exc.message).model_dump(),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 when the body is not JSON or a required field is missing or mistyped."""
    fields = ", ".join(".".join(str(p) for p in err.get("loc", ())[1:]) or "body" for err in exc.errors())
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(error=f"Unprocessable request: {fields}").model_dump(),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    Security note: the raw exception is written to the log only, never to the
    response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(error=UnexpectedError.message).model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state.
# ---------------------------------------------------------------------------


@app.get("/health", tags=["Health"])
async def health() -> HealthResponse:
    """Return liveness and current version."""
    return HealthResponse(version=VERSION)

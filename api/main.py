"""
api/main.py -- FastAPI application entry point for ImageDrop auth.

Exposes signup / login / session / admin user management over HTTP. The
image, folder and share endpoints of the wider application mount their own
routers next to these and call try_get_current_user() for identity.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware       -- adds CORS headers for allowed browser origins
  2. log_requests         -- method, path, status, latency
  3. invalidate_session   -- deletes the session cookie when the gate flagged it

Lifespan builds Settings once and injects it into the store, token service,
lifecycle manager and gate. Nothing below this module calls get_settings().
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.users import router as users_router
from auth.errors import AuthError
from auth.gate import AuthorizationGate
from auth.lifecycle import UserLifecycleManager
from auth.store import UserStore
from auth.tokens import SessionTokenService, clear_session_cookie
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
logger = logging.getLogger("imagedrop.api")


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


def init_state(app: FastAPI, settings, store: UserStore) -> None:
    """Attach the auth components to app.state.

    Split out of lifespan so tests can wire an in-memory store with the same
    code path the server uses.
    """
    tokens = SessionTokenService(settings)
    app.state.settings = settings
    app.state.user_store = store
    app.state.tokens = tokens
    app.state.lifecycle = UserLifecycleManager(store, tokens, settings)
    app.state.gate = AuthorizationGate(store, tokens)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Settings validation happens here, so a missing or placeholder SECRET_KEY
    in production stops the server before it accepts a single request.
    """
    logger.info("ImageDrop auth API starting up")
    settings = get_settings()
    init_state(app, settings, UserStore(settings.database_url))
    logger.info("Auth initialized (users=%d)", app.state.user_store.count())

    yield

    app.state.user_store.close()
    logger.info("ImageDrop auth API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="ImageDrop Auth API",
    description="Local accounts, signed sessions, and the admin approval workflow for ImageDrop.",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost", "http://localhost:3000", "http://127.0.0.1"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)


# ---------------------------------------------------------------------------
# Session invalidation middleware
#
# try_get_current_user() sets request.state.invalidate_session when the gate
# rejects a presented token. The cookie is deleted here so it happens on every
# response shape: JSONResponse returned directly, a model serialized by
# FastAPI, or an error envelope from an exception handler.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def invalidate_session(request: Request, call_next):
    response = await call_next(request)
    if getattr(request.state, "invalidate_session", False):
        clear_session_cookie(response)
    return response


# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


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

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(users_router, prefix="/api/v1", tags=["Users"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Map the auth error taxonomy onto HTTP.

    5xx errors get a generic message; the detail goes to the log only.
    """
    if exc.status_code >= 500:
        logger.error("Auth integrity failure on %s %s: %s", request.method, request.url.path, exc.message)
        message = "An unexpected error occurred."
    else:
        message = exc.message
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=ErrorDetail(code=exc.code, message=message)).model_dump(),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation."""
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=str(exc.errors()),
            )
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    When detail is already a structured dict, use it directly as the error
    field rather than stringifying it.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors, including store I/O failures.

    The raw exception is written to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="internal_error",
                message="An unexpected error occurred.",
            )
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", response_model=HealthResponse, tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version, and database reachability."""
    try:
        db_ok = request.app.state.user_store.ping()
    except SQLAlchemyError:
        logger.exception("Health check: database unreachable")
        db_ok = False
    return HealthResponse(
        version=VERSION,
        components={"app": "ok", "database": "ok" if db_ok else "error"},
    )

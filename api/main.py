"""
api/main.py -- FastAPI application entry point for tourguard.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers.
     The Host header also feeds the password reset link, so this is what
     keeps forged hosts out of reset emails.
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. log_requests          -- one log line per request with latency

Lifespan builds the auth components once and hangs them on app.state;
routes and dependencies read them from there. Shutdown closes the store and
the mailer.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.models import ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.users import router as users_router
from auth.credentials import CredentialVerifier
from auth.errors import AuthError
from auth.guard import SessionGuard
from auth.reset import PasswordResetFlow
from auth.roles import RoleGate
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import Settings, get_settings
from core.mailer import EmailGatewayClient, LogMailer

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("tourguard.api")


# ---------------------------------------------------------------------------
# Component wiring
# ---------------------------------------------------------------------------


def build_mailer(settings: Settings):
    """Gateway client when configured, otherwise a mailer that only logs."""
    if settings.email_gateway_enabled:
        return EmailGatewayClient(
            settings.email_gateway_url,
            settings.email_api_key,
            settings.email_hmac_secret,
            timeout=settings.email_timeout_seconds,
        )
    logger.warning("EMAIL_GATEWAY_URL not set -- reset emails will be logged, not sent")
    return LogMailer()


def install_components(app: FastAPI, settings: Settings, store: UserStore, mailer) -> None:
    """Attach every auth component to app.state. Also used by the test suite."""
    app.state.user_store = store
    app.state.mailer = mailer
    app.state.token_service = TokenService(settings.secret_key, settings.token_expire_seconds)
    app.state.credential_verifier = CredentialVerifier(store)
    app.state.session_guard = SessionGuard(app.state.token_service, store)
    app.state.role_gate = RoleGate()
    app.state.reset_flow = PasswordResetFlow(
        store,
        mailer,
        expire_minutes=settings.reset_token_expire_minutes,
        email_timeout=settings.email_timeout_seconds,
    )


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build components on startup; release them on shutdown."""
    settings = get_settings()
    logger.info("tourguard API starting up")
    install_components(app, settings, UserStore(settings.database_url), build_mailer(settings))
    logger.info("Auth initialized (token ttl=%ds)", settings.token_expire_seconds)

    yield

    app.state.mailer.close()
    app.state.user_store.close()
    logger.info("tourguard API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

_settings = get_settings()

app = FastAPI(
    title="tourguard API",
    description="Authentication and authorization for the tours API.",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST", "PATCH"],
    allow_headers=["Content-Type", "Authorization"],
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

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(users_router, prefix="/api/v1", tags=["Users"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly.
# ---------------------------------------------------------------------------


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse.for_status(status_code, code, message).model_dump(),
    )


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Render every auth-layer failure with the status its class declares."""
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    return _error(exc.status_code, exc.code, exc.message)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 when the request body or path parameters do not parse."""
    return _error(422, "invalid_request", f"Request validation failed: {exc.errors()}")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The exception is logged with its traceback; the client receives only a
    generic message.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, "internal_error", "Something went very wrong!")


# ---------------------------------------------------------------------------
# Health endpoint
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=VERSION)

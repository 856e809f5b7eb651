"""
api/main.py -- FastAPI application entry point for the SSO service.

Exposes the three auth operations (register, login, is-admin) over HTTP. The
transport owns status codes; the service owns the error taxonomy. The mapping
between the two lives in one place: _STATUS_BY_KIND below.

Run with:  uvicorn api.main:app --reload
           python main.py serve

Middleware stack (outermost to innermost):
  1. SlowAPIMiddleware -- enforces per-route rate limits from api.limiter
  2. log_requests      -- one access log line per request with latency

Lifespan builds the credential store, token issuer and auth service once and
disposes of the store on shutdown.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from auth.errors import AuthError, ErrorKind
from auth.service import AuthService
from auth.store import CredentialStore
from auth.tokens import TokenIssuer
from core.config import VERSION, get_settings

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("sso.api")

_STATUS_BY_KIND = {
    ErrorKind.INVALID_CREDENTIALS: 401,
    ErrorKind.INVALID_APP_ID: 400,
    ErrorKind.USER_EXISTS: 409,
    ErrorKind.INTERNAL: 500,
}


def build_auth_service(store: CredentialStore) -> AuthService:
    """Wire one store into every capability the service needs."""
    settings = get_settings()
    return AuthService(
        user_saver=store,
        user_provider=store,
        admin_provider=store,
        app_provider=store,
        token_issuer=TokenIssuer(),
        token_ttl=settings.token_ttl,
        hash_cost=settings.bcrypt_cost,
        logger=logging.getLogger("sso.auth"),
    )


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the store and service on startup; dispose of the store on shutdown."""
    settings = get_settings()
    logger.info("SSO API starting up (env=%s)", settings.env)
    app.state.store = CredentialStore(settings.database_url)
    app.state.auth_service = build_auth_service(app.state.store)
    logger.info(
        "Auth initialized (token_ttl=%ss, bcrypt_cost=%d)",
        settings.token_ttl_seconds,
        settings.bcrypt_cost,
    )

    yield

    app.state.store.close()
    logger.info("SSO API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="SSO API",
    description="Multi-tenant authentication: registration, login with app-scoped tokens, admin lookup.",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


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


app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _error(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(),
    )


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Map the service taxonomy to HTTP status codes.

    Only the kind and its fixed message cross the boundary. exc.__cause__ may
    hold backend detail; it is logged for INTERNAL and never returned.
    """
    if exc.kind is ErrorKind.INTERNAL:
        logger.error("%s failed on %s %s", exc.op, request.method, request.url.path, exc_info=exc.__cause__)
    return _error(_STATUS_BY_KIND[exc.kind], exc.kind.value, exc.message)


@app.exception_handler(asyncio.TimeoutError)
async def timeout_handler(request: Request, exc: asyncio.TimeoutError) -> JSONResponse:
    logger.warning("Deadline exceeded on %s %s", request.method, request.url.path)
    return _error(504, "timeout", "The request did not complete in time.")


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error(429, "rate_limited", "Too many requests.", str(exc))
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or path params fail validation.

    exc.errors() echoes the offending input, which may be a password, so only
    the field locations and messages are returned.
    """
    fields = "; ".join(f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in exc.errors())
    return _error(422, "validation_error", "Request validation failed.", fields)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return _error(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected server errors. The raw exception goes to the log only."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
#
# No rate limit: health checks from load balancers must not be throttled.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=VERSION)

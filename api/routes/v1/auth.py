"""
api/routes/v1/auth.py -- HTTP binding for the auth service.

Routes:
  POST /api/v1/auth/register                  -- create a user; 201 {user_id}
  POST /api/v1/auth/login                     -- email/password for an app; 200 {token}
  GET  /api/v1/auth/users/{user_id}/is-admin  -- live admin flag

Handlers are thin: validate the body, call AuthService under the configured
request deadline, map the result. AuthError and TimeoutError propagate to the
exception handlers in api/main.py, which own the kind -> status mapping.

Security:
  POST /login is rate-limited per IP (LOGIN_RATE_LIMIT, default 10/minute).
  Login returns one generic error for unknown email and wrong password.
  Cache-Control: no-store on login responses so tokens are never cached.
"""

import asyncio

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_limit
from api.models import IsAdminResponse, LoginRequest, LoginResponse, RegisterRequest, RegisterResponse
from auth.service import AuthService
from core.config import get_settings

router = APIRouter()


def _service(request: Request) -> AuthService:
    return request.app.state.auth_service


async def _with_deadline(coro):
    """Await coro under REQUEST_TIMEOUT_SECONDS; the pending operation is cancelled on expiry."""
    return await asyncio.wait_for(coro, timeout=get_settings().request_timeout_seconds)


@router.post("/auth/register", response_model=RegisterResponse, status_code=201)
async def register(request: Request, body: RegisterRequest) -> RegisterResponse:
    """Register a new user. 409 if the email is already taken."""
    user_id = await _with_deadline(_service(request).register(body.email, body.password))
    return RegisterResponse(user_id=user_id)


@router.post("/auth/login", response_model=LoginResponse)
@limiter.limit(login_limit)
async def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate and return a token scoped to body.app_id.

    401 for bad credentials (unknown email and wrong password look the same),
    400 for an unknown app id.
    """
    service = _service(request)
    token = await _with_deadline(service.login(body.email, body.password, body.app_id))
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            token=token,
            expires_in=int(service.token_ttl.total_seconds()),
        ).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.get("/auth/users/{user_id}/is-admin", response_model=IsAdminResponse)
async def is_admin(request: Request, user_id: int) -> IsAdminResponse:
    """Return whether user_id holds the admin flag. 400 if the user is unknown."""
    flag = await _with_deadline(_service(request).is_admin(user_id))
    return IsAdminResponse(user_id=user_id, is_admin=flag)

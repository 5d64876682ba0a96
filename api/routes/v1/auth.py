"""
api/routes/v1/auth.py -- Authentication REST endpoints.

Routes:
  POST /api/v1/auth/login              -- password login; sets JWT cookie
  POST /api/v1/auth/logout             -- clears cookie; 200
  GET  /api/v1/auth/me                 -- identity behind the token (requires auth)
  GET  /api/v1/auth/protected/user     -- role probe: {user}
  GET  /api/v1/auth/protected/mod      -- role probe: {mod, admin}
  GET  /api/v1/auth/protected/admin    -- role probe: {admin}
  POST /api/v1/setup                   -- create the first admin (first run only)

Security:
  [H2] POST /login is rate-limited per IP (LOGIN_RATE_LIMIT).
  [C1] auth.service.login() goes through authenticate_user(), which provides
       timing equalization -- never inline the lookup and bcrypt check here.
  [M5] Cache-Control: no-store on login responses.
  Logout is symbolic. The token stays valid until it expires; there is no
  server-side revocation.
"""

from __future__ import annotations

import logging
import threading

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import LOGIN_RATE_LIMIT, limiter
from api.models import (
    LoginRequest,
    LoginResponse,
    MeResponse,
    MessageResponse,
    ProtectedResponse,
    RegisterRequest,
    UserResponse,
)
from auth import service
from auth.dependencies import get_current_caller, require_admin, require_roles, require_staff
from auth.models import Caller, Role
from auth.store import UserStore
from auth.tokens import TokenService, set_auth_cookie
from core.errors import Forbidden

logger = logging.getLogger("avatarengine.api")

# Auth policy:
# - POST /api/v1/auth/login:            public -- login endpoint must be unauthenticated
# - POST /api/v1/auth/logout:           public -- clearing a cookie needs no prior auth
# - GET  /api/v1/auth/me:               requires auth (get_current_caller)
# - GET  /api/v1/auth/protected/*:      role probes (require_roles)
# - POST /api/v1/setup:                 public, but refuses once any user exists
router = APIRouter()

_require_user_role = require_roles(Role.USER)

# Serializes the has_users() check with create + promote within this process.
_setup_lock = threading.Lock()


def _me(caller: Caller) -> MeResponse:
    return MeResponse(user_id=caller.user_id, email=caller.email, role=caller.role)


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@limiter.limit(LOGIN_RATE_LIMIT)  # [H2] must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; return the token and set the JWT cookie.

    Wrong email and wrong password produce the same 401 body so the response
    never reveals whether an account exists.
    """
    user_store: UserStore = request.app.state.user_store
    tokens: TokenService = request.app.state.token_service

    token, user = service.login(user_store, tokens, body.email, body.password)

    max_age = int(tokens.expires_in.total_seconds())
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            access_token=token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=max_age,
            user=UserResponse.from_user(user),
        ).model_dump(mode="json"),
    )
    set_auth_cookie(resp, token, max_age=max_age, secure=request.app.state.settings.secure_cookies)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    logger.info("User id=%s logged in", user.id)
    return resp


@router.post("/auth/logout", response_model=MessageResponse)
async def logout() -> JSONResponse:
    """Clear the JWT cookie. The token itself is not revoked."""
    resp = JSONResponse(content={"message": "Logged out."})
    resp.delete_cookie("access_token")
    return resp


@router.post("/setup", response_model=UserResponse, status_code=201)
def setup(request: Request, body: RegisterRequest) -> UserResponse:
    """Create the first account and elevate it to admin.

    Re-checks has_users() against the database instead of trusting the
    in-memory setup_required flag. The check, the insert and the promotion
    run under one process-wide lock, so of two concurrent requests only the
    first creates an admin [M1]. Running several worker processes against
    one database is not covered by the lock.
    """
    user_store: UserStore = request.app.state.user_store
    with _setup_lock:
        if user_store.has_users():
            raise Forbidden("Setup has already been completed.")
        user = user_store.create(body.email, body.password, display_name=body.display_name)
        admin = user_store.update_role(user.id, Role.ADMIN)
        request.app.state.setup_required = False
    logger.info("Initial admin created (id=%s)", user.id)
    return UserResponse.from_user(admin)


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=MeResponse)
async def me(caller: Caller = Depends(get_current_caller)) -> MeResponse:
    """Return identity information for the authenticated caller."""
    return _me(caller)


@router.get("/auth/protected/user", response_model=ProtectedResponse)
async def protected_user(caller: Caller = Depends(_require_user_role)) -> ProtectedResponse:
    return ProtectedResponse(message="Hello, user.", user=_me(caller))


@router.get("/auth/protected/mod", response_model=ProtectedResponse)
async def protected_mod(caller: Caller = Depends(require_staff)) -> ProtectedResponse:
    return ProtectedResponse(message="Hello, moderator.", user=_me(caller))


@router.get("/auth/protected/admin", response_model=ProtectedResponse)
async def protected_admin(caller: Caller = Depends(require_admin)) -> ProtectedResponse:
    return ProtectedResponse(message="Hello, admin.", user=_me(caller))

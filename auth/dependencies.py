"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Two token sources are checked in priority order:
  1. Authorization: Bearer <token> header -- API clients.
  2. JWT cookie ("access_token") -- set by POST /auth/login for browser clients.

try_get_current_caller() is the soft variant (returns None on failure).
get_current_caller() runs evaluate() with an empty role set: any identity
passes, an absent one raises Unauthorized.
require_roles(...) builds a dependency that runs evaluate() with a role set.

Role freshness: when app.state.settings.resolve_role_from_store is True, the
subject is re-read from the user store on every request, so a role change or
deletion takes effect before the token expires. Otherwise the claims are
trusted as issued.

Layer rule: no imports from api/ or avatars/.
  auth/dependencies.py may import from fastapi because this module is part of
  the FastAPI dependency injection system.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Optional

from fastapi import Request

from auth.access import evaluate
from auth.models import Caller, Role
from auth.store import UserStore
from auth.tokens import TokenService
from core.errors import Unauthorized


def _extract_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return request.cookies.get("access_token") or None


def try_get_current_caller(request: Request) -> Optional[Caller]:
    """Resolve the request's identity. Returns None on any failure.

    Never raises -- callers that need a hard 401 should use get_current_caller().
    """
    token = _extract_token(request)
    if not token:
        return None

    tokens: TokenService = request.app.state.token_service
    try:
        claims = tokens.verify(token)
    except Unauthorized:
        return None

    if not request.app.state.settings.resolve_role_from_store:
        return Caller(user_id=claims.subject_id, email=claims.email, role=claims.role)

    user_store: UserStore = request.app.state.user_store
    user = user_store.get_by_id(claims.subject_id)
    if user is None:
        return None
    return Caller(user_id=user.id, email=user.email, role=user.role)


def get_current_caller(request: Request) -> Caller:
    """Require authentication. Raises Unauthorized (401) for anonymous requests.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(caller: Caller = Depends(get_current_caller)): ...
    """
    return evaluate((), try_get_current_caller(request))


def require_roles(*roles: Role) -> Callable[[Request], Caller]:
    """Build a dependency that admits only callers holding one of roles.

    Raises Unauthorized (401) if unauthenticated, Forbidden (403) otherwise.

        @router.delete("/users/{user_id}")
        async def route(caller: Caller = Depends(require_roles(Role.ADMIN))): ...
    """
    required = frozenset(roles)

    def dependency(request: Request) -> Caller:
        return evaluate(required, try_get_current_caller(request))

    return dependency


require_admin = require_roles(Role.ADMIN)
require_staff = require_roles(Role.MOD, Role.ADMIN)

"""
api/routes/v1/users.py -- User account, profile and bond REST endpoints.

Routes:
  POST   /api/v1/users/register                   -- self-registration (public, rate limited)
  GET    /api/v1/users/me                         -- own profile
  PATCH  /api/v1/users/me                         -- update own profile
  PATCH  /api/v1/users/me/change-password         -- change own password
  GET    /api/v1/users                            -- list users ({mod, admin})
  GET    /api/v1/users/{id}                       -- get user ({mod, admin})
  PATCH  /api/v1/users/{id}/admin-update          -- update any field (admin)
  PATCH  /api/v1/users/{id}/role                  -- change role (admin)
  DELETE /api/v1/users/{id}                       -- delete user (admin)
  POST   /api/v1/users/{id}/bonds/{slug}          -- create bond (self or staff)
  PATCH  /api/v1/users/{id}/bonds/{slug}/points   -- add bond points (self or staff)
  PATCH  /api/v1/users/{id}/bonds/{slug}/humor    -- set humor level (self or staff)

Registration always yields the default role. RegisterRequest has no role
field, so a "role" key in the body is discarded during parsing.

Handlers that hash passwords are plain def so FastAPI runs them in the
threadpool and bcrypt does not block the event loop.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, Response

from api.limiter import LOGIN_RATE_LIMIT, limiter
from api.models import (
    AdminUserUpdate,
    BondPointsRequest,
    BondResponse,
    ChangePasswordRequest,
    HumorLevelRequest,
    MessageResponse,
    RegisterRequest,
    RoleUpdate,
    UserResponse,
    UserSelfUpdate,
)
from auth import service
from auth.access import require_self_or_roles
from auth.dependencies import get_current_caller, require_admin, require_staff
from auth.models import Caller, Role, User
from auth.store import UserStore
from avatars.service import ProgressionService
from core.errors import Forbidden, NotFound

logger = logging.getLogger("avatarengine.api")

router = APIRouter()

_BOND_MANAGERS = (Role.MOD, Role.ADMIN)


def _store(request: Request) -> UserStore:
    return request.app.state.user_store


def _require(user: User | None) -> UserResponse:
    if user is None:
        raise NotFound("User not found.")
    return UserResponse.from_user(user)


# ---------------------------------------------------------------------------
# Registration and own profile
# ---------------------------------------------------------------------------


@limiter.limit(LOGIN_RATE_LIMIT)
@router.post("/users/register", response_model=UserResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> UserResponse:
    """Create an account with the default role. Duplicate email -> 409."""
    if not request.app.state.settings.self_registration_enabled:
        raise Forbidden("Self-registration is disabled.")
    user = _store(request).create(body.email, body.password, display_name=body.display_name)
    return UserResponse.from_user(user)


@router.get("/users/me", response_model=UserResponse)
async def get_me(request: Request, caller: Caller = Depends(get_current_caller)) -> UserResponse:
    return _require(_store(request).get_by_id(caller.user_id))


@router.patch("/users/me", response_model=UserResponse)
async def update_me(
    request: Request,
    body: UserSelfUpdate,
    caller: Caller = Depends(get_current_caller),
) -> UserResponse:
    """Update display name, preferred voice or app settings. Omitted fields are untouched."""
    fields = body.model_dump(exclude_unset=True, exclude_none=True)
    return _require(_store(request).update_profile(caller.user_id, **fields))


@router.patch("/users/me/change-password", response_model=MessageResponse)
def change_password(
    request: Request,
    body: ChangePasswordRequest,
    caller: Caller = Depends(get_current_caller),
) -> MessageResponse:
    service.change_password(_store(request), caller.user_id, body.old_password, body.new_password)
    return MessageResponse(message="Password updated.")


# ---------------------------------------------------------------------------
# User administration
# ---------------------------------------------------------------------------


@router.get("/users", response_model=list[UserResponse])
async def list_users(request: Request, caller: Caller = Depends(require_staff)) -> list[UserResponse]:
    return [UserResponse.from_user(u) for u in _store(request).list_users()]


@router.get("/users/{user_id}", response_model=UserResponse)
async def get_user(request: Request, user_id: int, caller: Caller = Depends(require_staff)) -> UserResponse:
    return _require(_store(request).get_by_id(user_id))


@router.patch("/users/{user_id}/admin-update", response_model=UserResponse)
def admin_update(
    request: Request,
    user_id: int,
    body: AdminUserUpdate,
    caller: Caller = Depends(require_admin),
) -> UserResponse:
    """Update any field of any user. A new password is re-hashed before storing."""
    store = _store(request)
    if store.get_by_id(user_id) is None:
        raise NotFound("User not found.")

    fields = body.model_dump(exclude_unset=True, exclude_none=True)
    password = fields.pop("password", None)
    role = fields.pop("role", None)

    if fields:
        store.update_profile(user_id, **fields)
    if password is not None:
        store.set_password(user_id, password)
    if role is not None:
        store.update_role(user_id, role)
    logger.info("Admin id=%s updated user id=%s (%s)", caller.user_id, user_id, ", ".join(sorted(body.model_fields_set)))
    return _require(store.get_by_id(user_id))


@router.patch("/users/{user_id}/role", response_model=UserResponse)
async def update_role(
    request: Request,
    user_id: int,
    body: RoleUpdate,
    caller: Caller = Depends(require_admin),
) -> UserResponse:
    return _require(_store(request).update_role(user_id, body.role))


@router.delete("/users/{user_id}", status_code=204)
async def delete_user(request: Request, user_id: int, caller: Caller = Depends(require_admin)) -> Response:
    """Delete a user and their bonds. Admins cannot delete their own account [M4]."""
    if user_id == caller.user_id:
        raise Forbidden("You cannot delete your own account.")
    if not _store(request).delete_user(user_id):
        raise NotFound("User not found.")
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Bonds
# ---------------------------------------------------------------------------


@router.post("/users/{user_id}/bonds/{slug}", response_model=BondResponse, status_code=201)
async def create_bond(
    request: Request,
    user_id: int,
    slug: str,
    caller: Caller = Depends(get_current_caller),
) -> BondResponse:
    """Start a bond between the user and an avatar. An existing bond is reset."""
    require_self_or_roles(caller, user_id, _BOND_MANAGERS)
    progression: ProgressionService = request.app.state.progression
    return BondResponse.from_bond(progression.create_bond(user_id, slug))


@router.patch("/users/{user_id}/bonds/{slug}/points", response_model=BondResponse)
async def increase_bond(
    request: Request,
    user_id: int,
    slug: str,
    body: BondPointsRequest,
    caller: Caller = Depends(get_current_caller),
) -> BondResponse:
    require_self_or_roles(caller, user_id, _BOND_MANAGERS)
    progression: ProgressionService = request.app.state.progression
    return BondResponse.from_bond(progression.increase_bond(user_id, slug, body.points))


@router.patch("/users/{user_id}/bonds/{slug}/humor", response_model=BondResponse)
async def set_humor_level(
    request: Request,
    user_id: int,
    slug: str,
    body: HumorLevelRequest,
    caller: Caller = Depends(get_current_caller),
) -> BondResponse:
    require_self_or_roles(caller, user_id, _BOND_MANAGERS)
    progression: ProgressionService = request.app.state.progression
    return BondResponse.from_bond(progression.set_humor_level(user_id, slug, body.humor_level))

"""
api/routes/v1/avatars.py -- Avatar catalogue and progression REST endpoints.

Routes:
  GET    /api/v1/avatars                        -- list all (public)
  GET    /api/v1/avatars/style/{style}          -- filter by style (public)
  GET    /api/v1/avatars/rarity/{rarity}        -- filter by rarity (public)
  GET    /api/v1/avatars/{slug}                 -- detail (public)
  POST   /api/v1/avatars                        -- create (admin)
  PATCH  /api/v1/avatars/{slug}/admin-update    -- update descriptive fields (admin)
  PATCH  /api/v1/avatars/{slug}/add-xp          -- grant XP (requires auth)
  PATCH  /api/v1/avatars/{slug}/reset           -- reset progression (admin)
  PATCH  /api/v1/avatars/{slug}/unlock          -- unlock by default (admin)
  POST   /api/v1/avatars/{slug}/ai-response     -- templated dialogue (auth + bond)
  DELETE /api/v1/avatars/{slug}                 -- delete (admin)

XP grants are last-write-wins: two concurrent add-xp calls on one avatar can
lose an update.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.exc import IntegrityError

from api.models import (
    AddXpRequest,
    AvatarAdminUpdate,
    AvatarCreate,
    AvatarListResponse,
    AvatarResponse,
    DialogueRequest,
    DialogueResponse,
    ProgressionResponse,
    RarityEnum,
)
from auth.access import require_bond
from auth.dependencies import get_current_caller, require_admin
from auth.models import Caller
from auth.store import UserStore
from avatars.dialogue import generate_for_avatar
from avatars.models import Avatar, AvatarProgression, slugify
from avatars.service import ProgressionService
from avatars.store import AvatarStore
from core.errors import Conflict, NotFound, Unauthorized, ValidationError

logger = logging.getLogger("avatarengine.api")

# Auth policy:
# - GET    /api/v1/avatars*:              public -- the catalogue is browsable anonymously
# - PATCH  /api/v1/avatars/{slug}/add-xp: requires auth (get_current_caller)
# - POST   /api/v1/avatars/{slug}/ai-response: requires auth + bond (admin bypasses)
# - everything else that writes:          requires admin (require_admin)
router = APIRouter()


def _store(request: Request) -> AvatarStore:
    return request.app.state.avatar_store


def _progression(request: Request) -> ProgressionService:
    return request.app.state.progression


def _require(avatar: Avatar | None, slug: str) -> Avatar:
    if avatar is None:
        raise NotFound(f'Avatar "{slug}" not found.')
    return avatar


def _listing(avatars: list[Avatar]) -> AvatarListResponse:
    return AvatarListResponse(count=len(avatars), avatars=[AvatarResponse.from_avatar(a) for a in avatars])


# ---------------------------------------------------------------------------
# Catalogue (public)
# ---------------------------------------------------------------------------


@router.get("/avatars", response_model=AvatarListResponse)
async def list_avatars(request: Request) -> AvatarListResponse:
    return _listing(_store(request).list_avatars())


@router.get("/avatars/style/{style}", response_model=AvatarListResponse)
async def avatars_by_style(request: Request, style: str) -> AvatarListResponse:
    """Case-insensitive style filter; "Cyber Punk" matches cyberpunk."""
    return _listing(_store(request).find_by_style(style))


@router.get("/avatars/rarity/{rarity}", response_model=AvatarListResponse)
async def avatars_by_rarity(request: Request, rarity: RarityEnum) -> AvatarListResponse:
    return _listing(_store(request).find_by_rarity(rarity.value))


@router.get("/avatars/{slug}", response_model=AvatarResponse)
async def get_avatar(request: Request, slug: str) -> AvatarResponse:
    return AvatarResponse.from_avatar(_require(_store(request).get_by_slug(slug), slug))


# ---------------------------------------------------------------------------
# Administration
# ---------------------------------------------------------------------------


@router.post("/avatars", response_model=AvatarResponse, status_code=201)
async def create_avatar(
    request: Request,
    body: AvatarCreate,
    caller: Caller = Depends(require_admin),
) -> AvatarResponse:
    """Create an avatar. The slug defaults to a slugified name; duplicates -> 409."""
    slug = body.slug or slugify(body.name)
    if not slug:
        raise ValidationError("Avatar name must contain at least one letter or digit.")

    avatar = Avatar(
        name=body.name,
        type=body.type,
        slug=slug,
        style=body.style.value,
        rarity=body.rarity.value,
        progression=AvatarProgression(unlocked_by_default=body.unlocked_by_default),
        badges_unlocked=list(body.badges_unlocked),
    )
    store = _store(request)
    try:
        store.create_avatar(avatar)
    except IntegrityError as exc:
        raise Conflict("An avatar with that name or slug already exists.") from exc
    logger.info("Avatar %s created by admin id=%s", slug, caller.user_id)
    return AvatarResponse.from_avatar(_require(store.get_by_slug(slug), slug))


@router.patch("/avatars/{slug}/admin-update", response_model=AvatarResponse)
async def admin_update_avatar(
    request: Request,
    slug: str,
    body: AvatarAdminUpdate,
    caller: Caller = Depends(require_admin),
) -> AvatarResponse:
    fields = body.model_dump(exclude_unset=True, exclude_none=True, mode="json")
    try:
        updated = _store(request).update_avatar(slug, **fields)
    except IntegrityError as exc:
        raise Conflict("An avatar with that name already exists.") from exc
    return AvatarResponse.from_avatar(_require(updated, slug))


@router.patch("/avatars/{slug}/reset", response_model=ProgressionResponse)
async def reset_progression(
    request: Request,
    slug: str,
    caller: Caller = Depends(require_admin),
) -> ProgressionResponse:
    return ProgressionResponse.from_progression(_progression(request).reset_progression(slug))


@router.patch("/avatars/{slug}/unlock", response_model=ProgressionResponse)
async def unlock_avatar(
    request: Request,
    slug: str,
    caller: Caller = Depends(require_admin),
) -> ProgressionResponse:
    return ProgressionResponse.from_progression(_progression(request).unlock(slug))


@router.delete("/avatars/{slug}", status_code=204)
async def delete_avatar(request: Request, slug: str, caller: Caller = Depends(require_admin)) -> Response:
    if not _store(request).delete_avatar(slug):
        raise NotFound(f'Avatar "{slug}" not found.')
    logger.info("Avatar %s deleted by admin id=%s", slug, caller.user_id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Progression and dialogue (authenticated)
# ---------------------------------------------------------------------------


@router.patch("/avatars/{slug}/add-xp", response_model=ProgressionResponse)
async def add_xp(
    request: Request,
    slug: str,
    body: AddXpRequest,
    caller: Caller = Depends(get_current_caller),
) -> ProgressionResponse:
    """Grant XP; the avatar levels up as many times as the total allows."""
    return ProgressionResponse.from_progression(_progression(request).add_xp(slug, body.xp))


@router.post("/avatars/{slug}/ai-response", response_model=DialogueResponse)
async def ai_response(
    request: Request,
    slug: str,
    body: DialogueRequest,
    caller: Caller = Depends(get_current_caller),
) -> DialogueResponse:
    """Return a templated reply in the avatar's voice.

    Non-admin callers must have bonded with the avatar first (403 otherwise).
    """
    avatar = _require(_store(request).get_by_slug(slug), slug)
    user_store: UserStore = request.app.state.user_store
    user = user_store.get_by_id(caller.user_id)
    if user is None:
        raise Unauthorized()
    require_bond(caller, user, avatar.slug)
    return DialogueResponse(slug=avatar.slug, response=generate_for_avatar(avatar.name, avatar.style, body.context))

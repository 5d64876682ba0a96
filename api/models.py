"""
API request and response models for Avatar Engine REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
avatars/models.py, which own the internal domain representation. Route handlers
map between the two.

No response model has a password or hash field -- the hash cannot leak
through serialization because there is nowhere to put it.

Request models ignore unknown fields (pydantic's default). A "role" sent to
POST /users/register is dropped before the handler ever sees it.
"""

from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import Bond, Role, User
from avatars.models import RARITIES, STYLES, Avatar, AvatarProgression

# Syntactic check only, not RFC 5322.
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

# Built from the catalogue constants so the accepted values have one source.
StyleEnum = Enum("StyleEnum", {s: s for s in STYLES}, type=str)
RarityEnum = Enum("RarityEnum", {r: r for r in RARITIES}, type=str)


# ---------------------------------------------------------------------------
# Shared envelopes
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


class MessageResponse(BaseModel):
    message: str


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=1, max_length=128)


class AppSettingsModel(BaseModel):
    theme: str = Field(default="light", max_length=30)
    accessibility_mode: bool = False


class BondResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    bond_level: int
    bond_points: int
    humor_level: Optional[int] = None

    @classmethod
    def from_bond(cls, bond: Bond) -> "BondResponse":
        return cls(bond_level=bond.bond_level, bond_points=bond.bond_points, humor_level=bond.humor_level)


class UserResponse(BaseModel):
    """Public view of a user account. Never carries the password hash."""

    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    role: Role
    display_name: str
    preferred_voice: str
    app_settings: AppSettingsModel
    bonds: dict[str, BondResponse]
    unlocked_badges: list[str]
    created_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        """Build the public view from a domain User (Factory Method)."""
        return cls(
            id=user.id,
            email=user.email,
            role=user.role,
            display_name=user.display_name,
            preferred_voice=user.preferred_voice,
            app_settings=AppSettingsModel(
                theme=user.app_settings.theme,
                accessibility_mode=user.app_settings.accessibility_mode,
            ),
            bonds={slug: BondResponse.from_bond(b) for slug, b in user.bonds.items()},
            unlocked_badges=list(user.unlocked_badges),
            created_at=user.created_at or "",
        )


class LoginResponse(BaseModel):
    """Response for POST /api/v1/auth/login."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: Literal["bearer"] = "bearer"
    expires_in: int
    user: UserResponse


class MeResponse(BaseModel):
    """Response for GET /api/v1/auth/me -- the identity behind the token."""

    model_config = ConfigDict(frozen=True)

    user_id: int
    email: str
    role: Role


class ProtectedResponse(BaseModel):
    message: str
    user: MeResponse


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/users/register and POST /api/v1/setup."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    password: str = Field(min_length=8, max_length=128)
    display_name: Optional[str] = Field(default=None, max_length=255)


class UserSelfUpdate(BaseModel):
    """Request body for PATCH /api/v1/users/me. Role, email and password are not here."""

    model_config = ConfigDict(str_strip_whitespace=True)

    display_name: Optional[str] = Field(default=None, max_length=255)
    preferred_voice: Optional[str] = Field(default=None, max_length=100)
    app_settings: Optional[AppSettingsModel] = None


class ChangePasswordRequest(BaseModel):
    old_password: str = Field(min_length=1, max_length=128)
    new_password: str = Field(min_length=8, max_length=128)


class AdminUserUpdate(BaseModel):
    """Request body for PATCH /api/v1/users/{id}/admin-update."""

    model_config = ConfigDict(str_strip_whitespace=True)

    display_name: Optional[str] = Field(default=None, max_length=255)
    email: Optional[str] = Field(default=None, pattern=EMAIL_PATTERN, max_length=255)
    preferred_voice: Optional[str] = Field(default=None, max_length=100)
    app_settings: Optional[AppSettingsModel] = None
    password: Optional[str] = Field(default=None, min_length=8, max_length=128)
    role: Optional[Role] = None
    unlocked_badges: Optional[list[str]] = Field(default=None, max_length=200)


class RoleUpdate(BaseModel):
    role: Role


class BondPointsRequest(BaseModel):
    points: int = Field(ge=0, le=1_000_000)


class HumorLevelRequest(BaseModel):
    humor_level: int = Field(ge=0, le=100)


# ---------------------------------------------------------------------------
# Avatars
# ---------------------------------------------------------------------------


class ProgressionResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    level: int
    xp: int
    unlocked_by_default: bool

    @classmethod
    def from_progression(cls, p: AvatarProgression) -> "ProgressionResponse":
        return cls(level=p.level, xp=p.xp, unlocked_by_default=p.unlocked_by_default)


class AvatarResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    slug: str
    name: str
    type: str
    style: str
    rarity: str
    level: int
    xp: int
    unlocked_by_default: bool
    badges_unlocked: list[str]
    created_at: str

    @classmethod
    def from_avatar(cls, avatar: Avatar) -> "AvatarResponse":
        return cls(
            id=avatar.id,
            slug=avatar.slug,
            name=avatar.name,
            type=avatar.type,
            style=avatar.style,
            rarity=avatar.rarity,
            level=avatar.progression.level,
            xp=avatar.progression.xp,
            unlocked_by_default=avatar.progression.unlocked_by_default,
            badges_unlocked=list(avatar.badges_unlocked),
            created_at=avatar.created_at or "",
        )


class AvatarListResponse(BaseModel):
    count: int
    avatars: list[AvatarResponse]


class AvatarCreate(BaseModel):
    """Request body for POST /api/v1/avatars."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)
    type: str = Field(min_length=1, max_length=100)
    slug: Optional[str] = Field(default=None, pattern=r"^[a-z0-9-]+$", max_length=100)
    style: StyleEnum = StyleEnum.default
    rarity: RarityEnum = RarityEnum.common
    unlocked_by_default: bool = False
    badges_unlocked: list[str] = Field(default_factory=list, max_length=200)


class AvatarAdminUpdate(BaseModel):
    """Request body for PATCH /api/v1/avatars/{slug}/admin-update."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    type: Optional[str] = Field(default=None, min_length=1, max_length=100)
    style: Optional[StyleEnum] = None
    rarity: Optional[RarityEnum] = None
    badges_unlocked: Optional[list[str]] = Field(default=None, max_length=200)


class AddXpRequest(BaseModel):
    xp: int = Field(ge=0, le=1_000_000)


class DialogueRequest(BaseModel):
    context: str = Field(min_length=1, max_length=1000)


class DialogueResponse(BaseModel):
    slug: str
    response: str

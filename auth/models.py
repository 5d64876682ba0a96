"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in avatars/models.py -- dataclasses own domain shape; stores, services and
routes do the work.

Layer rule: no imports from api/ or avatars/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class Role(str, Enum):
    """Closed set of access tiers. Unknown strings never become a Role."""

    USER = "user"
    MOD = "mod"
    ADMIN = "admin"


DEFAULT_ROLE = Role.USER


@dataclass
class Bond:
    """Per-(user, avatar) relationship progression.

    Stored inside the owning user's record (keyed by avatar slug); a bond has
    no lifecycle of its own. After normalization bond_points < 100 * bond_level.
    """

    bond_level: int = 1
    bond_points: int = 0
    humor_level: Optional[int] = None


@dataclass
class AppSettings:
    theme: str = "light"
    accessibility_mode: bool = False


@dataclass
class User:
    """A registered account.

    email is stored lower-cased; the store normalizes it on every write and
    lookup so uniqueness is case-insensitive.

    hashed_password is a bcrypt digest. It never leaves the auth layer --
    api/ response models have no field for it.

    bonds maps avatar slug -> Bond. unlocked_badges behaves as a set but keeps
    insertion order so responses are stable.
    """

    email: str
    hashed_password: str
    role: Role = DEFAULT_ROLE
    id: Optional[int] = None
    display_name: str = ""
    preferred_voice: str = ""
    app_settings: AppSettings = field(default_factory=AppSettings)
    bonds: dict[str, Bond] = field(default_factory=dict)
    unlocked_badges: list[str] = field(default_factory=list)
    created_at: str = ""  # ISO 8601, set by store on insert


@dataclass(frozen=True)
class Claims:
    """Identity payload decoded from a verified token."""

    subject_id: int
    email: str
    role: Role
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class Caller:
    """The resolved identity of an authenticated request."""

    user_id: int
    email: str
    role: Role

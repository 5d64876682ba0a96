"""
avatars/models.py -- Domain dataclasses for the avatar catalogue.

These are pure data containers with zero logic. Progression transitions live
in avatars/progression.py, persistence in avatars/store.py.

id is None before the record is written to the database.
"""

import re
from dataclasses import dataclass, field
from typing import Optional

STYLES: tuple[str, ...] = (
    "metaphorical",
    "mnemonic",
    "visual",
    "logical",
    "cartoon",
    "cyberpunk",
    "futuristic",
    "default",
)

RARITIES: tuple[str, ...] = ("common", "rare", "epic", "legendary")


@dataclass(frozen=True)
class AvatarProgression:
    """The progression subset of an avatar. After normalization xp < level * 100."""

    level: int = 1
    xp: int = 0
    unlocked_by_default: bool = False


@dataclass
class Avatar:
    """A catalogue avatar.

    slug is the URL identifier and the key users' bonds refer to. It is
    derived from name when not supplied (see slugify).
    """

    name: str
    type: str
    slug: str = ""
    style: str = "default"  # one of STYLES
    rarity: str = "common"  # one of RARITIES
    progression: AvatarProgression = field(default_factory=AvatarProgression)
    badges_unlocked: list[str] = field(default_factory=list)
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert


def slugify(name: str) -> str:
    """Lower-case, spaces to hyphens, drop everything outside [a-z0-9-]."""
    slug = re.sub(r"\s+", "-", name.strip().lower())
    return re.sub(r"[^a-z0-9-]", "", slug)

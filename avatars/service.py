"""
avatars/service.py -- Store-bound progression operations.

Each method is one read-compute-write: load the record, apply a pure transition
from avatars/progression.py, write the result back. A missing user, avatar or
bond raises NotFound before anything is written, so a failed call never leaves
partial state behind.

No locking or compare-and-swap is done here. Two concurrent calls against the
same avatar (or the same user's bonds) can interleave and lose an update.
"""

from __future__ import annotations

import logging

from auth.models import Bond, User
from auth.store import UserStore
from avatars import progression
from avatars.models import Avatar, AvatarProgression
from avatars.store import AvatarStore
from core.errors import NotFound

logger = logging.getLogger("avatarengine.avatars")


def _key(slug: str) -> str:
    return slug.strip().lower()


class ProgressionService:
    def __init__(self, user_store: UserStore, avatar_store: AvatarStore) -> None:
        self.users = user_store
        self.avatars = avatar_store

    # ------------------------------------------------------------------
    # Avatar XP
    # ------------------------------------------------------------------

    def add_xp(self, slug: str, delta: int) -> AvatarProgression:
        avatar = self._require_avatar(slug)
        before = avatar.progression
        after = progression.add_xp(before, delta)
        self.avatars.save_progression(avatar.slug, after)
        if after.level > before.level:
            logger.info("Avatar %s leveled up %d -> %d", avatar.slug, before.level, after.level)
        return after

    def reset_progression(self, slug: str) -> AvatarProgression:
        avatar = self._require_avatar(slug)
        after = progression.reset(avatar.progression)
        self.avatars.save_progression(avatar.slug, after)
        logger.info("Avatar %s progression reset", avatar.slug)
        return after

    def unlock(self, slug: str) -> AvatarProgression:
        avatar = self._require_avatar(slug)
        after = progression.unlock(avatar.progression)
        self.avatars.save_progression(avatar.slug, after)
        return after

    # ------------------------------------------------------------------
    # Bonds
    # ------------------------------------------------------------------

    def create_bond(self, user_id: int, slug: str) -> Bond:
        """Start (or restart) the user's bond with an avatar.

        Calling this for an existing bond overwrites it with a fresh one.
        """
        user = self._require_user(user_id)
        avatar = self._require_avatar(slug)
        bond = progression.create_bond()
        user.bonds[avatar.slug] = bond
        self.users.save_bonds(user.id, user.bonds)
        logger.info("User id=%s bonded with %s", user.id, avatar.slug)
        return bond

    def increase_bond(self, user_id: int, slug: str, points: int) -> Bond:
        user = self._require_user(user_id)
        slug = _key(slug)
        before = self._require_bond(user, slug)
        after = progression.increase_bond_points(before, points)
        user.bonds[slug] = after
        self.users.save_bonds(user.id, user.bonds)
        if after.bond_level > before.bond_level:
            logger.info(
                "Bond user id=%s / %s leveled up %d -> %d", user.id, slug, before.bond_level, after.bond_level
            )
        return after

    def set_humor_level(self, user_id: int, slug: str, humor_level: int) -> Bond:
        user = self._require_user(user_id)
        slug = _key(slug)
        bond = progression.set_humor_level(self._require_bond(user, slug), humor_level)
        user.bonds[slug] = bond
        self.users.save_bonds(user.id, user.bonds)
        return bond

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _require_avatar(self, slug: str) -> Avatar:
        avatar = self.avatars.get_by_slug(slug)
        if avatar is None:
            raise NotFound(f'Avatar "{slug}" not found.')
        return avatar

    def _require_user(self, user_id: int) -> User:
        user = self.users.get_by_id(user_id)
        if user is None:
            raise NotFound("User not found.")
        return user

    @staticmethod
    def _require_bond(user: User, slug: str) -> Bond:
        bond = user.bonds.get(slug)
        if bond is None:
            raise NotFound("Bond not found.")
        return bond

"""
avatars/progression.py -- Pure progression transitions.

Every function takes a value and returns a new one; nothing here touches a
store. avatars/service.py does the read-modify-write around them.
"""

from __future__ import annotations

from dataclasses import replace

from auth.models import Bond
from avatars.leveling import LeveledCounter, advance, bond_threshold, xp_threshold
from avatars.models import AvatarProgression


def add_xp(progression: AvatarProgression, delta: int) -> AvatarProgression:
    """Grant XP, leveling up as many times as the total allows.

    {level: 1, xp: 80} + 50 -> {level: 2, xp: 30}
    {level: 2, xp: 150} + 60 -> {level: 3, xp: 10}
    """
    counter = advance(LeveledCounter(progression.level, progression.xp), delta, xp_threshold)
    return replace(progression, level=counter.level, xp=counter.points)


def reset(progression: AvatarProgression) -> AvatarProgression:
    """Back to level 1 with no XP. The unlock flag is not progression state."""
    return replace(progression, level=1, xp=0)


def unlock(progression: AvatarProgression) -> AvatarProgression:
    return replace(progression, unlocked_by_default=True)


def create_bond() -> Bond:
    """A fresh bond for a first engagement. Creating twice overwrites."""
    return Bond(bond_level=1, bond_points=0, humor_level=0)


def increase_bond_points(bond: Bond, delta: int) -> Bond:
    """Add bond points; {bond_level: 1, bond_points: 90} + 30 -> {2, 20}."""
    counter = advance(LeveledCounter(bond.bond_level, bond.bond_points), delta, bond_threshold)
    return replace(bond, bond_level=counter.level, bond_points=counter.points)


def set_humor_level(bond: Bond, humor_level: int) -> Bond:
    return replace(bond, humor_level=humor_level)

"""
avatars/leveling.py -- The shared leveling curve.

Avatar XP and user-avatar bond points level up by the same rule: add points,
then while the points reach the current level's threshold, pay the threshold
and gain a level. The threshold is evaluated with the *current* level on every
iteration, so one large grant can cross several levels.

Both call sites go through advance(); only the threshold function differs.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

Threshold = Callable[[int], int]


@dataclass(frozen=True)
class LeveledCounter:
    level: int
    points: int


def xp_threshold(level: int) -> int:
    return level * 100


def bond_threshold(bond_level: int) -> int:
    return 100 * bond_level


def advance(counter: LeveledCounter, delta: int, threshold: Threshold) -> LeveledCounter:
    """Add delta points and normalize until points < threshold(level).

    An already-inconsistent counter (points above its threshold) is normalized
    too, so advance(counter, 0, ...) is a pure normalization.

    Raises ValueError for negative deltas, negative points or level < 1.
    """
    if delta < 0:
        raise ValueError(f"delta must be >= 0, got {delta}")
    if counter.level < 1:
        raise ValueError(f"level must be >= 1, got {counter.level}")
    if counter.points < 0:
        raise ValueError(f"points must be >= 0, got {counter.points}")

    level = counter.level
    points = counter.points + delta
    while points >= threshold(level):
        points -= threshold(level)
        level += 1
    return LeveledCounter(level=level, points=points)

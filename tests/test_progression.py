"""Unit tests for avatars/leveling.py and avatars/progression.py.

Covers:
- the worked examples: {1,80}+50 -> {2,30}, {2,150}+60 -> {3,10}, bond {1,90}+30 -> {2,20}
- one large grant crosses several levels
- normalization invariant holds after any sequence of grants
- reset() always yields level 1 / 0 XP and keeps the unlock flag
- transitions return new values and never mutate their input
- negative deltas are rejected
"""

import pytest

from auth.models import Bond
from avatars import progression
from avatars.leveling import LeveledCounter, advance, bond_threshold, xp_threshold
from avatars.models import AvatarProgression


class TestAdvance:
    def test_no_level_up_below_threshold(self) -> None:
        assert advance(LeveledCounter(1, 10), 20, xp_threshold) == LeveledCounter(1, 30)

    def test_exact_threshold_levels_up(self) -> None:
        assert advance(LeveledCounter(1, 0), 100, xp_threshold) == LeveledCounter(2, 0)

    def test_multiple_levels_in_one_grant(self) -> None:
        # 100 (L1) + 200 (L2) + 300 (L3) = 600 -> level 4 with 50 left
        assert advance(LeveledCounter(1, 0), 650, xp_threshold) == LeveledCounter(4, 50)

    def test_zero_delta_normalizes(self) -> None:
        assert advance(LeveledCounter(2, 150), 0, xp_threshold) == LeveledCounter(2, 150)
        assert advance(LeveledCounter(1, 250), 0, xp_threshold) == LeveledCounter(2, 150)

    def test_negative_delta_rejected(self) -> None:
        with pytest.raises(ValueError):
            advance(LeveledCounter(1, 0), -1, xp_threshold)

    def test_invalid_counter_rejected(self) -> None:
        with pytest.raises(ValueError):
            advance(LeveledCounter(0, 0), 1, xp_threshold)
        with pytest.raises(ValueError):
            advance(LeveledCounter(1, -5), 1, xp_threshold)

    @pytest.mark.parametrize("grants", [[50, 50, 50], [1] * 250, [999], [0, 120, 7, 380, 61]])
    def test_invariant_after_any_sequence(self, grants) -> None:
        counter = LeveledCounter(1, 0)
        total = 0
        for g in grants:
            counter = advance(counter, g, bond_threshold)
            total += g
            assert 0 <= counter.points < bond_threshold(counter.level)
        # Points are conserved: everything paid into thresholds plus the remainder.
        paid = sum(bond_threshold(level) for level in range(1, counter.level))
        assert paid + counter.points == total


class TestAvatarXp:
    def test_level_up_with_carry(self) -> None:
        after = progression.add_xp(AvatarProgression(level=1, xp=80), 50)
        assert (after.level, after.xp) == (2, 30)

    def test_normalizes_inconsistent_start(self) -> None:
        after = progression.add_xp(AvatarProgression(level=2, xp=150), 60)
        assert (after.level, after.xp) == (3, 10)

    def test_does_not_mutate_input(self) -> None:
        before = AvatarProgression(level=1, xp=80)
        progression.add_xp(before, 50)
        assert (before.level, before.xp) == (1, 80)

    def test_unlock_flag_preserved(self) -> None:
        after = progression.add_xp(AvatarProgression(unlocked_by_default=True), 500)
        assert after.unlocked_by_default is True

    @pytest.mark.parametrize("start", [AvatarProgression(), AvatarProgression(level=7, xp=420)])
    def test_reset(self, start) -> None:
        after = progression.reset(start)
        assert (after.level, after.xp) == (1, 0)

    def test_reset_keeps_unlock(self) -> None:
        after = progression.reset(AvatarProgression(level=3, xp=5, unlocked_by_default=True))
        assert after.unlocked_by_default is True

    def test_unlock(self) -> None:
        assert progression.unlock(AvatarProgression()).unlocked_by_default is True


class TestBond:
    def test_create_bond_defaults(self) -> None:
        bond = progression.create_bond()
        assert (bond.bond_level, bond.bond_points, bond.humor_level) == (1, 0, 0)

    def test_bond_level_up_with_carry(self) -> None:
        after = progression.increase_bond_points(Bond(bond_level=1, bond_points=90), 30)
        assert (after.bond_level, after.bond_points) == (2, 20)

    def test_bond_keeps_humor_level(self) -> None:
        after = progression.increase_bond_points(Bond(humor_level=4), 250)
        assert after.humor_level == 4

    def test_bond_does_not_mutate_input(self) -> None:
        before = Bond(bond_level=1, bond_points=90)
        progression.increase_bond_points(before, 30)
        assert (before.bond_level, before.bond_points) == (1, 90)

    def test_negative_bond_points_rejected(self) -> None:
        with pytest.raises(ValueError):
            progression.increase_bond_points(Bond(), -10)

    def test_set_humor_level(self) -> None:
        assert progression.set_humor_level(Bond(), 7).humor_level == 7

"""Tests for milestone evaluation."""

from habitlens.milestones import (
    GREEN_TOTAL,
    PERSONAL_BEST,
    STREAK,
    check_milestones,
    next_milestones,
)
from habitlens.models import StreakSnapshot


def _snap(current=0, previous=0, total=0):
    return StreakSnapshot(current_streak=current, best_streak=max(current, previous),
                          previous_best_streak=previous, total_green_days=total)


class TestCheckMilestones:
    def test_nothing_yet(self):
        check = check_milestones(_snap())
        assert check.winner is None
        assert check.newly_achieved == frozenset()

    def test_first_green_day(self):
        check = check_milestones(_snap(current=1, total=1))
        assert check.winner.id == "green-1"
        assert check.winner.type == GREEN_TOTAL

    def test_streak_beats_green_total(self):
        check = check_milestones(_snap(current=7, total=10))
        assert check.winner.id == "streak-7"
        assert check.winner.type == STREAK
        assert {"streak-3", "streak-7", "green-1", "green-10"} <= check.newly_achieved

    def test_already_achieved_not_repeated(self):
        achieved = frozenset({"streak-3", "streak-7", "green-1", "green-10"})
        check = check_milestones(_snap(current=8, total=11), achieved)
        assert check.winner is None
        assert check.newly_achieved == frozenset()

    def test_personal_best(self):
        achieved = frozenset({"streak-3", "streak-7", "green-1", "green-10", "green-25"})
        check = check_milestones(_snap(current=9, previous=8, total=30), achieved)
        assert check.winner.type == PERSONAL_BEST
        assert check.winner.id == "pb-9"
        assert "previous record of 8" in check.winner.message

    def test_personal_best_on_streak_threshold_shows_streak(self):
        achieved = frozenset({"streak-3", "green-1", "green-10", "green-25"})
        check = check_milestones(_snap(current=7, previous=5, total=30), achieved)
        assert check.winner.id == "streak-7"
        assert "pb-7" in check.newly_achieved

    def test_no_personal_best_without_previous_run(self):
        check = check_milestones(_snap(current=4, previous=0, total=4), frozenset({"streak-3", "green-1"}))
        assert check.winner is None


class TestNextMilestones:
    def test_next(self):
        streak_next, green_next = next_milestones(_snap(current=7, total=10))
        assert streak_next.threshold == 14
        assert green_next.threshold == 25

    def test_all_reached(self):
        assert next_milestones(_snap(current=400, total=400)) == (None, None)

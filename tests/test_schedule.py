"""Tests for the schedule resolver."""

from datetime import date, datetime, timedelta, timezone

from habitlens.models import HabitDefinition, SnoozeRecord
from habitlens.schedule import is_in_scope, is_snoozed, resolve_day

MONDAY = date(2026, 10, 19)
TUESDAY = MONDAY + timedelta(days=1)
NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def _habit(hid, core=True, days=(), created=None, active=True):
    return HabitDefinition(
        id=hid, label=hid.title(), is_core=core, is_active=active,
        days_of_week=frozenset(days), created_date=created,
    )


# ═══════════════════════════════════════════════════════════════════════════
# is_in_scope
# ═══════════════════════════════════════════════════════════════════════════

class TestInScope:
    def test_reference_date_is_monday(self):
        assert MONDAY.isoweekday() == 1

    def test_empty_days_means_every_day(self):
        h = _habit("walk")
        assert all(is_in_scope(h, MONDAY + timedelta(days=i)) for i in range(7))

    def test_days_of_week_restrict(self):
        h = _habit("gym", days=(1, 3, 5))
        assert is_in_scope(h, MONDAY)
        assert not is_in_scope(h, TUESDAY)
        assert is_in_scope(h, MONDAY + timedelta(days=2))

    def test_never_before_created_date(self):
        h = _habit("read", created=MONDAY)
        assert not is_in_scope(h, MONDAY - timedelta(days=1))
        assert is_in_scope(h, MONDAY)

    def test_inactive_never_in_scope(self):
        assert not is_in_scope(_habit("old", active=False), MONDAY)


# ═══════════════════════════════════════════════════════════════════════════
# Snoozes
# ═══════════════════════════════════════════════════════════════════════════

class TestSnooze:
    def test_live_snooze(self):
        s = [SnoozeRecord(MONDAY, "walk", NOW + timedelta(hours=2))]
        assert is_snoozed("walk", MONDAY, s, NOW)

    def test_expired_snooze(self):
        s = [SnoozeRecord(MONDAY, "walk", NOW - timedelta(minutes=1))]
        assert not is_snoozed("walk", MONDAY, s, NOW)

    def test_snooze_is_per_day(self):
        s = [SnoozeRecord(MONDAY, "walk", NOW + timedelta(days=3))]
        assert not is_snoozed("walk", TUESDAY, s, NOW)

    def test_snoozed_habit_is_scheduled_but_not_evaluated(self):
        habits = [_habit("walk"), _habit("read")]
        s = [SnoozeRecord(MONDAY, "walk", NOW + timedelta(hours=1))]
        scope = resolve_day(habits, MONDAY, s, NOW)
        assert [h.id for h in scope.scheduled] == ["walk", "read"]
        assert [h.id for h in scope.evaluated] == ["read"]
        assert scope.snoozed_ids == frozenset({"walk"})


# ═══════════════════════════════════════════════════════════════════════════
# Fallback
# ═══════════════════════════════════════════════════════════════════════════

class TestFallback:
    def test_nothing_scheduled_falls_back_to_core(self):
        habits = [_habit("gym", days=(1,)), _habit("stretch", core=False, days=(1,))]
        scope = resolve_day(habits, TUESDAY, [], NOW)
        assert scope.is_fallback
        assert scope.scheduled == ()
        assert [h.id for h in scope.evaluated] == ["gym"]

    def test_fallback_disabled(self):
        habits = [_habit("gym", days=(1,))]
        scope = resolve_day(habits, TUESDAY, [], NOW, allow_fallback=False)
        assert not scope.is_fallback
        assert scope.evaluated == ()

    def test_fallback_respects_created_date(self):
        habits = [_habit("gym", days=(1,), created=MONDAY + timedelta(days=7))]
        scope = resolve_day(habits, TUESDAY, [], NOW)
        assert not scope.is_fallback
        assert scope.evaluated == ()

    def test_no_fallback_when_something_scheduled(self):
        habits = [_habit("gym", days=(1,)), _habit("walk", core=False)]
        scope = resolve_day(habits, TUESDAY, [], NOW)
        assert not scope.is_fallback
        assert [h.id for h in scope.evaluated] == ["walk"]

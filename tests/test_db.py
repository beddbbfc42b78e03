"""Tests for the database layer and the SQLite sources."""

import asyncio
from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from habitlens import runtime_state
from habitlens.db import (
    init_db,
    get_setting,
    set_setting,
    create_habit,
    set_habit_active,
    list_habit_rows,
    set_check,
    load_check_rows,
    set_day_mode,
    load_day_mode_rows,
    snooze_habit,
    load_snooze_rows,
    record_metric,
    load_metric_rows,
)
from habitlens.main import persist_milestones, restore_milestones
from habitlens.milestones import Milestone, MilestoneCheck
from habitlens.records import DropCounter
from habitlens.sources import SqliteMetricSource, SqliteRecordSource

D1 = date(2026, 10, 18)
D2 = date(2026, 10, 19)


@pytest.fixture(autouse=True)
def fresh_db(tmp_path, monkeypatch):
    """Ensure a fresh database for each test."""
    db_path = tmp_path / "test.db"
    import habitlens.db as db_module
    monkeypatch.setattr(db_module, "DB_PATH", db_path)
    init_db()
    yield db_path


class TestSettings:
    def test_account_start_stamped_once(self):
        first = get_setting("account_start")
        assert first is not None
        set_setting("account_start", "2026-01-01")
        init_db()
        assert get_setting("account_start") == "2026-01-01"

    def test_missing_setting(self):
        assert get_setting("nope") is None


class TestHabits:
    def test_create_and_list(self):
        hid = create_habit("Walk", is_core=True, days_of_week=[5, 1],
                           created_at="2026-10-01T07:00:00+00:00")
        [row] = list_habit_rows()
        assert row["id"] == hid
        assert row["label"] == "Walk"
        assert row["is_core"] == 1
        assert row["days_of_week"] == "1,5"
        assert row["created_date"] == "2026-10-01"

    def test_deactivate(self):
        hid = create_habit("Walk")
        set_habit_active(hid, False)
        assert list_habit_rows()[0]["is_active"] == 0


class TestChecks:
    def test_upsert(self):
        hid = create_habit("Walk")
        set_check(hid, D2, True)
        set_check(hid, D2, False)
        rows = load_check_rows(D2, D2)
        assert len(rows) == 1
        assert rows[0]["done"] == 0

    def test_range_inclusive(self):
        hid = create_habit("Walk")
        set_check(hid, D1, True)
        set_check(hid, D2, True)
        set_check(hid, D2 + timedelta(days=1), True)
        assert [r["date"] for r in load_check_rows(D1, D2)] == ["2026-10-18", "2026-10-19"]


class TestModesSnoozesMetrics:
    def test_day_mode(self):
        set_day_mode(D2, "travel")
        set_day_mode(D2, "sick")
        assert load_day_mode_rows(D1, D2) == [{"date": "2026-10-19", "mode": "sick"}]

    def test_snooze(self):
        hid = create_habit("Walk")
        until = datetime(2026, 10, 19, 20, 0, tzinfo=timezone.utc)
        snooze_habit(hid, D2, until)
        [row] = load_snooze_rows(D2, D2)
        assert row["snoozed_until"] == until.isoformat()

    def test_metric(self):
        record_metric("sleep_hours", D1, 6.5)
        record_metric("sleep_hours", D1, 7.25)
        record_metric("steps", D1, 9000)
        assert load_metric_rows("sleep_hours", D1, D2) == [{"date": "2026-10-18", "value": 7.25}]


# ═══════════════════════════════════════════════════════════════════════════
# SQLite sources (rows → records)
# ═══════════════════════════════════════════════════════════════════════════

class TestSqliteSources:
    def test_record_source(self):
        walk = create_habit("Walk", is_core=True, created_at="2026-10-01T07:00:00+00:00")
        set_check(walk, D2, True)
        set_day_mode(D1, "travel")
        src = SqliteRecordSource()

        [habit] = src.list_habits()
        assert habit.id == str(walk)
        assert habit.created_date == date(2026, 10, 1)

        records = src.load_range(D1, D2)
        assert [(c.date, c.habit_id, c.done) for c in records.completions] == [(D2, str(walk), True)]
        assert records.day_modes[0].mode == "travel"

    def test_account_start(self):
        set_setting("account_start", "2026-02-03")
        assert SqliteRecordSource().get_account_start_date() == date(2026, 2, 3)

    def test_malformed_rows_counted(self):
        set_day_mode(D2, "holiday")
        drops = DropCounter()
        records = SqliteRecordSource().load_range(D1, D2, drops)
        assert records.day_modes == ()
        assert drops.as_dict() == {"day_mode": 1}

    def test_metric_source(self):
        record_metric("sleep_hours", D2, 7.5)
        assert SqliteMetricSource().get_metric("sleep_hours", D1, D2) == {D2: 7.5}


# ═══════════════════════════════════════════════════════════════════════════
# Milestone persistence across restarts
# ═══════════════════════════════════════════════════════════════════════════

class TestMilestonePersistence:
    @pytest.fixture(autouse=True)
    def fresh_state(self):
        runtime_state.reset()
        yield
        runtime_state.reset()

    def _result(self, *new_ids):
        winner = Milestone("green-7", "One week", "Seven green days.", 7, "streak")
        return SimpleNamespace(
            milestones=MilestoneCheck(winner=winner, newly_achieved=frozenset(new_ids)),
        )

    def test_persist_and_restore(self):
        result = self._result("green-7", "total-10")
        runtime_state.set_achieved_milestones({"green-3"})
        runtime_state.commit_result(result)
        asyncio.run(persist_milestones(result))
        assert get_setting("achieved_milestones") == "green-3,green-7,total-10"

        runtime_state.reset()
        restore_milestones()
        assert runtime_state.get_achieved_milestones() == {"green-3", "green-7", "total-10"}

    def test_nothing_new_leaves_setting_alone(self):
        set_setting("achieved_milestones", "green-3")
        asyncio.run(persist_milestones(self._result()))
        assert get_setting("achieved_milestones") == "green-3"

    def test_restore_without_setting(self):
        restore_milestones()
        assert runtime_state.get_achieved_milestones() == frozenset()

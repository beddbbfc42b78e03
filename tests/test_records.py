"""Tests for raw row parsing and drop counting."""

from datetime import date, datetime, timezone

from habitlens.records import (
    DropCounter,
    metric_map,
    parse_completions,
    parse_date,
    parse_day_modes,
    parse_habits,
    parse_metrics,
    parse_snoozes,
    parse_timestamp,
)

D = date(2026, 10, 19)


class TestScalars:
    def test_parse_date(self):
        assert parse_date("2026-10-19") == D
        assert parse_date("2026-10-19T08:30:00+02:00") == D
        assert parse_date(datetime(2026, 10, 19, 23, 0)) == D
        assert parse_date("19/10/2026") is None
        assert parse_date(None) is None

    def test_parse_date_rejects_trailing_text(self):
        assert parse_date("2026-10-19xyz") is None
        assert parse_date("2026-10-190") is None
        assert parse_date("2026-10-19 08:00") == D

    def test_parse_timestamp(self):
        ts = parse_timestamp("2026-10-19T08:00:00Z")
        assert ts == datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)
        assert parse_timestamp("2026-10-19T08:00:00").tzinfo is not None
        assert parse_timestamp("later") is None


class TestHabits:
    def test_valid_row(self):
        drops = DropCounter()
        [h] = parse_habits([{
            "id": 3, "label": "Walk", "is_core": 1, "is_active": 1,
            "days_of_week": "1,3,5", "created_date": "2026-10-01",
        }], drops)
        assert h.id == "3"
        assert h.is_core is True
        assert h.days_of_week == frozenset({1, 3, 5})
        assert h.created_date == date(2026, 10, 1)
        assert drops.total == 0

    def test_bad_rows_dropped(self):
        drops = DropCounter()
        habits = parse_habits([
            {"id": 1, "label": None},
            {"id": 2, "label": "X", "days_of_week": "0,8"},
            {"id": 3, "label": "Y", "is_core": "maybe"},
            {"id": 4, "label": "Z", "created_date": "soon"},
            {"id": 5, "label": "Ok"},
        ], drops)
        assert [h.id for h in habits] == ["5"]
        assert drops.as_dict() == {"habit": 4}


class TestCompletions:
    def test_non_boolean_done_dropped(self):
        drops = DropCounter()
        comps = parse_completions([
            {"date": "2026-10-19", "habit_id": 1, "done": 1},
            {"date": "2026-10-19", "habit_id": 2, "done": "yes"},
            {"date": "bad", "habit_id": 3, "done": True},
        ], drops)
        assert len(comps) == 1
        assert drops.total == 2

    def test_last_duplicate_wins(self):
        comps = parse_completions([
            {"date": "2026-10-19", "habit_id": 1, "done": True},
            {"date": "2026-10-19", "habit_id": 1, "done": False},
        ], DropCounter())
        assert len(comps) == 1
        assert comps[0].done is False


class TestModesAndSnoozes:
    def test_unknown_mode_dropped(self):
        drops = DropCounter()
        modes = parse_day_modes([
            {"date": "2026-10-19", "mode": "travel"},
            {"date": "2026-10-18", "mode": "vacation"},
        ], drops)
        assert [m.mode for m in modes] == ["travel"]
        assert drops.as_dict() == {"day_mode": 1}

    def test_unparseable_snooze_dropped(self):
        drops = DropCounter()
        snoozes = parse_snoozes([
            {"date": "2026-10-19", "habit_id": 1, "snoozed_until": "2026-10-19T20:00:00Z"},
            {"date": "2026-10-19", "habit_id": 2, "snoozed_until": "tonight"},
        ], drops)
        assert len(snoozes) == 1
        assert drops.total == 1


class TestMetrics:
    def test_invalid_values_dropped(self):
        drops = DropCounter()
        metrics = parse_metrics([
            {"date": "2026-10-19", "value": 7.5},
            {"date": "2026-10-18", "value": -1},
            {"date": "2026-10-17", "value": "8"},
            {"date": "2026-10-16", "value": float("nan")},
            {"date": "2026-10-15", "value": True},
        ], "sleep_hours", drops)
        assert [m.value for m in metrics] == [7.5]
        assert drops.as_dict() == {"metric": 4}

    def test_metric_map_sums_per_day(self):
        metrics = parse_metrics([
            {"date": "2026-10-19", "value": 6},
            {"date": "2026-10-19", "value": 1.5},
        ], "sleep_hours", DropCounter())
        assert metric_map(metrics) == {D: 7.5}

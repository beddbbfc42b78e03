"""Raw row → record parsing.

Rows come from the store (sqlite3.Row converted to dict) or from an
external metric provider. A malformed row is dropped from its own day's
computation and counted; it never aborts the batch.
"""

import logging
import math
from collections import Counter
from datetime import date, datetime, timezone

from habitlens.models import (
    DAY_MODES,
    CompletionRecord,
    DayModeRecord,
    ExternalMetric,
    HabitDefinition,
    RangeRecords,
    SnoozeRecord,
)

log = logging.getLogger(__name__)


class DropCounter:
    """Counts dropped rows per kind for observability."""

    def __init__(self) -> None:
        self._counts: Counter[str] = Counter()

    def drop(self, kind: str, row, reason: str) -> None:
        self._counts[kind] += 1
        log.warning("Dropped malformed %s row (%s): %r", kind, reason, row)

    @property
    def total(self) -> int:
        return sum(self._counts.values())

    def as_dict(self) -> dict[str, int]:
        return dict(self._counts)


def parse_date(value) -> date | None:
    """Accept a date, a datetime, or an ISO string (time part ignored)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or (len(value) > 10 and value[10] not in "T "):
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def parse_timestamp(value) -> datetime | None:
    """ISO timestamp → aware datetime (naive values are taken as UTC)."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def _parse_bool(value) -> bool | None:
    # SQLite stores booleans as 0/1
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    return None


def _parse_days_of_week(value) -> frozenset[int] | None:
    if value is None or value == "":
        return frozenset()
    if isinstance(value, str):
        parts = [p.strip() for p in value.split(",") if p.strip()]
    else:
        parts = list(value)
    try:
        days = frozenset(int(p) for p in parts)
    except (TypeError, ValueError):
        return None
    if any(d < 1 or d > 7 for d in days):
        return None
    return days


# ═══════════════════════════════════════════════════════════════════════════
# Row parsers
# ═══════════════════════════════════════════════════════════════════════════

def parse_habits(rows, drops: DropCounter) -> list[HabitDefinition]:
    habits = []
    for row in rows:
        habit_id = row.get("id")
        label = row.get("label")
        if habit_id is None or not isinstance(label, str):
            drops.drop("habit", row, "missing id or label")
            continue
        days = _parse_days_of_week(row.get("days_of_week"))
        if days is None:
            drops.drop("habit", row, "bad days_of_week")
            continue
        created = row.get("created_date")
        created_date = parse_date(created) if created else None
        if created and created_date is None:
            drops.drop("habit", row, "bad created_date")
            continue
        is_core = _parse_bool(row.get("is_core", False))
        is_active = _parse_bool(row.get("is_active", True))
        if is_core is None or is_active is None:
            drops.drop("habit", row, "non-boolean flag")
            continue
        habits.append(HabitDefinition(
            id=str(habit_id),
            label=label,
            is_core=is_core,
            is_active=is_active,
            days_of_week=days,
            created_date=created_date,
        ))
    return habits


def parse_completions(rows, drops: DropCounter) -> list[CompletionRecord]:
    """Parse check rows. Duplicate (date, habit) pairs: last one wins."""
    by_key: dict[tuple[date, str], CompletionRecord] = {}
    for row in rows:
        d = parse_date(row.get("date"))
        habit_id = row.get("habit_id")
        done = _parse_bool(row.get("done"))
        if d is None or habit_id is None or done is None:
            drops.drop("completion", row, "bad date, habit_id or done")
            continue
        key = (d, str(habit_id))
        if key in by_key:
            log.debug("Duplicate completion for %s on %s, keeping last", key[1], d)
        by_key[key] = CompletionRecord(date=d, habit_id=str(habit_id), done=done)
    return list(by_key.values())


def parse_day_modes(rows, drops: DropCounter) -> list[DayModeRecord]:
    by_date: dict[date, DayModeRecord] = {}
    for row in rows:
        d = parse_date(row.get("date"))
        mode = row.get("mode")
        if d is None or mode not in DAY_MODES:
            drops.drop("day_mode", row, "bad date or mode")
            continue
        by_date[d] = DayModeRecord(date=d, mode=mode)
    return list(by_date.values())


def parse_snoozes(rows, drops: DropCounter) -> list[SnoozeRecord]:
    snoozes = []
    for row in rows:
        d = parse_date(row.get("date"))
        habit_id = row.get("habit_id")
        until = parse_timestamp(row.get("snoozed_until"))
        if d is None or habit_id is None or until is None:
            drops.drop("snooze", row, "bad date, habit_id or snoozed_until")
            continue
        snoozes.append(SnoozeRecord(date=d, habit_id=str(habit_id), snoozed_until=until))
    return snoozes


def parse_metrics(rows, name: str, drops: DropCounter) -> list[ExternalMetric]:
    metrics = []
    for row in rows:
        d = parse_date(row.get("date"))
        value = row.get("value")
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            drops.drop("metric", row, "non-numeric value")
            continue
        if d is None or math.isnan(value) or value < 0:
            drops.drop("metric", row, "bad date or negative value")
            continue
        metrics.append(ExternalMetric(date=d, name=name, value=float(value)))
    return metrics


def parse_range(completion_rows, day_mode_rows, snooze_rows,
                drops: DropCounter) -> RangeRecords:
    return RangeRecords(
        completions=tuple(parse_completions(completion_rows, drops)),
        day_modes=tuple(parse_day_modes(day_mode_rows, drops)),
        snoozes=tuple(parse_snoozes(snooze_rows, drops)),
    )


def metric_map(metrics: list[ExternalMetric]) -> dict[date, float]:
    """Collapse metric rows to one value per day (values on a day are summed)."""
    result: dict[date, float] = {}
    for m in metrics:
        result[m.date] = result.get(m.date, 0.0) + m.value
    return result

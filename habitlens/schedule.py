"""Schedule resolver — which habits are in scope for a calendar date.

Dates are local calendar days (the caller resolves "today" in the user's
timezone), so the ISO weekday is simply date.isoweekday().
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Sequence

from habitlens.models import HabitDefinition, SnoozeRecord


@dataclass(frozen=True)
class DayScope:
    """Scope of one date.

    scheduled — habits shown/tracked that day (snoozed ones included)
    evaluated — habits the classifier grades (snoozed ones removed)
    """
    date: date
    scheduled: tuple[HabitDefinition, ...]
    evaluated: tuple[HabitDefinition, ...]
    snoozed_ids: frozenset[str] = frozenset()
    is_fallback: bool = False


def _exists_on(habit: HabitDefinition, day: date) -> bool:
    if not habit.is_active:
        return False
    return habit.created_date is None or habit.created_date <= day


def is_in_scope(habit: HabitDefinition, day: date) -> bool:
    """Whether `habit` is scheduled on `day`."""
    if not _exists_on(habit, day):
        return False
    if not habit.days_of_week:
        return True
    return day.isoweekday() in habit.days_of_week


def is_snoozed(habit_id: str, day: date, snoozes: Iterable[SnoozeRecord],
               now: datetime) -> bool:
    """A snooze is live while its snoozed_until is still ahead of `now`."""
    return any(
        s.habit_id == habit_id and s.date == day and s.snoozed_until > now
        for s in snoozes
    )


def resolve_day(habits: Sequence[HabitDefinition], day: date,
                snoozes: Iterable[SnoozeRecord], now: datetime,
                allow_fallback: bool = True) -> DayScope:
    """Resolve the scheduled and evaluated habit sets for `day`.

    When nothing is scheduled but core habits exist on that date, the full
    core set is evaluated instead and the scope is flagged as a fallback.
    """
    day_snoozes = [s for s in snoozes if s.date == day]
    scheduled = tuple(h for h in habits if is_in_scope(h, day))

    is_fallback = False
    candidates = scheduled
    if not scheduled and allow_fallback:
        core = tuple(h for h in habits if h.is_core and _exists_on(h, day))
        if core:
            candidates = core
            is_fallback = True

    snoozed_ids = frozenset(
        h.id for h in candidates if is_snoozed(h.id, day, day_snoozes, now)
    )
    evaluated = tuple(h for h in candidates if h.id not in snoozed_ids)

    return DayScope(
        date=day,
        scheduled=scheduled,
        evaluated=evaluated,
        snoozed_ids=snoozed_ids,
        is_fallback=is_fallback,
    )

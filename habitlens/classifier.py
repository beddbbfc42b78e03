"""Day classifier — one categorical status per calendar date.

Pure: the same (habits, completions, day mode, boundaries) always yield
the same DayStatus. "empty" is the answer whenever there is no basis to
judge the day (future, before the account existed, no core commitment).

Pending-today policies:
  HOLD_OPEN          Today is graded with every rule applied first
                     (synonyms, relaxed travel/sick thresholds). A green
                     or empty result stands; a yellow or red result is
                     reported as "pending" until the day has elapsed.
  GRADE_IMMEDIATELY  Today is graded like any finished day.
"""

import logging
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Iterable, Mapping, Sequence

from habitlens.keywords import KeywordConfig
from habitlens.models import (
    EMPTY,
    GREEN,
    MODE_NORMAL,
    PENDING,
    RED,
    RELAXED_MODES,
    YELLOW,
    CompletionRecord,
    DayStatus,
    HabitDefinition,
    RangeRecords,
)
from habitlens.schedule import resolve_day

log = logging.getLogger(__name__)

HOLD_OPEN = "hold_open"
GRADE_IMMEDIATELY = "grade_immediately"
PENDING_POLICIES = (HOLD_OPEN, GRADE_IMMEDIATELY)


def validate_policy(policy: str) -> str:
    if policy not in PENDING_POLICIES:
        raise ValueError(
            f"Unknown pending policy {policy!r}, expected one of {PENDING_POLICIES}"
        )
    return policy


def _allowed_yellow_misses(day_mode: str | None) -> int:
    """Misses still graded yellow. Travel/sick days tolerate one more."""
    return 2 if day_mode in RELAXED_MODES else 1


def find_missing_core(core: Sequence[HabitDefinition], done_ids: set[str],
                      labels: Mapping[str, str],
                      keywords: KeywordConfig) -> list[HabitDefinition]:
    """Core habits not satisfied, after applying the synonym rules."""
    checked_labels = [labels.get(hid, "") for hid in done_ids]
    missing = []
    for habit in core:
        if habit.id in done_ids:
            continue
        rule = keywords.rule_for(habit.label)
        if rule and any(rule.is_satisfier(lbl) for lbl in checked_labels):
            continue
        missing.append(habit)
    return missing


def classify_day(day: date,
                 habits: Sequence[HabitDefinition],
                 completions: Iterable[CompletionRecord],
                 day_mode: str | None,
                 account_start: date | None,
                 today: date,
                 *,
                 keywords: KeywordConfig,
                 labels: Mapping[str, str] | None = None,
                 policy: str = HOLD_OPEN,
                 is_fallback: bool = False) -> DayStatus:
    """Classify one date.

    Args:
        habits: habits evaluated on `day` (already scope-resolved, snoozed
            habits removed).
        completions: completion records; only those dated `day` are used.
        labels: habit id → label for every known habit, so that checked
            habits outside `habits` can still satisfy a synonym rule.
    """
    if day > today:
        return DayStatus(date=day, color=EMPTY, is_fallback=is_fallback)
    if account_start is not None and day < account_start:
        return DayStatus(date=day, color=EMPTY, is_fallback=is_fallback)

    core = [h for h in habits if h.is_core]
    if not core:
        return DayStatus(date=day, color=EMPTY, is_fallback=is_fallback)

    if labels is None:
        labels = {h.id: h.label for h in habits}
    done_ids = {c.habit_id for c in completions if c.date == day and c.done}

    missing = find_missing_core(core, done_ids, labels, keywords)
    if not missing:
        color = GREEN
    elif len(missing) <= _allowed_yellow_misses(day_mode):
        color = YELLOW
    else:
        color = RED

    if day == today and color != GREEN and policy == HOLD_OPEN:
        color = PENDING

    return DayStatus(
        date=day,
        color=color,
        core_done=len(core) - len(missing),
        core_total=len(core),
        is_fallback=is_fallback,
        missing_core=tuple(h.id for h in missing),
    )


def classify_range(habits: Sequence[HabitDefinition],
                   records: RangeRecords,
                   start: date,
                   end: date,
                   account_start: date | None,
                   today: date,
                   now: datetime,
                   *,
                   keywords: KeywordConfig,
                   policy: str = HOLD_OPEN,
                   allow_fallback: bool = True) -> list[DayStatus]:
    """Classify every date in [start, end], oldest first."""
    by_date: dict[date, list[CompletionRecord]] = defaultdict(list)
    for c in records.completions:
        by_date[c.date].append(c)
    modes = {m.date: m.mode for m in records.day_modes}
    labels = {h.id: h.label for h in habits}

    days: list[DayStatus] = []
    d = start
    while d <= end:
        scope = resolve_day(habits, d, records.snoozes, now, allow_fallback)
        days.append(classify_day(
            d,
            scope.evaluated,
            by_date.get(d, ()),
            modes.get(d, MODE_NORMAL),
            account_start,
            today,
            keywords=keywords,
            labels=labels,
            policy=policy,
            is_fallback=scope.is_fallback,
        ))
        d += timedelta(days=1)

    log.debug("Classified %d days (%s → %s)", len(days), start, end)
    return days

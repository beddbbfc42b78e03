"""Streak calculator — streak and consistency statistics from classified days.

Input is the ordered DayStatus history (oldest → newest). Everything is
computed inside a bounded lookback window ending at `today`.
"""

from datetime import date, timedelta
from typing import Mapping, Sequence

from habitlens.keywords import matches_any
from habitlens.models import DayStatus, StreakSnapshot

DEFAULT_LOOKBACK_DAYS = 90


def week_start(d: date) -> date:
    """Monday of d's ISO week."""
    return d - timedelta(days=d.isoweekday() - 1)


def trailing_run(days: Sequence[DayStatus], predicate) -> int:
    """Consecutive entries from the newest backward satisfying predicate."""
    run = 0
    for day in reversed(days):
        if not predicate(day):
            break
        run += 1
    return run


def _runs(days: Sequence[DayStatus]) -> tuple[int, list[int]]:
    """(best green run, completed green runs). A trailing run is not completed."""
    best = 0
    run = 0
    completed: list[int] = []
    for day in days:
        if day.is_green:
            run += 1
            best = max(best, run)
        else:
            if run > 0:
                completed.append(run)
            run = 0
    return best, completed


def compute_streaks(history: Sequence[DayStatus],
                    today: date | None = None,
                    *,
                    done_labels: Mapping[date, Sequence[str]] | None = None,
                    categories: Mapping[str, tuple[str, ...]] | None = None,
                    lookback_days: int = DEFAULT_LOOKBACK_DAYS) -> StreakSnapshot:
    """Derive a StreakSnapshot from classified history.

    Args:
        history: DayStatus entries ordered oldest → newest, one per day.
        today: reference day; defaults to the newest entry's date.
        done_labels: date → labels of habits checked done that day, used
            for the per-category streaks.
        categories: category name → keywords matched against done_labels.
        lookback_days: window size; older entries are ignored.
    """
    if not history:
        return StreakSnapshot(
            category_streaks={name: 0 for name in (categories or {})},
        )

    if today is None:
        today = history[-1].date
    window_start = today - timedelta(days=lookback_days)
    days = [d for d in history if window_start < d.date <= today]

    current = trailing_run(days, lambda d: d.is_green)
    best, completed = _runs(days)
    if current == best:
        # On the record run right now; compare against finished runs only
        previous_best = max(completed, default=0)
    else:
        previous_best = best

    total_green = sum(1 for d in days if d.is_green)

    days_since_last_green = None
    for d in reversed(days):
        if d.date < today and d.is_green:
            days_since_last_green = (today - d.date).days - 1
            break

    category_streaks: dict[str, int] = {}
    labels_by_date = done_labels or {}
    for name, keywords in (categories or {}).items():
        category_streaks[name] = trailing_run(
            days,
            lambda d, kws=keywords: any(
                matches_any(lbl, kws) for lbl in labels_by_date.get(d.date, ())
            ),
        )

    this_week = week_start(today)
    last_week = this_week - timedelta(days=7)
    month_start = today.replace(day=1)

    green_this_week = sum(1 for d in days if d.is_green and d.date >= this_week)
    green_last_week = sum(
        1 for d in days if d.is_green and last_week <= d.date < this_week
    )
    green_this_month = sum(1 for d in days if d.is_green and d.date >= month_start)

    week_days = [d for d in days if d.date >= this_week and d.core_total > 0]
    possible = sum(d.core_total for d in week_days)
    hit_rate = None
    if possible:
        hit_rate = int(100 * sum(d.core_done for d in week_days) / possible + 0.5)

    return StreakSnapshot(
        current_streak=current,
        best_streak=best,
        previous_best_streak=previous_best,
        total_green_days=total_green,
        days_since_last_green=days_since_last_green,
        category_streaks=category_streaks,
        green_days_this_week=green_this_week,
        green_days_last_week=green_last_week,
        green_days_this_month=green_this_month,
        core_hit_rate_this_week=hit_rate,
        last_7_days=tuple(days[-7:]),
    )

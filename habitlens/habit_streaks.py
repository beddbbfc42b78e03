"""Per-habit streaks — streak and period statistics for each active habit.

Works on completion records directly; day colors are not involved. A day
counts as "tracked" for a habit when a record exists for it, done or not.
"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, Sequence

from habitlens.models import CompletionRecord, HabitDefinition
from habitlens.streaks import week_start

HABIT_MILESTONES = (3, 7, 14, 21, 30, 50, 75, 100, 150, 200, 365)


@dataclass(frozen=True)
class HabitStreak:
    id: str
    label: str
    is_core: bool
    current_streak: int
    best_streak: int
    wtd: int
    mtd: int
    ytd: int
    all_time: int
    total_tracked: int
    completion_pct: int
    last_30: tuple[bool, ...]
    earned_milestones: tuple[int, ...]
    next_milestone_at: int | None


def _current_streak(done: set[date], tracked: set[date], today: date,
                    lookback_days: int) -> int:
    """Trailing run of done days. An unfinished today does not break it.

    Untracked days before the run starts are skipped; once a run has
    started, an untracked day ends it.
    """
    streak = 0
    start = 0 if today in done else 1
    for i in range(start, lookback_days + 1):
        d = today - timedelta(days=i)
        if d not in tracked:
            if streak == 0:
                continue
            break
        if d not in done:
            break
        streak += 1
    return streak


def _best_streak(done: set[date], tracked: set[date]) -> int:
    best = run = 0
    for d in sorted(tracked):
        if d in done:
            run += 1
            best = max(best, run)
        else:
            run = 0
    return best


def compute_habit_streaks(habits: Sequence[HabitDefinition],
                          completions: Iterable[CompletionRecord],
                          today: date,
                          *,
                          pinned: frozenset[str] = frozenset(),
                          lookback_days: int = 400) -> list[HabitStreak]:
    """Per-habit stats for active habits, pinned first then by current streak."""
    window_start = today - timedelta(days=lookback_days)
    done_by: dict[str, set[date]] = defaultdict(set)
    tracked_by: dict[str, set[date]] = defaultdict(set)
    for c in completions:
        if not window_start <= c.date <= today:
            continue
        tracked_by[c.habit_id].add(c.date)
        if c.done:
            done_by[c.habit_id].add(c.date)

    wk, month, year = week_start(today), today.replace(day=1), today.replace(month=1, day=1)

    results = []
    for habit in habits:
        if not habit.is_active:
            continue
        done = done_by.get(habit.id, set())
        tracked = tracked_by.get(habit.id, set())

        current = _current_streak(done, tracked, today, lookback_days)
        best = max(_best_streak(done, tracked), current)
        all_time = len(done)
        earned = tuple(m for m in HABIT_MILESTONES if best >= m)

        results.append(HabitStreak(
            id=habit.id,
            label=habit.label,
            is_core=habit.is_core,
            current_streak=current,
            best_streak=best,
            wtd=sum(1 for d in done if d >= wk),
            mtd=sum(1 for d in done if d >= month),
            ytd=sum(1 for d in done if d >= year),
            all_time=all_time,
            total_tracked=len(tracked),
            completion_pct=int(all_time * 100 / len(tracked) + 0.5) if tracked else 0,
            last_30=tuple((today - timedelta(days=i)) in done for i in range(29, -1, -1)),
            earned_milestones=earned,
            next_milestone_at=next((m for m in HABIT_MILESTONES if m > current), None),
        ))

    results.sort(key=lambda h: (h.id not in pinned, -h.current_streak))
    return results

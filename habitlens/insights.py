"""Insight engine — ranked, significance-gated observations over history.

Every heuristic is computed independently and only emitted once it clears
its sample-size and effect-size gates. Percentages are whole numbers.
The output holds at most `max_insights` entries, highest score first.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Mapping, Sequence

from habitlens.models import CompletionRecord, DayStatus, HabitDefinition, Insight
from habitlens.schedule import is_in_scope
from habitlens.streaks import week_start

log = logging.getLogger(__name__)

DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
DAY_SHORT = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


@dataclass(frozen=True)
class InsightThresholds:
    min_days: int = 7
    max_insights: int = 6
    dow_min_samples: int = 2
    dow_min_gap: int = 20
    metric_min_samples: int = 10
    metric_min_bucket: int = 3
    metric_min_diff: int = 15
    habit_min_samples: int = 7
    worst_habit_max_rate: int = 70
    worst_habit_min_gap: int = 20
    trend_window: int = 14
    trend_min_prior: int = 7
    trend_min_delta: int = 10
    weekday_min_samples: int = 5
    weekend_min_samples: int = 3
    weekpart_min_gap: int = 20
    perfect_week_min_days: int = 5
    perfect_week_points: int = 15


@dataclass(frozen=True)
class MetricCorrelation:
    """Which external metric to correlate with green days, and its cut-off."""
    name: str = "sleep_hours"
    label: str = "sleep"
    unit: str = "hour"
    threshold: float = 7.0


def pct(n: int, d: int) -> int:
    """Whole percentage, halves rounded up."""
    return 0 if d == 0 else int(n * 100 / d + 0.5)


def _green_pct(days: Sequence[DayStatus]) -> int:
    return pct(sum(1 for d in days if d.is_green), len(days))


def _plural(n: int, word: str) -> str:
    return f"{n} {word}{'' if n == 1 else 's'}"


# ═══════════════════════════════════════════════════════════════════════════
# Heuristics
# ═══════════════════════════════════════════════════════════════════════════

def day_of_week_insight(days: Sequence[DayStatus], t: InsightThresholds) -> Insight | None:
    by_dow: dict[int, list[DayStatus]] = defaultdict(list)
    for d in days:
        by_dow[d.date.isoweekday()].append(d)

    best = worst = None
    best_pct, worst_pct = -1, 101
    for dow in range(1, 8):
        samples = by_dow.get(dow, [])
        if len(samples) < t.dow_min_samples:
            continue
        p = _green_pct(samples)
        if p > best_pct:
            best, best_pct = dow, p
        if p < worst_pct:
            worst, worst_pct = dow, p

    if best is None or best_pct - worst_pct < t.dow_min_gap:
        return None

    best_name, worst_name = DAY_NAMES[best - 1], DAY_NAMES[worst - 1]
    return Insight(
        id="dow-best",
        type="day_of_week",
        title=f"{best_name}s are your best day",
        body=(
            f"You hit a green day {best_pct}% of {best_name}s vs {worst_pct}% on "
            f"{worst_name}s. Consider front-loading harder habits on {DAY_SHORT[worst - 1]}."
        ),
        score=best_pct - worst_pct,
    )


def metric_correlation_insight(days: Sequence[DayStatus], metric: Mapping[date, float],
                               cfg: MetricCorrelation,
                               t: InsightThresholds) -> Insight | None:
    with_metric = [d for d in days if metric.get(d.date, 0) > 0]
    if len(with_metric) < t.metric_min_samples:
        return None

    high = [d for d in with_metric if metric[d.date] >= cfg.threshold]
    low = [d for d in with_metric if metric[d.date] < cfg.threshold]
    if len(high) < t.metric_min_bucket or len(low) < t.metric_min_bucket:
        return None

    high_pct, low_pct = _green_pct(high), _green_pct(low)
    diff = high_pct - low_pct
    if diff < t.metric_min_diff:
        return None

    threshold = f"{cfg.threshold:g}"
    return Insight(
        id=f"{cfg.label}-corr",
        type="metric_correlation",
        title=f"{cfg.label.capitalize()} drives your consistency",
        body=(
            f"With {threshold}+ {cfg.unit}s of {cfg.label}, you complete all core habits "
            f"{high_pct}% of the time vs {low_pct}% with less. "
            f"That's a {diff} point difference."
        ),
        score=diff,
    )


def habit_insights(days: Sequence[DayStatus], habits: Sequence[HabitDefinition],
                   completions: Sequence[CompletionRecord],
                   t: InsightThresholds) -> list[Insight]:
    done = {(c.date, c.habit_id) for c in completions if c.done}
    rates = []
    for habit in habits:
        if not habit.is_active:
            continue
        samples = [d for d in days if is_in_scope(habit, d.date)]
        if len(samples) < t.habit_min_samples:
            continue
        hits = sum(1 for d in samples if (d.date, habit.id) in done)
        rates.append((pct(hits, len(samples)), len(samples), habit))

    if len(rates) < 2:
        return []
    rates.sort(key=lambda r: (-r[0], r[2].label, r[2].id))

    best_rate, best_total, best = rates[0]
    insights = [Insight(
        id="best-habit",
        type="best_habit",
        title=f"{best.label} is your strongest habit",
        body=f"{best_rate}% completion rate over {best_total} days. This one's on autopilot.",
        score=best_rate,
    )]

    worst_rate, _, worst = rates[-1]
    if worst_rate < t.worst_habit_max_rate and best_rate - worst_rate >= t.worst_habit_min_gap:
        insights.append(Insight(
            id="worst-habit",
            type="worst_habit",
            title=f"{worst.label} needs attention",
            body=(
                f"Only {worst_rate}% completion vs {best_rate}% for {best.label}. "
                f"Try pairing it with {best.label} as a trigger."
            ),
            score=100 - worst_rate,
        ))
    return insights


def trend_insight(days: Sequence[DayStatus], t: InsightThresholds) -> Insight | None:
    if len(days) < t.trend_window:
        return None
    mid = len(days) - t.trend_window
    recent = days[mid:]
    prior = days[max(0, mid - t.trend_window):mid]
    if len(prior) < t.trend_min_prior:
        return None

    recent_pct, prior_pct = _green_pct(recent), _green_pct(prior)
    delta = recent_pct - prior_pct
    if abs(delta) < t.trend_min_delta:
        return None

    if delta > 0:
        title = "You're trending up"
        body = (f"{recent_pct}% green days in the last 2 weeks, up from {prior_pct}%. "
                "Whatever you changed is working.")
    else:
        title = "Slight dip recently"
        body = (f"{recent_pct}% green days lately vs {prior_pct}% before. Small dips "
                "are normal, focus on getting back to green tomorrow.")
    return Insight(id="trend", type="trend", title=title, body=body, score=abs(delta))


def consistency_insight(days: Sequence[DayStatus]) -> Insight:
    green = sum(1 for d in days if d.is_green)
    overall = pct(green, len(days))
    if overall >= 80:
        tier = "Elite-level consistency."
    elif overall >= 60:
        tier = "Solid foundation, keep building."
    else:
        tier = "Every green day is a win. Focus on small improvements."
    return Insight(
        id="consistency",
        type="consistency",
        title=f"{overall}% consistency score",
        body=f"{green} green days out of {len(days)} tracked. {tier}",
        score=overall,
    )


def weekpart_insight(days: Sequence[DayStatus], t: InsightThresholds) -> Insight | None:
    weekdays = [d for d in days if d.date.isoweekday() <= 5]
    weekends = [d for d in days if d.date.isoweekday() >= 6]
    if len(weekdays) < t.weekday_min_samples or len(weekends) < t.weekend_min_samples:
        return None

    wd_pct, we_pct = _green_pct(weekdays), _green_pct(weekends)
    gap = abs(wd_pct - we_pct)
    if gap < t.weekpart_min_gap:
        return None

    if wd_pct > we_pct:
        title = "Weekdays are stronger"
        body = (f"{wd_pct}% green on weekdays vs {we_pct}% on weekends. "
                "Weekends might need a lighter routine.")
    else:
        title = "You crush weekends"
        body = (f"{we_pct}% green on weekends vs {wd_pct}% on weekdays. "
                "Consider simplifying your weekday routine.")
    return Insight(id="weekday-vs-weekend", type="time_of_week",
                   title=title, body=body, score=gap)


def perfect_weeks_insight(days: Sequence[DayStatus], t: InsightThresholds) -> Insight | None:
    weeks: dict[date, list[DayStatus]] = defaultdict(list)
    for d in days:
        weeks[week_start(d.date)].append(d)

    count = sum(
        1 for wk in weeks.values()
        if len(wk) >= t.perfect_week_min_days and all(d.is_green for d in wk)
    )
    if count == 0:
        return None

    weeks_text = _plural(count, "perfect week")
    return Insight(
        id="perfect-weeks",
        type="perfect_weeks",
        title=weeks_text,
        body=(f"You've had {_plural(count, 'week')} where every tracked day was green. "
              "That's the kind of consistency that compounds."),
        score=min(100, count * t.perfect_week_points),
    )


# ═══════════════════════════════════════════════════════════════════════════
# Entry point
# ═══════════════════════════════════════════════════════════════════════════

def compute_insights(history: Sequence[DayStatus],
                     habits: Sequence[HabitDefinition],
                     completions: Sequence[CompletionRecord],
                     metric: Mapping[date, float] | None = None,
                     *,
                     thresholds: InsightThresholds = InsightThresholds(),
                     metric_config: MetricCorrelation = MetricCorrelation()) -> list[Insight]:
    """Compute ranked insights.

    Only graded days (green/yellow/red) count as samples; empty and pending
    days carry no verdict. Returns [] below `thresholds.min_days` graded days
    or when no active core habit exists. A missing metric (None) silently
    skips the correlation heuristic.
    """
    t = thresholds
    if not any(h.is_core and h.is_active for h in habits):
        return []

    days = sorted((d for d in history if d.is_graded), key=lambda d: d.date)
    if len(days) < t.min_days:
        return []

    candidates: list[Insight | None] = [day_of_week_insight(days, t)]
    if metric is not None:
        candidates.append(metric_correlation_insight(days, metric, metric_config, t))
    candidates.extend(habit_insights(days, habits, completions, t))
    candidates.append(trend_insight(days, t))
    candidates.append(consistency_insight(days))
    candidates.append(weekpart_insight(days, t))
    candidates.append(perfect_weeks_insight(days, t))

    emitted = [i for i in candidates if i is not None]
    emitted.sort(key=lambda i: i.score, reverse=True)
    log.debug("Insights: %d emitted, types=%s", len(emitted), [i.type for i in emitted])
    return emitted[:t.max_insights]

"""Analytics service — fetch, classify, and derive everything in one pass.

AnalyticsService.compute() fans in the record and metric fetches, then runs
the pure engine: schedule → classifier → {streaks, insights, per-habit
streaks, milestones}. AnalyticsRunner owns re-computation: every change
signal cancels the computation in flight, and only the newest one is
committed to runtime_state and pushed to subscribers.

Failure model:
  - habits / history / account start unavailable → SourceUnavailable,
    nothing committed, the previous result stays visible
  - metric unavailable → warning, the correlation insight is skipped
  - malformed rows → dropped and counted in AnalyticsResult.dropped
"""

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, timezone, timedelta

from habitlens import runtime_state
from habitlens.classifier import HOLD_OPEN, classify_range, validate_policy
from habitlens.errors import AnalyticsError, MetricUnavailable, SourceUnavailable
from habitlens.habit_streaks import HabitStreak, compute_habit_streaks
from habitlens.insights import InsightThresholds, MetricCorrelation, compute_insights
from habitlens.keywords import KeywordConfig
from habitlens.milestones import MilestoneCheck, check_milestones
from habitlens.models import DayStatus, Insight, StreakSnapshot
from habitlens.records import DropCounter
from habitlens.sources import MetricSource, RecordSource
from habitlens.streaks import compute_streaks

log = logging.getLogger(__name__)

__all__ = [
    "AnalyticsError",
    "SourceUnavailable",
    "MetricUnavailable",
    "CancellationToken",
    "AnalyticsSettings",
    "AnalyticsResult",
    "AnalyticsService",
    "AnalyticsRunner",
    "format_summary",
]


class CancellationToken:
    """Marks a computation as superseded. Checked before anything is committed."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


@dataclass(frozen=True)
class AnalyticsSettings:
    """Everything the engine is parameterised by."""
    keywords: KeywordConfig = field(default_factory=KeywordConfig)
    policy: str = HOLD_OPEN
    allow_fallback: bool = True
    streak_lookback_days: int = 90
    insight_lookback_days: int = 60
    habit_lookback_days: int = 400
    thresholds: InsightThresholds = field(default_factory=InsightThresholds)
    metric: MetricCorrelation = field(default_factory=MetricCorrelation)
    pinned: frozenset[str] = frozenset()
    tz: timezone = timezone.utc

    @classmethod
    def from_config(cls) -> "AnalyticsSettings":
        from habitlens import config

        return cls(
            keywords=KeywordConfig.from_config(),
            policy=validate_policy(config.PENDING_POLICY),
            allow_fallback=config.SCHEDULE_FALLBACK,
            streak_lookback_days=config.STREAK_LOOKBACK_DAYS,
            insight_lookback_days=config.INSIGHT_LOOKBACK_DAYS,
            habit_lookback_days=config.HABIT_STREAK_LOOKBACK_DAYS,
            thresholds=InsightThresholds(max_insights=config.MAX_INSIGHTS),
            metric=MetricCorrelation(
                name=config.SLEEP_METRIC_NAME,
                threshold=config.SLEEP_THRESHOLD_HOURS,
            ),
            tz=timezone(timedelta(hours=config.TIMEZONE_OFFSET_HOURS)),
        )

    @property
    def history_days(self) -> int:
        return max(self.streak_lookback_days, self.insight_lookback_days,
                   self.habit_lookback_days)


@dataclass(frozen=True)
class AnalyticsResult:
    today: date
    days: tuple[DayStatus, ...]
    streaks: StreakSnapshot
    insights: tuple[Insight, ...]
    habit_streaks: tuple[HabitStreak, ...]
    milestones: MilestoneCheck
    dropped: dict[str, int]
    metric_available: bool
    computed_at: datetime

    @property
    def today_status(self) -> DayStatus | None:
        return self.days[-1] if self.days else None


class AnalyticsService:

    def __init__(self, records: RecordSource, metrics: MetricSource | None = None,
                 settings: AnalyticsSettings | None = None) -> None:
        self.records = records
        self.metrics = metrics
        self.settings = settings or AnalyticsSettings()

    async def _fetch_metric(self, start: date, end: date,
                            drops: DropCounter) -> dict[date, float] | None:
        if self.metrics is None:
            return None
        try:
            return await asyncio.to_thread(
                self.metrics.get_metric, self.settings.metric.name, start, end, drops,
            )
        except Exception as e:
            log.warning("Metric %r unavailable, skipping correlation: %s",
                        self.settings.metric.name, e)
            return None

    async def _fetch(self, start: date, end: date, drops: DropCounter):
        async def required(fn, *args):
            try:
                return await asyncio.to_thread(fn, *args)
            except Exception as e:
                raise SourceUnavailable(f"{fn.__name__} failed: {e}") from e

        return await asyncio.gather(
            required(self.records.list_habits, drops),
            required(self.records.load_range, start, end, drops),
            required(self.records.get_account_start_date),
            self._fetch_metric(start, end, drops),
        )

    async def compute(self, now: datetime | None = None,
                      token: CancellationToken | None = None,
                      achieved: frozenset[str] = frozenset()) -> AnalyticsResult | None:
        """Run the full pipeline for the calendar day containing `now`.

        Returns None when `token` was cancelled while fetching. Raises
        SourceUnavailable when a required input could not be fetched.
        """
        s = self.settings
        now = now or datetime.now(s.tz)
        if now.tzinfo is None:
            now = now.replace(tzinfo=s.tz)
        today = now.astimezone(s.tz).date()
        start = today - timedelta(days=s.history_days - 1)
        drops = DropCounter()

        habits, records, account_start, metric = await self._fetch(start, today, drops)
        if token is not None and token.cancelled:
            log.debug("Computation for %s cancelled after fetch", today)
            return None

        history = classify_range(
            habits, records, start, today, account_start, today, now,
            keywords=s.keywords, policy=s.policy, allow_fallback=s.allow_fallback,
        )

        labels = {h.id: h.label for h in habits}
        done_labels: dict[date, list[str]] = defaultdict(list)
        for c in records.completions:
            if c.done and c.habit_id in labels:
                done_labels[c.date].append(labels[c.habit_id])

        streaks = compute_streaks(
            history, today,
            done_labels=done_labels,
            categories=s.keywords.categories,
            lookback_days=s.streak_lookback_days,
        )

        insight_start = today - timedelta(days=s.insight_lookback_days)
        insights = compute_insights(
            [d for d in history if d.date > insight_start],
            habits,
            [c for c in records.completions if c.date > insight_start],
            metric,
            thresholds=s.thresholds,
            metric_config=s.metric,
        )

        habit_streaks = compute_habit_streaks(
            habits, records.completions, today,
            pinned=s.pinned, lookback_days=s.habit_lookback_days,
        )

        if drops.total:
            log.warning("Dropped %d malformed rows: %s", drops.total, drops.as_dict())

        return AnalyticsResult(
            today=today,
            days=tuple(history),
            streaks=streaks,
            insights=tuple(insights),
            habit_streaks=tuple(habit_streaks),
            milestones=check_milestones(streaks, achieved),
            dropped=drops.as_dict(),
            metric_available=metric is not None,
            computed_at=now,
        )


class AnalyticsRunner:
    """Re-computes on change signals; only the newest computation commits."""

    def __init__(self, service: AnalyticsService) -> None:
        self.service = service
        self._token: CancellationToken | None = None
        self._subscribers = []
        self._tasks: set[asyncio.Task] = set()

    def subscribe(self, callback) -> None:
        """Register a callback for every committed result.

        Signature: async def callback(result: AnalyticsResult) -> None
        """
        self._subscribers.append(callback)

    async def refresh(self, reason: str = "manual",
                      now: datetime | None = None) -> AnalyticsResult | None:
        """Recompute and commit. None when superseded by a newer refresh."""
        if self._token is not None:
            self._token.cancel()
        token = CancellationToken()
        self._token = token

        result = await self.service.compute(
            now=now, token=token, achieved=runtime_state.get_achieved_milestones(),
        )
        if result is None or token.cancelled:
            log.debug("Discarding stale analytics result (%s)", reason)
            return None

        runtime_state.commit_result(result, reason)
        log.info("Analytics refreshed (%s): %s", reason, format_summary(result))

        for callback in self._subscribers:
            try:
                await callback(result)
            except Exception as e:
                log.error("Analytics subscriber failed: %s", e, exc_info=True)
        return result

    async def _refresh_logged(self, reason: str) -> AnalyticsResult | None:
        try:
            return await self.refresh(reason)
        except AnalyticsError as e:
            log.error("Analytics refresh failed (%s): %s", reason, e)
            return None
        except Exception as e:
            log.error("Analytics refresh crashed (%s): %s", reason, e, exc_info=True)
            return None

    def notify_changed(self, reason: str) -> asyncio.Task:
        """Signal that inputs changed ("habit_edited", "check_toggled",
        "day_advanced", ...). Schedules a refresh on the running loop."""
        log.debug("Change signal: %s", reason)
        task = asyncio.get_running_loop().create_task(self._refresh_logged(reason))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task


def format_summary(result: AnalyticsResult) -> str:
    """One-line human summary, used for logging."""
    today = result.today_status
    s = result.streaks
    parts = [
        f"today={today.color if today else 'n/a'}",
        f"streak={s.current_streak}",
        f"best={s.best_streak}",
        f"green_total={s.total_green_days}",
        f"insights={len(result.insights)}",
    ]
    if s.core_hit_rate_this_week is not None:
        parts.append(f"week_hit_rate={s.core_hit_rate_this_week}%")
    if result.milestones.winner:
        parts.append(f"milestone={result.milestones.winner.id}")
    if not result.metric_available:
        parts.append("metric=unavailable")
    return " ".join(parts)

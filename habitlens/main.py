"""HabitLens — main entry point.

Starts all subsystems:
1. Database initialization
2. Record + metric sources
3. Analytics runner (initial refresh)
4. Day-rollover watcher
"""

import asyncio
import logging
from datetime import datetime, timezone, timedelta

from habitlens.config import (
    LOG_LEVEL,
    METRIC_SOURCE,
    ROLLOVER_CHECK_SECONDS,
    TIMEZONE_OFFSET_HOURS,
)
from habitlens import db, runtime_state
from habitlens.analytics import (
    AnalyticsResult,
    AnalyticsRunner,
    AnalyticsService,
    AnalyticsSettings,
)
from habitlens.sources import SqliteRecordSource, build_metric_source

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)-5s %(name)s — %(message)s",
    datefmt="%H:%M:%S",
)
log = logging.getLogger("habitlens")

TZ = timezone(timedelta(hours=TIMEZONE_OFFSET_HOURS))

_MILESTONES_KEY = "achieved_milestones"


async def persist_milestones(result: AnalyticsResult) -> None:
    """Store newly achieved milestone ids so they survive restarts."""
    if not result.milestones.newly_achieved:
        return
    ids = runtime_state.get_achieved_milestones()
    db.set_setting(_MILESTONES_KEY, ",".join(sorted(ids)))
    winner = result.milestones.winner
    if winner:
        log.info("Milestone reached: %s — %s", winner.title, winner.message)


def restore_milestones() -> None:
    """Load previously achieved milestone ids into runtime state."""
    stored = db.get_setting(_MILESTONES_KEY)
    if stored:
        runtime_state.set_achieved_milestones(stored.split(","))
        log.info("Restored %d achieved milestones", len(runtime_state.get_achieved_milestones()))


async def log_insights(result: AnalyticsResult) -> None:
    for insight in result.insights:
        log.info("Insight [%d] %s: %s", insight.score, insight.title, insight.body)


async def rollover_watcher(runner: AnalyticsRunner) -> None:
    """Signal "day_advanced" whenever the local calendar day changes."""
    current = datetime.now(TZ).date()
    while True:
        await asyncio.sleep(ROLLOVER_CHECK_SECONDS)
        today = datetime.now(TZ).date()
        if today != current:
            log.info("Day advanced: %s → %s", current, today)
            current = today
            runner.notify_changed("day_advanced")


def build_runner() -> AnalyticsRunner:
    settings = AnalyticsSettings.from_config()
    service = AnalyticsService(
        records=SqliteRecordSource(),
        metrics=build_metric_source(METRIC_SOURCE),
        settings=settings,
    )
    runner = AnalyticsRunner(service)
    runner.subscribe(persist_milestones)
    runner.subscribe(log_insights)
    return runner


async def main():
    """Boot sequence."""
    log.info("=" * 50)
    log.info("HabitLens starting up...")
    log.info("=" * 50)

    # 1. Database
    db.init_db()
    restore_milestones()
    log.info("Database ready")

    # 2–3. Sources + runner
    runner = build_runner()
    log.info("Metric source: %s", METRIC_SOURCE)
    await runner.notify_changed("startup")

    # 4. Background tasks
    watcher = asyncio.create_task(rollover_watcher(runner))
    log.info("Day-rollover watcher started (every %ds)", ROLLOVER_CHECK_SECONDS)

    try:
        while True:
            await asyncio.sleep(3600)
            runner.notify_changed("periodic")
    except (KeyboardInterrupt, SystemExit, asyncio.CancelledError):
        log.info("Shutting down...")
        watcher.cancel()


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()

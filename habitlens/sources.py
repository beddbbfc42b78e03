"""Record and metric sources — the inputs of the analytics service.

A source turns whatever backs it (SQLite, the Oura API) into validated
records. Sources are synchronous; AnalyticsService runs them in worker
threads. Malformed rows go to the DropCounter passed in by the caller.
"""

import logging
from abc import ABC, abstractmethod
from datetime import date

from habitlens import db, oura_client
from habitlens.errors import MetricUnavailable
from habitlens.models import HabitDefinition, RangeRecords
from habitlens.records import (
    DropCounter,
    metric_map,
    parse_date,
    parse_habits,
    parse_metrics,
    parse_range,
)

log = logging.getLogger(__name__)


class RecordSource(ABC):
    """Habits, per-day records and the account start date."""

    @abstractmethod
    def list_habits(self, drops: DropCounter | None = None) -> list[HabitDefinition]:
        ...

    @abstractmethod
    def load_range(self, start: date, end: date,
                   drops: DropCounter | None = None) -> RangeRecords:
        """Completions, day modes and snoozes dated within [start, end]."""

    @abstractmethod
    def get_account_start_date(self) -> date | None:
        ...


class MetricSource(ABC):
    """Per-day external metric values (e.g. nightly sleep hours)."""

    @abstractmethod
    def get_metric(self, name: str, start: date, end: date,
                   drops: DropCounter | None = None) -> dict[date, float]:
        """date → value for [start, end]. Raises MetricUnavailable on failure."""


# ═══════════════════════════════════════════════════════════════════════════
# SQLite
# ═══════════════════════════════════════════════════════════════════════════

class SqliteRecordSource(RecordSource):

    def list_habits(self, drops: DropCounter | None = None) -> list[HabitDefinition]:
        return parse_habits(db.list_habit_rows(), drops or DropCounter())

    def load_range(self, start: date, end: date,
                   drops: DropCounter | None = None) -> RangeRecords:
        return parse_range(
            db.load_check_rows(start, end),
            db.load_day_mode_rows(start, end),
            db.load_snooze_rows(start, end),
            drops or DropCounter(),
        )

    def get_account_start_date(self) -> date | None:
        raw = db.get_setting("account_start")
        if raw is None:
            return None
        start = parse_date(raw)
        if start is None:
            log.warning("Ignoring unparseable account_start setting: %r", raw)
        return start


class SqliteMetricSource(MetricSource):

    def get_metric(self, name: str, start: date, end: date,
                   drops: DropCounter | None = None) -> dict[date, float]:
        rows = db.load_metric_rows(name, start, end)
        return metric_map(parse_metrics(rows, name, drops or DropCounter()))


# ═══════════════════════════════════════════════════════════════════════════
# Oura
# ═══════════════════════════════════════════════════════════════════════════

class OuraSleepSource(MetricSource):
    """Serves the sleep-hours metric from the Oura API."""

    metric_name = "sleep_hours"

    def get_metric(self, name: str, start: date, end: date,
                   drops: DropCounter | None = None) -> dict[date, float]:
        if name != self.metric_name:
            raise MetricUnavailable(f"Oura source has no metric {name!r}")
        if not oura_client.is_configured():
            raise MetricUnavailable("Oura credentials are not configured")
        hours = oura_client.get_sleep_hours(start, end)
        if hours is None:
            raise MetricUnavailable("Oura sleep data could not be fetched")
        rows = [{"date": d, "value": v} for d, v in hours.items()]
        return metric_map(parse_metrics(rows, name, drops or DropCounter()))


def build_metric_source(kind: str) -> MetricSource | None:
    """METRIC_SOURCE setting → source instance ("none" disables the metric)."""
    kind = kind.lower()
    if kind == "oura":
        return OuraSleepSource()
    if kind == "sqlite":
        return SqliteMetricSource()
    if kind == "none":
        return None
    raise ValueError(f"Unknown metric source {kind!r}, expected oura, sqlite or none")

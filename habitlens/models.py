"""Data model — habit definitions, raw records, and derived analytics values.

Records are immutable snapshots of what the store returned. Derived values
(DayStatus, StreakSnapshot, Insight) are never persisted; they are always
recomputed from records.
"""

from dataclasses import dataclass, field
from datetime import date, datetime

# ═══════════════════════════════════════════════════════════════════════════
# Enumerations (plain string constants)
# ═══════════════════════════════════════════════════════════════════════════

GREEN = "green"
YELLOW = "yellow"
RED = "red"
EMPTY = "empty"
PENDING = "pending"  # today, not finished yet; never a miss

GRADED_COLORS = (GREEN, YELLOW, RED)

MODE_NORMAL = "normal"
MODE_TRAVEL = "travel"
MODE_SICK = "sick"

DAY_MODES = (MODE_NORMAL, MODE_TRAVEL, MODE_SICK)
RELAXED_MODES = (MODE_TRAVEL, MODE_SICK)


# ═══════════════════════════════════════════════════════════════════════════
# Records
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class HabitDefinition:
    """A habit as configured by the user. Read-only to the engine."""
    id: str
    label: str
    is_core: bool = False
    is_active: bool = True
    days_of_week: frozenset[int] = frozenset()   # ISO 1..7, empty = every day
    created_date: date | None = None


@dataclass(frozen=True)
class CompletionRecord:
    date: date
    habit_id: str
    done: bool


@dataclass(frozen=True)
class DayModeRecord:
    date: date
    mode: str = MODE_NORMAL


@dataclass(frozen=True)
class SnoozeRecord:
    date: date
    habit_id: str
    snoozed_until: datetime


@dataclass(frozen=True)
class ExternalMetric:
    date: date
    name: str
    value: float


@dataclass(frozen=True)
class RangeRecords:
    """Everything loaded for a date range in one fetch."""
    completions: tuple[CompletionRecord, ...] = ()
    day_modes: tuple[DayModeRecord, ...] = ()
    snoozes: tuple[SnoozeRecord, ...] = ()


# ═══════════════════════════════════════════════════════════════════════════
# Derived values
# ═══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class DayStatus:
    """Classification of one calendar day."""
    date: date
    color: str
    core_done: int = 0
    core_total: int = 0
    is_fallback: bool = False
    missing_core: tuple[str, ...] = ()

    @property
    def is_green(self) -> bool:
        return self.color == GREEN

    @property
    def is_graded(self) -> bool:
        """True when the day carries a verdict (not empty, not pending)."""
        return self.color in GRADED_COLORS


@dataclass(frozen=True)
class StreakSnapshot:
    current_streak: int = 0
    best_streak: int = 0
    previous_best_streak: int = 0
    total_green_days: int = 0
    days_since_last_green: int | None = None    # None = no green day in window
    category_streaks: dict[str, int] = field(default_factory=dict)
    green_days_this_week: int = 0
    green_days_last_week: int = 0
    green_days_this_month: int = 0
    core_hit_rate_this_week: int | None = None  # 0–100, None = nothing possible
    last_7_days: tuple[DayStatus, ...] = ()


@dataclass(frozen=True)
class Insight:
    id: str
    type: str
    title: str
    body: str
    score: int  # 0–100, higher = more noteworthy

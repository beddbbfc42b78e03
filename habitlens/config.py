"""Configuration — loads environment variables with sensible defaults.

All tunables live here. Override via .env file or environment variables.
The analytics engine never reads this module directly: callers build the
keyword/threshold objects from these values and pass them in.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load .env from project root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

def _env(key: str, default: str = "") -> str:
    return os.getenv(key, default)

def _env_int(key: str, default: int) -> int:
    return int(os.getenv(key, str(default)))

def _env_float(key: str, default: float) -> float:
    return float(os.getenv(key, str(default)))

def _env_bool(key: str, default: bool = False) -> bool:
    return os.getenv(key, str(default)).lower() in ("1", "true", "yes")

def _env_list(key: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.getenv(key)
    if raw is None:
        return default
    return tuple(p.strip().lower() for p in raw.split(",") if p.strip())


# ═══════════════════════════════════════════════════════════════════════════
# Timezone (default UTC, override for your locale in .env)
# ═══════════════════════════════════════════════════════════════════════════
# Calendar days ("today", ISO weekday) are resolved in this offset.

TIMEZONE_OFFSET_HOURS = _env_int("TIMEZONE_OFFSET_HOURS", 0)

# ═══════════════════════════════════════════════════════════════════════════
# Database
# ═══════════════════════════════════════════════════════════════════════════

DB_PATH = Path(_env("HABITLENS_DB_PATH") or _PROJECT_ROOT / "data" / "habitlens.db")

# ═══════════════════════════════════════════════════════════════════════════
# Analytics windows
# ═══════════════════════════════════════════════════════════════════════════

STREAK_LOOKBACK_DAYS = _env_int("STREAK_LOOKBACK_DAYS", 90)
INSIGHT_LOOKBACK_DAYS = _env_int("INSIGHT_LOOKBACK_DAYS", 60)
HABIT_STREAK_LOOKBACK_DAYS = _env_int("HABIT_STREAK_LOOKBACK_DAYS", 400)
MAX_INSIGHTS = _env_int("MAX_INSIGHTS", 6)

# ═══════════════════════════════════════════════════════════════════════════
# Classification policy
# ═══════════════════════════════════════════════════════════════════════════
# PENDING_POLICY:
#   "hold_open"          : an unfinished today is reported as "pending"
#   "grade_immediately"  : today is graded like any finished day
# SCHEDULE_FALLBACK: grade against all core habits when nothing is scheduled.

PENDING_POLICY = _env("PENDING_POLICY", "hold_open")
SCHEDULE_FALLBACK = _env_bool("SCHEDULE_FALLBACK", True)

# ═══════════════════════════════════════════════════════════════════════════
# Keyword configuration
# ═══════════════════════════════════════════════════════════════════════════
# Matched as lower-case substrings of habit labels.

CATEGORY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "movement": _env_list("MOVEMENT_KEYWORDS", (
        "walk", "workout", "exercise", "rowing", "stretch", "mobility",
        "move", "run", "swim", "bike", "hike", "yoga",
    )),
    "mind": _env_list("MIND_KEYWORDS", (
        "breath", "meditat", "journal", "neuro", "mind", "read", "pray",
        "gratitude",
    )),
    "sleep": _env_list("SLEEP_KEYWORDS", ("sleep", "bedtime", "wind down")),
}

# A core habit matching WORKOUT_ALIASES is satisfied when any habit
# matching WORKOUT_SATISFIERS is checked the same day.
WORKOUT_ALIASES = _env_list("WORKOUT_ALIASES", (
    "workout", "exercise", "strength", "lift", "gym", "weight",
))
WORKOUT_SATISFIERS = _env_list("WORKOUT_SATISFIERS", ("rowing", "workout"))

# ═══════════════════════════════════════════════════════════════════════════
# External metric (sleep correlation insight)
# ═══════════════════════════════════════════════════════════════════════════
# METRIC_SOURCE: "oura" | "sqlite" | "none"

METRIC_SOURCE = _env("METRIC_SOURCE", "sqlite")
SLEEP_METRIC_NAME = _env("SLEEP_METRIC_NAME", "sleep_hours")
SLEEP_THRESHOLD_HOURS = _env_float("SLEEP_THRESHOLD_HOURS", 7.0)

# ═══════════════════════════════════════════════════════════════════════════
# Oura Ring (optional)
# ═══════════════════════════════════════════════════════════════════════════

OURA_CLIENT_ID = _env("OURA_CLIENT_ID")
OURA_CLIENT_SECRET = _env("OURA_CLIENT_SECRET")
OURA_REFRESH_TOKEN = _env("OURA_REFRESH_TOKEN")

# ═══════════════════════════════════════════════════════════════════════════
# Runtime
# ═══════════════════════════════════════════════════════════════════════════

LOG_LEVEL = _env("LOG_LEVEL", "INFO")
ROLLOVER_CHECK_SECONDS = _env_int("ROLLOVER_CHECK_SECONDS", 60)

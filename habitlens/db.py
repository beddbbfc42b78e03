"""SQLite database layer — habits, daily checks, day modes, snoozes, metrics.

Lightweight schema. Tables are created automatically on first run.
Readers return plain dicts; validation happens in habitlens.records.
"""

import sqlite3
import logging
from datetime import date, datetime, timezone, timedelta

from habitlens.config import DB_PATH, TIMEZONE_OFFSET_HOURS

logger = logging.getLogger(__name__)

TZ = timezone(timedelta(hours=TIMEZONE_OFFSET_HOURS))


def _connect() -> sqlite3.Connection:
    """Return a connection with row_factory set."""
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(DB_PATH))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    return conn


def _key(d: date | str) -> str:
    return d if isinstance(d, str) else d.isoformat()


def init_db() -> None:
    """Create tables if they don't exist and stamp the account start date."""
    conn = _connect()
    conn.executescript("""
        -- Habits (defined by user)
        CREATE TABLE IF NOT EXISTS habits (
            id           INTEGER PRIMARY KEY AUTOINCREMENT,
            label        TEXT    NOT NULL,
            is_core      INTEGER NOT NULL DEFAULT 0,
            is_active    INTEGER NOT NULL DEFAULT 1,
            days_of_week TEXT    NOT NULL DEFAULT '',
            created_at   TEXT    NOT NULL
        );

        -- One check per habit per day (absence = not recorded)
        CREATE TABLE IF NOT EXISTS habit_checks (
            date       TEXT    NOT NULL,
            habit_id   INTEGER NOT NULL REFERENCES habits(id),
            done       INTEGER NOT NULL DEFAULT 0,
            updated_at TEXT    NOT NULL,
            PRIMARY KEY (date, habit_id)
        );

        -- Day mode override (normal / travel / sick)
        CREATE TABLE IF NOT EXISTS day_modes (
            date TEXT PRIMARY KEY,
            mode TEXT NOT NULL DEFAULT 'normal'
        );

        -- "Skip today" snoozes
        CREATE TABLE IF NOT EXISTS day_snoozes (
            date          TEXT    NOT NULL,
            habit_id      INTEGER NOT NULL REFERENCES habits(id),
            snoozed_until TEXT    NOT NULL,
            PRIMARY KEY (date, habit_id)
        );

        -- External per-day metrics (sleep hours, ...)
        CREATE TABLE IF NOT EXISTS metrics (
            date  TEXT NOT NULL,
            name  TEXT NOT NULL,
            value REAL NOT NULL,
            PRIMARY KEY (date, name)
        );

        -- Key/value settings (account_start, ...)
        CREATE TABLE IF NOT EXISTS settings (
            key   TEXT PRIMARY KEY,
            value TEXT NOT NULL
        );
    """)
    conn.execute(
        "INSERT OR IGNORE INTO settings (key, value) VALUES ('account_start', ?)",
        (datetime.now(TZ).strftime("%Y-%m-%d"),),
    )
    conn.commit()
    conn.close()
    logger.info("Database initialized at %s", DB_PATH)


# ═══════════════════════════════════════════════════════════════════════════
# Settings
# ═══════════════════════════════════════════════════════════════════════════

def get_setting(key: str) -> str | None:
    conn = _connect()
    row = conn.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
    conn.close()
    return row["value"] if row else None


def set_setting(key: str, value: str) -> None:
    conn = _connect()
    conn.execute(
        """INSERT INTO settings (key, value) VALUES (?, ?)
           ON CONFLICT(key) DO UPDATE SET value = excluded.value""",
        (key, value),
    )
    conn.commit()
    conn.close()


# ═══════════════════════════════════════════════════════════════════════════
# Habits
# ═══════════════════════════════════════════════════════════════════════════

def create_habit(label: str, is_core: bool = False,
                 days_of_week: list[int] | None = None,
                 created_at: str | None = None) -> int:
    """Create a new habit. Returns habit id."""
    created = created_at or datetime.now(TZ).isoformat()
    dow = ",".join(str(d) for d in sorted(days_of_week or []))
    conn = _connect()
    cur = conn.execute(
        "INSERT INTO habits (label, is_core, days_of_week, created_at) VALUES (?, ?, ?, ?)",
        (label, int(is_core), dow, created),
    )
    conn.commit()
    hid = cur.lastrowid
    conn.close()
    return hid


def set_habit_active(habit_id: int, active: bool) -> None:
    conn = _connect()
    conn.execute("UPDATE habits SET is_active = ? WHERE id = ?", (int(active), habit_id))
    conn.commit()
    conn.close()


def list_habit_rows() -> list[dict]:
    conn = _connect()
    rows = conn.execute(
        """SELECT id, label, is_core, is_active, days_of_week,
                  SUBSTR(created_at, 1, 10) AS created_date
           FROM habits ORDER BY id"""
    ).fetchall()
    conn.close()
    return [dict(r) for r in rows]


# ═══════════════════════════════════════════════════════════════════════════
# Checks
# ═══════════════════════════════════════════════════════════════════════════

def set_check(habit_id: int, day: date | str, done: bool) -> None:
    """Upsert the check for (day, habit)."""
    now = datetime.now(TZ).isoformat()
    conn = _connect()
    conn.execute(
        """INSERT INTO habit_checks (date, habit_id, done, updated_at) VALUES (?, ?, ?, ?)
           ON CONFLICT(date, habit_id) DO UPDATE SET done = excluded.done,
                                                     updated_at = excluded.updated_at""",
        (_key(day), habit_id, int(done), now),
    )
    conn.commit()
    conn.close()


def load_check_rows(start: date | str, end: date | str) -> list[dict]:
    conn = _connect()
    rows = conn.execute(
        "SELECT date, habit_id, done FROM habit_checks WHERE date >= ? AND date <= ? ORDER BY date",
        (_key(start), _key(end)),
    ).fetchall()
    conn.close()
    return [dict(r) for r in rows]


# ═══════════════════════════════════════════════════════════════════════════
# Day modes & snoozes
# ═══════════════════════════════════════════════════════════════════════════

def set_day_mode(day: date | str, mode: str) -> None:
    conn = _connect()
    conn.execute(
        """INSERT INTO day_modes (date, mode) VALUES (?, ?)
           ON CONFLICT(date) DO UPDATE SET mode = excluded.mode""",
        (_key(day), mode),
    )
    conn.commit()
    conn.close()


def load_day_mode_rows(start: date | str, end: date | str) -> list[dict]:
    conn = _connect()
    rows = conn.execute(
        "SELECT date, mode FROM day_modes WHERE date >= ? AND date <= ? ORDER BY date",
        (_key(start), _key(end)),
    ).fetchall()
    conn.close()
    return [dict(r) for r in rows]


def snooze_habit(habit_id: int, day: date | str, until: datetime) -> None:
    conn = _connect()
    conn.execute(
        """INSERT INTO day_snoozes (date, habit_id, snoozed_until) VALUES (?, ?, ?)
           ON CONFLICT(date, habit_id) DO UPDATE SET snoozed_until = excluded.snoozed_until""",
        (_key(day), habit_id, until.isoformat()),
    )
    conn.commit()
    conn.close()


def load_snooze_rows(start: date | str, end: date | str) -> list[dict]:
    conn = _connect()
    rows = conn.execute(
        "SELECT date, habit_id, snoozed_until FROM day_snoozes WHERE date >= ? AND date <= ?",
        (_key(start), _key(end)),
    ).fetchall()
    conn.close()
    return [dict(r) for r in rows]


# ═══════════════════════════════════════════════════════════════════════════
# Metrics
# ═══════════════════════════════════════════════════════════════════════════

def record_metric(name: str, day: date | str, value: float) -> None:
    conn = _connect()
    conn.execute(
        """INSERT INTO metrics (date, name, value) VALUES (?, ?, ?)
           ON CONFLICT(date, name) DO UPDATE SET value = excluded.value""",
        (_key(day), name, value),
    )
    conn.commit()
    conn.close()


def load_metric_rows(name: str, start: date | str, end: date | str) -> list[dict]:
    conn = _connect()
    rows = conn.execute(
        "SELECT date, value FROM metrics WHERE name = ? AND date >= ? AND date <= ? ORDER BY date",
        (name, _key(start), _key(end)),
    ).fetchall()
    conn.close()
    return [dict(r) for r in rows]

"""Oura Ring API client — nightly sleep duration for the sleep correlation insight.

Uses OAuth2 with auto-refreshing tokens. Token refresh happens transparently
when the access token expires (401 response).

Setup:
  1. Create an Oura app at https://cloud.ouraring.com/v2/docs
  2. Obtain a refresh token through the OAuth2 authorization-code flow
  3. Set OURA_CLIENT_ID, OURA_CLIENT_SECRET, OURA_REFRESH_TOKEN in .env
"""

import logging
import os
import time
from datetime import date, timedelta
from pathlib import Path
from urllib.parse import urlencode

import httpx

from habitlens.config import (
    OURA_CLIENT_ID,
    OURA_CLIENT_SECRET,
    OURA_REFRESH_TOKEN,
)

log = logging.getLogger(__name__)

API_BASE = "https://api.ouraring.com/v2/usercollection"
TOKEN_URL = "https://api.ouraring.com/oauth/token"

_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"

# Access token lasts ~24h. Oura refresh tokens are one-time-use, so the
# rotated pair is written back to .env.
_access_token: str = os.getenv("OURA_ACCESS_TOKEN", "")
_refresh_token: str = OURA_REFRESH_TOKEN or ""
_token_expires_at: float = float(os.getenv("OURA_TOKEN_EXPIRES_AT", "0"))

if not (_access_token and time.time() < _token_expires_at):
    _access_token = ""

_cache: dict = {}
_CACHE_TTL = 600  # 10 minutes


def is_configured() -> bool:
    """Check if Oura OAuth2 credentials are configured."""
    return bool(OURA_CLIENT_ID and OURA_CLIENT_SECRET and _refresh_token)


def _refresh_access_token() -> str:
    """Exchange the refresh token for a new access token. "" on failure."""
    global _access_token, _refresh_token, _token_expires_at

    if not _refresh_token:
        log.warning("No Oura refresh token configured")
        return ""

    try:
        resp = httpx.post(
            TOKEN_URL,
            content=urlencode({
                "grant_type": "refresh_token",
                "refresh_token": _refresh_token,
                "client_id": OURA_CLIENT_ID,
                "client_secret": OURA_CLIENT_SECRET,
            }),
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            timeout=15,
        )
        resp.raise_for_status()
        result = resp.json()
    except httpx.HTTPStatusError as e:
        log.error("Oura token refresh failed: %s %s",
                  e.response.status_code, e.response.text[:200])
        return ""
    except Exception as e:
        log.error("Oura token refresh error: %s", e)
        return ""

    _access_token = result["access_token"]
    _refresh_token = result.get("refresh_token", _refresh_token)
    expires_in = result.get("expires_in", 86400)
    _token_expires_at = time.time() + expires_in - 60
    _persist_tokens()
    log.info("Oura token refreshed, expires in %ds", expires_in)
    return _access_token


def _persist_tokens() -> None:
    """Write the current token pair into an existing .env file."""
    if not _ENV_PATH.exists():
        return
    updates = {
        "OURA_REFRESH_TOKEN": _refresh_token,
        "OURA_ACCESS_TOKEN": _access_token,
        "OURA_TOKEN_EXPIRES_AT": str(int(_token_expires_at)),
    }
    try:
        lines = _ENV_PATH.read_text().splitlines(keepends=True)
        seen = set()
        for i, line in enumerate(lines):
            key = line.split("=", 1)[0].strip()
            if key in updates:
                lines[i] = f"{key}={updates[key]}\n"
                seen.add(key)
        lines.extend(f"{k}={v}\n" for k, v in updates.items() if k not in seen)
        _ENV_PATH.write_text("".join(lines))
    except OSError as e:
        log.warning("Could not persist Oura tokens to .env: %s", e)


def _get_token() -> str:
    if _access_token and time.time() < _token_expires_at:
        return _access_token
    log.info("Oura: access token missing or expired, refreshing…")
    return _refresh_access_token()


def _request(url: str, params: dict | None, token: str) -> dict:
    resp = httpx.get(
        url,
        params=params,
        headers={"Authorization": f"Bearer {token}"},
        timeout=15,
    )
    resp.raise_for_status()
    return resp.json()


def _api_get(endpoint: str, params: dict | None = None) -> dict | None:
    """Authenticated GET against the usercollection API. None on failure."""
    token = _get_token()
    if not token:
        return None

    url = f"{API_BASE}/{endpoint}"
    try:
        return _request(url, params, token)
    except httpx.HTTPStatusError as e:
        if e.response.status_code != 401:
            log.error("Oura API error: %s %s",
                      e.response.status_code, e.response.text[:200])
            return None
    except Exception as e:
        log.error("Oura API request error: %s", e)
        return None

    log.info("Oura 401, refreshing token...")
    token = _refresh_access_token()
    if not token:
        return None
    try:
        return _request(url, params, token)
    except Exception as e:
        log.error("Oura API retry failed: %s", e)
        return None


def _cached_get(key: str, endpoint: str, params: dict | None = None) -> dict | None:
    now = time.time()
    if key in _cache and now - _cache[key]["ts"] < _CACHE_TTL:
        return _cache[key]["data"]
    data = _api_get(endpoint, params)
    if data is not None:
        _cache[key] = {"data": data, "ts": now}
    return data


def clear_cache() -> None:
    _cache.clear()


# ── Sleep ────────────────────────────────────────────────────────────────


def get_sleep_periods(start: date, end: date) -> list[dict] | None:
    """All sleep periods whose `day` falls in [start, end].

    Oura filters on UTC boundaries while tagging periods with the local
    day, and end_date is exclusive, so the query is widened by one day on
    each side. Follows `next_token` pagination. None when the API fails.
    """
    params = {
        "start_date": (start - timedelta(days=1)).isoformat(),
        "end_date": (end + timedelta(days=2)).isoformat(),
    }
    periods: list[dict] = []
    page = 0
    while True:
        result = _cached_get(f"sleep_{start}_{end}_{page}", "sleep", params)
        if result is None:
            return None
        periods.extend(result.get("data") or [])
        next_token = result.get("next_token")
        if not next_token:
            break
        params = {**params, "next_token": next_token}
        page += 1

    lo, hi = start.isoformat(), end.isoformat()
    return [p for p in periods if lo <= (p.get("day") or "") <= hi]


def get_sleep_hours(start: date, end: date) -> dict[date, float] | None:
    """Hours of main sleep per local day in [start, end].

    Naps are ignored: only the longest period of each day counts.
    Returns None when Oura is not configured or the API call failed.
    """
    if not is_configured():
        return None
    periods = get_sleep_periods(start, end)
    if periods is None:
        return None

    longest: dict[str, int] = {}
    for p in periods:
        seconds = p.get("total_sleep_duration") or 0
        if seconds > longest.get(p["day"], -1):
            longest[p["day"]] = seconds

    hours = {date.fromisoformat(day): round(sec / 3600, 2)
             for day, sec in longest.items()}
    log.debug("Oura: sleep hours for %d days (%s → %s)", len(hours), start, end)
    return hours

"""Tests for the Oura client and sleep source — mock data, no real API calls."""

from datetime import date
from unittest.mock import patch

import httpx
import pytest

from habitlens import oura_client
from habitlens.errors import MetricUnavailable
from habitlens.sources import OuraSleepSource

D1 = date(2026, 10, 18)
D2 = date(2026, 10, 19)

# ── Mock data that looks like real Oura API responses ──
MOCK_SLEEP = {
    "data": [
        {"day": "2026-10-17", "total_sleep_duration": 25200},   # outside range
        {"day": "2026-10-18", "total_sleep_duration": 27360},   # 7h 36m
        {"day": "2026-10-18", "total_sleep_duration": 1800},    # nap
        {"day": "2026-10-19", "total_sleep_duration": 21600},   # 6h
    ],
    "next_token": None,
}


@pytest.fixture(autouse=True)
def empty_cache():
    oura_client.clear_cache()
    yield
    oura_client.clear_cache()


def _status_error(code: int) -> httpx.HTTPStatusError:
    req = httpx.Request("GET", f"{oura_client.API_BASE}/sleep")
    return httpx.HTTPStatusError("error", request=req, response=httpx.Response(code, request=req))


# ═══════════════════════════════════════════════════════════════════════════
# Sleep hours
# ═══════════════════════════════════════════════════════════════════════════

class TestSleepHours:
    def test_longest_period_per_day(self):
        with patch("habitlens.oura_client._api_get", return_value=MOCK_SLEEP), \
             patch("habitlens.oura_client.is_configured", return_value=True):
            hours = oura_client.get_sleep_hours(D1, D2)
        assert hours == {D1: 7.6, D2: 6.0}

    def test_query_widened(self):
        with patch("habitlens.oura_client._api_get", return_value=MOCK_SLEEP) as api, \
             patch("habitlens.oura_client.is_configured", return_value=True):
            oura_client.get_sleep_hours(D1, D2)
        endpoint, params = api.call_args.args
        assert endpoint == "sleep"
        assert params == {"start_date": "2026-10-17", "end_date": "2026-10-21"}

    def test_pagination(self):
        pages = [
            {"data": [{"day": "2026-10-18", "total_sleep_duration": 28800}], "next_token": "abc"},
            {"data": [{"day": "2026-10-19", "total_sleep_duration": 25200}], "next_token": None},
        ]
        with patch("habitlens.oura_client._api_get", side_effect=pages) as api, \
             patch("habitlens.oura_client.is_configured", return_value=True):
            hours = oura_client.get_sleep_hours(D1, D2)
        assert hours == {D1: 8.0, D2: 7.0}
        assert api.call_args.args[1]["next_token"] == "abc"

    def test_cached(self):
        with patch("habitlens.oura_client._api_get", return_value=MOCK_SLEEP) as api, \
             patch("habitlens.oura_client.is_configured", return_value=True):
            oura_client.get_sleep_hours(D1, D2)
            oura_client.get_sleep_hours(D1, D2)
        assert api.call_count == 1

    def test_not_configured(self):
        with patch("habitlens.oura_client.is_configured", return_value=False):
            assert oura_client.get_sleep_hours(D1, D2) is None

    def test_api_failure(self):
        with patch("habitlens.oura_client._api_get", return_value=None), \
             patch("habitlens.oura_client.is_configured", return_value=True):
            assert oura_client.get_sleep_hours(D1, D2) is None


# ═══════════════════════════════════════════════════════════════════════════
# Auth retry
# ═══════════════════════════════════════════════════════════════════════════

class TestApiGet:
    def test_401_refreshes_once(self):
        with patch("habitlens.oura_client._get_token", return_value="old"), \
             patch("habitlens.oura_client._refresh_access_token", return_value="new") as refresh, \
             patch("habitlens.oura_client._request",
                   side_effect=[_status_error(401), MOCK_SLEEP]) as req:
            assert oura_client._api_get("sleep") == MOCK_SLEEP
        refresh.assert_called_once()
        assert req.call_args.args[2] == "new"

    def test_other_http_error(self):
        with patch("habitlens.oura_client._get_token", return_value="tok"), \
             patch("habitlens.oura_client._refresh_access_token") as refresh, \
             patch("habitlens.oura_client._request", side_effect=_status_error(500)):
            assert oura_client._api_get("sleep") is None
        refresh.assert_not_called()

    def test_no_token(self):
        with patch("habitlens.oura_client._get_token", return_value=""):
            assert oura_client._api_get("sleep") is None


# ═══════════════════════════════════════════════════════════════════════════
# Source
# ═══════════════════════════════════════════════════════════════════════════

class TestOuraSleepSource:
    def test_metric(self):
        with patch("habitlens.oura_client._api_get", return_value=MOCK_SLEEP), \
             patch("habitlens.oura_client.is_configured", return_value=True):
            assert OuraSleepSource().get_metric("sleep_hours", D1, D2) == {D1: 7.6, D2: 6.0}

    def test_unconfigured_raises(self):
        with patch("habitlens.oura_client.is_configured", return_value=False):
            with pytest.raises(MetricUnavailable):
                OuraSleepSource().get_metric("sleep_hours", D1, D2)

    def test_unknown_metric(self):
        with pytest.raises(MetricUnavailable):
            OuraSleepSource().get_metric("steps", D1, D2)

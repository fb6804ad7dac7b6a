"""Tests for trailing-window filtering."""

from datetime import datetime, timedelta, timezone

import pytest

from scripts.analytics.normalizer import normalize_clients
from scripts.analytics.window import created_at, filter_by_window, validate_window_days
from scripts.lib.errors import ContractViolationError, InvalidWindowError

NOW = datetime(2026, 10, 16, 12, 0, tzinfo=timezone.utc)
OPTIONS = (7, 30, 90, 365)


def _clients():
    return normalize_clients([
        {"id": "recent", "created_at": (NOW - timedelta(days=2)).isoformat()},
        {"id": "older", "created_at": (NOW - timedelta(days=10)).isoformat()},
        {"id": "ancient", "created_at": (NOW - timedelta(days=400)).isoformat()},
        {"id": "undated"},
    ])


class TestFilterByWindow:
    def test_seven_day_window(self):
        kept = filter_by_window(_clients(), 7, created_at, NOW)
        assert [c.id for c in kept] == ["recent", "undated"]

    def test_thirty_day_window(self):
        kept = filter_by_window(_clients(), 30, created_at, NOW)
        assert [c.id for c in kept] == ["recent", "older", "undated"]

    def test_cutoff_is_inclusive(self):
        records = normalize_clients([{"id": "edge", "created_at": (NOW - timedelta(days=7)).isoformat()}])
        assert len(filter_by_window(records, 7, created_at, NOW)) == 1

    def test_naive_now_is_treated_as_utc(self):
        kept = filter_by_window(_clients(), 7, created_at, NOW.replace(tzinfo=None))
        assert [c.id for c in kept] == ["recent", "undated"]

    @pytest.mark.parametrize("days", [0, -7, 7.5, True, "30", None])
    def test_invalid_days_fail_fast(self, days):
        with pytest.raises(InvalidWindowError):
            filter_by_window(_clients(), days, created_at, NOW)


class TestValidateWindowDays:
    def test_allowed_options_pass(self):
        for days in OPTIONS:
            assert validate_window_days(days, OPTIONS) == days

    def test_unlisted_window_is_a_contract_violation(self):
        with pytest.raises(ContractViolationError) as exc:
            validate_window_days(14, OPTIONS)
        assert exc.value.code == "INVALID_WINDOW"
        assert exc.value.details["allowed"] == list(OPTIONS)

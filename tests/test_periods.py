"""Tests for calendar period keys and labels."""

import pytest
from datetime import date, timedelta

from ticket_tool.engine.periods import first_monday, period_key, period_label
from ticket_tool.models import GroupingMode


class TestFirstMonday:
    def test_thursday_jan1(self):
        # Jan 1, 2026 is a Thursday -> 9 - 4 = 5
        assert first_monday(2026) == date(2026, 1, 5)

    def test_monday_jan1(self):
        assert first_monday(2024) == date(2024, 1, 1)

    def test_sunday_jan1(self):
        assert first_monday(2023) == date(2023, 1, 2)

    def test_saturday_jan1(self):
        assert first_monday(2022) == date(2022, 1, 3)


class TestBiWeekly:
    def test_adjacent_biweek_starts(self):
        assert period_key(date(2026, 1, 5), "bi-weekly") == "2026-B01"
        assert period_key(date(2026, 1, 19), "bi-weekly") == "2026-B02"

    def test_constant_within_span_and_changes_at_boundary(self):
        start = date(2026, 2, 2)
        keys = {period_key(start + timedelta(days=i), GroupingMode.BI_WEEKLY) for i in range(14)}
        assert keys == {"2026-B03"}
        assert period_key(start + timedelta(days=14), GroupingMode.BI_WEEKLY) == "2026-B04"
        assert period_key(start - timedelta(days=1), GroupingMode.BI_WEEKLY) == "2026-B02"

    def test_label_is_fourteen_day_span(self):
        assert period_label("2026-B01", "bi-weekly") == "05-01-2026 to 18-01-2026"
        assert period_label("2026-B03", "bi-weekly") == "02-02-2026 to 15-02-2026"

    def test_label_matches_key_of_date(self):
        key = period_key(date(2026, 2, 10), "bi-weekly")
        assert key == "2026-B03"
        assert period_label(key, "bi-weekly") == "02-02-2026 to 15-02-2026"

    def test_days_before_first_monday(self):
        # Jan 1-4, 2026 fall in the week of Dec 29, before the first Monday
        assert period_key(date(2026, 1, 2), "bi-weekly") == "2026-B00"


class TestOtherModes:
    def test_daily(self):
        assert period_key(date(2026, 2, 10), "daily") == "2026-02-10"
        assert period_label("2026-02-10", "daily") == "2026-02-10"

    def test_daily_accepts_iso_string(self):
        assert period_key("2026-02-10", GroupingMode.DAILY) == "2026-02-10"

    def test_weekly_monday(self):
        # 2026-02-12 is a Thursday
        assert period_key(date(2026, 2, 12), "weekly") == "2026-02-09"
        assert period_key(date(2026, 2, 9), "weekly") == "2026-02-09"
        assert period_key(date(2026, 2, 15), "weekly") == "2026-02-09"
        assert period_label("2026-02-09", "weekly") == "Week of 2026-02-09"

    def test_monthly(self):
        assert period_key(date(2026, 2, 10), "monthly") == "2026-02"
        assert period_label("2026-02", "monthly") == "February 2026"

    def test_unknown_mode_raises(self):
        with pytest.raises(ValueError):
            period_key(date(2026, 2, 10), "fortnightly")

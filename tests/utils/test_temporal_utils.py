"""
Unit tests for temporal utility functions.
"""

from datetime import date, datetime, timezone, timedelta

import pytest

from subscription_engine.utils.temporal_utils import (
    add_days,
    date_span_days,
    days_between,
    parse_transaction_date,
)


class TestParseTransactionDate:
    """Tests for parse_transaction_date."""

    @pytest.mark.parametrize("value", [
        "2024-01-15",
        "01/15/2024",
        "Jan 15 2024",
        "2024-01-15T10:30:00",
        date(2024, 1, 15),
        datetime(2024, 1, 15, 8, 0),
        1705276800000,
    ])
    def test_supported_formats(self, value):
        assert parse_transaction_date(value) == date(2024, 1, 15)

    def test_aware_datetime_uses_utc_calendar_day(self):
        assert parse_transaction_date("2024-01-15T23:30:00-05:00") == date(2024, 1, 16)

        eastern = timezone(timedelta(hours=-5))
        assert parse_transaction_date(datetime(2024, 1, 15, 23, 30, tzinfo=eastern)) == date(2024, 1, 16)

    @pytest.mark.parametrize("value", [None, "", "   ", "not a date", True])
    def test_unparseable_values(self, value):
        assert parse_transaction_date(value) is None

    def test_out_of_range_timestamp(self):
        assert parse_transaction_date(10 ** 20) is None


class TestDayArithmetic:
    """Tests for the day arithmetic helpers."""

    def test_days_between(self):
        assert days_between(date(2024, 1, 15), date(2024, 2, 14)) == 30
        assert days_between(date(2024, 2, 14), date(2024, 1, 15)) == -30

    def test_days_between_across_leap_day(self):
        assert days_between(date(2024, 2, 28), date(2024, 3, 1)) == 2

    def test_add_days(self):
        assert add_days(date(2024, 3, 15), 30) == date(2024, 4, 14)

    def test_date_span_days(self):
        assert date_span_days([date(2024, 1, 1), date(2024, 1, 20), date(2024, 3, 1)]) == 60
        assert date_span_days([date(2024, 1, 1)]) == 0
        assert date_span_days([]) == 0

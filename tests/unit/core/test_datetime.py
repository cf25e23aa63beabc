"""Tests for report date parsing and elapsed-time helpers."""

from datetime import date, datetime, timezone

import pytest

from core.utils.datetime import ensure_utc, hours_between, parse_iso_date, start_of_next_day


class TestParseIsoDate:

    def test_valid_date(self):
        assert parse_iso_date("2024-01-05") == date(2024, 1, 5)

    @pytest.mark.parametrize("value", [None, ""])
    def test_missing_value(self, value):
        assert parse_iso_date(value) is None

    @pytest.mark.parametrize("value", [
        "2024-1-5",
        "2024-01-5",
        "20240105",
        "2024-02-30",
        " 2024-01-05",
        "2024-01-05T00:00",
        "05/01/2024",
    ])
    def test_rejects_non_padded_or_malformed(self, value):
        with pytest.raises(ValueError, match="expected YYYY-MM-DD"):
            parse_iso_date(value)


class TestElapsedTime:

    def test_naive_values_are_utc(self):
        naive = datetime(2024, 1, 5, 12, 0)

        assert ensure_utc(naive) == datetime(2024, 1, 5, 12, 0, tzinfo=timezone.utc)

    def test_hours_between(self):
        start = datetime(2024, 1, 5, 12, 0, tzinfo=timezone.utc)

        assert hours_between(start, datetime(2024, 1, 5, 22, 30)) == 10.5
        assert hours_between(start, datetime(2024, 1, 5, 11, 0, tzinfo=timezone.utc)) == -1

    def test_next_day_bound(self):
        assert start_of_next_day(date(2024, 2, 28)) == datetime(2024, 2, 29, tzinfo=timezone.utc)

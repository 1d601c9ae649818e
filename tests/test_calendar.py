"""
tests/test_calendar.py — Civil-Time Bucketing Tests
====================================================
"""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta, timezone

import pytest

from devpulse.engine.calendar import (
    CivilCalendar,
    DayKey,
    date_range,
    iso_week_key,
    parse_timestamp,
    trailing_window,
)


@pytest.fixture
def cal():
    return CivilCalendar("Asia/Seoul")


class TestBucket:
    def test_utc_evening_is_next_seoul_day(self, cal):
        # 15:30 UTC == 00:30 KST next day
        key = cal.bucket(datetime(2024, 3, 14, 15, 30, tzinfo=UTC))
        assert key == DayKey(day=date(2024, 3, 15), hour=0)

    def test_instants_across_midnight_split(self, cal):
        before = datetime(2024, 3, 14, 14, 59, 59, 999000, tzinfo=UTC)
        after = before + timedelta(milliseconds=2)
        assert cal.day_of(before) == date(2024, 3, 14)
        assert cal.day_of(after) == date(2024, 3, 15)

    def test_naive_is_treated_as_utc(self, cal):
        assert cal.bucket(datetime(2024, 3, 14, 15, 0)) == DayKey(date(2024, 3, 15), 0)

    def test_other_offsets_are_converted(self, cal):
        # 10:00 at UTC-5 == 15:00 UTC == 00:00 KST next day
        ts = datetime(2024, 3, 14, 10, 0, tzinfo=timezone(timedelta(hours=-5)))
        assert cal.bucket(ts) == DayKey(date(2024, 3, 15), 0)

    def test_unknown_timezone_rejected(self):
        with pytest.raises(ValueError, match="Unknown timezone"):
            CivilCalendar("Mars/Olympus_Mons")


class TestWindows:
    def test_day_window_is_civil_midnight_to_midnight(self, cal):
        start, end = cal.day_window(date(2024, 3, 15))
        assert start == datetime(2024, 3, 14, 15, 0, tzinfo=UTC)
        assert end == datetime(2024, 3, 15, 15, 0, tzinfo=UTC)

    def test_dst_day_is_23_hours(self):
        ny = CivilCalendar("America/New_York")
        start, end = ny.day_window(date(2024, 3, 10))
        assert end - start == timedelta(hours=23)

    def test_today_uses_civil_date(self, cal):
        assert cal.today(datetime(2024, 3, 14, 16, 0, tzinfo=UTC)) == date(2024, 3, 15)


class TestPeriods:
    def test_week_is_iso_monday_to_sunday(self, cal):
        assert cal.period_bounds("week", date(2024, 3, 15)) == (date(2024, 3, 11), date(2024, 3, 17))

    def test_month_handles_leap_february(self, cal):
        assert cal.period_bounds("month", date(2024, 2, 10)) == (date(2024, 2, 1), date(2024, 2, 29))

    def test_year(self, cal):
        assert cal.period_bounds("year", date(2024, 7, 4)) == (date(2024, 1, 1), date(2024, 12, 31))

    def test_bad_granularity(self, cal):
        with pytest.raises(ValueError, match="Invalid granularity"):
            cal.period_bounds("fortnight", date(2024, 1, 1))

    def test_date_range_inclusive(self):
        assert date_range(date(2024, 2, 28), date(2024, 3, 1)) == [
            date(2024, 2, 28), date(2024, 2, 29), date(2024, 3, 1),
        ]
        assert date_range(date(2024, 3, 2), date(2024, 3, 1)) == []

    def test_iso_week_key_crosses_year(self):
        assert iso_week_key(date(2024, 12, 30)) == "2025-W01"

    def test_trailing_window_crosses_month(self):
        assert trailing_window(date(2024, 3, 3), 7) == (date(2024, 2, 26), date(2024, 3, 3))
        assert trailing_window(date(2024, 3, 3), 1) == (date(2024, 3, 3), date(2024, 3, 3))
        with pytest.raises(ValueError):
            trailing_window(date(2024, 3, 3), 0)


class TestParseTimestamp:
    @pytest.mark.parametrize("raw", [None, "", "yesterday", 12345, "2024-13-01T00:00:00"])
    def test_unusable_values(self, raw):
        assert parse_timestamp(raw) is None

    def test_zulu_suffix(self):
        assert parse_timestamp("2024-03-14T15:00:00Z") == datetime(2024, 3, 14, 15, 0, tzinfo=UTC)

    def test_offset_string_normalised_to_utc(self):
        parsed = parse_timestamp("2024-03-15T00:00:00+09:00")
        assert parsed == datetime(2024, 3, 14, 15, 0, tzinfo=UTC)
        assert parsed.tzinfo is UTC

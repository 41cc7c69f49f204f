"""
Unit Tests - Time Buckets
"""
from datetime import date, datetime, timedelta, timezone

import pytest

from admin_service.domain.time_buckets import (
    InvalidTimestamp,
    TimeBucket,
    time_bucket,
    to_utc,
    week_buckets,
)


class TestTimeBucket:
    """Tests for time_bucket"""

    def test_mid_month_timestamp(self):
        """2025-03-10 is a Monday in ISO week 11"""
        assert time_bucket("2025-03-10T10:00:00Z") == TimeBucket(year=2025, month=3, week=11)

    def test_year_boundary_shares_iso_week(self):
        """2024-12-30 (Mon) and 2025-01-01 (Wed) are both in ISO week 1"""
        monday = time_bucket("2024-12-30T08:00:00Z")
        wednesday = time_bucket("2025-01-01T08:00:00Z")

        assert monday.week == wednesday.week == 1
        assert (monday.year, monday.month) == (2024, 12)
        assert (wednesday.year, wednesday.month) == (2025, 1)

    def test_last_iso_week_of_previous_year(self):
        """Jan 1st 2021 (Friday) belongs to ISO week 53 of 2020"""
        assert time_bucket("2021-01-01T12:00:00Z") == TimeBucket(year=2021, month=1, week=53)

    def test_same_week_same_bucket(self):
        """Every day of a week inside one month maps to the same bucket"""
        start = datetime(2025, 3, 10, tzinfo=timezone.utc)
        buckets = {time_bucket(start + timedelta(days=offset, hours=23)) for offset in range(7)}
        assert buckets == {TimeBucket(2025, 3, 11)}

    def test_offset_is_converted_to_utc(self):
        """Late Sunday evening in New York is already Monday in UTC"""
        assert time_bucket("2025-03-09T22:00:00-04:00") == TimeBucket(2025, 3, 11)

    def test_naive_datetime_is_utc(self):
        assert time_bucket(datetime(2025, 3, 10, 0, 30)) == TimeBucket(2025, 3, 11)

    def test_date_input(self):
        assert time_bucket(date(2025, 3, 16)) == TimeBucket(2025, 3, 11)

    @pytest.mark.parametrize("value", ["", "not-a-date", "2025-13-01", 12345, None])
    def test_invalid_input_rejected(self, value):
        with pytest.raises(InvalidTimestamp):
            time_bucket(value)

    def test_as_dict(self):
        assert TimeBucket(2025, 3, 11).as_dict() == {"year": 2025, "month": 3, "week": 11}


class TestWeekBuckets:
    """Tests for week_buckets"""

    def test_week_inside_one_month(self):
        assert week_buckets("2025-03-12T00:00:00Z") == [TimeBucket(2025, 3, 11)]

    def test_week_crossing_month(self):
        """2025-03-31 (Mon) to 2025-04-06 (Sun) spans March and April"""
        assert week_buckets("2025-04-03T00:00:00Z") == [
            TimeBucket(2025, 3, 14),
            TimeBucket(2025, 4, 14),
        ]

    def test_week_crossing_year(self):
        assert week_buckets("2025-01-02T00:00:00Z") == [
            TimeBucket(2024, 12, 1),
            TimeBucket(2025, 1, 1),
        ]


class TestToUtc:
    def test_z_suffix(self):
        assert to_utc("2025-03-10T10:00:00Z") == datetime(2025, 3, 10, 10, tzinfo=timezone.utc)

    def test_result_is_aware(self):
        assert to_utc("2025-03-10T10:00:00").tzinfo is not None

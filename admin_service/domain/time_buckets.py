"""
Time Buckets

Maps timestamps onto the (year, month, ISO week) coordinates used to key the
dashboard counters. ``year`` and ``month`` are calendar values in UTC while
``week`` follows ISO-8601, so the days of one ISO week can land in two buckets
when the week straddles a month or year boundary.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import List, Union

TimestampLike = Union[datetime, date, str]


class InvalidTimestamp(ValueError):
    """Raised when a value cannot be interpreted as a timestamp"""


@dataclass(frozen=True, order=True)
class TimeBucket:
    """Counter bucket coordinates"""
    year: int
    month: int
    week: int

    def as_dict(self) -> dict:
        return {"year": self.year, "month": self.month, "week": self.week}


def to_utc(value: TimestampLike) -> datetime:
    """
    Normalize a timestamp-like value to an aware UTC datetime.

    Naive datetimes are taken to be UTC already; a trailing ``Z`` on ISO
    strings is accepted.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            raise InvalidTimestamp("Empty timestamp")
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise InvalidTimestamp(f"Invalid timestamp: {value!r}") from exc
    else:
        raise InvalidTimestamp(f"Unsupported timestamp type: {type(value).__name__}")

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def time_bucket(value: TimestampLike) -> TimeBucket:
    """
    Compute the bucket for a timestamp.

    Example:
        >>> time_bucket("2024-12-30T08:00:00Z")
        TimeBucket(year=2024, month=12, week=1)
    """
    moment = to_utc(value)
    return TimeBucket(
        year=moment.year,
        month=moment.month,
        week=moment.isocalendar()[1],
    )


def week_buckets(value: TimestampLike) -> List[TimeBucket]:
    """
    All distinct buckets touched by the Monday-Sunday ISO week of ``value``.

    Returns one bucket for a week inside a single month and two for a week
    that crosses a month (or year) boundary.
    """
    moment = to_utc(value)
    monday = moment.date() - timedelta(days=moment.weekday())
    buckets = {time_bucket(monday + timedelta(days=offset)) for offset in range(7)}
    return sorted(buckets)

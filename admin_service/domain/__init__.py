"""
Domain Module
"""
from .time_buckets import InvalidTimestamp, TimeBucket, time_bucket, week_buckets

__all__ = [
    "InvalidTimestamp",
    "TimeBucket",
    "time_bucket",
    "week_buckets",
]

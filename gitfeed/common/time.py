"""Common time utilities."""

from __future__ import annotations

import datetime as dt

_MICROSECONDS_PER_MILLISECOND = 1000


def as_utc(value: dt.datetime) -> dt.datetime:
    """Return ``value`` as an aware UTC datetime.

    Naive values are taken to be UTC already.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.UTC)
    return value.astimezone(dt.UTC)


def micros_to_millis(time_us: int) -> int:
    """Convert a Jetstream microsecond cursor to epoch milliseconds."""
    return time_us // _MICROSECONDS_PER_MILLISECOND


def micros_to_datetime(time_us: int) -> dt.datetime:
    """Convert a Jetstream microsecond cursor to an aware UTC datetime."""
    return dt.datetime.fromtimestamp(time_us / 1_000_000, tz=dt.UTC)

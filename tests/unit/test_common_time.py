"""Tests for time conversion helpers."""

from __future__ import annotations

import datetime as dt

from gitfeed.common.time import as_utc, micros_to_datetime, micros_to_millis


def test_micros_to_millis_truncates() -> None:
    """Microsecond cursors convert to milliseconds by floor division."""
    assert micros_to_millis(1703088300000999) == 1703088300000


def test_micros_to_datetime_is_utc() -> None:
    """Cursors convert to aware UTC datetimes."""
    assert micros_to_datetime(1703088300000000) == dt.datetime(
        2023, 12, 20, 16, 5, tzinfo=dt.UTC
    )


def test_as_utc_treats_naive_values_as_utc() -> None:
    """Offset-less datetimes gain UTC tzinfo unchanged."""
    naive = dt.datetime(2024, 12, 20, 15, 45)  # noqa: DTZ001
    assert as_utc(naive) == dt.datetime(2024, 12, 20, 15, 45, tzinfo=dt.UTC)


def test_as_utc_converts_offsets() -> None:
    """Aware datetimes are converted to UTC."""
    plus_two = dt.timezone(dt.timedelta(hours=2))
    converted = as_utc(dt.datetime(2024, 12, 20, 17, 45, tzinfo=plus_two))
    assert converted.tzinfo is dt.UTC
    assert converted.hour == 15

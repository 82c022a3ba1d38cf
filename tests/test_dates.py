"""
tests/test_dates.py
===================

Unit tests for dispensary.dates
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from dispensary.dates import days_overdue, days_until, parse_timestamp
from dispensary.errors import ValidationError

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def test_days_until_rounds_up():
    assert days_until(NOW + timedelta(days=3), NOW) == 3
    assert days_until(NOW + timedelta(days=2, hours=1), NOW) == 3
    assert days_until(NOW, NOW) == 0


def test_days_until_negative_once_past():
    assert days_until(NOW - timedelta(days=2), NOW) == -2
    # ceil(-0.5) == 0: half a day past is still "today"
    assert days_until(NOW - timedelta(hours=12), NOW) == 0


def test_days_overdue_mirrors_days_until():
    assert days_overdue(NOW - timedelta(days=8), NOW) == 8
    assert days_overdue(NOW - timedelta(hours=1), NOW) == 1
    assert days_overdue(NOW + timedelta(days=2), NOW) == -2


def test_parse_timestamp_variants():
    assert parse_timestamp(None) is None
    assert parse_timestamp("2024-03-01T12:00:00Z") == NOW
    assert parse_timestamp("2024-03-01T12:00:00+00:00") == NOW
    assert parse_timestamp(datetime(2024, 3, 1, 12, 0)) == NOW  # naive → UTC
    assert parse_timestamp(date(2024, 3, 1)) == datetime(2024, 3, 1, tzinfo=timezone.utc)


def test_parse_timestamp_converts_offsets_to_utc():
    plus_two = datetime(2024, 3, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))
    parsed = parse_timestamp(plus_two)
    assert parsed == NOW
    assert parsed.tzinfo == timezone.utc


def test_parse_timestamp_rejects_garbage():
    with pytest.raises(ValidationError):
        parse_timestamp("next tuesday")
    with pytest.raises(ValidationError):
        parse_timestamp(42)

"""
dispensary.dates
================

Small date helpers.  Everything except :pyfunc:`utcnow` is a pure
function of its arguments so callers can inject a fixed ``now`` in tests.
"""

from __future__ import annotations

import math
from datetime import date, datetime, time, timezone
from typing import Optional, Union

from .errors import ValidationError

SECONDS_PER_DAY = 86400

TimestampLike = Union[None, str, date, datetime]


def utcnow() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: TimestampLike) -> Optional[datetime]:
    """
    Normalise *value* to an aware UTC :class:`datetime` (or ``None``).

    Naive datetimes are assumed to already be UTC, which is how SQLite hands
    them back.  Plain dates become midnight UTC.  ISO strings with a trailing
    ``Z`` are accepted.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise ValidationError(f"invalid timestamp {value!r}") from exc
        return parse_timestamp(parsed)
    raise ValidationError(f"invalid timestamp {value!r}")


def days_until(when: datetime, now: datetime) -> int:
    """Whole days from *now* until *when*, rounded up; negative once past."""
    return math.ceil((when - now).total_seconds() / SECONDS_PER_DAY)


def days_overdue(when: datetime, now: datetime) -> int:
    """Whole days elapsed since *when*, rounded up; negative if in the future."""
    return math.ceil((now - when).total_seconds() / SECONDS_PER_DAY)

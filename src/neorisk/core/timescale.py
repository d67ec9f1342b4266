"""Calendar date <-> Julian Date conversion.

Implements the Gregorian-calendar algorithms from Meeus, "Astronomical
Algorithms", ch. 7. All datetimes are treated as UTC.
"""

from __future__ import annotations

import logging
import math
import numbers
from datetime import datetime, timedelta, timezone
from typing import Union

from neorisk.core.errors import ValidationError

logger = logging.getLogger(__name__)

DateLike = Union[datetime, str]
"""A UTC datetime or an ISO-8601 timestamp."""


def _as_utc(date: DateLike) -> datetime:
    """Normalize a datetime or ISO string to an aware UTC datetime."""
    if isinstance(date, str):
        text = date.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            date = datetime.fromisoformat(text)
        except ValueError:
            raise ValidationError(f"Invalid ISO-8601 date: {date!r}") from None
    elif not isinstance(date, datetime):
        raise ValidationError(f"Expected datetime or ISO string, got {type(date).__name__}")

    if date.tzinfo is None:
        return date.replace(tzinfo=timezone.utc)
    return date.astimezone(timezone.utc)


def date_to_julian_date(date: DateLike) -> float:
    """Convert a UTC calendar date to a Julian Date.

    Args:
        date: Aware datetime, naive datetime (taken as UTC) or ISO-8601 string.

    Returns:
        Julian Date. ``2000-01-01T12:00:00Z`` maps to exactly 2451545.0.

    Raises:
        ValidationError: If the input cannot be read as a date.
    """
    t = _as_utc(date)

    day_fraction = (
        t.hour + t.minute / 60.0 + (t.second + t.microsecond / 1e6) / 3600.0
    ) / 24.0

    year, month = t.year, t.month
    if month <= 2:
        year -= 1
        month += 12

    a = math.floor(year / 100)
    b = 2 - a + math.floor(a / 4)

    return (
        math.floor(365.25 * (year + 4716))
        + math.floor(30.6001 * (month + 1))
        + t.day
        + day_fraction
        + b
        - 1524.5
    )


def julian_date_to_date(jd: float) -> datetime:
    """Convert a Julian Date to an aware UTC datetime.

    Args:
        jd: Julian Date.

    Returns:
        UTC datetime rounded to the microsecond.

    Raises:
        ValidationError: If ``jd`` is not finite.
    """
    if not math.isfinite(jd):
        raise ValidationError(f"Julian Date must be finite, got {jd}")

    z = math.floor(jd + 0.5)
    f = jd + 0.5 - z

    # Proleptic Gregorian throughout, like datetime and date_to_julian_date
    alpha = math.floor((z - 1867216.25) / 36524.25)
    a = z + 1 + alpha - math.floor(alpha / 4)

    b = a + 1524
    c = math.floor((b - 122.1) / 365.25)
    d = math.floor(365.25 * c)
    e = math.floor((b - d) / 30.6001)

    day = b - d - math.floor(30.6001 * e)
    month = e - 1 if e < 14 else e - 13
    year = c - 4716 if month > 2 else c - 4715

    midnight = datetime(year, month, day, tzinfo=timezone.utc)
    return midnight + timedelta(days=f)


def to_julian_date(value: float | DateLike) -> float:
    """Accept either a Julian Date or a date and return a Julian Date.

    Numbers are taken as Julian Dates unchanged.
    """
    if isinstance(value, numbers.Real) and not isinstance(value, bool):
        jd = float(value)
        if not math.isfinite(jd):
            raise ValidationError(f"Julian Date must be finite, got {value}")
        return jd
    return date_to_julian_date(value)

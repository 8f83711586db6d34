"""Canonical forms for DTR dates and times.

OCR'd time sheets mix 12-hour clocks, 24-hour clocks, slashes and
dashes. Everything downstream works with ``HH:MM`` (24-hour) and
``YYYY-MM-DD``. Both normalizers are total: input they do not
recognize is returned unchanged rather than rejected, and a value that
is already canonical comes back as-is.
"""

import re

_TIME_24H = re.compile(r"(\d{1,2}):(\d{2})")
_TIME_12H = re.compile(r"(\d{1,2}):(\d{2})\s*([AP])\.?\s*M\.?", re.IGNORECASE)

# Month first. Day-first sheets are not distinguished.
_DATE_MDY = re.compile(r"(\d{1,2})[/\-](\d{1,2})[/\-](\d{4})")
_DATE_ISO = re.compile(r"\d{4}-\d{2}-\d{2}")


def normalize_time(raw: str | None) -> str:
    """Convert a time string to 24-hour ``HH:MM``.

    ``"8:30 AM"`` becomes ``"08:30"``, ``"12:00 AM"`` becomes ``"00:00"``
    and ``"5:30 PM"`` becomes ``"17:30"``. Strings already in 24-hour
    form are returned unchanged.

    Args:
        raw: Time text as captured from the document.

    Returns:
        The normalized time, or the input itself if it is not recognized.
    """
    if not raw:
        return ""
    if _TIME_24H.fullmatch(raw):
        return raw

    match = _TIME_12H.fullmatch(raw.strip())
    if not match:
        return raw

    hours = int(match.group(1))
    minutes = match.group(2)
    period = match.group(3).upper()
    if period == "P" and hours < 12:
        hours += 12
    elif period == "A" and hours == 12:
        hours = 0
    return f"{hours:02d}:{minutes}"


def normalize_date(raw: str | None) -> str:
    """Convert ``MM/DD/YYYY`` or ``MM-DD-YYYY`` to ``YYYY-MM-DD``.

    Args:
        raw: Date text as captured from the document.

    Returns:
        The normalized date, or the input itself if it is not recognized.
    """
    if not raw:
        return ""
    match = _DATE_MDY.fullmatch(raw.strip())
    if not match:
        return raw
    month, day, year = match.groups()
    return f"{year}-{int(month):02d}-{int(day):02d}"


def is_canonical_time(value: str | None) -> bool:
    """Return whether ``value`` is a valid 24-hour ``H:MM``/``HH:MM`` time."""
    if not value:
        return False
    match = _TIME_24H.fullmatch(value)
    return bool(match) and int(match.group(1)) < 24 and int(match.group(2)) < 60


def is_canonical_date(value: str | None) -> bool:
    """Return whether ``value`` has the ``YYYY-MM-DD`` shape."""
    return bool(value) and _DATE_ISO.fullmatch(value) is not None


def _to_minutes(value: str) -> int:
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def calculate_regular_hours(
    time_in: str | None, time_out: str | None, break_hours: float | None
) -> float | None:
    """Hours worked between time-in and time-out, less the break.

    A time-out earlier than the time-in is treated as the next day.

    Args:
        time_in: Canonical time-in.
        time_out: Canonical time-out.
        break_hours: Unpaid break length; ``None`` counts as no break.

    Returns:
        Hours rounded to two places and floored at zero, or ``None`` if
        either time is not canonical.
    """
    if not (is_canonical_time(time_in) and is_canonical_time(time_out)):
        return None

    start = _to_minutes(time_in)
    end = _to_minutes(time_out)
    total = end - start if end >= start else (24 * 60 - start) + end
    total -= (break_hours or 0) * 60
    return max(0.0, round(total / 60, 2))

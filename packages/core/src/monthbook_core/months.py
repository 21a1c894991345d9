"""Year-month identifiers and calendar helpers.

A month is identified by a ``YYYY-MM`` string. The string form is what the
state document stores as keys, and it sorts chronologically, so plain string
comparison is used throughout the engine to order months.
"""

import re
from calendar import monthrange
from datetime import date, datetime, timezone
from typing import Iterator, Optional, Union

YM_PATTERN = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")

FRENCH_MONTHS = (
    "janvier",
    "février",
    "mars",
    "avril",
    "mai",
    "juin",
    "juillet",
    "août",
    "septembre",
    "octobre",
    "novembre",
    "décembre",
)


def is_valid_ym(value: object) -> bool:
    """Return True if value is a well-formed ``YYYY-MM`` string."""
    return isinstance(value, str) and YM_PATTERN.match(value) is not None


def parse_ym(ym: str) -> tuple[int, int]:
    """Split a ``YYYY-MM`` identifier into (year, month).

    Raises:
        ValueError: If the identifier is malformed.
    """
    match = YM_PATTERN.match(ym) if isinstance(ym, str) else None
    if match is None:
        raise ValueError(f"Invalid year-month: {ym!r}")
    return int(match.group(1)), int(match.group(2))


def format_ym(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def ym_from_date(value: Union[date, datetime]) -> str:
    """Return the year-month a date falls in."""
    return format_ym(value.year, value.month)


def ym_add(ym: str, delta_months: int) -> str:
    """Shift a year-month by a (possibly negative) number of months.

    Example:
        >>> ym_add("2025-01", -1)
        '2024-12'
    """
    year, month = parse_ym(ym)
    index = year * 12 + (month - 1) + delta_months
    return format_ym(index // 12, index % 12 + 1)


def ym_range(start: str, end: str) -> Iterator[str]:
    """Yield every year-month from start to end, both inclusive."""
    current = start
    while current <= end:
        yield current
        current = ym_add(current, 1)


def days_in_month(ym: str) -> int:
    year, month = parse_ym(ym)
    return monthrange(year, month)[1]


def due_date_iso(ym: str, day_of_month: int) -> str:
    """Return the ISO due date for a day of month, clamped into the month.

    A charge due on the 31st falls on the last day of shorter months, and
    anything below 1 falls on the 1st.

    Example:
        >>> due_date_iso("2025-02", 31)
        '2025-02-28'
    """
    day = max(1, min(int(day_of_month), days_in_month(ym)))
    return f"{ym}-{day:02d}"


def today_iso(today: Optional[Union[date, str]] = None) -> str:
    """Return the local date as ``YYYY-MM-DD``.

    Args:
        today: Optional override, either a date or an ISO date string.
            Resolution functions accept it so results are reproducible.
    """
    if today is None:
        return date.today().isoformat()
    if isinstance(today, str):
        return today
    return today.isoformat()


def now_iso(now: Optional[datetime] = None) -> str:
    """Return a UTC timestamp in the document's ISO-8601 form.

    Timestamps carry milliseconds and a ``Z`` suffix so that lexicographic
    comparison matches chronological order.
    """
    moment = now or datetime.now(timezone.utc)
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def month_label(ym: str) -> str:
    """Human-readable French label, e.g. ``"octobre 2025"``."""
    year, month = parse_ym(ym)
    return f"{FRENCH_MONTHS[month - 1]} {year}"

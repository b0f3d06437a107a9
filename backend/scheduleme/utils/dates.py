"""Week and time-of-day arithmetic for the timetable views.

Weeks start on Monday. The business week shown by the timetable is
Monday to Saturday. Dates travel as `YYYY-MM-DD` strings and times as
`HH:MM` strings; the helpers here convert between those and numbers.
"""

import re
from datetime import date, datetime, timedelta
from typing import List, Optional

BUSINESS_DAYS = 6
DATE_FMT = "%Y-%m-%d"
_TIME_RE = re.compile(r"^(\d{2}):(\d{2})$")


def parse_date(value: str) -> date:
    """Parse a `YYYY-MM-DD` string, raising ValueError on anything else."""
    if not isinstance(value, str) or len(value) != 10:
        raise ValueError(f"invalid date: {value!r}, expected YYYY-MM-DD")
    try:
        return datetime.strptime(value, DATE_FMT).date()
    except ValueError:
        raise ValueError(f"invalid date: {value!r}, expected YYYY-MM-DD")


def format_date(d: date) -> str:
    return d.strftime(DATE_FMT)


def time_to_minutes(value: str) -> int:
    """Return minutes since midnight for an `HH:MM` string."""
    m = _TIME_RE.match(value or "")
    if not m:
        raise ValueError(f"invalid time: {value!r}, expected HH:MM")
    hours, minutes = int(m.group(1)), int(m.group(2))
    if hours > 23 or minutes > 59:
        raise ValueError(f"invalid time: {value!r}, expected HH:MM")
    return hours * 60 + minutes


def minutes_to_time(total: int) -> str:
    total %= 24 * 60
    return f"{total // 60:02d}:{total % 60:02d}"


def add_minutes(value: str, minutes: int) -> str:
    """Shift an `HH:MM` time by `minutes`, wrapping around midnight."""
    return minutes_to_time(time_to_minutes(value) + minutes)


def start_of_week(today: Optional[date] = None, offset: int = 0) -> date:
    """Return the Monday of the week containing `today`, shifted by `offset` weeks.

    Sunday belongs to the week that started six days earlier.
    """
    today = today or date.today()
    monday = today - timedelta(days=today.weekday())
    try:
        return monday + timedelta(weeks=offset)
    except OverflowError:
        raise ValueError(f"week offset out of range: {offset}")


def week_days(today: Optional[date] = None, offset: int = 0) -> List[date]:
    """Return the Monday-to-Saturday dates of the selected week."""
    start = start_of_week(today, offset)
    try:
        return [start + timedelta(days=i) for i in range(BUSINESS_DAYS)]
    except OverflowError:
        raise ValueError(f"week of {format_date(start)} is out of range")


def shift_date(value: str, days: int) -> str:
    try:
        return format_date(parse_date(value) + timedelta(days=days))
    except OverflowError:
        raise ValueError(f"date out of range: {value} shifted by {days} days")

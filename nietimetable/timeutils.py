"""
Time and date helpers.

Encodings used throughout the project:
- time:      "HHMM" (4 digits, 24-hour, zero padded), e.g. "0830"
- date:      "YYYY-MM-DD" (canonical) or legacy "DD/MM" (year implied)
- sort key:  the canonical "YYYY-MM-DD" form of a date

All functions are pure. Malformed times raise ValueError instead of
producing nonsense minutes.
"""

from __future__ import annotations

import re
from datetime import date
from typing import List, Optional

from nietimetable.config import MINUTES_PER_DAY, TIMETABLE_YEAR


DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
MONTH_NAMES = [
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
]

_TIME_RE = re.compile(r"^\d{4}$")
_VENUE_RE = re.compile(r"^(\d+)-(\d+)-(.+)$")
_QUERY_SPLIT_RE = re.compile(r"[\s/-]+")


# ---------------------------------------------------------------------------
# Times
# ---------------------------------------------------------------------------


def time_to_minutes(hhmm: str) -> int:
    """
    Convert 'HHMM' to minutes since midnight.
    Raises ValueError for invalid formats or out-of-range values.
    """
    if not isinstance(hhmm, str) or not _TIME_RE.match(hhmm):
        raise ValueError(f"Invalid time format: {hhmm!r}")
    h = int(hhmm[:2])
    m = int(hhmm[2:])
    if not (0 <= h <= 23 and 0 <= m <= 59):
        raise ValueError(f"Invalid time value: {hhmm!r}")
    return h * 60 + m


def minutes_to_time(minutes: int) -> str:
    """
    Convert minutes since midnight to 'HHMM'. 1440 (end of day) is "2400".
    """
    if not (0 <= minutes <= MINUTES_PER_DAY):
        raise ValueError(f"Minutes out of range: {minutes!r}")
    return f"{minutes // 60:02d}{minutes % 60:02d}"


def format_time_12h(hhmm: str) -> str:
    """
    "1330" -> "1:30 PM"
    """
    h = time_to_minutes(hhmm) // 60
    period = "PM" if h >= 12 else "AM"
    return f"{h % 12 or 12}:{hhmm[2:]} {period}"


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------


def migrate_date_format(date_str: str, year: int = TIMETABLE_YEAR) -> str:
    """
    Convert legacy 'DD/MM' to 'YYYY-MM-DD'. Canonical dates pass through.
    """
    if "/" in date_str:
        day, month = date_str.split("/", 1)
        return f"{year}-{month.strip().zfill(2)}-{day.strip().zfill(2)}"
    return date_str


def create_sort_key(date_str: str, year: int = TIMETABLE_YEAR) -> str:
    """
    Sort key ('YYYY-MM-DD') for a date in either accepted encoding.
    """
    return migrate_date_format(date_str.strip(), year)


def parse_sort_key(sort_key: str) -> date:
    return date.fromisoformat(sort_key)


def sort_key_for(d: date) -> str:
    return f"{d.year:04d}-{d.month:02d}-{d.day:02d}"


def today_sort_key(today: Optional[date] = None) -> str:
    return sort_key_for(today or date.today())


def is_today(sort_key: str, today: Optional[date] = None) -> bool:
    return sort_key == today_sort_key(today)


def day_name(date_str: str) -> str:
    """
    Weekday name ("Monday") of a date in either accepted encoding.
    """
    return DAY_NAMES[parse_sort_key(create_sort_key(date_str)).weekday()]


def format_date_display(date_str: str) -> str:
    """
    '2026-03-02' -> 'Monday, 2 March 2026'
    """
    d = parse_sort_key(create_sort_key(date_str))
    return f"{DAY_NAMES[d.weekday()]}, {d.day} {MONTH_NAMES[d.month - 1]} {d.year}"


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


def date_search_tokens(date_str: str) -> List[str]:
    """
    All lowercase tokens a date can be found by: numbers, month and day
    names, and the usual slash/dash layouts (both day-first and month-first).
    """
    d = parse_sort_key(create_sort_key(date_str))
    day, month, year = d.day, d.month, d.year
    day_long = DAY_NAMES[d.weekday()].lower()
    month_long = MONTH_NAMES[month - 1].lower()

    dd = f"{day:02d}"
    mm = f"{month:02d}"
    yy = str(year)[-2:]

    tokens = [
        str(day),
        dd,
        str(month),
        mm,
        str(year),
        yy,
        month_long[:3],
        month_long,
        day_long,
        day_long[:3],
    ]
    for sep in ("/", "-"):
        tokens += [
            f"{day}{sep}{month}",
            f"{dd}{sep}{mm}",
            f"{day}{sep}{mm}",
            f"{dd}{sep}{month}",
            f"{month}{sep}{day}",
            f"{mm}{sep}{dd}",
            f"{month}{sep}{dd}",
            f"{mm}{sep}{day}",
            f"{yy}{sep}{mm}{sep}{dd}",
            f"{dd}{sep}{mm}{sep}{yy}",
        ]
    return tokens


def matches_date_search(date_str: str, query: str) -> bool:
    """
    Every query token must match some date token.

    Numeric tokens match exactly (so "1" does not hit day 17), text tokens
    by substring ("mar" hits "march").
    """
    if not query:
        return True

    query_tokens = [t for t in _QUERY_SPLIT_RE.split(query.lower()) if t]
    if not query_tokens:
        return True

    date_tokens = date_search_tokens(date_str)
    for qt in query_tokens:
        if qt.isdigit():
            if qt not in date_tokens:
                return False
        elif not any(qt in dt for dt in date_tokens):
            return False
    return True


def matches_event_search(course: str, group: str, venue: str, tutor: str, date_str: str, query: str) -> bool:
    """
    Case-insensitive substring match on the text fields, or a date match.
    """
    if not query:
        return True

    q = query.lower()
    for text in (course, group, venue, tutor):
        if q in text.lower():
            return True
    return matches_date_search(date_str, query)


# ---------------------------------------------------------------------------
# Display
# ---------------------------------------------------------------------------


def format_venue(venue: str) -> str:
    """
    '7-01-TR712' -> 'Block 7, Level 1, TR712'. Anything else unchanged.
    """
    match = _VENUE_RE.match(venue)
    if not match:
        return venue
    return f"Block {int(match.group(1))}, Level {int(match.group(2))}, {match.group(3)}"


def format_tutor(tutor: str) -> str:
    """
    Strip the internal id prefix ('12345:Name') and space out a glued
    parenthesis ('Tan(Dr)' -> 'Tan (Dr)').
    """
    name = tutor.split(":")[-1] if ":" in tutor else tutor
    return re.sub(r"(\S)\(", r"\1 (", name, count=1)

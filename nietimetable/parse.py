"""
Parsing (timetable export -> canonical events).

Two source formats are supported:
- the NIE HTML export: one table (id="infotab"), one row per class slot,
  all dates of the slot batched in one comma separated cell
- iCalendar (.ics): one VEVENT per occurrence

Important rules (DO NOT CHANGE):
- HTML: 1 table row = 1 TimetableEvent with ALL its dates
- ICS:  1 VEVENT = 1 TimetableEvent with exactly ONE date
Downstream code iterates `event.dates` either way.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, replace
from datetime import date
from typing import Dict, List, Optional, Tuple

from bs4 import BeautifulSoup

from nietimetable.config import HTML_TABLE_ID
from nietimetable.errors import Err, Ok, ParseError, ParseErrorKind, Result
from nietimetable.model import CUSTOM_EVENT_TYPES, CustomEvent, TimetableEvent, generate_id
from nietimetable.timeutils import day_name, time_to_minutes


logger = logging.getLogger(__name__)

# Column order of the NIE export table
HTML_COLUMNS = ("course", "group", "day", "start_time", "end_time", "dates", "venue", "tutor")

_ICS_DATETIME_RE = re.compile(r"^(\d{4})(\d{2})(\d{2})T(\d{2})(\d{2})")
_ICS_UNESCAPE_RE = re.compile(r"\\([\\;,nN])")
_TUTOR_RE = re.compile(r"Tutor:\s*(.+)")


@dataclass(frozen=True)
class ParsedTimetable:
    events: Tuple[TimetableEvent, ...]
    custom_events: Tuple[CustomEvent, ...]
    file_name: str


# ---------------------------------------------------------------------------
# HTML export
# ---------------------------------------------------------------------------


def _valid_time(hhmm: str) -> bool:
    try:
        time_to_minutes(hhmm)
    except ValueError:
        return False
    return True


def parse_html_timetable(html: str) -> List[TimetableEvent]:
    """
    Parse the NIE HTML export into events.

    Raises ParseError(MISSING_TABLE) if the export table is absent and
    ParseError(EMPTY_RESULT) if it holds no usable rows.
    """
    soup = BeautifulSoup(html, "html.parser")

    table = soup.find(id=HTML_TABLE_ID)
    if table is None:
        raise ParseError(
            ParseErrorKind.MISSING_TABLE,
            "Could not find timetable data. Make sure you uploaded the correct NIE timetable HTML file.",
        )

    events: List[TimetableEvent] = []
    rows = table.find_all("tr")

    # First row is the header
    for row in rows[1:]:
        cells = row.find_all("td")
        if len(cells) < len(HTML_COLUMNS):
            continue

        values = dict(zip(HTML_COLUMNS, (c.get_text().strip() for c in cells)))

        if not values["course"] or not values["start_time"] or not values["end_time"]:
            continue

        if not (_valid_time(values["start_time"]) and _valid_time(values["end_time"])):
            logger.debug("Skipping %s row with malformed times %r-%r", values["course"], values["start_time"], values["end_time"])
            continue

        dates = tuple(d.strip() for d in values["dates"].split(",") if d.strip())

        events.append(
            TimetableEvent(
                course=values["course"],
                group=values["group"],
                day=values["day"],
                start_time=values["start_time"],
                end_time=values["end_time"],
                dates=dates,
                venue=values["venue"],
                tutor=values["tutor"],
            )
        )

    logger.debug("HTML export: %d rows, %d events", max(len(rows) - 1, 0), len(events))

    if not events:
        raise ParseError(
            ParseErrorKind.EMPTY_RESULT,
            "No events found in the timetable. The file might be empty or in an unexpected format.",
        )

    return events


# ---------------------------------------------------------------------------
# iCalendar
# ---------------------------------------------------------------------------


def unfold_ics_lines(text: str) -> List[str]:
    """
    Normalize line endings and join folded lines (RFC 5545 3.1):
    a line starting with a space or tab continues the previous one.
    """
    lines = text.replace("\r\n", "\n").replace("\r", "\n").split("\n")

    unfolded: List[str] = []
    for line in lines:
        if line.startswith((" ", "\t")):
            if unfolded:
                unfolded[-1] += line[1:]
        else:
            unfolded.append(line)
    return unfolded


def unescape_ics_text(text: str) -> str:
    """
    Reverse TEXT escaping: \\n, \\, , \\; and \\\\.
    """

    def _sub(match: re.Match) -> str:
        ch = match.group(1)
        return "\n" if ch in "nN" else ch

    return _ICS_UNESCAPE_RE.sub(_sub, text)


def parse_ics_datetime(value: str) -> Tuple[str, str]:
    """
    '20260112T083000' -> ('2026-01-12', '0830')
    """
    match = _ICS_DATETIME_RE.match(value)
    if not match:
        raise ParseError(ParseErrorKind.INVALID_DATETIME, f"Invalid ICS datetime format: {value}")
    year, month, day, hours, minutes = match.groups()
    try:
        date(int(year), int(month), int(day))
    except ValueError as e:
        raise ParseError(ParseErrorKind.INVALID_DATETIME, f"Invalid ICS date: {value}") from e
    if int(hours) > 23 or int(minutes) > 59:
        raise ParseError(ParseErrorKind.INVALID_DATETIME, f"Invalid ICS time: {value}")
    return f"{year}-{month}-{day}", f"{hours}{minutes}"


def _split_summary(summary: str) -> Tuple[str, str]:
    # "COURSE - GROUP"; the group itself may contain " - "
    parts = summary.split(" - ")
    return parts[0], " - ".join(parts[1:])


def _tutor_from_description(description: str) -> str:
    match = _TUTOR_RE.fullmatch(description)
    return match.group(1) if match else ""


def parse_ics_calendar(text: str) -> Tuple[List[TimetableEvent], List[CustomEvent]]:
    """
    Parse calendar text into (events, custom_events).

    VEVENTs carrying X-NIE-EVENT-TYPE are custom events; those sharing type,
    course name, times, venue and tutor are merged into one event with
    several dates. VEVENTs missing SUMMARY, DTSTART or DTEND are skipped.
    """
    events: List[TimetableEvent] = []
    custom_by_key: Dict[str, CustomEvent] = {}

    in_event = False
    current: Dict[str, str] = {}
    skipped = 0

    for line in unfold_ics_lines(text):
        if line == "BEGIN:VEVENT":
            in_event = True
            current = {}
            continue

        if line == "END:VEVENT":
            in_event = False

            if not (current.get("SUMMARY") and current.get("DTSTART") and current.get("DTEND")):
                skipped += 1
                continue

            course, group = _split_summary(current["SUMMARY"])
            start_date, start_time = parse_ics_datetime(current["DTSTART"])
            _, end_time = parse_ics_datetime(current["DTEND"])
            tutor = _tutor_from_description(current.get("DESCRIPTION", ""))
            venue = current.get("LOCATION", "")

            event_type = current.get("X-NIE-EVENT-TYPE")
            if event_type is None:
                events.append(
                    TimetableEvent(
                        course=course,
                        group=group,
                        day=day_name(start_date),
                        start_time=start_time,
                        end_time=end_time,
                        dates=(start_date,),
                        venue=venue,
                        tutor=tutor,
                    )
                )
                continue

            course_name = current.get("X-NIE-COURSE-NAME", "")
            key = "|".join([event_type, course_name, start_time, end_time, venue, tutor])
            existing = custom_by_key.get(key)
            if existing is not None:
                if start_date not in existing.dates:
                    custom_by_key[key] = replace(existing, dates=tuple(sorted(existing.dates + (start_date,))))
                continue

            now = int(time.time() * 1000)
            custom_by_key[key] = CustomEvent(
                course=course,
                group=group,
                day=day_name(start_date),
                start_time=start_time,
                end_time=end_time,
                dates=(start_date,),
                venue=venue,
                tutor=tutor,
                id=generate_id(event_type),
                event_type=event_type,
                description=course_name,
                created_at=now,
                updated_at=now,
                group_id=current.get("X-NIE-GROUP-ID"),
            )
            continue

        if not in_event:
            continue

        colon = line.find(":")
        if colon <= 0:
            continue

        # Drop parameters, e.g. DTSTART;TZID=Asia/Singapore
        name = line[:colon].split(";", 1)[0].upper()
        value = unescape_ics_text(line[colon + 1 :])

        if name in ("SUMMARY", "LOCATION", "DESCRIPTION", "DTSTART", "DTEND", "X-NIE-COURSE-NAME", "X-NIE-GROUP-ID"):
            current[name] = value
        elif name == "X-NIE-EVENT-TYPE" and value in CUSTOM_EVENT_TYPES:
            current[name] = value

    custom_events = list(custom_by_key.values())
    logger.debug("ICS: %d events, %d custom events, %d skipped", len(events), len(custom_events), skipped)

    if not events and not custom_events:
        raise ParseError(
            ParseErrorKind.EMPTY_RESULT,
            "No events found in the ICS file. Make sure you uploaded a valid calendar file.",
        )

    return events, custom_events


def parse_ics_timetable(text: str) -> List[TimetableEvent]:
    """
    Parse calendar text into events, one event per VEVENT.

    Raises ParseError(EMPTY_RESULT) if no event could be assembled and
    ParseError(INVALID_DATETIME) for malformed DTSTART / DTEND values.
    """
    events, custom_events = parse_ics_calendar(text)
    if not events:
        raise ParseError(
            ParseErrorKind.EMPTY_RESULT,
            f"The ICS file only contains {len(custom_events)} custom events and no timetable events.",
        )
    return events


# ---------------------------------------------------------------------------
# Format detection
# ---------------------------------------------------------------------------


def detect_format(text: str, file_name: Optional[str] = None) -> Optional[str]:
    """
    Return 'ics', 'html' or None.
    """
    name = (file_name or "").lower()
    if name.endswith(".ics") or "BEGIN:VCALENDAR" in text[:2048].upper():
        return "ics"
    if name.endswith((".html", ".htm")) or "<html" in text[:4096].lower() or "<table" in text.lower():
        return "html"
    return None


def parse_timetable_source(text: str, file_name: str = "") -> Result[ParsedTimetable, ParseError]:
    """
    Detect the format of `text` and parse it.

    Never raises ParseError; the caller decides what to do with Err.
    """
    fmt = detect_format(text, file_name)
    try:
        if fmt == "ics":
            events, custom_events = parse_ics_calendar(text)
            return Ok(ParsedTimetable(tuple(events), tuple(custom_events), file_name))
        if fmt == "html":
            events = parse_html_timetable(text)
            return Ok(ParsedTimetable(tuple(events), (), file_name))
    except ParseError as e:
        logger.debug("Parsing %r failed: %s", file_name, e)
        return Err(e)

    return Err(
        ParseError(
            ParseErrorKind.UNKNOWN_FORMAT,
            "Unsupported file. Upload the NIE timetable HTML export or an .ics calendar file.",
        )
    )

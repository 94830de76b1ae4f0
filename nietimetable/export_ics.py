"""
iCalendar (.ics) export.

We convert timetable events into a calendar file that can be imported into:
- Google Calendar
- Outlook
- Apple Calendar
and back into this tool: parse.parse_ics_calendar reads what we write here.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from nietimetable.model import CustomEvent, EventOverride, TimetableEvent, event_instance_key
from nietimetable.timeutils import create_sort_key, time_to_minutes


logger = logging.getLogger(__name__)

PRODID = "-//NIE Timetable Converter//EN"
CALENDAR_NAME = "NIE Timetable"


def _ics_escape(text: str) -> str:
    """
    Escape text for ICS TEXT values (RFC 5545 3.3.11).
    """
    return (
        text.replace("\\", "\\\\").replace(";", "\\;").replace(",", "\\,").replace("\r\n", "\\n").replace("\n", "\\n")
    )


def _dt_local(date_str: str, hhmm: str) -> str:
    """
    Convert date + 'HHMM' to ICS local datetime string 'YYYYMMDDTHHMM00'.
    """
    time_to_minutes(hhmm)
    return f"{create_sort_key(date_str).replace('-', '')}T{hhmm}00"


def _uid() -> str:
    return f"{int(datetime.now(timezone.utc).timestamp() * 1000)}-{secrets.token_hex(5)}@nie-timetable"


def _vevent(
    event: TimetableEvent, date_str: str, start: str, end: str, venue: str, tutor: str, dtstamp: str
) -> List[str]:
    lines = [
        "BEGIN:VEVENT",
        f"UID:{_uid()}",
        f"DTSTAMP:{dtstamp}",
        f"DTSTART:{_dt_local(date_str, start)}",
        f"DTEND:{_dt_local(date_str, end)}",
        f"SUMMARY:{_ics_escape(f'{event.course} - {event.group}')}",
        f"LOCATION:{_ics_escape(venue)}",
        f"DESCRIPTION:{_ics_escape(f'Tutor: {tutor}' if tutor else '')}",
    ]

    if isinstance(event, CustomEvent):
        lines.append(f"X-NIE-EVENT-TYPE:{event.event_type}")
        if event.description:
            lines.append(f"X-NIE-COURSE-NAME:{_ics_escape(event.description)}")
        if event.group_id:
            lines.append(f"X-NIE-GROUP-ID:{event.group_id}")

    lines.append("END:VEVENT")
    return lines


def generate_ics(
    events: Iterable[TimetableEvent],
    overrides: Optional[Dict[str, EventOverride]] = None,
    deletions: Iterable[str] = (),
) -> str:
    """
    Build calendar text with one VEVENT per event date.

    Overrides and deletions apply to imported events only; custom events
    are exported as they are.
    """
    overrides = overrides or {}
    deleted = set(deletions)
    dtstamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")

    lines: List[str] = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{PRODID}",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
        f"X-WR-CALNAME:{CALENDAR_NAME}",
    ]

    count = 0
    for ev in events:
        for date_str in ev.dates:
            start, end, venue, tutor = ev.start_time, ev.end_time, ev.venue, ev.tutor

            if not isinstance(ev, CustomEvent):
                key = event_instance_key(ev.course, ev.group, date_str, ev.start_time)
                if key in deleted:
                    continue
                override = overrides.get(key)
                if override is not None:
                    start = override.start_time if override.start_time is not None else start
                    end = override.end_time if override.end_time is not None else end
                    venue = override.venue if override.venue is not None else venue
                    tutor = override.tutor if override.tutor is not None else tutor

            lines.extend(_vevent(ev, date_str, start, end, venue, tutor, dtstamp))
            count += 1

    lines.append("END:VCALENDAR")
    logger.debug("Generated %d VEVENTs", count)

    # ICS standard uses CRLF
    return "\r\n".join(lines) + "\r\n"


def default_ics_filename(today: Optional[datetime] = None) -> str:
    """
    Timestamped file name: nie-timetable-YYYY-MM-DD.ics
    """
    now = today or datetime.now()
    return f"nie-timetable-{now:%Y-%m-%d}.ics"


def export_events_to_ics(
    events: Iterable[TimetableEvent],
    out_path: str | Path,
    overrides: Optional[Dict[str, EventOverride]] = None,
    deletions: Iterable[str] = (),
) -> int:
    """
    Export events to an .ics file. Returns number of exported VEVENTs.
    """
    out = Path(out_path)
    out.parent.mkdir(parents=True, exist_ok=True)

    text = generate_ics(events, overrides, deletions)
    # newline="" keeps the CRLF line endings as generated
    with out.open("w", encoding="utf-8", newline="") as fh:
        fh.write(text)
    return text.count("BEGIN:VEVENT")

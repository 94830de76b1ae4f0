"""
NIE timetable viewer core.

Parses timetable exports (NIE HTML / iCalendar), groups and filters events,
compares two timetables day by day and encodes timetables into share links.
"""

from pathlib import Path

__version__ = (Path(__file__).resolve().parent / "VERSION").read_text(encoding="utf-8").strip()

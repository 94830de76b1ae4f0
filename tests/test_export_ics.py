"""
Unit tests for .ics export, including export -> parse round trips.
"""

import tempfile
import unittest
from pathlib import Path

from nietimetable.export_ics import export_events_to_ics, generate_ics
from nietimetable.model import CustomEvent, EventOverride, TimetableEvent, event_instance_key
from nietimetable.parse import parse_ics_calendar, parse_ics_timetable

EVENT = TimetableEvent(
    course="ABC123",
    group="G1",
    day="Monday",
    start_time="0830",
    end_time="1030",
    dates=("2026-03-02",),
    venue="LT1",
    tutor="Dr. Tan",
)


class TestExportICS(unittest.TestCase):
    def test_export_creates_file_and_contains_calendar(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            out = Path(d) / "out.ics"
            n = export_events_to_ics([EVENT], out)
            self.assertEqual(n, 1)
            text = out.read_bytes().decode("utf-8")
            self.assertIn("BEGIN:VCALENDAR\r\n", text)
            self.assertIn("BEGIN:VEVENT", text)
            self.assertIn("SUMMARY:ABC123 - G1", text)
            self.assertIn("DTSTART:20260302T083000", text)
            self.assertIn("DTEND:20260302T103000", text)
            self.assertIn("DESCRIPTION:Tutor: Dr. Tan", text)

    def test_round_trip(self) -> None:
        events = parse_ics_timetable(generate_ics([EVENT]))
        self.assertEqual(events, [EVENT])

    def test_one_vevent_per_date_and_legacy_dates(self) -> None:
        ev = TimetableEvent(
            course="XYZ999",
            group="Lab, A; B",
            day="Tuesday",
            start_time="1400",
            end_time="1600",
            dates=("3/3", "2026-03-10"),
            venue="Block 7\nRoom 1",
            tutor="",
        )
        parsed = parse_ics_timetable(generate_ics([ev]))

        self.assertEqual([p.dates for p in parsed], [("2026-03-03",), ("2026-03-10",)])
        self.assertEqual(parsed[0].group, "Lab, A; B")
        self.assertEqual(parsed[0].venue, "Block 7\nRoom 1")
        self.assertEqual(parsed[0].tutor, "")

    def test_overrides_and_deletions(self) -> None:
        ev = TimetableEvent(
            course="ABC123",
            group="G1",
            day="Monday",
            start_time="0830",
            end_time="1030",
            dates=("2026-03-02", "2026-03-09"),
            venue="LT1",
            tutor="Dr. Tan",
        )
        overrides = {event_instance_key("ABC123", "G1", "2026-03-02", "0830"): EventOverride(venue="LT9")}
        deletions = [event_instance_key("ABC123", "G1", "2026-03-09", "0830")]

        parsed = parse_ics_timetable(generate_ics([ev], overrides, deletions))
        self.assertEqual(len(parsed), 1)
        self.assertEqual(parsed[0].venue, "LT9")

    def test_custom_events_keep_their_metadata(self) -> None:
        custom = CustomEvent(
            course="Gym",
            group="",
            day="Monday",
            start_time="1800",
            end_time="1900",
            dates=("2026-03-02", "2026-03-09"),
            venue="Sports Hall",
            tutor="",
            id="custom_1",
            event_type="upgrading",
            description="Weekly workout",
            group_id="grp_1",
        )
        text = generate_ics([EVENT, custom])
        self.assertIn("X-NIE-EVENT-TYPE:upgrading", text)

        events, customs = parse_ics_calendar(text)
        self.assertEqual(events, [EVENT])
        self.assertEqual(len(customs), 1)
        self.assertEqual(customs[0].dates, custom.dates)
        self.assertEqual(customs[0].event_type, "upgrading")
        self.assertEqual(customs[0].description, "Weekly workout")
        self.assertEqual(customs[0].group_id, "grp_1")

    def test_malformed_time_raises(self) -> None:
        bad = TimetableEvent("A", "B", "", "8:30", "1030", ("2026-03-02",), "", "")
        with self.assertRaises(ValueError):
            generate_ics([bad])


if __name__ == "__main__":
    unittest.main()

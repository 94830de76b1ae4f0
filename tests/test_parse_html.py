"""
Unit tests for the NIE HTML export parser.

Parser contract:
- the table with id="infotab" holds the data, its first row is a header
- rows need >= 8 cells: course, group, day, start, end, dates, venue, tutor
- rows without course / start / end are skipped
- missing table -> ParseError(MISSING_TABLE), no rows -> ParseError(EMPTY_RESULT)
"""

import unittest

from nietimetable.errors import ParseError, ParseErrorKind
from nietimetable.parse import parse_html_timetable

HEADER = (
    "<tr><th>Course</th><th>Group</th><th>Day</th><th>Start</th><th>End</th>"
    "<th>Dates</th><th>Venue</th><th>Tutor</th></tr>"
)


def _doc(rows: str, table_id: str = "infotab") -> str:
    return f"<html><body><table id='{table_id}'>{HEADER}{rows}</table></body></html>"


def _row(*cells: str) -> str:
    return "<tr>" + "".join(f"<td>{c}</td>" for c in cells) + "</tr>"


class TestParseHtml(unittest.TestCase):
    def test_parses_rows_with_batched_dates(self) -> None:
        html = _doc(
            _row("ABC123", "G1", "Monday", "0830", "1030", " 2/3, 9/3 ,16/3, ", "7-01-TR712", "123:Dr. Tan")
            + _row("XYZ999", "T2", "Tuesday", "1400", "1600", "3/3", "LT1", "")
        )
        events = parse_html_timetable(html)

        self.assertEqual(len(events), 2)
        ev = events[0]
        self.assertEqual(ev.course, "ABC123")
        self.assertEqual(ev.group, "G1")
        self.assertEqual(ev.day, "Monday")
        self.assertEqual(ev.start_time, "0830")
        self.assertEqual(ev.end_time, "1030")
        self.assertEqual(ev.dates, ("2/3", "9/3", "16/3"))
        self.assertEqual(ev.venue, "7-01-TR712")
        self.assertEqual(ev.tutor, "123:Dr. Tan")
        self.assertEqual(events[1].dates, ("3/3",))

    def test_skips_short_and_incomplete_rows(self) -> None:
        html = _doc(
            _row("ABC123", "G1", "Monday", "0830")
            + _row("", "G1", "Monday", "0830", "1030", "2/3", "LT1", "Tan")
            + _row("ABC123", "G1", "Monday", "", "1030", "2/3", "LT1", "Tan")
            + _row("DEF456", "G2", "Friday", "0900", "1000", "6/3", "LT2", "Lim")
        )
        events = parse_html_timetable(html)
        self.assertEqual([e.course for e in events], ["DEF456"])

    def test_skips_rows_with_malformed_times(self) -> None:
        html = _doc(
            _row("ABC123", "G1", "Monday", "830", "1030", "2/3", "LT1", "Tan")
            + _row("ABC124", "G1", "Monday", "0830", "2500", "2/3", "LT1", "Tan")
            + _row("DEF456", "G2", "Friday", "0900", "1000", "6/3", "LT2", "Lim")
        )
        events = parse_html_timetable(html)
        self.assertEqual([e.course for e in events], ["DEF456"])

        with self.assertRaises(ParseError) as ctx:
            parse_html_timetable(_doc(_row("ABC123", "G1", "Monday", "8:30", "10:30", "2/3", "LT1", "Tan")))
        self.assertEqual(ctx.exception.kind, ParseErrorKind.EMPTY_RESULT)

    def test_missing_table_is_missing_structure_error(self) -> None:
        with self.assertRaises(ParseError) as ctx:
            parse_html_timetable(_doc(_row("A", "B", "C", "D", "E", "F", "G", "H"), table_id="other"))
        self.assertEqual(ctx.exception.kind, ParseErrorKind.MISSING_TABLE)

    def test_header_only_is_empty_result_error(self) -> None:
        with self.assertRaises(ParseError) as ctx:
            parse_html_timetable(_doc(""))
        self.assertEqual(ctx.exception.kind, ParseErrorKind.EMPTY_RESULT)


if __name__ == "__main__":
    unittest.main()

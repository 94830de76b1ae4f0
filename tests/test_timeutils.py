"""
Unit tests for time / date helpers.

Times are 'HHMM' strings, dates 'YYYY-MM-DD' or legacy 'DD/MM'.
Malformed times must fail fast instead of producing garbage minutes.
"""

import unittest
from datetime import date

from nietimetable.timeutils import (
    create_sort_key,
    date_search_tokens,
    day_name,
    format_date_display,
    format_time_12h,
    format_tutor,
    format_venue,
    is_today,
    matches_date_search,
    matches_event_search,
    minutes_to_time,
    time_to_minutes,
)


class TestTimes(unittest.TestCase):
    def test_time_to_minutes(self) -> None:
        self.assertEqual(time_to_minutes("0000"), 0)
        self.assertEqual(time_to_minutes("0830"), 510)
        self.assertEqual(time_to_minutes("2359"), 1439)

    def test_minutes_to_time_is_zero_padded(self) -> None:
        self.assertEqual(minutes_to_time(5), "0005")
        self.assertEqual(minutes_to_time(510), "0830")
        self.assertEqual(minutes_to_time(1440), "2400")

    def test_malformed_time_raises(self) -> None:
        for bad in ("830", "08:30", "2460", "2500", "abcd", ""):
            with self.assertRaises(ValueError, msg=bad):
                time_to_minutes(bad)

    def test_minutes_out_of_range_raises(self) -> None:
        with self.assertRaises(ValueError):
            minutes_to_time(-1)
        with self.assertRaises(ValueError):
            minutes_to_time(1441)

    def test_format_time_12h(self) -> None:
        self.assertEqual(format_time_12h("0000"), "12:00 AM")
        self.assertEqual(format_time_12h("0830"), "8:30 AM")
        self.assertEqual(format_time_12h("1200"), "12:00 PM")
        self.assertEqual(format_time_12h("1345"), "1:45 PM")


class TestDates(unittest.TestCase):
    def test_sort_key_accepts_legacy_and_canonical(self) -> None:
        self.assertEqual(create_sort_key("2/3", year=2026), "2026-03-02")
        self.assertEqual(create_sort_key("12/11", year=2026), "2026-11-12")
        self.assertEqual(create_sort_key("2026-03-02"), "2026-03-02")

    def test_is_today(self) -> None:
        today = date(2026, 3, 2)
        self.assertTrue(is_today("2026-03-02", today=today))
        self.assertFalse(is_today("2026-03-03", today=today))

    def test_day_name_and_display(self) -> None:
        self.assertEqual(day_name("2026-03-02"), "Monday")
        self.assertEqual(format_date_display("2026-03-02"), "Monday, 2 March 2026")


class TestSearch(unittest.TestCase):
    def test_date_tokens(self) -> None:
        tokens = date_search_tokens("2026-03-02")
        for t in ("2", "02", "3", "03", "2026", "26", "mar", "march", "monday", "mon", "2/3", "02/03", "3-2"):
            self.assertIn(t, tokens)

    def test_numeric_tokens_match_exactly(self) -> None:
        # "1" must not hit day 17
        self.assertFalse(matches_date_search("2026-03-17", "1"))
        self.assertTrue(matches_date_search("2026-03-17", "17"))

    def test_text_tokens_match_substrings_in_any_order(self) -> None:
        self.assertTrue(matches_date_search("2026-03-02", "mar 2"))
        self.assertTrue(matches_date_search("2026-03-02", "2 march"))
        self.assertTrue(matches_date_search("2026-03-02", "02/03"))
        self.assertFalse(matches_date_search("2026-03-02", "apr"))

    def test_event_search(self) -> None:
        args = ("ABC123", "G1", "LT1", "Dr. Tan", "2026-03-02")
        self.assertTrue(matches_event_search(*args, "abc"))
        self.assertTrue(matches_event_search(*args, "tan"))
        self.assertTrue(matches_event_search(*args, "monday"))
        self.assertFalse(matches_event_search(*args, "xyz"))
        self.assertTrue(matches_event_search(*args, ""))


class TestDisplay(unittest.TestCase):
    def test_format_venue(self) -> None:
        self.assertEqual(format_venue("7-01-TR712"), "Block 7, Level 1, TR712")
        self.assertEqual(format_venue("LT1"), "LT1")

    def test_format_tutor(self) -> None:
        self.assertEqual(format_tutor("12345:Tan Ah Kow"), "Tan Ah Kow")
        self.assertEqual(format_tutor("Tan(Dr)"), "Tan (Dr)")
        self.assertEqual(format_tutor("Dr. Tan"), "Dr. Tan")


if __name__ == "__main__":
    unittest.main()

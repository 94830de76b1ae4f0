"""
Unit tests for comparing two timetables.

Covered:
- identical class detection (venue / tutor ignored)
- travel feasibility with an inclusive wait tolerance
- gap finding, meal availability ("bracketing") and first-found shared gaps
- day filters of the compare view
"""

import unittest

from nietimetable.compare import (
    CompareFilter,
    build_compare_days,
    calculate_meal_info,
    calculate_travel_info,
    events_match,
    filter_compare_dates,
    find_gaps,
    find_overlapping_gap,
    get_all_dates,
    has_identical_class,
    is_available_for_meal,
    meal_matches,
    travel_matches,
)
from nietimetable.config import MealConfig, MealType, TravelConfig, TravelDirection
from nietimetable.grouping import group_events
from nietimetable.model import EventItem, Gap, GroupedEvent, MealInfo, TimetableEvent, TravelInfo


def _item(start, end, course="ABC123", group="G1", venue="LT1", tutor="Tan"):
    return EventItem(course=course, group=group, start_time=start, end_time=end, venue=venue, tutor=tutor)


def _event(course, start, end, dates, group="G1"):
    return TimetableEvent(
        course=course, group=group, day="", start_time=start, end_time=end, dates=tuple(dates), venue="LT1", tutor=""
    )


LUNCH = MealConfig(type=MealType.LUNCH, lunch_start=11, lunch_end=14, dinner_start=17, dinner_end=20)


class TestEventsMatch(unittest.TestCase):
    def test_venue_and_tutor_are_ignored(self) -> None:
        self.assertTrue(events_match(_item("0830", "1030"), _item("0830", "1030", venue="LT2", tutor="Lim")))

    def test_any_key_field_differs(self) -> None:
        base = _item("0830", "1030")
        self.assertFalse(events_match(base, _item("0830", "1030", group="G2")))
        self.assertFalse(events_match(base, _item("0830", "1030", course="XYZ")))
        self.assertFalse(events_match(base, _item("0830", "1100")))


class TestTravel(unittest.TestCase):
    def test_wait_tolerance_is_inclusive(self) -> None:
        left = [_item("0800", "1000")]
        right = [_item("0815", "1000")]

        info = calculate_travel_info(left, right, 15)
        self.assertTrue(info.can_travel_to)
        self.assertEqual(info.to_diff, 15)

        info = calculate_travel_info(left, right, 14)
        self.assertFalse(info.can_travel_to)
        self.assertTrue(info.can_travel_from)
        self.assertEqual(info.from_diff, 0)

    def test_uses_earliest_start_and_latest_end(self) -> None:
        left = [_item("1000", "1100"), _item("0800", "0900"), _item("1300", "1700")]
        right = [_item("0900", "1800")]
        info = calculate_travel_info(left, right, 60)

        self.assertEqual(info.left_earliest, "0800")
        self.assertEqual(info.left_latest, "1700")
        self.assertEqual(info.right_earliest, "0900")
        self.assertEqual(info.right_latest, "1800")
        self.assertEqual(info.to_diff, 60)
        self.assertEqual(info.from_diff, 60)
        self.assertTrue(info.can_travel_to and info.can_travel_from)

    def test_empty_side_is_infeasible(self) -> None:
        info = calculate_travel_info([], [_item("0800", "0900")], 60)
        self.assertFalse(info.can_travel_to)
        self.assertFalse(info.can_travel_from)
        self.assertEqual((info.to_diff, info.from_diff), (0, 0))
        self.assertIsNone(info.left_earliest)


class TestGaps(unittest.TestCase):
    def test_gaps_around_and_between_classes(self) -> None:
        gaps = find_gaps([_item("1300", "1500"), _item("0900", "1100")])
        self.assertEqual(gaps, [Gap(0, 540), Gap(660, 780), Gap(900, 1440)])

    def test_back_to_back_classes_leave_no_gap(self) -> None:
        gaps = find_gaps([_item("0900", "1000"), _item("1000", "1100")])
        self.assertEqual(gaps, [Gap(0, 540), Gap(660, 1440)])

    def test_no_events_no_gaps(self) -> None:
        self.assertEqual(find_gaps([]), [])


class TestMealAvailability(unittest.TestCase):
    def test_classes_bracketing_lunch(self) -> None:
        events = [_item("0900", "1200"), _item("1400", "1600")]
        self.assertTrue(is_available_for_meal(events, 660, 840))

    def test_early_end_and_late_start_are_not_close_enough(self) -> None:
        # 0900 end is 120 min before 1100 (limit: 60), 1500 end is past 1430
        events = [_item("0700", "0900"), _item("1300", "1500")]
        self.assertFalse(is_available_for_meal(events, 660, 840))

    def test_day_spanning_window_without_nearby_class(self) -> None:
        events = [_item("0800", "0900"), _item("2100", "2200")]
        self.assertFalse(is_available_for_meal(events, 660, 840))

    def test_no_events(self) -> None:
        self.assertFalse(is_available_for_meal([], 660, 840))


class TestMealInfo(unittest.TestCase):
    def test_shared_lunch_gap(self) -> None:
        left = [_item("0900", "1200"), _item("1400", "1600")]
        right = [_item("1000", "1130"), _item("1330", "1500")]
        info = calculate_meal_info(left, right, LUNCH)

        self.assertTrue(info.can_eat_lunch)
        self.assertEqual((info.lunch_gap_start, info.lunch_gap_end), ("1200", "1330"))
        self.assertFalse(info.can_eat_dinner)
        self.assertIsNone(info.dinner_gap_start)

    def test_first_found_gap_wins(self) -> None:
        gap = find_overlapping_gap([Gap(660, 730), Gap(740, 840)], [Gap(600, 840)], 660, 840)
        self.assertEqual(gap, Gap(660, 730))

    def test_min_duration_is_inclusive(self) -> None:
        self.assertEqual(find_overlapping_gap([Gap(660, 720)], [Gap(0, 1440)], 660, 840), Gap(660, 720))
        self.assertIsNone(find_overlapping_gap([Gap(660, 719)], [Gap(0, 1440)], 660, 840))

    def test_empty_side(self) -> None:
        info = calculate_meal_info([], [_item("0900", "1000")], LUNCH)
        self.assertFalse(info.can_eat_lunch)
        self.assertFalse(info.can_eat_dinner)


class TestCompareView(unittest.TestCase):
    def setUp(self) -> None:
        self.left = group_events(
            [
                _event("ABC123", "0830", "1030", ["2026-03-02", "2026-03-03"]),
                _event("DEF456", "1400", "1500", ["2026-03-05"]),
            ]
        )
        self.right = group_events(
            [
                _event("ABC123", "0830", "1030", ["2026-03-02"]),
                _event("XYZ999", "0900", "1030", ["2026-03-03"]),
                _event("QQQ111", "1000", "1100", ["2026-03-06"]),
            ]
        )

    def _dates(self, compare_filter, travel=TravelConfig()):
        return filter_compare_dates(self.left, self.right, compare_filter, travel, LUNCH)

    def test_no_filter_and_common_days(self) -> None:
        self.assertEqual(self._dates(CompareFilter.NONE), ["2026-03-02", "2026-03-03", "2026-03-05", "2026-03-06"])
        self.assertEqual(self._dates(CompareFilter.COMMON_DAYS), ["2026-03-02", "2026-03-03"])

    def test_identical(self) -> None:
        self.assertEqual(self._dates(CompareFilter.IDENTICAL), ["2026-03-02"])
        days = build_compare_days(self.left, self.right, CompareFilter.IDENTICAL)
        self.assertEqual(days[0].identical_left, frozenset({0}))
        self.assertEqual(days[0].identical_right, frozenset({0}))

    def test_travel_directions(self) -> None:
        def dates(direction):
            return self._dates(CompareFilter.TRAVEL, TravelConfig(direction=direction, wait_minutes=15))

        self.assertEqual(dates(TravelDirection.BOTH), ["2026-03-02"])
        self.assertEqual(dates(TravelDirection.TO), ["2026-03-02"])
        self.assertEqual(dates(TravelDirection.FROM), ["2026-03-02", "2026-03-03"])
        self.assertEqual(dates(TravelDirection.EITHER), ["2026-03-02", "2026-03-03"])

        days = build_compare_days(self.left, self.right, CompareFilter.TRAVEL, TravelConfig(TravelDirection.FROM, 15))
        self.assertEqual(days[1].travel.to_diff, 30)

    def test_eat(self) -> None:
        left = group_events([_event("A", "0900", "1200", ["2026-03-02"]), _event("B", "1400", "1600", ["2026-03-02"])])
        right = group_events([_event("C", "1000", "1130", ["2026-03-02"]), _event("D", "1330", "1500", ["2026-03-02"])])

        days = build_compare_days(left, right, CompareFilter.EAT, meal_config=LUNCH)
        self.assertEqual([d.sort_key for d in days], ["2026-03-02"])
        self.assertEqual(days[0].meal.lunch_gap_start, "1200")

        dinner = MealConfig(type=MealType.DINNER)
        self.assertEqual(filter_compare_dates(left, right, CompareFilter.EAT, meal_config=dinner), [])


class TestMatchHelpers(unittest.TestCase):
    def test_travel_direction(self) -> None:
        to_only = TravelInfo(True, False, "0830", "0840", "1700", "1800", 10, 60)
        self.assertTrue(travel_matches(to_only, TravelDirection.TO))
        self.assertFalse(travel_matches(to_only, TravelDirection.FROM))
        self.assertFalse(travel_matches(to_only, TravelDirection.BOTH))
        self.assertTrue(travel_matches(to_only, TravelDirection.EITHER))

    def test_meal_type(self) -> None:
        info = MealInfo(can_eat_lunch=False, can_eat_dinner=True, dinner_gap_start="1800", dinner_gap_end="1900")
        self.assertFalse(meal_matches(info, MealType.LUNCH))
        self.assertTrue(meal_matches(info, MealType.DINNER))

    def test_all_dates_are_a_sorted_union(self) -> None:
        left = [GroupedEvent("", "2026-03-09", ()), GroupedEvent("", "2026-03-02", ())]
        right = [GroupedEvent("", "2026-03-02", ()), GroupedEvent("", "2026-03-03", ())]
        self.assertEqual(get_all_dates(left, right), ["2026-03-02", "2026-03-03", "2026-03-09"])

    def test_has_identical_class(self) -> None:
        left = [_item("0830", "1030"), _item("1400", "1600", course="XYZ999")]
        self.assertTrue(has_identical_class(left, [_item("1400", "1600", course="XYZ999", venue="LT5")]))
        self.assertFalse(has_identical_class(left, [_item("1400", "1600", group="G2", course="XYZ999")]))
        self.assertFalse(has_identical_class(left, []))


if __name__ == "__main__":
    unittest.main()

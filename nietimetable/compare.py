"""
Comparing two timetables day by day.

For a date both timetables share, answers:
- do both have an identical class (course, group, start, end)?
- can they travel to / from school together within a wait tolerance?
- is there a common free gap for lunch / dinner?

All times are compared in minutes since midnight.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple

from nietimetable.config import (
    DEFAULT_MIN_MEAL_MINUTES,
    MEAL_BUFFER_MINUTES,
    MINUTES_PER_DAY,
    MealConfig,
    MealType,
    TravelConfig,
    TravelDirection,
)
from nietimetable.model import EventItem, Gap, GroupedEvent, MealInfo, TravelInfo
from nietimetable.timeutils import minutes_to_time, time_to_minutes


class CompareFilter(str, Enum):
    NONE = "none"
    COMMON_DAYS = "common_days"
    IDENTICAL = "identical"
    TRAVEL = "travel"
    EAT = "eat"


@dataclass(frozen=True)
class CompareDay:
    sort_key: str
    left: Optional[GroupedEvent]
    right: Optional[GroupedEvent]
    travel: Optional[TravelInfo] = None
    meal: Optional[MealInfo] = None
    # indices into left.events / right.events
    identical_left: FrozenSet[int] = frozenset()
    identical_right: FrozenSet[int] = frozenset()


# ---------------------------------------------------------------------------
# Identical classes
# ---------------------------------------------------------------------------


def events_match(a: EventItem, b: EventItem) -> bool:
    """
    Same class: course, group, start and end agree. Venue and tutor are ignored.
    """
    return a.course == b.course and a.group == b.group and a.start_time == b.start_time and a.end_time == b.end_time


def identical_indices(
    left: Sequence[EventItem], right: Sequence[EventItem]
) -> Tuple[FrozenSet[int], FrozenSet[int]]:
    left_hits = set()
    right_hits = set()
    for li, le in enumerate(left):
        for ri, re_ in enumerate(right):
            if events_match(le, re_):
                left_hits.add(li)
                right_hits.add(ri)
    return frozenset(left_hits), frozenset(right_hits)


def has_identical_class(left: Sequence[EventItem], right: Sequence[EventItem]) -> bool:
    return any(events_match(le, re_) for le in left for re_ in right)


# ---------------------------------------------------------------------------
# Travel
# ---------------------------------------------------------------------------


def calculate_travel_info(left: Sequence[EventItem], right: Sequence[EventItem], wait_minutes: int) -> TravelInfo:
    """
    Compare first starts (travel to school) and last ends (travel home).
    A difference equal to `wait_minutes` is still fine.
    """
    if not left or not right:
        return TravelInfo(
            can_travel_to=False,
            can_travel_from=False,
            left_earliest=None,
            right_earliest=None,
            left_latest=None,
            right_latest=None,
            to_diff=0,
            from_diff=0,
        )

    def start(e: EventItem) -> int:
        return time_to_minutes(e.start_time)

    def end(e: EventItem) -> int:
        return time_to_minutes(e.end_time)

    # min()/max() keep the first item on ties
    left_earliest = min(left, key=start).start_time
    right_earliest = min(right, key=start).start_time
    left_latest = max(left, key=end).end_time
    right_latest = max(right, key=end).end_time

    to_diff = abs(time_to_minutes(left_earliest) - time_to_minutes(right_earliest))
    from_diff = abs(time_to_minutes(left_latest) - time_to_minutes(right_latest))

    return TravelInfo(
        can_travel_to=to_diff <= wait_minutes,
        can_travel_from=from_diff <= wait_minutes,
        left_earliest=left_earliest,
        right_earliest=right_earliest,
        left_latest=left_latest,
        right_latest=right_latest,
        to_diff=to_diff,
        from_diff=from_diff,
    )


def travel_matches(info: TravelInfo, direction: TravelDirection) -> bool:
    if direction == TravelDirection.TO:
        return info.can_travel_to
    if direction == TravelDirection.FROM:
        return info.can_travel_from
    if direction == TravelDirection.BOTH:
        return info.can_travel_to and info.can_travel_from
    if direction == TravelDirection.EITHER:
        return info.can_travel_to or info.can_travel_from
    raise ValueError(f"Unknown travel direction: {direction!r}")


# ---------------------------------------------------------------------------
# Meals
# ---------------------------------------------------------------------------


def find_gaps(events: Sequence[EventItem]) -> List[Gap]:
    """
    Free intervals of one day: before the first class, between classes and
    after the last class. Back-to-back classes leave no gap.
    """
    if not events:
        return []

    ordered = sorted(events, key=lambda e: time_to_minutes(e.start_time))
    gaps: List[Gap] = []

    first_start = time_to_minutes(ordered[0].start_time)
    if first_start > 0:
        gaps.append(Gap(0, first_start))

    for current, nxt in zip(ordered, ordered[1:]):
        current_end = time_to_minutes(current.end_time)
        next_start = time_to_minutes(nxt.start_time)
        if next_start > current_end:
            gaps.append(Gap(current_end, next_start))

    last_end = time_to_minutes(ordered[-1].end_time)
    if last_end < MINUTES_PER_DAY:
        gaps.append(Gap(last_end, MINUTES_PER_DAY))

    return gaps


def is_available_for_meal(
    events: Sequence[EventItem],
    meal_start: int,
    meal_end: int,
    buffer: int = MEAL_BUFFER_MINUTES,
) -> bool:
    """
    Whether someone is on campus around a meal window.

    Requires the day to reach the window on both sides AND a class ending
    near the window start as well as a class starting near the window end.
    A day spanning the window with nothing close to it does not count.
    """
    if not events:
        return False

    starts = [time_to_minutes(e.start_time) for e in events]
    ends = [time_to_minutes(e.end_time) for e in events]

    reaches_start = max(ends) >= meal_start - buffer
    reaches_end = min(starts) <= meal_end + buffer

    ends_near = any(
        meal_start - buffer <= end <= meal_end + buffer or meal_start - 2 * buffer <= end <= meal_start for end in ends
    )
    starts_near = any(
        meal_start - buffer <= start <= meal_end + buffer or meal_end <= start <= meal_end + 2 * buffer
        for start in starts
    )

    return reaches_start and reaches_end and ends_near and starts_near


def find_overlapping_gap(
    left_gaps: Sequence[Gap],
    right_gaps: Sequence[Gap],
    window_start: int,
    window_end: int,
    min_duration: int = DEFAULT_MIN_MEAL_MINUTES,
) -> Optional[Gap]:
    """
    First (left, right) gap pair whose overlap inside the window lasts at
    least `min_duration`. Left gaps are the outer loop.
    """
    for left_gap in left_gaps:
        for right_gap in right_gaps:
            start = max(left_gap.start, right_gap.start, window_start)
            end = min(left_gap.end, right_gap.end, window_end)
            if end - start >= min_duration:
                return Gap(start, end)
    return None


def _shared_meal_gap(
    left: Sequence[EventItem],
    right: Sequence[EventItem],
    left_gaps: Sequence[Gap],
    right_gaps: Sequence[Gap],
    start_hour: int,
    end_hour: int,
    min_duration: int,
) -> Optional[Gap]:
    start = start_hour * 60
    end = end_hour * 60
    if not (is_available_for_meal(left, start, end) and is_available_for_meal(right, start, end)):
        return None
    return find_overlapping_gap(left_gaps, right_gaps, start, end, min_duration)


def calculate_meal_info(
    left: Sequence[EventItem],
    right: Sequence[EventItem],
    config: MealConfig = MealConfig(),
    min_duration: int = DEFAULT_MIN_MEAL_MINUTES,
) -> MealInfo:
    """
    Lunch and dinner results for one day, computed independently.
    """
    if not left or not right:
        return MealInfo(can_eat_lunch=False, can_eat_dinner=False)

    left_gaps = find_gaps(left)
    right_gaps = find_gaps(right)

    lunch = _shared_meal_gap(left, right, left_gaps, right_gaps, config.lunch_start, config.lunch_end, min_duration)
    dinner = _shared_meal_gap(
        left, right, left_gaps, right_gaps, config.dinner_start, config.dinner_end, min_duration
    )

    return MealInfo(
        can_eat_lunch=lunch is not None,
        can_eat_dinner=dinner is not None,
        lunch_gap_start=minutes_to_time(lunch.start) if lunch else None,
        lunch_gap_end=minutes_to_time(lunch.end) if lunch else None,
        dinner_gap_start=minutes_to_time(dinner.start) if dinner else None,
        dinner_gap_end=minutes_to_time(dinner.end) if dinner else None,
    )


def meal_matches(info: MealInfo, meal_type: MealType) -> bool:
    if meal_type == MealType.LUNCH:
        return info.can_eat_lunch
    if meal_type == MealType.DINNER:
        return info.can_eat_dinner
    raise ValueError(f"Unknown meal type: {meal_type!r}")


# ---------------------------------------------------------------------------
# Compare view
# ---------------------------------------------------------------------------


def get_all_dates(left: Sequence[GroupedEvent], right: Sequence[GroupedEvent]) -> List[str]:
    return sorted({g.sort_key for g in left} | {g.sort_key for g in right})


def _day_passes(
    left: Optional[GroupedEvent],
    right: Optional[GroupedEvent],
    compare_filter: CompareFilter,
    travel_config: TravelConfig,
    meal_config: MealConfig,
) -> bool:
    if compare_filter == CompareFilter.NONE:
        return True
    if left is None or right is None:
        return False

    if compare_filter == CompareFilter.COMMON_DAYS:
        return bool(left.events) and bool(right.events)
    if compare_filter == CompareFilter.IDENTICAL:
        return has_identical_class(left.events, right.events)
    if compare_filter == CompareFilter.TRAVEL:
        info = calculate_travel_info(left.events, right.events, travel_config.wait_minutes)
        return travel_matches(info, travel_config.direction)
    if compare_filter == CompareFilter.EAT:
        return meal_matches(calculate_meal_info(left.events, right.events, meal_config), meal_config.type)

    raise ValueError(f"Unknown compare filter: {compare_filter!r}")


def filter_compare_dates(
    left: Sequence[GroupedEvent],
    right: Sequence[GroupedEvent],
    compare_filter: CompareFilter = CompareFilter.NONE,
    travel_config: TravelConfig = TravelConfig(),
    meal_config: MealConfig = MealConfig(),
) -> List[str]:
    """
    Sort keys (ascending) of the days that pass `compare_filter`.
    """
    left_by_key = {g.sort_key: g for g in left}
    right_by_key = {g.sort_key: g for g in right}
    return [
        key
        for key in get_all_dates(left, right)
        if _day_passes(left_by_key.get(key), right_by_key.get(key), compare_filter, travel_config, meal_config)
    ]


def build_compare_days(
    left: Sequence[GroupedEvent],
    right: Sequence[GroupedEvent],
    compare_filter: CompareFilter = CompareFilter.NONE,
    travel_config: TravelConfig = TravelConfig(),
    meal_config: MealConfig = MealConfig(),
) -> List[CompareDay]:
    """
    Days passing `compare_filter`, each with the details the filter is about:
    travel info, meal info or identical item indices.
    """
    left_by_key: Dict[str, GroupedEvent] = {g.sort_key: g for g in left}
    right_by_key: Dict[str, GroupedEvent] = {g.sort_key: g for g in right}

    days: List[CompareDay] = []
    for key in filter_compare_dates(left, right, compare_filter, travel_config, meal_config):
        lg = left_by_key.get(key)
        rg = right_by_key.get(key)
        left_events = lg.events if lg else ()
        right_events = rg.events if rg else ()

        travel = None
        meal = None
        identical: Tuple[FrozenSet[int], FrozenSet[int]] = (frozenset(), frozenset())

        if compare_filter == CompareFilter.TRAVEL:
            travel = calculate_travel_info(left_events, right_events, travel_config.wait_minutes)
        elif compare_filter == CompareFilter.EAT:
            meal = calculate_meal_info(left_events, right_events, meal_config)
        elif compare_filter == CompareFilter.IDENTICAL:
            identical = identical_indices(left_events, right_events)

        days.append(
            CompareDay(
                sort_key=key,
                left=lg,
                right=rg,
                travel=travel,
                meal=meal,
                identical_left=identical[0],
                identical_right=identical[1],
            )
        )
    return days

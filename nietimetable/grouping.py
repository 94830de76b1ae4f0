"""
Filtering and grouping of events by date.

Every (event, date) pair is filtered on its own, so an event with three
dates may show up on some of them only. Surviving occurrences are grouped
by sort key; groups are ordered by date, events inside a group by start time.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from nietimetable.config import CUSTOM_EVENT_LABELS
from nietimetable.model import CustomEvent, EventItem, EventOverride, GroupedEvent, TimetableEvent, event_instance_key
from nietimetable.timeutils import (
    create_sort_key,
    format_date_display,
    matches_event_search,
    parse_sort_key,
    today_sort_key,
)


@dataclass(frozen=True)
class FilterOptions:
    search_query: str = ""
    # empty = all courses
    selected_courses: FrozenSet[str] = frozenset()
    hide_past_dates: bool = False
    # 'YYYY-MM-DD'; only month and day are compared
    selected_date: Optional[str] = None

    @property
    def active(self) -> bool:
        return bool(self.search_query or self.selected_courses or self.hide_past_dates or self.selected_date)


@dataclass(frozen=True)
class GroupingResult:
    grouped_by_date: Tuple[GroupedEvent, ...]
    total_events: int
    filtered_count: int


@dataclass
class _Overlay:
    overrides: Dict[str, EventOverride] = field(default_factory=dict)
    deletions: FrozenSet[str] = frozenset()


def course_filter_label(event: TimetableEvent) -> str:
    """
    Name an event goes by under the course filter.
    Custom events use their type label, not their course code.
    """
    if isinstance(event, CustomEvent):
        return CUSTOM_EVENT_LABELS.get(event.event_type, "Custom")
    return event.course


def course_labels(events: Iterable[TimetableEvent]) -> List[str]:
    """
    Sorted distinct course filter labels.
    """
    return sorted({course_filter_label(e) for e in events})


def _month_day(date_str: str) -> Tuple[int, int]:
    d = parse_sort_key(create_sort_key(date_str))
    return d.month, d.day


def _event_item(event: TimetableEvent, date_str: str, sort_key: str, overlay: _Overlay) -> Tuple[Optional[str], EventItem]:
    if isinstance(event, CustomEvent):
        return None, EventItem(
            course=event.course,
            group=event.group,
            start_time=event.start_time,
            end_time=event.end_time,
            venue=event.venue,
            tutor=event.tutor,
            date=sort_key,
            is_custom=True,
            custom_event_id=event.id,
            event_type=event.event_type,
            description=event.description,
        )

    key = event_instance_key(event.course, event.group, date_str, event.start_time)
    override = overlay.overrides.get(key) or EventOverride()

    def pick(new: Optional[str], old: str) -> Tuple[str, Optional[str]]:
        # (value to show, original value if overridden)
        return (old, None) if new is None else (new, old)

    venue, original_venue = pick(override.venue, event.venue)
    tutor, original_tutor = pick(override.tutor, event.tutor)
    start_time, original_start = pick(override.start_time, event.start_time)
    end_time, original_end = pick(override.end_time, event.end_time)

    return key, EventItem(
        course=event.course,
        group=event.group,
        start_time=start_time,
        end_time=end_time,
        venue=venue,
        tutor=tutor,
        date=sort_key,
        instance_key=key,
        is_edited=any(x is not None for x in (original_venue, original_tutor, original_start, original_end)),
        original_venue=original_venue,
        original_tutor=original_tutor,
        original_start_time=original_start,
        original_end_time=original_end,
    )


def filter_and_group(
    events: Optional[Sequence[TimetableEvent]],
    filters: FilterOptions = FilterOptions(),
    custom_events: Sequence[CustomEvent] = (),
    overrides: Optional[Dict[str, EventOverride]] = None,
    deletions: Iterable[str] = (),
    today: Optional[date] = None,
) -> GroupingResult:
    """
    Filter every event occurrence and group the survivors by date.

    `total_events` counts occurrences before filtering (deleted instances
    excluded). Without active filters `filtered_count` equals `total_events`.
    """
    if not events and not custom_events:
        return GroupingResult(grouped_by_date=(), total_events=0, filtered_count=0)

    overlay = _Overlay(overrides=overrides or {}, deletions=frozenset(deletions))
    today_key = today_sort_key(today)

    filter_month_day: Optional[Tuple[int, int]] = None
    if filters.selected_date:
        filter_month_day = _month_day(filters.selected_date)

    by_key: Dict[str, List[EventItem]] = defaultdict(list)
    total = 0
    filtered = 0

    for event in list(events or []) + list(custom_events):
        label = course_filter_label(event)

        for date_str in event.dates:
            key, item = _event_item(event, date_str, create_sort_key(date_str), overlay)
            if key is not None and key in overlay.deletions:
                continue

            total += 1
            sort_key = item.date

            if filters.hide_past_dates and sort_key < today_key:
                continue
            if filter_month_day is not None and _month_day(sort_key) != filter_month_day:
                continue
            if filters.selected_courses and label not in filters.selected_courses:
                continue
            if not matches_event_search(event.course, event.group, event.venue, event.tutor, sort_key, filters.search_query):
                continue

            filtered += 1
            by_key[sort_key].append(item)

    grouped = tuple(
        GroupedEvent(
            date=format_date_display(sort_key),
            sort_key=sort_key,
            # sort() is stable: same start time keeps insertion order
            events=tuple(sorted(by_key[sort_key], key=lambda e: e.start_time)),
        )
        for sort_key in sorted(by_key)
    )

    return GroupingResult(
        grouped_by_date=grouped,
        total_events=total,
        filtered_count=filtered if filters.active else total,
    )


def group_events(events: Sequence[TimetableEvent], search_query: str = "") -> Tuple[GroupedEvent, ...]:
    """
    Group one timetable for the compare view, optionally narrowed by a search.
    """
    return filter_and_group(events, FilterOptions(search_query=search_query)).grouped_by_date

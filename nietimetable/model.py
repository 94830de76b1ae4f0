"""
Central data model definitions used across the project.

This module defines the canonical structure of timetable events so that:
- parsers, grouping, compare and share code agree on field names
- serialized data keeps the camelCase keys existing share links and stores use
- parsed data stays immutable downstream (frozen dataclasses, tuple dates)
"""

from __future__ import annotations

import secrets
import time
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Optional, Tuple


CUSTOM_EVENT_TYPES = ("custom", "upgrading", "cohort")


def generate_id(prefix: str = "id") -> str:
    """
    Generate a unique ID like 'custom_1767225600000_3f9a1c2e'.
    """
    return f"{prefix}_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


def _str(data: Dict[str, Any], key: str) -> str:
    value = data.get(key, "")
    return "" if value is None else str(value)


@dataclass(frozen=True)
class TimetableEvent:
    """
    One recurring class slot. Each entry of `dates` is one occurrence.

    Times are 4-digit 24-hour strings ("0830"), dates are "YYYY-MM-DD"
    or legacy "DD/MM".
    """

    course: str
    group: str
    day: str
    start_time: str
    end_time: str
    dates: Tuple[str, ...]
    venue: str
    tutor: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "course": self.course,
            "group": self.group,
            "day": self.day,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "dates": list(self.dates),
            "venue": self.venue,
            "tutor": self.tutor,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TimetableEvent":
        dates = data.get("dates", [])
        if not isinstance(dates, list):
            raise TypeError("event 'dates' must be a list")
        return cls(
            course=_str(data, "course"),
            group=_str(data, "group"),
            day=_str(data, "day"),
            start_time=_str(data, "startTime"),
            end_time=_str(data, "endTime"),
            dates=tuple(str(d) for d in dates),
            venue=_str(data, "venue"),
            tutor=_str(data, "tutor"),
        )


@dataclass(frozen=True)
class CustomEvent(TimetableEvent):
    """
    An event the user added on top of an imported timetable.
    """

    id: str = ""
    event_type: str = "custom"
    description: str = ""
    created_at: int = 0
    updated_at: int = 0
    group_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update(
            {
                "id": self.id,
                "eventType": self.event_type,
                "description": self.description,
                "createdAt": self.created_at,
                "updatedAt": self.updated_at,
            }
        )
        if self.group_id is not None:
            data["groupId"] = self.group_id
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CustomEvent":
        base = TimetableEvent.from_dict(data)
        event_type = _str(data, "eventType") or "custom"
        if event_type not in CUSTOM_EVENT_TYPES:
            raise ValueError(f"Unknown custom event type: {event_type!r}")
        group_id = data.get("groupId")
        return cls(
            course=base.course,
            group=base.group,
            day=base.day,
            start_time=base.start_time,
            end_time=base.end_time,
            dates=base.dates,
            venue=base.venue,
            tutor=base.tutor,
            id=_str(data, "id"),
            event_type=event_type,
            description=_str(data, "description"),
            created_at=int(data.get("createdAt") or 0),
            updated_at=int(data.get("updatedAt") or 0),
            group_id=None if group_id is None else str(group_id),
        )


@dataclass(frozen=True)
class EventItem:
    """
    One occurrence of an event on a resolved date, ready for display.
    """

    course: str
    group: str
    start_time: str
    end_time: str
    venue: str
    tutor: str
    date: str = ""
    is_custom: bool = False
    custom_event_id: Optional[str] = None
    event_type: Optional[str] = None
    description: Optional[str] = None
    instance_key: Optional[str] = None
    is_edited: bool = False
    original_venue: Optional[str] = None
    original_tutor: Optional[str] = None
    original_start_time: Optional[str] = None
    original_end_time: Optional[str] = None


@dataclass(frozen=True)
class GroupedEvent:
    date: str
    sort_key: str
    events: Tuple[EventItem, ...]


@dataclass(frozen=True)
class Gap:
    """
    Free interval within a day, in minutes since midnight.
    """

    start: int
    end: int

    @property
    def duration(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class TravelInfo:
    can_travel_to: bool
    can_travel_from: bool
    left_earliest: Optional[str]
    right_earliest: Optional[str]
    left_latest: Optional[str]
    right_latest: Optional[str]
    to_diff: int
    from_diff: int


@dataclass(frozen=True)
class MealInfo:
    can_eat_lunch: bool
    can_eat_dinner: bool
    lunch_gap_start: Optional[str] = None
    lunch_gap_end: Optional[str] = None
    dinner_gap_start: Optional[str] = None
    dinner_gap_end: Optional[str] = None


@dataclass(frozen=True)
class EventOverride:
    """
    Edited fields of one imported event occurrence. None means unchanged.
    """

    venue: Optional[str] = None
    tutor: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    updated_at: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"updatedAt": self.updated_at}
        for key, value in (
            ("venue", self.venue),
            ("tutor", self.tutor),
            ("startTime", self.start_time),
            ("endTime", self.end_time),
        ):
            if value is not None:
                data[key] = value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EventOverride":
        def opt(key: str) -> Optional[str]:
            value = data.get(key)
            return None if value is None else str(value)

        return cls(
            venue=opt("venue"),
            tutor=opt("tutor"),
            start_time=opt("startTime"),
            end_time=opt("endTime"),
            updated_at=int(data.get("updatedAt") or 0),
        )


@dataclass
class OverrideSet:
    """
    Overrides and deletions for one timetable, keyed by event instance key.
    """

    overrides: Dict[str, EventOverride] = field(default_factory=dict)
    deletions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overrides": {k: v.to_dict() for k, v in self.overrides.items()},
            "deletions": list(self.deletions),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OverrideSet":
        raw = data.get("overrides") or {}
        deletions = data.get("deletions") or []
        return cls(
            overrides={str(k): EventOverride.from_dict(v) for k, v in raw.items()},
            deletions=[str(x) for x in deletions],
        )


@dataclass(frozen=True)
class ShareData:
    """
    The unit a share link carries.

    Version 2 adds custom events; a payload without custom events is
    written in the original version 1 shape.
    """

    events: Tuple[TimetableEvent, ...]
    file_name: str
    custom_events: Tuple[CustomEvent, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        if self.custom_events:
            return {
                "version": 2,
                "events": [e.to_dict() for e in self.events],
                "customEvents": [e.to_dict() for e in self.custom_events],
                "fileName": self.file_name,
            }
        return {
            "events": [e.to_dict() for e in self.events],
            "fileName": self.file_name,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ShareData":
        events = data["events"]
        if not isinstance(events, list):
            raise TypeError("'events' must be a list")
        custom: Iterable[Dict[str, Any]] = []
        if data.get("version") == 2:
            custom = data.get("customEvents") or []
        return cls(
            events=tuple(TimetableEvent.from_dict(e) for e in events),
            file_name=_str(data, "fileName"),
            custom_events=tuple(CustomEvent.from_dict(e) for e in custom),
        )


@dataclass
class Timetable:
    """
    A named timetable as kept by the store.
    """

    id: str
    name: str
    events: List[TimetableEvent]
    file_name: Optional[str] = None
    is_primary: bool = False
    updated_at: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "events": [e.to_dict() for e in self.events],
            "fileName": self.file_name,
            "isPrimary": self.is_primary,
        }
        if self.updated_at is not None:
            data["updatedAt"] = self.updated_at
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Timetable":
        file_name = data.get("fileName")
        updated_at = data.get("updatedAt")
        return cls(
            id=_str(data, "id"),
            name=_str(data, "name"),
            events=[TimetableEvent.from_dict(e) for e in data.get("events") or []],
            file_name=None if file_name is None else str(file_name),
            is_primary=bool(data.get("isPrimary", False)),
            updated_at=None if updated_at is None else int(updated_at),
        )


# ---------------------------------------------------------------------------
# Event instances (overrides / deletions)
# ---------------------------------------------------------------------------


def event_instance_key(course: str, group: str, date: str, start_time: str) -> str:
    """
    Key of one occurrence: "{course}|{group}|{date}|{startTime}".
    """
    return f"{course}|{group}|{date}|{start_time}"


def apply_overrides_to_events(
    events: Iterable[TimetableEvent],
    overrides: Dict[str, EventOverride],
    deletions: Iterable[str],
) -> List[TimetableEvent]:
    """
    Expand events to one event per date with overrides baked in.
    Deleted instances are left out.
    """
    deleted = set(deletions)
    out: List[TimetableEvent] = []

    for event in events:
        for date in event.dates:
            key = event_instance_key(event.course, event.group, date, event.start_time)
            if key in deleted:
                continue

            override = overrides.get(key)
            if override is None:
                out.append(replace(event, dates=(date,)))
                continue

            out.append(
                replace(
                    event,
                    dates=(date,),
                    start_time=override.start_time if override.start_time is not None else event.start_time,
                    end_time=override.end_time if override.end_time is not None else event.end_time,
                    venue=override.venue if override.venue is not None else event.venue,
                    tutor=override.tutor if override.tutor is not None else event.tutor,
                )
            )

    return out

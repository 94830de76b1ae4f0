"""
Persistent storage for the user's timetables.

This module manages the file:

    data/timetables.json

It holds every imported timetable, which one is active, and per timetable
the custom events and the edits (overrides / deletions) of imported events.

The file format is versioned. Older layouts are upgraded step by step on
load, one migration function per version:

    v0  legacy single timetable: {"events": [...], "fileName": "..."}
    v1  {"version": 1, "timetables": [...], "activeTimetableId": ...}
    v2  v1 + "customEvents" + "eventOverrides", all dates 'YYYY-MM-DD'

Parsers and the share codec only ever see the current model; migrating
old data is this module's job alone.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from nietimetable.config import DEFAULT_TIMETABLE_NAMES, default_store_path
from nietimetable.model import CustomEvent, OverrideSet, Timetable, TimetableEvent, generate_id
from nietimetable.timeutils import migrate_date_format


logger = logging.getLogger(__name__)

STORE_VERSION = 2


@dataclass
class TimetableStore:
    timetables: List[Timetable] = field(default_factory=list)
    active_id: Optional[str] = None
    custom_events: Dict[str, List[CustomEvent]] = field(default_factory=dict)
    overrides: Dict[str, OverrideSet] = field(default_factory=dict)

    def find(self, ref: str) -> Optional[Timetable]:
        """
        Look a timetable up by id, by name (case-insensitive) or by its
        1-based position.
        """
        ref = ref.strip()
        for t in self.timetables:
            if t.id == ref:
                return t
        for t in self.timetables:
            if t.name.lower() == ref.lower():
                return t
        if ref.isdigit() and 1 <= int(ref) <= len(self.timetables):
            return self.timetables[int(ref) - 1]
        return None

    @property
    def active(self) -> Optional[Timetable]:
        if self.active_id is not None:
            for t in self.timetables:
                if t.id == self.active_id:
                    return t
        return self.timetables[0] if self.timetables else None

    def next_default_name(self) -> str:
        taken = {t.name for t in self.timetables}
        for name in DEFAULT_TIMETABLE_NAMES:
            if name not in taken:
                return name
        return f"Timetable {len(self.timetables) + 1}"

    def add_timetable(
        self,
        events: List[TimetableEvent],
        file_name: Optional[str],
        name: Optional[str] = None,
        custom_events: Optional[List[CustomEvent]] = None,
    ) -> Timetable:
        """
        Add a timetable. The first one becomes primary and active.
        """
        is_first = not self.timetables
        timetable = Timetable(
            id=generate_id("tt"),
            name=name or ("My Timetable" if is_first else self.next_default_name()),
            events=list(events),
            file_name=file_name,
            is_primary=is_first,
            updated_at=int(time.time() * 1000),
        )
        self.timetables.append(timetable)
        if is_first:
            self.active_id = timetable.id
        if custom_events:
            self.custom_events[timetable.id] = list(custom_events)
        return timetable

    def remove_timetable(self, timetable_id: str) -> bool:
        before = len(self.timetables)
        self.timetables = [t for t in self.timetables if t.id != timetable_id]
        self.custom_events.pop(timetable_id, None)
        self.overrides.pop(timetable_id, None)
        if self.active_id == timetable_id:
            self.active_id = self.timetables[0].id if self.timetables else None
        return len(self.timetables) != before

    def custom_events_for(self, timetable_id: str) -> List[CustomEvent]:
        return self.custom_events.get(timetable_id, [])

    def overrides_for(self, timetable_id: str) -> OverrideSet:
        return self.overrides.setdefault(timetable_id, OverrideSet())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": STORE_VERSION,
            "timetables": [t.to_dict() for t in self.timetables],
            "activeTimetableId": self.active_id,
            "customEvents": {k: [e.to_dict() for e in v] for k, v in self.custom_events.items()},
            "eventOverrides": {k: v.to_dict() for k, v in self.overrides.items() if v.overrides or v.deletions},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TimetableStore":
        return cls(
            timetables=[Timetable.from_dict(t) for t in data.get("timetables") or []],
            active_id=data.get("activeTimetableId"),
            custom_events={
                str(k): [CustomEvent.from_dict(e) for e in v] for k, v in (data.get("customEvents") or {}).items()
            },
            overrides={str(k): OverrideSet.from_dict(v) for k, v in (data.get("eventOverrides") or {}).items()},
        )


# ---------------------------------------------------------------------------
# Migrations
# ---------------------------------------------------------------------------


def _migrate_v0_to_v1(data: Dict[str, Any]) -> Dict[str, Any]:
    events = data.get("events")
    if not events:
        return {"version": 1, "timetables": [], "activeTimetableId": None}

    timetable_id = generate_id("tt")
    return {
        "version": 1,
        "timetables": [
            {
                "id": timetable_id,
                "name": "My Timetable",
                "events": events,
                "fileName": data.get("fileName"),
                "isPrimary": True,
            }
        ],
        "activeTimetableId": timetable_id,
    }


def _migrate_event_dates(event: Dict[str, Any]) -> Dict[str, Any]:
    return {**event, "dates": [migrate_date_format(str(d)) for d in event.get("dates") or []]}


def _migrate_v1_to_v2(data: Dict[str, Any]) -> Dict[str, Any]:
    timetables = []
    for t in data.get("timetables") or []:
        timetables.append({**t, "events": [_migrate_event_dates(e) for e in t.get("events") or []]})

    custom = {
        k: [_migrate_event_dates(e) for e in v] for k, v in (data.get("customEvents") or {}).items()
    }
    return {
        **data,
        "version": 2,
        "timetables": timetables,
        "customEvents": custom,
        "eventOverrides": data.get("eventOverrides") or {},
    }


MIGRATIONS: Dict[int, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
    0: _migrate_v0_to_v1,
    1: _migrate_v1_to_v2,
}


def migrate(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Upgrade raw store data to STORE_VERSION.
    """
    version = int(data.get("version", 0))
    if version > STORE_VERSION:
        raise ValueError(f"Store version {version} is newer than supported ({STORE_VERSION})")

    while version < STORE_VERSION:
        logger.info("Migrating timetable store v%d -> v%d", version, version + 1)
        data = MIGRATIONS[version](data)
        version = int(data["version"])
    return data


# ---------------------------------------------------------------------------
# Load / save
# ---------------------------------------------------------------------------


def load_store(path: str | Path | None = None) -> TimetableStore:
    """
    Load the timetable store.

    Returns an empty store if the file does not exist or is invalid.
    This function never crashes the application on a corrupted file.
    """
    store_path = Path(path) if path is not None else default_store_path()

    # First run: nothing imported yet
    if not store_path.exists():
        return TimetableStore()

    try:
        data = json.loads(store_path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            return TimetableStore()
        return TimetableStore.from_dict(migrate(data))
    except (OSError, ValueError, TypeError, KeyError, AttributeError, OverflowError, RecursionError) as e:
        logger.warning("Ignoring unreadable timetable store %s: %s", store_path, e)
        return TimetableStore()


def save_store(store: TimetableStore, path: str | Path | None = None) -> None:
    """
    Save the store, always in the current format.
    Creates parent directories if needed.
    """
    store_path = Path(path) if path is not None else default_store_path()
    store_path.parent.mkdir(parents=True, exist_ok=True)
    store_path.write_text(json.dumps(store.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")

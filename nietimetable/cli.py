"""
CLI (Command Line Interface).

Quick terminal commands around the timetable core, e.g.:

    nietimetable import timetable.html
    nietimetable show --search "mar 2" --hide-past
    nietimetable compare 1 2 --filter eat --meal lunch
    nietimetable export 1 out.ics
    nietimetable share 1
    nietimetable open "https://.../#share=..."

All state lives in one JSON store (see storage.py); --store points elsewhere.
"""

from __future__ import annotations

import argparse
import logging
import time
from dataclasses import replace
from typing import Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

import requests
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from nietimetable.compare import CompareDay, CompareFilter, build_compare_days
from nietimetable.config import DEFAULT_SHARE_BASE_URL, MealConfig, MealType, TravelConfig, TravelDirection
from nietimetable.errors import Err
from nietimetable.export_ics import default_ics_filename, export_events_to_ics
from nietimetable.fetch import load_source
from nietimetable.grouping import FilterOptions, filter_and_group, group_events
from nietimetable.model import (
    CustomEvent,
    EventItem,
    EventOverride,
    GroupedEvent,
    Timetable,
    TimetableEvent,
    event_instance_key,
    generate_id,
)
from nietimetable.parse import parse_timetable_source
from nietimetable.share import create_share_url, decode_share_data, encode_share_data, extract_share_token
from nietimetable.storage import TimetableStore, load_store, save_store
from nietimetable.timeutils import (
    create_sort_key,
    day_name,
    format_date_display,
    format_time_12h,
    format_tutor,
    format_venue,
    migrate_date_format,
    parse_sort_key,
    time_to_minutes,
)


console = Console()
logger = logging.getLogger(__name__)

E = TypeVar("E", bound=TimetableEvent)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _normalize_time(value: str) -> str:
    """
    Accept '0830' or '08:30', return '0830'. Raises ValueError.
    """
    hhmm = value.strip().replace(":", "").zfill(4)
    time_to_minutes(hhmm)
    return hhmm


def _normalize_date(value: str) -> str:
    """
    Accept 'YYYY-MM-DD' or 'DD/MM', return 'YYYY-MM-DD'. Raises ValueError.
    """
    key = create_sort_key(value)
    parse_sort_key(key)
    return key


def _parse_hour_range(value: str) -> Tuple[int, int]:
    """
    '11-14' -> (11, 14)
    """
    try:
        start_s, end_s = value.split("-", 1)
        start, end = int(start_s), int(end_s)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected START-END hours, got {value!r}")
    if not (0 <= start < end <= 24):
        raise argparse.ArgumentTypeError(f"invalid hour range: {value!r}")
    return start, end


def _resolve(store: TimetableStore, ref: Optional[str]) -> Optional[Timetable]:
    """
    Timetable by reference, or the active one when no reference is given.
    Prints an error and returns None if nothing matches.
    """
    timetable = store.find(ref) if ref else store.active
    if timetable is None:
        if ref:
            console.print(f"[red]No timetable matches {ref!r}.[/] Use 'list' to see timetables.")
        else:
            console.print("[red]No timetables yet.[/] Import one with 'import <file>'.")
    return timetable


def _iso_dates(events: Sequence[E]) -> List[E]:
    """
    Store dates as 'YYYY-MM-DD' (the HTML export uses 'DD/MM').
    """
    return [replace(e, dates=tuple(migrate_date_format(d) for d in e.dates)) for e in events]


def _time_range(item: EventItem) -> str:
    return f"{format_time_12h(item.start_time)} - {format_time_12h(item.end_time)}"


def _item_label(item: EventItem, show_tutor: bool = False) -> str:
    bits = [_time_range(item), escape(f"{item.course} {item.group}".strip())]
    if item.is_custom:
        bits[-1] += f" ({item.event_type})"
    if item.is_edited:
        bits[-1] += " (edited)"
    if item.venue:
        bits.append(escape(format_venue(item.venue)))
    if show_tutor and item.tutor:
        bits.append(escape(format_tutor(item.tutor)))
    return " | ".join(bits)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _cmd_import(args: argparse.Namespace, store: TimetableStore) -> int:
    """
    Import an HTML export or .ics file (path or URL) as a new timetable.
    """
    try:
        text, file_name = load_source(args.source)
    except (OSError, requests.RequestException) as e:
        console.print(f"[red]Could not read {args.source}:[/] {e}")
        return 1

    result = parse_timetable_source(text, file_name)
    if isinstance(result, Err):
        console.print(f"[red]Import failed ({result.error.kind.value}):[/] {result.error.message}")
        return 1

    parsed = result.value
    timetable = store.add_timetable(
        _iso_dates(parsed.events),
        parsed.file_name,
        name=args.name,
        custom_events=_iso_dates(parsed.custom_events),
    )
    save_store(store, args.store)

    n = sum(len(e.dates) for e in parsed.events)
    console.print(f"Imported [bold cyan]{escape(timetable.name)}[/] from {file_name}: {len(parsed.events)} classes, {n} sessions")
    if parsed.custom_events:
        console.print(f"  + {len(parsed.custom_events)} custom events")
    return 0


def _cmd_list(args: argparse.Namespace, store: TimetableStore) -> int:
    if not store.timetables:
        console.print("No timetables yet.")
        return 0

    active = store.active
    table = Table(title="Timetables", box=box.SIMPLE)
    table.add_column("#", justify="right")
    table.add_column("Name")
    table.add_column("File")
    table.add_column("Classes", justify="right")
    table.add_column("Custom", justify="right")

    for i, t in enumerate(store.timetables, start=1):
        marker = " [green]*[/]" if active is not None and t.id == active.id else ""
        name = f"[bold cyan]{escape(t.name)}[/]{marker}"
        if t.is_primary:
            name += " (primary)"
        table.add_row(str(i), name, t.file_name or "", str(len(t.events)), str(len(store.custom_events_for(t.id))))

    console.print(table)
    return 0


def _cmd_use(args: argparse.Namespace, store: TimetableStore) -> int:
    timetable = _resolve(store, args.timetable)
    if timetable is None:
        return 1
    store.active_id = timetable.id
    save_store(store, args.store)
    console.print(f"Active timetable: {escape(timetable.name)}")
    return 0


def _cmd_remove(args: argparse.Namespace, store: TimetableStore) -> int:
    timetable = _resolve(store, args.timetable)
    if timetable is None:
        return 1
    store.remove_timetable(timetable.id)
    save_store(store, args.store)
    console.print(f"Removed: {escape(timetable.name)}")
    return 0


def _print_groups(groups: Sequence[GroupedEvent], show_tutor: bool) -> None:
    for group in groups:
        table = Table(title=group.date, box=box.SIMPLE, title_justify="left")
        table.add_column("Time")
        table.add_column("Course")
        table.add_column("Venue")
        if show_tutor:
            table.add_column("Tutor")

        for item in group.events:
            course = f"[bold cyan]{escape(item.course)}[/] {escape(item.group)}".strip()
            if item.is_custom:
                course += f" [magenta]{item.event_type}[/]"
            if item.is_edited:
                course += " [yellow](edited)[/]"
            row = [_time_range(item), course, escape(format_venue(item.venue))]
            if show_tutor:
                row.append(escape(format_tutor(item.tutor)))
            table.add_row(*row)

        console.print(table)


def _cmd_show(args: argparse.Namespace, store: TimetableStore) -> int:
    """
    Print a timetable grouped by date, after filters.
    """
    timetable = _resolve(store, args.timetable)
    if timetable is None:
        return 1

    selected_date = None
    if args.date:
        try:
            selected_date = _normalize_date(args.date)
        except ValueError:
            console.print(f"[red]Invalid date:[/] {args.date!r}")
            return 1

    filters = FilterOptions(
        search_query=args.search or "",
        selected_courses=frozenset(args.course or []),
        hide_past_dates=args.hide_past,
        selected_date=selected_date,
    )
    edits = store.overrides_for(timetable.id)
    try:
        result = filter_and_group(
            timetable.events,
            filters,
            custom_events=store.custom_events_for(timetable.id),
            overrides=edits.overrides,
            deletions=edits.deletions,
        )
        if result.grouped_by_date:
            _print_groups(result.grouped_by_date, args.tutor)
    except ValueError as e:
        console.print(f"[red]Timetable holds a malformed time or date:[/] {escape(str(e))}")
        return 1

    if not result.grouped_by_date:
        console.print("No events match your filters.")
        return 0

    console.print(f"Showing {result.filtered_count} of {result.total_events} sessions")
    return 0


def _compare_details(day: CompareDay) -> str:
    if day.travel is not None:
        t = day.travel
        return (
            f"TO: {t.left_earliest} vs {t.right_earliest} ({t.to_diff} min) | "
            f"FROM: {t.left_latest} vs {t.right_latest} ({t.from_diff} min)"
        )
    if day.meal is not None:
        m = day.meal
        parts = []
        if m.can_eat_lunch:
            parts.append(f"Lunch {format_time_12h(m.lunch_gap_start)} to {format_time_12h(m.lunch_gap_end)}")
        if m.can_eat_dinner:
            parts.append(f"Dinner {format_time_12h(m.dinner_gap_start)} to {format_time_12h(m.dinner_gap_end)}")
        return " | ".join(parts)
    return ""


def _side_text(group: Optional[GroupedEvent], highlighted: frozenset) -> str:
    if group is None or not group.events:
        return "[dim]-[/]"
    lines = []
    for i, item in enumerate(group.events):
        label = _item_label(item)
        lines.append(f"[green]{label}[/]" if i in highlighted else label)
    return "\n".join(lines)


def _compare_table(days: Sequence[CompareDay], left_name: str, right_name: str) -> Table:
    table = Table(box=box.SIMPLE, show_lines=True)
    table.add_column("Date")
    table.add_column(escape(left_name))
    table.add_column(escape(right_name))

    for day in days:
        heading = format_date_display(day.sort_key)
        details = _compare_details(day)
        if details:
            heading += f"\n[yellow]{details}[/]"
        table.add_row(
            heading,
            _side_text(day.left, day.identical_left),
            _side_text(day.right, day.identical_right),
        )
    return table


def _cmd_compare(args: argparse.Namespace, store: TimetableStore) -> int:
    """
    Compare two timetables day by day.
    """
    left = _resolve(store, args.left)
    if left is None:
        return 1
    right = _resolve(store, args.right)
    if right is None:
        return 1

    travel_config = TravelConfig(direction=TravelDirection(args.direction), wait_minutes=args.wait)
    meal_config = MealConfig(
        type=MealType(args.meal),
        lunch_start=args.lunch[0],
        lunch_end=args.lunch[1],
        dinner_start=args.dinner[0],
        dinner_end=args.dinner[1],
    )

    try:
        days = build_compare_days(
            group_events(left.events, args.search or ""),
            group_events(right.events, args.search or ""),
            CompareFilter(args.filter),
            travel_config,
            meal_config,
        )
        table = _compare_table(days, left.name, right.name)
    except ValueError as e:
        console.print(f"[red]Compare failed, a timetable holds a malformed time:[/] {escape(str(e))}")
        return 1

    if not days:
        console.print("No events match your filters.")
        return 0

    console.print(table)
    console.print(f"{len(days)} days")
    return 0


def _cmd_export(args: argparse.Namespace, store: TimetableStore) -> int:
    """
    Export a timetable (with custom events and edits) to an .ics file.
    """
    timetable = _resolve(store, args.timetable)
    if timetable is None:
        return 1

    out_path = args.out or default_ics_filename()
    if not out_path.lower().endswith(".ics"):
        out_path += ".ics"

    edits = store.overrides_for(timetable.id)
    events = list(timetable.events) + list(store.custom_events_for(timetable.id))
    try:
        n = export_events_to_ics(events, out_path, edits.overrides, edits.deletions)
    except ValueError as e:
        console.print(f"[red]Export failed:[/] {e}")
        return 1

    console.print(f"Exported {n} events to: {out_path}")
    return 0


def _cmd_share(args: argparse.Namespace, store: TimetableStore) -> int:
    timetable = _resolve(store, args.timetable)
    if timetable is None:
        return 1

    token = encode_share_data(
        timetable.events,
        timetable.file_name or timetable.name,
        store.custom_events_for(timetable.id),
    )
    console.print(create_share_url(token, args.base_url), soft_wrap=True)
    return 0


def _cmd_open(args: argparse.Namespace, store: TimetableStore) -> int:
    """
    Add a timetable from a share link (or a bare token).
    """
    token = extract_share_token(args.link)
    data = decode_share_data(token if token is not None else args.link)
    if data is None:
        console.print("[red]Invalid or corrupted share link.[/]")
        return 1

    # Old links may still carry 'DD/MM' dates
    events = _iso_dates(data.events)
    custom = _iso_dates(data.custom_events)

    timetable = store.add_timetable(events, data.file_name, name=args.name, custom_events=custom)
    save_store(store, args.store)
    console.print(f"Added shared timetable [bold cyan]{escape(timetable.name)}[/] ({len(events)} classes)")
    return 0


def _cmd_add_event(args: argparse.Namespace, store: TimetableStore) -> int:
    timetable = _resolve(store, args.timetable)
    if timetable is None:
        return 1

    try:
        start = _normalize_time(args.start)
        end = _normalize_time(args.end)
        dates = sorted({_normalize_date(d) for d in args.date})
    except ValueError as e:
        console.print(f"[red]Invalid value:[/] {e}")
        return 1

    if time_to_minutes(end) <= time_to_minutes(start):
        console.print("[red]End time must be after start time.[/]")
        return 1

    now = int(time.time() * 1000)
    event = CustomEvent(
        course=args.course,
        group=args.group or "",
        day=day_name(dates[0]),
        start_time=start,
        end_time=end,
        dates=tuple(dates),
        venue=args.venue or "",
        tutor=args.tutor or "",
        id=generate_id(args.type),
        event_type=args.type,
        description=(args.description or "")[:100],
        created_at=now,
        updated_at=now,
    )
    store.custom_events.setdefault(timetable.id, []).append(event)
    save_store(store, args.store)
    console.print(f"Added custom event {event.id} on {len(dates)} date(s)")
    return 0


def _cmd_remove_event(args: argparse.Namespace, store: TimetableStore) -> int:
    for timetable_id, events in store.custom_events.items():
        target = next((e for e in events if e.id == args.event_id), None)
        if target is None:
            continue
        # Linked sessions (same group_id) go together
        if target.group_id:
            kept = [e for e in events if e.group_id != target.group_id]
        else:
            kept = [e for e in events if e.id != target.id]
        store.custom_events[timetable_id] = kept
        save_store(store, args.store)
        console.print(f"Removed {len(events) - len(kept)} custom event(s)")
        return 0

    console.print(f"[red]No custom event with id {args.event_id!r}.[/]")
    return 1


def _instance_key(args: argparse.Namespace) -> str:
    return event_instance_key(args.course, args.group, _normalize_date(args.date), _normalize_time(args.start))


def _cmd_edit(args: argparse.Namespace, store: TimetableStore) -> int:
    """
    Override venue / tutor / times of one imported session.
    """
    timetable = _resolve(store, args.timetable)
    if timetable is None:
        return 1

    try:
        key = _instance_key(args)
        new_start = _normalize_time(args.new_start) if args.new_start else None
        new_end = _normalize_time(args.new_end) if args.new_end else None
    except ValueError as e:
        console.print(f"[red]Invalid value:[/] {e}")
        return 1

    edits = store.overrides_for(timetable.id)
    previous = edits.overrides.get(key, EventOverride())
    edits.overrides[key] = EventOverride(
        venue=args.venue if args.venue is not None else previous.venue,
        tutor=args.tutor if args.tutor is not None else previous.tutor,
        start_time=new_start or previous.start_time,
        end_time=new_end or previous.end_time,
        updated_at=int(time.time() * 1000),
    )
    save_store(store, args.store)
    console.print(f"Edited {key}")
    return 0


def _cmd_delete(args: argparse.Namespace, store: TimetableStore) -> int:
    timetable = _resolve(store, args.timetable)
    if timetable is None:
        return 1
    try:
        key = _instance_key(args)
    except ValueError as e:
        console.print(f"[red]Invalid value:[/] {e}")
        return 1

    edits = store.overrides_for(timetable.id)
    if key not in edits.deletions:
        edits.deletions.append(key)
    save_store(store, args.store)
    console.print(f"Deleted {key}")
    return 0


def _cmd_restore(args: argparse.Namespace, store: TimetableStore) -> int:
    """
    Drop edits and deletion of one imported session.
    """
    timetable = _resolve(store, args.timetable)
    if timetable is None:
        return 1
    try:
        key = _instance_key(args)
    except ValueError as e:
        console.print(f"[red]Invalid value:[/] {e}")
        return 1

    edits = store.overrides_for(timetable.id)
    changed = edits.overrides.pop(key, None) is not None
    if key in edits.deletions:
        edits.deletions.remove(key)
        changed = True
    save_store(store, args.store)
    console.print(f"Restored {key}" if changed else f"Nothing to restore for {key}")
    return 0


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def _add_instance_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--timetable", "-t", help="Timetable id, name or number (default: active)")
    p.add_argument("--course", required=True)
    p.add_argument("--group", default="")
    p.add_argument("--date", required=True, help="YYYY-MM-DD or DD/MM")
    p.add_argument("--start", required=True, help="Original start time (HHMM)")


def build_parser() -> argparse.ArgumentParser:
    """
    Build the argparse CLI parser with sub-commands.
    """
    parser = argparse.ArgumentParser(prog="nietimetable", description="NIE timetable viewer")
    parser.add_argument("--store", help="Path of the timetable store (JSON)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p_import = sub.add_parser("import", help="Import an HTML export or .ics file (path or URL)")
    p_import.add_argument("source")
    p_import.add_argument("--name", help="Timetable name")

    sub.add_parser("list", help="List timetables")

    p_use = sub.add_parser("use", help="Set the active timetable")
    p_use.add_argument("timetable")

    p_remove = sub.add_parser("remove", help="Remove a timetable")
    p_remove.add_argument("timetable")

    p_show = sub.add_parser("show", help="Show a timetable grouped by date")
    p_show.add_argument("timetable", nargs="?")
    p_show.add_argument("--search", "-s", help="Course, group, venue, tutor or date")
    p_show.add_argument("--course", "-c", action="append", help="Only this course (repeatable)")
    p_show.add_argument("--hide-past", action="store_true", help="Hide dates before today")
    p_show.add_argument("--date", help="Only this day (month and day are compared)")
    p_show.add_argument("--tutor", action="store_true", help="Show tutors")

    p_compare = sub.add_parser("compare", help="Compare two timetables")
    p_compare.add_argument("left")
    p_compare.add_argument("right")
    p_compare.add_argument("--filter", "-f", choices=[f.value for f in CompareFilter], default="none")
    p_compare.add_argument("--search", "-s")
    p_compare.add_argument("--direction", choices=[d.value for d in TravelDirection], default=TravelConfig.direction.value)
    p_compare.add_argument("--wait", type=int, default=TravelConfig.wait_minutes, help="Max wait in minutes")
    p_compare.add_argument("--meal", choices=[m.value for m in MealType], default=MealConfig.type.value)
    p_compare.add_argument(
        "--lunch", type=_parse_hour_range, default=(MealConfig.lunch_start, MealConfig.lunch_end), help="e.g. 11-14"
    )
    p_compare.add_argument(
        "--dinner", type=_parse_hour_range, default=(MealConfig.dinner_start, MealConfig.dinner_end), help="e.g. 17-20"
    )

    p_export = sub.add_parser("export", help="Export to .ics")
    p_export.add_argument("timetable")
    p_export.add_argument("out", nargs="?", help="Output file (default: nie-timetable-<date>.ics)")

    p_share = sub.add_parser("share", help="Print a share link")
    p_share.add_argument("timetable", nargs="?")
    p_share.add_argument("--base-url", default=DEFAULT_SHARE_BASE_URL)

    p_open = sub.add_parser("open", help="Add a timetable from a share link")
    p_open.add_argument("link", help="Share URL or token")
    p_open.add_argument("--name")

    p_add = sub.add_parser("add-event", help="Add a custom event")
    p_add.add_argument("--timetable", "-t")
    p_add.add_argument("--course", required=True, help="Title / course code")
    p_add.add_argument("--group")
    p_add.add_argument("--start", required=True, help="HHMM or HH:MM")
    p_add.add_argument("--end", required=True, help="HHMM or HH:MM")
    p_add.add_argument("--date", required=True, action="append", help="YYYY-MM-DD or DD/MM (repeatable)")
    p_add.add_argument("--venue")
    p_add.add_argument("--tutor")
    p_add.add_argument("--description")
    p_add.add_argument("--type", choices=["custom", "upgrading"], default="custom")

    p_remove_event = sub.add_parser("remove-event", help="Remove a custom event")
    p_remove_event.add_argument("event_id")

    p_edit = sub.add_parser("edit", help="Override one session of an imported class")
    _add_instance_args(p_edit)
    p_edit.add_argument("--venue")
    p_edit.add_argument("--tutor")
    p_edit.add_argument("--new-start")
    p_edit.add_argument("--new-end")

    p_delete = sub.add_parser("delete", help="Hide one session of an imported class")
    _add_instance_args(p_delete)

    p_restore = sub.add_parser("restore", help="Undo edits / deletion of one session")
    _add_instance_args(p_restore)

    return parser


COMMANDS: Dict[str, Callable[[argparse.Namespace, TimetableStore], int]] = {
    "import": _cmd_import,
    "list": _cmd_list,
    "use": _cmd_use,
    "remove": _cmd_remove,
    "show": _cmd_show,
    "compare": _cmd_compare,
    "export": _cmd_export,
    "share": _cmd_share,
    "open": _cmd_open,
    "add-event": _cmd_add_event,
    "remove-event": _cmd_remove_event,
    "edit": _cmd_edit,
    "delete": _cmd_delete,
    "restore": _cmd_restore,
}


def main(argv: List[str] | None = None) -> None:
    """
    CLI entry point. Parses args, dispatches to command handlers,
    and exits via SystemExit with a return code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    store = load_store(args.store)
    raise SystemExit(COMMANDS[args.command](args, store))

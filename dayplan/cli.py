from __future__ import annotations

import argparse
import datetime as dt
from pathlib import Path
from typing import Iterable, List, Optional

from .agenda import build_day_agenda
from .config import config_from_env, default_store_path
from .engine import TaskDraft, create_task, reschedule_now, toggle_chunk_instance, toggle_task_instance
from .materialize import materialize
from .model import RECURRENCES
from .render import render_day_agenda
from .snapshot import Mutations, Snapshot, apply_mutations
from .store import load_snapshot_from_json, new_store, save_snapshot_to_json
from .util.console import eprint
from .util.timeparse import current_minutes, parse_date_yyyy_mm_dd, parse_timestamp


def _resolve_id(ids: Iterable[str], raw: str, label: str) -> str:
    """Accept a full id or a unique prefix (the agenda shows 8 chars)."""
    ids = list(ids)
    if raw in ids:
        return raw
    hits = [i for i in ids if i.startswith(raw)]
    if len(hits) == 1:
        return hits[0]
    if not hits:
        raise SystemExit(f"Unknown {label}: {raw}")
    raise SystemExit(f"Ambiguous {label} prefix {raw!r}: matches {len(hits)} records")


def _load(path: Path) -> Snapshot:
    if not path.exists():
        raise SystemExit(f"Store not found: {path} (run `dayplan init` first)")
    try:
        return load_snapshot_from_json(path)
    except ValueError as e:
        raise SystemExit(f"Failed to load store: {e}")


def _commit(snap: Snapshot, mutations: Mutations, path: Path) -> Snapshot:
    if mutations.is_empty:
        return snap
    out = apply_mutations(snap, mutations)
    save_snapshot_to_json(out, path)
    return out


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="dayplan", description="Plan recurring tasks into daily schedule blocks.")
    ap.add_argument("--store", default=None, help="JSON store path (default: env DAYPLAN_STORE or ./dayplan.json)")
    ap.add_argument("--date", default=None, help="Viewed/target date YYYY-MM-DD (default: today)")
    ap.add_argument("--now", default=None, help="Override wall clock, e.g. 2024-01-15T10:00 (default: now)")

    sub = ap.add_subparsers(dest="cmd", required=True)

    p_init = sub.add_parser("init", help="Create a new store seeded with default schedules")
    p_init.add_argument("--force", action="store_true", help="Overwrite an existing store")

    sub.add_parser("day", help="Materialize the date and print its agenda")

    p_add = sub.add_parser("add", help="Create a task and its first occurrence")
    p_add.add_argument("title")
    p_add.add_argument("--schedule", action="append", required=True, help="Schedule id (repeatable)")
    p_add.add_argument("--priority", type=int, default=4, help="1 (urgent) .. 4 (low), default 4")
    p_add.add_argument("--recurrence", default="none", choices=RECURRENCES)
    p_add.add_argument("--recurrence-end", default=None, help="Last occurrence date YYYY-MM-DD")
    p_add.add_argument("--duration", type=int, default=None, help="Minutes (default: DAYPLAN_DEFAULT_DURATION or 30)")
    p_add.add_argument("--chunk", action="append", default=[], help="Sub-task title (repeatable)")
    p_add.add_argument("--after", default=None, help="Trigger task id: schedule this task after it completes")
    p_add.add_argument("--delay", type=int, default=0, help="Minutes after trigger completion (with --after)")

    p_toggle = sub.add_parser("toggle", help="Complete/uncomplete a task occurrence")
    p_toggle.add_argument("instance_id")

    p_chunk = sub.add_parser("toggle-chunk", help="Complete/uncomplete a sub-task occurrence")
    p_chunk.add_argument("chunk_instance_id")

    sub.add_parser("reschedule", help="Pack untimed occurrences of the date into free slots")
    return ap


def main(argv: Optional[List[str]] = None) -> None:
    args = _build_parser().parse_args(argv)
    cfg = config_from_env()

    try:
        now = parse_timestamp(args.now) if args.now else dt.datetime.now().replace(second=0, microsecond=0)
    except ValueError as e:
        raise SystemExit(f"Invalid --now value: {e}")
    try:
        date = parse_date_yyyy_mm_dd(args.date).isoformat() if args.date else now.date().isoformat()
    except ValueError as e:
        raise SystemExit(f"Invalid --date value: {e}")

    path = Path(args.store or default_store_path())

    if args.cmd == "init":
        if path.exists() and not args.force:
            raise SystemExit(f"Store already exists: {path} (use --force to overwrite)")
        print(save_snapshot_to_json(new_store(), path))
        return

    snap = _load(path)

    if args.cmd == "day":
        snap = _commit(snap, materialize(date, snap.tasks, snap.instances), path)
        agenda = build_day_agenda(snap, date, now.date().isoformat(), current_minutes(now))
        render_day_agenda(agenda)
        return

    if args.cmd == "add":
        draft = TaskDraft(
            title=args.title,
            schedule_ids=tuple(args.schedule),
            priority=int(args.priority),
            recurrence=args.recurrence,
            duration=int(args.duration) if args.duration is not None else cfg.default_duration_min,
            recurrence_end=args.recurrence_end,
        )
        link = None
        if args.after:
            link = (_resolve_id((t.id for t in snap.tasks), args.after, "task"), int(args.delay))
        try:
            muts = create_task(snap, draft, date, now, chunk_titles=args.chunk, link=link, cfg=cfg)
        except ValueError as e:
            raise SystemExit(f"Cannot create task: {e}")
        _commit(snap, muts, path)
        inst = muts.add_instances[0]
        when = inst.start_time or "unscheduled"
        print(f"{muts.add_tasks[0].id} {inst.date} {when}")
        return

    if args.cmd == "toggle":
        iid = _resolve_id((i.id for i in snap.instances), args.instance_id, "task instance")
        muts = toggle_task_instance(snap, iid, now, cfg=cfg)
        _commit(snap, muts, path)
        for inst in muts.add_instances:
            print(f"spawned {inst.id} task={inst.task_id} {inst.date} {inst.start_time}")
        for p in muts.instance_patches:
            if p.record_id != iid:
                print(f"refreshed {p.record_id} {p.changes.get('start_time')}")
        return

    if args.cmd == "toggle-chunk":
        cid = _resolve_id((c.id for c in snap.chunk_instances), args.chunk_instance_id, "chunk instance")
        _commit(snap, toggle_chunk_instance(snap, cid, now), path)
        return

    if args.cmd == "reschedule":
        result = reschedule_now(snap, date, now, cfg=cfg)
        _commit(snap, result.mutations, path)
        print(f"scheduled {len(result.mutations.instance_patches)} occurrence(s) on {date}")
        if result.dropped:
            eprint(f"[dayplan.cli] WARN: {len(result.dropped)} occurrence(s) did not fit: {', '.join(result.dropped)}")
        return


if __name__ == "__main__":
    main()

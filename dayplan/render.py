# dayplan/render.py
from __future__ import annotations

from typing import Optional

from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from .agenda import AgendaEntry, DayAgenda
from .util.timeparse import format_time_display

COLORS = {
    "muted": "grey58",
    "done": "green",
    "warning": "bright_yellow",
    "title": "bold bright_cyan",
}

PRIORITY_STYLES = {
    1: "bright_red",
    2: "dark_orange",
    3: "bright_blue",
    4: "grey58",
}


def _entry_title(e: AgendaEntry) -> Text:
    style = "strike " + COLORS["muted"] if e.instance.completed else ""
    txt = Text(e.task.title, style=style)
    if len(e.task.schedule_ids) > 1:
        txt.append(f" ({len(e.task.schedule_ids)} schedules)", style=COLORS["muted"])
    if e.instance.triggered_by_link_id:
        txt.append(" [linked]", style=COLORS["warning"])
    for chunk, ci in e.chunks:
        mark = "x" if ci is not None and ci.completed else " "
        txt.append(f"\n  [{mark}] {chunk.title}", style=COLORS["muted"])
    return txt


def _entry_table(entries) -> Table:
    table = Table(box=box.SIMPLE, show_header=True, padding=(0, 1), expand=False)
    table.add_column("", width=3)
    table.add_column("Time", width=8)
    table.add_column("Task")
    table.add_column("P", justify="right")
    table.add_column("Instance", style=COLORS["muted"])
    for e in entries:
        check = Text("[x]", style=COLORS["done"]) if e.instance.completed else Text("[ ]")
        when = format_time_display(e.start_time) if e.start_time else "-"
        prio = Text(f"P{e.task.priority}", style=PRIORITY_STYLES.get(e.task.priority, ""))
        table.add_row(check, when, _entry_title(e), prio, e.instance.id[:8])
    return table


def render_day_agenda(agenda: DayAgenda, console: Optional[Console] = None) -> None:
    console = console or Console()
    console.print(Text(f"Day plan for {agenda.date}", style=COLORS["title"]))

    for block in agenda.blocks:
        s = block.schedule
        header = Text(f"{s.name}  {s.start_time}-{s.end_time}", style=f"bold {s.color}")
        console.print(header)
        if block.entries:
            console.print(_entry_table(block.entries))
        else:
            console.print(Text("  (nothing here)", style=COLORS["muted"]))

    if agenda.unscheduled:
        console.print(Text("Unscheduled", style=f"bold {COLORS['warning']}"))
        console.print(_entry_table(agenda.unscheduled))

"""
Output formatters for stored timetables and conflict reports.

This module provides formatters for different output formats:
- CSV: Flat lesson rows for spreadsheets
- Week grid: Periods down, working days across (rich table)
- Conflict table: One row per overlapping pair (rich table)
"""

from __future__ import annotations

import csv
from io import StringIO
from typing import TYPE_CHECKING, Optional, TextIO

from rich.console import Console
from rich.table import Table

from timetabler.data.models import (
    DEFAULT_WORKING_DAYS,
    Timetable,
    Weekday,
    day_name,
    minutes_to_time,
)

if TYPE_CHECKING:
    from timetabler.data.models import ScheduleEntry
    from timetabler.grid import SlotGrid
    from .schema import ConflictReport


# =============================================================================
# CSV Formatter
# =============================================================================

class CSVFormatter:
    """Formats a timetable's lessons as CSV."""

    # Default column order
    DEFAULT_COLUMNS = [
        'day', 'period', 'start_time', 'end_time',
        'subject_id', 'subject_name', 'teacher_id', 'teacher_name',
        'class_id', 'class_name',
    ]

    # Minimal columns for simpler output
    MINIMAL_COLUMNS = ['day', 'period', 'start_time', 'end_time', 'subject_name', 'teacher_name']

    def __init__(
        self,
        columns: list[str] | None = None,
        include_header: bool = True,
        delimiter: str = ',',
    ):
        self.columns = columns or self.DEFAULT_COLUMNS
        self.include_header = include_header
        self.delimiter = delimiter

    def format(self, timetable: Timetable) -> str:
        """Format a timetable as a CSV string."""
        buffer = StringIO()
        self.write(timetable, buffer)
        return buffer.getvalue()

    def write(self, timetable: Timetable, file: TextIO) -> None:
        """Write CSV rows to a file-like object."""
        writer = csv.writer(file, delimiter=self.delimiter)

        if self.include_header:
            writer.writerow(self.columns)

        for entry in timetable.schedule:
            writer.writerow(self._entry_to_row(entry))

    def _entry_to_row(self, entry: ScheduleEntry) -> list[str]:
        field_map = {
            'day': entry.day.value,
            'period': str(entry.period),
            'start_time': entry.start_time,
            'end_time': entry.end_time,
            'subject_id': entry.subject_id,
            'subject_name': entry.subject_name or '',
            'teacher_id': entry.teacher_id,
            'teacher_name': entry.teacher_name or '',
            'class_id': entry.class_id,
            'class_name': entry.class_name or '',
        }
        return [field_map.get(col, '') for col in self.columns]


def format_csv(timetable: Timetable, minimal: bool = False) -> str:
    """Convenience function for CSV formatting."""
    columns = CSVFormatter.MINIMAL_COLUMNS if minimal else None
    return CSVFormatter(columns=columns).format(timetable)


# =============================================================================
# Week Grid Formatter
# =============================================================================

class WeekGridFormatter:
    """Renders a class timetable as periods x working days."""

    def __init__(self, days: Optional[list[Weekday]] = None, width: int = 120):
        self.days = days or list(DEFAULT_WORKING_DAYS)
        self.width = width

    def build_table(self, timetable: Timetable, title: Optional[str] = None) -> Table:
        table = Table(title=title or f"Class {timetable.class_id} - {timetable.term.value} term",
                      show_header=True, header_style="bold cyan")
        table.add_column("Period", style="dim")
        for day in self.days:
            table.add_column(day_name(day)[:3], justify="center")

        cells = {(e.day, e.period): e for e in timetable.schedule}
        times = {e.period: e.time_label for e in timetable.schedule}

        for period in sorted(times):
            row = [f"P{period}\n{times[period]}"]
            for day in self.days:
                entry = cells.get((day, period))
                if entry:
                    row.append(
                        f"[bold]{entry.subject_name or entry.subject_id}[/bold]\n"
                        f"{entry.teacher_name or entry.teacher_id}"
                    )
                else:
                    row.append("[dim]-[/dim]")
            table.add_row(*row)

        return table

    def format(self, timetable: Timetable, title: Optional[str] = None) -> str:
        """Render to plain text."""
        console = Console(record=True, width=self.width)
        console.print(self.build_table(timetable, title))
        return console.export_text()


def format_week_grid(timetable: Timetable, days: Optional[list[Weekday]] = None) -> str:
    """Format as week grid."""
    return WeekGridFormatter(days=days).format(timetable)


# =============================================================================
# Slot Grid and Conflict Tables
# =============================================================================

def build_slot_table(grid: SlotGrid) -> Table:
    """Daily period template of a slot grid, with breaks."""
    table = Table(title="Daily periods", show_header=True, header_style="bold cyan")
    table.add_column("Period")
    table.add_column("Start")
    table.add_column("End")

    rows = [(s.start_minutes, f"P{s.period}", s.start_time, s.end_time)
            for s in grid.day_slots(grid.days[0])]
    rows += [(b.start_minutes, f"[yellow]{b.name}[/yellow]",
              minutes_to_time(b.start_minutes), minutes_to_time(b.end_minutes))
             for b in grid.breaks]
    for _, label, start, end in sorted(rows):
        table.add_row(label, start, end)
    return table


def build_conflict_table(report: ConflictReport) -> Table:
    """One row per conflicting pair."""
    table = Table(title="Teacher conflicts", show_header=True, header_style="bold red")
    table.add_column("#", justify="right")
    table.add_column("Teacher")
    table.add_column("Day")
    table.add_column("Time")
    table.add_column("Class 1")
    table.add_column("Class 2")

    for i, c in enumerate(report.conflicts, start=1):
        table.add_row(
            str(i),
            f"{c.teacher_name} ({c.teacher_id})",
            c.day.capitalize(),
            c.time,
            f"{c.class1} - {c.subject1}",
            f"{c.class2} - {c.subject2}",
        )
    return table

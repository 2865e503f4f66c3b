"""
Command-line interface for the timetable engine.

Usage:
    python -m timetabler validate school.json
    python -m timetabler grid school.json
    python -m timetabler generate school.json --class C001 --term FIRST --save
    python -m timetabler generate-bulk school.json --level L1 --term FIRST -o result.json
    python -m timetabler verify school.json --term FIRST
    python -m timetabler show school.json --class C001 --term FIRST
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .data.loader import load_school_data
from .data.models import SchoolData, Term
from .errors import DataValidationError, TimetablerError
from .generator import TimetableGenerator
from .grid import build_slot_grid
from .logging_config import setup_logging
from .output.formatters import (
    WeekGridFormatter,
    build_conflict_table,
    build_slot_table,
    format_csv,
)
from .output.schema import BulkGenerationResult, FulfillmentOutput, GenerationResult
from .settings import get_settings
from .store import TimetableStore
from .verifier import verify_timetables

# Create Typer app
app = typer.Typer(
    name="timetabler",
    help="Greedy school timetable generator with teacher conflict checks.",
    add_completion=False,
)

# Rich console for pretty output
console = Console()


@app.callback()
def _configure() -> None:
    settings = get_settings()
    setup_logging(
        environment=settings.environment,
        level=settings.log_level,
        log_dir=settings.log_dir,
    )


# =============================================================================
# Helper Functions
# =============================================================================

def resolve_data_file(data_file: Optional[Path]) -> Path:
    """Explicit argument first, then TIMETABLER_DATA_FILE."""
    path = data_file or get_settings().data_file
    if path is None:
        console.print("[red]Error:[/red] No dataset given and TIMETABLER_DATA_FILE is not set")
        raise typer.Exit(code=1)
    if not path.exists():
        console.print(f"[red]Error:[/red] Dataset not found: {path}")
        raise typer.Exit(code=1)
    return path


def load_store(data_file: Optional[Path]) -> tuple[TimetableStore, SchoolData, Path]:
    """Load a dataset into a fresh store."""
    path = resolve_data_file(data_file)
    try:
        school = load_school_data(path)
    except DataValidationError as e:
        console.print("[red]Error loading dataset:[/red]")
        for line in str(e).split("\n"):
            console.print(f"   {line}")
        raise typer.Exit(code=1)
    return TimetableStore([school]), school, path


def fail(error: TimetablerError) -> None:
    console.print(f"[red]Error:[/red] {error}")
    raise typer.Exit(code=1)


def write_output(path: Path, payload: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        f.write(payload)
    console.print(f"[green]Result saved to:[/green] {path}")


def print_fulfillment(fulfillment: list[FulfillmentOutput]) -> None:
    """Per-allocation required/placed table."""
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Allocation")
    table.add_column("Subject")
    table.add_column("Teacher")
    table.add_column("Required", justify="right")
    table.add_column("Placed", justify="right")
    table.add_column("Doubles", justify="right")

    for f in fulfillment:
        placed = f"[green]{f.fulfilled}[/green]" if not f.shortfall else f"[yellow]{f.fulfilled}[/yellow]"
        table.add_row(
            f.allocation_id,
            f.subject_id,
            f.teacher_id,
            str(f.required),
            placed,
            str(f.double_periods) if f.requires_double_period else "-",
        )

    console.print(table)


def print_generation(result: GenerationResult) -> None:
    status = Text("COMPLETE", style="bold green") if not result.has_shortfall else \
        Text(f"SHORT BY {result.total_shortfall}", style="bold yellow")
    console.print(Panel(
        status,
        title=f"{result.class_name} - {result.term.value} term",
        subtitle=f"{result.periods_generated} periods, version {result.version}",
    ))
    print_fulfillment(result.fulfillment)


def print_bulk(result: BulkGenerationResult) -> None:
    table = Table(title="Bulk generation", show_header=True, header_style="bold cyan")
    table.add_column("Class")
    table.add_column("Periods", justify="right")
    table.add_column("Shortfall", justify="right")
    table.add_column("Status")

    for r in result.results:
        status = "[green]OK[/green]" if not r.shortfall else "[yellow]PARTIAL[/yellow]"
        table.add_row(r.class_name, str(r.periods_generated), str(r.shortfall), status)
    for e in result.errors:
        table.add_row(e.class_name, "-", "-", f"[red]FAILED[/red] {e.error}")

    console.print(table)
    console.print(
        f"\n[bold]{result.successful}/{result.total_classes}[/bold] classes generated, "
        f"{result.partially_fulfilled} partially fulfilled, {result.failed} failed"
    )


# =============================================================================
# Commands
# =============================================================================

@app.command()
def validate(
    data_file: Optional[Path] = typer.Argument(
        None,
        help="Path to school dataset JSON (defaults to TIMETABLER_DATA_FILE)",
    ),
) -> None:
    """
    Validate a school dataset.

    Checks for:
    - Valid JSON structure and schema compliance
    - Time configuration (breaks, durations, at least one period)
    - Allocation references and weekly capacity

    Example:
        python -m timetabler validate school.json
    """
    path = resolve_data_file(data_file)
    console.print(f"\n[bold]Validating:[/bold] {path}\n")

    # Step 1: Schema validation
    console.print("[cyan]1. Validating against schema...[/cyan]")
    try:
        school = load_school_data(path)
    except DataValidationError as e:
        console.print("   [red]Schema validation failed:[/red]")
        for line in str(e).split("\n"):
            console.print(f"   {line}")
        raise typer.Exit(code=1)
    console.print("   [green]Schema validation passed[/green]")

    # Step 2: Time configuration
    console.print("[cyan]2. Checking time configuration...[/cyan]")
    try:
        grid = build_slot_grid(school.config)
    except TimetablerError as e:
        console.print(f"   [red]Invalid configuration:[/red] {e}")
        raise typer.Exit(code=1)
    console.print(
        f"   [green]{grid.periods_per_day} periods x {len(grid.days)} days "
        f"= {grid.capacity} slots per week[/green]"
    )

    # Step 3: Allocations
    console.print("[cyan]3. Checking allocations...[/cyan]")
    warnings = []
    for cls in school.classes:
        allocations = school.get_class_allocations(cls.id)
        name = school.class_display_name(cls.id)
        if not allocations:
            warnings.append(f"Class '{name}' has no active allocations")
            continue
        hours = sum(a.hours_per_week for a in allocations)
        if hours > grid.capacity:
            warnings.append(f"Class '{name}' needs {hours} periods but only {grid.capacity} slots exist")
        for a in allocations:
            if school.get_teacher(a.teacher_id) is None:
                warnings.append(f"Allocation {a.id}: unknown teacher '{a.teacher_id}'")
            if school.get_subject(a.subject_id) is None:
                warnings.append(f"Allocation {a.id}: unknown subject '{a.subject_id}'")
            if a.hours_per_week < 1:
                warnings.append(f"Allocation {a.id}: hours_per_week must be at least 1")

    for teacher in school.teachers:
        load = sum(a.hours_per_week for a in school.get_teacher_allocations(teacher.id))
        if load > grid.capacity:
            warnings.append(
                f"Teacher '{teacher.name}' has {load} periods but only {grid.capacity} slots exist"
            )

    if warnings:
        console.print("   [yellow]Warnings found:[/yellow]")
        for w in warnings:
            console.print(f"   - {w}")
    else:
        console.print("   [green]No allocation issues[/green]")

    # Summary
    console.print("\n[bold]Summary:[/bold]")
    table = Table(show_header=False, box=None)
    table.add_column("Entity", style="cyan")
    table.add_column("Count", style="white")
    for key, value in school.summary().items():
        table.add_row(key.replace("_", " ").capitalize(), str(value))
    console.print(table)

    console.print("\n[green]Validation complete.[/green]\n")


@app.command()
def grid(
    data_file: Optional[Path] = typer.Argument(
        None,
        help="Path to school dataset JSON (defaults to TIMETABLER_DATA_FILE)",
    ),
) -> None:
    """
    Print the daily period template derived from the time configuration.

    Example:
        python -m timetabler grid school.json
    """
    _, school, _ = load_store(data_file)
    try:
        slot_grid = build_slot_grid(school.config)
    except TimetablerError as e:
        fail(e)

    console.print(build_slot_table(slot_grid))
    days = ", ".join(d.value.capitalize() for d in slot_grid.days)
    console.print(f"Working days: {days}")
    console.print(f"Adjacent pairs per day: {len(slot_grid.adjacent_pairs(slot_grid.days[0]))}")
    console.print(f"Slots per week: {slot_grid.capacity}")


@app.command()
def generate(
    data_file: Optional[Path] = typer.Argument(
        None,
        help="Path to school dataset JSON (defaults to TIMETABLER_DATA_FILE)",
    ),
    class_id: str = typer.Option(
        ...,
        "--class", "-C",
        help="Class ID to generate",
    ),
    term: Term = typer.Option(
        Term.FIRST,
        "--term", "-t",
        case_sensitive=False,
        help="Academic term",
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output", "-o",
        help="Path to write the generation result JSON",
    ),
    save: bool = typer.Option(
        False,
        "--save",
        help="Write the new timetable back into the dataset file",
    ),
) -> None:
    """
    Generate the timetable of one class.

    Example:
        python -m timetabler generate school.json --class C001 --term FIRST --save
    """
    store, school, path = load_store(data_file)

    try:
        result = TimetableGenerator(store).generate(school.school.id, class_id, term)
    except TimetablerError as e:
        fail(e)

    print_generation(result)

    if output:
        write_output(output, result.to_json())
    if save:
        store.save(school.school.id, path)
        console.print(f"[green]Dataset updated:[/green] {path}")


@app.command("generate-bulk")
def generate_bulk(
    data_file: Optional[Path] = typer.Argument(
        None,
        help="Path to school dataset JSON (defaults to TIMETABLER_DATA_FILE)",
    ),
    level_id: Optional[str] = typer.Option(
        None,
        "--level", "-L",
        help="Level ID to generate (whole school when omitted)",
    ),
    term: Term = typer.Option(
        Term.FIRST,
        "--term", "-t",
        case_sensitive=False,
        help="Academic term",
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output", "-o",
        help="Path to write the bulk result JSON",
    ),
    save: bool = typer.Option(
        False,
        "--save",
        help="Write the new timetables back into the dataset file",
    ),
) -> None:
    """
    Generate every class of a level, or of the whole school.

    Classes with malformed allocations are reported and skipped.

    Examples:
        python -m timetabler generate-bulk school.json --level L1 --term FIRST
        python -m timetabler generate-bulk school.json --term SECOND --save
    """
    store, school, path = load_store(data_file)

    try:
        result = TimetableGenerator(store).generate_bulk(school.school.id, level_id, term)
    except TimetablerError as e:
        fail(e)

    print_bulk(result)

    if output:
        write_output(output, result.to_json())
    if save:
        store.save(school.school.id, path)
        console.print(f"[green]Dataset updated:[/green] {path}")


@app.command()
def verify(
    data_file: Optional[Path] = typer.Argument(
        None,
        help="Path to school dataset JSON (defaults to TIMETABLER_DATA_FILE)",
    ),
    term: Term = typer.Option(
        Term.FIRST,
        "--term", "-t",
        case_sensitive=False,
        help="Academic term",
    ),
    as_json: bool = typer.Option(
        False,
        "--json",
        help="Print the report as JSON",
    ),
) -> None:
    """
    Check stored timetables for teachers booked in two classes at once.

    Exits with code 1 when any conflict is found.

    Example:
        python -m timetabler verify school.json --term FIRST
    """
    store, school, _ = load_store(data_file)

    try:
        report = verify_timetables(store, school.school.id, term)
    except TimetablerError as e:
        fail(e)

    if as_json:
        typer.echo(report.to_json())
    else:
        summary = report.summary
        console.print(
            f"\n[bold]{summary.total_timetables}[/bold] timetables, "
            f"[bold]{summary.total_entries}[/bold] entries, "
            f"[bold]{summary.teacher_count}[/bold] teachers"
        )
        if report.has_conflicts:
            console.print(build_conflict_table(report))
            console.print(f"\n[red]{summary.total_conflicts} conflicts found.[/red]\n")
        else:
            console.print("\n[green]No teacher conflicts.[/green]\n")

    if report.has_conflicts:
        raise typer.Exit(code=1)


@app.command()
def show(
    data_file: Optional[Path] = typer.Argument(
        None,
        help="Path to school dataset JSON (defaults to TIMETABLER_DATA_FILE)",
    ),
    class_id: str = typer.Option(
        ...,
        "--class", "-C",
        help="Class ID to show",
    ),
    term: Term = typer.Option(
        Term.FIRST,
        "--term", "-t",
        case_sensitive=False,
        help="Academic term",
    ),
    csv: bool = typer.Option(
        False,
        "--csv",
        help="Print CSV instead of a week grid",
    ),
) -> None:
    """
    Display a stored class timetable.

    Examples:
        python -m timetabler show school.json --class C001
        python -m timetabler show school.json --class C001 --csv > c001.csv
    """
    store, school, _ = load_store(data_file)

    try:
        store.get_class(school.school.id, class_id)
    except TimetablerError as e:
        fail(e)

    timetable = store.get_timetable(school.school.id, class_id, term)
    if timetable is None:
        console.print(
            f"[yellow]No {term.value} term timetable stored for class {class_id}[/yellow]"
        )
        raise typer.Exit(code=1)

    if csv:
        typer.echo(format_csv(timetable), nl=False)
        return

    days = school.config.working_days if school.config else None
    title = f"{school.class_display_name(class_id)} - {term.value} term (v{timetable.version})"
    console.print(WeekGridFormatter(days=days).build_table(timetable, title=title))


# =============================================================================
# Main Entry Point
# =============================================================================

def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()

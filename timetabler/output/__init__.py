"""Generation result schema and timetable formatting."""

from .schema import (
    EntryOutput,
    FulfillmentOutput,
    GenerationResult,
    ClassGenerationSummary,
    ClassGenerationError,
    BulkGenerationResult,
    ConflictItem,
    ConflictSummary,
    TeacherWorkload,
    ConflictReport,
    create_generation_result,
)
from .formatters import (
    CSVFormatter,
    WeekGridFormatter,
    format_csv,
    format_week_grid,
    build_slot_table,
    build_conflict_table,
)

__all__ = [
    # Schema models
    "EntryOutput",
    "FulfillmentOutput",
    "GenerationResult",
    "ClassGenerationSummary",
    "ClassGenerationError",
    "BulkGenerationResult",
    "ConflictItem",
    "ConflictSummary",
    "TeacherWorkload",
    "ConflictReport",
    "create_generation_result",
    # Formatters
    "CSVFormatter",
    "WeekGridFormatter",
    "format_csv",
    "format_week_grid",
    "build_slot_table",
    "build_conflict_table",
]

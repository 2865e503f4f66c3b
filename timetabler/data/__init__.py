"""Data model and dataset loading utilities."""

from .loader import load_school_data, parse_school_data, save_school_data
from .models import (
    Allocation,
    Break,
    Level,
    School,
    SchoolClass,
    SchoolData,
    ScheduleEntry,
    Subject,
    Teacher,
    Term,
    Timetable,
    TimetableConfig,
    Weekday,
)

__all__ = [
    # Loader
    "load_school_data",
    "parse_school_data",
    "save_school_data",
    # Models
    "Allocation",
    "Break",
    "Level",
    "School",
    "SchoolClass",
    "SchoolData",
    "ScheduleEntry",
    "Subject",
    "Teacher",
    "Term",
    "Timetable",
    "TimetableConfig",
    "Weekday",
]

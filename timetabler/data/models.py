"""
Pydantic models for the school timetable engine.

Time conventions:
- Wall-clock times travel as 'HH:MM' strings (e.g. "08:00", "11:50")
- Internally they are compared as minutes from midnight (0-1439)
- Days are named weekdays ("MONDAY" ... "SUNDAY")

Example times:
- 8:00 AM = 480
- 11:10 AM = 670
- 1:40 PM = 820
"""

from __future__ import annotations

import re
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


# =============================================================================
# Constants and Enums
# =============================================================================

class Weekday(str, Enum):
    """Day of the week, stored by name."""
    MONDAY = "MONDAY"
    TUESDAY = "TUESDAY"
    WEDNESDAY = "WEDNESDAY"
    THURSDAY = "THURSDAY"
    FRIDAY = "FRIDAY"
    SATURDAY = "SATURDAY"
    SUNDAY = "SUNDAY"


class Term(str, Enum):
    """Academic term a timetable belongs to."""
    FIRST = "FIRST"
    SECOND = "SECOND"
    THIRD = "THIRD"


WEEKDAY_ORDER: list[Weekday] = list(Weekday)
DEFAULT_WORKING_DAYS: list[Weekday] = WEEKDAY_ORDER[:5]

_TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")


# =============================================================================
# Helper Functions
# =============================================================================

def minutes_to_time(minutes: int) -> str:
    """Convert minutes from midnight to HH:MM format."""
    h, m = divmod(minutes, 60)
    return f"{h:02d}:{m:02d}"


def time_to_minutes(time_str: str) -> int:
    """
    Convert HH:MM format to minutes from midnight.

    Raises:
        ValueError: If the string is not a valid 24-hour wall-clock time
    """
    match = _TIME_PATTERN.match(time_str.strip()) if isinstance(time_str, str) else None
    if not match:
        raise ValueError(f"Invalid time '{time_str}', expected HH:MM")
    h, m = int(match.group(1)), int(match.group(2))
    if h > 23 or m > 59:
        raise ValueError(f"Invalid time '{time_str}', expected HH:MM")
    return h * 60 + m


def normalize_time(time_str: str) -> str:
    """Normalize '8:00' style input to zero-padded '08:00'."""
    return minutes_to_time(time_to_minutes(time_str))


def day_name(day: Weekday) -> str:
    """Get display name for a weekday ('MONDAY' -> 'Monday')."""
    return day.value.capitalize()


def day_index(day: Weekday) -> int:
    """Position of a weekday in the calendar week (Monday = 0)."""
    return WEEKDAY_ORDER.index(day)


def _coerce_weekday(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().upper()
    return value


def _pick(data: dict, *keys: str, default: Any = None) -> Any:
    """Return the first present key, tolerating camelCase and snake_case."""
    for key in keys:
        if key in data:
            return data[key]
    return default


# =============================================================================
# Time Configuration
# =============================================================================

class Break(BaseModel):
    """
    A non-teaching interval in the school day.

    Either a wall-clock interval (start_time/end_time) or a break that
    follows a given period (after_period/duration_minutes).
    """
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, description="Display name (e.g., 'Lunch')")
    start_time: Optional[str] = Field(default=None, description="Break start (HH:MM)")
    end_time: Optional[str] = Field(default=None, description="Break end (HH:MM)")
    after_period: Optional[int] = Field(default=None, description="Break begins when this period ends")
    duration_minutes: Optional[int] = Field(default=None, description="Length of a period-index break")

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time_format(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else normalize_time(v)

    @model_validator(mode="after")
    def validate_shape(self) -> "Break":
        """A break is either timed or period-indexed, never both."""
        timed = self.start_time is not None or self.end_time is not None
        indexed = self.after_period is not None or self.duration_minutes is not None

        if timed and indexed:
            raise ValueError("Break must use either start/end times or after_period, not both")
        if not timed and not indexed:
            raise ValueError("Break needs start_time/end_time or after_period/duration_minutes")
        if timed and (self.start_time is None or self.end_time is None):
            raise ValueError("Timed break needs both start_time and end_time")
        if indexed and (self.after_period is None or self.duration_minutes is None):
            raise ValueError("Period-index break needs both after_period and duration_minutes")
        return self

    @property
    def is_timed(self) -> bool:
        return self.start_time is not None

    @property
    def start_minutes(self) -> Optional[int]:
        return time_to_minutes(self.start_time) if self.start_time else None

    @property
    def end_minutes(self) -> Optional[int]:
        return time_to_minutes(self.end_time) if self.end_time else None

    def __str__(self) -> str:
        label = self.name or "Break"
        if self.is_timed:
            return f"{label} {self.start_time}-{self.end_time}"
        return f"{label} after period {self.after_period} ({self.duration_minutes} min)"


class TimetableConfig(BaseModel):
    """
    Daily schedule shape for one school.

    Only the shape is checked here; semantic problems (start after end,
    overlapping breaks, non-positive durations) are reported as
    InvalidConfig by the slot grid builder.
    """
    model_config = ConfigDict(extra="forbid")

    school_id: Optional[str] = Field(default=None, description="Owning school ID")
    school_start_time: str = Field(description="First period start (HH:MM)")
    school_end_time: str = Field(description="School day end (HH:MM)")
    period_duration: int = Field(description="Period length in minutes")
    breaks: list[Break] = Field(default_factory=list, description="Ordered breaks")
    working_days: list[Weekday] = Field(
        default_factory=lambda: list(DEFAULT_WORKING_DAYS),
        description="Ordered teaching days",
    )

    @field_validator("school_start_time", "school_end_time")
    @classmethod
    def validate_time_format(cls, v: str) -> str:
        return normalize_time(v)

    @field_validator("working_days", mode="before")
    @classmethod
    def coerce_working_days(cls, v: Any) -> Any:
        if isinstance(v, list):
            return [_coerce_weekday(d) for d in v]
        return v

    @field_validator("working_days")
    @classmethod
    def validate_unique_days(cls, v: list[Weekday]) -> list[Weekday]:
        if len(set(v)) != len(v):
            raise ValueError("working_days must not repeat a day")
        return v

    @property
    def start_minutes(self) -> int:
        return time_to_minutes(self.school_start_time)

    @property
    def end_minutes(self) -> int:
        return time_to_minutes(self.school_end_time)


# =============================================================================
# Core Entity Models
# =============================================================================

class School(BaseModel):
    """School (tenant) identity."""
    model_config = ConfigDict(extra="forbid")

    id: str = Field(min_length=1, description="Unique identifier")
    name: str = Field(min_length=1, description="School name")
    subdomain: Optional[str] = Field(default=None, description="Tenant subdomain")
    is_active: bool = Field(default=True, description="Whether the school is active")

    def __str__(self) -> str:
        return self.name


class Level(BaseModel):
    """Year level grouping classes (e.g., 'JSS1')."""
    model_config = ConfigDict(extra="forbid")

    id: str = Field(min_length=1, description="Unique identifier")
    name: str = Field(min_length=1, description="Level name")


class SchoolClass(BaseModel):
    """
    Student class/arm within a level.
    Named 'SchoolClass' to avoid collision with Python's 'class' keyword.
    """
    model_config = ConfigDict(extra="forbid")

    id: str = Field(min_length=1, description="Unique identifier")
    name: str = Field(min_length=1, description="Class name (e.g., 'A')")
    level_id: Optional[str] = Field(default=None, description="Level ID")

    def __str__(self) -> str:
        return self.name


class Teacher(BaseModel):
    """Teacher entity."""
    model_config = ConfigDict(extra="forbid")

    id: str = Field(min_length=1, description="Unique identifier")
    name: str = Field(min_length=1, description="Full name")
    email: Optional[str] = Field(default=None, description="Email address")

    def __str__(self) -> str:
        return f"{self.name} ({self.id})"


class Subject(BaseModel):
    """Subject taught to classes."""
    model_config = ConfigDict(extra="forbid")

    id: str = Field(min_length=1, description="Unique identifier")
    name: str = Field(min_length=1, description="Subject name")
    code: Optional[str] = Field(default=None, max_length=10, description="Short code")

    def __str__(self) -> str:
        return f"{self.name} ({self.code or self.id})"


class Allocation(BaseModel):
    """
    Commitment of one teacher to teach one subject to one class for
    hours_per_week periods.

    Field values are not range-checked here: a malformed allocation must
    fail only the class it belongs to, which the assigner reports as a
    StructuralAllocationError.
    """
    model_config = ConfigDict(extra="forbid")

    id: str = Field(min_length=1, description="Unique identifier")
    teacher_id: str = Field(description="Teacher ID")
    subject_id: str = Field(description="Subject ID")
    class_id: str = Field(description="Class ID")
    hours_per_week: int = Field(default=1, description="Periods per week")
    requires_double_period: bool = Field(default=False, description="Taught in adjacent pairs")
    is_active: bool = Field(default=True, description="Inactive allocations are not scheduled")

    def __str__(self) -> str:
        kind = "double" if self.requires_double_period else "single"
        return f"Allocation {self.id}: {self.subject_id} by {self.teacher_id} ({self.hours_per_week}h, {kind})"


# =============================================================================
# Timetable Models
# =============================================================================

class ScheduleEntry(BaseModel):
    """One lesson placed in a class timetable."""
    model_config = ConfigDict(extra="forbid")

    day: Weekday = Field(description="Weekday")
    period: int = Field(ge=1, description="1-based period number")
    teacher_id: str = Field(description="Teacher ID")
    subject_id: str = Field(description="Subject ID")
    class_id: str = Field(description="Class ID")
    start_time: str = Field(description="Start (HH:MM)")
    end_time: str = Field(description="End (HH:MM)")
    teacher_name: Optional[str] = Field(default=None, description="Teacher display name")
    subject_name: Optional[str] = Field(default=None, description="Subject display name")
    class_name: Optional[str] = Field(default=None, description="Class display name")

    @field_validator("day", mode="before")
    @classmethod
    def coerce_day(cls, v: Any) -> Any:
        return _coerce_weekday(v)

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time_format(cls, v: str) -> str:
        return normalize_time(v)

    @model_validator(mode="after")
    def validate_time_range(self) -> "ScheduleEntry":
        """Ensure start time is before end time."""
        if time_to_minutes(self.start_time) >= time_to_minutes(self.end_time):
            raise ValueError(
                f"start_time ({self.start_time}) must be before end_time ({self.end_time})"
            )
        return self

    @property
    def start_minutes(self) -> int:
        return time_to_minutes(self.start_time)

    @property
    def end_minutes(self) -> int:
        return time_to_minutes(self.end_time)

    @property
    def time_label(self) -> str:
        return f"{self.start_time}-{self.end_time}"

    def __str__(self) -> str:
        subject = self.subject_name or self.subject_id
        return f"{day_name(self.day)} P{self.period} {self.time_label} {subject} ({self.teacher_id})"


def schedule_from_document(document: dict[str, Any], class_id: str) -> list[ScheduleEntry]:
    """
    Parse a by-day schedule document back into entries.

    The document maps weekday names to lists of
    {period, subject, teacher, subjectId, teacherId, startTime, endTime}.
    """
    entries: list[ScheduleEntry] = []
    for day_key, day_entries in document.items():
        for item in day_entries or []:
            entries.append(ScheduleEntry(
                day=_coerce_weekday(day_key),
                period=_pick(item, "period"),
                teacher_id=_pick(item, "teacher_id", "teacherId"),
                subject_id=_pick(item, "subject_id", "subjectId"),
                class_id=_pick(item, "class_id", "classId", default=class_id),
                start_time=_pick(item, "start_time", "startTime"),
                end_time=_pick(item, "end_time", "endTime"),
                teacher_name=_pick(item, "teacher", "teacher_name", "teacherName"),
                subject_name=_pick(item, "subject", "subject_name", "subjectName"),
            ))
    return sort_schedule(entries)


def sort_schedule(entries: list[ScheduleEntry]) -> list[ScheduleEntry]:
    """Order entries by weekday, then period."""
    return sorted(entries, key=lambda e: (day_index(e.day), e.period))


class Timetable(BaseModel):
    """Persisted weekly timetable for one class in one term."""
    model_config = ConfigDict(extra="forbid")

    school_id: str = Field(min_length=1, description="School ID")
    class_id: str = Field(min_length=1, description="Class ID")
    term: Term = Field(description="Academic term")
    level_id: Optional[str] = Field(default=None, description="Level of the class")
    schedule: list[ScheduleEntry] = Field(default_factory=list, description="Ordered lessons")
    version: int = Field(default=1, ge=1, description="Incremented on every upsert")
    updated_at: Optional[datetime] = Field(default=None, description="Last write time")

    @model_validator(mode="before")
    @classmethod
    def parse_schedule_document(cls, data: Any) -> Any:
        """Accept the by-day document form as well as a flat entry list."""
        if isinstance(data, dict):
            schedule = data.get("schedule")
            if isinstance(schedule, dict):
                data = dict(data)
                class_id = _pick(data, "class_id", "classId")
                data["schedule"] = schedule_from_document(schedule, class_id)
        return data

    @field_validator("term", mode="before")
    @classmethod
    def coerce_term(cls, v: Any) -> Any:
        return v.strip().upper() if isinstance(v, str) else v

    @model_validator(mode="after")
    def validate_unique_slots(self) -> "Timetable":
        """Entries belong to this class and never share (day, period)."""
        seen: set[tuple[Weekday, int]] = set()
        for entry in self.schedule:
            if entry.class_id != self.class_id:
                raise ValueError(
                    f"Timetable for class {self.class_id} has an entry for class {entry.class_id} "
                    f"at {day_name(entry.day)} period {entry.period}"
                )
            key = (entry.day, entry.period)
            if key in seen:
                raise ValueError(
                    f"Class {self.class_id} has two entries at {day_name(entry.day)} period {entry.period}"
                )
            seen.add(key)
        return self

    @property
    def key(self) -> tuple[str, str, Term]:
        return (self.school_id, self.class_id, self.term)

    def to_document(self, days: Optional[list[Weekday]] = None) -> dict[str, list[dict[str, Any]]]:
        """
        Serialize the schedule to the by-day storage document.

        Without explicit days, the document lists Monday to Friday plus any
        other day the schedule uses, in calendar order.
        """
        if not days:
            used = set(DEFAULT_WORKING_DAYS) | {e.day for e in self.schedule}
            days = sorted(used, key=day_index)
        document: dict[str, list[dict[str, Any]]] = {}
        for day in days:
            document[day.value] = [
                {
                    "period": e.period,
                    "subject": e.subject_name or e.subject_id,
                    "teacher": e.teacher_name or e.teacher_id,
                    "subjectId": e.subject_id,
                    "teacherId": e.teacher_id,
                    "startTime": e.start_time,
                    "endTime": e.end_time,
                }
                for e in sorted(
                    (e for e in self.schedule if e.day == day),
                    key=lambda e: e.period,
                )
            ]
        return document


# =============================================================================
# School Dataset
# =============================================================================

class SchoolData(BaseModel):
    """
    Everything the engine knows about one school.
    This is the main model for loading and validating a dataset.
    """
    model_config = ConfigDict(extra="forbid")

    school: School = Field(description="School identity")
    config: Optional[TimetableConfig] = Field(default=None, description="Time configuration")

    levels: list[Level] = Field(default_factory=list, description="Levels")
    classes: list[SchoolClass] = Field(default_factory=list, description="Classes")
    teachers: list[Teacher] = Field(default_factory=list, description="Teachers")
    subjects: list[Subject] = Field(default_factory=list, description="Subjects")
    allocations: list[Allocation] = Field(default_factory=list, description="Teaching allocations")
    timetables: list[Timetable] = Field(default_factory=list, description="Persisted timetables")

    # Lookup caches (populated after validation)
    _level_map: dict[str, Level] = {}
    _class_map: dict[str, SchoolClass] = {}
    _teacher_map: dict[str, Teacher] = {}
    _subject_map: dict[str, Subject] = {}

    def model_post_init(self, __context: Any) -> None:
        """Build lookup maps after model initialization."""
        self._level_map = {l.id: l for l in self.levels}
        self._class_map = {c.id: c for c in self.classes}
        self._teacher_map = {t.id: t for t in self.teachers}
        self._subject_map = {s.id: s for s in self.subjects}

    @model_validator(mode="after")
    def validate_no_duplicate_ids(self) -> "SchoolData":
        """Ensure no duplicate IDs within each entity type."""
        errors: list[str] = []

        def check_duplicates(items: list, entity_name: str) -> None:
            seen: set[str] = set()
            for item in items:
                if item.id in seen:
                    errors.append(f"Duplicate {entity_name} ID: '{item.id}'")
                seen.add(item.id)

        check_duplicates(self.levels, "level")
        check_duplicates(self.classes, "class")
        check_duplicates(self.teachers, "teacher")
        check_duplicates(self.subjects, "subject")
        check_duplicates(self.allocations, "allocation")

        if errors:
            raise ValueError("Duplicate ID validation failed:\n" + "\n".join(f"  - {e}" for e in errors))

        return self

    @model_validator(mode="after")
    def validate_references(self) -> "SchoolData":
        """
        Validate class and timetable references.

        Allocation references are left to the assigner so that one bad
        allocation fails only its own class.
        """
        errors: list[str] = []
        level_ids = {l.id for l in self.levels}

        for cls in self.classes:
            if cls.level_id and cls.level_id not in level_ids:
                errors.append(f"Class {cls.id}: unknown level_id '{cls.level_id}'")

        seen_keys: set[tuple[str, Term]] = set()
        for timetable in self.timetables:
            if timetable.school_id != self.school.id:
                errors.append(
                    f"Timetable for class {timetable.class_id}: school_id '{timetable.school_id}' "
                    f"does not match '{self.school.id}'"
                )
            key = (timetable.class_id, timetable.term)
            if key in seen_keys:
                errors.append(
                    f"Duplicate timetable for class {timetable.class_id} in term {timetable.term.value}"
                )
            seen_keys.add(key)

        if errors:
            raise ValueError("Reference validation failed:\n" + "\n".join(f"  - {e}" for e in errors))

        return self

    # -------------------------------------------------------------------------
    # Lookup Methods
    # -------------------------------------------------------------------------

    def get_level(self, level_id: str) -> Optional[Level]:
        return self._level_map.get(level_id)

    def get_class(self, class_id: str) -> Optional[SchoolClass]:
        return self._class_map.get(class_id)

    def get_teacher(self, teacher_id: str) -> Optional[Teacher]:
        return self._teacher_map.get(teacher_id)

    def get_subject(self, subject_id: str) -> Optional[Subject]:
        return self._subject_map.get(subject_id)

    @property
    def teacher_map(self) -> dict[str, Teacher]:
        return dict(self._teacher_map)

    @property
    def subject_map(self) -> dict[str, Subject]:
        return dict(self._subject_map)

    # -------------------------------------------------------------------------
    # Query Methods
    # -------------------------------------------------------------------------

    def class_display_name(self, class_id: str) -> str:
        """'<level name> <class name>', falling back to the bare ID."""
        cls = self.get_class(class_id)
        if cls is None:
            return class_id
        level = self.get_level(cls.level_id) if cls.level_id else None
        return f"{level.name} {cls.name}" if level else cls.name

    def get_class_allocations(self, class_id: str, active_only: bool = True) -> list[Allocation]:
        """Get allocations for a class, by default only active ones."""
        return [
            a for a in self.allocations
            if a.class_id == class_id and (a.is_active or not active_only)
        ]

    def get_teacher_allocations(self, teacher_id: str) -> list[Allocation]:
        return [a for a in self.allocations if a.teacher_id == teacher_id and a.is_active]

    def get_level_classes(self, level_id: Optional[str] = None) -> list[SchoolClass]:
        """Classes of a level (all classes when level_id is None), in display order."""
        classes = [c for c in self.classes if level_id is None or c.level_id == level_id]

        def sort_key(c: SchoolClass) -> tuple[str, str, str]:
            level = self.get_level(c.level_id) if c.level_id else None
            return (level.name if level else "", c.name, c.id)

        return sorted(classes, key=sort_key)

    # -------------------------------------------------------------------------
    # Statistics
    # -------------------------------------------------------------------------

    def summary(self) -> dict[str, Any]:
        """Get a summary of the school data."""
        active = [a for a in self.allocations if a.is_active]
        return {
            "school_name": self.school.name,
            "levels": len(self.levels),
            "classes": len(self.classes),
            "teachers": len(self.teachers),
            "subjects": len(self.subjects),
            "allocations": len(active),
            "total_hours_per_week": sum(a.hours_per_week for a in active),
            "timetables": len(self.timetables),
        }

"""
Output schema for generation results and conflict reports.

Every model serializes with camelCase aliases so results can be returned
unchanged from the web application's request handlers.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field

from timetabler.assigner import AllocationFulfillment
from timetabler.data.models import ScheduleEntry, Term, Timetable


class _OutputModel(BaseModel):
    model_config = {"populate_by_name": True}

    def to_json(self, indent: int = 2) -> str:
        """Serialize to JSON string."""
        return self.model_dump_json(by_alias=True, indent=indent)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# Schedule Output
# =============================================================================

class EntryOutput(_OutputModel):
    """A single lesson in a generated schedule."""
    day: str
    period: int
    start_time: str = Field(alias="startTime")  # 'HH:MM'
    end_time: str = Field(alias="endTime")  # 'HH:MM'
    teacher_id: str = Field(alias="teacherId")
    subject_id: str = Field(alias="subjectId")
    class_id: str = Field(alias="classId")

    teacher_name: Optional[str] = Field(default=None, alias="teacherName")
    subject_name: Optional[str] = Field(default=None, alias="subjectName")
    class_name: Optional[str] = Field(default=None, alias="className")

    @classmethod
    def from_entry(cls, entry: ScheduleEntry) -> EntryOutput:
        return cls(
            day=entry.day.value,
            period=entry.period,
            start_time=entry.start_time,
            end_time=entry.end_time,
            teacher_id=entry.teacher_id,
            subject_id=entry.subject_id,
            class_id=entry.class_id,
            teacher_name=entry.teacher_name,
            subject_name=entry.subject_name,
            class_name=entry.class_name,
        )


class FulfillmentOutput(_OutputModel):
    """Required versus placed periods for one allocation."""
    allocation_id: str = Field(alias="allocationId")
    teacher_id: str = Field(alias="teacherId")
    subject_id: str = Field(alias="subjectId")
    requires_double_period: bool = Field(alias="requiresDoublePeriod")
    required: int
    fulfilled: int
    double_periods: int = Field(alias="doublePeriods")
    shortfall: int

    @classmethod
    def from_fulfillment(cls, f: AllocationFulfillment) -> FulfillmentOutput:
        return cls(
            allocation_id=f.allocation_id,
            teacher_id=f.teacher_id,
            subject_id=f.subject_id,
            requires_double_period=f.requires_double_period,
            required=f.required,
            fulfilled=f.fulfilled,
            double_periods=f.double_periods,
            shortfall=f.shortfall,
        )


# =============================================================================
# Generation Results
# =============================================================================

class GenerationResult(_OutputModel):
    """Result of generating one class timetable."""
    school_id: str = Field(alias="schoolId")
    class_id: str = Field(alias="classId")
    class_name: str = Field(alias="className")
    term: Term
    version: int
    periods_generated: int = Field(alias="periodsGenerated")
    schedule: list[EntryOutput]
    fulfillment: list[FulfillmentOutput]

    @property
    def has_shortfall(self) -> bool:
        return any(f.shortfall for f in self.fulfillment)

    @property
    def total_shortfall(self) -> int:
        return sum(f.shortfall for f in self.fulfillment)


class ClassGenerationSummary(_OutputModel):
    """Successful class in a bulk run."""
    class_id: str = Field(alias="classId")
    class_name: str = Field(alias="className")
    periods_generated: int = Field(alias="periodsGenerated")
    shortfall: int = 0
    fulfillment: list[FulfillmentOutput] = Field(default_factory=list)
    success: bool = True


class ClassGenerationError(_OutputModel):
    """Failed class in a bulk run."""
    class_id: str = Field(alias="classId")
    class_name: str = Field(alias="className")
    error: str
    success: bool = False


class BulkGenerationResult(_OutputModel):
    """Aggregate of a bulk (level or whole-school) run."""
    school_id: str = Field(alias="schoolId")
    level_id: Optional[str] = Field(default=None, alias="levelId")
    term: Term
    total_classes: int = Field(alias="totalClasses")
    successful: int
    failed: int
    partially_fulfilled: int = Field(default=0, alias="partiallyFulfilled")
    results: list[ClassGenerationSummary] = Field(default_factory=list)
    errors: list[ClassGenerationError] = Field(default_factory=list)


def create_generation_result(
    timetable: Timetable,
    class_name: str,
    fulfillment: list[AllocationFulfillment],
) -> GenerationResult:
    """Build the caller-facing result for one stored timetable."""
    return GenerationResult(
        school_id=timetable.school_id,
        class_id=timetable.class_id,
        class_name=class_name,
        term=timetable.term,
        version=timetable.version,
        periods_generated=len(timetable.schedule),
        schedule=[EntryOutput.from_entry(e) for e in timetable.schedule],
        fulfillment=[FulfillmentOutput.from_fulfillment(f) for f in fulfillment],
    )


# =============================================================================
# Conflict Report
# =============================================================================

class ConflictItem(_OutputModel):
    """One overlapping pair of lessons for the same teacher."""
    teacher_id: str = Field(alias="teacherId")
    teacher_name: str = Field(alias="teacherName")
    day: str
    time: str
    class1: str
    subject1: str
    class2: str
    subject2: str
    class_id1: str = Field(alias="classId1")
    class_id2: str = Field(alias="classId2")


class ConflictSummary(_OutputModel):
    total_timetables: int = Field(alias="totalTimetables")
    total_entries: int = Field(alias="totalEntries")
    total_conflicts: int = Field(alias="totalConflicts")
    teacher_count: int = Field(alias="teacherCount")


class TeacherWorkload(_OutputModel):
    teacher_id: str = Field(alias="teacherId")
    teacher_name: str = Field(alias="teacherName")
    classes: list[str]
    total_periods: int = Field(alias="totalPeriods")


class ConflictReport(_OutputModel):
    """Teacher double-bookings found across a school's timetables."""
    school_id: str = Field(alias="schoolId")
    term: Term
    has_conflicts: bool = Field(alias="hasConflicts")
    conflicts: list[ConflictItem] = Field(default_factory=list)
    summary: ConflictSummary
    teacher_workload: list[TeacherWorkload] = Field(default_factory=list, alias="teacherWorkload")

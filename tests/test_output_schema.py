"""Tests for output schema."""

from __future__ import annotations

import json

import pytest

from timetabler.assigner import AllocationFulfillment
from timetabler.data.models import ScheduleEntry, Term, Timetable
from timetabler.output.schema import (
    BulkGenerationResult,
    ClassGenerationError,
    EntryOutput,
    FulfillmentOutput,
    GenerationResult,
    create_generation_result,
)


@pytest.fixture
def timetable() -> Timetable:
    return Timetable(
        school_id="S1",
        class_id="C1",
        term=Term.FIRST,
        version=2,
        schedule=[
            ScheduleEntry(day="MONDAY", period=1, start_time="08:00", end_time="08:40",
                          teacher_id="T1", subject_id="MATH", class_id="C1", subject_name="Maths"),
            ScheduleEntry(day="MONDAY", period=2, start_time="08:40", end_time="09:20",
                          teacher_id="T1", subject_id="MATH", class_id="C1", subject_name="Maths"),
        ],
    )


@pytest.fixture
def fulfillment() -> list[AllocationFulfillment]:
    return [
        AllocationFulfillment(
            allocation_id="A1", teacher_id="T1", subject_id="MATH",
            required=3, requires_double_period=True, fulfilled=2, double_periods=1,
        ),
    ]


class TestGenerationResult:
    """Tests for single-class results."""

    def test_create(self, timetable, fulfillment):
        result = create_generation_result(timetable, "JSS1 A", fulfillment)
        assert result.version == 2
        assert result.periods_generated == 2
        assert result.has_shortfall
        assert result.total_shortfall == 1
        assert result.fulfillment[0].shortfall == 1

    def test_camel_case_json(self, timetable, fulfillment):
        data = json.loads(create_generation_result(timetable, "JSS1 A", fulfillment).to_json())
        assert data["className"] == "JSS1 A"
        assert data["term"] == "FIRST"
        assert data["schedule"][0] == {
            "day": "MONDAY",
            "period": 1,
            "startTime": "08:00",
            "endTime": "08:40",
            "teacherId": "T1",
            "subjectId": "MATH",
            "classId": "C1",
            "teacherName": None,
            "subjectName": "Maths",
            "className": None,
        }
        assert data["fulfillment"][0]["doublePeriods"] == 1

    def test_parse_by_alias_and_name(self, timetable, fulfillment):
        data = create_generation_result(timetable, "JSS1 A", fulfillment).to_dict()
        assert GenerationResult.model_validate(data).class_name == "JSS1 A"
        entry = EntryOutput(
            day="MONDAY", period=1, start_time="08:00", end_time="08:40",
            teacher_id="T1", subject_id="MATH", class_id="C1",
        )
        assert entry.to_dict()["startTime"] == "08:00"


class TestBulkGenerationResult:
    """Tests for bulk results."""

    def test_success_flags(self):
        result = BulkGenerationResult(
            school_id="S1", term=Term.SECOND, total_classes=1, successful=0, failed=1,
            errors=[ClassGenerationError(class_id="C1", class_name="JSS1 A", error="bad")],
        )
        data = result.to_dict()
        assert data["levelId"] is None
        assert data["errors"][0]["success"] is False
        assert data["partiallyFulfilled"] == 0

    def test_fulfillment_output(self, fulfillment):
        out = FulfillmentOutput.from_fulfillment(fulfillment[0])
        assert out.to_dict()["requiresDoublePeriod"] is True
        assert out.shortfall == 1

"""Shared fixtures: a small two-level school on a 5 x 8 period week."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from timetabler.data.loader import parse_school_data
from timetabler.data.models import SchoolData, Subject, Teacher, TimetableConfig
from timetabler.settings import Settings
from timetabler.store import TimetableStore


@pytest.fixture
def school_dict() -> dict:
    """School dataset as exported by the web application (camelCase keys)."""
    return {
        "school": {"id": "S1", "name": "Greenfield College", "subdomain": "greenfield", "isActive": True},
        "config": {
            "schoolStartTime": "08:00",
            "schoolEndTime": "13:20",
            "periodDuration": 40,
            "breaks": [],
            "workingDays": ["MONDAY", "TUESDAY", "WEDNESDAY", "THURSDAY", "FRIDAY"],
        },
        "levels": [
            {"id": "L1", "name": "JSS1"},
            {"id": "L2", "name": "JSS2"},
        ],
        "classes": [
            {"id": "C1", "name": "A", "levelId": "L1"},
            {"id": "C2", "name": "B", "levelId": "L1"},
            {"id": "C3", "name": "A", "levelId": "L2"},
        ],
        "teachers": [
            {"id": "T1", "name": "Mrs Adeyemi"},
            {"id": "T2", "name": "Mr Okafor"},
            {"id": "T3", "name": "Ms Bello"},
            {"id": "T4", "name": "Mr Eze"},
        ],
        "subjects": [
            {"id": "MATH", "name": "Mathematics"},
            {"id": "ENG", "name": "English"},
            {"id": "SCI", "name": "Basic Science"},
            {"id": "ART", "name": "Fine Art"},
        ],
        "allocations": [
            {"id": "A1", "teacherId": "T1", "subjectId": "MATH", "classId": "C1",
             "hoursPerWeek": 5, "requiresDoublePeriod": True},
            {"id": "A2", "teacherId": "T2", "subjectId": "ENG", "classId": "C1", "hoursPerWeek": 4},
            {"id": "A3", "teacherId": "T3", "subjectId": "SCI", "classId": "C1", "hoursPerWeek": 3},
            {"id": "A4", "teacherId": "T1", "subjectId": "MATH", "classId": "C2", "hoursPerWeek": 4},
            {"id": "A5", "teacherId": "T2", "subjectId": "ENG", "classId": "C2",
             "hoursPerWeek": 4, "requiresDoublePeriod": True},
            {"id": "A6", "teacherId": "T4", "subjectId": "ART", "classId": "C3", "hoursPerWeek": 2},
            {"id": "A7", "teacherId": "T3", "subjectId": "SCI", "classId": "C3", "hoursPerWeek": 2},
            {"id": "A8", "teacherId": "T4", "subjectId": "ART", "classId": "C3",
             "hoursPerWeek": 3, "isActive": False},
        ],
    }


@pytest.fixture
def school_data(school_dict) -> SchoolData:
    return parse_school_data(school_dict)


@pytest.fixture
def store(school_data) -> TimetableStore:
    return TimetableStore([school_data])


@pytest.fixture
def data_file(school_dict, tmp_path) -> Path:
    """Dataset written to a temporary JSON file."""
    path = tmp_path / "school.json"
    with open(path, "w") as f:
        json.dump(school_dict, f)
    return path


@pytest.fixture
def config() -> TimetableConfig:
    """08:00-13:20 in 40-minute periods: 8 periods a day, no breaks."""
    return TimetableConfig(
        school_start_time="08:00",
        school_end_time="13:20",
        period_duration=40,
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(environment="development", allow_split_double_periods=False, enforce_daily_spread=True)


@pytest.fixture
def teachers() -> dict[str, Teacher]:
    return {f"T{i}": Teacher(id=f"T{i}", name=f"Teacher {i}") for i in range(1, 9)}


@pytest.fixture
def subjects() -> dict[str, Subject]:
    names = ["MATH", "ENG", "SCI", "HIS", "GEO", "ART", "PE", "MUS"]
    return {s: Subject(id=s, name=s.capitalize()) for s in names}

"""Tests for dataset loading and saving."""

import json

import pytest

from timetabler.data.loader import load_school_data, parse_school_data, save_school_data
from timetabler.data.models import Term, Timetable, Weekday
from timetabler.errors import DataValidationError


class TestLoad:
    """Tests for loading datasets from disk."""

    def test_load_camel_case(self, data_file):
        data = load_school_data(data_file)
        assert data.school.subdomain == "greenfield"
        assert data.config.period_duration == 40
        assert data.config.working_days[0] == Weekday.MONDAY
        assert data.get_class("C1").level_id == "L1"
        allocation = data.allocations[0]
        assert allocation.hours_per_week == 5
        assert allocation.requires_double_period is True

    def test_load_snake_case(self, school_data, tmp_path):
        path = tmp_path / "snake.json"
        path.write_text(school_data.model_dump_json())
        assert load_school_data(path) == school_data

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_school_data(tmp_path / "nope.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        with pytest.raises(DataValidationError, match="invalid JSON"):
            load_school_data(path)

    def test_missing_school(self, school_dict):
        del school_dict["school"]
        with pytest.raises(DataValidationError, match="school"):
            parse_school_data(school_dict)

    def test_unknown_field_rejected(self, school_dict):
        school_dict["teachers"][0]["favouriteColour"] = "blue"
        with pytest.raises(DataValidationError, match="favourite_colour"):
            parse_school_data(school_dict)

    def test_not_an_object(self):
        with pytest.raises(DataValidationError, match="must be a JSON object"):
            parse_school_data([1, 2, 3])

    def test_config_optional(self, school_dict):
        del school_dict["config"]
        assert parse_school_data(school_dict).config is None

    def test_timetable_document_form(self, school_dict):
        school_dict["timetables"] = [{
            "schoolId": "S1",
            "classId": "C1",
            "term": "FIRST",
            "schedule": {
                "MONDAY": [{"period": 1, "subjectId": "MATH", "teacherId": "T1",
                            "startTime": "08:00", "endTime": "08:40"}],
                "TUESDAY": [],
            },
        }]
        data = parse_school_data(school_dict)
        timetable = data.timetables[0]
        assert timetable.term == Term.FIRST
        assert timetable.schedule[0].day == Weekday.MONDAY
        assert timetable.schedule[0].teacher_id == "T1"


class TestSave:
    """Tests for writing datasets back to disk."""

    def test_round_trip(self, school_data, tmp_path):
        entry = {
            "day": "MONDAY", "period": 1, "teacher_id": "T1", "subject_id": "MATH",
            "class_id": "C1", "start_time": "08:00", "end_time": "08:40",
        }
        timetable = Timetable(school_id="S1", class_id="C1", term=Term.FIRST, schedule=[entry], version=3)
        data = school_data.model_copy(update={"timetables": [timetable]})
        path = tmp_path / "out" / "school.json"

        save_school_data(data, path)
        loaded = load_school_data(path)

        assert loaded.timetables[0].version == 3
        assert loaded.timetables[0].schedule[0].start_time == "08:00"
        assert loaded.allocations == school_data.allocations

    def test_no_temp_files_left(self, school_data, tmp_path):
        path = tmp_path / "school.json"
        save_school_data(school_data, path)
        save_school_data(school_data, path)
        assert [p.name for p in tmp_path.iterdir()] == ["school.json"]
        assert json.loads(path.read_text())["school"]["id"] == "S1"

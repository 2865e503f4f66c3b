"""Tests for CLI module."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from timetabler.cli import app
from timetabler.data.loader import load_school_data
from timetabler.data.models import Term


runner = CliRunner()


@pytest.fixture
def conflicting_file(school_dict, tmp_path) -> Path:
    """Dataset whose stored timetables double-book T1 on Monday morning."""
    entry = {"period": 1, "subjectId": "MATH", "teacherId": "T1", "startTime": "08:00", "endTime": "08:40"}
    school_dict["timetables"] = [
        {"schoolId": "S1", "classId": "C1", "term": "FIRST", "schedule": {"MONDAY": [entry]}},
        {"schoolId": "S1", "classId": "C2", "term": "FIRST", "schedule": {"MONDAY": [entry]}},
    ]
    path = tmp_path / "conflicts.json"
    path.write_text(json.dumps(school_dict))
    return path


class TestValidateCommand:
    """Tests for validate command."""

    def test_valid_dataset(self, data_file):
        result = runner.invoke(app, ["validate", str(data_file)])
        assert result.exit_code == 0
        assert "Schema validation passed" in result.stdout
        assert "Validation complete" in result.stdout

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{ invalid json }")
        result = runner.invoke(app, ["validate", str(path)])
        assert result.exit_code == 1
        assert "Schema validation failed" in result.stdout

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, ["validate", str(tmp_path / "nope.json")])
        assert result.exit_code == 1
        assert "not found" in result.stdout

    def test_bad_config(self, school_dict, tmp_path):
        school_dict["config"]["periodDuration"] = 0
        path = tmp_path / "school.json"
        path.write_text(json.dumps(school_dict))
        result = runner.invoke(app, ["validate", str(path)])
        assert result.exit_code == 1
        assert "Invalid configuration" in result.stdout

    def test_capacity_warning(self, school_dict, tmp_path):
        school_dict["allocations"][0]["hoursPerWeek"] = 50
        path = tmp_path / "school.json"
        path.write_text(json.dumps(school_dict))
        result = runner.invoke(app, ["validate", str(path)])
        assert result.exit_code == 0
        assert "Warnings found" in result.stdout


class TestGridCommand:
    """Tests for grid command."""

    def test_grid(self, data_file):
        result = runner.invoke(app, ["grid", str(data_file)])
        assert result.exit_code == 0
        assert "Slots per week: 40" in result.stdout
        assert "12:40" in result.stdout


class TestGenerateCommands:
    """Tests for generate and generate-bulk commands."""

    def test_generate_writes_output(self, data_file, tmp_path):
        output = tmp_path / "result.json"
        result = runner.invoke(app, ["generate", str(data_file), "--class", "C1", "--term", "FIRST", "-o", str(output)])

        assert result.exit_code == 0
        data = json.loads(output.read_text())
        assert data["classId"] == "C1"
        assert data["periodsGenerated"] == 12
        # Dataset untouched without --save
        assert load_school_data(data_file).timetables == []

    def test_generate_save(self, data_file):
        result = runner.invoke(app, ["generate", str(data_file), "--class", "C1", "--term", "second", "--save"])

        assert result.exit_code == 0
        saved = load_school_data(data_file)
        assert len(saved.timetables) == 1
        assert saved.timetables[0].term == Term.SECOND

    def test_generate_unknown_class(self, data_file):
        result = runner.invoke(app, ["generate", str(data_file), "--class", "C9"])
        assert result.exit_code == 1
        assert "C9" in result.stdout

    def test_generate_bulk(self, data_file, tmp_path):
        output = tmp_path / "bulk.json"
        result = runner.invoke(app, ["generate-bulk", str(data_file), "--level", "L1", "-o", str(output), "--save"])

        assert result.exit_code == 0
        assert "2/2" in result.stdout
        data = json.loads(output.read_text())
        assert data["totalClasses"] == 2
        assert len(load_school_data(data_file).timetables) == 2

    def test_data_file_from_environment(self, data_file, monkeypatch):
        from timetabler.settings import get_settings

        monkeypatch.setenv("TIMETABLER_DATA_FILE", str(data_file))
        get_settings.cache_clear()
        try:
            result = runner.invoke(app, ["generate-bulk"])
        finally:
            get_settings.cache_clear()
        assert result.exit_code == 0
        assert "3/3" in result.stdout


class TestVerifyCommand:
    """Tests for verify command."""

    def test_no_conflicts_after_bulk(self, data_file):
        runner.invoke(app, ["generate-bulk", str(data_file), "--save"])
        result = runner.invoke(app, ["verify", str(data_file)])
        assert result.exit_code == 0
        assert "No teacher conflicts" in result.stdout

    def test_conflicts_exit_nonzero(self, conflicting_file):
        result = runner.invoke(app, ["verify", str(conflicting_file)])
        assert result.exit_code == 1
        assert "1 conflicts found" in result.stdout

    def test_json(self, conflicting_file):
        result = runner.invoke(app, ["verify", str(conflicting_file), "--json"])
        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert data["summary"]["totalConflicts"] == 1
        assert data["conflicts"][0]["teacherName"] == "Mrs Adeyemi"


class TestShowCommand:
    """Tests for show command."""

    def test_show_grid(self, data_file):
        runner.invoke(app, ["generate", str(data_file), "--class", "C1", "--save"])
        result = runner.invoke(app, ["show", str(data_file), "--class", "C1"])
        assert result.exit_code == 0
        assert "JSS1 A" in result.stdout
        assert "Mon" in result.stdout

    def test_show_csv(self, data_file):
        runner.invoke(app, ["generate", str(data_file), "--class", "C1", "--save"])
        result = runner.invoke(app, ["show", str(data_file), "--class", "C1", "--csv"])
        assert result.exit_code == 0
        lines = result.stdout.strip().splitlines()
        assert lines[0].startswith("day,period,start_time")
        assert len(lines) == 13
        assert lines[1].startswith("MONDAY,1,08:00,08:40,MATH")

    def test_show_missing_timetable(self, data_file):
        result = runner.invoke(app, ["show", str(data_file), "--class", "C1"])
        assert result.exit_code == 1
        assert "No FIRST term timetable" in result.stdout

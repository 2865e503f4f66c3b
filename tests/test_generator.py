"""Tests for single-class and bulk timetable generation."""

from __future__ import annotations

import threading

import pytest

from timetabler.data.models import SchoolData, Term
from timetabler.errors import InvalidConfig, SchoolOrClassNotFound, StructuralAllocationError
from timetabler.generator import TimetableGenerator, generate_bulk, generate_timetable
from timetabler.store import TimetableStore
from timetabler.verifier import verify_timetables


@pytest.fixture
def generator(store, settings) -> TimetableGenerator:
    return TimetableGenerator(store, settings)


def _with(school_data: SchoolData, **changes) -> TimetableStore:
    """Store over a modified copy of the dataset."""
    raw = school_data.model_dump()
    raw.update(changes)
    return TimetableStore([SchoolData.model_validate(raw)])


class TestGenerate:
    """Tests for generating one class."""

    def test_generate_class(self, generator, store):
        result = generator.generate("S1", "C1", Term.FIRST)

        assert result.school_id == "S1"
        assert result.class_name == "JSS1 A"
        assert result.version == 1
        assert result.periods_generated == 12
        assert not result.has_shortfall
        assert [f.allocation_id for f in result.fulfillment] == ["A1", "A2", "A3"]

        stored = store.get_timetable("S1", "C1", Term.FIRST)
        assert stored.level_id == "L1"
        assert len(stored.schedule) == 12

    def test_generate_by_subdomain(self, generator):
        assert generator.generate("greenfield", "C1", Term.FIRST).school_id == "S1"

    def test_serialized_result(self, generator):
        data = generator.generate("S1", "C1", Term.FIRST).to_dict()
        assert data["classId"] == "C1"
        assert data["periodsGenerated"] == 12
        assert data["schedule"][0]["startTime"] == "08:00"
        assert data["fulfillment"][0]["requiresDoublePeriod"] is True

    def test_regenerate_is_idempotent(self, generator, store):
        """Regenerating replaces the class's own bookings instead of clashing with them."""
        first = generator.generate("S1", "C1", Term.FIRST)
        second = generator.generate("S1", "C1", Term.FIRST)

        assert second.version == 2
        assert second.periods_generated == first.periods_generated
        assert [f.fulfilled for f in second.fulfillment] == [f.fulfilled for f in first.fulfillment]
        assert second.schedule == first.schedule

    def test_respects_other_classes(self, generator, store):
        """C2 shares teachers with C1 and must avoid C1's committed slots."""
        generator.generate("S1", "C1", Term.FIRST)
        generator.generate("S1", "C2", Term.FIRST)
        report = verify_timetables(store, "S1", Term.FIRST)
        assert not report.has_conflicts

    def test_terms_do_not_interact(self, generator):
        first = generator.generate("S1", "C1", Term.FIRST)
        second = generator.generate("S1", "C1", Term.SECOND)
        assert second.version == 1
        assert second.schedule == first.schedule

    def test_unknown_class(self, generator):
        with pytest.raises(SchoolOrClassNotFound):
            generator.generate("S1", "C9", Term.FIRST)

    def test_unknown_school(self, generator):
        with pytest.raises(SchoolOrClassNotFound):
            generator.generate("S9", "C1", Term.FIRST)

    def test_missing_config(self, school_data, settings):
        store = _with(school_data, config=None)
        with pytest.raises(InvalidConfig):
            TimetableGenerator(store, settings).generate("S1", "C1", Term.FIRST)
        assert store.get_timetable("S1", "C1", Term.FIRST) is None

    def test_structural_error_writes_nothing(self, school_data, settings):
        raw_allocations = [a.model_dump() for a in school_data.allocations]
        raw_allocations[1]["teacher_id"] = "T99"
        store = _with(school_data, allocations=raw_allocations)
        generator = TimetableGenerator(store, settings)

        with pytest.raises(StructuralAllocationError, match="unknown teacher 'T99'"):
            generator.generate("S1", "C1", Term.FIRST)
        assert store.get_timetable("S1", "C1", Term.FIRST) is None

    def test_failed_regeneration_keeps_old_bookings(self, school_data, settings):
        """A class that fails structurally keeps blocking its teachers for later classes."""
        store = TimetableStore([school_data])
        TimetableGenerator(store, settings).generate("S1", "C1", Term.FIRST)

        raw = school_data.model_dump()
        raw["allocations"][0]["hours_per_week"] = 0
        broken = TimetableStore([SchoolData.model_validate(raw)])
        for timetable in store.list_timetables("S1", Term.FIRST):
            broken.insert_timetable(timetable)

        result = TimetableGenerator(broken, settings).generate_bulk("S1", "L1", Term.FIRST)

        assert [e.class_id for e in result.errors] == ["C1"]
        assert not verify_timetables(broken, "S1", Term.FIRST).has_conflicts

    def test_module_helper(self, store, settings):
        result = generate_timetable(store, "S1", "C3", Term.THIRD, settings)
        assert result.periods_generated == 4


class TestGenerateBulk:
    """Tests for level and whole-school generation."""

    def test_level(self, generator, store):
        result = generator.generate_bulk("S1", "L1", Term.FIRST)

        assert result.total_classes == 2
        assert result.successful == 2
        assert result.failed == 0
        assert [r.class_id for r in result.results] == ["C1", "C2"]
        assert store.get_timetable("S1", "C3", Term.FIRST) is None

    def test_whole_school(self, generator, store):
        result = generator.generate_bulk("S1", None, Term.FIRST)
        assert result.total_classes == 3
        assert result.successful == 3
        assert result.level_id is None
        assert len(store.list_timetables("S1", Term.FIRST)) == 3

    def test_no_conflicts_after_bulk(self, generator, store):
        generator.generate_bulk("S1", None, Term.FIRST)
        report = verify_timetables(store, "S1", Term.FIRST)
        assert report.summary.total_timetables == 3
        assert report.conflicts == []

    def test_bulk_twice_is_stable(self, generator, store):
        first = generator.generate_bulk("S1", None, Term.FIRST)
        second = generator.generate_bulk("S1", None, Term.FIRST)
        assert [r.periods_generated for r in second.results] == [r.periods_generated for r in first.results]
        assert all(t.version == 2 for t in store.list_timetables("S1", Term.FIRST))
        assert not verify_timetables(store, "S1", Term.FIRST).has_conflicts

    def test_structural_error_isolated(self, school_data, settings):
        raw_allocations = [a.model_dump() for a in school_data.allocations]
        raw_allocations[5]["subject_id"] = "LATIN"  # A6, class C3
        store = _with(school_data, allocations=raw_allocations)

        result = TimetableGenerator(store, settings).generate_bulk("S1", None, Term.FIRST)

        assert result.successful == 2
        assert result.failed == 1
        error = result.errors[0]
        assert error.class_id == "C3"
        assert error.class_name == "JSS2 A"
        assert "unknown subject 'LATIN'" in error.error
        assert store.get_timetable("S1", "C3", Term.FIRST) is None

    def test_class_without_allocations_is_an_error(self, school_data, settings):
        raw = school_data.model_dump()
        raw["classes"].append({"id": "C4", "name": "C", "level_id": "L2"})
        store = TimetableStore([SchoolData.model_validate(raw)])

        result = TimetableGenerator(store, settings).generate_bulk("S1", "L2", Term.FIRST)

        assert [e.class_id for e in result.errors] == ["C4"]
        assert "No active allocations" in result.errors[0].error

    def test_shared_teacher_overload(self, school_data, settings):
        """Two classes each needing 30 periods from one teacher cannot both be satisfied."""
        raw = school_data.model_dump()
        raw["allocations"] = [
            {"id": "X1", "teacher_id": "T1", "subject_id": "MATH", "class_id": "C1", "hours_per_week": 30},
            {"id": "X2", "teacher_id": "T1", "subject_id": "MATH", "class_id": "C2", "hours_per_week": 30},
        ]
        store = TimetableStore([SchoolData.model_validate(raw)])

        result = TimetableGenerator(store, settings).generate_bulk("S1", "L1", Term.FIRST)

        assert result.successful == 2
        assert result.partially_fulfilled >= 1
        shortfalls = {r.class_id: r.shortfall for r in result.results}
        assert shortfalls == {"C1": 0, "C2": 20}
        assert not verify_timetables(store, "S1", Term.FIRST).has_conflicts

    def test_unknown_level(self, generator):
        with pytest.raises(SchoolOrClassNotFound):
            generator.generate_bulk("S1", "L9", Term.FIRST)

    def test_missing_config_aborts(self, school_data, settings):
        store = _with(school_data, config=None)
        with pytest.raises(InvalidConfig):
            TimetableGenerator(store, settings).generate_bulk("S1", None, Term.FIRST)

    def test_serialized(self, generator):
        data = generate_bulk(generator.store, "S1", "L1", Term.FIRST, generator.settings).to_dict()
        assert data["totalClasses"] == 2
        assert data["levelId"] == "L1"
        assert data["results"][0]["success"] is True

    def test_concurrent_runs_do_not_clash(self, store, settings):
        """Parallel runs for the same school and term are serialized by the store lock."""
        errors: list[BaseException] = []

        def run(level_id):
            try:
                TimetableGenerator(store, settings).generate_bulk("S1", level_id, Term.FIRST)
            except BaseException as e:  # pragma: no cover
                errors.append(e)

        threads = [threading.Thread(target=run, args=(level,)) for level in ("L1", "L2", None, "L1")]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert not verify_timetables(store, "S1", Term.FIRST).has_conflicts

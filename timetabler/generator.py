"""
Timetable generation for single classes and whole levels.

Both entry points hold the store's generation lock for the school and term
for their whole run: the occupancy tracker is seeded from committed
timetables, classes are placed one after another against that tracker, and
each class's timetable is upserted as soon as it is placed.
"""

from __future__ import annotations

import logging
from typing import Optional

from .assigner import AllocationAssigner, AssignmentResult
from .data.models import SchoolClass, SchoolData, Term, Timetable
from .errors import StructuralAllocationError
from .grid import SlotGrid, build_slot_grid
from .occupancy import TeacherOccupancyTracker
from .output.schema import (
    BulkGenerationResult,
    ClassGenerationError,
    ClassGenerationSummary,
    FulfillmentOutput,
    GenerationResult,
    create_generation_result,
)
from .settings import Settings, get_settings
from .store import TimetableStore

logger = logging.getLogger(__name__)


class TimetableGenerator:
    """Generates and persists class timetables against a TimetableStore."""

    def __init__(self, store: TimetableStore, settings: Optional[Settings] = None):
        self.store = store
        self.settings = settings or get_settings()

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def generate(self, school_id: str, class_id: str, term: Term) -> GenerationResult:
        """
        Generate and store the timetable of one class.

        Raises:
            SchoolOrClassNotFound: If the school or class is unknown
            InvalidConfig: If the school's time configuration is missing or bad
            StructuralAllocationError: If the class's allocations are malformed
        """
        school = self.store.resolve_school(school_id)
        school_class = self.store.get_class(school.school.id, class_id)
        grid = build_slot_grid(school.config)

        with self.store.generation_lock(school.school.id, term):
            occupancy = self._seed_occupancy(school, term)
            timetable, assignment = self._generate_class(school, school_class, term, grid, occupancy)

        return create_generation_result(
            timetable,
            school.class_display_name(class_id),
            assignment.fulfillment,
        )

    def generate_bulk(
        self,
        school_id: str,
        level_id: Optional[str],
        term: Term,
    ) -> BulkGenerationResult:
        """
        Generate every class of a level, or of the whole school when
        level_id is None.

        A structural allocation error fails only its own class; it is
        recorded in `errors` and the run continues.

        Raises:
            SchoolOrClassNotFound: If the school or level is unknown, or empty
            InvalidConfig: If the school's time configuration is missing or bad
        """
        school = self.store.resolve_school(school_id)
        classes = self.store.list_classes(school.school.id, level_id)
        grid = build_slot_grid(school.config)

        results: list[ClassGenerationSummary] = []
        errors: list[ClassGenerationError] = []

        with self.store.generation_lock(school.school.id, term):
            occupancy = self._seed_occupancy(school, term)

            for school_class in classes:
                class_name = school.class_display_name(school_class.id)
                try:
                    timetable, assignment = self._generate_class(
                        school, school_class, term, grid, occupancy
                    )
                except StructuralAllocationError as e:
                    logger.warning("Skipping class %s: %s", class_name, e)
                    errors.append(ClassGenerationError(
                        class_id=school_class.id,
                        class_name=class_name,
                        error=str(e),
                    ))
                    continue

                shortfall = sum(f.shortfall for f in assignment.fulfillment)
                results.append(ClassGenerationSummary(
                    class_id=school_class.id,
                    class_name=class_name,
                    periods_generated=len(timetable.schedule),
                    shortfall=shortfall,
                    fulfillment=[FulfillmentOutput.from_fulfillment(f) for f in assignment.fulfillment],
                ))

        result = BulkGenerationResult(
            school_id=school.school.id,
            level_id=level_id,
            term=term,
            total_classes=len(classes),
            successful=len(results),
            failed=len(errors),
            partially_fulfilled=sum(1 for r in results if r.shortfall),
            results=results,
            errors=errors,
        )
        logger.info(
            "Bulk generation for %s (%s, %s): %d/%d classes generated, %d partially fulfilled",
            school.school.id, level_id or "all levels", term.value,
            result.successful, result.total_classes, result.partially_fulfilled,
        )
        return result

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _seed_occupancy(self, school: SchoolData, term: Term) -> TeacherOccupancyTracker:
        timetables = self.store.list_timetables(school.school.id, term)
        occupancy = TeacherOccupancyTracker.from_timetables(
            timetables, school_id=school.school.id, term=term
        )
        logger.debug(
            "Seeded occupancy for %s %s from %d timetables (%d bookings)",
            school.school.id, term.value, len(timetables), len(occupancy),
        )
        return occupancy

    def _generate_class(
        self,
        school: SchoolData,
        school_class: SchoolClass,
        term: Term,
        grid: SlotGrid,
        occupancy: TeacherOccupancyTracker,
    ) -> tuple[Timetable, AssignmentResult]:
        """Place one class and upsert its timetable."""
        assigner = AllocationAssigner(
            grid,
            occupancy,
            teachers=school.teacher_map,
            subjects=school.subject_map,
            allow_split_double_periods=self.settings.allow_split_double_periods,
            enforce_daily_spread=self.settings.enforce_daily_spread,
        )
        allocations = self.store.list_allocations(school.school.id, school_class.id)
        class_name = school.class_display_name(school_class.id)

        released = occupancy.release_class(school_class.id)
        try:
            assignment = assigner.assign(school_class, allocations, class_name=class_name)
        except StructuralAllocationError:
            occupancy.restore(released)
            raise

        timetable = self.store.upsert_timetable(
            school.school.id,
            school_class.id,
            term,
            assignment.schedule,
            level_id=school_class.level_id,
        )
        logger.info(
            "Generated %s for %s: %d periods, %d allocations short",
            class_name, term.value, len(timetable.schedule), len(assignment.shortfalls),
        )
        return timetable, assignment


def generate_timetable(
    store: TimetableStore,
    school_id: str,
    class_id: str,
    term: Term,
    settings: Optional[Settings] = None,
) -> GenerationResult:
    """Convenience wrapper around TimetableGenerator.generate()."""
    return TimetableGenerator(store, settings).generate(school_id, class_id, term)


def generate_bulk(
    store: TimetableStore,
    school_id: str,
    level_id: Optional[str],
    term: Term,
    settings: Optional[Settings] = None,
) -> BulkGenerationResult:
    """Convenience wrapper around TimetableGenerator.generate_bulk()."""
    return TimetableGenerator(store, settings).generate_bulk(school_id, level_id, term)

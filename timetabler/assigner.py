"""
Greedy placement of one class's allocations onto the slot grid.

Placement policy:
1. Validate every allocation before placing anything.
2. Order allocations: double-period first, then most hours, then teacher,
   subject and allocation ID, so identical input gives identical output.
3. Expand allocations into placement units: a pair unit per two hours of a
   double-period allocation, a single unit per remaining hour. All pair
   units go before any single unit.
4. Each unit takes the earliest candidate where the class slot(s) are empty
   and the teacher is free in the occupancy tracker. Days where the
   allocation is still under its daily cap are tried first.
5. Units that cannot be placed are reported as shortfall. There is no
   backtracking across allocations.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Mapping, Optional, Sequence

from .data.models import (
    Allocation,
    ScheduleEntry,
    SchoolClass,
    Subject,
    Teacher,
    Weekday,
    sort_schedule,
)
from .errors import StructuralAllocationError
from .grid import Slot, SlotGrid
from .occupancy import TeacherOccupancyTracker

logger = logging.getLogger(__name__)


# =============================================================================
# Result Types
# =============================================================================

@dataclass
class AllocationFulfillment:
    """Required versus placed periods for one allocation."""
    allocation_id: str
    teacher_id: str
    subject_id: str
    required: int
    requires_double_period: bool = False
    fulfilled: int = 0
    double_periods: int = 0

    @property
    def shortfall(self) -> int:
        return max(self.required - self.fulfilled, 0)

    @property
    def is_fulfilled(self) -> bool:
        return self.shortfall == 0


@dataclass
class AssignmentResult:
    """Schedule produced for one class plus the occupancy state it updated."""
    class_id: str
    schedule: list[ScheduleEntry]
    fulfillment: list[AllocationFulfillment]
    occupancy: TeacherOccupancyTracker

    @property
    def total_periods(self) -> int:
        return len(self.schedule)

    @property
    def shortfalls(self) -> list[AllocationFulfillment]:
        return [f for f in self.fulfillment if not f.is_fulfilled]

    @property
    def has_shortfall(self) -> bool:
        return bool(self.shortfalls)


@dataclass(frozen=True)
class _Unit:
    allocation: Allocation
    size: int


# =============================================================================
# Assigner
# =============================================================================

class AllocationAssigner:
    """
    Places allocations for one class at a time.

    The occupancy tracker is passed in explicitly and mutated as units are
    placed; the same instance is returned in every AssignmentResult.
    """

    def __init__(
        self,
        grid: SlotGrid,
        occupancy: TeacherOccupancyTracker,
        teachers: Mapping[str, Teacher],
        subjects: Mapping[str, Subject],
        allow_split_double_periods: bool = False,
        enforce_daily_spread: bool = True,
    ):
        self.grid = grid
        self.occupancy = occupancy
        self.teachers = teachers
        self.subjects = subjects
        self.allow_split_double_periods = allow_split_double_periods
        self.enforce_daily_spread = enforce_daily_spread

    # -------------------------------------------------------------------------
    # Validation and ordering
    # -------------------------------------------------------------------------

    def validate_allocations(self, class_id: str, allocations: Sequence[Allocation]) -> None:
        """
        Raises:
            StructuralAllocationError: If any allocation is malformed
        """
        if not allocations:
            raise StructuralAllocationError(
                f"No active allocations found for class {class_id}. Assign teachers to subjects first.",
                class_id=class_id,
            )

        errors: list[str] = []
        seen_ids: set[str] = set()
        for a in allocations:
            if a.id in seen_ids:
                errors.append(f"Allocation {a.id}: id appears more than once")
            seen_ids.add(a.id)
            if a.class_id != class_id:
                errors.append(f"Allocation {a.id}: belongs to class '{a.class_id}', not '{class_id}'")
            if a.teacher_id not in self.teachers:
                errors.append(f"Allocation {a.id}: unknown teacher '{a.teacher_id}'")
            if a.subject_id not in self.subjects:
                errors.append(f"Allocation {a.id}: unknown subject '{a.subject_id}'")
            if isinstance(a.hours_per_week, bool) or a.hours_per_week < 1:
                errors.append(f"Allocation {a.id}: hours_per_week must be at least 1, got {a.hours_per_week}")

        if errors:
            raise StructuralAllocationError("; ".join(errors), class_id=class_id)

    @staticmethod
    def order_allocations(allocations: Sequence[Allocation]) -> list[Allocation]:
        """Hardest-to-place first, fully deterministic."""
        return sorted(
            allocations,
            key=lambda a: (
                not a.requires_double_period,
                -a.hours_per_week,
                a.teacher_id,
                a.subject_id,
                a.id,
            ),
        )

    def _expand_units(self, ordered: list[Allocation]) -> list[_Unit]:
        pairs: list[_Unit] = []
        singles: list[_Unit] = []
        for a in ordered:
            remaining = a.hours_per_week
            if a.requires_double_period:
                while remaining >= 2:
                    pairs.append(_Unit(a, 2))
                    remaining -= 2
            singles.extend(_Unit(a, 1) for _ in range(remaining))
        return pairs + singles

    def _daily_cap(self, allocation: Allocation) -> int:
        cap = math.ceil(allocation.hours_per_week / len(self.grid.days))
        if allocation.requires_double_period and cap % 2:
            cap += 1
        return cap

    def _day_order(
        self,
        allocation: Allocation,
        size: int,
        day_counts: dict[tuple[str, Weekday], int],
    ) -> list[Weekday]:
        """Working days, those still under the allocation's daily cap first."""
        days = list(self.grid.days)
        if not self.enforce_daily_spread:
            return days
        cap = self._daily_cap(allocation)
        under = [d for d in days if day_counts.get((allocation.id, d), 0) + size <= cap]
        return under + [d for d in days if d not in under]

    # -------------------------------------------------------------------------
    # Placement
    # -------------------------------------------------------------------------

    def assign(
        self,
        school_class: SchoolClass,
        allocations: Sequence[Allocation],
        class_name: Optional[str] = None,
    ) -> AssignmentResult:
        """
        Build the schedule for one class.

        Raises:
            StructuralAllocationError: If an allocation is malformed. Nothing
                has been placed or committed when this is raised.
        """
        class_id = school_class.id
        self.validate_allocations(class_id, allocations)

        taken: dict[tuple[Weekday, int], ScheduleEntry] = {}
        day_counts: dict[tuple[str, Weekday], int] = {}
        fulfillment = {
            a.id: AllocationFulfillment(
                allocation_id=a.id,
                teacher_id=a.teacher_id,
                subject_id=a.subject_id,
                required=a.hours_per_week,
                requires_double_period=a.requires_double_period,
            )
            for a in allocations
        }

        ordered = self.order_allocations(allocations)
        for unit in self._expand_units(ordered):
            a = unit.allocation
            if unit.size == 2:
                pair = self._find_pair(a, taken, day_counts)
                if pair is not None:
                    for slot in pair:
                        self._place(a, slot, class_id, class_name, taken, day_counts)
                    fulfillment[a.id].fulfilled += 2
                    fulfillment[a.id].double_periods += 1
                    continue
                if not self.allow_split_double_periods:
                    logger.warning(
                        "No adjacent pair left for %s (%s) in class %s",
                        a.subject_id, a.teacher_id, class_id,
                    )
                    continue
                placed = sum(
                    self._place_single(a, class_id, class_name, taken, day_counts)
                    for _ in range(2)
                )
                fulfillment[a.id].fulfilled += placed
            else:
                fulfillment[a.id].fulfilled += self._place_single(
                    a, class_id, class_name, taken, day_counts
                )

        result = AssignmentResult(
            class_id=class_id,
            schedule=sort_schedule(list(taken.values())),
            fulfillment=[fulfillment[a.id] for a in allocations],
            occupancy=self.occupancy,
        )

        for f in result.shortfalls:
            logger.warning(
                "Class %s: %s placed %d of %d periods (teacher %s)",
                class_id, f.subject_id, f.fulfilled, f.required, f.teacher_id,
            )

        return result

    def _find_pair(
        self,
        allocation: Allocation,
        taken: dict[tuple[Weekday, int], ScheduleEntry],
        day_counts: dict[tuple[str, Weekday], int],
    ) -> Optional[tuple[Slot, Slot]]:
        for day in self._day_order(allocation, 2, day_counts):
            for first, second in self.grid.adjacent_pairs(day):
                if first.key in taken or second.key in taken:
                    continue
                if (self.occupancy.is_slot_free(allocation.teacher_id, first)
                        and self.occupancy.is_slot_free(allocation.teacher_id, second)):
                    return (first, second)
        return None

    def _find_single(
        self,
        allocation: Allocation,
        taken: dict[tuple[Weekday, int], ScheduleEntry],
        day_counts: dict[tuple[str, Weekday], int],
    ) -> Optional[Slot]:
        for day in self._day_order(allocation, 1, day_counts):
            for slot in self.grid.day_slots(day):
                if slot.key in taken:
                    continue
                if self.occupancy.is_slot_free(allocation.teacher_id, slot):
                    return slot
        return None

    def _place_single(
        self,
        allocation: Allocation,
        class_id: str,
        class_name: Optional[str],
        taken: dict[tuple[Weekday, int], ScheduleEntry],
        day_counts: dict[tuple[str, Weekday], int],
    ) -> int:
        slot = self._find_single(allocation, taken, day_counts)
        if slot is None:
            logger.warning(
                "No free slot left for %s (%s) in class %s",
                allocation.subject_id, allocation.teacher_id, class_id,
            )
            return 0
        self._place(allocation, slot, class_id, class_name, taken, day_counts)
        return 1

    def _place(
        self,
        allocation: Allocation,
        slot: Slot,
        class_id: str,
        class_name: Optional[str],
        taken: dict[tuple[Weekday, int], ScheduleEntry],
        day_counts: dict[tuple[str, Weekday], int],
    ) -> None:
        self.occupancy.commit(allocation.teacher_id, class_id, slot, subject_id=allocation.subject_id)

        teacher = self.teachers.get(allocation.teacher_id)
        subject = self.subjects.get(allocation.subject_id)
        taken[slot.key] = ScheduleEntry(
            day=slot.day,
            period=slot.period,
            teacher_id=allocation.teacher_id,
            subject_id=allocation.subject_id,
            class_id=class_id,
            start_time=slot.start_time,
            end_time=slot.end_time,
            teacher_name=teacher.name if teacher else None,
            subject_name=subject.name if subject else None,
            class_name=class_name,
        )
        key = (allocation.id, slot.day)
        day_counts[key] = day_counts.get(key, 0) + 1

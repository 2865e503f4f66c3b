"""
Teacher occupancy tracking for one school and term.

The tracker is an explicit state object: a generation run creates one,
seeds it from the persisted timetables, hands it to the assigner and gets
it back in the assignment result. Nothing here is module-level state, so
independent runs (and tests) use independent instances.

A single instance must not be shared by two concurrent generation runs;
the store's generation lock serializes runs for the same school and term.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Optional

from .data.models import Term, Timetable, Weekday, day_index, day_name, minutes_to_time
from .errors import TimetablerError

if TYPE_CHECKING:
    from .grid import Slot


class TeacherUnavailable(TimetablerError):
    """Raised when committing a teacher who is already booked at that time."""
    pass


@dataclass(frozen=True)
class Booking:
    """A teacher committed to a class for one interval on one day."""
    teacher_id: str
    class_id: str
    day: Weekday
    start_minutes: int
    end_minutes: int
    period: Optional[int] = None
    subject_id: Optional[str] = None

    def __str__(self) -> str:
        return (
            f"{self.teacher_id} -> {self.class_id} {day_name(self.day)} "
            f"{minutes_to_time(self.start_minutes)}-{minutes_to_time(self.end_minutes)}"
        )


class TeacherOccupancyTracker:
    """Which teachers are committed where, keyed by (teacher, day)."""

    def __init__(self, school_id: Optional[str] = None, term: Optional[Term] = None):
        self.school_id = school_id
        self.term = term
        self._bookings: dict[tuple[str, Weekday], list[Booking]] = {}

    # -------------------------------------------------------------------------
    # Seeding
    # -------------------------------------------------------------------------

    @classmethod
    def from_timetables(
        cls,
        timetables: Iterable[Timetable],
        school_id: Optional[str] = None,
        term: Optional[Term] = None,
    ) -> "TeacherOccupancyTracker":
        """Create a tracker holding every entry of the given timetables."""
        tracker = cls(school_id=school_id, term=term)
        tracker.seed(timetables)
        return tracker

    def seed(self, timetables: Iterable[Timetable]) -> int:
        """
        Load persisted entries without conflict checks.

        Hand-edited timetables may already double-book a teacher; the
        tracker records them as they are and leaves reporting to the
        conflict verifier.

        Returns:
            Number of bookings loaded
        """
        count = 0
        for timetable in timetables:
            for entry in timetable.schedule:
                self._add(Booking(
                    teacher_id=entry.teacher_id,
                    class_id=entry.class_id or timetable.class_id,
                    day=entry.day,
                    start_minutes=entry.start_minutes,
                    end_minutes=entry.end_minutes,
                    period=entry.period,
                    subject_id=entry.subject_id,
                ))
                count += 1
        return count

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def is_free(self, teacher_id: str, day: Weekday, start_minutes: int, end_minutes: int) -> bool:
        """True if the teacher has no booking intersecting [start, end) on that day."""
        for booking in self._bookings.get((teacher_id, day), ()):
            if booking.start_minutes < end_minutes and start_minutes < booking.end_minutes:
                return False
        return True

    def is_slot_free(self, teacher_id: str, slot: Slot) -> bool:
        """Slot-shaped convenience wrapper around is_free()."""
        return self.is_free(teacher_id, slot.day, slot.start_minutes, slot.end_minutes)

    def bookings_for(self, teacher_id: str) -> list[Booking]:
        """All bookings of a teacher, in week order."""
        result = [
            b for (t_id, _), bookings in self._bookings.items() if t_id == teacher_id
            for b in bookings
        ]
        return sorted(result, key=lambda b: (day_index(b.day), b.start_minutes))

    def teacher_load(self, teacher_id: str) -> int:
        """Number of periods the teacher is committed to this week."""
        return sum(
            len(bookings) for (t_id, _), bookings in self._bookings.items() if t_id == teacher_id
        )

    @property
    def teacher_ids(self) -> set[str]:
        return {t_id for (t_id, _), bookings in self._bookings.items() if bookings}

    def __len__(self) -> int:
        return sum(len(b) for b in self._bookings.values())

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def commit(
        self,
        teacher_id: str,
        class_id: str,
        slot: Slot,
        subject_id: Optional[str] = None,
    ) -> Booking:
        """
        Book a teacher into a slot for a class.

        Raises:
            TeacherUnavailable: If the teacher is already booked at that time
        """
        if not self.is_slot_free(teacher_id, slot):
            raise TeacherUnavailable(f"Teacher {teacher_id} is already booked at {slot}")

        booking = Booking(
            teacher_id=teacher_id,
            class_id=class_id,
            day=slot.day,
            start_minutes=slot.start_minutes,
            end_minutes=slot.end_minutes,
            period=slot.period,
            subject_id=subject_id,
        )
        self._add(booking)
        return booking

    def release_class(self, class_id: str) -> list[Booking]:
        """
        Drop every booking held by a class.

        Used before regenerating a class so its stale timetable does not
        block its own teachers.

        Returns:
            The removed bookings, for restore()
        """
        removed: list[Booking] = []
        for key, bookings in self._bookings.items():
            kept = [b for b in bookings if b.class_id != class_id]
            if len(kept) != len(bookings):
                removed.extend(b for b in bookings if b.class_id == class_id)
                self._bookings[key] = kept
        return removed

    def restore(self, bookings: Iterable[Booking]) -> None:
        """Put back bookings previously removed by release_class()."""
        for booking in bookings:
            self._add(booking)

    def copy(self) -> "TeacherOccupancyTracker":
        """Independent copy sharing no mutable state."""
        clone = TeacherOccupancyTracker(school_id=self.school_id, term=self.term)
        clone._bookings = copy.deepcopy(self._bookings)
        return clone

    def _add(self, booking: Booking) -> None:
        self._bookings.setdefault((booking.teacher_id, booking.day), []).append(booking)

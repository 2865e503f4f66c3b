"""
Persistence boundary for school data and generated timetables.

TimetableStore keeps datasets and timetables in memory and can round-trip
them through JSON files. It enforces the one-timetable-per
(school, class, term) rule, makes every timetable write atomic, and hands
out copies on read so callers never observe a half-written timetable.
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional, Union

from .data.loader import load_school_data, save_school_data
from .data.models import (
    Allocation,
    ScheduleEntry,
    SchoolClass,
    SchoolData,
    Term,
    Timetable,
    TimetableConfig,
)
from .errors import PersistenceConflict, SchoolOrClassNotFound


class TimetableStore:
    """Thread-safe in-memory repository keyed by school."""

    def __init__(self, schools: Iterable[SchoolData] = ()):
        self._lock = threading.RLock()
        self._generation_locks: dict[tuple[str, Term], threading.RLock] = {}
        self._schools: dict[str, SchoolData] = {}
        self._timetables: dict[tuple[str, str, Term], Timetable] = {}
        for school in schools:
            self.add_school(school)

    # -------------------------------------------------------------------------
    # File round-trip
    # -------------------------------------------------------------------------

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "TimetableStore":
        """Create a store holding the single school described by a dataset file."""
        return cls([load_school_data(path)])

    def save(self, school_id: str, path: Union[str, Path]) -> None:
        """Write a school's dataset, including current timetables, to disk."""
        save_school_data(self.snapshot(school_id), path)

    # -------------------------------------------------------------------------
    # Schools and reference data
    # -------------------------------------------------------------------------

    def add_school(self, data: SchoolData) -> None:
        """
        Register a school dataset and its persisted timetables.

        Raises:
            PersistenceConflict: If the school is already registered
        """
        with self._lock:
            if data.school.id in self._schools:
                raise PersistenceConflict(f"School '{data.school.id}' is already registered")
            self._schools[data.school.id] = data
            for timetable in data.timetables:
                self._timetables[timetable.key] = timetable.model_copy(deep=True)

    def resolve_school(self, identifier: str) -> SchoolData:
        """
        Find a school by ID, falling back to an active school's subdomain.

        Raises:
            SchoolOrClassNotFound: If nothing matches
        """
        with self._lock:
            school = self._schools.get(identifier)
            if school is None:
                school = next(
                    (s for s in self._schools.values()
                     if s.school.subdomain == identifier and s.school.is_active),
                    None,
                )
        if school is None:
            raise SchoolOrClassNotFound(f"School '{identifier}' not found")
        return school

    def get_config(self, school_id: str) -> Optional[TimetableConfig]:
        return self.resolve_school(school_id).config

    def get_class(self, school_id: str, class_id: str) -> SchoolClass:
        """
        Raises:
            SchoolOrClassNotFound: If the school or class is unknown
        """
        school = self.resolve_school(school_id)
        cls = school.get_class(class_id)
        if cls is None:
            raise SchoolOrClassNotFound(f"Class '{class_id}' not found in school '{school.school.id}'")
        return cls

    def list_classes(self, school_id: str, level_id: Optional[str] = None) -> list[SchoolClass]:
        """
        Classes of a level, or of the whole school when level_id is None.

        Raises:
            SchoolOrClassNotFound: If the level is unknown or has no classes
        """
        school = self.resolve_school(school_id)
        if level_id is not None and school.get_level(level_id) is None:
            raise SchoolOrClassNotFound(f"Level '{level_id}' not found in school '{school.school.id}'")
        classes = school.get_level_classes(level_id)
        if not classes:
            scope = f"level '{level_id}'" if level_id else f"school '{school.school.id}'"
            raise SchoolOrClassNotFound(f"No classes found for {scope}")
        return classes

    def list_allocations(self, school_id: str, class_id: str) -> list[Allocation]:
        """Active allocations of a class."""
        return self.resolve_school(school_id).get_class_allocations(class_id)

    # -------------------------------------------------------------------------
    # Timetables
    # -------------------------------------------------------------------------

    def list_timetables(self, school_id: str, term: Term) -> list[Timetable]:
        """Copies of every committed timetable for a school and term."""
        school_id = self.resolve_school(school_id).school.id
        with self._lock:
            return [
                t.model_copy(deep=True)
                for (s_id, _, t_term), t in sorted(self._timetables.items(), key=lambda kv: kv[0][1])
                if s_id == school_id and t_term == term
            ]

    def get_timetable(self, school_id: str, class_id: str, term: Term) -> Optional[Timetable]:
        school_id = self.resolve_school(school_id).school.id
        with self._lock:
            timetable = self._timetables.get((school_id, class_id, term))
            return timetable.model_copy(deep=True) if timetable else None

    def upsert_timetable(
        self,
        school_id: str,
        class_id: str,
        term: Term,
        schedule: list[ScheduleEntry],
        level_id: Optional[str] = None,
    ) -> Timetable:
        """
        Create or replace the timetable for (school, class, term).

        The new timetable is fully built and validated before it replaces the
        old one, so the swap is atomic for readers.
        """
        school_id = self.resolve_school(school_id).school.id
        key = (school_id, class_id, term)
        with self._lock:
            existing = self._timetables.get(key)
            timetable = Timetable(
                school_id=school_id,
                class_id=class_id,
                term=term,
                level_id=level_id if level_id is not None else (existing.level_id if existing else None),
                schedule=[e.model_copy() for e in schedule],
                version=existing.version + 1 if existing else 1,
                updated_at=datetime.now(timezone.utc),
            )
            self._timetables[key] = timetable
            return timetable.model_copy(deep=True)

    def insert_timetable(self, timetable: Timetable) -> Timetable:
        """
        Store a new timetable, refusing to overwrite.

        Raises:
            PersistenceConflict: If a timetable already exists for the key
        """
        with self._lock:
            if timetable.key in self._timetables:
                raise PersistenceConflict(
                    f"Timetable already exists for class {timetable.class_id} "
                    f"in term {timetable.term.value}"
                )
            self._timetables[timetable.key] = timetable.model_copy(deep=True)
            return timetable

    def delete_timetable(self, school_id: str, class_id: str, term: Term) -> bool:
        school_id = self.resolve_school(school_id).school.id
        with self._lock:
            return self._timetables.pop((school_id, class_id, term), None) is not None

    def generation_lock(self, school_id: str, term: Term) -> threading.RLock:
        """
        Lock serializing generation runs for one school and term.

        Holding it while seeding the occupancy tracker and writing results
        keeps two runs from planning against the same stale occupancy.
        """
        school_id = self.resolve_school(school_id).school.id
        with self._lock:
            return self._generation_locks.setdefault((school_id, term), threading.RLock())

    def snapshot(self, school_id: str) -> SchoolData:
        """The school dataset with its current timetables."""
        school = self.resolve_school(school_id)
        with self._lock:
            timetables = [
                t.model_copy(deep=True)
                for (s_id, _, _), t in sorted(
                    self._timetables.items(), key=lambda kv: (kv[0][1], kv[0][2].value)
                )
                if s_id == school.school.id
            ]
        return school.model_copy(update={"timetables": timetables})

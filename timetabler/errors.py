"""
Exception taxonomy for the timetable engine.

Partial fulfillment is deliberately absent: an allocation whose hours could
not all be placed is reported as data in the generation result, never raised.
"""

from __future__ import annotations

from typing import Optional


class TimetablerError(Exception):
    """Base class for all engine errors."""
    pass


class InvalidConfig(TimetablerError):
    """The school's time configuration is missing or malformed."""
    pass


class SchoolOrClassNotFound(TimetablerError):
    """A school, level or class reference could not be resolved."""
    pass


class StructuralAllocationError(TimetablerError):
    """
    An allocation is malformed or references an unknown teacher/subject.

    Fatal for the class being generated; the bulk generator records it and
    moves on to the next class.
    """

    def __init__(self, message: str, class_id: Optional[str] = None):
        super().__init__(message)
        self.class_id = class_id


class PersistenceConflict(TimetablerError):
    """A timetable write violated the (school, class, term) uniqueness rule."""
    pass


class DataValidationError(TimetablerError):
    """Raised when a school dataset fails validation."""
    pass

"""Timetabler - greedy school timetable generation with teacher conflict checks."""

from .assigner import AllocationAssigner, AllocationFulfillment, AssignmentResult
from .errors import (
    DataValidationError,
    InvalidConfig,
    PersistenceConflict,
    SchoolOrClassNotFound,
    StructuralAllocationError,
    TimetablerError,
)
from .generator import TimetableGenerator, generate_bulk, generate_timetable
from .grid import Slot, SlotGrid, build_slot_grid
from .occupancy import TeacherOccupancyTracker, TeacherUnavailable
from .store import TimetableStore
from .verifier import times_overlap, verify, verify_timetables
from .cli import app as cli_app

__all__ = [
    # Generation
    "TimetableGenerator",
    "generate_timetable",
    "generate_bulk",
    # Building blocks
    "Slot",
    "SlotGrid",
    "build_slot_grid",
    "TeacherOccupancyTracker",
    "TeacherUnavailable",
    "AllocationAssigner",
    "AllocationFulfillment",
    "AssignmentResult",
    "TimetableStore",
    # Verification
    "verify",
    "verify_timetables",
    "times_overlap",
    # Errors
    "TimetablerError",
    "InvalidConfig",
    "SchoolOrClassNotFound",
    "StructuralAllocationError",
    "PersistenceConflict",
    "DataValidationError",
    # CLI
    "cli_app",
]

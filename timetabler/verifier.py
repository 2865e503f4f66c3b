"""
Teacher conflict verification over persisted timetables.

The verifier re-derives conflicts from stored timetables only. It never
looks at the occupancy tracker or the assigner, so hand-edited timetables
are checked exactly like generated ones.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from .data.models import SchoolData, Term, Timetable, Weekday, day_index
from .output.schema import ConflictItem, ConflictReport, ConflictSummary, TeacherWorkload
from .store import TimetableStore

logger = logging.getLogger(__name__)


def _to_minutes(time_str: str) -> int:
    hours, mins = time_str.split(":")
    return int(hours) * 60 + int(mins)


def times_overlap(start1: str, end1: str, start2: str, end2: str) -> bool:
    """
    True if [start1, end1) and [start2, end2) share any minute.

    Back-to-back intervals (end1 == start2) do not overlap.

    Examples:
        >>> times_overlap("11:10", "11:50", "11:30", "12:10")
        True
        >>> times_overlap("08:00", "08:40", "08:40", "09:20")
        False
    """
    s1, e1 = _to_minutes(start1), _to_minutes(end1)
    s2, e2 = _to_minutes(start2), _to_minutes(end2)
    return s1 < e2 and s2 < e1


@dataclass(frozen=True)
class _Lesson:
    """Flattened schedule entry with display names resolved."""
    class_id: str
    class_name: str
    day: str
    period: int
    start_time: str
    end_time: str
    teacher_id: str
    teacher_name: str
    subject: str


def _flatten(timetables: Iterable[Timetable], school: Optional[SchoolData]) -> list[_Lesson]:
    lessons: list[_Lesson] = []
    for timetable in timetables:
        class_name = school.class_display_name(timetable.class_id) if school else timetable.class_id
        for entry in timetable.schedule:
            teacher = school.get_teacher(entry.teacher_id) if school else None
            subject = school.get_subject(entry.subject_id) if school else None
            lessons.append(_Lesson(
                class_id=timetable.class_id,
                class_name=class_name,
                day=entry.day.value,
                period=entry.period,
                start_time=entry.start_time,
                end_time=entry.end_time,
                teacher_id=entry.teacher_id,
                teacher_name=entry.teacher_name or (teacher.name if teacher else entry.teacher_id),
                subject=entry.subject_name or (subject.name if subject else entry.subject_id),
            ))
    return lessons


def find_conflicts(lessons: list[_Lesson]) -> list[ConflictItem]:
    """Every overlapping pair of lessons for one teacher in two different classes."""
    by_teacher_day: dict[tuple[str, str], list[_Lesson]] = {}
    for lesson in lessons:
        by_teacher_day.setdefault((lesson.teacher_id, lesson.day), []).append(lesson)

    conflicts: list[ConflictItem] = []
    for group in by_teacher_day.values():
        for i, first in enumerate(group):
            for second in group[i + 1:]:
                if first.class_id == second.class_id:
                    continue
                if times_overlap(first.start_time, first.end_time, second.start_time, second.end_time):
                    conflicts.append(ConflictItem(
                        teacher_id=first.teacher_id,
                        teacher_name=first.teacher_name,
                        day=first.day,
                        time=f"{first.start_time}-{first.end_time}",
                        class1=first.class_name,
                        subject1=first.subject,
                        class2=second.class_name,
                        subject2=second.subject,
                        class_id1=first.class_id,
                        class_id2=second.class_id,
                    ))

    conflicts.sort(key=lambda c: (c.teacher_id, day_index(Weekday(c.day)), c.time))
    return conflicts


def teacher_workload(lessons: list[_Lesson]) -> list[TeacherWorkload]:
    """Classes and weekly periods per teacher, busiest first."""
    stats: dict[str, tuple[str, set[str], int]] = {}
    for lesson in lessons:
        name, classes, total = stats.get(lesson.teacher_id, (lesson.teacher_name, set(), 0))
        classes.add(lesson.class_name)
        stats[lesson.teacher_id] = (name, classes, total + 1)

    workload = [
        TeacherWorkload(
            teacher_id=teacher_id,
            teacher_name=name,
            classes=sorted(classes),
            total_periods=total,
        )
        for teacher_id, (name, classes, total) in stats.items()
    ]
    workload.sort(key=lambda w: (-w.total_periods, w.teacher_id))
    return workload


def verify_timetables(store: TimetableStore, school_id: str, term: Term) -> ConflictReport:
    """
    Check every stored timetable of a school and term for teacher overlaps.

    Conflicts are the normal output, not an error.

    Raises:
        SchoolOrClassNotFound: If the school cannot be resolved
    """
    school = store.resolve_school(school_id)
    timetables = store.list_timetables(school.school.id, term)
    return build_conflict_report(school.school.id, term, timetables, school)


def build_conflict_report(
    school_id: str,
    term: Term,
    timetables: list[Timetable],
    school: Optional[SchoolData] = None,
) -> ConflictReport:
    """Conflict report for an explicit list of timetables."""
    lessons = _flatten(timetables, school)
    conflicts = find_conflicts(lessons)

    if not timetables:
        logger.info("No timetables found for %s %s", school_id, term.value)
    elif conflicts:
        logger.warning(
            "%d teacher conflicts across %d timetables for %s %s",
            len(conflicts), len(timetables), school_id, term.value,
        )
    else:
        logger.info("No conflicts across %d timetables for %s %s", len(timetables), school_id, term.value)

    return ConflictReport(
        school_id=school_id,
        term=term,
        has_conflicts=bool(conflicts),
        conflicts=conflicts,
        summary=ConflictSummary(
            total_timetables=len(timetables),
            total_entries=len(lessons),
            total_conflicts=len(conflicts),
            teacher_count=len({l.teacher_id for l in lessons}),
        ),
        teacher_workload=teacher_workload(lessons),
    )


verify = verify_timetables

# blueprints/constraints/services.py
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from sqlalchemy.orm import selectinload

from errors import ScheduleConflict, ValidationError
from extensions import db
from models import SchoolClass, Enrollment, EnrollmentStatus
from blueprints.schedule.slots import WeeklySlot, Weekday, day_label, from_row

log = logging.getLogger(__name__)


@dataclass
class SlotConflict:
    weekday: Weekday
    requested: WeeklySlot
    existing: WeeklySlot

    def describe(self) -> str:
        day = day_label(self.weekday)
        other = self.existing.class_name or (f"#{self.existing.class_id}" if self.existing.class_id else "?")
        return f'{day} {self.requested.label} overlaps class "{other}" ({self.existing.label})'

    def to_dict(self) -> dict:
        return {
            "weekday": int(self.weekday),
            "day": day_label(self.weekday),
            "requested": self.requested.label,
            "existing": self.existing.label,
            "class_id": self.existing.class_id,
            "class_name": self.existing.class_name,
        }


def find_conflicts(incoming: Iterable[WeeklySlot], existing: Iterable[WeeklySlot]) -> List[SlotConflict]:
    """Все пересекающиеся пары (a из incoming, b из existing), не только первая."""
    existing = list(existing)
    out: List[SlotConflict] = []
    for a in incoming:
        if a.weekday is None:
            continue
        for b in existing:
            if a.overlaps(b):
                out.append(SlotConflict(weekday=a.weekday, requested=a, existing=b))
    return out


def find_internal_overlaps(slots: Iterable[WeeklySlot]) -> List[SlotConflict]:
    """Пересечения слотов одного и того же класса между собой."""
    items = list(slots)
    out: List[SlotConflict] = []
    for i, a in enumerate(items):
        for b in items[i + 1:]:
            if a.overlaps(b):
                out.append(SlotConflict(weekday=a.weekday, requested=a, existing=b))
    return out


def format_report(title: str, conflicts: Iterable[SlotConflict]) -> str:
    lines = [f"- {c.describe()}" for c in conflicts]
    return f"{title}:\n" + "\n".join(lines)


def class_slots(cls: SchoolClass) -> List[WeeklySlot]:
    return [from_row(ts, class_id=cls.id, class_name=cls.name) for ts in cls.time_slots]


def teacher_slots(teacher_id: int, exclude_class_id: Optional[int] = None) -> List[WeeklySlot]:
    q = (SchoolClass.query
         .options(selectinload(SchoolClass.time_slots))
         .filter(SchoolClass.teacher_id == teacher_id))
    if exclude_class_id is not None:
        q = q.filter(SchoolClass.id != exclude_class_id)
    out: List[WeeklySlot] = []
    for cls in q.all():
        out.extend(class_slots(cls))
    return out


def student_slots(student_id: int, exclude_class_id: Optional[int] = None) -> List[WeeklySlot]:
    """Слоты всех классов, где у студента approved-запись."""
    q = (db.session.query(SchoolClass)
         .join(Enrollment, Enrollment.class_id == SchoolClass.id)
         .options(selectinload(SchoolClass.time_slots))
         .filter(Enrollment.student_id == student_id,
                 Enrollment.status == EnrollmentStatus.APPROVED.value))
    if exclude_class_id is not None:
        q = q.filter(SchoolClass.id != exclude_class_id)
    out: List[WeeklySlot] = []
    for cls in q.all():
        out.extend(class_slots(cls))
    return out


def ensure_slots_consistent(slots: List[WeeklySlot]) -> None:
    overlaps = find_internal_overlaps(slots)
    if overlaps:
        raise ValidationError(
            format_report("Class time slots overlap each other", overlaps),
            code="overlapping_slots",
            details=[c.to_dict() for c in overlaps],
        )


def ensure_no_teacher_conflict(teacher_id: int, incoming: List[WeeklySlot],
                               exclude_class_id: Optional[int] = None) -> None:
    conflicts = find_conflicts(incoming, teacher_slots(teacher_id, exclude_class_id))
    if conflicts:
        log.info("teacher schedule conflict", extra={
            "event": "class_conflict", "teacher_id": teacher_id, "conflicts": len(conflicts),
        })
        raise ScheduleConflict(
            format_report("Teacher already has classes at these times", conflicts),
            details=[c.to_dict() for c in conflicts],
        )


def ensure_no_student_conflict(student_id: int, incoming: List[WeeklySlot],
                               exclude_class_id: Optional[int] = None) -> None:
    conflicts = find_conflicts(incoming, student_slots(student_id, exclude_class_id))
    if conflicts:
        raise ScheduleConflict(
            format_report("Schedule overlaps classes you are enrolled in", conflicts),
            details=[c.to_dict() for c in conflicts],
        )

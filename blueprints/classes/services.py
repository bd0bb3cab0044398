# blueprints/classes/services.py
from __future__ import annotations
import csv
import logging
from io import StringIO
from typing import List, Optional

from sqlalchemy import delete
from sqlalchemy.orm import selectinload

from errors import Conflict, Forbidden, NotFound, ValidationError
from extensions import db
from models import (
    Announcement, Attendance, AuditLog, ClassTimeSlot, Enrollment, EnrollmentStatus,
    Grade, Material, Role, SchoolClass, User,
)
from blueprints.constraints.services import (
    class_slots, ensure_no_teacher_conflict, ensure_slots_consistent,
)
from blueprints.schedule.slots import WeeklySlot, normalize_many
from .schemas import ClassIn, ClassUpdateIn

log = logging.getLogger(__name__)


def _audit(actor: Optional[User], action: str, entity_id: Optional[int], payload: dict | None = None):
    db.session.add(AuditLog(
        user_id=getattr(actor, "id", None),
        action=action, entity="class", entity_id=entity_id, payload=payload or {},
    ))


def class_to_dict(cls: SchoolClass) -> dict:
    teacher = cls.teacher
    return {
        "id": cls.id,
        "name": cls.name,
        "subject": cls.subject,
        "teacher_id": cls.teacher_id,
        "teacher_name": teacher.name if teacher else None,
        "max_students": cls.max_students,
        "seats_taken": cls.seats_taken,
        "seats_left": max(cls.max_students - cls.seats_taken, 0),
        "starts_on": cls.starts_on.isoformat() if cls.starts_on else None,
        "time_slots": [s.to_wire() for s in class_slots(cls)],
    }


def get_class_or_404(class_id: int) -> SchoolClass:
    cls = db.session.get(SchoolClass, class_id)
    if cls is None:
        raise NotFound("Class not found", code="class_not_found")
    return cls


def ensure_class_access(cls: SchoolClass, actor: User) -> None:
    """Админ или преподаватель этого класса."""
    if actor.is_admin or cls.teacher_id == actor.id:
        return
    raise Forbidden("You are not the teacher of this class", code="not_owner")


def _validate_teacher(teacher_id: int) -> User:
    teacher = db.session.get(User, teacher_id)
    if teacher is None or teacher.role != Role.TEACHER.value or not teacher.is_active:
        raise ValidationError("teacher_id must reference an active teacher", code="invalid_teacher")
    return teacher


def _slot_rows(slots: List[WeeklySlot]) -> List[ClassTimeSlot]:
    return [
        ClassTimeSlot(position=i, weekday=int(s.weekday), start_minute=s.start, end_minute=s.end)
        for i, s in enumerate(slots)
    ]


def list_classes(subject: Optional[str] = None, teacher_id: Optional[int] = None) -> List[dict]:
    q = SchoolClass.query.options(selectinload(SchoolClass.time_slots))
    if subject:
        q = q.filter(SchoolClass.subject == subject)
    if teacher_id:
        q = q.filter(SchoolClass.teacher_id == teacher_id)
    return [class_to_dict(c) for c in q.order_by(SchoolClass.name, SchoolClass.id).all()]


def create_class(data: ClassIn, actor: User) -> SchoolClass:
    _validate_teacher(data.teacher_id)
    slots = normalize_many(data.time_slots)
    ensure_slots_consistent(slots)
    ensure_no_teacher_conflict(data.teacher_id, slots)

    cls = SchoolClass(
        name=data.name,
        subject=data.subject,
        teacher_id=data.teacher_id,
        max_students=data.max_students,
        seats_taken=0,
        starts_on=data.starts_on,
    )
    cls.time_slots = _slot_rows(slots)
    db.session.add(cls)
    db.session.flush()
    _audit(actor, "create", cls.id, {"name": cls.name, "teacher_id": cls.teacher_id})
    db.session.commit()
    log.info("class created", extra={"event": "class_created", "class_id": cls.id, "teacher_id": cls.teacher_id})
    return cls


def update_class(class_id: int, data: ClassUpdateIn, actor: User) -> SchoolClass:
    cls = get_class_or_404(class_id)
    ensure_class_access(cls, actor)
    fields = data.model_fields_set

    teacher_id = cls.teacher_id
    if "teacher_id" in fields and data.teacher_id is not None and data.teacher_id != cls.teacher_id:
        if not actor.is_admin:
            raise Forbidden("Only admins can reassign a class", code="not_owner")
        _validate_teacher(data.teacher_id)
        teacher_id = data.teacher_id

    slots = class_slots(cls)
    slots_changed = "time_slots" in fields and data.time_slots is not None
    if slots_changed:
        slots = normalize_many(data.time_slots)
        ensure_slots_consistent(slots)
    if slots_changed or teacher_id != cls.teacher_id:
        ensure_no_teacher_conflict(teacher_id, slots, exclude_class_id=cls.id)

    if "max_students" in fields and data.max_students is not None:
        if data.max_students < cls.seats_taken:
            raise Conflict(
                f"max_students cannot be lower than the {cls.seats_taken} enrolled students",
                code="capacity_below_enrolled",
            )
        cls.max_students = data.max_students

    if data.name is not None:
        cls.name = data.name.strip()
    if data.subject is not None:
        cls.subject = data.subject.strip()
    if "starts_on" in fields:
        cls.starts_on = data.starts_on
    cls.teacher_id = teacher_id
    if slots_changed:
        cls.time_slots = _slot_rows(slots)

    _audit(actor, "update", cls.id, {"fields": sorted(fields)})
    db.session.commit()
    return cls


def delete_class(class_id: int, actor: User, blob_store=None) -> None:
    """Удаление класса вместе со всеми зависимыми записями."""
    cls = get_class_or_404(class_id)
    if blob_store is not None:
        keys = [m.storage_key for m in Material.query.filter_by(class_id=class_id).all() if m.storage_key]
    else:
        keys = []
    for model in (Enrollment, Attendance, Grade, Announcement, Material):
        db.session.execute(delete(model).where(model.class_id == class_id))
    db.session.delete(cls)
    _audit(actor, "delete", class_id, {"name": cls.name})
    db.session.commit()
    for key in keys:
        blob_store.destroy(key)
    log.info("class deleted", extra={"event": "class_deleted", "class_id": class_id})


# ---------- представления преподавателя ----------
def my_classes(teacher_id: int) -> List[dict]:
    return list_classes(teacher_id=teacher_id)


def class_students(cls: SchoolClass) -> List[User]:
    return (User.query
            .join(Enrollment, Enrollment.student_id == User.id)
            .filter(Enrollment.class_id == cls.id,
                    Enrollment.status == EnrollmentStatus.APPROVED.value)
            .order_by(User.name, User.id)
            .all())


def students_csv(cls: SchoolClass) -> str:
    buf = StringIO()
    w = csv.writer(buf)
    w.writerow(["name", "email"])
    for u in class_students(cls):
        w.writerow([u.name or "", u.email])
    return buf.getvalue()

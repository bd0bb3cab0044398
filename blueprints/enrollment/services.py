# blueprints/enrollment/services.py
from __future__ import annotations
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from config import Settings
from errors import AlreadyEnrolled, CapacityExceeded, Forbidden, NotFound, ScheduleConflict
from extensions import db
from models import Enrollment, EnrollmentStatus, Role, SchoolClass, User
from blueprints.constraints.services import class_slots, ensure_no_student_conflict
from .policy import ensure_cancellable

log = logging.getLogger(__name__)


def _capacity_error(cls: SchoolClass) -> CapacityExceeded:
    return CapacityExceeded(
        f'Class "{cls.name}" is full ({cls.max_students} students)',
        details={"class_id": cls.id, "max_students": cls.max_students},
    )


def _claim_seat(class_id: int) -> bool:
    """Атомарно занять место: UPDATE … WHERE seats_taken < max_students."""
    res = db.session.execute(
        update(SchoolClass)
        .where(SchoolClass.id == class_id, SchoolClass.seats_taken < SchoolClass.max_students)
        .values(seats_taken=SchoolClass.seats_taken + 1)
        .execution_options(synchronize_session=False)
    )
    return res.rowcount == 1


def _release_seat(class_id: int) -> None:
    db.session.execute(
        update(SchoolClass)
        .where(SchoolClass.id == class_id, SchoolClass.seats_taken > 0)
        .values(seats_taken=SchoolClass.seats_taken - 1)
        .execution_options(synchronize_session=False)
    )


def enroll(*, student_id: int, class_id: int) -> Enrollment:
    """Записать студента в класс (сразу approved).

    Порядок проверок: класс существует, записи ещё нет, есть места,
    нет пересечений с уже одобренными классами студента. Место занимается
    условным UPDATE счётчика, вставка идёт в той же транзакции.
    """
    cls = db.session.get(SchoolClass, class_id)
    if cls is None:
        raise NotFound("Class not found", code="class_not_found")
    student = db.session.get(User, student_id)
    if student is None:
        raise NotFound("Student not found", code="student_not_found")
    if student.role != Role.STUDENT.value:
        raise Forbidden("Only students can enroll", code="not_a_student")

    if Enrollment.query.filter_by(student_id=student_id, class_id=class_id).first():
        raise AlreadyEnrolled("Student is already enrolled in this class")

    extra = {"class_id": class_id, "student_id": student_id}
    if cls.seats_taken >= cls.max_students:
        log.info("enrollment rejected: class full", extra={"event": "enrollment_rejected", **extra})
        raise _capacity_error(cls)

    try:
        ensure_no_student_conflict(student_id, class_slots(cls), exclude_class_id=class_id)
    except ScheduleConflict:
        log.info("enrollment rejected: schedule conflict", extra={"event": "enrollment_rejected", **extra})
        raise

    if not _claim_seat(class_id):
        db.session.rollback()
        log.info("enrollment rejected: class full", extra={"event": "enrollment_rejected", **extra})
        raise _capacity_error(cls)

    enrollment = Enrollment(student_id=student_id, class_id=class_id,
                            status=EnrollmentStatus.APPROVED.value)
    db.session.add(enrollment)
    try:
        db.session.commit()
    except IntegrityError:
        # параллельная запись той же пары; откат возвращает и счётчик мест
        db.session.rollback()
        raise AlreadyEnrolled("Student is already enrolled in this class")

    log.info("enrollment created", extra={"event": "enrollment_created", **extra})
    return enrollment


def cancel(*, student_id: int, class_id: int, is_admin: bool, settings: Settings,
           now: Optional[datetime] = None) -> None:
    enrollment = Enrollment.query.filter_by(student_id=student_id, class_id=class_id).first()
    if enrollment is None:
        raise NotFound("Enrollment not found", code="enrollment_not_found")

    # время занятий хранится как локальное «настенное», сравниваем с локальным now
    now = now or datetime.now()
    cls = db.session.get(SchoolClass, class_id)
    if cls is not None:
        ensure_cancellable(class_slots(cls), cls.starts_on, now, is_admin, settings)

    was_approved = enrollment.status == EnrollmentStatus.APPROVED.value
    db.session.delete(enrollment)
    if was_approved:
        _release_seat(class_id)
    db.session.commit()
    log.info("enrollment cancelled", extra={
        "event": "enrollment_cancelled", "class_id": class_id, "student_id": student_id,
    })

# blueprints/schedule/services.py
from __future__ import annotations
from datetime import date, datetime
from typing import Dict, List, Optional

from sqlalchemy.orm import selectinload

from errors import NotFound
from extensions import db
from models import Enrollment, EnrollmentStatus, Role, SchoolClass, Subject, User
from blueprints.constraints.services import class_slots
from .sessions import first_session, last_session_end, reference_point
from .slots import WeeklySlot


def student_schedule(student_id: int, now: Optional[datetime] = None) -> List[Dict]:
    """Одобренные классы студента со слотами и ближайшим занятием.

    Сортировка: сначала по ближайшему занятию, классы без слотов в конце.
    """
    if db.session.get(User, student_id) is None:
        raise NotFound("Student not found", code="student_not_found")
    now = now or datetime.now()

    rows = (db.session.query(SchoolClass, Enrollment)
            .join(Enrollment, Enrollment.class_id == SchoolClass.id)
            .options(selectinload(SchoolClass.time_slots), selectinload(SchoolClass.teacher))
            .filter(Enrollment.student_id == student_id,
                    Enrollment.status == EnrollmentStatus.APPROVED.value)
            .all())

    out = []
    for cls, enr in rows:
        slots = class_slots(cls)
        # курс ещё не начался: считаем от даты старта, иначе от текущего момента
        started = cls.starts_on is None or cls.starts_on <= now.date()
        nxt = first_session(slots, now if started else reference_point(cls.starts_on, now))
        out.append({
            "class_id": cls.id,
            "name": cls.name,
            "subject": cls.subject,
            "teacher_id": cls.teacher_id,
            "teacher_name": cls.teacher.name if cls.teacher else None,
            "enrolled_at": enr.created_at.isoformat() if enr.created_at else None,
            "time_slots": [s.to_wire() for s in slots],
            "next_session": nxt.isoformat(timespec="minutes") if nxt else None,
        })
    out.sort(key=lambda x: (x["next_session"] is None, x["next_session"] or "", x["name"]))
    return out


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat(timespec="minutes") if dt else None


def _project_slot(slot: WeeklySlot, anchor: Optional[date], until: Optional[date],
                  now: datetime) -> Dict:
    """Слот + первое/последнее занятие периода и ближайшее от now."""
    first = first_session([slot], reference_point(anchor, now)) if anchor else None
    last = last_session_end(slot, until) if until else None
    nxt = first_session([slot], max(now, reference_point(anchor, now)))
    if until is not None:
        if first is not None and last is not None and first > last:
            # в периоде нет ни одного такого дня недели
            first = last = None
        if nxt is not None and nxt.date() > until:
            nxt = None
    return {**slot.to_wire(), "start": _iso(first), "end": _iso(last), "next_session": _iso(nxt)}


def teaching_schedule(teacher_id: Optional[int] = None, now: Optional[datetime] = None) -> List[Dict]:
    """Учебное расписание по всем классам (или одного преподавателя).

    Даты занятий строятся по периоду предмета (Subject.start_date/end_date),
    найденного по названию класса; без предмета берётся starts_on класса.
    """
    now = now or datetime.now()
    q = SchoolClass.query.options(selectinload(SchoolClass.time_slots), selectinload(SchoolClass.teacher))
    if teacher_id is not None:
        q = q.filter(SchoolClass.teacher_id == teacher_id)
    classes = q.order_by(SchoolClass.name, SchoolClass.id).all()

    names = {c.subject for c in classes}
    subjects: Dict[str, Subject] = {}
    if names:
        # при дублях названия берём самый ранний по id
        for s in Subject.query.filter(Subject.name.in_(names)).order_by(Subject.id.desc()).all():
            subjects[s.name] = s

    out = []
    for cls in classes:
        subject = subjects.get(cls.subject)
        anchor = subject.start_date if subject else cls.starts_on
        until = subject.end_date if subject else None
        slots = [_project_slot(s, anchor, until, now) for s in class_slots(cls)]
        upcoming = [s["next_session"] for s in slots if s["next_session"]]
        out.append({
            "class_id": cls.id,
            "class_name": cls.name,
            "subject": cls.subject,
            "subject_code": subject.code if subject else None,
            "teacher_id": cls.teacher_id,
            "teacher_name": cls.teacher.name if cls.teacher else None,
            "period": ({"start_date": subject.start_date.isoformat(), "end_date": subject.end_date.isoformat()}
                       if subject else None),
            "time_slots": slots,
            "next_session": min(upcoming) if upcoming else None,
        })
    return out


def teacher_schedule(teacher_id: int, now: Optional[datetime] = None) -> List[Dict]:
    teacher = db.session.get(User, teacher_id)
    if teacher is None or teacher.role != Role.TEACHER.value:
        raise NotFound("Teacher not found", code="teacher_not_found")
    return teaching_schedule(teacher_id=teacher_id, now=now)

# blueprints/gradebook/services.py
from __future__ import annotations
import math
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from config import Settings
from errors import NotFound, ValidationError
from extensions import db
from models import Attendance, AttendanceStatus, Grade, User
from blueprints.classes.services import ensure_class_access, get_class_or_404
from .batch import BatchResult, apply_batch

STATUSES = tuple(s.value for s in AttendanceStatus)


# ---------- разбор входных значений ----------
def parse_day(value: Any) -> date:
    """'2024-09-02' или ISO datetime -> календарный день (UTC для aware-значений)."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        return value
    else:
        raw = str(value or "").strip()
        if not raw:
            raise ValidationError("date is required", code="invalid_date")
        try:
            return date.fromisoformat(raw)
        except ValueError:
            pass
        try:
            dt = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            raise ValidationError(f"Bad date {raw!r}, expected YYYY-MM-DD", code="invalid_date")
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)
    return dt.date()


def _student_id(raw: Any) -> int:
    if isinstance(raw, bool):
        raise ValueError("student_id must be a positive integer")
    if isinstance(raw, str) and raw.strip().isdigit():
        raw = int(raw.strip())
    if not isinstance(raw, int) or raw < 1:
        raise ValueError("student_id must be a positive integer")
    return raw


def _status(raw: Any) -> str:
    s = str(raw or "").strip().lower()
    if s not in STATUSES:
        raise ValueError(f"status must be one of {', '.join(STATUSES)}")
    return s


def _score(raw: Any, settings: Settings) -> float:
    if isinstance(raw, bool):
        raise ValueError("score must be a number")
    try:
        score = float(raw)
    except (TypeError, ValueError):
        raise ValueError("score must be a number")
    if math.isnan(score) or not settings.grade_min <= score <= settings.grade_max:
        raise ValueError(f"score must be between {settings.grade_min:g} and {settings.grade_max:g}")
    return score


def _note(raw: Any) -> str:
    return "" if raw is None else str(raw)


def _field(item: Dict[str, Any], name: str, alias: str | None = None) -> Any:
    if name in item:
        return item[name]
    return item.get(alias) if alias else None


def _validate_items(items: Any, build) -> List[Dict[str, Any]]:
    """Проверяет весь пакет; одна ошибка отклоняет его целиком."""
    if not isinstance(items, list):
        raise ValidationError("Items must be a list")
    out, errors = [], []
    for idx, it in enumerate(items):
        if not isinstance(it, dict):
            errors.append({"index": idx, "error": "item must be an object"})
            continue
        try:
            out.append(build(it))
        except ValueError as e:
            errors.append({"index": idx, "error": str(e)})
    if errors:
        raise ValidationError(
            f"{len(errors)} invalid item(s), nothing was saved",
            code="invalid_batch", details=errors,
        )
    return out


def validate_attendance_items(items: Any) -> List[Dict[str, Any]]:
    return _validate_items(items, lambda it: {
        "student_id": _student_id(_field(it, "student_id", "studentId")),
        "status": _status(it.get("status")),
        "note": _note(it.get("note")),
    })


def validate_grade_items(items: Any, settings: Settings) -> List[Dict[str, Any]]:
    return _validate_items(items, lambda it: {
        "student_id": _student_id(_field(it, "student_id", "studentId")),
        "score": _score(it.get("score"), settings),
        "note": _note(it.get("note")),
    })


# ---------- пакетные операции ----------
def mark_attendance(*, class_id: int, day: Any, records: Any, actor: User) -> BatchResult:
    cls = get_class_or_404(class_id)
    ensure_class_access(cls, actor)
    the_day = parse_day(day)
    items = validate_attendance_items(records)
    return apply_batch(Attendance, class_id=cls.id, key_field="date", key_value=the_day,
                       items=items, fields=("status", "note"))


def add_grades(*, class_id: int, grade_type: str, items: Any, actor: User,
               settings: Settings) -> BatchResult:
    cls = get_class_or_404(class_id)
    ensure_class_access(cls, actor)
    grade_type = (grade_type or "").strip()
    if not grade_type:
        raise ValidationError("type is required", code="missing_type")
    valid = validate_grade_items(items, settings)
    return apply_batch(Grade, class_id=cls.id, key_field="type", key_value=grade_type,
                       items=valid, fields=("score", "note"))


# ---------- точечные правки ----------
def update_attendance(att_id: int, *, actor: User, status: Optional[str] = None,
                      note: Optional[str] = None) -> Attendance:
    if status is None and note is None:
        raise ValidationError("Nothing to update: pass status and/or note", code="empty_update")
    row = db.session.get(Attendance, att_id)
    if row is None:
        raise NotFound("Attendance record not found")
    ensure_class_access(get_class_or_404(row.class_id), actor)
    try:
        if status is not None:
            row.status = _status(status)
    except ValueError as e:
        raise ValidationError(str(e), code="invalid_status")
    if note is not None:
        row.note = _note(note)
    db.session.commit()
    return row


def update_grade(grade_id: int, *, actor: User, settings: Settings,
                 score: Any = None, note: Optional[str] = None) -> Grade:
    if score is None and note is None:
        raise ValidationError("Nothing to update: pass score and/or note", code="empty_update")
    row = db.session.get(Grade, grade_id)
    if row is None:
        raise NotFound("Grade not found")
    ensure_class_access(get_class_or_404(row.class_id), actor)
    try:
        if score is not None:
            row.score = _score(score, settings)
    except ValueError as e:
        raise ValidationError(str(e), code="invalid_score")
    if note is not None:
        row.note = _note(note)
    db.session.commit()
    return row


def attendance_by_date(*, class_id: int, day: Any, actor: User) -> List[Attendance]:
    cls = get_class_or_404(class_id)
    ensure_class_access(cls, actor)
    return (Attendance.query
            .filter_by(class_id=cls.id, date=parse_day(day))
            .order_by(Attendance.student_id)
            .all())

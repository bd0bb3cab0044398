# blueprints/gradebook/routes.py
from __future__ import annotations
from typing import Any, List, Optional

from flask import Blueprint, jsonify, request
from flask_login import current_user
from pydantic import BaseModel, ConfigDict, Field

from errors import ValidationError
from blueprints.auth.routes import teacher_required
from blueprints.core.deps import get_settings, json_body, parse_body
from . import services as svc

api_bp = Blueprint("gradebook_api", __name__)

_SINGLE_KEYS = ("student_id", "studentId")


class AttendanceBatchIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    class_id: int = Field(alias="classId", ge=1)
    date: str = Field(min_length=1)
    records: List[Any] = Field(default_factory=list)


class GradeBatchIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    class_id: int = Field(alias="classId", ge=1)
    type: str = Field(min_length=1, max_length=50)
    items: List[Any] = Field(default_factory=list)


class AttendancePatchIn(BaseModel):
    status: Optional[str] = None
    note: Optional[str] = None


class GradePatchIn(BaseModel):
    score: Optional[Any] = None
    note: Optional[str] = None


def _wrap_single(payload: dict, list_key: str, item_keys: tuple[str, ...]) -> dict:
    """Одиночная запись -> пакет из одного элемента; дальше всё идёт одним путём."""
    if list_key in payload or not any(k in payload for k in _SINGLE_KEYS):
        return payload
    item = {k: payload[k] for k in (*_SINGLE_KEYS, *item_keys) if k in payload}
    rest = {k: v for k, v in payload.items() if k not in item}
    return {**rest, list_key: [item]}


@api_bp.post("/attendance")
@teacher_required
def api_mark_attendance():
    payload = _wrap_single(json_body(), "records", ("status", "note"))
    data = parse_body(AttendanceBatchIn, payload)
    res = svc.mark_attendance(class_id=data.class_id, day=data.date, records=data.records,
                              actor=current_user)
    return jsonify({"ok": True, **res.to_dict()})


@api_bp.put("/attendance/<int:att_id>")
@teacher_required
def api_update_attendance(att_id: int):
    data = parse_body(AttendancePatchIn)
    row = svc.update_attendance(att_id, actor=current_user, status=data.status, note=data.note)
    return jsonify({"ok": True, "attendance": row.to_dict()})


@api_bp.get("/attendance")
@teacher_required
def api_attendance_by_date():
    class_id = request.args.get("class_id", type=int) or request.args.get("classId", type=int)
    if not class_id:
        raise ValidationError("class_id is required", code="missing_class_id")
    rows = svc.attendance_by_date(class_id=class_id, day=request.args.get("date"), actor=current_user)
    return jsonify({"ok": True, "attendance": [r.to_dict() for r in rows]})


@api_bp.post("/grades")
@teacher_required
def api_add_grades():
    payload = _wrap_single(json_body(), "items", ("score", "note"))
    data = parse_body(GradeBatchIn, payload)
    res = svc.add_grades(class_id=data.class_id, grade_type=data.type, items=data.items,
                         actor=current_user, settings=get_settings())
    return jsonify({"ok": True, **res.to_dict()}), 201


@api_bp.put("/grades/<int:grade_id>")
@teacher_required
def api_update_grade(grade_id: int):
    data = parse_body(GradePatchIn)
    row = svc.update_grade(grade_id, actor=current_user, settings=get_settings(),
                           score=data.score, note=data.note)
    return jsonify({"ok": True, "grade": row.to_dict()})

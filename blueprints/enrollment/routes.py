# blueprints/enrollment/routes.py
from __future__ import annotations
from typing import Optional

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required
from pydantic import BaseModel, ConfigDict, Field

from errors import Forbidden, ValidationError
from blueprints.core.deps import get_settings, json_body, parse_body
from . import services as svc

api_bp = Blueprint("enrollment_api", __name__)


class EnrollIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    class_id: Optional[int] = Field(None, alias="classId", ge=1)
    student_id: Optional[int] = Field(None, alias="studentId", ge=1)


def _target_student(student_id: Optional[int]) -> int:
    # чужой student_id принимаем только от администратора
    if student_id is None or student_id == current_user.id:
        return current_user.id
    if not current_user.is_admin:
        raise Forbidden("Only admins can enroll other students")
    return student_id


def _enroll(class_id: Optional[int], student_id: Optional[int]):
    if class_id is None:
        raise ValidationError("class_id is required", code="missing_class_id")
    enrollment = svc.enroll(student_id=_target_student(student_id), class_id=class_id)
    return jsonify({"ok": True, "message": "Enrolled", "enrollment": enrollment.to_dict()}), 201


@api_bp.post("/enrollments")
@login_required
def api_enroll():
    data = parse_body(EnrollIn)
    return _enroll(data.class_id, data.student_id)


@api_bp.post("/enrollments/<int:class_id>")
@login_required
def api_enroll_in_class(class_id: int):
    data = parse_body(EnrollIn)
    return _enroll(class_id, data.student_id)


@api_bp.delete("/enrollments/<int:class_id>")
@login_required
def api_cancel(class_id: int):
    payload = json_body() or {k: v for k, v in request.args.items()}
    data = parse_body(EnrollIn, payload)
    svc.cancel(
        student_id=_target_student(data.student_id),
        class_id=class_id,
        is_admin=current_user.is_admin,
        settings=get_settings(),
    )
    return jsonify({"ok": True, "message": "Enrollment cancelled"})

# blueprints/schedule/routes.py
from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from errors import Forbidden
from models import Role
from blueprints.auth.routes import teacher_required
from . import services as svc

api_bp = Blueprint("schedule_api", __name__)


@api_bp.get("/students/<int:student_id>/schedule")
@login_required
def api_student_schedule(student_id: int):
    # свой график видит сам студент; преподаватели и админ видят любой
    if current_user.id != student_id and current_user.role not in (Role.ADMIN.value, Role.TEACHER.value):
        raise Forbidden("You can only view your own schedule")
    return jsonify({"ok": True, "student_id": student_id, "classes": svc.student_schedule(student_id)})


@api_bp.get("/schedule/teaching")
@teacher_required
def api_teaching_schedule():
    teacher_id = request.args.get("teacher_id", type=int)
    return jsonify({"ok": True, "classes": svc.teaching_schedule(teacher_id=teacher_id)})


@api_bp.get("/teacher/schedule/me")
@teacher_required
def api_my_teaching_schedule():
    if current_user.role != Role.TEACHER.value:
        raise Forbidden("Only teachers have a teaching schedule")
    return jsonify({"ok": True, "classes": svc.teacher_schedule(current_user.id)})

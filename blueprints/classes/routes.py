# blueprints/classes/routes.py
from __future__ import annotations
import re

from flask import Blueprint, Response, jsonify, request
from flask_login import current_user, login_required

from blueprints.auth.routes import admin_required, teacher_required
from blueprints.core.deps import get_blob_store, parse_body
from .schemas import ClassIn, ClassUpdateIn
from . import services as svc

api_bp = Blueprint("classes_api", __name__)


def _csv_resp(content: str, filename: str) -> Response:
    return Response(
        content,
        mimetype="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )


@api_bp.get("/classes")
@login_required
def api_list_classes():
    subject = (request.args.get("subject") or "").strip() or None
    teacher_id = request.args.get("teacher_id", type=int)
    return jsonify({"ok": True, "classes": svc.list_classes(subject, teacher_id)})


@api_bp.get("/classes/<int:class_id>")
@login_required
def api_get_class(class_id: int):
    cls = svc.get_class_or_404(class_id)
    return jsonify({"ok": True, "class": svc.class_to_dict(cls)})


@api_bp.post("/classes")
@admin_required
def api_create_class():
    data = parse_body(ClassIn)
    cls = svc.create_class(data, current_user)
    return jsonify({"ok": True, "message": "Class created", "class": svc.class_to_dict(cls)}), 201


@api_bp.put("/classes/<int:class_id>")
@teacher_required
def api_update_class(class_id: int):
    data = parse_body(ClassUpdateIn)
    cls = svc.update_class(class_id, data, current_user)
    return jsonify({"ok": True, "message": "Class updated", "class": svc.class_to_dict(cls)})


@api_bp.delete("/classes/<int:class_id>")
@admin_required
def api_delete_class(class_id: int):
    svc.delete_class(class_id, current_user, blob_store=get_blob_store())
    return jsonify({"ok": True, "message": "Class deleted"})


# ---------- преподаватель ----------
@api_bp.get("/teacher/classes")
@teacher_required
def api_my_classes():
    return jsonify({"ok": True, "classes": svc.my_classes(current_user.id)})


@api_bp.get("/teacher/classes/<int:class_id>/students")
@teacher_required
def api_class_students(class_id: int):
    cls = svc.get_class_or_404(class_id)
    svc.ensure_class_access(cls, current_user)
    students = [u.to_dict() for u in svc.class_students(cls)]
    return jsonify({"ok": True, "class_id": cls.id, "students": students})


@api_bp.get("/teacher/classes/<int:class_id>/students.csv")
@teacher_required
def api_class_students_csv(class_id: int):
    cls = svc.get_class_or_404(class_id)
    svc.ensure_class_access(cls, current_user)
    slug = re.sub(r"[^A-Za-z0-9_-]+", "_", cls.name).strip("_") or f"class_{cls.id}"
    return _csv_resp(svc.students_csv(cls), f"{slug}_students.csv")

# blueprints/subjects/routes.py
from __future__ import annotations

from flask import Blueprint, jsonify
from flask_login import current_user, login_required

from blueprints.auth.routes import admin_required, teacher_required
from blueprints.core.deps import parse_body
from .schemas import SubjectIn, SubjectUpdateIn
from . import services as svc

api_bp = Blueprint("subjects_api", __name__)


@api_bp.get("/subjects")
@login_required
def api_list_subjects():
    return jsonify({"ok": True, "subjects": svc.list_subjects()})


@api_bp.get("/subjects/<int:subject_id>")
@login_required
def api_get_subject(subject_id: int):
    return jsonify({"ok": True, "subject": svc.get_subject_or_404(subject_id).to_dict()})


@api_bp.post("/subjects")
@teacher_required
def api_create_subject():
    data = parse_body(SubjectIn)
    subject = svc.create_subject(data, current_user)
    return jsonify({"ok": True, "message": "Subject created", "subject": subject.to_dict()}), 201


@api_bp.put("/subjects/<int:subject_id>")
@teacher_required
def api_update_subject(subject_id: int):
    data = parse_body(SubjectUpdateIn)
    subject = svc.update_subject(subject_id, data, current_user)
    return jsonify({"ok": True, "message": "Subject updated", "subject": subject.to_dict()})


@api_bp.delete("/subjects/<int:subject_id>")
@admin_required
def api_delete_subject(subject_id: int):
    svc.delete_subject(subject_id, current_user)
    return jsonify({"ok": True, "message": "Subject deleted"})

# blueprints/constraints/routes.py
from flask import Blueprint, jsonify

from blueprints.auth.routes import admin_required
from blueprints.classes.schemas import ConstraintCheckIn
from blueprints.core.deps import parse_body
from blueprints.schedule.slots import normalize_many
from .services import ensure_slots_consistent, find_conflicts, format_report, teacher_slots

api_bp = Blueprint("constraints_api", __name__)


@api_bp.post("/constraints/check")
@admin_required
def constraints_check():
    """Пробная проверка расписания преподавателя без сохранения."""
    data = parse_body(ConstraintCheckIn)
    slots = normalize_many(data.time_slots)
    ensure_slots_consistent(slots)
    conflicts = find_conflicts(slots, teacher_slots(data.teacher_id, data.exclude_class_id))

    if not conflicts:
        return jsonify({"ok": True, "conflicts": []}), 200
    # бизнес-конфликт: 409, как и при сохранении класса
    return jsonify({
        "ok": False,
        "error": "schedule_conflict",
        "message": format_report("Teacher already has classes at these times", conflicts),
        "conflicts": [c.to_dict() for c in conflicts],
    }), 409

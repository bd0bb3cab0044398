from __future__ import annotations
import json, logging
from datetime import datetime

from flask import g, jsonify, request
from flask_login import current_user
from flask_wtf.csrf import CSRFError, generate_csrf
from werkzeug.exceptions import HTTPException
from werkzeug.wrappers.response import Response

from errors import AppError
from extensions import csrf

from . import bp                 # используем bp из __init__.py
from . import api_bp

log = logging.getLogger(__name__)

LOG_FIELDS = (
    "event", "path", "method", "status", "duration_ms", "user_id",
    "class_id", "student_id", "teacher_id", "error", "conflicts",
    "upserted", "modified", "matched",
)


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.utcnow().isoformat(timespec="milliseconds") + "Z",
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key in LOG_FIELDS:
            if hasattr(record, key):
                payload[key] = getattr(record, key)
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def _setup_structured_logging(app):
    # корневой логгер: сюда попадают и app.logger, и логгеры модулей сервисов
    root = logging.getLogger()
    has_json = any(
        isinstance(h, logging.StreamHandler)
        and isinstance(getattr(h, "formatter", None), JSONFormatter)
        for h in root.handlers
    )
    if not has_json:
        handler = logging.StreamHandler()
        handler.setFormatter(JSONFormatter())
        root.addHandler(handler)
    root.setLevel(app.config.get("LOG_LEVEL", "INFO"))


@api_bp.get("/csrf")
@csrf.exempt          # токен выдаём без проверки
def get_csrf():
    token = generate_csrf()
    resp = jsonify({"csrf": token})
    resp.set_cookie("csrf_token", token, samesite="Lax")
    return resp


@bp.before_app_request
def _start_timer():
    g._req_start = datetime.utcnow()


@bp.after_app_request
def _log_request(response: Response):
    try:
        duration_ms = int((datetime.utcnow() - g._req_start).total_seconds() * 1000)
    except AttributeError:
        duration_ms = None
    extra = {
        "event": "http_request",
        "path": request.path,
        "method": request.method,
        "status": response.status_code,
        "duration_ms": duration_ms,
        "user_id": current_user.get_id() if current_user and current_user.is_authenticated else None,
    }
    log.info("request handled", extra=extra)
    return response


# ---------- ошибки -> JSON ----------
@bp.app_errorhandler(AppError)
def _handle_app_error(err: AppError):
    if err.status >= 500:
        log.error("application error: %s", err.message, extra={"event": "unhandled_error", "error": err.code})
    return jsonify(err.to_dict()), err.status


@bp.app_errorhandler(CSRFError)
def _handle_csrf(err: CSRFError):
    return jsonify({"ok": False, "error": "csrf_invalid", "message": err.description}), 400


@bp.app_errorhandler(HTTPException)
def _handle_http(err: HTTPException):
    code = (err.name or "error").lower().replace(" ", "_")
    return jsonify({"ok": False, "error": code, "message": err.description}), err.code


@bp.app_errorhandler(Exception)
def _handle_unexpected(err: Exception):
    # наружу текст исключения не отдаём
    log.exception("unhandled error", extra={"event": "unhandled_error", "path": request.path})
    return jsonify({"ok": False, "error": "internal_error", "message": "Internal server error"}), 500


@bp.record_once
def _on_register(state):
    _setup_structured_logging(state.app)


@bp.get("/health")
def health():
    return jsonify({
        "status": "ok",
        "ts": datetime.utcnow().isoformat(timespec="seconds") + "Z",
    })

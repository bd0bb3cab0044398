"""Доменные ошибки.

Сервисы бросают их в месте обнаружения; в HTTP-ответ их превращает только
обработчик в blueprints/core/routes.py.
"""
from __future__ import annotations
from typing import Any


class AppError(Exception):
    status = 500
    code = "internal_error"

    def __init__(self, message: str | None = None, *, code: str | None = None, details: Any = None):
        super().__init__(message or self.code)
        self.message = message or self.code
        if code:
            self.code = code
        self.details = details

    def to_dict(self) -> dict:
        body = {"ok": False, "error": self.code, "message": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationError(AppError):
    status = 400
    code = "validation_error"


class Unauthorized(AppError):
    status = 401
    code = "unauthorized"


class Forbidden(AppError):
    status = 403
    code = "forbidden"


class NotFound(AppError):
    status = 404
    code = "not_found"


class Conflict(AppError):
    status = 409
    code = "conflict"


class CapacityExceeded(Conflict):
    code = "capacity_exceeded"


class ScheduleConflict(Conflict):
    code = "schedule_conflict"


class AlreadyEnrolled(Conflict):
    code = "already_enrolled"


class TooLateToCancel(Conflict):
    code = "too_late_to_cancel"


class TooManyRequests(AppError):
    status = 429
    code = "too_many_attempts"


def from_pydantic(ve, message: str = "Invalid request body") -> ValidationError:
    """pydantic.ValidationError -> ValidationError c безопасным для JSON списком ошибок."""
    errs = ve.errors(include_url=False)
    for e in errs:
        if "ctx" in e and isinstance(e["ctx"], dict):
            e["ctx"] = {k: str(v) for k, v in e["ctx"].items()}
        if "input" in e:
            e["input"] = str(e["input"])[:200]
    return ValidationError(message, details=errs)

# blueprints/auth/routes.py
from __future__ import annotations
import time
from functools import wraps
from typing import Callable, Optional

from flask import Blueprint, request, jsonify, current_app
from flask_login import login_user, logout_user, login_required, current_user
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from errors import Forbidden, TooManyRequests, Unauthorized, ValidationError
from extensions import login_manager
from models import Role
from blueprints.core.deps import get_mailer, get_settings, json_body, parse_body
from . import services as svc

api_bp = Blueprint("auth_api", __name__)

# ---- безопасные значения по умолчанию
DEFAULT_RL_MAX = 5
DEFAULT_RL_WIN = 300  # 5 минут


class RegisterIn(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)


class VerifyOtpIn(BaseModel):
    email: EmailStr
    otp: str = Field(min_length=4, max_length=12)


class ResendOtpIn(BaseModel):
    email: EmailStr


class ChangePasswordIn(BaseModel):
    current_password: str
    new_password: str


class FacebookLoginIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    facebook_id: str = Field(alias="facebookId", min_length=1, max_length=64)
    email: Optional[EmailStr] = None
    name: Optional[str] = Field(None, max_length=255)


# ---------- rate limit ----------
def _rl_key(email: str) -> str:
    ip = request.headers.get("X-Forwarded-For", request.remote_addr or "0.0.0.0").split(",")[0].strip()
    return f"{ip}|{(email or '').lower()}"


def _rl_buckets() -> dict[str, list[float]]:
    # на каждое приложение своё хранилище попыток
    return current_app.extensions.setdefault("login_attempts", {})


def _rl_check_and_hit(email: str) -> bool:
    now = time.time()
    win = current_app.config.get("AUTH_RL_WINDOW", DEFAULT_RL_WIN)
    mx = current_app.config.get("AUTH_RL_MAX", DEFAULT_RL_MAX)
    bucket = _rl_buckets().setdefault(_rl_key(email), [])
    # purge старых
    cutoff = now - win
    while bucket and bucket[0] < cutoff:
        bucket.pop(0)
    if len(bucket) >= mx:
        return False
    bucket.append(now)
    return True


def _rl_reset(email: str) -> None:
    _rl_buckets().pop(_rl_key(email), None)


# ---------- декораторы ролей ----------
def admin_required(fn: Callable):
    @wraps(fn)
    @login_required
    def wrapper(*args, **kwargs):
        if getattr(current_user, "role", None) != Role.ADMIN.value:
            raise Forbidden("Admin role required")
        return fn(*args, **kwargs)
    return wrapper


def teacher_required(fn: Callable):
    @wraps(fn)
    @login_required
    def wrapper(*args, **kwargs):
        # пускаем TEACHER и ADMIN (админу можно смотреть как преподавателю)
        if getattr(current_user, "role", None) not in (Role.TEACHER.value, Role.ADMIN.value):
            raise Forbidden("Teacher role required")
        return fn(*args, **kwargs)
    return wrapper


@login_manager.unauthorized_handler
def _unauth():
    # только JSON API, всегда 401
    raise Unauthorized("Login required")


# ---------- API ----------
@api_bp.post("/auth/register")
def api_register():
    data = parse_body(RegisterIn)
    out = svc.register(settings=get_settings(), mailer=get_mailer(),
                       name=data.name, email=data.email, password=data.password)
    return jsonify({"ok": True, **out}), 202


@api_bp.post("/auth/resend-otp")
def api_resend_otp():
    data = parse_body(ResendOtpIn)
    out = svc.resend_otp(settings=get_settings(), mailer=get_mailer(), email=data.email)
    return jsonify({"ok": True, **out})


@api_bp.post("/auth/verify-otp")
def api_verify_otp():
    data = parse_body(VerifyOtpIn)
    user = svc.verify_otp(email=data.email, otp=data.otp)
    return jsonify({"ok": True, "message": "Account created", "user": user.to_dict()}), 201


@api_bp.post("/auth/login")
def api_login():
    payload = json_body() or request.form or {}
    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""

    if not email or not password:
        raise ValidationError("Email and password are required", code="missing_credentials")

    if not _rl_check_and_hit(email):
        raise TooManyRequests("Too many login attempts, try again later")

    user = svc.authenticate(email, password)
    if user is None:
        raise Unauthorized("Invalid email or password", code="invalid_credentials")
    if not user.is_active:
        raise Forbidden("Account is disabled", code="inactive")

    _rl_reset(email)
    login_user(user, remember=True)
    return jsonify({"ok": True, "user": user.to_dict()})


@api_bp.post("/auth/facebook")
def api_facebook_login():
    data = parse_body(FacebookLoginIn)
    user = svc.facebook_login(facebook_id=data.facebook_id, email=data.email, name=data.name)
    if not user.is_active:
        raise Forbidden("Account is disabled", code="inactive")
    login_user(user, remember=True)
    return jsonify({"ok": True, "user": user.to_dict()})


@api_bp.post("/auth/logout")
@login_required
def api_logout():
    logout_user()
    return jsonify({"ok": True})


@api_bp.get("/auth/me")
@login_required
def api_me():
    return jsonify({"ok": True, "user": current_user.to_dict()})


@api_bp.post("/auth/change-password")
@login_required
def api_change_password():
    data = parse_body(ChangePasswordIn)
    out = svc.change_password(user=current_user._get_current_object(), current_password=data.current_password,
                              new_password=data.new_password)
    return jsonify({"ok": True, **out})

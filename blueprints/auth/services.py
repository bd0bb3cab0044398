# blueprints/auth/services.py
from __future__ import annotations
import logging
import re
import secrets
from datetime import datetime, timedelta
from typing import Optional

from werkzeug.security import generate_password_hash, check_password_hash

from config import Settings
from errors import Conflict, Forbidden, NotFound, Unauthorized, ValidationError
from extensions import db
from models import PendingUser, Role, User
from .mailer import Mailer, send_quietly

log = logging.getLogger(__name__)

PWD_REGEX = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[^A-Za-z0-9]).{6,}$")
PWD_RULES = "at least 6 characters with lower and upper case letters, a digit and a symbol"


def _check_password_policy(password: str) -> None:
    if not PWD_REGEX.match(password or ""):
        raise ValidationError(f"Password must contain {PWD_RULES}", code="weak_password")


def generate_otp(length: int = 6) -> str:
    return "".join(str(secrets.randbelow(10)) for _ in range(length))


def _issue_otp(pending: PendingUser, settings: Settings, now: datetime) -> str:
    otp = generate_otp(settings.otp_length)
    pending.otp_hash = generate_password_hash(otp)
    pending.otp_expires_at = now + timedelta(minutes=settings.otp_ttl_minutes)
    return otp


def _send_otp(mailer: Mailer, email: str, otp: str, settings: Settings) -> None:
    send_quietly(
        mailer, email, "Your OTP code",
        f"Your OTP code is {otp}. It expires in {settings.otp_ttl_minutes} minutes.",
    )
    log.info("otp issued", extra={"event": "otp_issued"})


def register(*, settings: Settings, mailer: Mailer, name: str, email: str, password: str,
             now: Optional[datetime] = None) -> dict:
    """Шаг 1 регистрации: PendingUser + OTP на почту."""
    now = now or datetime.utcnow()
    email = email.strip().lower()
    if User.query.filter_by(email=email).first():
        raise Conflict("Email is already registered", code="email_taken")
    _check_password_policy(password)

    pending = PendingUser.query.filter_by(email=email).first()
    if pending is None:
        pending = PendingUser(email=email)
        db.session.add(pending)
    pending.name = name.strip()
    pending.password_hash = generate_password_hash(password)
    pending.role = Role.STUDENT.value
    otp = _issue_otp(pending, settings, now)
    db.session.commit()

    _send_otp(mailer, email, otp, settings)
    return {"message": "OTP sent to email"}


def resend_otp(*, settings: Settings, mailer: Mailer, email: str, now: Optional[datetime] = None) -> dict:
    now = now or datetime.utcnow()
    email = email.strip().lower()
    if User.query.filter_by(email=email).first():
        raise ValidationError("Account is already verified", code="already_verified")
    pending = PendingUser.query.filter_by(email=email).first()
    if not pending:
        raise NotFound("No pending registration for this email", code="pending_not_found")
    otp = _issue_otp(pending, settings, now)
    db.session.commit()
    _send_otp(mailer, email, otp, settings)
    return {"message": "OTP re-sent"}


def verify_otp(*, email: str, otp: str, now: Optional[datetime] = None) -> User:
    """Шаг 2: проверка кода и создание настоящего пользователя."""
    now = now or datetime.utcnow()
    email = email.strip().lower()
    if User.query.filter_by(email=email).first():
        raise ValidationError("Account is already verified", code="already_verified")
    pending = PendingUser.query.filter_by(email=email).first()
    if not pending:
        raise NotFound("No pending registration for this email", code="pending_not_found")
    if pending.otp_expires_at < now or not check_password_hash(pending.otp_hash, (otp or "").strip()):
        raise ValidationError("OTP is invalid or expired", code="invalid_otp")

    user = User(
        email=pending.email,
        name=pending.name,
        password_hash=pending.password_hash,  # уже захеширован
        role=pending.role,
        is_active_flag=True,
    )
    db.session.add(user)
    db.session.delete(pending)
    db.session.commit()
    return user


def authenticate(email: str, password: str) -> Optional[User]:
    user: Optional[User] = User.query.filter_by(email=email.strip().lower()).first()
    if not user or not user.check_password(password):
        return None
    return user


def change_password(*, user: User, current_password: str, new_password: str) -> dict:
    if not current_password or not new_password:
        raise ValidationError("current_password and new_password are required")
    if current_password == new_password:
        raise ValidationError("New password must differ from the current one", code="same_password")
    _check_password_policy(new_password)
    if not user.check_password(current_password):
        raise Unauthorized("Current password is incorrect", code="wrong_password")
    user.set_password(new_password)
    db.session.commit()
    return {"message": "Password changed"}


def facebook_login(*, facebook_id: str, email: Optional[str] = None, name: Optional[str] = None) -> User:
    """Вход по Facebook ID: ищем по facebook_id, затем по email; иначе новый STUDENT.

    Пароль у такого аккаунта случайный: войти по паролю можно только после смены.
    """
    facebook_id = facebook_id.strip()
    email = (email or "").strip().lower() or None

    user = User.query.filter_by(facebook_id=facebook_id).first()
    if user is None and email:
        user = User.query.filter_by(email=email).first()
        if user is not None:
            if user.is_admin:
                # админский аккаунт по одному email не привязываем
                raise Forbidden("Admin accounts cannot sign in with Facebook", code="facebook_not_allowed")
            if user.facebook_id and user.facebook_id != facebook_id:
                raise Conflict("Email is linked to another Facebook account", code="facebook_mismatch")
            user.facebook_id = facebook_id
            db.session.commit()
            log.info("facebook linked", extra={"event": "facebook_linked", "user_id": user.id})

    if user is None:
        user = User(
            email=email or f"fb_{facebook_id}@facebook.local",
            name=(name or "").strip() or (email.split("@")[0] if email else None),
            password_hash=generate_password_hash(secrets.token_urlsafe(32)),
            role=Role.STUDENT.value,
            facebook_id=facebook_id,
            is_active_flag=True,
        )
        db.session.add(user)
        db.session.commit()
        log.info("facebook user created", extra={"event": "facebook_user_created", "user_id": user.id})
    return user

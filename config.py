from __future__ import annotations
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw not in (None, "") else default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw not in (None, "") else default


def as_bool(value, default: bool = False) -> bool:
    """Строки "false", "0", "no", "off" из окружения дают False."""
    if value is None or value == "":
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _env_bool(name: str, default: bool) -> bool:
    return as_bool(os.getenv(name), default)


class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")
    BASE_DIR = Path(__file__).resolve().parent
    # SQLite file in project directory
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", f"sqlite:///{BASE_DIR / 'app.db'}")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JSON_SORT_KEYS = False

    # CSRF: токен отдаём через /api/v1/csrf, фронт шлёт его в заголовке
    WTF_CSRF_TIME_LIMIT = None
    WTF_CSRF_HEADERS = ["X-CSRF-Token", "X-CSRFToken"]

    # политика записи/отмены
    ENROLL_CANCEL_CUTOFF_HOURS = _env_float("ENROLL_CANCEL_CUTOFF_HOURS", 24)
    GRADE_MIN = _env_float("GRADE_MIN", 0)
    GRADE_MAX = _env_float("GRADE_MAX", 10)

    # регистрация по OTP
    OTP_TTL_MINUTES = _env_int("OTP_TTL_MINUTES", 10)
    OTP_LENGTH = 6
    MAIL_SENDER = os.getenv("MAIL_SENDER", "no-reply@school.local")
    # без MAIL_SERVER письма только пишутся в лог
    MAIL_SERVER = os.getenv("MAIL_SERVER")
    MAIL_PORT = _env_int("MAIL_PORT", 587)
    MAIL_USERNAME = os.getenv("MAIL_USERNAME")
    MAIL_PASSWORD = os.getenv("MAIL_PASSWORD")
    MAIL_USE_TLS = _env_bool("MAIL_USE_TLS", True)

    # загрузка материалов
    UPLOAD_FOLDER = os.getenv("UPLOAD_FOLDER")  # None -> <instance>/uploads
    UPLOAD_MAX_MB = _env_int("UPLOAD_MAX_MB", 10)
    UPLOAD_ALLOWED_EXTENSIONS = ("pdf", "doc", "docx", "ppt", "pptx", "xls", "xlsx", "txt", "png", "jpg", "jpeg", "zip")

    # rate limit логина
    AUTH_RL_MAX = 5
    AUTH_RL_WINDOW = 300

    SEED_TEST_DATA = False
    DEFAULT_USERS: list[dict] = []


class DevConfig(BaseConfig):
    DEBUG = True
    SEED_TEST_DATA = True
    DEFAULT_USERS = [
        {"email": "admin@example.com", "password": "pass", "role": "ADMIN", "name": "Admin"},
        {"email": "t1@example.com", "password": "pass", "role": "TEACHER", "name": "Teacher One"},
    ]


class TestConfig(BaseConfig):
    TESTING = True
    MAIL_SERVER = None
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    WTF_CSRF_ENABLED = False
    SEED_TEST_DATA = False
    ENROLL_CANCEL_CUTOFF_HOURS = 24
    GRADE_MIN = 0
    GRADE_MAX = 10


class ProdConfig(BaseConfig):
    DEBUG = False
    SEED_TEST_DATA = False
    DEFAULT_USERS = []


config_map = {
    "dev": DevConfig,
    "testing": TestConfig,
    "prod": ProdConfig,
    "default": DevConfig,
}


@dataclass(frozen=True)
class Settings:
    """Бизнес-настройки, собранные один раз при старте приложения.

    Сервисы получают их аргументом и никогда не читают окружение сами.
    """
    cancel_cutoff_hours: float = 24
    grade_min: float = 0
    grade_max: float = 10
    otp_ttl_minutes: int = 10
    otp_length: int = 6
    upload_max_bytes: int = 10 * 1024 * 1024
    upload_allowed_extensions: tuple[str, ...] = ()

    @classmethod
    def from_mapping(cls, cfg: Mapping) -> "Settings":
        grade_min = float(cfg.get("GRADE_MIN", 0))
        grade_max = float(cfg.get("GRADE_MAX", 10))
        if grade_min > grade_max:
            raise ValueError("GRADE_MIN must be <= GRADE_MAX")
        return cls(
            cancel_cutoff_hours=float(cfg.get("ENROLL_CANCEL_CUTOFF_HOURS", 24)),
            grade_min=grade_min,
            grade_max=grade_max,
            otp_ttl_minutes=int(cfg.get("OTP_TTL_MINUTES", 10)),
            otp_length=int(cfg.get("OTP_LENGTH", 6)),
            upload_max_bytes=int(cfg.get("UPLOAD_MAX_MB", 10)) * 1024 * 1024,
            upload_allowed_extensions=tuple(
                e.lower().lstrip(".") for e in cfg.get("UPLOAD_ALLOWED_EXTENSIONS", ())
            ),
        )

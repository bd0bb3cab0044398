from __future__ import annotations
import os
from pathlib import Path
from flask import Flask
from config import Settings, config_map
from extensions import db, migrate, login_manager, csrf
from werkzeug.security import generate_password_hash
from sqlalchemy import inspect


def _seed_from_config(app):
    if not app.config.get("SEED_TEST_DATA"):
        return
    with app.app_context():
        # таблица users может ещё не быть создана (alembic upgrade и т.п.)
        if not inspect(db.engine).has_table("users"):
            return

        from models import User  # локальный импорт, чтобы избежать циклов
        created = 0
        for u in app.config.get("DEFAULT_USERS", []):
            if User.query.filter_by(email=u["email"]).first():
                continue
            db.session.add(User(
                email=u["email"],
                name=u.get("name") or u["email"].split("@")[0],
                password_hash=generate_password_hash(u["password"]),
                role=u["role"],
                is_active_flag=True,
            ))
            created += 1
        if created:
            db.session.commit()


def _init_collaborators(app: Flask) -> None:
    from blueprints.auth.mailer import mailer_from_config
    from blueprints.content.storage import LocalBlobStore

    settings = Settings.from_mapping(app.config)
    upload_root = app.config.get("UPLOAD_FOLDER") or str(Path(app.instance_path) / "uploads")
    app.extensions["settings"] = settings
    app.extensions["mailer"] = mailer_from_config(app.config)
    app.extensions["blob_store"] = LocalBlobStore(upload_root, settings)


def register_blueprints(app: Flask) -> None:
    from blueprints.core import bp as core_bp, api_bp as core_api_bp
    from blueprints.auth.routes import api_bp as auth_api_bp
    from blueprints.classes.routes import api_bp as classes_api_bp
    from blueprints.enrollment.routes import api_bp as enrollment_api_bp
    from blueprints.schedule.routes import api_bp as schedule_api_bp
    from blueprints.gradebook.routes import api_bp as gradebook_api_bp
    from blueprints.content.routes import api_bp as content_api_bp
    from blueprints.constraints.routes import api_bp as constraints_api_bp
    from blueprints.subjects.routes import api_bp as subjects_api_bp

    # core без префикса → '/health' в корне
    app.register_blueprint(core_bp)
    app.register_blueprint(core_api_bp, url_prefix="/api/v1")
    app.register_blueprint(auth_api_bp, url_prefix="/api/v1")
    app.register_blueprint(classes_api_bp, url_prefix="/api/v1")
    app.register_blueprint(enrollment_api_bp, url_prefix="/api/v1")
    app.register_blueprint(schedule_api_bp, url_prefix="/api/v1")
    app.register_blueprint(gradebook_api_bp, url_prefix="/api/v1")
    app.register_blueprint(content_api_bp, url_prefix="/api/v1")
    app.register_blueprint(subjects_api_bp, url_prefix="/api/v1")
    app.register_blueprint(constraints_api_bp, url_prefix="/api/v1/admin")


def create_app(config_name: str | None = None, config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    cfg_name = config_name or os.getenv("FLASK_CONFIG", "default")
    app.config.from_object(config_map[cfg_name])
    if config_overrides:
        app.config.update(config_overrides)
    # --- ВАЖНО: изоляция БД в тестах ---
    # pytest всегда выставляет переменную окружения PYTEST_CURRENT_TEST.
    # Делаем БД в памяти, чтобы никакие изменения из одного теста не протекали в другой.
    if os.environ.get("PYTEST_CURRENT_TEST"):
        app.config["SQLALCHEMY_DATABASE_URI"] = "sqlite:///:memory:"
        app.config.setdefault("SQLALCHEMY_ENGINE_OPTIONS", {"connect_args": {"check_same_thread": False}})

    try:
        os.makedirs(app.instance_path, exist_ok=True)
    except OSError:
        pass
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    csrf.init_app(app)
    _init_collaborators(app)
    register_blueprints(app)
    _seed_from_config(app)
    return app

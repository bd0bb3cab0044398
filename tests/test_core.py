from __future__ import annotations
import json
import logging

import pytest

from app import create_app
from config import Settings
from errors import NotFound
from extensions import db
from blueprints.core.routes import JSONFormatter


@pytest.fixture()
def app():
    app = create_app("testing")
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


def test_health_ok(app):
    with app.test_client() as c:
        rv = c.get("/health")
        assert rv.status_code == 200
        assert rv.get_json()["status"] == "ok"


def test_settings_frozen_on_app(app):
    s = app.extensions["settings"]
    assert isinstance(s, Settings)
    assert s.cancel_cutoff_hours == 24
    assert (s.grade_min, s.grade_max) == (0, 10)


def test_settings_reject_inverted_grade_range():
    with pytest.raises(ValueError):
        Settings.from_mapping({"GRADE_MIN": 10, "GRADE_MAX": 1})


def test_unknown_route_is_json_404(app):
    rv = app.test_client().get("/api/v1/nope")
    assert rv.status_code == 404
    js = rv.get_json()
    assert js["ok"] is False and js["error"] == "not_found"


def test_method_not_allowed_is_json(app):
    rv = app.test_client().get("/api/v1/auth/login")
    assert rv.status_code == 405
    assert rv.get_json()["ok"] is False


def test_domain_errors_and_crashes_become_json(app):
    @app.get("/_boom")
    def boom():
        raise RuntimeError("secret internals")

    @app.get("/_missing")
    def missing():
        raise NotFound("Nothing here", code="thing_not_found", details={"id": 7})

    c = app.test_client()
    rv = c.get("/_boom")
    assert rv.status_code == 500
    assert rv.get_json() == {"ok": False, "error": "internal_error", "message": "Internal server error"}

    rv = c.get("/_missing")
    assert rv.status_code == 404
    assert rv.get_json() == {"ok": False, "error": "thing_not_found", "message": "Nothing here",
                             "details": {"id": 7}}


def test_csrf_token_required_when_enabled():
    app = create_app("testing", {"WTF_CSRF_ENABLED": True})
    with app.app_context():
        db.create_all()
        c = app.test_client()
        rv = c.post("/api/v1/auth/login", json={"email": "a@example.com", "password": "x"})
        assert rv.status_code == 400
        assert rv.get_json()["error"] == "csrf_invalid"

        token = c.get("/api/v1/csrf").get_json()["csrf"]
        rv = c.post("/api/v1/auth/login", json={"email": "a@example.com", "password": "x"},
                    headers={"X-CSRF-Token": token})
        assert rv.status_code == 401
        db.drop_all()


def test_json_formatter_carries_extra_fields():
    rec = logging.LogRecord("svc", logging.INFO, __file__, 1, "batch applied", None, None)
    rec.event = "batch_applied"
    rec.class_id = 3
    rec.upserted = 2
    out = json.loads(JSONFormatter().format(rec))
    assert out["msg"] == "batch applied"
    assert out["event"] == "batch_applied"
    assert out["class_id"] == 3 and out["upserted"] == 2
    assert out["level"] == "INFO"

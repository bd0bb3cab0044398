from __future__ import annotations

import pytest
from werkzeug.security import generate_password_hash

from app import create_app
from extensions import db
from models import AuditLog, Subject, User


@pytest.fixture()
def app_ctx():
    app = create_app("testing")
    with app.app_context():
        db.create_all()
        users = [
            User(email="admin@example.com", name="Admin", role="ADMIN"),
            User(email="t1@example.com", name="Teacher One", role="TEACHER"),
            User(email="s1@example.com", name="S1", role="STUDENT"),
        ]
        for u in users:
            u.password_hash = generate_password_hash("pass")
        db.session.add_all(users)
        db.session.commit()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app_ctx):
    return app_ctx.test_client()


def login_as(client, email, password="pass"):
    r = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200


def subject_payload(**kw):
    base = {"name": "Toán", "code": "math10", "credit": 3,
            "startDate": "2024-09-02", "endDate": "2024-12-20"}
    base.update(kw)
    return base


def create(client, **kw):
    r = client.post("/api/v1/subjects", json=subject_payload(**kw))
    assert r.status_code == 201, r.get_json()
    return r.get_json()["subject"]


def test_teacher_creates_and_lists(client):
    login_as(client, "t1@example.com")
    subj = create(client)
    assert subj["code"] == "MATH10"
    assert (subj["start_date"], subj["end_date"]) == ("2024-09-02", "2024-12-20")
    create(client, name="Văn", code="LIT10", endDate="2024-09-02")

    r = client.get("/api/v1/subjects")
    assert r.status_code == 200
    assert [s["code"] for s in r.get_json()["subjects"]] == ["LIT10", "MATH10"]
    assert client.get(f"/api/v1/subjects/{subj['id']}").get_json()["subject"]["name"] == "Toán"
    assert AuditLog.query.filter_by(entity="subject", action="create").count() == 2


def test_duplicate_code_conflict(client):
    login_as(client, "admin@example.com")
    create(client)
    r = client.post("/api/v1/subjects", json=subject_payload(name="Toán nâng cao", code=" MATH10 "))
    assert r.status_code == 409
    assert r.get_json()["error"] == "duplicate_code"
    assert Subject.query.count() == 1


@pytest.mark.parametrize("kw", [
    {"endDate": "2024-09-01"},
    {"startDate": "not-a-date"},
    {"credit": -1},
    {"code": "   "},
    {"name": None},
])
def test_create_rejects_bad_input(client, kw):
    login_as(client, "admin@example.com")
    r = client.post("/api/v1/subjects", json=subject_payload(**kw))
    assert r.status_code == 400
    assert Subject.query.count() == 0


def test_update_rules(client):
    login_as(client, "t1@example.com")
    math = create(client)
    create(client, name="Văn", code="LIT10")
    url = f"/api/v1/subjects/{math['id']}"

    r = client.put(url, json={"credit": 4, "description": "Đại số"})
    assert r.status_code == 200
    assert r.get_json()["subject"]["credit"] == 4
    assert r.get_json()["subject"]["description"] == "Đại số"

    assert client.put(url, json={"code": "lit10"}).get_json()["error"] == "duplicate_code"
    assert client.put(url, json={"code": "MATH10"}).status_code == 200

    # конец раньше уже сохранённого начала
    r = client.put(url, json={"endDate": "2024-08-01"})
    assert r.status_code == 400
    assert r.get_json()["error"] == "invalid_period"
    assert client.put(url, json={"startDate": "2025-01-01"}).status_code == 400
    assert client.put(url, json={"startDate": "2024-08-01", "endDate": "2024-08-31"}).status_code == 200

    assert client.put(url, json={}).get_json()["error"] == "empty_update"
    assert client.put("/api/v1/subjects/999", json={"credit": 1}).status_code == 404


def test_delete_is_admin_only(client):
    login_as(client, "t1@example.com")
    sid = create(client)["id"]
    assert client.delete(f"/api/v1/subjects/{sid}").status_code == 403
    client.post("/api/v1/auth/logout")

    login_as(client, "admin@example.com")
    assert client.delete(f"/api/v1/subjects/{sid}").status_code == 200
    assert Subject.query.count() == 0
    r = client.delete(f"/api/v1/subjects/{sid}")
    assert r.status_code == 404
    assert r.get_json()["error"] == "subject_not_found"


def test_students_read_only(client):
    login_as(client, "s1@example.com")
    assert client.get("/api/v1/subjects").status_code == 200
    assert client.post("/api/v1/subjects", json=subject_payload()).status_code == 403

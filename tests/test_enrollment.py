from __future__ import annotations
from datetime import date, timedelta

import pytest
from werkzeug.security import generate_password_hash

from app import create_app
from extensions import db
from models import ClassTimeSlot, Enrollment, SchoolClass, User
from blueprints.schedule.slots import normalize


@pytest.fixture()
def app_ctx():
    app = create_app("testing")
    with app.app_context():
        db.create_all()
        users = [
            User(email="admin@example.com", name="Admin", role="ADMIN"),
            User(email="t1@example.com", name="Teacher One", role="TEACHER"),
            User(email="s1@example.com", name="Student One", role="STUDENT"),
            User(email="s2@example.com", name="Student Two", role="STUDENT"),
            User(email="s3@example.com", name="Student Three", role="STUDENT"),
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


def uid(email):
    return User.query.filter_by(email=email).first().id


def login_as(client, email, password="pass"):
    r = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.get_json()


def make_class(name, slots, max_students=30, starts_on=None):
    cls = SchoolClass(name=name, subject="Toán", teacher_id=uid("t1@example.com"),
                      max_students=max_students, seats_taken=0,
                      starts_on=starts_on or date.today() + timedelta(days=30))
    for i, (day, label) in enumerate(slots):
        s = normalize(day, label)
        cls.time_slots.append(ClassTimeSlot(position=i, weekday=int(s.weekday),
                                            start_minute=s.start, end_minute=s.end))
    db.session.add(cls)
    db.session.commit()
    return cls.id


def seats(class_id):
    db.session.expire_all()
    return db.session.get(SchoolClass, class_id).seats_taken


# ---- scenario: enroll, then duplicate ----
def test_enroll_then_duplicate(client):
    cid = make_class("Toán 10A", [("Thứ 2", "09:00-10:30")])
    login_as(client, "s1@example.com")
    r = client.post("/api/v1/enrollments", json={"classId": cid})
    assert r.status_code == 201
    js = r.get_json()
    assert js["ok"] is True
    assert js["enrollment"]["status"] == "approved"
    assert seats(cid) == 1

    r2 = client.post(f"/api/v1/enrollments/{cid}")
    assert r2.status_code == 409
    assert r2.get_json()["error"] == "already_enrolled"
    assert seats(cid) == 1
    assert Enrollment.query.filter_by(class_id=cid).count() == 1


def test_enroll_requires_login(client):
    cid = make_class("Toán 10A", [("Thứ 2", "09:00-10:30")])
    r = client.post("/api/v1/enrollments", json={"class_id": cid})
    assert r.status_code == 401
    assert r.get_json()["error"] == "unauthorized"


def test_enroll_missing_class(client):
    login_as(client, "s1@example.com")
    r = client.post("/api/v1/enrollments", json={"class_id": 999})
    assert r.status_code == 404
    assert r.get_json()["error"] == "class_not_found"


def test_enroll_requires_class_id(client):
    login_as(client, "s1@example.com")
    r = client.post("/api/v1/enrollments", json={})
    assert r.status_code == 400


# ---- capacity ----
def test_capacity_n_then_n_plus_one(client):
    cid = make_class("Văn 10A", [("Thứ 5", "13:30-15:00")], max_students=2)
    for email in ("s1@example.com", "s2@example.com"):
        login_as(client, email)
        assert client.post(f"/api/v1/enrollments/{cid}").status_code == 201
        client.post("/api/v1/auth/logout")

    login_as(client, "s3@example.com")
    r = client.post(f"/api/v1/enrollments/{cid}")
    assert r.status_code == 409
    assert r.get_json()["error"] == "capacity_exceeded"
    assert seats(cid) == 2
    assert Enrollment.query.filter_by(class_id=cid).count() == 2


def test_cancel_frees_a_seat(client):
    cid = make_class("Văn 10A", [("Thứ 5", "13:30-15:00")], max_students=1)
    login_as(client, "s1@example.com")
    assert client.post(f"/api/v1/enrollments/{cid}").status_code == 201
    r = client.delete(f"/api/v1/enrollments/{cid}")
    assert r.status_code == 200
    assert r.get_json()["ok"] is True
    assert seats(cid) == 0
    client.post("/api/v1/auth/logout")

    login_as(client, "s2@example.com")
    assert client.post(f"/api/v1/enrollments/{cid}").status_code == 201
    assert seats(cid) == 1


# ---- schedule conflicts for the student ----
def test_student_schedule_conflict(client):
    a = make_class("Toán 10A", [("Thứ 2", "09:00-10:30")])
    b = make_class("Lý 10A", [("Thứ 2", "10:00-11:00"), ("Thứ 4", "08:00-09:00")])
    c = make_class("Hoá 10A", [("Thứ 2", "10:30-11:30")])  # касание границы
    login_as(client, "s1@example.com")
    assert client.post(f"/api/v1/enrollments/{a}").status_code == 201

    r = client.post(f"/api/v1/enrollments/{b}")
    assert r.status_code == 409
    js = r.get_json()
    assert js["error"] == "schedule_conflict"
    assert "Toán 10A" in js["message"]
    assert len(js["details"]) == 1
    assert seats(b) == 0

    assert client.post(f"/api/v1/enrollments/{c}").status_code == 201


# ---- who may enroll whom ----
def test_student_cannot_enroll_someone_else(client):
    cid = make_class("Toán 10A", [("Thứ 2", "09:00-10:30")])
    login_as(client, "s1@example.com")
    r = client.post("/api/v1/enrollments", json={"class_id": cid, "student_id": uid("s2@example.com")})
    assert r.status_code == 403


def test_admin_enrolls_on_behalf(client):
    cid = make_class("Toán 10A", [("Thứ 2", "09:00-10:30")])
    login_as(client, "admin@example.com")
    r = client.post("/api/v1/enrollments", json={"class_id": cid, "studentId": uid("s2@example.com")})
    assert r.status_code == 201
    assert r.get_json()["enrollment"]["student_id"] == uid("s2@example.com")


def test_teacher_cannot_be_enrolled(client):
    cid = make_class("Toán 10A", [("Thứ 2", "09:00-10:30")])
    login_as(client, "t1@example.com")
    r = client.post(f"/api/v1/enrollments/{cid}")
    assert r.status_code == 403
    assert r.get_json()["error"] == "not_a_student"
    assert seats(cid) == 0


def test_admin_cannot_enroll_self_or_unknown_student(client):
    cid = make_class("Toán 10A", [("Thứ 2", "09:00-10:30")])
    login_as(client, "admin@example.com")
    r = client.post(f"/api/v1/enrollments/{cid}")
    assert r.status_code == 403
    assert r.get_json()["error"] == "not_a_student"
    r = client.post("/api/v1/enrollments", json={"class_id": cid, "student_id": 999})
    assert r.status_code == 404
    assert r.get_json()["error"] == "student_not_found"


# ---- cancellation over HTTP ----
def test_cancel_unknown_enrollment(client):
    cid = make_class("Toán 10A", [("Thứ 2", "09:00-10:30")])
    login_as(client, "s1@example.com")
    r = client.delete(f"/api/v1/enrollments/{cid}")
    assert r.status_code == 404
    assert r.get_json()["error"] == "enrollment_not_found"


def _today_label():
    return date.today().isoweekday()


def test_cancel_too_late_then_admin_override(client):
    # курс стартует сегодня, занятие в 00:00, окно отмены уже закрыто
    cid = make_class("Toán 10A", [(_today_label(), "00:00-23:59")], starts_on=date.today())
    login_as(client, "s1@example.com")
    assert client.post(f"/api/v1/enrollments/{cid}").status_code == 201

    r = client.delete(f"/api/v1/enrollments/{cid}")
    assert r.status_code == 409
    assert r.get_json()["error"] == "too_late_to_cancel"
    assert seats(cid) == 1
    client.post("/api/v1/auth/logout")

    login_as(client, "admin@example.com")
    r2 = client.delete(f"/api/v1/enrollments/{cid}", json={"student_id": uid("s1@example.com")})
    assert r2.status_code == 200
    assert seats(cid) == 0
    assert Enrollment.query.filter_by(class_id=cid).count() == 0


def test_single_seat_class_second_student_rejected(client):
    cid = make_class("Tin 10A", [("Thứ 6", "07:30-09:00")], max_students=1)
    login_as(client, "s1@example.com")
    assert client.post(f"/api/v1/enrollments/{cid}").status_code == 201
    client.post("/api/v1/auth/logout")

    login_as(client, "s2@example.com")
    r = client.post(f"/api/v1/enrollments/{cid}")
    assert r.status_code == 409
    assert r.get_json()["error"] == "capacity_exceeded"

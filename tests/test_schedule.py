from __future__ import annotations
from datetime import date, datetime

import pytest
from werkzeug.security import generate_password_hash

from app import create_app
from extensions import db
from errors import NotFound
from models import ClassTimeSlot, Enrollment, SchoolClass, Subject, User
from blueprints.schedule.services import student_schedule, teacher_schedule, teaching_schedule
from blueprints.schedule.sessions import last_session_end
from blueprints.schedule.slots import Weekday, WeeklySlot


@pytest.fixture()
def app_ctx():
    app = create_app("testing")
    with app.app_context():
        db.create_all()
        users = [
            User(email="t1@example.com", name="Teacher One", role="TEACHER"),
            User(email="s1@example.com", name="S1", role="STUDENT"),
            User(email="s2@example.com", name="S2", role="STUDENT"),
        ]
        for u in users:
            u.password_hash = generate_password_hash("pass")
        db.session.add_all(users)
        db.session.flush()
        t, s1 = users[0], users[1]
        math = SchoolClass(name="Toán", subject="Toán", teacher_id=t.id, max_students=10, seats_taken=1)
        math.time_slots = [ClassTimeSlot(position=0, weekday=0, start_minute=540, end_minute=630),   # Пн 09:00
                           ClassTimeSlot(position=1, weekday=2, start_minute=780, end_minute=840)]   # Ср 13:00
        lit = SchoolClass(name="Văn", subject="Văn", teacher_id=t.id, max_students=10, seats_taken=1,
                          starts_on=date(2030, 1, 7))
        lit.time_slots = [ClassTimeSlot(position=0, weekday=4, start_minute=480, end_minute=540)]  # Пт 08:00
        db.session.add_all([math, lit])
        db.session.flush()
        db.session.add_all([
            Enrollment(student_id=s1.id, class_id=math.id),
            Enrollment(student_id=s1.id, class_id=lit.id),
        ])
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
    assert r.status_code == 200


def test_schedule_projects_next_sessions(app_ctx):
    now = datetime(2024, 9, 3, 10, 0)  # вторник
    out = student_schedule(uid("s1@example.com"), now=now)
    assert [c["name"] for c in out] == ["Toán", "Văn"]
    assert out[0]["next_session"] == "2024-09-04T13:00"
    assert out[0]["time_slots"][0] == {"day": "Thứ 2", "slot": "09:00-10:30", "weekday": 0,
                                       "start": "09:00", "end": "10:30"}
    # курс ещё не начался: первое занятие в первую пятницу после даты старта
    assert out[1]["next_session"] == "2030-01-11T08:00"
    assert out[1]["teacher_name"] == "Teacher One"


def test_student_sees_own_schedule_only(client):
    login_as(client, "s1@example.com")
    r = client.get(f"/api/v1/students/{uid('s1@example.com')}/schedule")
    assert r.status_code == 200
    assert len(r.get_json()["classes"]) == 2
    assert client.get(f"/api/v1/students/{uid('s2@example.com')}/schedule").status_code == 403


def test_teacher_can_view_any_schedule(client):
    login_as(client, "t1@example.com")
    r = client.get(f"/api/v1/students/{uid('s2@example.com')}/schedule")
    assert r.status_code == 200
    assert r.get_json()["classes"] == []
    assert client.get("/api/v1/students/999/schedule").status_code == 404


# ---- учебное расписание преподавателей ----
def add_math_subject():
    db.session.add(Subject(name="Toán", code="MATH10", credit=3,
                           start_date=date(2024, 9, 2), end_date=date(2024, 12, 20)))
    db.session.commit()


def test_teaching_schedule_uses_subject_period(app_ctx):
    add_math_subject()
    out = teaching_schedule(now=datetime(2024, 9, 3, 10, 0))
    assert [c["class_name"] for c in out] == ["Toán", "Văn"]

    math = out[0]
    assert math["subject_code"] == "MATH10"
    assert math["period"] == {"start_date": "2024-09-02", "end_date": "2024-12-20"}
    mon, wed = math["time_slots"]
    assert (mon["day"], mon["slot"]) == ("Thứ 2", "09:00-10:30")
    assert mon["start"] == "2024-09-02T09:00"
    assert mon["end"] == "2024-12-16T10:30"
    assert mon["next_session"] == "2024-09-09T09:00"
    assert (wed["start"], wed["end"]) == ("2024-09-04T13:00", "2024-12-18T14:00")
    assert math["next_session"] == "2024-09-04T13:00"

    # у «Văn» нет предмета в каталоге: считаем от starts_on класса
    lit = out[1]
    assert lit["period"] is None
    assert lit["time_slots"][0]["start"] == "2030-01-11T08:00"
    assert lit["time_slots"][0]["end"] is None
    assert lit["next_session"] == "2030-01-11T08:00"


def test_finished_subject_has_no_next_session(app_ctx):
    add_math_subject()
    math = teaching_schedule(now=datetime(2025, 1, 10, 9, 0))[0]
    assert all(s["next_session"] is None for s in math["time_slots"])
    assert math["next_session"] is None
    assert math["time_slots"][0]["end"] == "2024-12-16T10:30"


def test_teacher_schedule_filters_by_teacher(app_ctx):
    other = User(email="t2@example.com", name="Teacher Two", role="TEACHER", password_hash="x")
    db.session.add(other)
    db.session.commit()
    assert len(teacher_schedule(uid("t1@example.com"), now=datetime(2024, 9, 3))) == 2
    assert teacher_schedule(other.id) == []
    with pytest.raises(NotFound):
        teacher_schedule(uid("s1@example.com"))


def test_last_session_end():
    mon = WeeklySlot(Weekday.MON, 540, 630)
    assert last_session_end(mon, date(2024, 12, 20)) == datetime(2024, 12, 16, 10, 30)
    assert last_session_end(mon, date(2024, 12, 16)) == datetime(2024, 12, 16, 10, 30)
    late = WeeklySlot(Weekday.SUN, 22 * 60, 24 * 60)
    assert last_session_end(late, date(2024, 9, 8)) == datetime(2024, 9, 9, 0, 0)
    assert last_session_end(WeeklySlot(None, 0, 60), date(2024, 9, 8)) is None


def test_teaching_schedule_endpoints(client):
    login_as(client, "t1@example.com")
    r = client.get("/api/v1/teacher/schedule/me")
    assert r.status_code == 200
    assert {c["class_name"] for c in r.get_json()["classes"]} == {"Toán", "Văn"}
    r = client.get(f"/api/v1/schedule/teaching?teacher_id={uid('t1@example.com')}")
    assert len(r.get_json()["classes"]) == 2
    client.post("/api/v1/auth/logout")

    login_as(client, "s1@example.com")
    assert client.get("/api/v1/schedule/teaching").status_code == 403
    assert client.get("/api/v1/teacher/schedule/me").status_code == 403

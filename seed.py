"""
Idempotent seed-скрипт.
Запуск:
  python seed.py --reset         # дропнуть и пересоздать БД + демо-данные
  python seed.py --ensure-admin  # создать только admin@example.com / pass
  python seed.py                 # мягкое наполнение недостающих данных (idempotent)
"""
from datetime import date, timedelta
import argparse

from werkzeug.security import generate_password_hash

from app import create_app
from extensions import db
from models import ClassTimeSlot, Enrollment, EnrollmentStatus, Role, SchoolClass, Subject, User
from blueprints.schedule.slots import normalize

DEMO_PASSWORD = "pass"

USERS = [
    ("admin@example.com", "Admin", Role.ADMIN),
    ("t1@example.com", "Nguyễn Văn An", Role.TEACHER),
    ("t2@example.com", "Trần Thị Bình", Role.TEACHER),
    ("s1@example.com", "Lê Minh Châu", Role.STUDENT),
    ("s2@example.com", "Phạm Quốc Dũng", Role.STUDENT),
    ("s3@example.com", "Hoàng Thu Hà", Role.STUDENT),
]

# (название, предмет, email преподавателя, мест, [(день, слот), ...])
CLASSES = [
    ("Toán 10A", "Toán", "t1@example.com", 30, [("Thứ 2", "07:30-09:00"), ("Thứ 4", "07:30-09:00")]),
    ("Vật lý 10A", "Vật lý", "t1@example.com", 25, [("Thứ 3", "09:15-10:45")]),
    ("Ngữ văn 10A", "Ngữ văn", "t2@example.com", 2, [("Thứ 5", "13:30-15:00"), ("Thứ 7", "08:00-09:30")]),
]

# (код, название, кредиты); период = ближайший семестр от даты запуска
SUBJECTS = [
    ("MATH10", "Toán", 4),
    ("PHYS10", "Vật lý", 3),
    ("LIT10", "Ngữ văn", 3),
]


def get_or_create(model, defaults=None, **filters):
    inst = db.session.query(model).filter_by(**filters).first()
    if inst:
        return inst, False
    data = dict(filters)
    if defaults:
        data.update(defaults)
    inst = model(**data)
    db.session.add(inst)
    return inst, True


def ensure_user(email: str, name: str, role: Role) -> User:
    user, _ = get_or_create(User, email=email, defaults={
        "name": name,
        "role": role.value,
        "password_hash": generate_password_hash(DEMO_PASSWORD),
        "is_active_flag": True,
    })
    return user


def seed_users() -> dict:
    users = {email: ensure_user(email, name, role) for email, name, role in USERS}
    db.session.flush()
    return users


def seed_classes(users: dict) -> list:
    out = []
    starts_on = date.today() + timedelta(days=14)
    for name, subject, teacher_email, max_students, slots in CLASSES:
        teacher = users[teacher_email]
        cls, created = get_or_create(SchoolClass, name=name, defaults={
            "subject": subject, "teacher_id": teacher.id,
            "max_students": max_students, "seats_taken": 0, "starts_on": starts_on,
        })
        if created:
            for i, (day, label) in enumerate(slots):
                s = normalize(day, label)
                cls.time_slots.append(ClassTimeSlot(position=i, weekday=int(s.weekday),
                                                    start_minute=s.start, end_minute=s.end))
        out.append(cls)
    db.session.flush()
    return out


def seed_subjects() -> int:
    created = 0
    start = date.today() + timedelta(days=14)
    for code, name, credit in SUBJECTS:
        _, is_new = get_or_create(Subject, code=code, defaults={
            "name": name, "credit": credit,
            "start_date": start, "end_date": start + timedelta(weeks=18),
        })
        created += int(is_new)
    return created


def seed_enrollments(users: dict, classes: list) -> int:
    created = 0
    first = classes[0]
    for email in ("s1@example.com", "s2@example.com"):
        student = users[email]
        _, is_new = get_or_create(Enrollment, student_id=student.id, class_id=first.id,
                                  defaults={"status": EnrollmentStatus.APPROVED.value})
        if is_new:
            first.seats_taken += 1
            created += 1
    return created


def main():
    ap = argparse.ArgumentParser(description="Demo data for the school backend")
    ap.add_argument("--reset", action="store_true", help="drop and recreate all tables")
    ap.add_argument("--ensure-admin", action="store_true", help="only create the admin account")
    args = ap.parse_args()

    app = create_app("dev")
    with app.app_context():
        if args.reset:
            db.drop_all()
        db.create_all()

        if args.ensure_admin:
            ensure_user("admin@example.com", "Admin", Role.ADMIN)
            db.session.commit()
            print("admin@example.com ready")
            return

        users = seed_users()
        subjects = seed_subjects()
        classes = seed_classes(users)
        enrolled = seed_enrollments(users, classes)
        db.session.commit()
        print(f"users: {len(users)}, new subjects: {subjects}, classes: {len(classes)}, new enrollments: {enrolled}")


if __name__ == "__main__":
    main()

from __future__ import annotations
import io
import os

import pytest
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.security import generate_password_hash

from app import create_app
from extensions import db
from models import Announcement, Material, SchoolClass, User


@pytest.fixture()
def app_ctx(tmp_path):
    app = create_app("testing", {
        "UPLOAD_FOLDER": str(tmp_path / "uploads"),
        "UPLOAD_MAX_MB": 1,
        "UPLOAD_ALLOWED_EXTENSIONS": ("pdf", "txt"),
    })
    with app.app_context():
        db.create_all()
        users = [
            User(email="admin@example.com", name="Admin", role="ADMIN"),
            User(email="t1@example.com", name="Teacher One", role="TEACHER"),
            User(email="t2@example.com", name="Teacher Two", role="TEACHER"),
        ]
        for u in users:
            u.password_hash = generate_password_hash("pass")
        db.session.add_all(users)
        db.session.flush()
        db.session.add(SchoolClass(name="Toán 10A", subject="Toán", teacher_id=users[1].id,
                                   max_students=30, seats_taken=0))
        db.session.commit()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app_ctx):
    return app_ctx.test_client()


def class_id():
    return SchoolClass.query.first().id


def login_as(client, email, password="pass"):
    r = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200


def upload(client, data=b"hello", filename="notes.txt", **form):
    body = {"class_id": str(class_id()), "file": (io.BytesIO(data), filename), **form}
    return client.post("/api/v1/materials", data=body, content_type="multipart/form-data")


# ---- announcements ----
def test_send_announcement(client):
    login_as(client, "t1@example.com")
    r = client.post("/api/v1/announcements", json={"classId": class_id(), "title": "Kiểm tra 15 phút",
                                                   "content": "Thứ 2 tuần sau"})
    assert r.status_code == 201
    assert r.get_json()["announcement"]["title"] == "Kiểm tra 15 phút"
    assert Announcement.query.count() == 1


def test_announcement_requires_title_and_owner(client):
    login_as(client, "t1@example.com")
    r = client.post("/api/v1/announcements", json={"class_id": class_id(), "title": "   "})
    assert r.status_code == 400
    assert client.post("/api/v1/announcements", json={"class_id": 999, "title": "x"}).status_code == 404
    client.post("/api/v1/auth/logout")

    login_as(client, "t2@example.com")
    r = client.post("/api/v1/announcements", json={"class_id": class_id(), "title": "x"})
    assert r.status_code == 403


# ---- materials ----
def test_upload_rename_delete(client, app_ctx):
    login_as(client, "t1@example.com")
    r = upload(client, name="Bài giảng 1")
    assert r.status_code == 201
    mat = r.get_json()["material"]
    assert mat["name"] == "Bài giảng 1"
    assert mat["size"] == 5
    stored = Material.query.one()
    path = os.path.join(app_ctx.config["UPLOAD_FOLDER"], stored.storage_key)
    assert os.path.isfile(path)

    dl = client.get(mat["url"])
    assert dl.status_code == 200
    assert dl.data == b"hello"

    r = client.put(f"/api/v1/materials/{mat['id']}", json={"name": "Bài giảng 1 (sửa)"})
    assert r.status_code == 200
    assert r.get_json()["material"]["name"] == "Bài giảng 1 (sửa)"

    r = client.delete(f"/api/v1/materials/{mat['id']}")
    assert r.status_code == 200
    assert Material.query.count() == 0
    assert not os.path.exists(path)


def test_upload_rejects_extension_and_size(client, app_ctx):
    login_as(client, "t1@example.com")
    r = upload(client, filename="virus.exe")
    assert r.status_code == 400
    assert r.get_json()["error"] == "unsupported_file_type"

    r = upload(client, data=b"x" * (1024 * 1024 + 1), filename="big.pdf")
    assert r.status_code == 400
    assert r.get_json()["error"] == "file_too_large"
    assert Material.query.count() == 0
    folder = app_ctx.config["UPLOAD_FOLDER"]
    assert not os.path.isdir(folder) or os.listdir(folder) == []


def test_link_material(client):
    login_as(client, "t1@example.com")
    r = client.post("/api/v1/materials", json={"class_id": class_id(), "name": "Slides",
                                               "url": "https://example.com/slides.pdf"})
    assert r.status_code == 201
    assert Material.query.one().storage_key is None
    r = client.post("/api/v1/materials", json={"class_id": class_id(), "url": "ftp://x"})
    assert r.status_code == 400


def test_only_uploader_or_admin_can_change(client):
    login_as(client, "t1@example.com")
    mid = upload(client).get_json()["material"]["id"]
    client.post("/api/v1/auth/logout")

    login_as(client, "t2@example.com")
    assert client.put(f"/api/v1/materials/{mid}", json={"name": "mine now"}).status_code == 403
    assert client.delete(f"/api/v1/materials/{mid}").status_code == 403
    client.post("/api/v1/auth/logout")

    login_as(client, "admin@example.com")
    assert client.delete(f"/api/v1/materials/{mid}").status_code == 200
    assert client.delete(f"/api/v1/materials/{mid}").status_code == 404


def _stored_files(app):
    folder = app.config["UPLOAD_FOLDER"]
    return os.listdir(folder) if os.path.isdir(folder) else []


def test_bad_name_leaves_no_file_behind(client, app_ctx):
    login_as(client, "t1@example.com")
    r = upload(client, filename="a.pdf", name="x" * 300)
    assert r.status_code == 400
    assert r.get_json()["error"] == "invalid_name"
    assert Material.query.count() == 0
    assert _stored_files(app_ctx) == []


def test_failed_insert_removes_stored_file(client, app_ctx, monkeypatch):
    login_as(client, "t1@example.com")

    def broken_commit():
        raise SQLAlchemyError("db is gone")

    monkeypatch.setattr(db.session, "commit", broken_commit)
    r = upload(client, filename="a.pdf")
    monkeypatch.undo()
    assert r.status_code == 500
    assert Material.query.count() == 0
    assert _stored_files(app_ctx) == []

# blueprints/content/routes.py
from __future__ import annotations
from typing import Optional

from flask import Blueprint, jsonify, request, send_from_directory
from flask_login import current_user, login_required
from pydantic import BaseModel, ConfigDict, Field

from errors import NotFound, ValidationError
from blueprints.auth.routes import teacher_required
from blueprints.core.deps import get_blob_store, parse_body
from . import services as svc

api_bp = Blueprint("content_api", __name__)


class AnnouncementIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    class_id: int = Field(alias="classId", ge=1)
    title: str = Field("", max_length=255)
    content: Optional[str] = None
    pinned: bool = False


class MaterialLinkIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    class_id: int = Field(alias="classId", ge=1)
    name: Optional[str] = Field(None, max_length=255)
    url: str = Field(min_length=1, max_length=1024)
    size: Optional[int] = Field(None, ge=0)


class MaterialRenameIn(BaseModel):
    name: str = Field(min_length=1, max_length=255)


@api_bp.post("/announcements")
@teacher_required
def api_send_announcement():
    data = parse_body(AnnouncementIn)
    ann = svc.send_announcement(class_id=data.class_id, title=data.title, content=data.content,
                                actor=current_user, pinned=data.pinned)
    return jsonify({"ok": True, "message": "Announcement sent", "announcement": ann.to_dict()}), 201


@api_bp.post("/materials")
@teacher_required
def api_add_material():
    if "file" in request.files:
        class_id = request.form.get("class_id", type=int) or request.form.get("classId", type=int)
        if not class_id:
            raise ValidationError("class_id is required", code="missing_class_id")
        material = svc.upload_material(
            class_id=class_id, file=request.files["file"], name=request.form.get("name"),
            actor=current_user, store=get_blob_store(),
        )
    else:
        data = parse_body(MaterialLinkIn)
        material = svc.add_material_link(class_id=data.class_id, name=data.name, url=data.url,
                                         size=data.size, actor=current_user)
    return jsonify({"ok": True, "message": "Material added", "material": material.to_dict()}), 201


@api_bp.put("/materials/<int:material_id>")
@teacher_required
def api_rename_material(material_id: int):
    data = parse_body(MaterialRenameIn)
    material = svc.rename_material(material_id, data.name, current_user)
    return jsonify({"ok": True, "material": material.to_dict()})


@api_bp.delete("/materials/<int:material_id>")
@teacher_required
def api_delete_material(material_id: int):
    svc.delete_material(material_id, current_user, get_blob_store())
    return jsonify({"ok": True, "message": "Material deleted"})


@api_bp.get("/materials/files/<key>")
@login_required
def api_material_file(key: str):
    store = get_blob_store()
    path = store.path_for(key)
    if not path.is_file():
        raise NotFound("File not found")
    return send_from_directory(store.root, path.name)

# blueprints/content/services.py
from __future__ import annotations
import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from werkzeug.datastructures import FileStorage

from errors import Forbidden, NotFound, ValidationError
from extensions import db
from models import Announcement, Material, User
from blueprints.classes.services import ensure_class_access, get_class_or_404
from .storage import BlobStore

log = logging.getLogger(__name__)


def send_announcement(*, class_id: int, title: str, content: Optional[str], actor: User,
                      pinned: bool = False) -> Announcement:
    title = (title or "").strip()
    if not title:
        raise ValidationError("title is required", code="missing_title")
    cls = get_class_or_404(class_id)
    ensure_class_access(cls, actor)
    ann = Announcement(class_id=cls.id, title=title, content=content, creator_id=actor.id, pinned=pinned)
    db.session.add(ann)
    db.session.commit()
    return ann


def _material_name(name: Optional[str], fallback: str) -> str:
    name = (name or "").strip() or fallback
    if len(name) > 255:
        raise ValidationError("name is too long", code="invalid_name")
    return name


def upload_material(*, class_id: int, file: FileStorage, name: Optional[str], actor: User,
                    store: BlobStore) -> Material:
    cls = get_class_or_404(class_id)
    ensure_class_access(cls, actor)
    # всё, что может отказать до записи на диск, проверяем до upload
    title = _material_name(name, file.filename or "file")
    blob = store.upload(file)
    material = Material(
        class_id=cls.id,
        name=title,
        url=blob.url,
        storage_key=blob.key,
        size=blob.size,
        mime_type=blob.mime_type,
        uploader_id=actor.id,
    )
    try:
        db.session.add(material)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        store.destroy(blob.key)
        raise
    log.info("material uploaded", extra={"event": "material_uploaded", "class_id": cls.id})
    return material


def add_material_link(*, class_id: int, name: Optional[str], url: str, size: Optional[int],
                      actor: User) -> Material:
    url = (url or "").strip()
    if not url.startswith(("http://", "https://")):
        raise ValidationError("url must be an http(s) link", code="invalid_url")
    cls = get_class_or_404(class_id)
    ensure_class_access(cls, actor)
    material = Material(class_id=cls.id, name=_material_name(name, url), url=url,
                        size=size, uploader_id=actor.id)
    db.session.add(material)
    db.session.commit()
    return material


def _owned_material(material_id: int, actor: User) -> Material:
    material = db.session.get(Material, material_id)
    if material is None:
        raise NotFound("Material not found")
    if not actor.is_admin and material.uploader_id != actor.id:
        raise Forbidden("Only the uploader can change this material", code="not_owner")
    return material


def rename_material(material_id: int, name: str, actor: User) -> Material:
    material = _owned_material(material_id, actor)
    if not (name or "").strip():
        raise ValidationError("name is required", code="missing_name")
    material.name = _material_name(name, material.name)
    db.session.commit()
    return material


def delete_material(material_id: int, actor: User, store: BlobStore) -> None:
    material = _owned_material(material_id, actor)
    key = material.storage_key
    db.session.delete(material)
    db.session.commit()
    if key:
        store.destroy(key)

# blueprints/subjects/services.py
from __future__ import annotations
import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError

from errors import Conflict, NotFound, ValidationError
from extensions import db
from models import AuditLog, Subject, User
from .schemas import SubjectIn, SubjectUpdateIn

log = logging.getLogger(__name__)


def _audit(actor: Optional[User], action: str, entity_id: Optional[int], payload: dict | None = None):
    db.session.add(AuditLog(
        user_id=getattr(actor, "id", None),
        action=action, entity="subject", entity_id=entity_id, payload=payload or {},
    ))


def _duplicate_code(code: str) -> Conflict:
    return Conflict(f"Subject code {code} already exists", code="duplicate_code")


def _commit_unique(code: str) -> None:
    try:
        db.session.commit()
    except IntegrityError:
        # гонка двух запросов с одинаковым кодом
        db.session.rollback()
        raise _duplicate_code(code)


def get_subject_or_404(subject_id: int) -> Subject:
    subject = db.session.get(Subject, subject_id)
    if subject is None:
        raise NotFound("Subject not found", code="subject_not_found")
    return subject


def list_subjects() -> List[dict]:
    rows = Subject.query.order_by(Subject.created_at.desc(), Subject.id.desc()).all()
    return [s.to_dict() for s in rows]


def create_subject(data: SubjectIn, actor: User) -> Subject:
    if Subject.query.filter_by(code=data.code).first():
        raise _duplicate_code(data.code)
    subject = Subject(
        name=data.name,
        code=data.code,
        credit=data.credit,
        description=data.description,
        start_date=data.start_date,
        end_date=data.end_date,
    )
    db.session.add(subject)
    db.session.flush()
    _audit(actor, "create", subject.id, {"code": subject.code})
    _commit_unique(data.code)
    log.info("subject created", extra={"event": "subject_created"})
    return subject


def update_subject(subject_id: int, data: SubjectUpdateIn, actor: User) -> Subject:
    subject = get_subject_or_404(subject_id)
    fields = {f for f in data.model_fields_set if getattr(data, f) is not None or f == "description"}
    if not fields:
        raise ValidationError("Nothing to update", code="empty_update")

    if "code" in fields and data.code != subject.code:
        dup = Subject.query.filter(Subject.code == data.code, Subject.id != subject.id).first()
        if dup:
            raise _duplicate_code(data.code)

    # период проверяем по итоговым значениям, а не только по присланным
    start = data.start_date if "start_date" in fields else subject.start_date
    end = data.end_date if "end_date" in fields else subject.end_date
    if end < start:
        raise ValidationError("endDate must be on or after startDate", code="invalid_period")

    for f in sorted(fields):
        setattr(subject, f, getattr(data, f))
    _audit(actor, "update", subject.id, {"fields": sorted(fields)})
    _commit_unique(subject.code)
    return subject


def delete_subject(subject_id: int, actor: User) -> None:
    subject = get_subject_or_404(subject_id)
    db.session.delete(subject)
    _audit(actor, "delete", subject_id, {"code": subject.code})
    db.session.commit()
    log.info("subject deleted", extra={"event": "subject_deleted"})

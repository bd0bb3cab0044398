"""Идемпотентная пакетная запись (посещаемость, оценки).

Ключ строки: (class_id, student_id, <key_field>). Повторная отправка того же
пакета ничего не создаёт: ``upserted=0``, ``matched=n``, ``modified`` считает
только строки, значения которых действительно поменялись.
"""
from __future__ import annotations
import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, Sequence

from sqlalchemy.exc import IntegrityError

from errors import Conflict
from extensions import db

log = logging.getLogger(__name__)


@dataclass
class BatchResult:
    upserted: int = 0
    modified: int = 0
    matched: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


def apply_batch(model, *, class_id: int, key_field: str, key_value: Any,
                items: Sequence[Dict[str, Any]], fields: Iterable[str]) -> BatchResult:
    """Записывает уже проверенные элементы одной транзакцией.

    Каждый элемент: ``{"student_id": int, <field>: value, ...}``. Если один
    студент встречается в пакете дважды, побеждает последний элемент, а
    повтор считается совпадением.
    """
    fields = tuple(fields)
    result = BatchResult()
    if not items:
        return result

    key_col = getattr(model, key_field)
    ids = {it["student_id"] for it in items}
    existing = {
        row.student_id: row
        for row in model.query.filter(
            model.class_id == class_id, key_col == key_value, model.student_id.in_(ids)
        ).all()
    }

    for it in items:
        sid = it["student_id"]
        row = existing.get(sid)
        if row is None:
            row = model(class_id=class_id, student_id=sid, **{key_field: key_value},
                        **{f: it[f] for f in fields})
            db.session.add(row)
            existing[sid] = row
            result.upserted += 1
            continue
        result.matched += 1
        changed = False
        for f in fields:
            if getattr(row, f) != it[f]:
                setattr(row, f, it[f])
                changed = True
        if changed:
            result.modified += 1

    try:
        db.session.commit()
    except IntegrityError:
        # параллельная вставка той же строки
        db.session.rollback()
        raise Conflict("Record was written concurrently, retry the request", code="duplicate_key")

    log.info("batch applied", extra={
        "event": "batch_applied", "class_id": class_id, **result.to_dict(),
    })
    return result


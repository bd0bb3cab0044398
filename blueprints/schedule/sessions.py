from __future__ import annotations
from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional

from .slots import WeeklySlot


def next_occurrence(slot: WeeklySlot, reference: datetime) -> Optional[datetime]:
    """Ближайшее начало занятия по слоту, не раньше reference (наивное локальное время)."""
    if slot.weekday is None:
        return None
    days_ahead = (int(slot.weekday) - reference.weekday()) % 7
    day = reference.date() + timedelta(days=days_ahead)
    candidate = datetime.combine(day, time(slot.start // 60, slot.start % 60))
    if candidate < reference:
        candidate += timedelta(days=7)
    return candidate


def first_session(slots: Iterable[WeeklySlot], reference: datetime) -> Optional[datetime]:
    """Самое раннее занятие среди слотов; None, если разобранных слотов нет."""
    candidates = [c for c in (next_occurrence(s, reference) for s in slots) if c is not None]
    return min(candidates) if candidates else None


def reference_point(starts_on: date | None, now: datetime) -> datetime:
    # якорь начала курса важнее текущего времени
    if starts_on is not None:
        return datetime.combine(starts_on, time(0, 0))
    return now


def last_session_end(slot: WeeklySlot, until: date) -> Optional[datetime]:
    """Конец последнего занятия по слоту в день until или раньше."""
    if slot.weekday is None:
        return None
    days_back = (until.weekday() - int(slot.weekday)) % 7
    day = until - timedelta(days=days_back)
    # end может быть 24:00, поэтому через timedelta, а не time()
    return datetime.combine(day, time(0, 0)) + timedelta(minutes=slot.end)

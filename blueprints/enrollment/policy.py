"""Правило отмены записи: не позже чем за N часов до первого занятия."""
from __future__ import annotations
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from config import Settings
from errors import TooLateToCancel
from blueprints.schedule.sessions import first_session, reference_point
from blueprints.schedule.slots import WeeklySlot


def cancel_deadline(slots: Iterable[WeeklySlot], starts_on: Optional[date], now: datetime,
                    settings: Settings) -> Optional[datetime]:
    first = first_session(slots, reference_point(starts_on, now))
    if first is None:
        return None
    return first - timedelta(hours=settings.cancel_cutoff_hours)


def ensure_cancellable(slots: Iterable[WeeklySlot], starts_on: Optional[date], now: datetime,
                       is_admin: bool, settings: Settings) -> None:
    if is_admin:
        return
    deadline = cancel_deadline(slots, starts_on, now, settings)
    # без разобранных слотов ограничение не действует
    if deadline is not None and now > deadline:
        raise TooLateToCancel(
            f"Enrollment can only be cancelled at least {settings.cancel_cutoff_hours:g} hours "
            f"before the first session",
            details={"deadline": deadline.isoformat(timespec="minutes")},
        )

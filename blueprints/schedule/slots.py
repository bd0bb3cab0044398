"""Недельные слоты занятий.

Внутри системы день недели один: ``Weekday`` (0=Пн .. 6=Вс, как ``date.weekday()``).
Все текстовые форматы («Thứ 2», «chu nhat», «Mon», номера 1..7 / 0..6) разбираются
только здесь, в ``parse_day`` / ``normalize``.
"""
from __future__ import annotations
import re
import unicodedata
from dataclasses import dataclass, replace
from enum import IntEnum
from typing import Iterable, Optional

from errors import ValidationError


class Weekday(IntEnum):
    MON = 0
    TUE = 1
    WED = 2
    THU = 3
    FRI = 4
    SAT = 5
    SUN = 6


# подписи в формате, который присылает фронт
DAY_LABELS_VI = {
    Weekday.MON: "Thứ 2",
    Weekday.TUE: "Thứ 3",
    Weekday.WED: "Thứ 4",
    Weekday.THU: "Thứ 5",
    Weekday.FRI: "Thứ 6",
    Weekday.SAT: "Thứ 7",
    Weekday.SUN: "Chủ nhật",
}
DAY_NAMES_EN = {
    Weekday.MON: "Monday",
    Weekday.TUE: "Tuesday",
    Weekday.WED: "Wednesday",
    Weekday.THU: "Thursday",
    Weekday.FRI: "Friday",
    Weekday.SAT: "Saturday",
    Weekday.SUN: "Sunday",
}

_DAY_ALIASES: dict[str, Weekday] = {
    "thứ 2": Weekday.MON, "thu 2": Weekday.MON, "t2": Weekday.MON, "thứ hai": Weekday.MON, "thu hai": Weekday.MON,
    "thứ 3": Weekday.TUE, "thu 3": Weekday.TUE, "t3": Weekday.TUE, "thứ ba": Weekday.TUE, "thu ba": Weekday.TUE,
    "thứ 4": Weekday.WED, "thu 4": Weekday.WED, "t4": Weekday.WED, "thứ tư": Weekday.WED, "thu tu": Weekday.WED,
    "thứ 5": Weekday.THU, "thu 5": Weekday.THU, "t5": Weekday.THU, "thứ năm": Weekday.THU, "thu nam": Weekday.THU,
    "thứ 6": Weekday.FRI, "thu 6": Weekday.FRI, "t6": Weekday.FRI, "thứ sáu": Weekday.FRI, "thu sau": Weekday.FRI,
    "thứ 7": Weekday.SAT, "thu 7": Weekday.SAT, "t7": Weekday.SAT, "thứ bảy": Weekday.SAT, "thu bay": Weekday.SAT,
    "chủ nhật": Weekday.SUN, "chu nhat": Weekday.SUN, "cn": Weekday.SUN,
}
for _wd, _name in DAY_NAMES_EN.items():
    _DAY_ALIASES[_name.lower()] = _wd
    _DAY_ALIASES[_name[:3].lower()] = _wd

_HHMM = re.compile(r"^(\d{1,2}):(\d{2})$")


def _day_key(value: str) -> str:
    # NFC: «ứ» может прийти как буква + комбинируемый диакритик
    s = unicodedata.normalize("NFC", value).strip().lower()
    return re.sub(r"\s+", " ", s)


def weekday_from_number(n: int, numbering: str = "iso") -> Weekday:
    """Число -> Weekday.

    ``iso``: 1=Пн .. 7=Вс; ``sunday0``: 0=Вс .. 6=Сб.
    """
    if numbering == "iso":
        if not 1 <= n <= 7:
            raise ValidationError(f"Day number out of range 1..7: {n}", code="invalid_day")
        return Weekday(n - 1)
    if numbering == "sunday0":
        if not 0 <= n <= 6:
            raise ValidationError(f"Day number out of range 0..6: {n}", code="invalid_day")
        return Weekday((n - 1) % 7)
    raise ValueError(f"unknown numbering: {numbering}")


def parse_day(value) -> Weekday:
    if isinstance(value, Weekday):
        return value
    if isinstance(value, bool):
        raise ValidationError(f"Unrecognized day: {value!r}", code="invalid_day")
    if isinstance(value, int):
        return weekday_from_number(value, "iso")
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("Day is required", code="invalid_day")
    key = _day_key(value)
    if key.isdigit():
        return weekday_from_number(int(key), "iso")
    wd = _DAY_ALIASES.get(key)
    if wd is None:
        raise ValidationError(f"Unrecognized day: {value!r}", code="invalid_day")
    return wd


def to_minutes(hhmm: str, allow_midnight: bool = False) -> int:
    """'HH:MM' -> минуты от начала суток; 24:00 допустимо только как конец слота."""
    m = _HHMM.match((hhmm or "").strip())
    if not m:
        raise ValidationError(f"Bad time {hhmm!r}, expected HH:MM", code="invalid_slot")
    h, mi = int(m.group(1)), int(m.group(2))
    if allow_midnight and h == 24 and mi == 0:
        return 24 * 60
    if h > 23 or mi > 59:
        raise ValidationError(f"Bad time {hhmm!r}", code="invalid_slot")
    return h * 60 + mi


def fmt_minutes(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def parse_label(label: str) -> tuple[int, int]:
    """'09:00-10:30' -> (540, 630)."""
    parts = str(label or "").split("-")
    if len(parts) != 2:
        raise ValidationError(f"Bad slot {label!r}, expected HH:MM-HH:MM", code="invalid_slot")
    start, end = to_minutes(parts[0]), to_minutes(parts[1], allow_midnight=True)
    if start >= end:
        raise ValidationError(f"Slot {label!r} must end after it starts", code="invalid_slot")
    return start, end


@dataclass(frozen=True)
class WeeklySlot:
    weekday: Optional[Weekday]
    start: int  # минуты от полуночи
    end: int
    class_id: Optional[int] = None
    class_name: Optional[str] = None

    @property
    def label(self) -> str:
        return f"{fmt_minutes(self.start)}-{fmt_minutes(self.end)}"

    def overlaps(self, other: "WeeklySlot") -> bool:
        # полуинтервалы: касание границ (09:00-10:00 и 10:00-11:00) пересечением не считается
        if self.weekday is None or other.weekday is None:
            return False
        if self.weekday != other.weekday:
            return False
        return self.start < other.end and other.start < self.end

    def owned_by(self, class_id: int | None, class_name: str | None) -> "WeeklySlot":
        return replace(self, class_id=class_id, class_name=class_name)

    def to_wire(self) -> dict:
        return {
            "day": DAY_LABELS_VI[self.weekday] if self.weekday is not None else None,
            "slot": self.label,
            "weekday": int(self.weekday) if self.weekday is not None else None,
            "start": fmt_minutes(self.start),
            "end": fmt_minutes(self.end),
        }


def normalize(day, label: str) -> WeeklySlot:
    """{day: 'Thứ 2', slot: '09:00-10:30'} -> WeeklySlot(MON, 540, 630)."""
    wd = parse_day(day)
    start, end = parse_label(label)
    return WeeklySlot(weekday=wd, start=start, end=end)


def normalize_many(items: Iterable) -> list[WeeklySlot]:
    out: list[WeeklySlot] = []
    for idx, it in enumerate(items or []):
        day = it.get("day") if isinstance(it, dict) else getattr(it, "day", None)
        label = it.get("slot") if isinstance(it, dict) else getattr(it, "slot", None)
        try:
            out.append(normalize(day, label))
        except ValidationError as e:
            raise ValidationError(f"time_slots[{idx}]: {e.message}", code=e.code) from e
    return out


def from_row(row, class_id: int | None = None, class_name: str | None = None) -> WeeklySlot:
    """ClassTimeSlot (или любой объект с weekday/start_minute/end_minute) -> WeeklySlot."""
    wd = getattr(row, "weekday", None)
    return WeeklySlot(
        weekday=Weekday(wd) if wd is not None else None,
        start=int(getattr(row, "start_minute")),
        end=int(getattr(row, "end_minute")),
        class_id=class_id,
        class_name=class_name,
    )


def day_label(wd: Weekday | None) -> str:
    if wd is None:
        return "?"
    return DAY_NAMES_EN[Weekday(wd)]

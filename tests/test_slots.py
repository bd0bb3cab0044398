import pytest

from errors import ValidationError
from blueprints.schedule.slots import (
    Weekday, WeeklySlot, normalize, normalize_many, parse_day, parse_label, weekday_from_number,
)


@pytest.mark.parametrize("raw,expected", [
    ("Thứ 2", Weekday.MON),
    ("thu 2", Weekday.MON),
    ("  THỨ   3 ", Weekday.TUE),
    ("Thứ 7", Weekday.SAT),
    ("Chủ nhật", Weekday.SUN),
    ("chu nhat", Weekday.SUN),
    ("CN", Weekday.SUN),
    ("Monday", Weekday.MON),
    ("fri", Weekday.FRI),
    ("7", Weekday.SUN),
    (1, Weekday.MON),
])
def test_parse_day_aliases(raw, expected):
    assert parse_day(raw) == expected


def test_parse_day_decomposed_unicode():
    # «ứ» как u + комбинируемые знаки
    raw = "Thứ 4"
    assert parse_day(raw) == Weekday.WED


@pytest.mark.parametrize("raw", ["Thứ 8", "", "someday", 0, 8, True, None])
def test_parse_day_rejects_unknown(raw):
    with pytest.raises(ValidationError) as ei:
        parse_day(raw)
    assert ei.value.code == "invalid_day"


def test_sunday_zero_numbering():
    assert weekday_from_number(0, "sunday0") == Weekday.SUN
    assert weekday_from_number(1, "sunday0") == Weekday.MON
    assert weekday_from_number(6, "sunday0") == Weekday.SAT


def test_parse_label_minutes():
    assert parse_label("09:00-10:30") == (540, 630)
    assert parse_label("7:05-8:00") == (425, 480)


def test_slot_may_end_at_midnight():
    assert parse_label("22:00-24:00") == (1320, 1440)
    s = normalize("Chủ nhật", "22:00-24:00")
    assert s.to_wire()["slot"] == "22:00-24:00"


@pytest.mark.parametrize("label", ["09:00", "09:00-10:00-11:00", "24:00-25:00", "09:60-10:00",
                                   "10:00-09:00", "10:00-10:00", "ab:cd-10:00",
                                   "24:00-24:00", "22:00-24:30"])
def test_parse_label_rejects_bad(label):
    with pytest.raises(ValidationError) as ei:
        parse_label(label)
    assert ei.value.code == "invalid_slot"


def test_normalize_and_wire_format():
    s = normalize("Thứ 2", "09:00-10:30")
    assert s == WeeklySlot(Weekday.MON, 540, 630)
    wire = s.to_wire()
    assert wire["day"] == "Thứ 2"
    assert wire["slot"] == "09:00-10:30"
    assert wire["weekday"] == 0


def test_normalize_many_reports_index():
    with pytest.raises(ValidationError) as ei:
        normalize_many([{"day": "Thứ 2", "slot": "09:00-10:00"}, {"day": "Thứ 9", "slot": "09:00-10:00"}])
    assert "time_slots[1]" in ei.value.message


def test_overlap_is_half_open():
    a = WeeklySlot(Weekday.MON, 540, 600)   # 09:00-10:00
    b = WeeklySlot(Weekday.MON, 600, 660)   # 10:00-11:00
    c = WeeklySlot(Weekday.MON, 570, 630)   # 09:30-10:30
    assert not a.overlaps(b)
    assert not b.overlaps(a)
    assert a.overlaps(c) and c.overlaps(a)
    assert b.overlaps(c)


def test_different_days_never_overlap():
    a = WeeklySlot(Weekday.MON, 540, 600)
    b = WeeklySlot(Weekday.TUE, 540, 600)
    assert not a.overlaps(b)


def test_slot_without_weekday_is_ignored():
    a = WeeklySlot(None, 540, 600)
    b = WeeklySlot(Weekday.MON, 540, 600)
    assert not a.overlaps(b)
    assert not b.overlaps(a)

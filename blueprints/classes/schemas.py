from __future__ import annotations
from datetime import date
from typing import List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator


def _not_blank(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("must not be blank")
    return v


class SlotIn(BaseModel):
    # день как строка («Thứ 2», «mon») или номер 1..7; разбор в slots.normalize
    day: Union[int, str]
    slot: str = Field(min_length=1, max_length=32)


class ClassIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1, max_length=255)
    subject: str = Field(min_length=1, max_length=255)
    teacher_id: int = Field(alias="teacherId", ge=1)
    max_students: int = Field(alias="maxStudents", ge=1)
    starts_on: Optional[date] = Field(None, alias="startsOn")
    time_slots: List[SlotIn] = Field(alias="timeSlots", min_length=1)

    @field_validator("name", "subject")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return _not_blank(v)


class ClassUpdateIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    subject: Optional[str] = Field(None, min_length=1, max_length=255)
    teacher_id: Optional[int] = Field(None, alias="teacherId", ge=1)
    max_students: Optional[int] = Field(None, alias="maxStudents", ge=1)
    starts_on: Optional[date] = Field(None, alias="startsOn")
    time_slots: Optional[List[SlotIn]] = Field(None, alias="timeSlots", min_length=1)

    @field_validator("name", "subject")
    @classmethod
    def strip_text(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _not_blank(v)


class ConstraintCheckIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    teacher_id: int = Field(alias="teacherId", ge=1)
    time_slots: List[SlotIn] = Field(alias="timeSlots", min_length=1)
    exclude_class_id: Optional[int] = Field(None, alias="excludeClassId")

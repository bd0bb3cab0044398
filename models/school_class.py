from __future__ import annotations
from datetime import date, datetime

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from extensions import db


class SchoolClass(db.Model):
    __tablename__ = "classes"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    subject: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    teacher_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    max_students: Mapped[int] = mapped_column(Integer, nullable=False)
    # денормализованный счётчик approved-записей, меняется только условным UPDATE
    seats_taken: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # якорь начала курса; если не задан, первое занятие считается от «сейчас»
    starts_on: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    teacher = relationship("User")
    time_slots = relationship(
        "ClassTimeSlot",
        back_populates="school_class",
        cascade="all, delete-orphan",
        order_by="ClassTimeSlot.position",
    )

    __table_args__ = (
        CheckConstraint("max_students >= 1", name="ck_classes_max_students"),
        CheckConstraint("seats_taken >= 0", name="ck_classes_seats_taken"),
    )

    def __repr__(self):
        return f"<SchoolClass {self.name}>"


class ClassTimeSlot(db.Model):
    __tablename__ = "class_time_slots"

    id: Mapped[int] = mapped_column(primary_key=True)
    class_id: Mapped[int] = mapped_column(ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    weekday: Mapped[int] = mapped_column(Integer, nullable=False)  # 0=Mon .. 6=Sun
    start_minute: Mapped[int] = mapped_column(Integer, nullable=False)
    end_minute: Mapped[int] = mapped_column(Integer, nullable=False)

    school_class = relationship("SchoolClass", back_populates="time_slots")

    __table_args__ = (
        CheckConstraint("start_minute < end_minute", name="ck_slot_range"),
        Index("ix_class_time_slots_class_weekday", "class_id", "weekday"),
    )

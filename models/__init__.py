from datetime import datetime

from sqlalchemy import DateTime, Integer, String, JSON
from sqlalchemy.orm import Mapped, mapped_column

from extensions import db
from .user import Role, User, PendingUser
from .school_class import SchoolClass, ClassTimeSlot
from .enrollment import Enrollment, EnrollmentStatus
from .records import Attendance, AttendanceStatus, Grade
from .content import Announcement, Material
from .subject import Subject


class AuditLog(db.Model):
    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    action: Mapped[str] = mapped_column(String(32), nullable=False)
    entity: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    payload: Mapped[dict | None] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


__all__ = [
    "db",
    "Role", "User", "PendingUser",
    "SchoolClass", "ClassTimeSlot",
    "Enrollment", "EnrollmentStatus",
    "Attendance", "AttendanceStatus", "Grade",
    "Announcement", "Material",
    "Subject",
    "AuditLog",
]

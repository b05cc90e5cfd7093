"""Attendance model."""

from datetime import date
from enum import Enum
from uuid import UUID

from sqlalchemy import Date, ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from school_ledger.core.database import BaseModel


class AttendanceStatus(str, Enum):
    """Outcome of one class for one student."""

    PRESENT = "PRESENT"
    ABSENT = "ABSENT"
    EXCUSED = "EXCUSED"
    LATE = "LATE"


ATTENDED_STATUSES = (AttendanceStatus.PRESENT, AttendanceStatus.LATE)


class Attendance(BaseModel):
    """One attendance mark per student per class date."""

    __tablename__ = "attendance"
    __table_args__ = (UniqueConstraint("student_id", "class_date", name="uq_attendance_student_date"),)

    student_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    class_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[AttendanceStatus] = mapped_column(String(10), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)

    student: Mapped["Student"] = relationship("Student", back_populates="attendance")

    def __repr__(self) -> str:
        return f"<Attendance(student={self.student_id}, date={self.class_date}, status={self.status})>"

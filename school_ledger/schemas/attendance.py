"""Attendance schemas."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from school_ledger.models.attendance import AttendanceStatus
from school_ledger.schemas.events import DomainEvent
from school_ledger.schemas.student import StudentResponse


class AttendanceMark(BaseModel):
    """Mark (or re-mark) one student for one class date."""

    student_id: UUID
    class_date: date
    status: AttendanceStatus
    notes: str | None = Field(None, max_length=1000)


class AttendanceBulkMark(BaseModel):
    """Mark a whole class in one go."""

    records: list[AttendanceMark] = Field(..., min_length=1, max_length=500)


class AttendanceResponse(BaseModel):
    """Schema for attendance response."""

    id: UUID
    student_id: UUID
    class_date: date
    status: AttendanceStatus
    notes: str | None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AttendanceMarkResponse(BaseModel):
    """Marked records and the students whose risk was recomputed."""

    records: list[AttendanceResponse]
    students: list[StudentResponse]
    events: list[DomainEvent]

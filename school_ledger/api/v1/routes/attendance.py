"""Attendance routes."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, status

from school_ledger.core.deps import DbSession
from school_ledger.schemas.attendance import (
    AttendanceBulkMark,
    AttendanceMark,
    AttendanceMarkResponse,
    AttendanceResponse,
)
from school_ledger.schemas.student import StudentResponse
from school_ledger.services import ledger as ledger_service
from school_ledger.services import risk as risk_service
from school_ledger.services.results import AttendanceResult

router = APIRouter(prefix="/attendance", tags=["Attendance"])


def _build_mark_response(result: AttendanceResult) -> AttendanceMarkResponse:
    return AttendanceMarkResponse(
        records=[AttendanceResponse.model_validate(r) for r in result.records],
        students=[StudentResponse.model_validate(s) for s in result.students],
        events=result.events,
    )


@router.post("", response_model=AttendanceMarkResponse)
async def mark_attendance(data: AttendanceMark, db: DbSession) -> AttendanceMarkResponse:
    """Mark one student for one class date. Re-marking a date replaces it."""
    result = await risk_service.mark_attendance(db, data)
    return _build_mark_response(result)


@router.post("/bulk", response_model=AttendanceMarkResponse)
async def mark_attendance_bulk(data: AttendanceBulkMark, db: DbSession) -> AttendanceMarkResponse:
    """Mark a whole class. All records are saved or none are."""
    result = await risk_service.mark_attendance_bulk(db, data.records)
    return _build_mark_response(result)


@router.get("/students/{student_id}", response_model=list[AttendanceResponse])
async def list_student_attendance(
    student_id: UUID,
    db: DbSession,
    start_date: date | None = Query(None, description="Filter by class date from"),
    end_date: date | None = Query(None, description="Filter by class date to"),
) -> list[AttendanceResponse]:
    """Attendance history of a student, newest first."""
    await ledger_service.require_student(db, student_id)
    records = await risk_service.get_student_attendance(db, student_id, start_date, end_date)
    return [AttendanceResponse.model_validate(r) for r in records]


@router.delete("/{attendance_id}", response_model=AttendanceMarkResponse, status_code=status.HTTP_200_OK)
async def delete_attendance(attendance_id: UUID, db: DbSession) -> AttendanceMarkResponse:
    """Remove an attendance record and recompute the student's risk."""
    result = await risk_service.delete_attendance(db, attendance_id)
    return _build_mark_response(result)

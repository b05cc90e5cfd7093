"""Attendance tracking and churn-risk classification."""

import logging
from collections.abc import Iterable, Sequence
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from school_ledger.core.database import transaction
from school_ledger.core.exceptions import ErrorKind, NotFoundError
from school_ledger.models.attendance import ATTENDED_STATUSES, Attendance, AttendanceStatus
from school_ledger.models.student import ChurnRisk, PaymentStatus, Student
from school_ledger.schemas.attendance import AttendanceMark
from school_ledger.schemas.events import DomainEvent
from school_ledger.services.ledger import require_student
from school_ledger.services.results import AttendanceResult, AttendanceStats

logger = logging.getLogger(__name__)

RATE_PLACES = Decimal("0.0001")


def classify_churn_risk(
    attendance_rate: Decimal,
    consecutive_absences: int,
    payment_status: PaymentStatus | str,
) -> ChurnRisk:
    """First matching rule wins."""
    if attendance_rate < 50 or consecutive_absences >= 3:
        return ChurnRisk.HIGH
    if attendance_rate < 75 and payment_status == PaymentStatus.OVERDUE:
        return ChurnRisk.MEDIUM
    if attendance_rate < 75 or consecutive_absences >= 2:
        return ChurnRisk.MEDIUM
    return ChurnRisk.LOW


def compute_attendance_stats(
    records: Iterable[Attendance],
    payment_status: PaymentStatus | str,
) -> AttendanceStats:
    """
    Derive attendance figures and churn risk from a student's full history.

    Consecutive absences are the ABSENT marks at the head of the history,
    newest first. EXCUSED and LATE break a run the same way PRESENT does.
    """
    history = sorted(records, key=lambda r: r.class_date, reverse=True)

    total_classes = len(history)
    classes_attended = sum(1 for r in history if r.status in ATTENDED_STATUSES)
    if total_classes:
        attendance_rate = (Decimal(classes_attended) / Decimal(total_classes) * 100).quantize(RATE_PLACES)
    else:
        attendance_rate = Decimal(0)

    consecutive_absences = 0
    for record in history:
        if record.status != AttendanceStatus.ABSENT:
            break
        consecutive_absences += 1

    last_class_date = history[0].class_date if history else None
    last_absence_date = next(
        (r.class_date for r in history if r.status == AttendanceStatus.ABSENT),
        None,
    )

    return AttendanceStats(
        total_classes=total_classes,
        classes_attended=classes_attended,
        attendance_rate=attendance_rate,
        consecutive_absences=consecutive_absences,
        last_class_date=last_class_date,
        last_absence_date=last_absence_date,
        churn_risk=classify_churn_risk(attendance_rate, consecutive_absences, payment_status),
    )


async def get_student_attendance(
    db: AsyncSession,
    student_id: UUID,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[Attendance]:
    """Attendance history of a student, newest first."""
    query = select(Attendance).where(Attendance.student_id == student_id)

    if start_date:
        query = query.where(Attendance.class_date >= start_date)
    if end_date:
        query = query.where(Attendance.class_date <= end_date)

    query = query.order_by(Attendance.class_date.desc())
    result = await db.execute(query)
    return list(result.scalars().all())


async def recompute_student_attendance(db: AsyncSession, student_id: UUID) -> AttendanceStats:
    """
    Re-derive attendance fields and churn risk from the full history.

    Reads the student's current payment_status, so run it after any ledger
    recompute in the same transaction. Only flushes.
    """
    student = await require_student(db, student_id)
    records = await get_student_attendance(db, student_id)
    stats = compute_attendance_stats(records, student.payment_status)

    student.total_classes = stats.total_classes
    student.classes_attended = stats.classes_attended
    student.attendance_rate = stats.attendance_rate
    student.consecutive_absences = stats.consecutive_absences
    student.last_class_date = stats.last_class_date
    student.last_absence_date = stats.last_absence_date
    student.churn_risk = stats.churn_risk

    await db.flush()
    return stats


async def _recompute(db: AsyncSession, student_id: UUID, events: list[DomainEvent]) -> Student:
    student = await require_student(db, student_id)
    previous_risk = student.churn_risk

    stats = await recompute_student_attendance(db, student_id)

    if stats.churn_risk == ChurnRisk.HIGH and previous_risk != ChurnRisk.HIGH:
        logger.warning(
            f"Churn risk of student {student_id} raised to HIGH: rate {stats.attendance_rate}%, "
            f"{stats.consecutive_absences} consecutive absences"
        )
        events.append(
            DomainEvent(
                name="churn_risk_raised",
                student_id=student_id,
                payload={
                    "previous": previous_risk,
                    "current": stats.churn_risk,
                    "attendance_rate": stats.attendance_rate,
                    "consecutive_absences": stats.consecutive_absences,
                },
            )
        )
    return student


async def _upsert_attendance(db: AsyncSession, data: AttendanceMark) -> Attendance:
    result = await db.execute(
        select(Attendance).where(
            Attendance.student_id == data.student_id,
            Attendance.class_date == data.class_date,
        )
    )
    record = result.scalar_one_or_none()

    if record is None:
        record = Attendance(
            student_id=data.student_id,
            class_date=data.class_date,
            status=data.status,
            notes=data.notes,
        )
        db.add(record)
    else:
        record.status = data.status
        record.notes = data.notes

    await db.flush()
    return record


async def mark_attendance(db: AsyncSession, data: AttendanceMark) -> AttendanceResult:
    """Mark one student for one class date and refresh their risk."""
    events: list[DomainEvent] = []

    async with transaction(db):
        await require_student(db, data.student_id)
        record = await _upsert_attendance(db, data)
        student = await _recompute(db, data.student_id, events)

    logger.info(f"Marked {data.status.value} for student {data.student_id} on {data.class_date}")
    return AttendanceResult(records=[record], students=[student], events=events)


async def mark_attendance_bulk(db: AsyncSession, records: Sequence[AttendanceMark]) -> AttendanceResult:
    """
    Mark many records at once.

    All upserts are written first, then each distinct student is recomputed
    once. A single bad record rolls back the whole batch.
    """
    events: list[DomainEvent] = []
    saved: list[Attendance] = []
    student_ids: list[UUID] = []

    async with transaction(db):
        for data in records:
            if data.student_id not in student_ids:
                await require_student(db, data.student_id)
                student_ids.append(data.student_id)
            saved.append(await _upsert_attendance(db, data))

        students = [await _recompute(db, student_id, events) for student_id in student_ids]

    logger.info(f"Marked {len(saved)} attendance records for {len(student_ids)} students")
    return AttendanceResult(records=saved, students=students, events=events)


async def delete_attendance(db: AsyncSession, attendance_id: UUID) -> AttendanceResult:
    """Remove an attendance record and refresh the student's risk."""
    events: list[DomainEvent] = []

    async with transaction(db):
        record = await db.get(Attendance, attendance_id)
        if record is None:
            raise NotFoundError(ErrorKind.ATTENDANCE_NOT_FOUND, f"Attendance record {attendance_id} not found")

        student_id = record.student_id
        await db.delete(record)
        await db.flush()
        student = await _recompute(db, student_id, events)

    logger.info(f"Deleted attendance record {attendance_id} of student {student_id}")
    return AttendanceResult(records=[], students=[student], events=events)

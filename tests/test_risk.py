"""Tests for attendance tracking and churn-risk classification."""

from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from school_ledger.core.exceptions import ErrorKind, NotFoundError
from school_ledger.models.attendance import Attendance, AttendanceStatus
from school_ledger.models.student import ChurnRisk, PaymentStatus, Student
from school_ledger.schemas.attendance import AttendanceMark
from school_ledger.services import risk as risk_service


def history(*statuses: AttendanceStatus, end: date = date(2026, 3, 20)) -> list[Attendance]:
    """Attendance records on consecutive days, oldest first, ending on `end`."""
    start = end - timedelta(days=len(statuses) - 1)
    return [
        Attendance(student_id=uuid4(), class_date=start + timedelta(days=i), status=status)
        for i, status in enumerate(statuses)
    ]


P = AttendanceStatus.PRESENT
A = AttendanceStatus.ABSENT
L = AttendanceStatus.LATE
E = AttendanceStatus.EXCUSED


class TestClassifyChurnRisk:
    """Tests for the churn-risk rule order."""

    def test_low_attendance_is_high(self):
        assert risk_service.classify_churn_risk(Decimal("49.9"), 0, PaymentStatus.PAID) == ChurnRisk.HIGH

    def test_three_absences_beat_good_rate(self):
        assert risk_service.classify_churn_risk(Decimal("80"), 3, PaymentStatus.PAID) == ChurnRisk.HIGH

    def test_overdue_with_mediocre_rate_is_medium(self):
        assert risk_service.classify_churn_risk(Decimal("70"), 0, PaymentStatus.OVERDUE) == ChurnRisk.MEDIUM

    def test_two_absences_is_medium(self):
        assert risk_service.classify_churn_risk(Decimal("90"), 2, PaymentStatus.PAID) == ChurnRisk.MEDIUM

    def test_good_student_is_low(self):
        assert risk_service.classify_churn_risk(Decimal("75"), 1, PaymentStatus.PENDING) == ChurnRisk.LOW


class TestComputeAttendanceStats:
    """Tests for deriving stats from a history."""

    def test_no_records(self):
        stats = risk_service.compute_attendance_stats([], PaymentStatus.PENDING)

        assert stats.total_classes == 0
        assert stats.attendance_rate == Decimal("0")
        assert stats.consecutive_absences == 0
        assert stats.last_class_date is None
        assert stats.churn_risk == ChurnRisk.HIGH

    def test_four_trailing_absences_is_high_risk(self):
        """Absent today and the three classes before, one earlier class attended."""
        records = history(P, A, A, A, A)

        stats = risk_service.compute_attendance_stats(records, PaymentStatus.PAID)

        assert stats.total_classes == 5
        assert stats.classes_attended == 1
        assert stats.attendance_rate == Decimal("20")
        assert stats.consecutive_absences == 4
        assert stats.last_class_date == date(2026, 3, 20)
        assert stats.last_absence_date == date(2026, 3, 20)
        assert stats.churn_risk == ChurnRisk.HIGH

    def test_eighty_percent_with_three_absences_is_high(self):
        records = history(*([P] * 12 + [A] * 3))

        stats = risk_service.compute_attendance_stats(records, PaymentStatus.PAID)

        assert stats.attendance_rate == Decimal("80")
        assert stats.consecutive_absences == 3
        assert stats.churn_risk == ChurnRisk.HIGH

    def test_late_counts_as_attended_and_breaks_streak(self):
        records = history(A, A, L, P)

        stats = risk_service.compute_attendance_stats(records, PaymentStatus.PAID)

        assert stats.classes_attended == 2
        assert stats.attendance_rate == Decimal("50")
        assert stats.consecutive_absences == 0
        assert stats.last_absence_date == date(2026, 3, 18)

    def test_excused_breaks_streak_but_is_not_attended(self):
        records = history(P, P, P, A, E)

        stats = risk_service.compute_attendance_stats(records, PaymentStatus.PAID)

        assert stats.classes_attended == 3
        assert stats.consecutive_absences == 0
        assert stats.churn_risk == ChurnRisk.MEDIUM

    def test_input_order_does_not_matter(self):
        records = history(P, P, A, A)

        stats = risk_service.compute_attendance_stats(list(reversed(records)), PaymentStatus.PAID)

        assert stats.consecutive_absences == 2


class TestMarkAttendance:
    """Tests for marking attendance through the service."""

    async def test_mark_updates_student(self, db: AsyncSession, student: Student):
        today = date.today()

        result = await risk_service.mark_attendance(
            db, AttendanceMark(student_id=student.id, class_date=today, status=AttendanceStatus.PRESENT)
        )

        assert result.students[0].total_classes == 1
        assert result.students[0].attendance_rate == Decimal("100")
        assert result.students[0].churn_risk == ChurnRisk.LOW

    async def test_remark_same_date_upserts(self, db: AsyncSession, student: Student):
        today = date.today()
        await risk_service.mark_attendance(
            db, AttendanceMark(student_id=student.id, class_date=today, status=AttendanceStatus.ABSENT)
        )

        result = await risk_service.mark_attendance(
            db,
            AttendanceMark(
                student_id=student.id, class_date=today, status=AttendanceStatus.PRESENT, notes="Arrived late"
            ),
        )

        records = await risk_service.get_student_attendance(db, student.id)
        assert len(records) == 1
        assert records[0].status == AttendanceStatus.PRESENT
        assert result.students[0].consecutive_absences == 0

    async def test_bulk_marks_raise_risk_once(self, db: AsyncSession, student: Student):
        today = date.today()
        marks = [
            AttendanceMark(student_id=student.id, class_date=today - timedelta(days=4), status=P),
            *[
                AttendanceMark(student_id=student.id, class_date=today - timedelta(days=d), status=A)
                for d in (3, 2, 1, 0)
            ],
        ]

        result = await risk_service.mark_attendance_bulk(db, marks)

        assert len(result.records) == 5
        assert len(result.students) == 1
        updated = result.students[0]
        assert updated.consecutive_absences == 4
        assert updated.attendance_rate == Decimal("20")
        assert updated.churn_risk == ChurnRisk.HIGH
        assert updated.last_absence_date == today
        assert [e.name for e in result.events] == ["churn_risk_raised"]

    async def test_bulk_rolls_back_on_unknown_student(self, db: AsyncSession, student: Student):
        student_id = student.id
        marks = [
            AttendanceMark(student_id=student.id, class_date=date.today(), status=P),
            AttendanceMark(student_id=uuid4(), class_date=date.today(), status=P),
        ]

        with pytest.raises(NotFoundError) as exc_info:
            await risk_service.mark_attendance_bulk(db, marks)
        assert exc_info.value.kind == ErrorKind.STUDENT_NOT_FOUND

        assert await risk_service.get_student_attendance(db, student_id) == []

    async def test_delete_attendance_recomputes(self, db: AsyncSession, student: Student):
        result = await risk_service.mark_attendance(
            db, AttendanceMark(student_id=student.id, class_date=date.today(), status=A)
        )
        assert result.students[0].consecutive_absences == 1

        result = await risk_service.delete_attendance(db, result.records[0].id)

        assert result.students[0].total_classes == 0
        assert result.students[0].consecutive_absences == 0

    async def test_delete_unknown_attendance(self, db: AsyncSession, student: Student):
        with pytest.raises(NotFoundError) as exc_info:
            await risk_service.delete_attendance(db, uuid4())
        assert exc_info.value.kind == ErrorKind.ATTENDANCE_NOT_FOUND

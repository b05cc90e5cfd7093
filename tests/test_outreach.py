"""Tests for outreach candidates, scheduling and the call lifecycle."""

from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from school_ledger.core.exceptions import (
    ErrorKind,
    NotFoundError,
    PreconditionError,
    ValidationError,
)
from school_ledger.models.outreach import (
    CallPriority,
    CallStatus,
    CallType,
    InteractionType,
    OutreachCall,
    Sentiment,
)
from school_ledger.models.student import ChurnRisk, CompletionStatus, PaymentStatus, Student
from school_ledger.schemas.outreach import CallComplete, CallSnooze, CallUpdate, InteractionCreate
from school_ledger.services import outreach as outreach_service


@pytest.fixture
def make_risky_student(db: AsyncSession, make_student):
    """Factory for a student with preset risk signals."""

    async def _make(
        name: str,
        *,
        churn_risk: ChurnRisk = ChurnRisk.LOW,
        consecutive_absences: int = 0,
        attendance_rate: str = "100",
        payment_status: PaymentStatus | None = None,
        fully_paid: bool = True,
    ) -> Student:
        student = await make_student(name, initial_payment="1000.00" if fully_paid else "0")
        student.churn_risk = churn_risk
        student.consecutive_absences = consecutive_absences
        student.attendance_rate = Decimal(attendance_rate)
        if payment_status is not None:
            student.payment_status = payment_status
        await db.commit()
        return student

    return _make


@pytest.fixture
async def call(db: AsyncSession, student: Student) -> OutreachCall:
    """A pending check-in call for today."""
    call = OutreachCall(
        student_id=student.id,
        scheduled_date=date.today(),
        priority=CallPriority.MEDIUM,
        status=CallStatus.PENDING,
        call_type=CallType.CHECK_IN,
        purpose="Regular check-in",
    )
    db.add(call)
    await db.commit()
    return call


def completion(sentiment: Sentiment | None = Sentiment.NEUTRAL, next_in_days: int | None = 7) -> CallComplete:
    return CallComplete(
        duration=15,
        call_notes="Talked about the upcoming exam and homework load.",
        sentiment=sentiment,
        next_call_date=date.today() + timedelta(days=next_in_days) if next_in_days else None,
    )


class TestPriorityRules:
    """Tests for priority and call type derivation."""

    def test_priority(self):
        assert outreach_service.determine_priority(
            Student(churn_risk=ChurnRisk.HIGH, consecutive_absences=0, attendance_rate=Decimal("90"),
                    payment_status=PaymentStatus.PAID)
        ) == CallPriority.HIGH
        assert outreach_service.determine_priority(
            Student(churn_risk=ChurnRisk.LOW, consecutive_absences=0, attendance_rate=Decimal("90"),
                    payment_status=PaymentStatus.OVERDUE)
        ) == CallPriority.MEDIUM
        assert outreach_service.determine_priority(
            Student(churn_risk=ChurnRisk.MEDIUM, consecutive_absences=0, attendance_rate=Decimal("60"),
                    payment_status=PaymentStatus.PARTIAL)
        ) == CallPriority.LOW

    def test_call_type_precedence(self):
        """Urgent beats payment, payment beats attendance."""
        assert outreach_service.determine_call_type(
            Student(churn_risk=ChurnRisk.LOW, consecutive_absences=3, attendance_rate=Decimal("90"),
                    payment_status=PaymentStatus.OVERDUE)
        ) == CallType.URGENT
        assert outreach_service.determine_call_type(
            Student(churn_risk=ChurnRisk.MEDIUM, consecutive_absences=2, attendance_rate=Decimal("90"),
                    payment_status=PaymentStatus.OVERDUE)
        ) == CallType.PAYMENT
        assert outreach_service.determine_call_type(
            Student(churn_risk=ChurnRisk.MEDIUM, consecutive_absences=2, attendance_rate=Decimal("90"),
                    payment_status=PaymentStatus.PAID)
        ) == CallType.ATTENDANCE
        assert outreach_service.determine_call_type(
            Student(churn_risk=ChurnRisk.LOW, consecutive_absences=0, attendance_rate=Decimal("90"),
                    payment_status=PaymentStatus.PENDING)
        ) == CallType.CHECK_IN

    def test_follow_up_rules(self):
        assert outreach_service.follow_up_priority(Sentiment.VERY_NEGATIVE) == CallPriority.HIGH
        assert outreach_service.follow_up_priority(Sentiment.NEUTRAL) == CallPriority.MEDIUM
        assert outreach_service.follow_up_priority(Sentiment.POSITIVE) == CallPriority.LOW
        assert outreach_service.follow_up_call_type(2) == CallType.ONBOARDING
        assert outreach_service.follow_up_call_type(5) == CallType.MILESTONE
        assert outreach_service.follow_up_call_type(7) == CallType.CHECK_IN


class TestCallCandidates:
    """Tests for building the call list."""

    async def test_ordering_by_risk_absences_and_rate(self, db: AsyncSession, make_risky_student):
        await make_risky_student("Medium Risk", churn_risk=ChurnRisk.MEDIUM, attendance_rate="60")
        await make_risky_student("High Two", churn_risk=ChurnRisk.HIGH, consecutive_absences=2, attendance_rate="40")
        await make_risky_student("High Four", churn_risk=ChurnRisk.HIGH, consecutive_absences=4, attendance_rate="70")
        await make_risky_student("High Two Lower", churn_risk=ChurnRisk.HIGH, consecutive_absences=2,
                                 attendance_rate="30")

        candidates = await outreach_service.get_call_candidates(db)

        names = [c["student_name"] for c in candidates["calls"]]
        assert names == ["High Four", "High Two Lower", "High Two", "Medium Risk"]
        assert candidates["by_priority"]["HIGH"] == 3
        assert candidates["calls"][0]["call_type"] == CallType.URGENT

    async def test_inactive_students_excluded(self, db: AsyncSession, make_risky_student):
        dropped = await make_risky_student("Dropped", churn_risk=ChurnRisk.HIGH)
        dropped.completion_status = CompletionStatus.DROPPED
        await db.commit()

        candidates = await outreach_service.get_call_candidates(db)

        assert candidates["total"] == 0

    async def test_recent_interaction_clears_no_contact_reason(self, db: AsyncSession, make_risky_student):
        student = await make_risky_student("Fine Student")

        candidates = await outreach_service.get_call_candidates(db)
        assert candidates["total"] == 1
        assert candidates["calls"][0]["reasons"] == ["No contact logged yet"]

        await outreach_service.log_interaction(
            db, student.id, InteractionCreate(interaction_type=InteractionType.WHATSAPP, notes="Sent homework")
        )

        candidates = await outreach_service.get_call_candidates(db)
        assert candidates["total"] == 0

    async def test_reasons_and_talking_points(self, db: AsyncSession, make_risky_student):
        await make_risky_student(
            "Struggling",
            churn_risk=ChurnRisk.HIGH,
            consecutive_absences=3,
            attendance_rate="40",
            fully_paid=False,
        )

        candidates = await outreach_service.get_call_candidates(db)
        call = candidates["calls"][0]

        assert "High churn risk" in call["reasons"]
        assert "3 consecutive absences" in call["reasons"]
        assert "Low attendance (40%)" in call["reasons"]
        assert "Offer makeup classes if needed" in call["talking_points"]
        assert "Gentle reminder about pending payment" in call["talking_points"]
        assert call["talking_points"][-1] == "Share encouragement and support"


class TestScheduling:
    """Tests for booking calls."""

    async def test_schedule_skips_open_calls(self, db: AsyncSession, make_risky_student):
        first = await make_risky_student("First", churn_risk=ChurnRisk.HIGH)
        await make_risky_student("Second", churn_risk=ChurnRisk.MEDIUM)
        tomorrow = date.today() + timedelta(days=1)

        result = await outreach_service.schedule_calls(db, scheduled_date=tomorrow, created_by="ops")

        assert len(result.calls) == 2
        assert result.skipped == 0
        assert result.calls[0].student_id == first.id
        assert result.calls[0].priority == CallPriority.HIGH
        assert {e.name for e in result.events} == {"call_scheduled"}

        again = await outreach_service.schedule_calls(db, scheduled_date=tomorrow)

        assert again.calls == []
        assert again.skipped == 2

        scheduled = await outreach_service.get_scheduled_calls(db, tomorrow)
        assert [c.student_id for c in scheduled][0] == first.id

    async def test_schedule_respects_limit(self, db: AsyncSession, make_risky_student):
        for i in range(3):
            await make_risky_student(f"Student {i}", churn_risk=ChurnRisk.HIGH)

        result = await outreach_service.schedule_calls(db, limit=2)

        assert len(result.calls) == 2

    async def test_zero_limit_books_nothing(self, db: AsyncSession, make_risky_student):
        await make_risky_student("Only", churn_risk=ChurnRisk.HIGH)

        result = await outreach_service.schedule_calls(db, limit=0)

        assert result.calls == []
        assert await outreach_service.get_scheduled_calls(db) == []


class TestCompleteCall:
    """Tests for completing calls and the follow-up loop."""

    async def test_negative_call_books_high_follow_up(
        self, db: AsyncSession, call: OutreachCall, student: Student
    ):
        result = await outreach_service.complete_call(
            db, call.id, completion(Sentiment.VERY_NEGATIVE), actor="counsellor"
        )

        assert result.call.status == CallStatus.COMPLETED
        assert result.call.completed_by == "counsellor"
        assert result.student.relationship_depth == 1
        assert result.student.last_outreach_call is not None
        assert result.next_call is not None
        assert result.next_call.priority == CallPriority.HIGH
        assert result.next_call.call_type == CallType.ONBOARDING
        assert result.next_call.scheduled_date == date.today() + timedelta(days=7)
        assert result.next_call.purpose == "Follow-up after check_in call"
        assert [e.name for e in result.events] == ["call_follow_up_due"]
        assert result.events[0].due_date == date.today() + timedelta(days=7)

    async def test_no_follow_up_without_sentiment(self, db: AsyncSession, call: OutreachCall):
        result = await outreach_service.complete_call(db, call.id, completion(sentiment=None))

        assert result.next_call is None
        assert result.events == []

    async def test_no_follow_up_when_not_requested(self, db: AsyncSession, call: OutreachCall):
        data = completion()
        data.schedule_next = False

        result = await outreach_service.complete_call(db, call.id, data)

        assert result.next_call is None

    async def test_completing_twice_is_refused(
        self, db: AsyncSession, call: OutreachCall, student: Student
    ):
        call_id = call.id
        student_id = student.id
        await outreach_service.complete_call(db, call_id, completion(), actor="first")

        with pytest.raises(PreconditionError) as exc_info:
            await outreach_service.complete_call(db, call_id, completion(Sentiment.VERY_POSITIVE), actor="second")
        assert exc_info.value.kind == ErrorKind.ALREADY_COMPLETED

        refreshed = await outreach_service.get_call_by_id(db, call_id)
        assert refreshed.completed_by == "first"
        assert refreshed.sentiment == Sentiment.NEUTRAL
        result = await db.execute(select(Student).where(Student.id == student_id))
        assert result.scalar_one().relationship_depth == 1
        calls = await outreach_service.get_student_calls(db, student_id)
        assert len(calls) == 2

    async def test_unknown_call(self, db: AsyncSession, student: Student):
        with pytest.raises(NotFoundError) as exc_info:
            await outreach_service.complete_call(db, uuid4(), completion())
        assert exc_info.value.kind == ErrorKind.CALL_NOT_FOUND


class TestSnoozeAndResume:
    """Tests for snoozing, resuming and editing calls."""

    async def test_snooze_moves_date_and_counts_attempt(self, db: AsyncSession, call: OutreachCall):
        until = date.today() + timedelta(days=3)

        snoozed = await outreach_service.snooze_call(
            db, call.id, CallSnooze(snooze_until=until, snooze_reason="Phone off", not_reachable=True)
        )

        assert snoozed.status == CallStatus.SNOOZED
        assert snoozed.scheduled_date == until
        assert snoozed.attempt_count == 1

        resumed = await outreach_service.resume_call(db, call.id)
        assert resumed.status == CallStatus.PENDING

    async def test_snooze_in_past_rejected(self, db: AsyncSession, call: OutreachCall):
        with pytest.raises(ValidationError) as exc_info:
            await outreach_service.snooze_call(
                db,
                call.id,
                CallSnooze(snooze_until=date.today() - timedelta(days=1), snooze_reason="Too late"),
            )
        assert exc_info.value.kind == ErrorKind.INVALID_SNOOZE_DATE

    async def test_resume_pending_call_rejected(self, db: AsyncSession, call: OutreachCall):
        with pytest.raises(PreconditionError) as exc_info:
            await outreach_service.resume_call(db, call.id)
        assert exc_info.value.kind == ErrorKind.INVALID_TRANSITION

    async def test_completed_call_cannot_be_snoozed_or_edited(self, db: AsyncSession, call: OutreachCall):
        call_id = call.id
        await outreach_service.complete_call(db, call_id, completion(sentiment=None))

        with pytest.raises(PreconditionError):
            await outreach_service.snooze_call(
                db, call_id, CallSnooze(snooze_until=date.today(), snooze_reason="Later please")
            )
        with pytest.raises(PreconditionError):
            await outreach_service.update_call(db, call_id, CallUpdate(priority=CallPriority.HIGH))

    async def test_update_call(self, db: AsyncSession, call: OutreachCall):
        updated = await outreach_service.update_call(
            db, call.id, CallUpdate(priority=CallPriority.HIGH, pre_call_notes="Ask about exam date")
        )

        assert updated.priority == CallPriority.HIGH
        assert updated.pre_call_notes == "Ask about exam date"
        assert updated.purpose == "Regular check-in"


class TestOutreachStats:
    """Tests for the outreach report."""

    async def test_stats_after_completed_call(self, db: AsyncSession, call: OutreachCall):
        await outreach_service.complete_call(db, call.id, completion(Sentiment.POSITIVE))

        stats = await outreach_service.get_outreach_stats(db)

        assert stats["calls_this_week"] == 1
        assert stats["calls_this_month"] == 1
        assert stats["total_calls"] == 1
        assert stats["sentiment_distribution"] == {"POSITIVE": 1}
        assert stats["calls_by_type"] == {"CHECK_IN": 1}
        assert stats["average_duration"] == Decimal("15.0")
        assert stats["upcoming_calls"] == 1

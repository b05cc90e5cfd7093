"""Outreach service - call candidates, scheduling and the follow-up loop."""

import logging
from collections import Counter
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from school_ledger.core.config import settings
from school_ledger.core.database import transaction, utcnow
from school_ledger.core.exceptions import (
    ErrorKind,
    NotFoundError,
    PreconditionError,
    ValidationError,
)
from school_ledger.core.money import TENTH
from school_ledger.models.outreach import (
    CALL_PRIORITY_RANK,
    OPEN_CALL_STATUSES,
    CallPriority,
    CallStatus,
    CallType,
    OutreachCall,
    Sentiment,
    StudentConnection,
    StudentInteraction,
)
from school_ledger.models.student import (
    CHURN_RISK_RANK,
    ChurnRisk,
    CompletionStatus,
    PaymentStatus,
    Student,
)
from school_ledger.schemas.events import AuditRecord, DomainEvent
from school_ledger.schemas.outreach import CallComplete, CallSnooze, CallUpdate, InteractionCreate
from school_ledger.services.ledger import require_student
from school_ledger.services.results import CallCompletionResult, ScheduleResult

logger = logging.getLogger(__name__)

NEGATIVE_SENTIMENTS = (Sentiment.NEGATIVE, Sentiment.VERY_NEGATIVE)
POSITIVE_SENTIMENTS = (Sentiment.POSITIVE, Sentiment.VERY_POSITIVE)


def determine_priority(student: Student) -> CallPriority:
    """How urgently a candidate should be called."""
    if student.churn_risk == ChurnRisk.HIGH or student.consecutive_absences >= 3:
        return CallPriority.HIGH
    if (
        student.consecutive_absences >= 2
        or student.payment_status == PaymentStatus.OVERDUE
        or student.attendance_rate < 50
    ):
        return CallPriority.MEDIUM
    return CallPriority.LOW


def determine_call_type(student: Student) -> CallType:
    """What the call to a candidate is about."""
    if student.churn_risk == ChurnRisk.HIGH or student.consecutive_absences >= 3:
        return CallType.URGENT
    if student.payment_status == PaymentStatus.OVERDUE:
        return CallType.PAYMENT
    if student.consecutive_absences >= 2:
        return CallType.ATTENDANCE
    return CallType.CHECK_IN


def follow_up_priority(sentiment: Sentiment | str) -> CallPriority:
    if sentiment in NEGATIVE_SENTIMENTS:
        return CallPriority.HIGH
    if sentiment in POSITIVE_SENTIMENTS:
        return CallPriority.LOW
    return CallPriority.MEDIUM


def follow_up_call_type(relationship_depth: int) -> CallType:
    if relationship_depth <= 2:
        return CallType.ONBOARDING
    if relationship_depth % 5 == 0:
        return CallType.MILESTONE
    return CallType.CHECK_IN


def candidate_sort_key(student: Student) -> tuple:
    """Highest churn risk first, then longest absence streak, then lowest attendance."""
    return (
        -CHURN_RISK_RANK[ChurnRisk(student.churn_risk)],
        -student.consecutive_absences,
        student.attendance_rate,
    )


def _format_rate(rate: Decimal) -> str:
    return f"{rate.quantize(TENTH).normalize():f}"


def call_reasons(student: Student, recently_contacted: bool, days_since_contact: int | None) -> list[str]:
    """Plain-language reasons a student is on the call list."""
    reasons = []

    if student.churn_risk == ChurnRisk.HIGH:
        reasons.append("High churn risk")

    if student.consecutive_absences >= 2:
        reasons.append(f"{student.consecutive_absences} consecutive absences")

    if student.payment_status == PaymentStatus.OVERDUE:
        reasons.append("Payment overdue")
    elif student.payment_status == PaymentStatus.PARTIAL:
        reasons.append("Partial payment pending")
    elif student.payment_status == PaymentStatus.PENDING:
        reasons.append("No payment received yet")

    if student.attendance_rate < 50:
        reasons.append(f"Low attendance ({_format_rate(student.attendance_rate)}%)")
    elif student.attendance_rate < 70:
        reasons.append(f"Below-average attendance ({_format_rate(student.attendance_rate)}%)")

    if not recently_contacted:
        if days_since_contact is None:
            reasons.append("No contact logged yet")
        else:
            reasons.append(f"No contact in {days_since_contact} days")

    return reasons


def talking_points(student: Student) -> list[str]:
    """Suggested topics for the call."""
    points = []

    if student.churn_risk == ChurnRisk.HIGH:
        points.append("Check on their learning experience and any challenges")
        points.append("Ask about their goals and progress")

    if student.consecutive_absences >= 2:
        points.append("Understand reason for recent absences")
        points.append("Offer makeup classes if needed")

    if student.attendance_rate < 70:
        points.append("Discuss attendance patterns and challenges")
        points.append("Share the importance of consistent practice")

    if student.payment_status != PaymentStatus.PAID:
        points.append("Gentle reminder about pending payment")
        points.append("Discuss payment plan options if needed")

    points.append("Ask about their recent wins or achievements")
    points.append("Share encouragement and support")
    return points


def build_candidate(student: Student, recently_contacted: bool, last_contact: datetime | None, today: date) -> dict:
    days_since_contact = (today - last_contact.date()).days if last_contact else None
    return {
        "student_id": student.id,
        "student_name": student.name,
        "whatsapp": student.whatsapp,
        "level": student.current_level,
        "priority": determine_priority(student),
        "call_type": determine_call_type(student),
        "reasons": call_reasons(student, recently_contacted, days_since_contact),
        "talking_points": talking_points(student),
        "stats": {
            "attendance_rate": student.attendance_rate,
            "consecutive_absences": student.consecutive_absences,
            "classes_attended": student.classes_attended,
            "total_classes": student.total_classes,
            "payment_status": student.payment_status,
            "balance": student.balance,
            "currency": student.currency,
            "churn_risk": student.churn_risk,
        },
    }


async def _candidate_students(db: AsyncSession, now: datetime) -> tuple[list[Student], set[UUID], dict[UUID, datetime]]:
    contact_cutoff = now - timedelta(days=settings.OUTREACH_NO_CONTACT_DAYS)
    recent_contact = (
        select(StudentInteraction.id)
        .where(
            StudentInteraction.student_id == Student.id,
            StudentInteraction.created_at >= contact_cutoff,
        )
        .exists()
    )

    query = (
        select(Student, recent_contact)
        .where(
            Student.completion_status == CompletionStatus.ACTIVE,
            (Student.churn_risk == ChurnRisk.HIGH)
            | (Student.consecutive_absences >= 2)
            | Student.payment_status.in_(
                [PaymentStatus.PENDING, PaymentStatus.OVERDUE, PaymentStatus.PARTIAL]
            )
            | (Student.attendance_rate < 70)
            | ~recent_contact,
        )
        .order_by(Student.created_at, Student.id)
    )
    result = await db.execute(query)
    rows = result.all()

    students = [row[0] for row in rows]
    recently_contacted = {row[0].id for row in rows if row[1]}

    last_contacts: dict[UUID, datetime] = {}
    if students:
        contact_result = await db.execute(
            select(StudentInteraction.student_id, func.max(StudentInteraction.created_at))
            .where(StudentInteraction.student_id.in_([s.id for s in students]))
            .group_by(StudentInteraction.student_id)
        )
        last_contacts = dict(contact_result.all())

    # Risk ordering is by rank, not by the stored label.
    students.sort(key=candidate_sort_key)
    return students, recently_contacted, last_contacts


async def get_call_candidates(
    db: AsyncSession,
    now: datetime | None = None,
    limit: int | None = None,
) -> dict:
    """
    Students who need a retention call, most urgent first.

    A student qualifies when active and at least one of: HIGH churn risk,
    two or more consecutive absences, money outstanding, attendance under
    70%, or no interaction logged recently.
    """
    now = now or utcnow()
    students, recently_contacted, last_contacts = await _candidate_students(db, now)
    if limit is not None:
        students = students[:limit]

    calls = [
        build_candidate(s, s.id in recently_contacted, last_contacts.get(s.id), now.date())
        for s in students
    ]
    by_priority = Counter(call["priority"].value for call in calls)
    by_type = Counter(call["call_type"].value for call in calls)

    return {
        "calls": calls,
        "total": len(calls),
        "by_priority": {p.value: by_priority.get(p.value, 0) for p in CallPriority},
        "by_type": {t.value: by_type.get(t.value, 0) for t in CallType},
    }


async def schedule_calls(
    db: AsyncSession,
    scheduled_date: date | None = None,
    created_by: str | None = None,
    limit: int | None = None,
    now: datetime | None = None,
) -> ScheduleResult:
    """Book PENDING calls for the top candidates that have no open call yet."""
    now = now or utcnow()
    scheduled_date = scheduled_date or now.date()
    if limit is None:
        limit = settings.DAILY_CALL_LIMIT

    calls: list[OutreachCall] = []
    events: list[DomainEvent] = []
    skipped = 0

    async with transaction(db):
        students, recently_contacted, last_contacts = await _candidate_students(db, now)

        open_result = await db.execute(
            select(OutreachCall.student_id).where(OutreachCall.status.in_(OPEN_CALL_STATUSES)).distinct()
        )
        has_open_call = set(open_result.scalars().all())

        for student in students:
            if len(calls) >= limit:
                break
            if student.id in has_open_call:
                skipped += 1
                continue

            candidate = build_candidate(
                student,
                student.id in recently_contacted,
                last_contacts.get(student.id),
                now.date(),
            )
            call = OutreachCall(
                student_id=student.id,
                scheduled_date=scheduled_date,
                priority=candidate["priority"],
                status=CallStatus.PENDING,
                call_type=candidate["call_type"],
                purpose="; ".join(candidate["reasons"])[:500],
                pre_call_notes="\n".join(candidate["talking_points"]),
                created_by=created_by,
            )
            db.add(call)
            calls.append(call)

        await db.flush()

        for call in calls:
            events.append(
                DomainEvent(
                    name="call_scheduled",
                    student_id=call.student_id,
                    due_date=call.scheduled_date,
                    payload={"call_id": call.id, "priority": call.priority, "call_type": call.call_type},
                )
            )

    logger.info(f"Scheduled {len(calls)} outreach calls for {scheduled_date} ({skipped} already open)")
    return ScheduleResult(calls=calls, skipped=skipped, events=events)


async def get_call_by_id(db: AsyncSession, call_id: UUID) -> OutreachCall | None:
    """Get outreach call by ID."""
    result = await db.execute(select(OutreachCall).where(OutreachCall.id == call_id))
    return result.scalar_one_or_none()


async def _require_call(db: AsyncSession, call_id: UUID) -> OutreachCall:
    call = await get_call_by_id(db, call_id)
    if call is None:
        raise NotFoundError(ErrorKind.CALL_NOT_FOUND, f"Call {call_id} not found")
    return call


def _require_open(call: OutreachCall, action: str) -> None:
    if not call.is_open:
        logger.warning(f"Refused to {action} call {call.id}: already completed")
        raise PreconditionError(ErrorKind.ALREADY_COMPLETED, f"Call {call.id} is already completed")


async def get_scheduled_calls(db: AsyncSession, day: date | None = None) -> list[OutreachCall]:
    """Open calls booked for a day, highest priority first."""
    day = day or date.today()
    result = await db.execute(
        select(OutreachCall)
        .where(
            OutreachCall.scheduled_date == day,
            OutreachCall.status.in_(OPEN_CALL_STATUSES),
        )
        .order_by(OutreachCall.created_at)
    )
    calls = list(result.scalars().all())
    calls.sort(key=lambda c: -CALL_PRIORITY_RANK[CallPriority(c.priority)])
    return calls


async def get_student_calls(db: AsyncSession, student_id: UUID) -> list[OutreachCall]:
    """Call history of a student, newest first."""
    result = await db.execute(
        select(OutreachCall)
        .where(OutreachCall.student_id == student_id)
        .order_by(OutreachCall.scheduled_date.desc(), OutreachCall.created_at.desc())
    )
    return list(result.scalars().all())


async def complete_call(
    db: AsyncSession,
    call_id: UUID,
    data: CallComplete,
    actor: str | None = None,
    now: datetime | None = None,
) -> CallCompletionResult:
    """
    Close a call and book the follow-up.

    Marks the call COMPLETED, deepens the relationship counter on the
    student and, when a next date and sentiment are given, creates the next
    call with a priority driven by how the conversation went.
    """
    now = now or utcnow()

    async with transaction(db):
        call = await _require_call(db, call_id)
        _require_open(call, "complete")
        student = await require_student(db, call.student_id)
        before = {"status": CallStatus(call.status).value, "relationship_depth": student.relationship_depth}

        call.status = CallStatus.COMPLETED
        call.completed_at = now
        call.completed_by = actor
        call.duration = data.duration
        call.call_notes = data.call_notes
        call.sentiment = data.sentiment
        call.next_call_date = data.next_call_date

        student.relationship_depth += 1
        student.last_outreach_call = now

        next_call = None
        if data.schedule_next and data.next_call_date and data.sentiment:
            next_call = OutreachCall(
                student_id=student.id,
                scheduled_date=data.next_call_date,
                priority=follow_up_priority(data.sentiment),
                status=CallStatus.PENDING,
                call_type=follow_up_call_type(student.relationship_depth),
                purpose=f"Follow-up after {CallType(call.call_type).value.lower()} call",
                pre_call_notes=(
                    f"Previous call sentiment: {data.sentiment.value}. "
                    f"Relationship depth: {student.relationship_depth}"
                ),
                created_by=actor,
            )
            db.add(next_call)

        await db.flush()

    logger.info(
        f"Completed call {call.id} with student {student.id} "
        f"(sentiment {data.sentiment.value if data.sentiment else None}, depth {student.relationship_depth})"
    )

    audit = [
        AuditRecord(
            actor=actor,
            action="call.completed",
            entity="OutreachCall",
            entity_id=call.id,
            student_id=student.id,
            before=before,
            after={"status": CallStatus.COMPLETED.value, "relationship_depth": student.relationship_depth},
        )
    ]
    events = []
    if next_call is not None:
        events.append(
            DomainEvent(
                name="call_follow_up_due",
                student_id=student.id,
                due_date=next_call.scheduled_date,
                payload={
                    "call_id": next_call.id,
                    "priority": next_call.priority,
                    "call_type": next_call.call_type,
                },
            )
        )
    return CallCompletionResult(call=call, student=student, next_call=next_call, audit=audit, events=events)


async def snooze_call(
    db: AsyncSession,
    call_id: UUID,
    data: CallSnooze,
    today: date | None = None,
) -> OutreachCall:
    """Push an open call to a later date."""
    today = today or date.today()

    async with transaction(db):
        call = await _require_call(db, call_id)
        _require_open(call, "snooze")

        if data.snooze_until < today:
            raise ValidationError(
                ErrorKind.INVALID_SNOOZE_DATE,
                f"Snooze date {data.snooze_until} is in the past",
            )

        call.status = CallStatus.SNOOZED
        call.snoozed_until = data.snooze_until
        call.snooze_reason = data.snooze_reason
        call.scheduled_date = data.snooze_until
        if data.not_reachable:
            call.attempt_count += 1

        await db.flush()

    logger.info(f"Snoozed call {call.id} until {data.snooze_until} (attempts: {call.attempt_count})")
    return call


async def resume_call(db: AsyncSession, call_id: UUID) -> OutreachCall:
    """Put a snoozed call back in the PENDING queue."""
    async with transaction(db):
        call = await _require_call(db, call_id)
        if call.status != CallStatus.SNOOZED:
            raise PreconditionError(
                ErrorKind.INVALID_TRANSITION,
                f"Only snoozed calls can be resumed, call {call.id} is {CallStatus(call.status).value}",
            )

        call.status = CallStatus.PENDING
        call.snoozed_until = None
        await db.flush()

    logger.info(f"Resumed call {call.id}")
    return call


async def update_call(db: AsyncSession, call_id: UUID, data: CallUpdate) -> OutreachCall:
    """Edit the plan of an open call."""
    async with transaction(db):
        call = await _require_call(db, call_id)
        _require_open(call, "update")

        update_data = data.model_dump(exclude_unset=True)
        for field, value in update_data.items():
            if value is None and field in ("priority", "scheduled_date"):
                continue
            setattr(call, field, value)

        await db.flush()

    return call


async def log_interaction(
    db: AsyncSession,
    student_id: UUID,
    data: InteractionCreate,
    user_name: str | None = None,
) -> StudentInteraction:
    """Record a contact with a student."""
    async with transaction(db):
        await require_student(db, student_id)
        interaction = StudentInteraction(
            student_id=student_id,
            interaction_type=data.interaction_type,
            notes=data.notes,
            user_name=user_name,
        )
        db.add(interaction)
        await db.flush()

    logger.info(f"Logged {data.interaction_type} interaction with student {student_id}")
    return interaction


async def get_student_interactions(db: AsyncSession, student_id: UUID) -> list[StudentInteraction]:
    """Logged contacts with a student, newest first."""
    result = await db.execute(
        select(StudentInteraction)
        .where(StudentInteraction.student_id == student_id)
        .order_by(StudentInteraction.created_at.desc())
    )
    return list(result.scalars().all())


def _start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


async def get_outreach_stats(
    db: AsyncSession,
    start_date: date | None = None,
    end_date: date | None = None,
    now: datetime | None = None,
) -> dict:
    """
    Outreach activity report.

    The range defaults to the current month up to `now`; weeks start on Monday.
    """
    now = now or utcnow()
    today = now.date()
    week_start = _start_of_day(today - timedelta(days=today.weekday()))
    month_start = _start_of_day(today.replace(day=1))
    range_start = _start_of_day(start_date) if start_date else month_start
    range_end = _start_of_day(end_date + timedelta(days=1)) if end_date else now

    completed = OutreachCall.status == CallStatus.COMPLETED
    in_range = (OutreachCall.completed_at >= range_start) & (OutreachCall.completed_at <= range_end)

    calls_this_week = await db.scalar(
        select(func.count()).select_from(OutreachCall).where(completed, OutreachCall.completed_at >= week_start)
    )
    calls_this_month = await db.scalar(
        select(func.count()).select_from(OutreachCall).where(completed, OutreachCall.completed_at >= month_start)
    )
    total_calls = await db.scalar(select(func.count()).select_from(OutreachCall).where(completed, in_range))

    sentiment_result = await db.execute(
        select(OutreachCall.sentiment, func.count())
        .where(completed, in_range, OutreachCall.sentiment.is_not(None))
        .group_by(OutreachCall.sentiment)
    )
    type_result = await db.execute(
        select(OutreachCall.call_type, func.count()).where(completed, in_range).group_by(OutreachCall.call_type)
    )
    priority_result = await db.execute(
        select(OutreachCall.priority, func.count())
        .where(
            OutreachCall.scheduled_date >= range_start.date(),
            OutreachCall.scheduled_date <= (end_date or today),
        )
        .group_by(OutreachCall.priority)
    )
    average_duration = await db.scalar(
        select(func.avg(OutreachCall.duration)).where(completed, in_range, OutreachCall.duration.is_not(None))
    )

    # Each introduction is stored in both directions.
    connection_rows = await db.scalar(
        select(func.count())
        .select_from(StudentConnection)
        .where(StudentConnection.introduced_at >= range_start, StudentConnection.introduced_at <= range_end)
    )
    upcoming_calls = await db.scalar(
        select(func.count())
        .select_from(OutreachCall)
        .where(
            OutreachCall.status.in_(OPEN_CALL_STATUSES),
            OutreachCall.scheduled_date >= today,
            OutreachCall.scheduled_date <= today + timedelta(days=7),
        )
    )

    return {
        "calls_this_week": calls_this_week or 0,
        "calls_this_month": calls_this_month or 0,
        "total_calls": total_calls or 0,
        "sentiment_distribution": {str(k): v for k, v in sentiment_result.all()},
        "calls_by_type": {str(k): v for k, v in type_result.all()},
        "calls_by_priority": {str(k): v for k, v in priority_result.all()},
        "average_duration": (
            Decimal(str(average_duration)).quantize(TENTH) if average_duration is not None else None
        ),
        "connections_made": (connection_rows or 0) // 2,
        "upcoming_calls": upcoming_calls or 0,
    }

"""Ledger service - per-student price, payment, refund and balance state."""

import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from school_ledger.core.config import settings
from school_ledger.core.database import transaction
from school_ledger.core.exceptions import (
    ConsistencyError,
    ErrorKind,
    NotFoundError,
    PreconditionError,
    ValidationError,
)
from school_ledger.core.money import CENT, Money, get_money
from school_ledger.models.payment import (
    Payment,
    PaymentRecordStatus,
    Refund,
)
from school_ledger.models.student import (
    Batch,
    ChurnRisk,
    CompletionStatus,
    PaymentStatus,
    Student,
)
from school_ledger.schemas.events import AuditRecord, DomainEvent
from school_ledger.schemas.payment import PaymentCreate, PaymentUpdate, RefundCreate
from school_ledger.schemas.student import PricingUpdate, StudentCreate, StudentUpdate
from school_ledger.services.results import LedgerResult, LedgerSnapshot

logger = logging.getLogger(__name__)

# Columns that may not be cleared through a partial update
REQUIRED_PAYMENT_FIELDS = {"amount", "method", "status", "payment_date"}


def derive_payment_status(
    total_paid: Decimal,
    final_price: Decimal,
    enrollment_date: date,
    today: date,
    overdue_after_days: int = settings.OVERDUE_AFTER_DAYS,
) -> PaymentStatus:
    """
    Payment status from paid amount, price and enrollment age.

    Nothing paid is PENDING, paid in full (or more) is PAID, anything in
    between is PARTIAL. Once the student has been enrolled for more than
    `overdue_after_days` with money still owed, PENDING and PARTIAL become
    OVERDUE. PAID is never overridden.
    """
    if total_paid == 0:
        status = PaymentStatus.PENDING
    elif total_paid >= final_price:
        status = PaymentStatus.PAID
    else:
        status = PaymentStatus.PARTIAL

    balance = final_price - total_paid
    days_since_enrollment = (today - enrollment_date).days
    if status != PaymentStatus.PAID and balance > 0 and days_since_enrollment > overdue_after_days:
        status = PaymentStatus.OVERDUE

    return status


def _ledger_state(student: Student) -> dict[str, Any]:
    """Ledger fields captured for audit records."""
    return {
        "final_price": student.final_price,
        "total_paid": student.total_paid,
        "total_paid_eur": student.total_paid_eur,
        "balance": student.balance,
        "payment_status": PaymentStatus(student.payment_status).value,
    }


def _ledger_events(student: Student) -> list[DomainEvent]:
    if not student.is_overpaid:
        return []
    return [
        DomainEvent(
            name="overpayment_detected",
            student_id=student.id,
            payload={
                "currency": student.currency,
                "final_price": student.final_price,
                "total_paid": student.total_paid,
                "overpaid_by": student.total_paid - student.final_price,
            },
        )
    ]


def _require_positive(amount: Decimal, what: str) -> None:
    if amount is None or amount <= 0:
        raise ValidationError(ErrorKind.INVALID_AMOUNT, f"{what} must be greater than 0")


def _to_amount(value: Any) -> Decimal:
    """Normalize a SUM() result to a 2-decimal amount whatever the driver returns."""
    return Decimal(str(value or 0)).quantize(CENT)


async def get_student_by_id(db: AsyncSession, student_id: UUID) -> Student | None:
    """Get student by ID."""
    result = await db.execute(select(Student).where(Student.id == student_id))
    return result.scalar_one_or_none()


async def require_student(db: AsyncSession, student_id: UUID) -> Student:
    """Get student by ID or raise NotFoundError."""
    student = await get_student_by_id(db, student_id)
    if student is None:
        raise NotFoundError(ErrorKind.STUDENT_NOT_FOUND, f"Student {student_id} not found")
    return student


async def get_payment_by_id(db: AsyncSession, payment_id: UUID) -> Payment | None:
    """Get payment by ID."""
    result = await db.execute(select(Payment).where(Payment.id == payment_id))
    return result.scalar_one_or_none()


async def _require_payment(db: AsyncSession, payment_id: UUID) -> Payment:
    payment = await get_payment_by_id(db, payment_id)
    if payment is None:
        raise NotFoundError(ErrorKind.PAYMENT_NOT_FOUND, f"Payment {payment_id} not found")
    return payment


async def get_students(
    db: AsyncSession,
    *,
    completion_status: CompletionStatus | None = None,
    payment_status: PaymentStatus | None = None,
    churn_risk: ChurnRisk | None = None,
    search: str | None = None,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[Student], int]:
    """Get list of students with optional filters."""
    query = select(Student)

    if completion_status is not None:
        query = query.where(Student.completion_status == completion_status)
    if payment_status is not None:
        query = query.where(Student.payment_status == payment_status)
    if churn_risk is not None:
        query = query.where(Student.churn_risk == churn_risk)
    if search:
        query = query.where(
            Student.name.ilike(f"%{search}%")
            | Student.email.ilike(f"%{search}%")
            | Student.whatsapp.ilike(f"%{search}%")
        )

    count_query = select(func.count()).select_from(query.subquery())
    total_result = await db.execute(count_query)
    total = total_result.scalar() or 0

    query = query.order_by(Student.created_at.desc()).offset(skip).limit(limit)
    result = await db.execute(query)
    students = list(result.scalars().all())

    return students, total


async def get_student_payments(db: AsyncSession, student_id: UUID) -> list[Payment]:
    """All payments of a student, newest first."""
    query = (
        select(Payment)
        .where(Payment.student_id == student_id)
        .order_by(Payment.payment_date.desc(), Payment.created_at.desc())
    )
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_student_refunds(db: AsyncSession, student_id: UUID) -> list[Refund]:
    """All refunds of a student, newest first."""
    query = select(Refund).where(Refund.student_id == student_id).order_by(Refund.created_at.desc())
    result = await db.execute(query)
    return list(result.scalars().all())


async def _sum_completed_payments(db: AsyncSession, student_id: UUID) -> Decimal:
    query = select(func.coalesce(func.sum(Payment.amount), 0)).where(
        Payment.student_id == student_id,
        Payment.status == PaymentRecordStatus.COMPLETED,
    )
    result = await db.execute(query)
    return _to_amount(result.scalar())


async def _sum_refunds(db: AsyncSession, student_id: UUID) -> Decimal:
    # A refund tied to a payment only counts while that payment still counts.
    query = (
        select(func.coalesce(func.sum(Refund.refund_amount), 0))
        .select_from(Refund)
        .outerjoin(Payment, Refund.payment_id == Payment.id)
        .where(
            Refund.student_id == student_id,
            or_(
                Refund.payment_id.is_(None),
                Payment.status == PaymentRecordStatus.COMPLETED,
            ),
        )
    )
    result = await db.execute(query)
    return _to_amount(result.scalar())


async def _sum_payment_refunds(db: AsyncSession, payment_id: UUID) -> Decimal:
    query = select(func.coalesce(func.sum(Refund.refund_amount), 0)).where(Refund.payment_id == payment_id)
    result = await db.execute(query)
    return _to_amount(result.scalar())


def _net_contribution(amount: Decimal, status: str, linked_refunds: Decimal) -> Decimal:
    """What one payment adds to total_paid, net of the refunds linked to it."""
    if status != PaymentRecordStatus.COMPLETED:
        return Decimal(0)
    return amount - linked_refunds


async def _require_covered_refunds(
    db: AsyncSession,
    student: Student,
    old_contribution: Decimal,
    new_contribution: Decimal,
) -> None:
    paid = await _sum_completed_payments(db, student.id)
    refunded = await _sum_refunds(db, student.id)
    projected = paid - refunded - old_contribution + new_contribution
    if projected < 0:
        logger.warning(
            f"Refused payment change for student {student.id}: refunds would exceed payments by {-projected}"
        )
        raise PreconditionError(
            ErrorKind.REFUNDS_EXCEED_PAYMENTS,
            f"Refunds of student {student.id} would exceed the payments left "
            f"({-projected} {student.currency} short)",
        )


def _check_invariants(student: Student) -> None:
    if student.final_price < 0:
        logger.error(f"Negative final price for student {student.id}: {student.final_price}")
        raise ConsistencyError(
            ErrorKind.LEDGER_INCONSISTENT,
            f"Final price of student {student.id} is negative ({student.final_price})",
        )
    if student.total_paid < 0:
        logger.error(f"Negative total paid for student {student.id}: {student.total_paid}")
        raise ConsistencyError(
            ErrorKind.LEDGER_INCONSISTENT,
            f"Total paid of student {student.id} is negative ({student.total_paid})",
        )


async def recompute_student_totals(
    db: AsyncSession,
    student_id: UUID,
    *,
    money: Money | None = None,
    today: date | None = None,
) -> LedgerSnapshot:
    """
    Re-derive a student's ledger from payment and refund history.

    total_paid is the sum of COMPLETED payments less processed refunds, in the
    student's own currency. EUR figures use `money`'s rate, which is stamped in
    exchange_rate_used for INR students.

    Only flushes: the caller's transaction decides whether the result sticks.
    Running it again without a payment change yields the same snapshot.
    """
    money = money or get_money()
    today = today or date.today()
    student = await require_student(db, student_id)

    paid = await _sum_completed_payments(db, student_id)
    refunded = await _sum_refunds(db, student_id)
    total_paid = paid - refunded
    final_price = student.original_price - student.discount_applied

    student.final_price = final_price
    student.total_paid = total_paid
    student.total_paid_eur = money.to_eur(total_paid, student.currency)
    student.balance = final_price - total_paid
    student.eur_equivalent = money.to_eur(final_price, student.currency)
    student.exchange_rate_used = money.rate_for(student.currency)
    student.payment_status = derive_payment_status(
        total_paid,
        final_price,
        student.enrollment_date,
        today,
    )

    _check_invariants(student)
    await db.flush()

    if student.is_overpaid:
        logger.warning(
            f"Student {student.id} overpaid: paid {total_paid} {student.currency} "
            f"against final price {final_price}"
        )

    return LedgerSnapshot.of(student)


async def enroll_student(
    db: AsyncSession,
    student_data: StudentCreate,
    *,
    actor: str | None = None,
    money: Money | None = None,
    today: date | None = None,
) -> LedgerResult:
    """Create a student with pricing, and the first payment if one was taken."""
    if student_data.discount_applied > student_data.original_price:
        raise ValidationError(
            ErrorKind.INVALID_DISCOUNT,
            "Discount cannot exceed the original price",
        )

    async with transaction(db):
        if student_data.batch_id is not None and await db.get(Batch, student_data.batch_id) is None:
            raise NotFoundError(ErrorKind.BATCH_NOT_FOUND, f"Batch {student_data.batch_id} not found")

        student = Student(
            name=student_data.name,
            email=student_data.email,
            whatsapp=student_data.whatsapp,
            current_level=student_data.current_level,
            batch_id=student_data.batch_id,
            referral_source=student_data.referral_source,
            enrollment_date=student_data.enrollment_date,
            completion_status=CompletionStatus.ACTIVE,
            currency=student_data.currency,
            original_price=student_data.original_price,
            discount_applied=student_data.discount_applied,
            final_price=student_data.original_price - student_data.discount_applied,
            total_paid=Decimal(0),
            total_paid_eur=Decimal(0),
            balance=Decimal(0),
            eur_equivalent=Decimal(0),
            payment_status=PaymentStatus.PENDING,
        )
        db.add(student)
        await db.flush()

        payment = None
        if student_data.initial_payment > 0:
            payment = Payment(
                student_id=student.id,
                amount=student_data.initial_payment,
                currency=student.currency,
                status=PaymentRecordStatus.COMPLETED,
                method=student_data.initial_payment_method,
                payment_date=student_data.enrollment_date,
                notes="Paid at enrollment",
            )
            db.add(payment)
            await db.flush()

        await recompute_student_totals(db, student.id, money=money, today=today)

    logger.info(
        f"Enrolled student {student.id} ({student.name}): final price "
        f"{student.final_price} {student.currency}, paid {student.total_paid}"
    )

    audit = [
        AuditRecord(
            actor=actor,
            action="student.enrolled",
            entity="Student",
            entity_id=student.id,
            student_id=student.id,
            after=_ledger_state(student),
        )
    ]
    events = [
        DomainEvent(
            name="student_enrolled",
            student_id=student.id,
            payload={"level": student.current_level, "batch_id": student.batch_id},
        )
    ]
    events.extend(_ledger_events(student))
    return LedgerResult(student=student, payment=payment, audit=audit, events=events)


async def update_student(
    db: AsyncSession,
    student_id: UUID,
    student_data: StudentUpdate,
) -> Student:
    """Update identity and course fields. Ledger fields are not touched here."""
    async with transaction(db):
        student = await require_student(db, student_id)
        update_data = student_data.model_dump(exclude_unset=True)

        if update_data.get("batch_id") is not None and await db.get(Batch, update_data["batch_id"]) is None:
            raise NotFoundError(ErrorKind.BATCH_NOT_FOUND, f"Batch {update_data['batch_id']} not found")

        for field, value in update_data.items():
            if value is None and field in ("name", "current_level", "completion_status"):
                continue
            setattr(student, field, value)

        await db.flush()

    return student


async def update_pricing(
    db: AsyncSession,
    student_id: UUID,
    pricing_data: PricingUpdate,
    *,
    actor: str | None = None,
    money: Money | None = None,
    today: date | None = None,
) -> LedgerResult:
    """Change price or discount and re-derive the ledger."""
    async with transaction(db):
        student = await require_student(db, student_id)
        before = _ledger_state(student)

        original_price = pricing_data.original_price
        if original_price is None:
            original_price = student.original_price
        discount = pricing_data.discount_applied
        if discount is None:
            discount = student.discount_applied

        if original_price < 0 or discount < 0:
            raise ValidationError(ErrorKind.INVALID_AMOUNT, "Prices cannot be negative")
        if discount > original_price:
            raise ValidationError(ErrorKind.INVALID_DISCOUNT, "Discount cannot exceed the original price")

        student.original_price = original_price
        student.discount_applied = discount
        await recompute_student_totals(db, student.id, money=money, today=today)

    logger.info(f"Repriced student {student.id}: final price {student.final_price} {student.currency}")

    audit = [
        AuditRecord(
            actor=actor,
            action="student.repriced",
            entity="Student",
            entity_id=student.id,
            student_id=student.id,
            before=before,
            after=_ledger_state(student),
        )
    ]
    return LedgerResult(student=student, audit=audit, events=_ledger_events(student))


async def delete_student(db: AsyncSession, student_id: UUID) -> None:
    """Delete a student that has no payment history."""
    async with transaction(db):
        student = await require_student(db, student_id)

        payment_count = await db.scalar(
            select(func.count()).select_from(Payment).where(Payment.student_id == student_id)
        )
        if payment_count:
            raise PreconditionError(
                ErrorKind.PAYMENTS_EXIST,
                f"Student {student_id} has {payment_count} payment(s) and cannot be deleted",
            )

        await db.delete(student)

    logger.info(f"Deleted student {student_id}")


async def record_payment(
    db: AsyncSession,
    payment_data: PaymentCreate,
    *,
    actor: str | None = None,
    money: Money | None = None,
    today: date | None = None,
) -> LedgerResult:
    """Record a payment and recompute the student's ledger in the same transaction."""
    _require_positive(payment_data.amount, "Payment amount")
    today = today or date.today()

    async with transaction(db):
        student = await require_student(db, payment_data.student_id)
        before = _ledger_state(student)

        payment = Payment(
            student_id=student.id,
            amount=payment_data.amount,
            currency=student.currency,
            status=payment_data.status,
            method=payment_data.method,
            payment_date=payment_data.payment_date or today,
            transaction_id=payment_data.transaction_id,
            notes=payment_data.notes,
        )
        db.add(payment)
        await db.flush()

        await recompute_student_totals(db, student.id, money=money, today=today)

    logger.info(
        f"Recorded payment {payment.id} of {payment.amount} {payment.currency} "
        f"({PaymentRecordStatus(payment.status).value}) for student {student.id}; balance {student.balance}"
    )

    audit = [
        AuditRecord(
            actor=actor,
            action="payment.recorded",
            entity="Payment",
            entity_id=payment.id,
            student_id=student.id,
            before=before,
            after={**_ledger_state(student), "amount": payment.amount},
        )
    ]
    events = []
    if payment.status == PaymentRecordStatus.COMPLETED:
        events.append(
            DomainEvent(
                name="payment_received",
                student_id=student.id,
                payload={
                    "payment_id": payment.id,
                    "amount": payment.amount,
                    "currency": payment.currency,
                    "method": payment.method,
                    "balance": student.balance,
                },
            )
        )
    events.extend(_ledger_events(student))
    return LedgerResult(student=student, payment=payment, audit=audit, events=events)


async def update_payment(
    db: AsyncSession,
    payment_id: UUID,
    payment_data: PaymentUpdate,
    *,
    actor: str | None = None,
    money: Money | None = None,
    today: date | None = None,
) -> LedgerResult:
    """Update a payment and recompute the owning student's ledger."""
    update_data = payment_data.model_dump(exclude_unset=True)
    if update_data.get("amount") is not None:
        _require_positive(update_data["amount"], "Payment amount")

    async with transaction(db):
        payment = await _require_payment(db, payment_id)
        student = await require_student(db, payment.student_id)
        before = {**_ledger_state(student), "amount": payment.amount, "status": payment.status}

        new_amount = update_data.get("amount") or payment.amount
        new_status = update_data.get("status") or payment.status
        linked = await _sum_payment_refunds(db, payment.id)
        if new_status == PaymentRecordStatus.COMPLETED and new_amount < linked:
            raise PreconditionError(
                ErrorKind.REFUNDS_EXCEED_PAYMENTS,
                f"Payment {payment.id} has {linked} refunded against it; amount cannot drop to {new_amount}",
            )
        await _require_covered_refunds(
            db,
            student,
            _net_contribution(payment.amount, payment.status, linked),
            _net_contribution(new_amount, new_status, linked),
        )

        for field, value in update_data.items():
            if value is None and field in REQUIRED_PAYMENT_FIELDS:
                continue
            setattr(payment, field, value)
        await db.flush()

        await recompute_student_totals(db, student.id, money=money, today=today)

    logger.info(f"Updated payment {payment.id} for student {student.id}; balance {student.balance}")

    audit = [
        AuditRecord(
            actor=actor,
            action="payment.updated",
            entity="Payment",
            entity_id=payment.id,
            student_id=student.id,
            before=before,
            after={**_ledger_state(student), "amount": payment.amount, "status": payment.status},
        )
    ]
    return LedgerResult(student=student, payment=payment, audit=audit, events=_ledger_events(student))


async def delete_payment(
    db: AsyncSession,
    payment_id: UUID,
    *,
    actor: str | None = None,
    money: Money | None = None,
    today: date | None = None,
) -> LedgerResult:
    """Delete a payment and recompute the owning student's ledger."""
    async with transaction(db):
        payment = await _require_payment(db, payment_id)
        student = await require_student(db, payment.student_id)
        before = {**_ledger_state(student), "amount": payment.amount, "status": payment.status}

        refund_count = await db.scalar(
            select(func.count()).select_from(Refund).where(Refund.payment_id == payment_id)
        )
        if refund_count:
            raise PreconditionError(
                ErrorKind.REFUNDS_EXIST,
                f"Payment {payment_id} has refunds recorded against it and cannot be deleted",
            )
        await _require_covered_refunds(
            db,
            student,
            _net_contribution(payment.amount, payment.status, Decimal(0)),
            Decimal(0),
        )

        await db.delete(payment)
        await db.flush()

        await recompute_student_totals(db, student.id, money=money, today=today)

    logger.info(f"Deleted payment {payment_id} of student {student.id}; balance {student.balance}")

    audit = [
        AuditRecord(
            actor=actor,
            action="payment.deleted",
            entity="Payment",
            entity_id=payment_id,
            student_id=student.id,
            before=before,
            after=_ledger_state(student),
        )
    ]
    return LedgerResult(student=student, audit=audit, events=_ledger_events(student))


async def apply_refund(
    db: AsyncSession,
    student_id: UUID,
    refund_data: RefundCreate,
    *,
    actor: str | None = None,
    money: Money | None = None,
    today: date | None = None,
) -> LedgerResult:
    """
    Refund money to a student.

    The refund may not exceed what the student has paid so far. The Refund row
    and the reduced totals are written in one transaction; if anything fails
    neither is kept.
    """
    refund_amount = refund_data.refund_amount
    _require_positive(refund_amount, "Refund amount")

    async with transaction(db):
        student = await require_student(db, student_id)
        before = _ledger_state(student)

        if refund_amount > student.total_paid:
            logger.warning(
                f"Rejected refund of {refund_amount} {student.currency} for student "
                f"{student.id}: only {student.total_paid} paid"
            )
            raise PreconditionError(
                ErrorKind.INVALID_REFUND_AMOUNT,
                f"Refund amount cannot exceed total paid. Maximum refundable amount: "
                f"{student.total_paid} {student.currency}",
            )

        if refund_data.payment_id is not None:
            payment = await get_payment_by_id(db, refund_data.payment_id)
            if payment is None or payment.student_id != student.id:
                raise NotFoundError(
                    ErrorKind.PAYMENT_NOT_FOUND,
                    f"Payment {refund_data.payment_id} not found for student {student.id}",
                )
            if payment.status != PaymentRecordStatus.COMPLETED:
                raise PreconditionError(
                    ErrorKind.PAYMENT_NOT_REFUNDABLE,
                    f"Payment {payment.id} is {PaymentRecordStatus(payment.status).value} and cannot be refunded",
                )
            refundable = payment.amount - await _sum_payment_refunds(db, payment.id)
            if refund_amount > refundable:
                logger.warning(
                    f"Rejected refund of {refund_amount} {student.currency} against payment "
                    f"{payment.id}: only {refundable} left on it"
                )
                raise PreconditionError(
                    ErrorKind.INVALID_REFUND_AMOUNT,
                    f"Refund amount cannot exceed what is left on payment {payment.id}: "
                    f"{refundable} {student.currency}",
                )

        refund = Refund(
            student_id=student.id,
            payment_id=refund_data.payment_id,
            refund_amount=refund_amount,
            currency=student.currency,
            refund_method=refund_data.refund_method,
            refund_reason=refund_data.refund_reason,
            processed_by=actor,
            transaction_id=refund_data.transaction_id,
            notes=refund_data.notes,
        )
        db.add(refund)
        await db.flush()

        expected_total_paid = before["total_paid"] - refund_amount
        snapshot = await recompute_student_totals(db, student.id, money=money, today=today)
        if snapshot.total_paid != expected_total_paid:
            logger.error(
                f"Ledger drift on refund for student {student.id}: expected total paid "
                f"{expected_total_paid}, history gives {snapshot.total_paid}"
            )
            raise ConsistencyError(
                ErrorKind.LEDGER_INCONSISTENT,
                f"Stored total paid of student {student.id} does not match its payment history",
            )

    logger.info(
        f"Refunded {refund_amount} {student.currency} to student {student.id}: "
        f"total paid {before['total_paid']} -> {student.total_paid}, "
        f"status {before['payment_status']} -> {PaymentStatus(student.payment_status).value}"
    )

    audit = [
        AuditRecord(
            actor=actor,
            action="refund.processed",
            entity="Refund",
            entity_id=refund.id,
            student_id=student.id,
            before=before,
            after={**_ledger_state(student), "refund_amount": refund_amount},
        )
    ]
    events = [
        DomainEvent(
            name="refund_processed",
            student_id=student.id,
            payload={
                "refund_id": refund.id,
                "amount": refund_amount,
                "currency": student.currency,
                "method": refund_data.refund_method,
            },
        )
    ]
    return LedgerResult(student=student, refund=refund, audit=audit, events=events)


async def refresh_overdue_statuses(
    db: AsyncSession,
    *,
    money: Money | None = None,
    today: date | None = None,
) -> int:
    """
    Recompute students who may have crossed the overdue threshold.

    No payment event happens when a student simply ages past the limit, so
    this is run periodically. Returns how many students are now OVERDUE.
    """
    today = today or date.today()
    cutoff = today - timedelta(days=settings.OVERDUE_AFTER_DAYS)

    async with transaction(db):
        result = await db.execute(
            select(Student.id).where(
                Student.payment_status.in_([PaymentStatus.PENDING, PaymentStatus.PARTIAL]),
                Student.balance > 0,
                Student.enrollment_date < cutoff,
            )
        )
        student_ids = list(result.scalars().all())

        count = 0
        for student_id in student_ids:
            snapshot = await recompute_student_totals(db, student_id, money=money, today=today)
            if snapshot.payment_status == PaymentStatus.OVERDUE:
                count += 1

    logger.info(f"Marked {count} students as overdue")
    return count


async def get_ledger_summary(db: AsyncSession, *, money: Money | None = None) -> dict:
    """School-wide ledger totals in EUR."""
    money = money or get_money()

    result = await db.execute(select(Student))
    students = result.scalars().all()

    total_billed = Decimal(0)
    total_collected = Decimal(0)
    total_outstanding = Decimal(0)
    status_counts = {status.value: 0 for status in PaymentStatus}
    overpaid = []

    for student in students:
        total_billed += student.eur_equivalent
        total_collected += student.total_paid_eur
        if student.balance > 0:
            total_outstanding += money.to_eur(student.balance, student.currency)
        status_counts[PaymentStatus(student.payment_status).value] += 1
        if student.is_overpaid:
            overpaid.append(
                {
                    "id": student.id,
                    "name": student.name,
                    "currency": student.currency,
                    "final_price": student.final_price,
                    "total_paid": student.total_paid,
                    "overpaid_by": student.total_paid - student.final_price,
                }
            )

    refund_result = await db.execute(select(Refund.refund_amount, Refund.currency))
    total_refunded = sum(
        (money.to_eur(amount, currency) for amount, currency in refund_result.all()),
        Decimal(0),
    )

    return {
        "student_count": len(students),
        "total_billed_eur": total_billed,
        "total_collected_eur": total_collected,
        "total_outstanding_eur": total_outstanding,
        "total_refunded_eur": total_refunded,
        "status_counts": status_counts,
        "overpaid_students": overpaid,
    }

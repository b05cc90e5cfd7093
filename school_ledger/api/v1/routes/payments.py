"""Payment routes."""

from uuid import UUID

from fastapi import APIRouter, HTTPException, status

from school_ledger.core.deps import Actor, DbSession, log_audit
from school_ledger.schemas.payment import (
    PaymentCreate,
    PaymentLedgerResponse,
    PaymentResponse,
    PaymentUpdate,
)
from school_ledger.schemas.student import StudentResponse
from school_ledger.services import ledger as ledger_service
from school_ledger.services.results import LedgerResult

router = APIRouter(prefix="/payments", tags=["Payments"])


def _build_ledger_response(result: LedgerResult) -> PaymentLedgerResponse:
    return PaymentLedgerResponse(
        payment=PaymentResponse.model_validate(result.payment) if result.payment else None,
        student=StudentResponse.model_validate(result.student),
        audit=result.audit,
        events=result.events,
    )


@router.post("", response_model=PaymentLedgerResponse, status_code=status.HTTP_201_CREATED)
async def record_payment(
    payment_data: PaymentCreate,
    db: DbSession,
    actor: Actor,
) -> PaymentLedgerResponse:
    """
    Record a payment.

    Only COMPLETED payments count toward the student's total paid. The
    response carries the recomputed student ledger.
    """
    result = await ledger_service.record_payment(db, payment_data, actor=actor)
    log_audit(result.audit)
    return _build_ledger_response(result)


@router.get("/{payment_id}", response_model=PaymentResponse)
async def get_payment(payment_id: UUID, db: DbSession) -> PaymentResponse:
    """Get payment by ID."""
    payment = await ledger_service.get_payment_by_id(db, payment_id)
    if not payment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Payment not found",
        )
    return PaymentResponse.model_validate(payment)


@router.patch("/{payment_id}", response_model=PaymentLedgerResponse)
async def update_payment(
    payment_id: UUID,
    payment_data: PaymentUpdate,
    db: DbSession,
    actor: Actor,
) -> PaymentLedgerResponse:
    """Update a payment and recompute the student's ledger."""
    result = await ledger_service.update_payment(db, payment_id, payment_data, actor=actor)
    log_audit(result.audit)
    return _build_ledger_response(result)


@router.delete("/{payment_id}", response_model=PaymentLedgerResponse)
async def delete_payment(
    payment_id: UUID,
    db: DbSession,
    actor: Actor,
) -> PaymentLedgerResponse:
    """Delete a payment and recompute the student's ledger."""
    result = await ledger_service.delete_payment(db, payment_id, actor=actor)
    log_audit(result.audit)
    return _build_ledger_response(result)

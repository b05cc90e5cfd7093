"""Student routes."""

from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from school_ledger.core.deps import Actor, DbSession, log_audit
from school_ledger.models.student import ChurnRisk, CompletionStatus, PaymentStatus
from school_ledger.schemas.ledger import LedgerSummary
from school_ledger.schemas.payment import (
    PaymentResponse,
    RefundCreate,
    RefundLedgerResponse,
    RefundResponse,
)
from school_ledger.schemas.student import (
    PricingUpdate,
    StudentCreate,
    StudentLedgerResponse,
    StudentListResponse,
    StudentResponse,
    StudentUpdate,
)
from school_ledger.services import ledger as ledger_service

router = APIRouter(prefix="/students", tags=["Students"])


@router.get("", response_model=StudentListResponse)
async def list_students(
    db: DbSession,
    completion_status: CompletionStatus | None = Query(None, description="Filter by completion status"),
    payment_status: PaymentStatus | None = Query(None, description="Filter by payment status"),
    churn_risk: ChurnRisk | None = Query(None, description="Filter by churn risk"),
    search: str | None = Query(None, description="Search in name, email, whatsapp"),
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(20, ge=1, le=100, description="Max number of records"),
) -> StudentListResponse:
    """
    List students with optional filters.

    - **completion_status**: ACTIVE, COMPLETED, DROPPED, ON_HOLD
    - **payment_status**: PENDING, PARTIAL, PAID, OVERDUE
    - **churn_risk**: LOW, MEDIUM, HIGH
    """
    students, total = await ledger_service.get_students(
        db,
        completion_status=completion_status,
        payment_status=payment_status,
        churn_risk=churn_risk,
        search=search,
        skip=skip,
        limit=limit,
    )

    return StudentListResponse(
        items=[StudentResponse.model_validate(s) for s in students],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.post("", response_model=StudentLedgerResponse, status_code=status.HTTP_201_CREATED)
async def enroll_student(
    student_data: StudentCreate,
    db: DbSession,
    actor: Actor,
) -> StudentLedgerResponse:
    """Enroll a new student, optionally with a first payment."""
    result = await ledger_service.enroll_student(db, student_data, actor=actor)
    log_audit(result.audit)
    return StudentLedgerResponse(
        student=StudentResponse.model_validate(result.student),
        audit=result.audit,
        events=result.events,
    )


@router.get("/ledger-summary", response_model=LedgerSummary)
async def get_ledger_summary(db: DbSession) -> LedgerSummary:
    """School-wide billed, collected and outstanding totals in EUR."""
    summary = await ledger_service.get_ledger_summary(db)
    return LedgerSummary(**summary)


@router.post("/refresh-overdue")
async def refresh_overdue(db: DbSession) -> dict:
    """Re-derive payment status for students who aged past the overdue limit."""
    count = await ledger_service.refresh_overdue_statuses(db)
    return {"overdue": count}


@router.get("/{student_id}", response_model=StudentResponse)
async def get_student(student_id: UUID, db: DbSession) -> StudentResponse:
    """Get student by ID."""
    student = await ledger_service.get_student_by_id(db, student_id)
    if not student:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Student not found",
        )
    return StudentResponse.model_validate(student)


@router.patch("/{student_id}", response_model=StudentResponse)
async def update_student(
    student_id: UUID,
    student_data: StudentUpdate,
    db: DbSession,
) -> StudentResponse:
    """Update contact and course details. Prices go through /pricing."""
    student = await ledger_service.update_student(db, student_id, student_data)
    return StudentResponse.model_validate(student)


@router.put("/{student_id}/pricing", response_model=StudentLedgerResponse)
async def update_pricing(
    student_id: UUID,
    pricing_data: PricingUpdate,
    db: DbSession,
    actor: Actor,
) -> StudentLedgerResponse:
    """Change original price or discount and recompute the balance."""
    result = await ledger_service.update_pricing(db, student_id, pricing_data, actor=actor)
    log_audit(result.audit)
    return StudentLedgerResponse(
        student=StudentResponse.model_validate(result.student),
        audit=result.audit,
        events=result.events,
    )


@router.delete("/{student_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_student(student_id: UUID, db: DbSession) -> None:
    """Delete a student. Refused once any payment has been recorded."""
    await ledger_service.delete_student(db, student_id)


@router.get("/{student_id}/payments", response_model=list[PaymentResponse])
async def list_student_payments(student_id: UUID, db: DbSession) -> list[PaymentResponse]:
    """All payments of a student, newest first."""
    await ledger_service.require_student(db, student_id)
    payments = await ledger_service.get_student_payments(db, student_id)
    return [PaymentResponse.model_validate(p) for p in payments]


@router.get("/{student_id}/refunds", response_model=list[RefundResponse])
async def list_student_refunds(student_id: UUID, db: DbSession) -> list[RefundResponse]:
    """All refunds of a student, newest first."""
    await ledger_service.require_student(db, student_id)
    refunds = await ledger_service.get_student_refunds(db, student_id)
    return [RefundResponse.model_validate(r) for r in refunds]


@router.post(
    "/{student_id}/refunds",
    response_model=RefundLedgerResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_refund(
    student_id: UUID,
    refund_data: RefundCreate,
    db: DbSession,
    actor: Actor,
) -> RefundLedgerResponse:
    """
    Refund money to a student.

    The amount may not exceed what the student has paid so far (409).
    """
    result = await ledger_service.apply_refund(db, student_id, refund_data, actor=actor)
    log_audit(result.audit)
    return RefundLedgerResponse(
        refund=RefundResponse.model_validate(result.refund),
        student=StudentResponse.model_validate(result.student),
        audit=result.audit,
        events=result.events,
    )

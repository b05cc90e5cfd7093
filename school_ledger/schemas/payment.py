"""Payment and refund schemas."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from school_ledger.models.payment import (
    PaymentMethod,
    PaymentRecordStatus,
    RefundMethod,
    RefundReason,
)
from school_ledger.schemas.events import AuditRecord, DomainEvent
from school_ledger.schemas.student import StudentResponse
from school_ledger.schemas.validators import DisplayMoney, PositiveAmount


class PaymentCreate(BaseModel):
    """Schema for recording a payment. The currency is always the student's."""

    student_id: UUID
    amount: PositiveAmount
    method: PaymentMethod
    status: PaymentRecordStatus = PaymentRecordStatus.COMPLETED
    payment_date: date | None = None
    transaction_id: str | None = Field(None, max_length=100)
    notes: str | None = Field(None, max_length=1000)


class PaymentUpdate(BaseModel):
    """Schema for updating a payment."""

    amount: PositiveAmount | None = None
    method: PaymentMethod | None = None
    status: PaymentRecordStatus | None = None
    payment_date: date | None = None
    transaction_id: str | None = Field(None, max_length=100)
    notes: str | None = Field(None, max_length=1000)


class PaymentResponse(BaseModel):
    """Schema for payment response."""

    id: UUID
    student_id: UUID
    amount: DisplayMoney
    currency: str
    status: PaymentRecordStatus
    method: PaymentMethod
    payment_date: date
    transaction_id: str | None
    notes: str | None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PaymentLedgerResponse(BaseModel):
    """A payment mutation together with the recomputed student ledger."""

    payment: PaymentResponse | None
    student: StudentResponse
    audit: list[AuditRecord]
    events: list[DomainEvent]


class RefundCreate(BaseModel):
    """Schema for refunding money to a student."""

    refund_amount: PositiveAmount
    payment_id: UUID | None = None
    refund_method: RefundMethod
    refund_reason: RefundReason
    transaction_id: str | None = Field(None, max_length=100)
    notes: str | None = Field(None, max_length=1000)


class RefundResponse(BaseModel):
    """Schema for refund response."""

    id: UUID
    student_id: UUID
    payment_id: UUID | None
    refund_amount: DisplayMoney
    currency: str
    refund_method: RefundMethod
    refund_reason: RefundReason
    processed_by: str | None
    transaction_id: str | None
    status: str
    notes: str | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RefundLedgerResponse(BaseModel):
    """A processed refund together with the recomputed student ledger."""

    refund: RefundResponse
    student: StudentResponse
    audit: list[AuditRecord]
    events: list[DomainEvent]

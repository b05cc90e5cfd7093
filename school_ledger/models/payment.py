"""Payment and Refund models."""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from school_ledger.core.database import BaseModel
from school_ledger.core.money import Currency


class PaymentRecordStatus(str, Enum):
    """State of a single payment. Only COMPLETED counts toward the ledger."""

    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class PaymentMethod(str, Enum):
    """How payment was received."""

    CASH = "CASH"
    BANK_TRANSFER = "BANK_TRANSFER"
    UPI = "UPI"
    CARD = "CARD"
    CHEQUE = "CHEQUE"


class RefundMethod(str, Enum):
    """How money was returned."""

    BANK_TRANSFER = "BANK_TRANSFER"
    UPI = "UPI"
    CASH = "CASH"
    CARD = "CARD"
    OTHER = "OTHER"


class RefundReason(str, Enum):
    """Why money was returned."""

    STUDENT_WITHDRAWAL = "STUDENT_WITHDRAWAL"
    OVERPAYMENT = "OVERPAYMENT"
    SERVICE_ISSUE = "SERVICE_ISSUE"
    DUPLICATE_PAYMENT = "DUPLICATE_PAYMENT"
    BATCH_CANCELLED = "BATCH_CANCELLED"
    OTHER = "OTHER"


REFUND_PROCESSED = "PROCESSED"


class Payment(BaseModel):
    """Money received from a student, in the student's currency."""

    __tablename__ = "payments"

    student_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("students.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[Currency] = mapped_column(String(3), nullable=False)
    status: Mapped[PaymentRecordStatus] = mapped_column(
        String(20),
        default=PaymentRecordStatus.COMPLETED,
        nullable=False,
    )
    method: Mapped[PaymentMethod] = mapped_column(String(20), nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    transaction_id: Mapped[str | None] = mapped_column(String(100))
    notes: Mapped[str | None] = mapped_column(Text)

    # Relationships
    student: Mapped["Student"] = relationship("Student", back_populates="payments")

    def __repr__(self) -> str:
        return f"<Payment(id={self.id}, amount={self.amount}, status={self.status})>"


class Refund(BaseModel):
    """Money returned to a student. Terminal once created."""

    __tablename__ = "refunds"

    student_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("students.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    payment_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("payments.id", ondelete="RESTRICT"),
        nullable=True,
    )
    refund_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[Currency] = mapped_column(String(3), nullable=False)
    refund_method: Mapped[RefundMethod] = mapped_column(String(20), nullable=False)
    refund_reason: Mapped[RefundReason] = mapped_column(String(30), nullable=False)
    processed_by: Mapped[str | None] = mapped_column(String(200))
    transaction_id: Mapped[str | None] = mapped_column(String(100))
    status: Mapped[str] = mapped_column(String(20), default=REFUND_PROCESSED, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)

    # Relationships
    student: Mapped["Student"] = relationship("Student", back_populates="refunds")

    def __repr__(self) -> str:
        return f"<Refund(id={self.id}, amount={self.refund_amount})>"

"""Student schemas."""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from school_ledger.models.payment import PaymentMethod
from school_ledger.models.student import ChurnRisk, CompletionStatus, Level, PaymentStatus
from school_ledger.schemas.events import AuditRecord, DomainEvent
from school_ledger.schemas.validators import (
    CurrencyCode,
    DisplayMoney,
    DisplayPercent,
    NonNegativeAmount,
)


class StudentCreate(BaseModel):
    """Schema for enrolling a new student."""

    name: str = Field(..., min_length=1, max_length=200)
    email: str | None = Field(None, max_length=255)
    whatsapp: str | None = Field(None, max_length=50)
    current_level: Level
    batch_id: UUID | None = None
    referral_source: str | None = Field(None, max_length=50)
    enrollment_date: date

    # Pricing
    currency: CurrencyCode = "EUR"
    original_price: NonNegativeAmount
    discount_applied: NonNegativeAmount = Decimal(0)

    # Optional first payment taken at enrollment
    initial_payment: NonNegativeAmount = Decimal(0)
    initial_payment_method: PaymentMethod = PaymentMethod.CASH

    @model_validator(mode="after")
    def check_discount(self) -> "StudentCreate":
        if self.discount_applied > self.original_price:
            raise ValueError("discount_applied cannot exceed original_price")
        return self


class StudentUpdate(BaseModel):
    """Schema for updating non-ledger student fields."""

    name: str | None = Field(None, min_length=1, max_length=200)
    email: str | None = Field(None, max_length=255)
    whatsapp: str | None = Field(None, max_length=50)
    current_level: Level | None = None
    batch_id: UUID | None = None
    referral_source: str | None = Field(None, max_length=50)
    completion_status: CompletionStatus | None = None


class PricingUpdate(BaseModel):
    """Schema for repricing a student."""

    original_price: NonNegativeAmount | None = None
    discount_applied: NonNegativeAmount | None = None


class StudentResponse(BaseModel):
    """Student response schema."""

    id: UUID
    name: str
    email: str | None
    whatsapp: str | None
    current_level: Level
    batch_id: UUID | None
    referral_source: str | None
    enrollment_date: date
    completion_status: CompletionStatus

    # Ledger
    original_price: DisplayMoney
    discount_applied: DisplayMoney
    final_price: DisplayMoney
    currency: str
    total_paid: DisplayMoney
    total_paid_eur: DisplayMoney
    balance: DisplayMoney
    eur_equivalent: DisplayMoney
    exchange_rate_used: Decimal | None
    payment_status: PaymentStatus
    is_overpaid: bool

    # Attendance / risk
    attendance_rate: DisplayPercent
    total_classes: int
    classes_attended: int
    consecutive_absences: int
    last_class_date: date | None
    last_absence_date: date | None
    churn_risk: ChurnRisk

    # Outreach
    relationship_depth: int
    last_outreach_call: datetime | None

    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class StudentListResponse(BaseModel):
    """Paginated list of students."""

    items: list[StudentResponse]
    total: int
    skip: int
    limit: int


class StudentLedgerResponse(BaseModel):
    """A student after a ledger mutation, with what the mutation recorded."""

    student: StudentResponse
    audit: list[AuditRecord]
    events: list[DomainEvent]

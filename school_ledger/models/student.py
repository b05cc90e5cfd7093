"""Student and Batch models."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Date, DateTime, ForeignKey, Integer, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from school_ledger.core.database import BaseModel
from school_ledger.core.money import Currency


class Level(str, Enum):
    """Course levels, in ladder order."""

    NEW = "NEW"
    A1 = "A1"
    A1_HYBRID = "A1_HYBRID"
    A1_HYBRID_MALAYALAM = "A1_HYBRID_MALAYALAM"
    A2 = "A2"
    B1 = "B1"
    B2 = "B2"
    SPOKEN_GERMAN = "SPOKEN_GERMAN"


LEVEL_LADDER: list[Level] = list(Level)


class BatchTiming(str, Enum):
    """When a batch meets."""

    MORNING = "MORNING"
    EVENING = "EVENING"
    WEEKEND = "WEEKEND"


class CompletionStatus(str, Enum):
    """Where a student is in their course."""

    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    DROPPED = "DROPPED"
    ON_HOLD = "ON_HOLD"


class PaymentStatus(str, Enum):
    """Ledger-derived payment state of a student."""

    PENDING = "PENDING"
    PARTIAL = "PARTIAL"
    PAID = "PAID"
    OVERDUE = "OVERDUE"


class ChurnRisk(str, Enum):
    """Likelihood of a student disengaging."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


CHURN_RISK_RANK = {ChurnRisk.LOW: 0, ChurnRisk.MEDIUM: 1, ChurnRisk.HIGH: 2}


class Batch(BaseModel):
    """A group of students taking the same course together."""

    __tablename__ = "batches"

    batch_code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    level: Mapped[Level] = mapped_column(String(30), nullable=False)
    timing: Mapped[BatchTiming | None] = mapped_column(String(20), nullable=True)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    students: Mapped[list["Student"]] = relationship("Student", back_populates="batch")

    def __repr__(self) -> str:
        return f"<Batch(id={self.id}, code={self.batch_code})>"


class Student(BaseModel):
    """Student - aggregate root of the ledger, risk and outreach state."""

    __tablename__ = "students"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255))
    whatsapp: Mapped[str | None] = mapped_column(String(50))
    current_level: Mapped[Level] = mapped_column(String(30), nullable=False)
    batch_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("batches.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    referral_source: Mapped[str | None] = mapped_column(String(50))
    enrollment_date: Mapped[date] = mapped_column(Date, nullable=False)
    completion_status: Mapped[CompletionStatus] = mapped_column(
        String(20),
        default=CompletionStatus.ACTIVE,
        nullable=False,
        index=True,
    )

    # Ledger
    original_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    discount_applied: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal(0), nullable=False)
    final_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[Currency] = mapped_column(String(3), default=Currency.EUR, nullable=False)
    total_paid: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal(0), nullable=False)
    total_paid_eur: Mapped[Decimal] = mapped_column(Numeric(18, 6), default=Decimal(0), nullable=False)
    balance: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal(0), nullable=False)
    eur_equivalent: Mapped[Decimal] = mapped_column(Numeric(18, 6), default=Decimal(0), nullable=False)
    exchange_rate_used: Mapped[Decimal | None] = mapped_column(Numeric(10, 4), nullable=True)
    payment_status: Mapped[PaymentStatus] = mapped_column(
        String(20),
        default=PaymentStatus.PENDING,
        nullable=False,
        index=True,
    )

    # Attendance / risk
    attendance_rate: Mapped[Decimal] = mapped_column(Numeric(7, 4), default=Decimal(0), nullable=False)
    total_classes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    classes_attended: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    consecutive_absences: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_class_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    last_absence_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    churn_risk: Mapped[ChurnRisk] = mapped_column(
        String(10),
        default=ChurnRisk.LOW,
        nullable=False,
        index=True,
    )

    # Outreach
    relationship_depth: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_outreach_call: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    batch: Mapped["Batch"] = relationship("Batch", back_populates="students")
    payments: Mapped[list["Payment"]] = relationship(
        "Payment", back_populates="student", passive_deletes=True
    )
    refunds: Mapped[list["Refund"]] = relationship(
        "Refund", back_populates="student", passive_deletes=True
    )
    attendance: Mapped[list["Attendance"]] = relationship(
        "Attendance", back_populates="student", passive_deletes=True
    )
    outreach_calls: Mapped[list["OutreachCall"]] = relationship(
        "OutreachCall", back_populates="student", passive_deletes=True
    )

    @property
    def is_overpaid(self) -> bool:
        """Paid more than the final price; allowed, but worth a look."""
        return self.total_paid > self.final_price

    def __repr__(self) -> str:
        return f"<Student(id={self.id}, name={self.name})>"

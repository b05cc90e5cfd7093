"""Outreach call, interaction and peer-connection models."""

from datetime import date, datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import Date, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from school_ledger.core.database import BaseModel, utcnow


class CallPriority(str, Enum):
    """How soon a call should happen."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


CALL_PRIORITY_RANK = {CallPriority.LOW: 0, CallPriority.MEDIUM: 1, CallPriority.HIGH: 2}


class CallStatus(str, Enum):
    """Lifecycle of a call. COMPLETED is terminal."""

    PENDING = "PENDING"
    SNOOZED = "SNOOZED"
    COMPLETED = "COMPLETED"


OPEN_CALL_STATUSES = (CallStatus.PENDING, CallStatus.SNOOZED)


class CallType(str, Enum):
    """What a call is about."""

    URGENT = "URGENT"
    CHECK_IN = "CHECK_IN"
    PAYMENT = "PAYMENT"
    ATTENDANCE = "ATTENDANCE"
    ONBOARDING = "ONBOARDING"
    MILESTONE = "MILESTONE"


class Sentiment(str, Enum):
    """How the student came across on a completed call."""

    VERY_NEGATIVE = "VERY_NEGATIVE"
    NEGATIVE = "NEGATIVE"
    NEUTRAL = "NEUTRAL"
    POSITIVE = "POSITIVE"
    VERY_POSITIVE = "VERY_POSITIVE"


class InteractionType(str, Enum):
    """Channel of a logged contact."""

    CALL = "CALL"
    WHATSAPP = "WHATSAPP"
    EMAIL = "EMAIL"
    MEETING = "MEETING"
    NOTE = "NOTE"


CONNECTION_INTRODUCED = "INTRODUCED"


class OutreachCall(BaseModel):
    """A retention call scheduled with a student."""

    __tablename__ = "outreach_calls"

    student_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    scheduled_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    priority: Mapped[CallPriority] = mapped_column(String(10), nullable=False)
    status: Mapped[CallStatus] = mapped_column(
        String(20),
        default=CallStatus.PENDING,
        nullable=False,
        index=True,
    )
    call_type: Mapped[CallType] = mapped_column(String(20), nullable=False)
    purpose: Mapped[str | None] = mapped_column(String(500))
    pre_call_notes: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[str | None] = mapped_column(String(200))

    # Completion
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_by: Mapped[str | None] = mapped_column(String(200))
    duration: Mapped[int | None] = mapped_column(Integer)  # minutes
    call_notes: Mapped[str | None] = mapped_column(Text)
    sentiment: Mapped[Sentiment | None] = mapped_column(String(20))
    next_call_date: Mapped[date | None] = mapped_column(Date)

    # Snoozing
    snoozed_until: Mapped[date | None] = mapped_column(Date)
    snooze_reason: Mapped[str | None] = mapped_column(String(500))
    attempt_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    student: Mapped["Student"] = relationship("Student", back_populates="outreach_calls")

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_CALL_STATUSES

    def __repr__(self) -> str:
        return f"<OutreachCall(id={self.id}, student={self.student_id}, status={self.status})>"


class StudentInteraction(BaseModel):
    """A logged contact with a student, on any channel."""

    __tablename__ = "student_interactions"

    student_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    interaction_type: Mapped[InteractionType] = mapped_column(String(20), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    user_name: Mapped[str | None] = mapped_column(String(200))

    def __repr__(self) -> str:
        return f"<StudentInteraction(student={self.student_id}, type={self.interaction_type})>"


class StudentConnection(BaseModel):
    """Directed introduction edge. Always written together with its mirror."""

    __tablename__ = "student_connections"
    __table_args__ = (
        UniqueConstraint("student_id", "connected_student_id", name="uq_student_connection_pair"),
    )

    student_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    connected_student_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
    )
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=CONNECTION_INTRODUCED, nullable=False)
    introduced_by: Mapped[str | None] = mapped_column(String(200))
    introduced_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)

    def __repr__(self) -> str:
        return f"<StudentConnection({self.student_id} -> {self.connected_student_id})>"

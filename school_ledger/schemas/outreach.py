"""Outreach call schemas."""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from school_ledger.models.outreach import (
    CallPriority,
    CallStatus,
    CallType,
    InteractionType,
    Sentiment,
)
from school_ledger.models.student import ChurnRisk, Level, PaymentStatus
from school_ledger.schemas.events import AuditRecord, DomainEvent
from school_ledger.schemas.student import StudentResponse
from school_ledger.schemas.validators import DisplayMoney, DisplayPercent


class CallComplete(BaseModel):
    """Schema for completing a call."""

    duration: int | None = Field(None, ge=1, le=300, description="Minutes")
    call_notes: str = Field(..., min_length=10, max_length=5000)
    sentiment: Sentiment | None = None
    next_call_date: date | None = None
    schedule_next: bool = True


class CallSnooze(BaseModel):
    """Schema for pushing a call to a later date."""

    snooze_until: date
    snooze_reason: str = Field(..., min_length=5, max_length=500)
    not_reachable: bool = False


class CallUpdate(BaseModel):
    """Schema for editing an open call."""

    priority: CallPriority | None = None
    purpose: str | None = Field(None, min_length=5, max_length=500)
    pre_call_notes: str | None = Field(None, max_length=2000)
    scheduled_date: date | None = None


class CallResponse(BaseModel):
    """Schema for call response."""

    id: UUID
    student_id: UUID
    scheduled_date: date
    priority: CallPriority
    status: CallStatus
    call_type: CallType
    purpose: str | None
    pre_call_notes: str | None
    created_by: str | None
    completed_at: datetime | None
    completed_by: str | None
    duration: int | None
    call_notes: str | None
    sentiment: Sentiment | None
    next_call_date: date | None
    snoozed_until: date | None
    snooze_reason: str | None
    attempt_count: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CallCompletionResponse(BaseModel):
    """Completed call, updated student and the follow-up, if one was booked."""

    call: CallResponse
    student: StudentResponse
    next_call: CallResponse | None
    audit: list[AuditRecord]
    events: list[DomainEvent]


class CandidateStats(BaseModel):
    """Signals that put a student on the call list."""

    attendance_rate: DisplayPercent
    consecutive_absences: int
    classes_attended: int
    total_classes: int
    payment_status: PaymentStatus
    balance: DisplayMoney
    currency: str
    churn_risk: ChurnRisk


class CallCandidate(BaseModel):
    """A student who needs a call, with what to talk about."""

    student_id: UUID
    student_name: str
    whatsapp: str | None
    level: Level
    priority: CallPriority
    call_type: CallType
    reasons: list[str]
    talking_points: list[str]
    stats: CandidateStats


class CallCandidateList(BaseModel):
    """Today's call list."""

    calls: list[CallCandidate]
    total: int
    by_priority: dict[str, int]
    by_type: dict[str, int]


class ScheduleCallsRequest(BaseModel):
    """Book calls for the current candidates."""

    scheduled_date: date | None = None
    limit: int = Field(20, ge=1, le=200)


class ScheduleCallsResponse(BaseModel):
    """Calls booked and students skipped because a call was already open."""

    calls: list[CallResponse]
    skipped: int
    events: list[DomainEvent]


class InteractionCreate(BaseModel):
    """Log a contact with a student."""

    interaction_type: InteractionType
    notes: str | None = Field(None, max_length=5000)


class InteractionResponse(BaseModel):
    """Schema for interaction response."""

    id: UUID
    student_id: UUID
    interaction_type: InteractionType
    notes: str | None
    user_name: str | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OutreachStats(BaseModel):
    """Outreach activity for a date range."""

    calls_this_week: int
    calls_this_month: int
    total_calls: int
    sentiment_distribution: dict[str, int]
    calls_by_type: dict[str, int]
    calls_by_priority: dict[str, int]
    average_duration: Decimal | None
    connections_made: int
    upcoming_calls: int

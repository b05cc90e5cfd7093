"""Peer-connection schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from school_ledger.models.student import Level
from school_ledger.schemas.events import DomainEvent


class ConnectionCreate(BaseModel):
    """Schema for introducing two students to each other."""

    student_id: UUID
    connected_student_id: UUID
    reason: str = Field(..., min_length=20, max_length=1000)
    send_introduction: bool = True
    notes: str | None = Field(None, max_length=1000)


class ConnectionResponse(BaseModel):
    """Schema for one directed connection."""

    id: UUID
    student_id: UUID
    connected_student_id: UUID
    reason: str
    status: str
    introduced_by: str | None
    introduced_at: datetime
    notes: str | None

    model_config = ConfigDict(from_attributes=True)


class ConnectionPairResponse(BaseModel):
    """Both directions of a new connection."""

    connection: ConnectionResponse
    mirror: ConnectionResponse
    events: list[DomainEvent]


class SuggestedPeer(BaseModel):
    """Minimal view of a suggested student."""

    id: UUID
    name: str
    level: Level
    batch_id: UUID | None


class ConnectionSuggestion(BaseModel):
    """A scored peer with the factors behind the score."""

    student: SuggestedPeer
    score: int
    reason: str
    match_factors: list[str]


class ConnectionSuggestionList(BaseModel):
    """Suggestions for one student, best first."""

    target_student: SuggestedPeer
    suggestions: list[ConnectionSuggestion]
    total: int

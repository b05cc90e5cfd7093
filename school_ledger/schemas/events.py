"""Audit records and domain events handed back to the caller."""

from datetime import date, datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from school_ledger.core.database import utcnow


class AuditRecord(BaseModel):
    """
    What a mutating operation changed.

    The engine never writes these anywhere; the caller decides where they go.
    `before` / `after` hold the ledger or call fields touched by the operation.
    """

    actor: str | None = None
    action: str
    entity: str
    entity_id: UUID
    student_id: UUID | None = None
    before: dict[str, Any] = Field(default_factory=dict)
    after: dict[str, Any] = Field(default_factory=dict)
    recorded_at: datetime = Field(default_factory=utcnow)


class DomainEvent(BaseModel):
    """Something a notification channel may want to act on."""

    name: str
    student_id: UUID
    due_date: date | None = None
    payload: dict[str, Any] = Field(default_factory=dict)
    occurred_at: datetime = Field(default_factory=utcnow)

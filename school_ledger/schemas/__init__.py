"""Pydantic schemas."""

from school_ledger.schemas.events import AuditRecord, DomainEvent
from school_ledger.schemas.student import (
    PricingUpdate,
    StudentCreate,
    StudentLedgerResponse,
    StudentListResponse,
    StudentResponse,
    StudentUpdate,
)
from school_ledger.schemas.payment import (
    PaymentCreate,
    PaymentLedgerResponse,
    PaymentResponse,
    PaymentUpdate,
    RefundCreate,
    RefundLedgerResponse,
    RefundResponse,
)

__all__ = [
    # Events
    "AuditRecord",
    "DomainEvent",
    # Student
    "PricingUpdate",
    "StudentCreate",
    "StudentLedgerResponse",
    "StudentListResponse",
    "StudentResponse",
    "StudentUpdate",
    # Payment
    "PaymentCreate",
    "PaymentLedgerResponse",
    "PaymentResponse",
    "PaymentUpdate",
    "RefundCreate",
    "RefundLedgerResponse",
    "RefundResponse",
]

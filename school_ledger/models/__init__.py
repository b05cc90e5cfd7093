# Database models

from school_ledger.models.student import (
    Batch,
    BatchTiming,
    ChurnRisk,
    CompletionStatus,
    Level,
    PaymentStatus,
    Student,
)
from school_ledger.models.payment import (
    Payment,
    PaymentMethod,
    PaymentRecordStatus,
    Refund,
    RefundMethod,
    RefundReason,
)
from school_ledger.models.attendance import Attendance, AttendanceStatus
from school_ledger.models.outreach import (
    CallPriority,
    CallStatus,
    CallType,
    InteractionType,
    OutreachCall,
    Sentiment,
    StudentConnection,
    StudentInteraction,
)

__all__ = [
    "Batch",
    "BatchTiming",
    "ChurnRisk",
    "CompletionStatus",
    "Level",
    "PaymentStatus",
    "Student",
    "Payment",
    "PaymentMethod",
    "PaymentRecordStatus",
    "Refund",
    "RefundMethod",
    "RefundReason",
    "Attendance",
    "AttendanceStatus",
    "CallPriority",
    "CallStatus",
    "CallType",
    "InteractionType",
    "OutreachCall",
    "Sentiment",
    "StudentConnection",
    "StudentInteraction",
]

"""Values returned by mutating engine operations."""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from school_ledger.models.attendance import Attendance
from school_ledger.models.outreach import OutreachCall, StudentConnection
from school_ledger.models.payment import Payment, Refund
from school_ledger.models.student import ChurnRisk, PaymentStatus, Student
from school_ledger.schemas.events import AuditRecord, DomainEvent


@dataclass(frozen=True)
class LedgerSnapshot:
    """Derived ledger fields of one student at one point in time."""

    final_price: Decimal
    total_paid: Decimal
    total_paid_eur: Decimal
    balance: Decimal
    eur_equivalent: Decimal
    exchange_rate_used: Decimal | None
    payment_status: PaymentStatus

    @classmethod
    def of(cls, student: Student) -> "LedgerSnapshot":
        return cls(
            final_price=student.final_price,
            total_paid=student.total_paid,
            total_paid_eur=student.total_paid_eur,
            balance=student.balance,
            eur_equivalent=student.eur_equivalent,
            exchange_rate_used=student.exchange_rate_used,
            payment_status=PaymentStatus(student.payment_status),
        )


@dataclass(frozen=True)
class AttendanceStats:
    """Attendance-derived fields of one student."""

    total_classes: int
    classes_attended: int
    attendance_rate: Decimal
    consecutive_absences: int
    last_class_date: date | None
    last_absence_date: date | None
    churn_risk: ChurnRisk


@dataclass
class LedgerResult:
    student: Student
    payment: Payment | None = None
    refund: Refund | None = None
    audit: list[AuditRecord] = field(default_factory=list)
    events: list[DomainEvent] = field(default_factory=list)


@dataclass
class AttendanceResult:
    records: list[Attendance]
    students: list[Student]
    events: list[DomainEvent] = field(default_factory=list)


@dataclass
class CallCompletionResult:
    call: OutreachCall
    student: Student
    next_call: OutreachCall | None = None
    audit: list[AuditRecord] = field(default_factory=list)
    events: list[DomainEvent] = field(default_factory=list)


@dataclass
class ConnectionResult:
    connection: StudentConnection
    mirror: StudentConnection
    events: list[DomainEvent] = field(default_factory=list)


@dataclass
class ScheduleResult:
    calls: list[OutreachCall]
    skipped: int = 0
    events: list[DomainEvent] = field(default_factory=list)

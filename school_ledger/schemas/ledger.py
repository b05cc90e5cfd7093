"""Ledger report schemas."""

from uuid import UUID

from pydantic import BaseModel

from school_ledger.schemas.validators import DisplayMoney


class OverpaidStudent(BaseModel):
    """A student whose payments exceed the final price."""

    id: UUID
    name: str
    currency: str
    final_price: DisplayMoney
    total_paid: DisplayMoney
    overpaid_by: DisplayMoney


class LedgerSummary(BaseModel):
    """School-wide ledger totals, aggregated in EUR."""

    student_count: int
    total_billed_eur: DisplayMoney
    total_collected_eur: DisplayMoney
    total_outstanding_eur: DisplayMoney
    total_refunded_eur: DisplayMoney
    status_counts: dict[str, int]
    overpaid_students: list[OverpaidStudent]

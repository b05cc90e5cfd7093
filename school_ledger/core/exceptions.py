"""Business-rule errors raised by the engine services."""

from enum import Enum

from fastapi import status


class ErrorKind(str, Enum):
    """Machine-readable reason attached to every engine error."""

    INVALID_AMOUNT = "INVALID_AMOUNT"
    INVALID_DISCOUNT = "INVALID_DISCOUNT"
    INVALID_REFUND_AMOUNT = "INVALID_REFUND_AMOUNT"
    INVALID_SNOOZE_DATE = "INVALID_SNOOZE_DATE"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    SELF_CONNECTION = "SELF_CONNECTION"
    ALREADY_COMPLETED = "ALREADY_COMPLETED"
    DUPLICATE_CONNECTION = "DUPLICATE_CONNECTION"
    PAYMENTS_EXIST = "PAYMENTS_EXIST"
    REFUNDS_EXIST = "REFUNDS_EXIST"
    REFUNDS_EXCEED_PAYMENTS = "REFUNDS_EXCEED_PAYMENTS"
    PAYMENT_NOT_REFUNDABLE = "PAYMENT_NOT_REFUNDABLE"
    STUDENT_NOT_FOUND = "STUDENT_NOT_FOUND"
    PAYMENT_NOT_FOUND = "PAYMENT_NOT_FOUND"
    CALL_NOT_FOUND = "CALL_NOT_FOUND"
    ATTENDANCE_NOT_FOUND = "ATTENDANCE_NOT_FOUND"
    BATCH_NOT_FOUND = "BATCH_NOT_FOUND"
    LEDGER_INCONSISTENT = "LEDGER_INCONSISTENT"


class LedgerError(Exception):
    """Base class for engine errors. None of them are retried automatically."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, kind: ErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message

    def __repr__(self) -> str:
        return f"<{type(self).__name__}(kind={self.kind.value}, message={self.message!r})>"


class ValidationError(LedgerError):
    """Malformed or out-of-range input, rejected before any write."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class PreconditionError(LedgerError):
    """Well-formed request that the current state does not allow."""

    status_code = status.HTTP_409_CONFLICT


class NotFoundError(LedgerError):
    """Referenced student, payment, call or record does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class ConsistencyError(LedgerError):
    """A recompute produced state that breaks a ledger invariant."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

"""Currency-safe decimal arithmetic and EUR/INR conversion."""

from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from school_ledger.core.config import settings
from school_ledger.core.exceptions import ErrorKind, ValidationError

CENT = Decimal("0.01")
TENTH = Decimal("0.1")


class Currency(str, Enum):
    """Currencies a student can be billed in."""

    EUR = "EUR"
    INR = "INR"


def normalize_currency(value: str | None) -> Currency:
    """Map free-form input to a supported currency; anything but INR is EUR."""
    if value is not None and value.strip().upper() == Currency.INR.value:
        return Currency.INR
    return Currency.EUR


def as_decimal(value: Decimal | int | str) -> Decimal:
    """Coerce to Decimal, refusing floats so binary rounding never enters the ledger."""
    if isinstance(value, float):
        raise ValidationError(
            ErrorKind.INVALID_AMOUNT,
            f"Monetary values must be decimals, got float {value!r}",
        )
    if isinstance(value, Decimal):
        return value
    return Decimal(value)


def round_money(value: Decimal) -> Decimal:
    """Round a financial amount for display (2 decimals)."""
    return as_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def round_percent(value: Decimal) -> Decimal:
    """Round a percentage for display (1 decimal)."""
    return as_decimal(value).quantize(TENTH, rounding=ROUND_HALF_UP)


class Money:
    """
    EUR/INR converter bound to one exchange rate.

    The rate is the number of INR in one EUR. It is fixed for the lifetime of
    the instance; build a new instance to use another rate.
    """

    def __init__(self, exchange_rate: Decimal | int | str) -> None:
        rate = as_decimal(exchange_rate)
        if rate <= 0:
            raise ValidationError(
                ErrorKind.INVALID_AMOUNT,
                f"Exchange rate must be positive, got {rate}",
            )
        self.exchange_rate = rate

    def to_eur(self, amount: Decimal | int | str, currency: Currency | str) -> Decimal:
        """Convert an amount in `currency` to EUR. Not rounded."""
        amount = as_decimal(amount)
        if amount == 0:
            return Decimal(0)
        if normalize_currency(currency) == Currency.INR:
            return amount / self.exchange_rate
        return amount

    def rate_for(self, currency: Currency | str) -> Decimal | None:
        """Rate to stamp on a student ledger; None when no conversion happens."""
        if normalize_currency(currency) == Currency.INR:
            return self.exchange_rate
        return None

    def __repr__(self) -> str:
        return f"<Money(exchange_rate={self.exchange_rate})>"


def get_money() -> Money:
    """Money bound to the configured exchange rate."""
    return Money(settings.INR_PER_EUR)

"""Custom validators and types."""

from decimal import Decimal
from typing import Annotated

from pydantic import AfterValidator, Field, PlainSerializer

from school_ledger.core.money import Currency, normalize_currency, round_money, round_percent


def validate_currency(value: str) -> str:
    """
    Normalize a currency code.

    Accepts any casing ("inr", " INR "). Anything that is not INR is billed
    in EUR.
    """
    return normalize_currency(value).value


CurrencyCode = Annotated[
    str,
    Field(min_length=3, max_length=3, examples=[Currency.EUR.value]),
    AfterValidator(validate_currency),
]

# Ledger values are kept unrounded; rounding happens only on the way out.
DisplayMoney = Annotated[Decimal, PlainSerializer(round_money, return_type=Decimal)]
DisplayPercent = Annotated[Decimal, PlainSerializer(round_percent, return_type=Decimal)]

PositiveAmount = Annotated[Decimal, Field(gt=0, max_digits=12, decimal_places=2)]
NonNegativeAmount = Annotated[Decimal, Field(ge=0, max_digits=12, decimal_places=2)]

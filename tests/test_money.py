"""Tests for currency conversion, rounding and currency validation."""

from decimal import Decimal

import pytest
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from school_ledger.core.exceptions import ErrorKind, ValidationError
from school_ledger.core.money import (
    Currency,
    Money,
    as_decimal,
    normalize_currency,
    round_money,
    round_percent,
)
from school_ledger.schemas.validators import CurrencyCode, DisplayMoney


class PriceModel(BaseModel):
    """Test model with a currency and a display amount."""
    currency: CurrencyCode
    amount: DisplayMoney


class TestMoney:
    """Tests for EUR/INR conversion."""

    def test_eur_passes_through(self, money: Money):
        assert money.to_eur(Decimal("400.00"), Currency.EUR) == Decimal("400.00")

    def test_inr_divides_by_rate(self, money: Money):
        assert money.to_eur(Decimal("10450"), Currency.INR) == Decimal("100")

    def test_zero_stays_zero(self, money: Money):
        assert money.to_eur(Decimal("0"), Currency.INR) == Decimal("0")

    def test_rate_for(self, money: Money):
        """Only INR ledgers get a stamped rate."""
        assert money.rate_for(Currency.INR) == Decimal("104.5")
        assert money.rate_for(Currency.EUR) is None

    def test_rate_must_be_positive(self):
        with pytest.raises(ValidationError) as exc_info:
            Money(Decimal("0"))
        assert exc_info.value.kind == ErrorKind.INVALID_AMOUNT

    def test_floats_rejected(self, money: Money):
        with pytest.raises(ValidationError) as exc_info:
            money.to_eur(12.5, Currency.EUR)
        assert exc_info.value.kind == ErrorKind.INVALID_AMOUNT

    def test_as_decimal_accepts_str_and_int(self):
        assert as_decimal("12.30") == Decimal("12.30")
        assert as_decimal(7) == Decimal(7)


class TestRounding:
    """Tests for presentation rounding."""

    def test_round_money_half_up(self):
        assert round_money(Decimal("2.345")) == Decimal("2.35")
        assert round_money(Decimal("2.344")) == Decimal("2.34")

    def test_round_percent(self):
        assert round_percent(Decimal("66.6667")) == Decimal("66.7")
        assert round_percent(Decimal("20")) == Decimal("20.0")


class TestCurrencyValidation:
    """Tests for currency normalization."""

    def test_normalize_currency(self):
        assert normalize_currency("INR") == Currency.INR
        assert normalize_currency(" inr ") == Currency.INR
        assert normalize_currency("EUR") == Currency.EUR
        assert normalize_currency("USD") == Currency.EUR
        assert normalize_currency(None) == Currency.EUR

    def test_currency_code_field(self):
        model = PriceModel(currency="inr", amount=Decimal("1"))
        assert model.currency == "INR"

    def test_unknown_currency_falls_back_to_eur(self):
        model = PriceModel(currency="GBP", amount=Decimal("1"))
        assert model.currency == "EUR"

    def test_currency_code_length(self):
        with pytest.raises(PydanticValidationError):
            PriceModel(currency="EURO", amount=Decimal("1"))

    def test_display_money_rounds_on_dump(self):
        model = PriceModel(currency="EUR", amount=Decimal("95.693779904"))
        assert model.model_dump()["amount"] == Decimal("95.69")

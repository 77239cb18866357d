"""Tests for the signed money model."""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from app.schemas.money import Money, MoneySign, MoneyWithSign, add_signed, currency_decimals


class TestCurrencyDecimals:
    def test_crypto_exponents(self):
        assert currency_decimals("ETH") == 18
        assert currency_decimals("BTC") == 8

    def test_fiat_exponents(self):
        assert currency_decimals("USD") == 2
        assert currency_decimals("eur") == 2
        assert currency_decimals("JPY") == 0
        assert currency_decimals("KWD") == 3


class TestMoneyWithSign:
    def test_amount_must_be_non_negative(self):
        """Direction lives in the sign, never in the amount."""
        with pytest.raises(ValidationError):
            Money(amount=-1, currency="USD")

    def test_signed_amount(self):
        debt = MoneyWithSign(money=Money(amount=2500, currency="USD"), sign=MoneySign.NEGATIVE)
        assert debt.signed_amount == -2500

    def test_from_signed_derives_sign(self):
        assert MoneyWithSign.from_signed("USD", -300).sign == MoneySign.NEGATIVE
        assert MoneyWithSign.from_signed("USD", -300).money.amount == 300
        assert MoneyWithSign.from_signed("USD", 300).sign == MoneySign.POSITIVE

    def test_zero_is_positive(self):
        assert MoneyWithSign.from_signed("USD", 0).sign == MoneySign.POSITIVE

    def test_from_decimal_scales_to_base_units(self):
        eth = MoneyWithSign.from_decimal("ETH", "1.5")
        assert eth.money.amount == 1_500_000_000_000_000_000
        assert eth.sign == MoneySign.POSITIVE

        usd = MoneyWithSign.from_decimal("USD", Decimal("-199.99"))
        assert usd.money.amount == 19999
        assert usd.sign == MoneySign.NEGATIVE

    def test_from_decimal_with_explicit_sign(self):
        balance = MoneyWithSign.from_decimal("BTC", "0.5", MoneySign.NEGATIVE)
        assert balance.money.amount == 50_000_000
        assert balance.signed_amount == -50_000_000

    def test_to_decimal(self):
        assert MoneyWithSign.from_signed("USD", -12345).to_decimal() == Decimal("-123.45")
        assert MoneyWithSign.from_signed("JPY", 500).to_decimal() == Decimal("500")


class TestAddSigned:
    def test_sum_crossing_zero_flips_sign(self):
        total = add_signed(
            MoneyWithSign.from_signed("USD", 5000), MoneyWithSign.from_signed("USD", -8000)
        )
        assert total.money.amount == 3000
        assert total.sign == MoneySign.NEGATIVE

    def test_sum_keeps_first_currency(self):
        total = add_signed(
            MoneyWithSign.from_signed("EUR", 100), MoneyWithSign.from_signed("EUR", 200)
        )
        assert total.money.currency == "EUR"
        assert total.signed_amount == 300

"""Tests for currency conversion and formatting."""

import pytest

from cricket_auction.utils.currency import CRORE, LAKH, CurrencyUnit, format_amount, parse_amount
from cricket_auction.utils.errors import ValidationError


class TestParseAmount:
    def test_lakhs(self):
        assert parse_amount(50, "Lakhs") == 50 * LAKH

    def test_crores(self):
        assert parse_amount(2, CurrencyUnit.CRORES) == 2 * CRORE

    def test_fractional_crores_are_exact(self):
        assert parse_amount(1.1, "Crores") == 11_000_000
        assert parse_amount("2.5", "Crores") == 25_000_000

    def test_zero(self):
        assert parse_amount(0, "Lakhs") == 0

    @pytest.mark.parametrize("value", [-1, "-0.5"])
    def test_negative_rejected(self, value):
        with pytest.raises(ValidationError):
            parse_amount(value, "Lakhs")

    @pytest.mark.parametrize("value", ["abc", None, True, float("nan"), float("inf")])
    def test_non_numeric_rejected(self, value):
        with pytest.raises(ValidationError):
            parse_amount(value, "Lakhs")

    def test_unknown_unit(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_amount(10, "Millions")

        assert exc_info.value.code == "INVALID_PAYLOAD"
        assert exc_info.value.details["allowed"] == ["Lakhs", "Crores"]


class TestFormatAmount:
    @pytest.mark.parametrize(
        "amount,expected",
        [
            (15_000_000, "₹1.50 Cr"),
            (CRORE, "₹1.00 Cr"),
            (2_500_000, "₹25.00 L"),
            (LAKH, "₹1.00 L"),
            (50_000, "₹50,000"),
            (0, "₹0"),
        ],
    )
    def test_format(self, amount, expected):
        assert format_amount(amount) == expected

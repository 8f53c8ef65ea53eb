from decimal import Decimal

import pytest
from shared.money import format_money, minor_digits, round_minor, to_decimal


class TestToDecimal:
    def test_float_has_no_binary_noise(self):
        assert to_decimal(0.1) == Decimal("0.1")

    def test_passthrough_and_strings(self):
        value = Decimal("12.50")
        assert to_decimal(value) is value
        assert to_decimal("3") == Decimal("3")
        assert to_decimal(7) == Decimal("7")


class TestRoundMinor:
    @pytest.mark.parametrize(
        "amount, digits, expected",
        [
            (Decimal("2.005"), 2, Decimal("2.01")),
            (Decimal("2.004"), 2, Decimal("2.00")),
            (Decimal("0.125"), 2, Decimal("0.13")),
            (Decimal("1499.5"), 0, Decimal("1500")),
        ],
    )
    def test_rounds_half_up(self, amount, digits, expected):
        assert round_minor(amount, digits) == expected


class TestCurrencies:
    def test_minor_digits(self):
        assert minor_digits("kes") == 2
        assert minor_digits("UGX") == 0

    def test_unknown_currency(self):
        with pytest.raises(ValueError, match="Unsupported currency"):
            minor_digits("XYZ")

    def test_format_money(self):
        assert format_money(Decimal("1500"), "KES") == "KES 1,500.00"
        assert format_money(Decimal("2500.4"), "UGX") == "UGX 2,500"

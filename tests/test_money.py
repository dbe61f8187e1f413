"""
Unit tests for the money & rounding kernel.
"""

from decimal import Decimal

import pytest

from aquafin.core.money import mean, round2, sum_attr, sum_decimals, to_decimal


class TestToDecimal:
    def test_none_uses_default(self):
        assert to_decimal(None) == Decimal("0")
        assert to_decimal(None, Decimal("15")) == Decimal("15")

    def test_float_goes_through_repr(self):
        assert to_decimal(1.005) == Decimal("1.005")
        assert to_decimal(0.1) + to_decimal(0.2) == Decimal("0.3")

    def test_string_and_int(self):
        assert to_decimal(" 12.50 ") == Decimal("12.50")
        assert to_decimal(7) == Decimal("7")

    def test_decimal_passes_through(self):
        value = Decimal("3.14159")
        assert to_decimal(value) is value

    def test_rejects_bool(self):
        with pytest.raises(TypeError):
            to_decimal(True)

    def test_rejects_garbage(self):
        with pytest.raises(ValueError, match="Not a decimal"):
            to_decimal("twelve")


class TestRound2:
    @pytest.mark.parametrize(
        "value, expected",
        [
            (1.005, "1.01"),
            ("1.004", "1.00"),
            ("2.675", "2.68"),
            ("-1.005", "-1.01"),
            (Decimal("333.333333"), "333.33"),
            (0, "0.00"),
        ],
    )
    def test_half_up(self, value, expected):
        assert round2(value) == Decimal(expected)


class TestAggregates:
    def test_sum_of_empty_is_zero(self):
        assert sum_decimals([]) == Decimal("0")

    def test_sum_is_exact(self):
        assert sum_decimals([0.1] * 10) == Decimal("1.0")

    def test_sum_attr_treats_none_as_zero(self):
        class Row:
            def __init__(self, amount):
                self.amount = amount

        assert sum_attr([Row(Decimal("5")), Row(None), Row("2.5")], "amount") == Decimal("7.5")

    def test_mean(self):
        assert mean([]) == Decimal("0")
        assert mean([Decimal("1"), Decimal("2")]) == Decimal("1.5")

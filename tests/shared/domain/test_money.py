"""Tests for fixed-point money helpers."""

from decimal import Decimal

import pytest

from shared.money import ZERO, line_total, sum_money, to_money


class TestToMoney:
    def test_quantizes_to_cents(self):
        assert to_money("10") == Decimal("10.00")
        assert to_money(Decimal("2.345")) == Decimal("2.35")

    def test_float_goes_through_str(self):
        assert to_money(0.1) == Decimal("0.10")
        assert to_money(19.99) == Decimal("19.99")

    def test_rounds_half_up(self):
        assert to_money("0.005") == Decimal("0.01")
        assert to_money("1.0049") == Decimal("1.00")

    def test_rejects_garbage(self):
        with pytest.raises(ValueError):
            to_money("ten dollars")
        with pytest.raises(ValueError):
            to_money(None)


class TestTotals:
    def test_line_total(self):
        assert line_total(2, "10.00") == Decimal("20.00")
        assert line_total(3, 0.1) == Decimal("0.30")

    def test_sum_money_has_no_float_drift(self):
        assert sum_money([0.1] * 10) == Decimal("1.00")

    def test_sum_of_nothing_is_zero(self):
        assert sum_money([]) == ZERO

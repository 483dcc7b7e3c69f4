"""Tests for paise/rupee conversion."""

from decimal import Decimal

import pytest

from app.utils.money import percent_of, to_paise, to_rupees


class TestToPaise:
    @pytest.mark.parametrize(
        ("rupees", "paise"),
        [
            (Decimal("50"), 5_000),
            (Decimal("0.01"), 1),
            ("1000.00", 100_000),
            (7, 700),
            (Decimal("12.50"), 1_250),
        ],
    )
    def test_converts(self, rupees, paise):
        assert to_paise(rupees) == paise

    def test_rejects_sub_paisa_precision(self):
        with pytest.raises(ValueError, match="two decimal places"):
            to_paise(Decimal("10.005"))

    @pytest.mark.parametrize("value", ["ten", "NaN", "Infinity"])
    def test_rejects_non_numbers(self, value):
        with pytest.raises(ValueError):
            to_paise(value)


class TestToRupees:
    def test_always_two_places(self):
        assert str(to_rupees(5_000)) == "50.00"
        assert str(to_rupees(1)) == "0.01"
        assert str(to_rupees(0)) == "0.00"


class TestPercentOf:
    def test_withdrawal_tax(self):
        assert percent_of(3_000, 10) == 300

    def test_rounds_half_up_to_the_paisa(self):
        # 10% of 1.05 rupees is 10.5 paise
        assert percent_of(105, 10) == 11
        assert percent_of(104, 10) == 10

    def test_zero_percent(self):
        assert percent_of(9_999, 0) == 0

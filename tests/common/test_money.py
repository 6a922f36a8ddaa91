# tests/common/test_money.py
"""
Тесты денежных сумм.
"""

from decimal import Decimal

import pytest

from roadside.common.money import to_money


class TestToMoney:
    """Тесты для to_money."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            (50, Decimal("50.00")),
            ("12.345", Decimal("12.35")),
            ("12.344", Decimal("12.34")),
            (0.1, Decimal("0.10")),
            (Decimal("-20"), Decimal("-20.00")),
        ],
    )
    def test_quantizes_to_cents(self, value, expected) -> None:
        assert to_money(value) == expected

    def test_float_uses_its_repr(self) -> None:
        """0.1 + 0.2 не превращается в 0.30000000000000004."""
        assert to_money(0.1 + 0.2) == Decimal("0.30")

    def test_result_has_two_places(self) -> None:
        assert to_money(7).as_tuple().exponent == -2

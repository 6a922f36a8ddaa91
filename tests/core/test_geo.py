# tests/core/test_geo.py
"""
Тесты расчёта расстояния.
"""

from __future__ import annotations

import pytest

from roadside.core.geo import distance_km


class TestDistanceKm:
    """Тесты для distance_km."""

    def test_same_point_is_zero(self) -> None:
        assert distance_km(-23.55, -46.63, -23.55, -46.63) == pytest.approx(0.0, abs=1e-9)

    def test_symmetric(self) -> None:
        forward = distance_km(-23.55, -46.63, -22.90, -43.20)
        backward = distance_km(-22.90, -43.20, -23.55, -46.63)
        assert forward == pytest.approx(backward)

    def test_short_hop_in_sao_paulo(self) -> None:
        """Механик на (-23.55,-46.63), клиент на (-23.56,-46.64)."""
        d = distance_km(-23.55, -46.63, -23.56, -46.64)
        assert abs(d - 1.47) < 0.05
        assert d == pytest.approx(1.508, abs=0.01)

    def test_sao_paulo_to_rio(self) -> None:
        """Около 360 км по прямой."""
        d = distance_km(-23.5505, -46.6333, -22.9068, -43.1729)
        assert 350 < d < 370

    def test_one_degree_of_latitude(self) -> None:
        assert distance_km(0.0, 0.0, 1.0, 0.0) == pytest.approx(111.19, abs=0.01)

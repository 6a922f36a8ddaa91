"""
Геометрия: расстояние по большому кругу.
"""

from roadside.core.geo.distance import EARTH_RADIUS_KM, distance_km

__all__ = ["EARTH_RADIUS_KM", "distance_km"]

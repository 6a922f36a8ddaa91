"""
Источник текущего времени. Сервисы принимают clock параметром, чтобы тесты могли зафиксировать момент.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Текущее время в UTC."""
    return datetime.now(timezone.utc)

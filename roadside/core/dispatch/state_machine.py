# roadside/core/dispatch/state_machine.py
"""
Допустимые переходы статусов заявки.

    pending -> accepted -> arrived -> completed -> rated
    pending, accepted, arrived -> cancelled
    accepted -> completed (без отметки о прибытии)
"""

from __future__ import annotations

from roadside.common.constants import RequestStatus
from roadside.common.exceptions import InvalidState


class RequestStateMachine:
    """State machine заявки."""

    VALID_TRANSITIONS: dict[RequestStatus, list[RequestStatus]] = {
        RequestStatus.PENDING: [RequestStatus.ACCEPTED, RequestStatus.CANCELLED],
        RequestStatus.ACCEPTED: [RequestStatus.ARRIVED, RequestStatus.COMPLETED, RequestStatus.CANCELLED],
        RequestStatus.ARRIVED: [RequestStatus.COMPLETED, RequestStatus.CANCELLED],
        RequestStatus.COMPLETED: [RequestStatus.RATED],
        RequestStatus.RATED: [],
        RequestStatus.CANCELLED: [],
    }

    @classmethod
    def can_transition(cls, from_status: RequestStatus, to_status: RequestStatus) -> bool:
        """Проверяет, допустим ли переход."""
        return to_status in cls.VALID_TRANSITIONS.get(from_status, [])

    @classmethod
    def sources_of(cls, to_status: RequestStatus) -> tuple[RequestStatus, ...]:
        """Статусы, из которых достижим указанный."""
        return tuple(s for s, targets in cls.VALID_TRANSITIONS.items() if to_status in targets)

    @classmethod
    def validate_transition(cls, from_status: RequestStatus, to_status: RequestStatus) -> None:
        """
        Raises:
            InvalidState: переход недопустим
        """
        if not cls.can_transition(from_status, to_status):
            raise InvalidState(
                f"Недопустимый переход: {from_status.value} → {to_status.value}",
                {"status": from_status.value, "target": to_status.value},
            )

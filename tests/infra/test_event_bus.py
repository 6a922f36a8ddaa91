# tests/infra/test_event_bus.py
"""
Тесты для шины доменных событий.
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from roadside.infra.event_bus import DomainEvent, EventBus, EventTypes


@pytest.fixture
def bus() -> EventBus:
    EventBus._instance = None
    return EventBus()


def _connected(bus: EventBus) -> AsyncMock:
    bus._connection = MagicMock(is_closed=False)
    exchange = AsyncMock()
    bus._exchange = exchange
    return exchange


class TestDomainEvent:
    """Тесты сериализации DomainEvent."""

    def test_to_json(self) -> None:
        event = DomainEvent(event_type=EventTypes.REQUEST_ACCEPTED, payload={"request_id": "r-1"})

        data = json.loads(event.to_json())

        assert data["event_type"] == "request.accepted"
        assert data["payload"] == {"request_id": "r-1"}
        assert data["event_id"] == event.event_id
        assert data["timestamp"].endswith("Z")

    def test_from_json_restores_fields(self) -> None:
        original = DomainEvent(event_type=EventTypes.WITHDRAWAL_COMPLETED, payload={"amount": "30.00"})

        restored = DomainEvent.from_json(original.to_json())

        assert restored.event_id == original.event_id
        assert restored.event_type == original.event_type
        assert restored.payload == original.payload

    def test_unique_ids(self) -> None:
        assert DomainEvent().event_id != DomainEvent().event_id


class TestEventBus:
    """Тесты EventBus."""

    def test_not_connected_by_default(self, bus: EventBus) -> None:
        assert bus.is_connected is False

    @pytest.mark.asyncio
    async def test_publish_without_connection_is_dropped(self, bus: EventBus) -> None:
        await bus.publish(DomainEvent(event_type=EventTypes.REQUEST_CREATED))

    @pytest.mark.asyncio
    async def test_publish_uses_event_type_as_routing_key(self, bus: EventBus) -> None:
        exchange = _connected(bus)
        event = DomainEvent(event_type=EventTypes.REQUEST_SETTLED, payload={"request_id": "r-1"})

        await bus.publish(event)

        exchange.publish.assert_awaited_once()
        message = exchange.publish.await_args.args[0]
        assert exchange.publish.await_args.kwargs["routing_key"] == "request.settled"
        assert json.loads(message.body)["payload"] == {"request_id": "r-1"}

    @pytest.mark.asyncio
    async def test_publish_error_does_not_propagate(self, bus: EventBus) -> None:
        exchange = _connected(bus)
        exchange.publish.side_effect = RuntimeError("channel closed")

        await bus.publish(DomainEvent(event_type=EventTypes.REQUEST_CANCELLED))

    @pytest.mark.asyncio
    async def test_disconnect(self, bus: EventBus) -> None:
        _connected(bus)
        connection = bus._connection
        connection.close = AsyncMock()

        await bus.disconnect()

        connection.close.assert_awaited_once()
        assert bus.is_connected is False

    @pytest.mark.asyncio
    async def test_health_check(self, bus: EventBus) -> None:
        assert await bus.health_check() is False
        _connected(bus)
        assert await bus.health_check() is True

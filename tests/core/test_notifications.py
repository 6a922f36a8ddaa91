# tests/core/test_notifications.py
"""
Тесты realtime-уведомлений.
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest

from roadside.common.constants import NotificationType
from roadside.core.notifications.bus import NotificationBus, encode_event, user_channel
from roadside.core.users.models import User
from tests.fakes import Marketplace


class TestEncoding:
    """Тесты формата событий."""

    def test_user_channel(self) -> None:
        assert user_channel("u-1") == "notify:user:u-1"

    def test_encode_enum_event(self) -> None:
        data = json.loads(encode_event(NotificationType.MECHANIC_ARRIVED, {"request_id": "r-1"}))
        assert data == {"type": "mechanic_arrived", "payload": {"request_id": "r-1"}}

    def test_encode_string_event(self) -> None:
        assert json.loads(encode_event("custom", {}))["type"] == "custom"


class TestNotificationBus:
    """Тесты NotificationBus."""

    @pytest.mark.asyncio
    async def test_send_to_user(self, market: Marketplace) -> None:
        sent = await market.notifications.send_to_user(
            "client-1", NotificationType.SERVICE_REQUEST_ACCEPTED, {"request_id": "r-1"}
        )

        assert sent is True
        assert market.redis.published == [
            ("notify:user:client-1", {"type": "service_request_accepted", "payload": {"request_id": "r-1"}})
        ]

    @pytest.mark.asyncio
    async def test_publish_failure_is_swallowed(self, market: Marketplace) -> None:
        market.redis.fail_publish = True

        sent = await market.notifications.send_to_user("client-1", NotificationType.PAYMENT_RELEASED, {})

        assert sent is False

    @pytest.mark.asyncio
    async def test_broadcast_excludes_user(
        self, market: Marketplace, worker_user: User, second_worker: User
    ) -> None:
        await market.go_online(worker_user)
        await market.go_online(second_worker)

        delivered = await market.notifications.broadcast_to_online_workers(
            NotificationType.SERVICE_REQUEST_TAKEN, {"request_id": "r-1"}, exclude_user_id="worker-1"
        )

        assert delivered == 1
        assert market.redis.events_for("worker-2") == ["service_request_taken"]
        assert market.redis.events_for("worker-1") == []

    @pytest.mark.asyncio
    async def test_broadcast_without_presence(self, mock_redis: AsyncMock) -> None:
        presence = AsyncMock()
        presence.online_worker_ids.side_effect = ConnectionError("redis down")
        bus = NotificationBus(mock_redis, presence)

        assert await bus.broadcast_to_online_workers(NotificationType.NEW_SERVICE_REQUEST, {}) == 0
        mock_redis.publish.assert_not_called()

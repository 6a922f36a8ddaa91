# tests/services/test_realtime.py
"""
Тесты доставки realtime-событий: менеджер соединений,
подписчик Redis и обработка входящих WebSocket сообщений.
"""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from roadside.common.constants import UserRole
from roadside.common.exceptions import ValidationError
from roadside.core.users.models import User
from roadside.services.api.routes import ws
from roadside.services.realtime import ConnectionManager, RedisSubscriber, channel_user_id, forward_to_connections


def _socket() -> AsyncMock:
    websocket = AsyncMock()
    websocket.accept = AsyncMock()
    websocket.send_json = AsyncMock()
    websocket.close = AsyncMock()
    return websocket


# =============================================================================
# CONNECTION MANAGER
# =============================================================================

class TestConnectionManager:
    """Тесты ConnectionManager."""

    @pytest.mark.asyncio
    async def test_connect_and_send(self) -> None:
        manager = ConnectionManager()
        websocket = _socket()

        await manager.connect(websocket, "client-1")
        sent = await manager.send_personal("client-1", {"type": "pong"})

        websocket.accept.assert_awaited_once()
        websocket.send_json.assert_awaited_once_with({"type": "pong"})
        assert sent is True
        assert manager.is_connected("client-1")

    @pytest.mark.asyncio
    async def test_send_to_absent_user(self) -> None:
        assert await ConnectionManager().send_personal("nobody", {"type": "pong"}) is False

    @pytest.mark.asyncio
    async def test_reconnect_closes_previous(self) -> None:
        manager = ConnectionManager()
        old, new = _socket(), _socket()

        await manager.connect(old, "worker-1", UserRole.WORKER)
        await manager.connect(new, "worker-1", UserRole.WORKER)

        old.close.assert_awaited_once()
        assert manager.active_connections == 1
        await manager.send_personal("worker-1", {"type": "pong"})
        new.send_json.assert_awaited_once()
        old.send_json.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_stale_disconnect_keeps_new_connection(self) -> None:
        manager = ConnectionManager()
        old, new = _socket(), _socket()
        await manager.connect(old, "worker-1")
        await manager.connect(new, "worker-1")

        await manager.disconnect("worker-1", old)

        assert manager.is_connected("worker-1")

    @pytest.mark.asyncio
    async def test_send_failure_drops_connection(self) -> None:
        manager = ConnectionManager()
        websocket = _socket()
        websocket.send_json = AsyncMock(side_effect=RuntimeError("closed"))
        await manager.connect(websocket, "client-1")

        assert await manager.send_personal("client-1", {"type": "pong"}) is False
        assert not manager.is_connected("client-1")

    @pytest.mark.asyncio
    async def test_stats(self) -> None:
        manager = ConnectionManager()
        await manager.connect(_socket(), "client-1", UserRole.CLIENT)
        await manager.connect(_socket(), "worker-1", UserRole.WORKER)
        await manager.connect(_socket(), "worker-2", UserRole.WORKER)
        await manager.send_personal("worker-1", {"type": "pong"})
        await manager.disconnect("worker-2")

        stats = manager.get_stats()

        assert stats["active_connections"] == 2
        assert stats["total_connections_ever"] == 3
        assert stats["total_messages_sent"] == 1
        assert stats["connections_by_role"] == {"client": 1, "worker": 1}


# =============================================================================
# REDIS SUBSCRIBER
# =============================================================================

class TestRedisSubscriber:
    """Тесты разбора сообщений Pub/Sub."""

    @pytest.mark.parametrize(
        "channel,expected",
        [
            ("notify:user:worker-1", "worker-1"),
            ("notify:user:", None),
            ("other:worker-1", None),
        ],
    )
    def test_channel_user_id(self, channel, expected) -> None:
        assert channel_user_id(channel) == expected

    @pytest.mark.asyncio
    async def test_process_message(self) -> None:
        handler = AsyncMock()
        subscriber = RedisSubscriber(MagicMock(), handler)

        await subscriber._process_message({
            "type": "pmessage",
            "channel": b"notify:user:client-1",
            "data": b'{"type": "service_request_accepted", "payload": {}}',
        })

        handler.assert_awaited_once_with(
            "notify:user:client-1", {"type": "service_request_accepted", "payload": {}}
        )

    @pytest.mark.asyncio
    async def test_ignores_subscription_messages(self) -> None:
        handler = AsyncMock()
        subscriber = RedisSubscriber(MagicMock(), handler)

        await subscriber._process_message({"type": "psubscribe", "channel": "notify:user:*", "data": 1})

        handler.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_bad_json_logged(self) -> None:
        handler = AsyncMock()
        subscriber = RedisSubscriber(MagicMock(), handler)

        with patch("roadside.services.realtime.redis_subscriber.log_error", new_callable=AsyncMock) as log:
            await subscriber._process_message({"type": "message", "channel": "notify:user:x", "data": "{oops"})

        handler.assert_not_awaited()
        log.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_start_and_stop(self) -> None:
        async def idle(**kwargs):
            await asyncio.sleep(0.01)
            return None

        pubsub = AsyncMock()
        pubsub.get_message = AsyncMock(side_effect=idle)
        redis = MagicMock()
        redis.pubsub = MagicMock(return_value=pubsub)
        subscriber = RedisSubscriber(redis, AsyncMock())

        await subscriber.start()
        assert subscriber.is_running
        await subscriber.stop()

        pubsub.psubscribe.assert_awaited_once_with("notify:user:*")
        pubsub.punsubscribe.assert_awaited_once()
        pubsub.aclose.assert_awaited_once()
        assert not subscriber.is_running

    @pytest.mark.asyncio
    async def test_forward_to_connections(self) -> None:
        connections = MagicMock()
        connections.send_personal = AsyncMock(return_value=True)
        handle = forward_to_connections(connections)

        await handle("notify:user:worker-1", {"type": "service_request_new"})
        await handle("something:else", {"type": "ignored"})

        connections.send_personal.assert_awaited_once_with("worker-1", {"type": "service_request_new"})


# =============================================================================
# ВХОДЯЩИЕ WEBSOCKET СООБЩЕНИЯ
# =============================================================================

class TestClientMessages:
    """Тесты handle_client_message."""

    @pytest.fixture
    def sent(self):
        with patch.object(ws.manager, "send_personal", new_callable=AsyncMock) as send:
            yield send

    @pytest.fixture
    def presence(self) -> AsyncMock:
        presence = AsyncMock()
        presence.update_location = AsyncMock()
        return presence

    def _last_error(self, sent: AsyncMock) -> str:
        message = sent.await_args.args[1]
        assert message["type"] == "error"
        return message["payload"]["error_code"]

    @pytest.mark.asyncio
    async def test_ping(self, worker_user: User, presence, sent) -> None:
        await ws.handle_client_message(worker_user, json.dumps({"type": "ping"}), presence)
        sent.assert_awaited_once_with("worker-1", {"type": "pong"})

    @pytest.mark.asyncio
    async def test_location_update(self, worker_user: User, presence, sent) -> None:
        raw = json.dumps({"type": "location_update", "payload": {"lat": -23.55, "lng": -46.63}})

        await ws.handle_client_message(worker_user, raw, presence)

        presence.update_location.assert_awaited_once_with("worker-1", -23.55, -46.63)
        sent.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_location_without_coordinates(self, worker_user: User, presence, sent) -> None:
        await ws.handle_client_message(worker_user, json.dumps({"type": "location_update"}), presence)

        presence.update_location.assert_not_awaited()
        assert self._last_error(sent) == "validation_error"

    @pytest.mark.asyncio
    async def test_location_rejected_by_presence(self, worker_user: User, presence, sent) -> None:
        presence.update_location = AsyncMock(side_effect=ValidationError("Некорректные координаты"))
        raw = json.dumps({"type": "location_update", "payload": {"lat": 91, "lng": 0}})

        await ws.handle_client_message(worker_user, raw, presence)

        assert self._last_error(sent) == "validation_error"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "raw,code",
        [
            ("not json", "bad_message"),
            ("[1, 2]", "bad_message"),
            ('{"type": "dance"}', "unknown_type"),
        ],
    )
    async def test_bad_messages(self, client_user: User, presence, sent, raw, code) -> None:
        await ws.handle_client_message(client_user, raw, presence)
        assert self._last_error(sent) == code

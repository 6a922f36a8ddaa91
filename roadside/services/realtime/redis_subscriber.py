# roadside/services/realtime/redis_subscriber.py
"""
Подписчик на Redis Pub/Sub для доставки уведомлений.

Слушает каналы notify:user:{user_id}, куда NotificationBus публикует
события, и пересылает их в WebSocket соединения этого процесса.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable, Coroutine

from redis.asyncio.client import PubSub

from roadside.common.logger import log_debug, log_error
from roadside.core.notifications import USER_CHANNEL_PREFIX
from roadside.infra.redis_client import RedisClient
from roadside.services.realtime.connection_manager import ConnectionManager, manager

MessageHandler = Callable[[str, dict[str, Any]], Coroutine[Any, Any, None]]


class RedisSubscriber:
    """
    Подписчик на Redis Pub/Sub.

    Получает сообщения и передаёт их обработчику (channel, data).
    """

    def __init__(
        self,
        redis: RedisClient,
        message_handler: MessageHandler,
        patterns: tuple[str, ...] | None = None,
    ) -> None:
        """
        Args:
            redis: Клиент Redis
            message_handler: Callback для обработки сообщений (channel, data)
            patterns: Паттерны каналов, по умолчанию личные каналы пользователей
        """
        self._redis = redis
        self._handler = message_handler
        self._pubsub: PubSub | None = None
        self._task: asyncio.Task | None = None
        self._running = False
        self._patterns: tuple[str, ...] = patterns or (f"{USER_CHANNEL_PREFIX}*",)

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Запустить подписчика."""
        if self._running:
            return

        self._pubsub = self._redis.pubsub()
        await self._pubsub.psubscribe(*self._patterns)
        self._running = True
        self._task = asyncio.create_task(self._listen())
        await log_debug(f"Redis subscriber запущен: {', '.join(self._patterns)}")

    async def stop(self) -> None:
        """Остановить подписчика."""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        if self._pubsub:
            await self._pubsub.punsubscribe()
            await self._pubsub.aclose()
            self._pubsub = None

    async def _listen(self) -> None:
        """Слушать сообщения из Redis."""
        while self._running:
            try:
                message = await self._pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                if message is None:
                    continue
                await self._process_message(message)
            except asyncio.CancelledError:
                break
            except Exception as e:
                await log_error(f"Redis subscriber error: {e}", exc_info=True)
                await asyncio.sleep(1)

    async def _process_message(self, message: dict[str, Any]) -> None:
        """Обработать сообщение из Redis."""
        if message.get("type") not in ("message", "pmessage"):
            return

        channel = _as_text(message.get("channel", ""))
        data = _as_text(message.get("data", ""))

        try:
            parsed = json.loads(data)
        except json.JSONDecodeError:
            await log_error(f"Некорректное сообщение в канале {channel}: {data[:200]}")
            return

        await self._handler(channel, parsed)


def _as_text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


def channel_user_id(channel: str) -> str | None:
    """Извлекает ID пользователя из имени канала notify:user:{id}."""
    if not channel.startswith(USER_CHANNEL_PREFIX):
        return None
    return channel[len(USER_CHANNEL_PREFIX):] or None


def forward_to_connections(connections: ConnectionManager = manager) -> MessageHandler:
    """Создаёт обработчик, пересылающий событие в соединение получателя."""

    async def handle(channel: str, data: dict[str, Any]) -> None:
        user_id = channel_user_id(channel)
        if user_id is None:
            return
        await connections.send_personal(user_id, data)

    return handle

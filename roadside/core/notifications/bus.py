# roadside/core/notifications/bus.py
"""
Realtime-уведомления пользователей.

Каждому пользователю соответствует канал Redis notify:user:{id}.
Realtime-шлюз подписан на все такие каналы и пересылает событие
в WebSocket пользователя, если тот подключён к этому экземпляру.
Доставка best-effort: ошибка публикации логируется и не прерывает операцию.
"""

from __future__ import annotations

import json
from typing import Any, Optional

from roadside.common.constants import NotificationType, TypeMsg
from roadside.common.logger import log_error, log_info
from roadside.core.presence.directory import PresenceDirectory
from roadside.infra.redis_client import RedisClient

USER_CHANNEL_PREFIX = "notify:user:"


def user_channel(user_id: str) -> str:
    """Канал уведомлений пользователя."""
    return f"{USER_CHANNEL_PREFIX}{user_id}"


def encode_event(event_type: NotificationType | str, payload: dict[str, Any]) -> str:
    """Сериализует событие в формат {type, payload}."""
    event_name = event_type.value if isinstance(event_type, NotificationType) else event_type
    return json.dumps({"type": event_name, "payload": payload}, ensure_ascii=False, default=str)


class NotificationBus:
    """Публикатор realtime-событий."""

    def __init__(self, redis: RedisClient, presence: PresenceDirectory) -> None:
        """
        Args:
            redis: Клиент Redis
            presence: Каталог механиков онлайн
        """
        self._redis = redis
        self._presence = presence

    async def send_to_user(
        self,
        user_id: str,
        event_type: NotificationType | str,
        payload: dict[str, Any],
    ) -> bool:
        """
        Отправляет событие одному пользователю.

        Returns:
            True если событие опубликовано
        """
        message = encode_event(event_type, payload)
        try:
            await self._redis.publish(user_channel(user_id), message)
        except Exception as e:
            await log_error(f"Не удалось отправить {event_type} пользователю {user_id}: {e}")
            return False

        await log_info(f"Уведомление {event_type} -> {user_id}", type_msg=TypeMsg.DEBUG)
        return True

    async def broadcast_to_online_workers(
        self,
        event_type: NotificationType | str,
        payload: dict[str, Any],
        exclude_user_id: Optional[str] = None,
    ) -> int:
        """
        Рассылает событие всем механикам онлайн.

        Returns:
            Количество получателей, которым событие опубликовано
        """
        try:
            worker_ids = await self._presence.online_worker_ids()
        except Exception as e:
            await log_error(f"Не удалось получить список механиков онлайн: {e}")
            return 0

        delivered = 0
        for worker_id in worker_ids:
            if worker_id == exclude_user_id:
                continue
            if await self.send_to_user(worker_id, event_type, payload):
                delivered += 1
        return delivered

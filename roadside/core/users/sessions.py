# roadside/core/users/sessions.py
"""
Хранилище сессий в Redis: bearer-токен -> ID пользователя.

Сессии не привязаны к процессу, поэтому API и realtime-шлюз
могут работать в нескольких экземплярах.
"""

from __future__ import annotations

import secrets
from typing import Optional

from roadside.infra.redis_client import RedisClient


class SessionStore:
    """Сессии пользователей."""

    def __init__(self, redis: RedisClient, ttl: int | None = None) -> None:
        """
        Args:
            redis: Клиент Redis
            ttl: Время жизни сессии в секундах (по умолчанию из конфига)
        """
        if ttl is None:
            from roadside.config import settings
            ttl = settings.redis_ttl.SESSION_TTL

        self._redis = redis
        self._ttl = ttl

    @staticmethod
    def _key(token: str) -> str:
        return f"session:{token}"

    async def create(self, user_id: str) -> str:
        """Создаёт сессию и возвращает токен."""
        token = secrets.token_urlsafe(32)
        await self._redis.set(self._key(token), user_id, ttl=self._ttl)
        return token

    async def resolve(self, token: str) -> Optional[str]:
        """Возвращает ID пользователя по токену и продлевает сессию."""
        user_id = await self._redis.get(self._key(token))
        if user_id is not None:
            await self._redis.expire(self._key(token), self._ttl)
        return user_id

    async def revoke(self, token: str) -> None:
        """Удаляет сессию."""
        await self._redis.delete(self._key(token))

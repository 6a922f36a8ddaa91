# roadside/infra/redis_client.py
"""
Клиент Redis: сессии, присутствие механиков, geo-индекс и pub/sub уведомления.
"""

from __future__ import annotations

from typing import Type, TypeVar

import redis.asyncio as redis
from pydantic import BaseModel
from redis.asyncio.client import PubSub

from roadside.common.logger import log_error, log_info

M = TypeVar("M", bound=BaseModel)


class RedisClient:
    """
    Асинхронный клиент Redis.

    Все ключи хранения автоматически получают namespace проекта.
    Каналы pub/sub namespace не получают: их слушают внешние процессы
    по фиксированному шаблону.
    """

    _instance: RedisClient | None = None
    _client: redis.Redis | None = None

    def __new__(cls) -> RedisClient:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        if hasattr(self, "_initialized"):
            return
        self._initialized = True
        self._client = None
        self._namespace = "roadside"

    @property
    def client(self) -> redis.Redis:
        """Возвращает клиент Redis."""
        if self._client is None:
            raise RuntimeError("Redis клиент не инициализирован. Вызовите connect() сначала.")
        return self._client

    def _make_key(self, key: str) -> str:
        """Добавляет namespace к ключу."""
        return f"{self._namespace}:{key}"

    async def connect(
        self,
        url: str | None = None,
        max_connections: int = 50,
        namespace: str | None = None,
    ) -> None:
        """
        Подключается к Redis.

        Args:
            url: URL Redis (если None, берётся из конфига)
            max_connections: Максимальное количество соединений
            namespace: Префикс ключей
        """
        if self._client is not None:
            return

        if url is None:
            from roadside.config import settings
            url = settings.redis.url
            max_connections = settings.redis.REDIS_MAX_CONNECTIONS
            namespace = settings.redis.REDIS_NAMESPACE

        if namespace:
            self._namespace = namespace

        await log_info("Подключение к Redis...")

        self._client = redis.from_url(
            url,
            max_connections=max_connections,
            decode_responses=True,
        )
        await self._client.ping()

        await log_info("Подключение к Redis установлено")

    async def disconnect(self) -> None:
        """Закрывает соединение с Redis."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            await log_info("Соединение с Redis закрыто")

    # =========================================================================
    # БАЗОВЫЕ ОПЕРАЦИИ
    # =========================================================================

    async def get(self, key: str) -> str | None:
        """Получает значение по ключу."""
        return await self.client.get(self._make_key(key))

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        """
        Устанавливает значение.

        Args:
            key: Ключ
            value: Значение
            ttl: Время жизни в секундах
        """
        return await self.client.set(self._make_key(key), value, ex=ttl)

    async def delete(self, key: str) -> int:
        """Удаляет ключ."""
        return await self.client.delete(self._make_key(key))

    async def exists(self, key: str) -> bool:
        """Проверяет существование ключа."""
        return await self.client.exists(self._make_key(key)) > 0

    async def expire(self, key: str, ttl: int) -> bool:
        """Устанавливает TTL для ключа."""
        return await self.client.expire(self._make_key(key), ttl)

    async def get_model(self, key: str, model_class: Type[M]) -> M | None:
        """
        Получает и десериализует Pydantic модель.

        Args:
            key: Ключ
            model_class: Класс модели Pydantic

        Returns:
            Экземпляр модели или None
        """
        data = await self.get(key)
        if data is None:
            return None

        try:
            return model_class.model_validate_json(data)
        except ValueError as e:
            await log_error(f"Ошибка десериализации модели {model_class.__name__}: {e}")
            return None

    async def set_model(self, key: str, model: BaseModel, ttl: int | None = None) -> bool:
        """Сериализует и сохраняет Pydantic модель."""
        return await self.set(key, model.model_dump_json(), ttl=ttl)

    # =========================================================================
    # SET ОПЕРАЦИИ
    # =========================================================================

    async def sadd(self, key: str, *members: str) -> int:
        """Добавляет элементы в множество."""
        return await self.client.sadd(self._make_key(key), *members)

    async def srem(self, key: str, *members: str) -> int:
        """Удаляет элементы из множества."""
        return await self.client.srem(self._make_key(key), *members)

    async def sismember(self, key: str, member: str) -> bool:
        """Проверяет принадлежность к множеству."""
        return bool(await self.client.sismember(self._make_key(key), member))

    async def smembers(self, key: str) -> set[str]:
        """Возвращает все элементы множества."""
        return await self.client.smembers(self._make_key(key))

    # =========================================================================
    # GEO ОПЕРАЦИИ
    # =========================================================================

    async def geoadd(self, key: str, longitude: float, latitude: float, member: str) -> int:
        """Добавляет или обновляет позицию участника."""
        return await self.client.geoadd(self._make_key(key), (longitude, latitude, member))

    async def geopos(self, key: str, member: str) -> tuple[float, float] | None:
        """
        Получает позицию участника.

        Returns:
            (longitude, latitude) или None
        """
        result = await self.client.geopos(self._make_key(key), member)
        if result and result[0]:
            return result[0]
        return None

    async def georadius(
        self,
        key: str,
        longitude: float,
        latitude: float,
        radius: float,
        unit: str = "km",
        count: int | None = None,
        sort: str = "ASC",
    ) -> list[tuple[str, float]]:
        """
        Ищет участников в радиусе от точки.

        Args:
            key: Ключ
            longitude: Долгота центра
            latitude: Широта центра
            radius: Радиус поиска
            unit: Единица измерения (km, m, mi, ft)
            count: Максимальное количество результатов
            sort: Сортировка (ASC, DESC)

        Returns:
            Список кортежей (member, distance)
        """
        results = await self.client.georadius(
            self._make_key(key),
            longitude,
            latitude,
            radius,
            unit=unit,
            withdist=True,
            count=count,
            sort=sort,
        )
        return [(r[0], float(r[1])) for r in results]

    async def georem(self, key: str, member: str) -> int:
        """Удаляет участника из geo-индекса."""
        return await self.client.zrem(self._make_key(key), member)

    # =========================================================================
    # PUB/SUB
    # =========================================================================

    async def publish(self, channel: str, message: str) -> int:
        """
        Публикует сообщение в канал.

        Returns:
            Количество подписчиков, получивших сообщение
        """
        return await self.client.publish(channel, message)

    def pubsub(self) -> PubSub:
        """Создаёт объект подписки на каналы."""
        return self.client.pubsub()

    # =========================================================================
    # HEALTH CHECK
    # =========================================================================

    async def health_check(self) -> bool:
        """Проверяет здоровье подключения к Redis."""
        try:
            return bool(await self.client.ping())
        except Exception as e:
            await log_error(f"Health check Redis failed: {e}")
            return False


def get_redis() -> RedisClient:
    """Возвращает глобальный экземпляр RedisClient."""
    return RedisClient()


async def init_redis() -> None:
    """Подключается к Redis по настройкам."""
    from roadside.config import settings

    await get_redis().connect(
        url=settings.redis.url,
        max_connections=settings.redis.REDIS_MAX_CONNECTIONS,
        namespace=settings.redis.REDIS_NAMESPACE,
    )
    await log_info(f"Redis подключён: {settings.redis.REDIS_HOST}:{settings.redis.REDIS_PORT}/{settings.redis.REDIS_DB}")


async def close_redis() -> None:
    """Закрывает подключение к Redis."""
    await get_redis().disconnect()

# roadside/core/presence/directory.py
"""
Присутствие механиков: кто принимает вызовы и где находится.

Оперативные данные лежат в Redis (множество online и geo-индекс),
флаг is_online и координаты дублируются в БД, чтобы восстановить
множество после перезапуска Redis.
"""

from __future__ import annotations

from typing import Any, Optional

from roadside.common.constants import TypeMsg
from roadside.common.exceptions import Forbidden, ValidationError
from roadside.common.logger import log_error, log_info
from roadside.core.users.models import NearbyMechanic, User, profile_cache_key
from roadside.core.users.repository import UserRepository
from roadside.infra.database import DatabaseManager
from roadside.infra.event_bus import DomainEvent, EventBus, EventTypes
from roadside.infra.redis_client import RedisClient

ONLINE_WORKERS_KEY = "workers:online"
WORKER_LOCATIONS_KEY = "workers:locations"


class PresenceDirectory:
    """Каталог механиков онлайн."""

    def __init__(
        self,
        db: DatabaseManager,
        redis: RedisClient,
        event_bus: EventBus,
        users: UserRepository | None = None,
    ) -> None:
        """
        Args:
            db: Менеджер базы данных
            redis: Клиент Redis
            event_bus: Шина событий
            users: Репозиторий пользователей
        """
        self._redis = redis
        self._event_bus = event_bus
        self._users = users or UserRepository(db)

    async def set_online(self, user: User, is_online: bool) -> None:
        """
        Включает или выключает приём вызовов.

        Raises:
            Forbidden: пользователь не механик
            ValidationError: у механика не задана база
        """
        if not user.is_worker:
            raise Forbidden("Принимать вызовы могут только механики")
        if is_online and not user.has_base_location:
            raise ValidationError("Укажите адрес базы перед выходом на линию")

        await self._users.set_online(user.id, is_online)
        if is_online:
            await self._redis.sadd(ONLINE_WORKERS_KEY, user.id)
            if user.current_lat is not None and user.current_lng is not None:
                await self._redis.geoadd(WORKER_LOCATIONS_KEY, user.current_lng, user.current_lat, user.id)
        else:
            await self._redis.srem(ONLINE_WORKERS_KEY, user.id)
            await self._redis.georem(WORKER_LOCATIONS_KEY, user.id)
        await self._redis.delete(profile_cache_key(user.id))

        await log_info(
            f"Механик {user.id} {'на линии' if is_online else 'вне линии'}",
            type_msg=TypeMsg.INFO,
        )
        await self._publish(
            EventTypes.WORKER_ONLINE if is_online else EventTypes.WORKER_OFFLINE,
            {"user_id": user.id},
        )

    async def update_location(self, user_id: str, lat: float, lng: float) -> None:
        """
        Сохраняет текущее положение пользователя.
        Механики онлайн дополнительно попадают в geo-индекс.
        """
        if not (-90 <= lat <= 90 and -180 <= lng <= 180):
            raise ValidationError("Некорректные координаты", {"lat": lat, "lng": lng})

        await self._users.update_location(user_id, lat, lng)
        if await self._redis.sismember(ONLINE_WORKERS_KEY, user_id):
            await self._redis.geoadd(WORKER_LOCATIONS_KEY, lng, lat, user_id)

    async def last_location(self, user_id: str) -> Optional[tuple[float, float]]:
        """
        Последняя известная позиция механика онлайн.

        Returns:
            (lat, lng) или None
        """
        position = await self._redis.geopos(WORKER_LOCATIONS_KEY, user_id)
        if position is None:
            return None
        lng, lat = position
        return float(lat), float(lng)

    async def online_worker_ids(self) -> list[str]:
        """ID механиков, принимающих вызовы."""
        return sorted(await self._redis.smembers(ONLINE_WORKERS_KEY))

    async def is_online(self, user_id: str) -> bool:
        return await self._redis.sismember(ONLINE_WORKERS_KEY, user_id)

    async def online_workers(self) -> list[User]:
        """Профили механиков, принимающих вызовы."""
        workers = []
        for user_id in await self.online_worker_ids():
            user = await self._users.get_by_id(user_id)
            if user is not None and user.is_worker:
                workers.append(user)
        return workers

    async def online_workers_near(
        self,
        lat: float,
        lng: float,
        radius_km: float = 10.0,
        limit: int | None = None,
    ) -> list[NearbyMechanic]:
        """
        Механики онлайн в радиусе от точки, ближайшие первыми.

        Args:
            lat: Широта центра
            lng: Долгота центра
            radius_km: Радиус поиска в км
            limit: Максимальное количество результатов

        Returns:
            Список механиков с расстоянием до точки

        Raises:
            ValidationError: некорректные координаты или радиус
        """
        if not (-90 <= lat <= 90 and -180 <= lng <= 180):
            raise ValidationError("Некорректные координаты", {"lat": lat, "lng": lng})
        if radius_km <= 0:
            raise ValidationError("Радиус должен быть положительным", {"radius_km": radius_km})

        hits = await self._redis.georadius(WORKER_LOCATIONS_KEY, lng, lat, radius_km, count=limit)
        online = set(await self._redis.smembers(ONLINE_WORKERS_KEY))

        nearby = []
        for user_id, distance in hits:
            # geo-индекс может пережить множество online после перезапуска
            if user_id not in online:
                continue
            user = await self._users.get_by_id(user_id)
            if user is None or user.current_lat is None or user.current_lng is None:
                continue
            nearby.append(
                NearbyMechanic(
                    **user.public().model_dump(),
                    current_lat=user.current_lat,
                    current_lng=user.current_lng,
                    distance_km=round(distance, 2),
                )
            )
        return nearby

    async def sync_from_db(self) -> int:
        """
        Восстанавливает множество online из БД.

        Returns:
            Количество механиков онлайн
        """
        worker_ids = await self._users.list_online_worker_ids()
        if worker_ids:
            await self._redis.sadd(ONLINE_WORKERS_KEY, *worker_ids)
        await log_info(f"Присутствие восстановлено из БД: {len(worker_ids)} механиков онлайн")
        return len(worker_ids)

    async def _publish(self, event_type: str, payload: dict[str, Any]) -> None:
        try:
            await self._event_bus.publish(DomainEvent(event_type=event_type, payload=payload))
        except Exception as e:
            await log_error(f"Не удалось опубликовать {event_type}: {e}")

# roadside/services/api/dependencies.py
"""
Зависимости для API.

Сервисы создаются один раз при старте приложения и раздаются
обработчикам через Depends. В тестах их подменяют через app.dependency_overrides.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header, Query

from roadside.common.constants import TypeMsg
from roadside.common.exceptions import Forbidden, Unauthorized
from roadside.common.logger import log_error, log_info
from roadside.core.chat import ChatService
from roadside.core.dispatch import DispatchCoordinator
from roadside.core.ledger import Ledger
from roadside.core.notifications import NotificationBus
from roadside.core.payments import PaymentGateway, build_gateway
from roadside.core.presence import PresenceDirectory
from roadside.core.pricing import PricingPolicy
from roadside.core.users.models import User
from roadside.core.users.service import UserService
from roadside.infra.database import DatabaseManager, close_db, get_db as get_db_manager, init_db
from roadside.infra.event_bus import EventBus, close_event_bus, get_event_bus as get_bus, init_event_bus
from roadside.infra.redis_client import RedisClient, close_redis, get_redis as get_redis_client, init_redis

_db: Optional[DatabaseManager] = None
_redis: Optional[RedisClient] = None
_event_bus: Optional[EventBus] = None
_gateway: Optional[PaymentGateway] = None
_pricing: Optional[PricingPolicy] = None
_presence: Optional[PresenceDirectory] = None
_notifications: Optional[NotificationBus] = None
_ledger: Optional[Ledger] = None
_user_service: Optional[UserService] = None
_coordinator: Optional[DispatchCoordinator] = None
_chat_service: Optional[ChatService] = None


async def init_dependencies() -> None:
    """Инициализация всех зависимостей сервиса."""
    global _db, _redis, _event_bus, _gateway, _pricing, _presence
    global _notifications, _ledger, _user_service, _coordinator, _chat_service

    await init_db()
    _db = get_db_manager()

    await init_redis()
    _redis = get_redis_client()

    _event_bus = get_bus()
    try:
        await init_event_bus()
    except Exception as e:
        # Доменные события best-effort: API работает и без брокера
        await log_error(f"RabbitMQ недоступен, события публиковаться не будут: {e}")

    _gateway = build_gateway()
    _pricing = PricingPolicy()
    _presence = PresenceDirectory(_db, _redis, _event_bus)
    _notifications = NotificationBus(_redis, _presence)
    _ledger = Ledger(_db, _event_bus, _gateway)
    _user_service = UserService(_db, _redis)
    _coordinator = DispatchCoordinator(
        _db,
        _redis,
        _event_bus,
        gateway=_gateway,
        ledger=_ledger,
        presence=_presence,
        notifications=_notifications,
        pricing=_pricing,
    )
    _chat_service = ChatService(_db, _notifications)

    restored = await _presence.sync_from_db()
    await log_info(f"Восстановлено механиков онлайн: {restored}", type_msg=TypeMsg.DEBUG)

    await log_info("Roadside API инициализирован", type_msg=TypeMsg.INFO)


async def close_dependencies() -> None:
    """Закрытие всех ресурсов."""
    global _db, _redis, _event_bus, _gateway

    if _gateway is not None:
        await _gateway.close()
        _gateway = None

    if _event_bus is not None:
        await close_event_bus()
        _event_bus = None

    if _redis is not None:
        await close_redis()
        _redis = None

    if _db is not None:
        await close_db()
        _db = None


# =============================================================================
# ГЕТТЕРЫ
# =============================================================================

async def get_db() -> DatabaseManager:
    if _db is None:
        raise RuntimeError("DatabaseManager не инициализирован")
    return _db


async def get_redis() -> RedisClient:
    if _redis is None:
        raise RuntimeError("RedisClient не инициализирован")
    return _redis


async def get_event_bus() -> EventBus:
    if _event_bus is None:
        raise RuntimeError("EventBus не инициализирован")
    return _event_bus


async def get_gateway() -> PaymentGateway:
    if _gateway is None:
        raise RuntimeError("PaymentGateway не инициализирован")
    return _gateway


async def get_pricing() -> PricingPolicy:
    if _pricing is None:
        raise RuntimeError("PricingPolicy не инициализирована")
    return _pricing


async def get_presence() -> PresenceDirectory:
    if _presence is None:
        raise RuntimeError("PresenceDirectory не инициализирован")
    return _presence


async def get_ledger() -> Ledger:
    if _ledger is None:
        raise RuntimeError("Ledger не инициализирован")
    return _ledger


async def get_user_service() -> UserService:
    if _user_service is None:
        raise RuntimeError("UserService не инициализирован")
    return _user_service


async def get_coordinator() -> DispatchCoordinator:
    if _coordinator is None:
        raise RuntimeError("DispatchCoordinator не инициализирован")
    return _coordinator


async def get_chat_service() -> ChatService:
    if _chat_service is None:
        raise RuntimeError("ChatService не инициализирован")
    return _chat_service


# =============================================================================
# АУТЕНТИФИКАЦИЯ
# =============================================================================

def parse_bearer(authorization: Optional[str]) -> Optional[str]:
    """Достаёт токен из заголовка Authorization: Bearer <token>."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def get_bearer_token(authorization: Optional[str] = Header(None)) -> str:
    token = parse_bearer(authorization)
    if token is None:
        raise Unauthorized("Требуется авторизация")
    return token


async def get_current_user(
    token: str = Depends(get_bearer_token),
    users: UserService = Depends(get_user_service),
) -> User:
    """Текущий пользователь по bearer-токену."""
    user = await users.resolve_session(token)
    if user is None:
        raise Unauthorized("Сессия недействительна или истекла")
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise Forbidden("Доступно только администратору")
    return user


async def get_ws_user(
    token: str = Query(""),
    users: UserService = Depends(get_user_service),
) -> Optional[User]:
    """Пользователь WebSocket соединения по токену из query string."""
    if not token:
        return None
    return await users.resolve_session(token)

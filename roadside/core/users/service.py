# roadside/core/users/service.py
"""
Сервис пользователей: регистрация, вход, профиль и реквизиты.
Публичные профили кэшируются в Redis (cache-aside).
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from roadside.common.constants import TypeMsg, UserRole
from roadside.common.exceptions import Forbidden, NotFound, ValidationError
from roadside.common.logger import log_info, log_warning
from roadside.core.users.models import (
    BaseLocationInput,
    LoginInput,
    PayoutDestinationInput,
    RegisterInput,
    User,
    UserPublic,
    profile_cache_key,
)
from roadside.core.users.passwords import hash_password, verify_password
from roadside.core.users.repository import UserRepository
from roadside.core.users.sessions import SessionStore
from roadside.infra.database import DatabaseManager
from roadside.infra.redis_client import RedisClient


class UserService:
    """
    Сервис пользователей.
    Реализует бизнес-логику с кэшированием профилей и сессиями в Redis.
    """

    def __init__(
        self,
        db: DatabaseManager,
        redis: RedisClient,
        *,
        repository: UserRepository | None = None,
        sessions: SessionStore | None = None,
    ) -> None:
        """
        Args:
            db: Менеджер базы данных
            redis: Клиент Redis
            repository: Репозиторий пользователей
            sessions: Хранилище сессий
        """
        self._repo = repository or UserRepository(db)
        self._redis = redis
        self._sessions = sessions or SessionStore(redis)

    # =========================================================================
    # АУТЕНТИФИКАЦИЯ
    # =========================================================================

    async def register(self, data: RegisterInput, role: UserRole | None = None) -> tuple[User, str]:
        """
        Регистрирует пользователя и открывает сессию.

        Args:
            data: Данные регистрации
            role: Роль в обход публичных ограничений (для служебных скриптов)

        Returns:
            (пользователь, токен сессии)
        """
        if await self._repo.get_by_email(data.email) is not None:
            raise ValidationError("Email уже зарегистрирован", {"email": data.email})

        user = await self._repo.create(User(
            id=str(uuid4()),
            email=data.email.lower(),
            password_hash=hash_password(data.password),
            full_name=data.full_name,
            phone=data.phone,
            role=role or data.role,
            created_at=datetime.now(timezone.utc),
        ))
        token = await self._sessions.create(user.id)

        await log_info(f"Пользователь зарегистрирован: {user.id} ({user.role.value})", type_msg=TypeMsg.INFO)
        return user, token

    async def authenticate(self, data: LoginInput) -> tuple[User, str]:
        """
        Проверяет пароль и открывает сессию.

        Raises:
            Forbidden: неверный email или пароль
        """
        user = await self._repo.get_by_email(data.email)
        if user is None or not verify_password(data.password, user.password_hash):
            await log_warning(f"Неудачная попытка входа: {data.email}")
            raise Forbidden("Неверный email или пароль")

        token = await self._sessions.create(user.id)
        await log_info(f"Вход пользователя {user.id}", type_msg=TypeMsg.DEBUG)
        return user, token

    async def resolve_session(self, token: str) -> Optional[User]:
        """Пользователь по токену сессии или None."""
        user_id = await self._sessions.resolve(token)
        if user_id is None:
            return None
        return await self._repo.get_by_id(user_id)

    async def logout(self, token: str) -> None:
        """Закрывает сессию."""
        await self._sessions.revoke(token)

    # =========================================================================
    # ПРОФИЛЬ
    # =========================================================================

    async def get_user(self, user_id: str) -> User:
        """
        Получает пользователя по ID.

        Raises:
            NotFound: пользователь не существует
        """
        user = await self._repo.get_by_id(user_id)
        if user is None:
            raise NotFound("Пользователь не найден", {"user_id": user_id})
        return user

    async def get_profile(self, user_id: str) -> UserPublic:
        """
        Публичный профиль пользователя.
        Использует Cache-Aside паттерн.
        """
        cache_key = profile_cache_key(user_id)

        cached = await self._redis.get_model(cache_key, UserPublic)
        if cached is not None:
            return cached

        profile = (await self.get_user(user_id)).public()

        from roadside.config import settings
        await self._redis.set_model(cache_key, profile, ttl=settings.redis_ttl.PROFILE_TTL)
        return profile

    async def update_payout(self, user: User, data: PayoutDestinationInput) -> User:
        """Сохраняет реквизиты для выплат."""
        updated = await self._repo.update_payout(user.id, data)
        if updated is None:
            raise NotFound("Пользователь не найден", {"user_id": user.id})
        await self._redis.delete(profile_cache_key(user.id))

        await log_info(f"Реквизиты выплат обновлены: {user.id}", type_msg=TypeMsg.INFO)
        return updated

    async def update_base(self, user: User, data: BaseLocationInput) -> User:
        """
        Сохраняет адрес базы механика.

        Raises:
            Forbidden: пользователь не механик
        """
        if not user.is_worker:
            raise Forbidden("База задаётся только механикам")

        updated = await self._repo.update_base(user.id, data.base_address, data.base_lat, data.base_lng)
        if updated is None:
            raise NotFound("Пользователь не найден", {"user_id": user.id})
        await self._redis.delete(profile_cache_key(user.id))

        await log_info(f"База механика {user.id} обновлена", type_msg=TypeMsg.INFO)
        return updated

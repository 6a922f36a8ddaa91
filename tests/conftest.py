# tests/conftest.py
"""
Общие фикстуры и настройки для тестов.
"""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

# Устанавливаем переменные окружения перед импортом модулей
os.environ.setdefault("DB_PASSWORD", "test_password")
os.environ.setdefault("REDIS_PASSWORD", "")
os.environ.setdefault("PAYMENT_PROVIDER", "simulated")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

from roadside.common.constants import PixKeyType, UserRole  # noqa: E402
from roadside.core.users.models import User  # noqa: E402
from tests.fakes import Marketplace, build_marketplace  # noqa: E402

# 14:00 в Сан-Паулу (UTC-3): дневной тариф
DAYTIME_UTC = datetime(2024, 5, 10, 17, 0, tzinfo=timezone.utc)


# =============================================================================
# ФИКСТУРЫ КОНФИГУРАЦИИ
# =============================================================================

@pytest.fixture(scope="session")
def project_root() -> Path:
    """Корневая директория проекта."""
    return Path(__file__).parent.parent


# =============================================================================
# ФИКСТУРЫ ИНФРАСТРУКТУРЫ (МОКИ)
# =============================================================================

@pytest.fixture
def mock_db() -> AsyncMock:
    """Мок менеджера базы данных."""
    db = AsyncMock()
    db.fetchrow = AsyncMock(return_value=None)
    db.fetch = AsyncMock(return_value=[])
    db.execute = AsyncMock(return_value="UPDATE 1")
    db.fetchval = AsyncMock(return_value=None)
    return db


@pytest.fixture
def mock_redis() -> AsyncMock:
    """Мок клиента Redis."""
    redis = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock(return_value=True)
    redis.delete = AsyncMock(return_value=1)
    redis.expire = AsyncMock(return_value=True)
    redis.get_model = AsyncMock(return_value=None)
    redis.set_model = AsyncMock(return_value=True)
    redis.sadd = AsyncMock(return_value=1)
    redis.srem = AsyncMock(return_value=1)
    redis.sismember = AsyncMock(return_value=False)
    redis.smembers = AsyncMock(return_value=set())
    redis.geoadd = AsyncMock(return_value=1)
    redis.geopos = AsyncMock(return_value=None)
    redis.georem = AsyncMock(return_value=1)
    redis.publish = AsyncMock(return_value=1)
    return redis


@pytest.fixture
def mock_event_bus() -> AsyncMock:
    """Мок шины событий."""
    event_bus = AsyncMock()
    event_bus.publish = AsyncMock(return_value=None)
    event_bus.is_connected = True
    return event_bus


# =============================================================================
# ФИКСТУРЫ МОДЕЛЕЙ
# =============================================================================

@pytest.fixture
def client_user() -> User:
    """Клиент."""
    return User(
        id="client-1",
        email="client@example.com",
        full_name="Ana Souza",
        phone="+5511999990001",
        role=UserRole.CLIENT,
    )


@pytest.fixture
def worker_user() -> User:
    """Механик с базой и ключом PIX."""
    return User(
        id="worker-1",
        email="mechanic@example.com",
        full_name="Carlos Lima",
        phone="+5511999990002",
        role=UserRole.WORKER,
        base_address="Av. Paulista, 1000",
        base_lat=-23.55,
        base_lng=-46.63,
        rating=4.8,
        total_ratings=10,
        pix_key="mechanic@example.com",
        pix_key_type=PixKeyType.EMAIL,
    )


@pytest.fixture
def second_worker() -> User:
    """Второй механик рядом с первым."""
    return User(
        id="worker-2",
        email="mechanic2@example.com",
        full_name="Rafael Costa",
        role=UserRole.WORKER,
        base_address="Rua Augusta, 500",
        base_lat=-23.551,
        base_lng=-46.632,
    )


@pytest.fixture
def admin_user() -> User:
    """Администратор."""
    return User(
        id="admin-1",
        email="admin@example.com",
        full_name="Admin",
        role=UserRole.ADMIN,
    )


@pytest.fixture
def market(client_user: User, worker_user: User, second_worker: User, admin_user: User) -> Marketplace:
    """Сервисы маркетплейса поверх in-memory хранилищ, часы на 14:00 по Сан-Паулу."""
    return build_marketplace(client_user, worker_user, second_worker, admin_user, start=DAYTIME_UTC)

# roadside/core/users/repository.py
"""
Репозиторий для работы с пользователями в БД.
"""

from __future__ import annotations

from typing import Any, Optional

from roadside.common.constants import UserRole
from roadside.core.users.models import PayoutDestinationInput, User
from roadside.infra.database import DatabaseManager, Executor

USER_COLUMNS = """
    id, email, password_hash, full_name, phone, role,
    is_online, current_lat, current_lng,
    base_address, base_lat, base_lng,
    rating, total_ratings,
    pix_key, pix_key_type, bank_name, bank_branch, bank_account, account_holder,
    created_at
"""


class UserRepository:
    """Репозиторий пользователей."""

    def __init__(self, db: DatabaseManager) -> None:
        """
        Args:
            db: Менеджер базы данных
        """
        self._db = db

    async def get_by_id(self, user_id: str, conn: Executor | None = None) -> Optional[User]:
        """Получает пользователя по ID."""
        row = await (conn or self._db).fetchrow(
            f"SELECT {USER_COLUMNS} FROM users WHERE id = $1",
            user_id,
        )
        return self._row_to_user(row) if row else None

    async def get_by_email(self, email: str) -> Optional[User]:
        """Получает пользователя по email (без учёта регистра)."""
        row = await self._db.fetchrow(
            f"SELECT {USER_COLUMNS} FROM users WHERE lower(email) = lower($1)",
            email,
        )
        return self._row_to_user(row) if row else None

    async def lock_for_update(self, user_id: str, conn: Executor) -> Optional[User]:
        """
        Блокирует строку пользователя до конца транзакции.

        Сериализует денежные операции одного пользователя.
        """
        row = await conn.fetchrow(
            f"SELECT {USER_COLUMNS} FROM users WHERE id = $1 FOR UPDATE",
            user_id,
        )
        return self._row_to_user(row) if row else None

    async def create(self, user: User) -> User:
        """Создаёт пользователя."""
        row = await self._db.fetchrow(
            f"""
            INSERT INTO users (id, email, password_hash, full_name, phone, role, created_at)
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            RETURNING {USER_COLUMNS}
            """,
            user.id,
            user.email,
            user.password_hash,
            user.full_name,
            user.phone,
            user.role.value,
            user.created_at,
        )
        return self._row_to_user(row)

    async def set_online(self, user_id: str, is_online: bool) -> None:
        """Обновляет флаг приёма вызовов."""
        await self._db.execute(
            "UPDATE users SET is_online = $2 WHERE id = $1",
            user_id,
            is_online,
        )

    async def update_location(self, user_id: str, lat: float, lng: float) -> None:
        """Обновляет текущее положение."""
        await self._db.execute(
            "UPDATE users SET current_lat = $2, current_lng = $3 WHERE id = $1",
            user_id,
            lat,
            lng,
        )

    async def update_base(self, user_id: str, address: str, lat: float, lng: float) -> Optional[User]:
        """Обновляет базу механика."""
        row = await self._db.fetchrow(
            f"""
            UPDATE users SET base_address = $2, base_lat = $3, base_lng = $4
            WHERE id = $1
            RETURNING {USER_COLUMNS}
            """,
            user_id,
            address,
            lat,
            lng,
        )
        return self._row_to_user(row) if row else None

    async def update_payout(self, user_id: str, data: PayoutDestinationInput) -> Optional[User]:
        """Обновляет реквизиты для выплат."""
        row = await self._db.fetchrow(
            f"""
            UPDATE users SET pix_key = $2, pix_key_type = $3, bank_name = $4,
                             bank_branch = $5, bank_account = $6, account_holder = $7
            WHERE id = $1
            RETURNING {USER_COLUMNS}
            """,
            user_id,
            data.pix_key,
            data.pix_key_type.value,
            data.bank_name,
            data.bank_branch,
            data.bank_account,
            data.account_holder,
        )
        return self._row_to_user(row) if row else None

    async def apply_rating(self, user_id: str, rating: int, conn: Executor | None = None) -> None:
        """
        Добавляет оценку к среднему рейтингу пользователя.

        Инкрементальное среднее считается в одном UPDATE,
        поэтому параллельные оценки не теряются.
        """
        await (conn or self._db).execute(
            """
            UPDATE users
            SET rating = ROUND((rating * total_ratings + $2) / (total_ratings + 1), 2),
                total_ratings = total_ratings + 1
            WHERE id = $1
            """,
            user_id,
            rating,
        )

    async def list_online_worker_ids(self) -> list[str]:
        """ID механиков, отмеченных в БД как принимающие вызовы."""
        rows = await self._db.fetch(
            "SELECT id FROM users WHERE role = $1 AND is_online = TRUE",
            UserRole.WORKER.value,
        )
        return [row["id"] for row in rows]

    def _row_to_user(self, row: Any) -> User:
        """Преобразует строку БД в модель User."""
        data = dict(row)
        data["rating"] = float(data["rating"]) if data.get("rating") is not None else 5.0
        return User.model_validate(data)

# roadside/core/requests/repository.py
"""
Хранилище заявок.

Репозиторий не проверяет допустимость переходов: это делает координатор.
Зато каждое изменение статуса может быть условным (compare-and-swap по
ожидаемому статусу), и тогда при гонке оно просто не применится.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Optional

from roadside.common.constants import (
    ACTIVE_REQUEST_STATUSES,
    HISTORY_REQUEST_STATUSES,
    RequestStatus,
)
from roadside.core.geo import distance_km
from roadside.core.requests.models import RequestDraft, ServiceRequest
from roadside.infra.database import DatabaseManager, Executor

REQUEST_COLUMNS = """
    id, client_id, mechanic_id, service_type, status,
    pickup_lat, pickup_lng, pickup_address, description, vehicle, distance_km,
    base_fee, distance_fee, platform_fee, worker_earnings, total_price, is_after_hours,
    payment_status, payment_ref,
    client_confirmed, mechanic_confirmed,
    client_rating, client_comment, mechanic_rating, mechanic_comment, settled_at,
    created_at, accepted_at, arrived_at, completed_at, cancelled_at
"""

# Поля, которые можно менять через update(). Цены и участники заявки сюда не входят.
UPDATABLE_COLUMNS = frozenset({
    "mechanic_id",
    "status",
    "distance_km",
    "payment_status",
    "client_confirmed",
    "mechanic_confirmed",
    "client_rating",
    "client_comment",
    "mechanic_rating",
    "mechanic_comment",
    "settled_at",
    "accepted_at",
    "arrived_at",
    "completed_at",
    "cancelled_at",
})


class ServiceRequestRepository:
    """Репозиторий заявок."""

    def __init__(self, db: DatabaseManager) -> None:
        """
        Args:
            db: Менеджер базы данных
        """
        self._db = db

    # =========================================================================
    # ЧТЕНИЕ
    # =========================================================================

    async def get(self, request_id: str, conn: Executor | None = None) -> Optional[ServiceRequest]:
        """Получает заявку по ID."""
        row = await (conn or self._db).fetchrow(
            f"SELECT {REQUEST_COLUMNS} FROM service_requests WHERE id = $1",
            request_id,
        )
        return self._row_to_request(row) if row else None

    async def get_by_payment_ref(self, payment_ref: str) -> Optional[ServiceRequest]:
        """Ищет заявку, оплаченную указанным платежом."""
        row = await self._db.fetchrow(
            f"SELECT {REQUEST_COLUMNS} FROM service_requests WHERE payment_ref = $1",
            payment_ref,
        )
        return self._row_to_request(row) if row else None

    async def list_for_user(self, user_id: str) -> list[ServiceRequest]:
        """Все заявки, где пользователь клиент или механик."""
        rows = await self._db.fetch(
            f"""
            SELECT {REQUEST_COLUMNS} FROM service_requests
            WHERE client_id = $1 OR mechanic_id = $1
            ORDER BY created_at DESC
            """,
            user_id,
        )
        return [self._row_to_request(row) for row in rows]

    async def list_history_for_user(self, user_id: str) -> list[ServiceRequest]:
        """Завершённые и отменённые заявки пользователя."""
        rows = await self._db.fetch(
            f"""
            SELECT {REQUEST_COLUMNS} FROM service_requests
            WHERE (client_id = $1 OR mechanic_id = $1)
              AND status = ANY($2::varchar[])
            ORDER BY created_at DESC
            """,
            user_id,
            [s.value for s in HISTORY_REQUEST_STATUSES],
        )
        return [self._row_to_request(row) for row in rows]

    async def list_pending_near(self, lat: float, lng: float, radius_km: float) -> list[ServiceRequest]:
        """
        Ожидающие заявки в радиусе от точки, от ближних к дальним.

        Args:
            lat: Широта центра
            lng: Долгота центра
            radius_km: Радиус в километрах
        """
        rows = await self._db.fetch(
            f"""
            SELECT {REQUEST_COLUMNS} FROM service_requests
            WHERE status = $1
            ORDER BY created_at DESC
            """,
            RequestStatus.PENDING.value,
        )
        nearby: list[tuple[float, ServiceRequest]] = []
        for row in rows:
            request = self._row_to_request(row)
            distance = distance_km(lat, lng, request.pickup_lat, request.pickup_lng)
            if distance <= radius_km:
                nearby.append((distance, request))
        nearby.sort(key=lambda item: item[0])
        return [request for _, request in nearby]

    async def get_active_for_user(self, user_id: str) -> Optional[ServiceRequest]:
        """Последняя принятая или выполняемая заявка пользователя."""
        row = await self._db.fetchrow(
            f"""
            SELECT {REQUEST_COLUMNS} FROM service_requests
            WHERE (client_id = $1 OR mechanic_id = $1)
              AND status = ANY($2::varchar[])
            ORDER BY created_at DESC
            LIMIT 1
            """,
            user_id,
            [s.value for s in ACTIVE_REQUEST_STATUSES],
        )
        return self._row_to_request(row) if row else None

    # =========================================================================
    # ЗАПИСЬ
    # =========================================================================

    async def create(self, draft: RequestDraft) -> ServiceRequest:
        """Сохраняет новую заявку в статусе pending."""
        row = await self._db.fetchrow(
            f"""
            INSERT INTO service_requests (
                id, client_id, service_type, status,
                pickup_lat, pickup_lng, pickup_address, description, vehicle,
                base_fee, distance_fee, platform_fee, worker_earnings, total_price, is_after_hours,
                payment_ref, created_at
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15, $16, $17)
            RETURNING {REQUEST_COLUMNS}
            """,
            draft.id,
            draft.client_id,
            draft.service_type.value,
            RequestStatus.PENDING.value,
            draft.pickup_lat,
            draft.pickup_lng,
            draft.pickup_address,
            draft.description,
            draft.vehicle,
            draft.base_fee,
            draft.distance_fee,
            draft.platform_fee,
            draft.worker_earnings,
            draft.total_price,
            draft.is_after_hours,
            draft.payment_ref,
            draft.created_at,
        )
        return self._row_to_request(row)

    async def update(
        self,
        request_id: str,
        patch: dict[str, Any],
        *,
        expected_status: RequestStatus | Iterable[RequestStatus] | None = None,
        where: dict[str, Any] | None = None,
        conn: Executor | None = None,
    ) -> Optional[ServiceRequest]:
        """
        Применяет изменения к заявке.

        Args:
            request_id: ID заявки
            patch: Колонка -> новое значение
            expected_status: Применить, только если текущий статус один из указанных
            where: Дополнительные условия колонка -> значение (None означает IS NULL)
            conn: Соединение транзакции

        Returns:
            Обновлённая заявка или None, если заявка не найдена или условия не выполнены
        """
        unknown = set(patch) - UPDATABLE_COLUMNS
        if unknown or not patch:
            raise ValueError(f"Недопустимые поля для обновления заявки: {sorted(unknown) or 'пусто'}")

        args: list[Any] = [request_id]
        assignments: list[str] = []
        for column, value in patch.items():
            args.append(_to_db(value))
            assignments.append(f"{column} = ${len(args)}")

        conditions = ["id = $1"]
        if expected_status is not None:
            statuses = [expected_status] if isinstance(expected_status, RequestStatus) else list(expected_status)
            args.append([s.value for s in statuses])
            conditions.append(f"status = ANY(${len(args)}::varchar[])")
        for column, value in (where or {}).items():
            if column not in UPDATABLE_COLUMNS:
                raise ValueError(f"Недопустимое условие: {column}")
            if value is None:
                conditions.append(f"{column} IS NULL")
            else:
                args.append(_to_db(value))
                conditions.append(f"{column} = ${len(args)}")

        row = await (conn or self._db).fetchrow(
            f"""
            UPDATE service_requests SET {", ".join(assignments)}
            WHERE {" AND ".join(conditions)}
            RETURNING {REQUEST_COLUMNS}
            """,
            *args,
        )
        return self._row_to_request(row) if row else None

    async def try_accept(
        self,
        request_id: str,
        mechanic_id: str,
        distance: float,
        accepted_at: datetime,
    ) -> Optional[ServiceRequest]:
        """
        Атомарно назначает механика на ожидающую заявку.

        Returns:
            Заявка при успехе, None если заявка уже не в статусе pending
        """
        return await self.update(
            request_id,
            {
                "mechanic_id": mechanic_id,
                "status": RequestStatus.ACCEPTED,
                "accepted_at": accepted_at,
                "distance_km": distance,
            },
            expected_status=RequestStatus.PENDING,
        )

    async def record_rating(
        self,
        request_id: str,
        *,
        by_client: bool,
        rating: int,
        comment: Optional[str],
        conn: Executor | None = None,
    ) -> Optional[ServiceRequest]:
        """
        Сохраняет оценку одной из сторон, если она ещё не выставлена
        и обе стороны подтвердили выполнение.
        """
        prefix = "client" if by_client else "mechanic"
        return await self.update(
            request_id,
            {f"{prefix}_rating": rating, f"{prefix}_comment": comment},
            expected_status=RequestStatus.COMPLETED,
            where={
                f"{prefix}_rating": None,
                "client_confirmed": True,
                "mechanic_confirmed": True,
            },
            conn=conn,
        )

    async def claim_settlement(
        self,
        request_id: str,
        settled_at: datetime,
        conn: Executor | None = None,
    ) -> Optional[ServiceRequest]:
        """
        Захватывает право на расчёт по заявке.

        Срабатывает ровно один раз: когда обе оценки выставлены,
        а settled_at ещё пуст. Переводит заявку в статус rated.
        """
        row = await (conn or self._db).fetchrow(
            f"""
            UPDATE service_requests
            SET settled_at = $2, status = $3
            WHERE id = $1
              AND status = $4
              AND settled_at IS NULL
              AND client_rating IS NOT NULL
              AND mechanic_rating IS NOT NULL
            RETURNING {REQUEST_COLUMNS}
            """,
            request_id,
            settled_at,
            RequestStatus.RATED.value,
            RequestStatus.COMPLETED.value,
        )
        return self._row_to_request(row) if row else None

    def _row_to_request(self, row: Any) -> ServiceRequest:
        """Преобразует строку БД в модель ServiceRequest."""
        return ServiceRequest.model_validate(dict(row))


def _to_db(value: Any) -> Any:
    """Enum-значения хранятся строками."""
    if isinstance(value, Enum):
        return value.value
    return value

# roadside/core/dispatch/coordinator.py
"""
Координатор жизненного цикла заявки.

Каждый переход проверяет роль и статус, затем применяет условное обновление
по ожидаемому статусу. Если условие не выполнилось (параллельный переход),
заявка перечитывается и ошибка классифицируется заново.

Уведомления и доменные события отправляются после записи и не влияют
на результат перехода.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Callable, Optional
from uuid import uuid4

import asyncpg

from roadside.common.clock import utc_now
from roadside.common.constants import (
    CaptureStatus,
    NotificationType,
    PaymentStatus,
    RefundFailurePolicy,
    RequestStatus,
    TransactionType,
    TypeMsg,
    UserRole,
)
from roadside.common.exceptions import (
    AlreadyAccepted,
    AlreadyProcessed,
    DomainError,
    Forbidden,
    InvalidState,
    NotFound,
    UpstreamPaymentFailure,
    ValidationError,
)
from roadside.common.logger import log_error, log_info, log_warning
from roadside.core.dispatch.state_machine import RequestStateMachine
from roadside.core.geo import distance_km
from roadside.core.ledger import Ledger
from roadside.core.notifications import NotificationBus
from roadside.core.payments import PaymentGateway
from roadside.core.presence import PresenceDirectory
from roadside.core.pricing import PricingPolicy
from roadside.core.requests import CreateRequestInput, RateInput, RequestDraft, ServiceRequest, ServiceRequestRepository
from roadside.core.users.models import MechanicSummary, User, profile_cache_key
from roadside.core.users.repository import UserRepository
from roadside.infra.database import DatabaseManager
from roadside.infra.event_bus import DomainEvent, EventBus, EventTypes
from roadside.infra.redis_client import RedisClient

MIN_RATING = 1
MAX_RATING = 5


class DispatchCoordinator:
    """
    State machine заявки на помощь.

    Реализует:
    - Создание заявки после подтверждения оплаты
    - Принятие заявки первым механиком (compare-and-swap)
    - Прибытие, завершение и подтверждение сторонами
    - Взаимную оценку и однократный расчёт
    - Отмену с возвратом оплаты
    """

    def __init__(
        self,
        db: DatabaseManager,
        redis: RedisClient,
        event_bus: EventBus,
        *,
        gateway: PaymentGateway,
        ledger: Ledger,
        presence: PresenceDirectory,
        notifications: NotificationBus,
        requests: ServiceRequestRepository | None = None,
        users: UserRepository | None = None,
        pricing: PricingPolicy | None = None,
        clock: Callable[[], datetime] = utc_now,
        refund_policy: RefundFailurePolicy | None = None,
        hold_hours: int | None = None,
        pending_radius_km: float | None = None,
    ) -> None:
        """
        Args:
            db: Менеджер базы данных
            redis: Клиент Redis
            event_bus: Шина доменных событий
            gateway: Платёжный шлюз
            ledger: Журнал транзакций
            presence: Каталог механиков онлайн
            notifications: Realtime-уведомления
            requests: Хранилище заявок
            users: Репозиторий пользователей
            pricing: Тарифная политика
            clock: Источник текущего времени
            refund_policy: Поведение отмены при неудачном возврате
            hold_hours: Удержание заработка механика в часах
            pending_radius_km: Радиус показа ожидающих заявок механику
        """
        from roadside.config import settings

        self._db = db
        self._redis = redis
        self._event_bus = event_bus
        self._gateway = gateway
        self._ledger = ledger
        self._presence = presence
        self._notifications = notifications
        self._requests = requests or ServiceRequestRepository(db)
        self._users = users or UserRepository(db)
        self._pricing = pricing or PricingPolicy()
        self._clock = clock
        self._refund_policy = refund_policy or RefundFailurePolicy(settings.payments.REFUND_FAILURE_POLICY)
        self._hold = timedelta(
            hours=hold_hours if hold_hours is not None else settings.dispatch.EARNINGS_HOLD_HOURS
        )
        self._pending_radius_km = (
            pending_radius_km if pending_radius_km is not None else settings.dispatch.PENDING_RADIUS_KM
        )

    # =========================================================================
    # ВСПОМОГАТЕЛЬНОЕ
    # =========================================================================

    async def _load(self, request_id: str) -> ServiceRequest:
        request = await self._requests.get(request_id)
        if request is None:
            raise NotFound("Заявка не найдена", {"request_id": request_id})
        return request

    async def _publish(self, event_type: str, payload: dict[str, Any]) -> None:
        try:
            await self._event_bus.publish(DomainEvent(event_type=event_type, payload=payload))
        except Exception as e:
            await log_error(f"Не удалось опубликовать {event_type}: {e}")

    async def _transition(
        self,
        request: ServiceRequest,
        target: RequestStatus,
        patch: dict[str, Any],
    ) -> ServiceRequest:
        """
        Переводит заявку в target условным обновлением.

        Raises:
            InvalidState: текущий статус не допускает переход
        """
        RequestStateMachine.validate_transition(request.status, target)

        updated = await self._requests.update(
            request.id,
            {"status": target, **patch},
            expected_status=RequestStateMachine.sources_of(target),
        )
        if updated is None:
            current = await self._load(request.id)
            raise InvalidState(
                f"Заявка уже в статусе {current.status.value}",
                {"status": current.status.value, "target": target.value},
            )

        await log_info(
            f"Заявка {request.id}: {request.status.value} → {target.value}",
            type_msg=TypeMsg.INFO,
        )
        return updated

    @staticmethod
    def _snapshot(request: ServiceRequest) -> dict[str, Any]:
        return request.model_dump(mode="json")

    # =========================================================================
    # СОЗДАНИЕ
    # =========================================================================

    async def create(self, actor: User, data: CreateRequestInput) -> ServiceRequest:
        """
        Создаёт заявку после проверки оплаты в шлюзе.

        Raises:
            Forbidden: пользователь не клиент
            ValidationError: оплата не подтверждена или уже использована
            UpstreamPaymentFailure: шлюз недоступен
        """
        if actor.role != UserRole.CLIENT:
            raise Forbidden("Создавать заявки могут только клиенты")

        if await self._requests.get_by_payment_ref(data.payment_ref) is not None:
            raise ValidationError("Этот платёж уже использован", {"payment_ref": data.payment_ref})

        try:
            capture = await self._gateway.capture_payment_status(data.payment_ref)
        except DomainError:
            raise
        except Exception as e:
            await log_error(f"Ошибка проверки платежа {data.payment_ref}: {e}", exc_info=True)
            raise UpstreamPaymentFailure("Платёжный шлюз недоступен") from e

        if capture != CaptureStatus.APPROVED:
            raise ValidationError(
                "Оплата не подтверждена",
                {"payment_ref": data.payment_ref, "capture_status": capture.value},
            )

        now = self._clock()
        pricing = self._pricing.compute(now)
        draft = RequestDraft(
            id=str(uuid4()),
            client_id=actor.id,
            service_type=data.service_type,
            pickup_lat=data.pickup_lat,
            pickup_lng=data.pickup_lng,
            pickup_address=data.pickup_address,
            description=data.description,
            vehicle=data.vehicle,
            base_fee=pricing.base_fee,
            distance_fee=pricing.distance_fee,
            platform_fee=pricing.platform_fee,
            worker_earnings=pricing.worker_earnings,
            total_price=pricing.total_price,
            is_after_hours=pricing.is_after_hours,
            payment_ref=data.payment_ref,
            created_at=now,
        )
        try:
            request = await self._requests.create(draft)
        except asyncpg.UniqueViolationError as e:
            raise ValidationError("Этот платёж уже использован", {"payment_ref": data.payment_ref}) from e

        await log_info(
            f"Заявка {request.id} создана клиентом {actor.id}: {request.total_price} "
            f"({'ночной' if request.is_after_hours else 'дневной'} тариф)",
            type_msg=TypeMsg.INFO,
        )

        # Рассылка всем механикам онлайн, радиус фильтруется при чтении списка
        await self._notifications.broadcast_to_online_workers(
            NotificationType.NEW_SERVICE_REQUEST,
            self._snapshot(request),
        )
        await self._publish(EventTypes.REQUEST_CREATED, {
            "request_id": request.id,
            "client_id": actor.id,
            "total_price": str(request.total_price),
        })
        return request

    # =========================================================================
    # ПРИНЯТИЕ
    # =========================================================================

    async def accept(self, actor: User, request_id: str) -> ServiceRequest:
        """
        Назначает механика на заявку. Выигрывает первый.

        Raises:
            Forbidden: не механик, не на линии или без базы
            NotFound: заявка не существует
            AlreadyAccepted: заявку уже принял другой механик
            InvalidState: заявка отменена
        """
        if not actor.is_worker:
            raise Forbidden("Принимать заявки могут только механики")
        if not actor.has_base_location:
            raise Forbidden("Укажите адрес базы, чтобы принимать заявки")
        if not await self._presence.is_online(actor.id):
            raise Forbidden("Выйдите на линию, чтобы принимать заявки")

        request = await self._load(request_id)
        distance = distance_km(actor.base_lat, actor.base_lng, request.pickup_lat, request.pickup_lng)

        accepted = await self._requests.try_accept(request_id, actor.id, distance, self._clock())
        if accepted is None:
            current = await self._load(request_id)
            if current.status == RequestStatus.CANCELLED:
                raise InvalidState("Заявка отменена клиентом", {"status": current.status.value})
            await log_info(f"Механик {actor.id} опоздал к заявке {request_id}", type_msg=TypeMsg.DEBUG)
            raise AlreadyAccepted("Заявку уже принял другой механик", {"request_id": request_id})

        await log_info(
            f"Заявка {request_id}: pending → accepted, механик {actor.id}, {distance:.2f} км",
            type_msg=TypeMsg.INFO,
        )

        snapshot = self._snapshot(accepted)
        mechanic = MechanicSummary(id=actor.id, full_name=actor.full_name, rating=actor.rating, phone=actor.phone)
        await self._notifications.send_to_user(
            accepted.client_id,
            NotificationType.SERVICE_REQUEST_ACCEPTED,
            {"request": snapshot, "mechanic": mechanic.model_dump(mode="json")},
        )
        await self._notifications.send_to_user(actor.id, NotificationType.SERVICE_REQUEST_STARTED, snapshot)
        await self._notifications.broadcast_to_online_workers(
            NotificationType.SERVICE_REQUEST_TAKEN,
            {"request_id": request_id},
            exclude_user_id=actor.id,
        )
        await self._publish(EventTypes.REQUEST_ACCEPTED, {
            "request_id": request_id,
            "mechanic_id": actor.id,
            "distance_km": distance,
        })
        return accepted

    # =========================================================================
    # ВЫПОЛНЕНИЕ
    # =========================================================================

    async def arrive(self, actor: User, request_id: str) -> ServiceRequest:
        """Механик прибыл на место."""
        request = await self._load(request_id)
        if request.mechanic_id is None or actor.id != request.mechanic_id:
            raise Forbidden("Отметить прибытие может только назначенный механик")

        updated = await self._transition(request, RequestStatus.ARRIVED, {"arrived_at": self._clock()})

        await self._notifications.send_to_user(
            updated.client_id,
            NotificationType.MECHANIC_ARRIVED,
            self._snapshot(updated),
        )
        await self._publish(EventTypes.REQUEST_ARRIVED, {"request_id": request_id})
        return updated

    async def complete(self, actor: User, request_id: str) -> ServiceRequest:
        """Любая из сторон отмечает работу выполненной."""
        request = await self._load(request_id)
        if not request.is_party(actor.id):
            raise Forbidden("Завершить заявку может только её участник")

        updated = await self._transition(request, RequestStatus.COMPLETED, {"completed_at": self._clock()})

        counterpart = updated.counterpart_of(actor.id)
        if counterpart:
            await self._notifications.send_to_user(
                counterpart,
                NotificationType.SERVICE_REQUEST_COMPLETED,
                self._snapshot(updated),
            )
        await self._publish(EventTypes.REQUEST_COMPLETED, {"request_id": request_id, "by": actor.id})
        return updated

    async def confirm(self, actor: User, request_id: str) -> ServiceRequest:
        """
        Сторона подтверждает выполнение. Статус не меняется.
        Повторное подтверждение ничего не делает.
        """
        request = await self._load(request_id)
        if not request.is_party(actor.id):
            raise Forbidden("Подтвердить заявку может только её участник")

        flag = "client_confirmed" if actor.id == request.client_id else "mechanic_confirmed"
        if getattr(request, flag):
            return request
        if request.status != RequestStatus.COMPLETED:
            raise InvalidState(
                "Подтвердить можно только завершённую заявку",
                {"status": request.status.value},
            )

        updated = await self._requests.update(
            request_id,
            {flag: True},
            expected_status=RequestStatus.COMPLETED,
        )
        if updated is None:
            current = await self._load(request_id)
            if getattr(current, flag):
                return current
            raise InvalidState("Заявка уже не в статусе completed", {"status": current.status.value})

        await log_info(f"Заявка {request_id}: {flag} от {actor.id}", type_msg=TypeMsg.INFO)

        counterpart = updated.counterpart_of(actor.id)
        if counterpart:
            await self._notifications.send_to_user(
                counterpart,
                NotificationType.SERVICE_REQUEST_CONFIRMED,
                self._snapshot(updated),
            )
        await self._publish(EventTypes.REQUEST_CONFIRMED, {"request_id": request_id, "by": actor.id})
        return updated

    # =========================================================================
    # ОЦЕНКА И РАСЧЁТ
    # =========================================================================

    async def rate(self, actor: User, request_id: str, data: RateInput) -> ServiceRequest:
        """
        Сторона оценивает другую. Каждая сторона оценивает один раз.

        Оценка, пересчёт рейтинга второй стороны и расчёт по заявке
        (когда выставлена вторая оценка) выполняются в одной транзакции БД.

        Raises:
            NotFound: заявка не существует
            Forbidden: пользователь не участник
            AlreadyProcessed: пользователь уже оценил
            ValidationError: оценка вне диапазона 1-5
            InvalidState: заявка не завершена или не подтверждена обеими сторонами
        """
        request = await self._load(request_id)
        if not request.is_party(actor.id):
            raise Forbidden("Оценить может только участник заявки")

        by_client = actor.id == request.client_id
        own_rating = request.client_rating if by_client else request.mechanic_rating
        if own_rating is not None:
            if self._settlement_due(request):
                await self._settle(request)
            raise AlreadyProcessed("Вы уже оценили эту заявку", {"rating": own_rating})

        rating = data.rating
        if isinstance(rating, bool) or not MIN_RATING <= rating <= MAX_RATING:
            raise ValidationError(f"Оценка должна быть от {MIN_RATING} до {MAX_RATING}", {"rating": rating})

        if request.status != RequestStatus.COMPLETED or not request.both_confirmed:
            raise InvalidState(
                "Оценка доступна после подтверждения обеими сторонами",
                {"status": request.status.value},
            )

        now = self._clock()
        async with self._db.transaction() as conn:
            updated = await self._requests.record_rating(
                request_id,
                by_client=by_client,
                rating=rating,
                comment=data.comment,
                conn=conn,
            )
            if updated is None:
                current = await self._requests.get(request_id, conn=conn)
                if current is not None and (current.client_rating if by_client else current.mechanic_rating) is not None:
                    raise AlreadyProcessed("Вы уже оценили эту заявку")
                raise InvalidState(
                    "Заявка уже не в статусе completed",
                    {"status": current.status.value if current else None},
                )

            counterpart = updated.counterpart_of(actor.id)
            await self._users.apply_rating(counterpart, rating, conn=conn)

            settled = None
            if updated.both_rated:
                settled = await self._claim_settlement(updated.id, now, conn)

        await self._redis.delete(profile_cache_key(counterpart))

        await log_info(
            f"Заявка {request_id}: {'клиент' if by_client else 'механик'} поставил {rating}",
            type_msg=TypeMsg.INFO,
        )
        await self._notifications.send_to_user(
            counterpart,
            NotificationType.SERVICE_REQUEST_RATED,
            {"request_id": request_id, "rating": rating, "comment": data.comment},
        )
        await self._publish(EventTypes.REQUEST_RATED, {
            "request_id": request_id,
            "by": actor.id,
            "rating": rating,
        })

        if settled is not None:
            await self._announce_settlement(settled, now + self._hold)
            return settled
        return updated

    @staticmethod
    def _settlement_due(request: ServiceRequest) -> bool:
        """Обе оценки есть, а расчёт не выполнен."""
        return request.status == RequestStatus.COMPLETED and request.both_rated and request.settled_at is None

    async def _settle(self, request: ServiceRequest) -> Optional[ServiceRequest]:
        """
        Расчёт по заявке в отдельной транзакции.
        Нужен для заявок, у которых оценки сохранены без расчёта.

        Returns:
            Заявка в статусе rated или None, если расчёт уже выполнен
        """
        now = self._clock()
        async with self._db.transaction() as conn:
            settled = await self._claim_settlement(request.id, now, conn)

        if settled is not None:
            await log_warning(f"Заявка {request.id}: расчёт выполнен повторно после сбоя")
            await self._announce_settlement(settled, now + self._hold)
        return settled

    async def _claim_settlement(self, request_id: str, now: datetime, conn: Any) -> Optional[ServiceRequest]:
        """
        Однократный расчёт внутри открытой транзакции:
        захват settled_at, заработок механику с удержанием, комиссия с клиента.
        """
        settled = await self._requests.claim_settlement(request_id, now, conn=conn)
        if settled is None:
            return None

        await self._ledger.record(
            settled.mechanic_id,
            TransactionType.WORKER_EARNINGS,
            settled.worker_earnings,
            f"Заработок по заявке {settled.id}",
            request_id=settled.id,
            available_at=now + self._hold,
            conn=conn,
        )
        await self._ledger.record(
            settled.client_id,
            TransactionType.PLATFORM_FEE,
            -settled.platform_fee,
            f"Комиссия платформы по заявке {settled.id}",
            request_id=settled.id,
            conn=conn,
        )
        return settled

    async def _announce_settlement(self, settled: ServiceRequest, available_at: datetime) -> None:
        await log_info(
            f"Заявка {settled.id}: completed → rated, механику {settled.worker_earnings} "
            f"доступно с {available_at.isoformat()}",
            type_msg=TypeMsg.INFO,
        )
        await self._notifications.send_to_user(
            settled.mechanic_id,
            NotificationType.PAYMENT_RELEASED,
            {
                "request_id": settled.id,
                "amount": str(settled.worker_earnings),
                "available_at": available_at.isoformat(),
            },
        )
        await self._publish(EventTypes.REQUEST_SETTLED, {
            "request_id": settled.id,
            "mechanic_id": settled.mechanic_id,
            "worker_earnings": str(settled.worker_earnings),
            "platform_fee": str(settled.platform_fee),
        })

    # =========================================================================
    # ОТМЕНА
    # =========================================================================

    async def cancel(self, actor: User, request_id: str, reason: Optional[str] = None) -> ServiceRequest:
        """
        Клиент отменяет заявку до завершения. Оплата возвращается.

        Raises:
            NotFound: заявка не существует
            Forbidden: пользователь не клиент этой заявки
            InvalidState: заявка уже завершена или отменена
            UpstreamPaymentFailure: возврат не прошёл при политике block
        """
        request = await self._load(request_id)
        if actor.id != request.client_id:
            raise Forbidden("Отменить заявку может только клиент")

        cancelled = await self._transition(request, RequestStatus.CANCELLED, {"cancelled_at": self._clock()})
        # Статус мог измениться между чтением и отменой
        previous_status = self._status_before_cancel(cancelled)

        if cancelled.payment_status == PaymentStatus.PAID:
            refunded = await self._refund(cancelled, previous_status)
            cancelled = refunded or cancelled

        payload = {**self._snapshot(cancelled), "reason": reason}
        if cancelled.mechanic_id:
            await self._notifications.send_to_user(
                cancelled.mechanic_id,
                NotificationType.SERVICE_REQUEST_CANCELLED,
                payload,
            )
        else:
            await self._notifications.broadcast_to_online_workers(
                NotificationType.SERVICE_REQUEST_CANCELLED,
                payload,
            )
        await self._publish(EventTypes.REQUEST_CANCELLED, {
            "request_id": request_id,
            "previous_status": previous_status.value,
            "payment_status": cancelled.payment_status.value,
            "reason": reason,
        })
        return cancelled

    @staticmethod
    def _status_before_cancel(cancelled: ServiceRequest) -> RequestStatus:
        """Статус, из которого заявка была отменена, по её отметкам времени."""
        if cancelled.mechanic_id is None:
            return RequestStatus.PENDING
        if cancelled.arrived_at is not None:
            return RequestStatus.ARRIVED
        return RequestStatus.ACCEPTED

    async def _refund(self, request: ServiceRequest, previous_status: RequestStatus) -> Optional[ServiceRequest]:
        """Возврат оплаты отменённой заявки по политике REFUND_FAILURE_POLICY."""
        amount: Decimal = request.total_price
        try:
            receipt = await self._gateway.refund(request.payment_ref, amount)
        except Exception as e:
            message = e.message if isinstance(e, DomainError) else str(e)

            if self._refund_policy == RefundFailurePolicy.BLOCK:
                await self._requests.update(
                    request.id,
                    {"status": previous_status, "cancelled_at": None},
                    expected_status=RequestStatus.CANCELLED,
                )
                await log_warning(
                    f"Отмена заявки {request.id} откатена: возврат не выполнен ({message})"
                )
                raise UpstreamPaymentFailure(
                    "Не удалось вернуть оплату, заявка не отменена",
                    {"request_id": request.id},
                ) from e

            await log_error(
                f"ВОЗВРАТ НЕ ВЫПОЛНЕН по заявке {request.id} ({request.payment_ref}, {amount}): {message}. "
                "Заявка отменена, требуется ручной возврат",
                exc_info=not isinstance(e, DomainError),
            )
            await self._publish(EventTypes.REFUND_FAILED, {
                "request_id": request.id,
                "payment_ref": request.payment_ref,
                "amount": str(amount),
                "error": message,
            })
            return await self._requests.update(request.id, {"payment_status": PaymentStatus.REFUND_FAILED})

        await self._ledger.record(
            request.client_id,
            TransactionType.REFUND,
            amount,
            f"Возврат по заявке {request.id}",
            request_id=request.id,
        )
        await log_info(
            f"Возврат {receipt.refund_id} по заявке {request.id} на {amount}",
            type_msg=TypeMsg.INFO,
        )
        return await self._requests.update(request.id, {"payment_status": PaymentStatus.REFUNDED})

    # =========================================================================
    # ЧТЕНИЕ
    # =========================================================================

    async def get_request(self, actor: User, request_id: str) -> ServiceRequest:
        """
        Заявка для участника, администратора или механика (пока она ожидает).
        """
        request = await self._load(request_id)
        if request.is_party(actor.id) or actor.is_admin:
            return request
        if actor.is_worker and request.status == RequestStatus.PENDING:
            return request
        raise Forbidden("Нет доступа к заявке")

    async def list_for_user(self, actor: User) -> list[ServiceRequest]:
        return await self._requests.list_for_user(actor.id)

    async def list_history(self, actor: User) -> list[ServiceRequest]:
        return await self._requests.list_history_for_user(actor.id)

    async def get_active(self, actor: User) -> Optional[ServiceRequest]:
        return await self._requests.get_active_for_user(actor.id)

    async def list_pending_for_worker(self, actor: User) -> list[ServiceRequest]:
        """
        Ожидающие заявки в радиусе от базы механика.
        Механик без базы получает пустой список.
        """
        if not actor.is_worker:
            raise Forbidden("Список ожидающих заявок доступен только механикам")
        if not actor.has_base_location:
            return []
        return await self._requests.list_pending_near(actor.base_lat, actor.base_lng, self._pending_radius_km)

# roadside/core/chat/service.py
"""
Чат между клиентом и механиком заявки.
"""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from roadside.common.constants import NotificationType, TypeMsg
from roadside.common.exceptions import Forbidden, NotFound
from roadside.common.logger import log_info
from roadside.core.chat.models import ChatMessage
from roadside.core.chat.repository import ChatRepository
from roadside.core.notifications import NotificationBus
from roadside.core.requests import ServiceRequest, ServiceRequestRepository
from roadside.core.users.models import User
from roadside.infra.database import DatabaseManager


class ChatService:
    """Сервис чата по заявке."""

    def __init__(
        self,
        db: DatabaseManager,
        notifications: NotificationBus,
        *,
        repository: ChatRepository | None = None,
        requests: ServiceRequestRepository | None = None,
    ) -> None:
        """
        Args:
            db: Менеджер базы данных
            notifications: Шина realtime-уведомлений
            repository: Репозиторий сообщений
            requests: Репозиторий заявок
        """
        self._repo = repository or ChatRepository(db)
        self._requests = requests or ServiceRequestRepository(db)
        self._notifications = notifications

    async def _load_for_party(self, actor: User, request_id: str) -> ServiceRequest:
        request = await self._requests.get(request_id)
        if request is None:
            raise NotFound("Заявка не найдена", {"request_id": request_id})
        if not request.is_party(actor.id):
            raise Forbidden("Чат доступен только участникам заявки")
        return request

    async def send_message(self, actor: User, request_id: str, text: str) -> ChatMessage:
        """
        Отправляет сообщение и уведомляет вторую сторону.

        Raises:
            NotFound: заявка не существует
            Forbidden: пользователь не участник заявки
        """
        request = await self._load_for_party(actor, request_id)

        message = await self._repo.insert(ChatMessage(
            id=str(uuid4()),
            request_id=request_id,
            sender_id=actor.id,
            message=text,
            created_at=datetime.now(timezone.utc),
            sender_name=actor.full_name,
        ))

        recipient_id = request.counterpart_of(actor.id)
        if recipient_id:
            await self._notifications.send_to_user(
                recipient_id,
                NotificationType.NEW_CHAT_MESSAGE,
                message.model_dump(mode="json"),
            )

        await log_info(f"Сообщение в чате заявки {request_id} от {actor.id}", type_msg=TypeMsg.DEBUG)
        return message

    async def list_messages(self, actor: User, request_id: str) -> list[ChatMessage]:
        """Сообщения заявки для её участника."""
        await self._load_for_party(actor, request_id)
        return await self._repo.list_for_request(request_id)

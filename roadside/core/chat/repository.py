# roadside/core/chat/repository.py
"""
Репозиторий сообщений чата.
"""

from __future__ import annotations

from typing import Any

from roadside.core.chat.models import ChatMessage
from roadside.infra.database import DatabaseManager

UNKNOWN_SENDER = "Пользователь"


class ChatRepository:
    """Сообщения только добавляются."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def insert(self, message: ChatMessage) -> ChatMessage:
        """Сохраняет сообщение."""
        row = await self._db.fetchrow(
            """
            INSERT INTO chat_messages (id, request_id, sender_id, message, created_at)
            VALUES ($1, $2, $3, $4, $5)
            RETURNING id, request_id, sender_id, message, created_at
            """,
            message.id,
            message.request_id,
            message.sender_id,
            message.message,
            message.created_at,
        )
        return self._row_to_message(row, sender_name=message.sender_name)

    async def list_for_request(self, request_id: str) -> list[ChatMessage]:
        """Сообщения заявки в хронологическом порядке, с именем отправителя."""
        rows = await self._db.fetch(
            """
            SELECT m.id, m.request_id, m.sender_id, m.message, m.created_at,
                   u.full_name AS sender_name
            FROM chat_messages m
            LEFT JOIN users u ON u.id = m.sender_id
            WHERE m.request_id = $1
            ORDER BY m.created_at ASC
            """,
            request_id,
        )
        return [self._row_to_message(row, sender_name=row["sender_name"]) for row in rows]

    def _row_to_message(self, row: Any, sender_name: str | None) -> ChatMessage:
        return ChatMessage(
            id=row["id"],
            request_id=row["request_id"],
            sender_id=row["sender_id"],
            message=row["message"],
            created_at=row["created_at"],
            sender_name=sender_name or UNKNOWN_SENDER,
        )

# roadside/core/chat/models.py
"""
Модели чата по заявке.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


class ChatMessage(BaseModel):
    """Сообщение в чате заявки."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    request_id: str
    sender_id: str
    message: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    sender_name: str = ""


class ChatMessageInput(BaseModel):
    """Новое сообщение."""

    message: str = Field(..., min_length=1, max_length=2000)

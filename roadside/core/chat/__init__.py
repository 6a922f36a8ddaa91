from roadside.core.chat.models import ChatMessage, ChatMessageInput
from roadside.core.chat.repository import ChatRepository
from roadside.core.chat.service import ChatService

__all__ = ["ChatMessage", "ChatMessageInput", "ChatRepository", "ChatService"]

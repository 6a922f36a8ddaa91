from fastapi import APIRouter, Depends, status

from roadside.core.chat import ChatMessage, ChatMessageInput, ChatService
from roadside.core.users.models import User
from roadside.services.api.dependencies import get_chat_service, get_current_user

router = APIRouter(prefix="/requests/{request_id}/messages", tags=["Chat"])


@router.get("", response_model=list[ChatMessage])
async def list_messages(
    request_id: str,
    user: User = Depends(get_current_user),
    chat: ChatService = Depends(get_chat_service),
):
    return await chat.list_messages(user, request_id)


@router.post("", response_model=ChatMessage, status_code=status.HTTP_201_CREATED)
async def send_message(
    request_id: str,
    data: ChatMessageInput,
    user: User = Depends(get_current_user),
    chat: ChatService = Depends(get_chat_service),
):
    return await chat.send_message(user, request_id, data.message)

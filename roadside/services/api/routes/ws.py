"""
WebSocket для realtime-событий.

Подключение: /ws?token=<bearer-токен>. Сервер присылает события
в формате {"type": ..., "payload": {...}}.

Входящие сообщения:
- {"type": "ping"}
- {"type": "location_update", "payload": {"lat": -23.55, "lng": -46.63}}
"""

import json
from typing import Any, Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status

from roadside.common.constants import TypeMsg
from roadside.common.exceptions import DomainError
from roadside.common.logger import log_error, log_info
from roadside.core.presence import PresenceDirectory
from roadside.core.users.models import User
from roadside.services.api.dependencies import get_presence, get_ws_user, require_admin
from roadside.services.realtime import manager

router = APIRouter(tags=["Realtime"])

# Код закрытия для неавторизованного соединения
WS_CLOSE_UNAUTHORIZED = 4401


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    user: Optional[User] = Depends(get_ws_user),
    presence: PresenceDirectory = Depends(get_presence),
) -> None:
    if user is None:
        await websocket.close(code=WS_CLOSE_UNAUTHORIZED)
        return

    await manager.connect(websocket, user.id, user.role)
    await log_info(f"WebSocket подключён: {user.id}", type_msg=TypeMsg.DEBUG)

    try:
        while True:
            raw = await websocket.receive_text()
            await handle_client_message(user, raw, presence)
    except WebSocketDisconnect:
        pass
    except Exception as e:
        await log_error(f"WebSocket {user.id} закрыт с ошибкой: {e}", exc_info=True)
    finally:
        await manager.disconnect(user.id, websocket)
        await log_info(f"WebSocket отключён: {user.id}", type_msg=TypeMsg.DEBUG)


async def handle_client_message(user: User, raw: str, presence: PresenceDirectory) -> None:
    """Обработать сообщение от клиента."""
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        await _send_error(user.id, "bad_message", "Ожидается JSON")
        return
    if not isinstance(data, dict):
        await _send_error(user.id, "bad_message", "Ожидается JSON-объект")
        return

    msg_type = data.get("type")
    payload = data.get("payload") or {}

    if msg_type == "ping":
        await manager.send_personal(user.id, {"type": "pong"})

    elif msg_type == "location_update":
        try:
            lat = float(payload["lat"])
            lng = float(payload["lng"])
        except (KeyError, TypeError, ValueError):
            await _send_error(user.id, "validation_error", "Нужны числовые lat и lng")
            return
        try:
            await presence.update_location(user.id, lat, lng)
        except DomainError as e:
            await _send_error(user.id, e.code, e.message)

    else:
        await _send_error(user.id, "unknown_type", f"Неизвестный тип сообщения: {msg_type}")


async def _send_error(user_id: str, code: str, message: str) -> None:
    await manager.send_personal(user_id, {"type": "error", "payload": {"error_code": code, "message": message}})


@router.get("/ws/stats", status_code=status.HTTP_200_OK)
async def get_stats(_: User = Depends(require_admin)) -> dict[str, Any]:
    """Статистика соединений этого процесса."""
    return manager.get_stats()

# roadside/services/realtime/connection_manager.py
"""
Менеджер WebSocket соединений.
Хранит по одному соединению на пользователя и доставляет ему личные события.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from fastapi import WebSocket

from roadside.common.clock import utc_now
from roadside.common.constants import UserRole


@dataclass
class ConnectionInfo:
    """Информация о соединении."""
    websocket: WebSocket
    user_id: str
    role: UserRole
    connected_at: datetime = field(default_factory=utc_now)


class ConnectionManager:
    """
    Менеджер WebSocket соединений.

    Поддерживает:
    - Подключение/отключение клиентов
    - Персональные сообщения
    - Статистику по ролям
    """

    def __init__(self) -> None:
        # user_id -> ConnectionInfo
        self._connections: dict[str, ConnectionInfo] = {}

        self._total_connections: int = 0
        self._total_messages_sent: int = 0

    @property
    def active_connections(self) -> int:
        """Количество активных соединений."""
        return len(self._connections)

    def is_connected(self, user_id: str) -> bool:
        return user_id in self._connections

    async def connect(self, websocket: WebSocket, user_id: str, role: UserRole = UserRole.CLIENT) -> None:
        """
        Подключить клиента.

        Если у пользователя уже есть соединение, старое закрывается.
        """
        previous = self._connections.get(user_id)
        if previous is not None:
            await self._close_connection(previous)

        await websocket.accept()

        self._connections[user_id] = ConnectionInfo(websocket=websocket, user_id=user_id, role=role)
        self._total_connections += 1

    async def disconnect(self, user_id: str, websocket: WebSocket | None = None) -> None:
        """
        Отключить клиента.

        Args:
            user_id: ID пользователя
            websocket: Если передан, удаляется только это соединение
        """
        conn = self._connections.get(user_id)
        if conn is None:
            return
        if websocket is not None and conn.websocket is not websocket:
            # Соединение уже заменено новым
            return
        del self._connections[user_id]

    async def send_personal(self, user_id: str, message: dict[str, Any]) -> bool:
        """
        Отправить сообщение конкретному пользователю.

        Returns:
            True если сообщение отправлено, False если пользователь не подключен
        """
        conn = self._connections.get(user_id)
        if conn is None:
            return False

        try:
            await conn.websocket.send_json(message)
        except Exception:
            # Соединение разорвано
            await self.disconnect(user_id, conn.websocket)
            return False

        self._total_messages_sent += 1
        return True

    def get_stats(self) -> dict[str, Any]:
        """Получить статистику."""
        by_role: dict[str, int] = {}
        for conn in self._connections.values():
            by_role[conn.role.value] = by_role.get(conn.role.value, 0) + 1
        return {
            "active_connections": len(self._connections),
            "total_connections_ever": self._total_connections,
            "total_messages_sent": self._total_messages_sent,
            "connections_by_role": by_role,
        }

    async def _close_connection(self, conn: ConnectionInfo) -> None:
        """Закрыть соединение, если оно ещё открыто."""
        try:
            await conn.websocket.close()
        except RuntimeError:
            # Уже закрыто
            return


# Глобальный экземпляр
manager = ConnectionManager()

# roadside/shared/models/auth.py
"""
Ответы эндпоинтов аутентификации.
"""

from __future__ import annotations

from pydantic import BaseModel

from roadside.core.users.models import UserPublic


class AuthResponse(BaseModel):
    """Токен сессии и профиль пользователя."""

    token: str
    user: UserPublic


class StatusResponse(BaseModel):
    status: str = "ok"

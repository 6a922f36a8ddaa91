# roadside/core/users/models.py
"""
Модели данных пользователей.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from roadside.common.constants import PixKeyType, UserRole

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class User(BaseModel):
    """Модель пользователя (клиент, механик или администратор)."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="UUID пользователя")
    email: str = Field(..., description="Email для входа")
    password_hash: str = Field("", description="Хэш пароля", exclude=True)
    full_name: str = Field(..., description="Полное имя")
    phone: Optional[str] = Field(None, description="Номер телефона")
    role: UserRole = Field(UserRole.CLIENT, description="Роль пользователя")

    is_online: bool = Field(False, description="Механик принимает вызовы")
    current_lat: Optional[float] = Field(None, description="Текущая широта")
    current_lng: Optional[float] = Field(None, description="Текущая долгота")

    base_address: Optional[str] = Field(None, description="Адрес базы механика")
    base_lat: Optional[float] = Field(None, description="Широта базы")
    base_lng: Optional[float] = Field(None, description="Долгота базы")

    rating: float = Field(5.0, ge=0.0, le=5.0, description="Средняя оценка")
    total_ratings: int = Field(0, ge=0, description="Количество оценок")

    pix_key: Optional[str] = Field(None, description="Ключ PIX для выплат")
    pix_key_type: Optional[PixKeyType] = Field(None, description="Тип ключа PIX")
    bank_name: Optional[str] = None
    bank_branch: Optional[str] = None
    bank_account: Optional[str] = None
    account_holder: Optional[str] = None

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_worker(self) -> bool:
        return self.role == UserRole.WORKER

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def has_base_location(self) -> bool:
        """Задана ли база механика."""
        return self.base_lat is not None and self.base_lng is not None

    @property
    def has_payout_destination(self) -> bool:
        """Настроены ли реквизиты для выплат."""
        return bool(self.pix_key) and self.pix_key_type is not None

    def public(self) -> "UserPublic":
        """Профиль без чувствительных полей."""
        return UserPublic.model_validate(self.model_dump())


def profile_cache_key(user_id: str) -> str:
    """Ключ кэша публичного профиля в Redis."""
    return f"user:{user_id}"


class UserPublic(BaseModel):
    """Профиль пользователя для отдачи наружу."""

    id: str
    email: str
    full_name: str
    phone: Optional[str] = None
    role: UserRole
    is_online: bool = False
    base_address: Optional[str] = None
    base_lat: Optional[float] = None
    base_lng: Optional[float] = None
    rating: float = 5.0
    total_ratings: int = 0
    pix_key: Optional[str] = None
    pix_key_type: Optional[PixKeyType] = None
    bank_name: Optional[str] = None
    bank_branch: Optional[str] = None
    bank_account: Optional[str] = None
    account_holder: Optional[str] = None
    created_at: datetime


class NearbyMechanic(UserPublic):
    """Механик онлайн рядом с точкой поиска."""

    current_lat: float
    current_lng: float
    distance_km: float


class MechanicSummary(BaseModel):
    """Краткие данные механика для клиента после принятия заявки."""

    id: str
    full_name: str
    rating: float
    phone: Optional[str] = None


# =============================================================================
# ВХОДНЫЕ ДАННЫЕ
# =============================================================================

class RegisterInput(BaseModel):
    """Регистрация пользователя."""

    email: str = Field(..., pattern=EMAIL_PATTERN, max_length=255)
    password: str = Field(..., min_length=6, max_length=128)
    full_name: str = Field(..., min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=32)
    role: UserRole = UserRole.CLIENT

    @field_validator("role")
    @classmethod
    def no_self_admin(cls, v: UserRole) -> UserRole:
        """Администратора нельзя зарегистрировать через публичный API."""
        if v == UserRole.ADMIN:
            raise ValueError("Роль admin недоступна при регистрации")
        return v


class LoginInput(BaseModel):
    """Вход по email и паролю."""

    email: str = Field(..., pattern=EMAIL_PATTERN, max_length=255)
    password: str


class PayoutDestinationInput(BaseModel):
    """Реквизиты для выплат."""

    pix_key: str = Field(..., min_length=1, max_length=255)
    pix_key_type: PixKeyType
    bank_name: Optional[str] = Field(None, max_length=255)
    bank_branch: Optional[str] = Field(None, max_length=32)
    bank_account: Optional[str] = Field(None, max_length=64)
    account_holder: Optional[str] = Field(None, max_length=255)


class BaseLocationInput(BaseModel):
    """База механика."""

    base_address: str = Field(..., min_length=1)
    base_lat: float = Field(..., ge=-90, le=90)
    base_lng: float = Field(..., ge=-180, le=180)


class LocationInput(BaseModel):
    """Текущее положение пользователя."""

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class OnlineInput(BaseModel):
    """Переключение приёма вызовов."""

    is_online: bool

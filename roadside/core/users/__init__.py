"""
Пользователи: модели, репозиторий, сервис профиля и сессии.
"""

from roadside.core.users.models import MechanicSummary, NearbyMechanic, User, UserPublic
from roadside.core.users.repository import UserRepository

__all__ = ["MechanicSummary", "NearbyMechanic", "User", "UserPublic", "UserRepository"]

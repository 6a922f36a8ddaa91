"""
Хэширование паролей (bcrypt).
"""

from __future__ import annotations

import os

import bcrypt

BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

# bcrypt учитывает только первые 72 байта пароля
MAX_PASSWORD_BYTES = 72


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:MAX_PASSWORD_BYTES]


def hash_password(password: str, *, rounds: int | None = None) -> str:
    """Возвращает bcrypt-хэш вида $2b$<rounds>$<salt+hash>."""
    salt = bcrypt.gensalt(rounds=rounds or BCRYPT_ROUNDS)
    return bcrypt.hashpw(_encode(password), salt).decode("utf-8")


def verify_password(password: str, stored_hash: str) -> bool:
    """Проверяет пароль против сохранённого хэша."""
    if not stored_hash.startswith("$2"):
        return False
    try:
        return bcrypt.checkpw(_encode(password), stored_hash.encode("utf-8"))
    except ValueError:
        # Повреждённый хэш
        return False

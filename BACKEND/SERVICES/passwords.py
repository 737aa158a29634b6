"""Руководство к файлу (BACKEND/SERVICES/passwords.py)
Назначение:
- Хэширование и проверка паролей через passlib (схема argon2, memory-hard KDF).
- dummy_verify() выравнивает время ответа для несуществующих email.
"""

from __future__ import annotations

from typing import Optional

from passlib.context import CryptContext

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")

# Хэш-заглушка для выравнивания времени проверки
_DUMMY_HASH = pwd_context.hash("docintel-dummy-password")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    """Проверить пароль против хэша; пустой хэш (Microsoft-пользователь) всегда даёт False."""

    if not password_hash:
        dummy_verify()
        return False
    try:
        return pwd_context.verify(password, password_hash)
    except ValueError:
        # строка в БД не является хэшем известной схемы
        return False


def dummy_verify() -> None:
    pwd_context.verify("not-the-password", _DUMMY_HASH)

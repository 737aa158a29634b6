"""Руководство к файлу (BACKEND/SERVICES/auth_service.py)
Назначение:
- Вход по email/паролю, выход и разрешение bearer-токена в пользователя.
- Не зависит от FastAPI: работает только с контрактом Storage.
Важно:
- На любую ошибку входа одно сообщение "Invalid credentials", без уточнения
  какая из проверок не прошла; при ошибке сессия не создаётся.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from BACKEND.DATABASE.models import User
from BACKEND.STORAGE import Storage
from .passwords import dummy_verify, verify_password


logger = logging.getLogger("docintel.services.auth")


class InvalidCredentialsError(Exception):
    """Неверный email или пароль."""

    def __init__(self, message: str = "Invalid credentials") -> None:
        super().__init__(message)
        self.message = message


@dataclass
class LoginResult:
    user: User
    token: str


class AuthService:
    def __init__(self, storage: Storage) -> None:
        self.storage = storage

    async def login(self, email: str, password: str) -> LoginResult:
        user = await self.storage.get_user_by_email(email)
        if user is None:
            dummy_verify()
            raise InvalidCredentialsError()
        if not verify_password(password, user.password_hash):
            raise InvalidCredentialsError()

        token = await self.storage.create_session(user.id)
        updated = await self.storage.update_user(user.id, {"last_login_at": self.storage.clock()})
        logger.info("[AuthService.login] user_id=%s logged in", user.id)
        return LoginResult(user=updated or user, token=token)

    async def logout(self, token: Optional[str]) -> None:
        """Удалить сессию; ошибки логируются и не пробрасываются."""

        if not token:
            return
        try:
            await self.storage.delete_session(token)
        except Exception:
            logger.exception("[AuthService.logout] failed to delete session")

    async def resolve(self, token: str) -> Optional[User]:
        return await self.storage.get_session_user(token)

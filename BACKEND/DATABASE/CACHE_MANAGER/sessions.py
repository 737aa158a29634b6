# Руководство к файлу (DATABASE/CACHE_MANAGER/sessions.py)
# Назначение:
# - Менеджер сессий: хранение opaque bearer-токенов (user_sessions) и их удаление.
# - Проверку срока жизни делает хранилище, менеджер только читает/пишет строки.

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from .base_class import BaseManager
from ..models import UserSession


class SessionManager(BaseManager):
    def __init__(self, session: AsyncSession):
        super().__init__(session)

    async def create_session(self, *, user_id: int, token: str, expires_at: datetime, created_at: datetime) -> UserSession:
        return await self.create(
            UserSession,
            {"user_id": user_id, "session_token": token, "expires_at": expires_at, "created_at": created_at},
        )

    async def get_by_token(self, token: str) -> Optional[UserSession]:
        return await self.get_one_where(UserSession, UserSession.session_token == token)

    async def delete_by_token(self, token: str) -> bool:
        res = await self.session.execute(delete(UserSession).where(UserSession.session_token == token))
        return int(res.rowcount or 0) > 0

    async def delete_expired(self, now: datetime) -> int:
        res = await self.session.execute(delete(UserSession).where(UserSession.expires_at <= now))
        return int(res.rowcount or 0)

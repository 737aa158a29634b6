# Руководство к файлу (DATABASE/CACHE_MANAGER/user.py)
# Назначение:
# - Менеджер пользователей: создание/чтение/обновление и поиск по уникальным полям
#   (email, username, microsoft_id).
# - Работает поверх SQLAlchemy AsyncSession.

from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from .base_class import BaseManager
from ..models import User


class UserManager(BaseManager):
    def __init__(self, session: AsyncSession):
        super().__init__(session)

    async def create_user(self, data: Dict[str, Any]) -> User:
        return await self.create(User, data)

    async def get_user(self, user_id: int) -> Optional[User]:
        return await self.get_by_id(User, user_id)

    async def get_user_by_email(self, email: str) -> Optional[User]:
        return await self.get_one_where(User, User.email == email)

    async def get_user_by_username(self, username: str) -> Optional[User]:
        return await self.get_one_where(User, User.username == username)

    async def get_user_by_microsoft_id(self, microsoft_id: str) -> Optional[User]:
        """Найти пользователя по внешнему идентификатору Microsoft (поле User.microsoft_id)."""

        return await self.get_one_where(User, User.microsoft_id == microsoft_id)

    async def list_users(self) -> List[User]:
        return await self.list_where(User, order_by=User.id)

    async def update_user(self, user_id: int, data: Dict[str, Any]) -> Optional[User]:
        return await self.update_by_id(User, user_id, data)

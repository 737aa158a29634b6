# Руководство к файлу (DATABASE/CACHE_MANAGER/messages.py)
# Назначение:
# - Менеджер сообщений чата: создание, последние N сообщений пользователя,
#   подсчёт запросов за интервал и выборки для аналитики.

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from .base_class import BaseManager
from ..models import Message


class MessageManager(BaseManager):
    def __init__(self, session: AsyncSession):
        super().__init__(session)

    async def create_message(self, data: Dict[str, Any]) -> Message:
        return await self.create(Message, data)

    async def list_recent(self, user_id: int, limit: int = 50) -> List[Message]:
        """Последние *limit* сообщений пользователя в хронологическом порядке."""

        rows = await self.list_where(
            Message,
            where=[Message.user_id == user_id],
            order_by=(Message.id.desc()),
            limit=limit,
        )
        rows.reverse()
        return rows

    async def list_user_messages(self, user_id: int) -> List[Message]:
        return await self.list_where(Message, where=[Message.user_id == user_id], order_by=Message.id)

    async def count_user_queries_between(self, user_id: int, start: datetime, end: datetime) -> int:
        return await self.count_where(
            Message,
            Message.user_id == user_id,
            Message.role == "user",
            Message.created_at >= start,
            Message.created_at < end,
        )

    async def count_active_users_between(self, start: datetime, end: datetime) -> int:
        q = (
            select(func.count(func.distinct(Message.user_id)))
            .where(Message.role == "user", Message.created_at >= start, Message.created_at < end)
        )
        return int((await self.session.execute(q)).scalar_one() or 0)

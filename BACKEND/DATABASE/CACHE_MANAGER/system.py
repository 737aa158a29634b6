# Руководство к файлу (DATABASE/CACHE_MANAGER/system.py)
# Назначение:
# - Системный менеджер: статусы компонентов (upsert по component) и статус
#   удалённого LLM-сервера (upsert по server_endpoint).
# - Совместим с SQLite и Postgres.

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from .base_class import BaseManager
from ..models import SystemStatus, LlmServerStatus


class SystemManager(BaseManager):
    def __init__(self, session: AsyncSession):
        super().__init__(session)

    async def list_statuses(self) -> List[SystemStatus]:
        return await self.list_where(SystemStatus, order_by=SystemStatus.id)

    async def get_status(self, component: str) -> Optional[SystemStatus]:
        return await self.get_one_where(SystemStatus, SystemStatus.component == component)

    async def upsert_status(self, component: str, status: str, message: Optional[str], now: datetime) -> SystemStatus:
        existing = await self.get_status(component)
        if existing is None:
            return await self.create(
                SystemStatus,
                {"component": component, "status": status, "message": message, "updated_at": now},
            )
        existing.status = status
        existing.message = message
        existing.updated_at = now
        await self.session.flush()
        return existing

    async def get_latest_llm_status(self) -> Optional[LlmServerStatus]:
        rows = await self.list_where(
            LlmServerStatus,
            order_by=(LlmServerStatus.updated_at.desc(), LlmServerStatus.id.desc()),
            limit=1,
        )
        return rows[0] if rows else None

    async def upsert_llm_status(self, data: Dict[str, Any], now: datetime) -> LlmServerStatus:
        endpoint = data["server_endpoint"]
        existing = await self.get_one_where(LlmServerStatus, LlmServerStatus.server_endpoint == endpoint)
        values = {**data, "last_ping": data.get("last_ping") or now, "updated_at": now}
        if existing is None:
            return await self.create(LlmServerStatus, values)
        for key, value in values.items():
            setattr(existing, key, value)
        await self.session.flush()
        return existing

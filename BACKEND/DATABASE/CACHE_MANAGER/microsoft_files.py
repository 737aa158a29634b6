# Руководство к файлу (DATABASE/CACHE_MANAGER/microsoft_files.py)
# Назначение:
# - Менеджер кэша метаданных файлов OneDrive/SharePoint (microsoft_files).
# - Одна строка на пару (user_id, microsoft_file_id).

from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from .base_class import BaseManager
from ..models import MicrosoftFile


class MicrosoftFileManager(BaseManager):
    def __init__(self, session: AsyncSession):
        super().__init__(session)

    async def list_user_files(self, user_id: int) -> List[MicrosoftFile]:
        return await self.list_where(MicrosoftFile, where=[MicrosoftFile.user_id == user_id], order_by=MicrosoftFile.id)

    async def get_user_file(self, user_id: int, microsoft_file_id: str) -> Optional[MicrosoftFile]:
        return await self.get_one_where(
            MicrosoftFile,
            MicrosoftFile.user_id == user_id,
            MicrosoftFile.microsoft_file_id == microsoft_file_id,
        )

    async def create_file(self, data: Dict[str, Any]) -> MicrosoftFile:
        return await self.create(MicrosoftFile, data)

    async def update_file(self, file_id: int, data: Dict[str, Any]) -> Optional[MicrosoftFile]:
        return await self.update_by_id(MicrosoftFile, file_id, data)

# Руководство к файлу (DATABASE/CACHE_MANAGER/documents.py)
# Назначение:
# - Менеджер документов DocIntel: создание, чтение, частичное обновление, удаление,
#   списки (свои / общие), поиск по имени и счётчики для статистики.
# - Содержимое файлов не хранится: только метаданные загрузки.

from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy import String, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from .base_class import BaseManager
from ..models import Document


class DocumentManager(BaseManager):
    def __init__(self, session: AsyncSession):
        super().__init__(session)

    async def create_document(self, data: Dict[str, Any]) -> Document:
        return await self.create(Document, data)

    async def get_document(self, document_id: int) -> Optional[Document]:
        return await self.get_by_id(Document, document_id)

    async def update_document(self, document_id: int, data: Dict[str, Any]) -> Optional[Document]:
        return await self.update_by_id(Document, document_id, data)

    async def delete_document(self, document_id: int) -> bool:
        affected = await self.delete_by_id(Document, document_id)
        return affected > 0

    async def list_user_documents(self, user_id: int) -> List[Document]:
        return await self.list_where(Document, where=[Document.user_id == user_id], order_by=Document.id)

    async def list_shared_documents(self) -> List[Document]:
        return await self.list_where(Document, where=[Document.is_shared.is_(True)], order_by=Document.id)

    async def search_user_documents(self, user_id: int, query: str) -> List[Document]:
        needle = query.lower()
        conds = [
            Document.user_id == user_id,
            or_(
                func.lower(Document.filename, type_=String).contains(needle, autoescape=True),
                func.lower(Document.original_name, type_=String).contains(needle, autoescape=True),
            ),
        ]
        return await self.list_where(Document, where=conds, order_by=Document.id)

    async def count_user_documents(self, user_id: int) -> int:
        return await self.count_where(Document, Document.user_id == user_id)

    async def count_processing(self, user_id: int) -> int:
        return await self.count_where(Document, Document.user_id == user_id, Document.is_processing.is_(True))

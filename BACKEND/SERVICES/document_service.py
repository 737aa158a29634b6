"""Руководство к файлу (BACKEND/SERVICES/document_service.py)
Назначение:
- Документы пользователя: симулированная загрузка (только метаданные),
  отложенная «индексация», поиск по имени, очистка базы знаний, экспорт данных.
Важно:
- Байты файла не принимаются и не хранятся.
- Задача индексации меняет только is_processing/is_indexed; если документ
  успели удалить, задача ничего не делает.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from BACKEND.DATABASE.models import Document, Message, User
from BACKEND.STORAGE import Storage
from .task_runner import DelayedTaskRunner


logger = logging.getLogger("docintel.services.documents")

DEFAULT_UPLOAD_NAME = "uploaded_file.pdf"
DEFAULT_UPLOAD_TYPE = "application/pdf"
DEFAULT_UPLOAD_SIZE = 1024000


class DocumentService:
    def __init__(self, storage: Storage, tasks: DelayedTaskRunner, *, processing_delay: float = 5.0) -> None:
        self.storage = storage
        self.tasks = tasks
        self.processing_delay = processing_delay

    @staticmethod
    def can_modify(user: User, document: Document) -> bool:
        return document.user_id == user.id or user.role == "admin"

    @staticmethod
    def can_view(user: User, document: Document) -> bool:
        return document.user_id == user.id or bool(document.is_shared) or user.role == "admin"

    async def upload(
        self,
        user: User,
        *,
        filename: Optional[str] = None,
        file_type: Optional[str] = None,
        file_size: Optional[int] = None,
    ) -> Document:
        """Создать запись документа и запланировать завершение обработки."""

        name = filename or DEFAULT_UPLOAD_NAME
        document = await self.storage.create_document(
            {
                "user_id": user.id,
                "filename": name,
                "original_name": name,
                "file_type": file_type or DEFAULT_UPLOAD_TYPE,
                "file_size": file_size or DEFAULT_UPLOAD_SIZE,
                "file_path": f"/uploads/{name}",
                "is_shared": False,
                "is_indexed": False,
                "is_processing": True,
                "extra_metadata": None,
            }
        )
        self.tasks.schedule(
            f"document-processing:{document.id}",
            self.processing_delay,
            lambda: self._finish_processing(document.id),
        )
        logger.info("[DocumentService.upload] user_id=%s document_id=%s name=%s", user.id, document.id, name)
        return document

    async def _finish_processing(self, document_id: int) -> None:
        if await self.storage.get_document(document_id) is None:
            logger.info("[DocumentService._finish_processing] document_id=%s gone, skipping", document_id)
            return
        await self.storage.update_document(document_id, {"is_processing": False, "is_indexed": True})

    async def search(self, user: User, query: Optional[str]) -> List[Document]:
        if not query:
            return []
        return await self.storage.search_documents(user.id, query)

    async def clear_knowledge_base(self, user: User) -> int:
        """Удалить все документы пользователя; сообщения не затрагиваются."""

        removed = 0
        for doc in await self.storage.get_documents(user.id):
            if await self.storage.delete_document(doc.id):
                removed += 1
        logger.info("[DocumentService.clear_knowledge_base] user_id=%s removed=%s", user.id, removed)
        return removed

    async def export_user_data(self, user: User) -> Dict[str, Any]:
        documents: List[Document] = await self.storage.get_documents(user.id)
        messages: List[Message] = await self.storage.get_messages(user.id)
        return {
            "user": user,
            "documents": documents,
            "messages": messages,
            "export_date": self.storage.clock(),
        }

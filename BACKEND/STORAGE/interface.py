"""Руководство к файлу (BACKEND/STORAGE/interface.py)
Назначение:
- Единый контракт хранилища DocIntel (Storage) для двух реализаций:
  MemStorage (in-memory, тесты/dev) и DatabaseStorage (SQLAlchemy async).
- Общие исключения и вспомогательные типы слоя хранения.
Важно:
- Поиск отсутствующей записи возвращает None и никогда не бросает исключение.
- delete_* идемпотентен и возвращает bool «была ли удалена строка».
- Нарушение уникальности при create/update -> DuplicateRecordError.
- email хранится и ищется в нижнем регистре (normalize_email) в обеих реализациях.
"""

from __future__ import annotations

import abc
import secrets
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Literal, Optional

from BACKEND.DATABASE.models import (
    ApprovalRequest,
    Document,
    LlmServerStatus,
    Message,
    MicrosoftFile,
    SystemStatus,
    User,
)


Clock = Callable[[], datetime]
AnalyticsRange = Literal["day", "week", "month"]

DEFAULT_SESSION_TTL = timedelta(hours=24)
DEFAULT_MESSAGES_LIMIT = 50


class StorageError(Exception):
    """Базовая ошибка слоя хранения."""


class DuplicateRecordError(StorageError):
    """Нарушено ограничение уникальности (email, username, microsoft_id, ...)."""


def normalize_email(email: str) -> str:
    return email.strip().lower()


def with_normalized_email(fields: Dict[str, Any]) -> Dict[str, Any]:
    email = fields.get("email")
    if isinstance(email, str):
        return {**fields, "email": normalize_email(email)}
    return fields


def new_session_token() -> str:
    # 32 байта случайности (256 бит), URL-safe
    return secrets.token_urlsafe(32)


class Storage(abc.ABC):
    """Асинхронный контракт хранилища.

    Все операции создания проставляют id и таймстемпы по часам хранилища
    (clock), обновления частичные: не переданные поля не трогаются.
    """

    clock: Clock
    session_ttl: timedelta

    # ------------------------------------------------------------------
    # Жизненный цикл
    # ------------------------------------------------------------------

    async def startup(self) -> None:
        """Подготовка бэкенда (например, создание таблиц)."""

    async def shutdown(self) -> None:
        """Освобождение ресурсов бэкенда."""

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    @abc.abstractmethod
    async def get_user(self, user_id: int) -> Optional[User]: ...

    @abc.abstractmethod
    async def get_user_by_email(self, email: str) -> Optional[User]: ...

    @abc.abstractmethod
    async def get_user_by_username(self, username: str) -> Optional[User]: ...

    @abc.abstractmethod
    async def get_user_by_microsoft_id(self, microsoft_id: str) -> Optional[User]: ...

    @abc.abstractmethod
    async def list_users(self) -> List[User]: ...

    @abc.abstractmethod
    async def create_user(self, fields: Dict[str, Any]) -> User: ...

    @abc.abstractmethod
    async def update_user(self, user_id: int, fields: Dict[str, Any]) -> Optional[User]: ...

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    @abc.abstractmethod
    async def get_documents(self, user_id: int) -> List[Document]: ...

    @abc.abstractmethod
    async def get_shared_documents(self) -> List[Document]: ...

    @abc.abstractmethod
    async def get_document(self, document_id: int) -> Optional[Document]: ...

    @abc.abstractmethod
    async def create_document(self, fields: Dict[str, Any]) -> Document: ...

    @abc.abstractmethod
    async def update_document(self, document_id: int, fields: Dict[str, Any]) -> Optional[Document]: ...

    @abc.abstractmethod
    async def delete_document(self, document_id: int) -> bool: ...

    @abc.abstractmethod
    async def search_documents(self, user_id: int, query: str) -> List[Document]: ...

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    @abc.abstractmethod
    async def get_messages(self, user_id: int, limit: int = DEFAULT_MESSAGES_LIMIT) -> List[Message]: ...

    @abc.abstractmethod
    async def create_message(self, fields: Dict[str, Any]) -> Message: ...

    # ------------------------------------------------------------------
    # System status
    # ------------------------------------------------------------------

    @abc.abstractmethod
    async def get_system_status(self) -> List[SystemStatus]: ...

    @abc.abstractmethod
    async def update_system_status(self, component: str, status: str, message: Optional[str] = None) -> SystemStatus: ...

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    @abc.abstractmethod
    async def create_session(self, user_id: int) -> str: ...

    @abc.abstractmethod
    async def get_session_user(self, token: str) -> Optional[User]: ...

    @abc.abstractmethod
    async def delete_session(self, token: str) -> bool: ...

    @abc.abstractmethod
    async def purge_expired_sessions(self) -> int: ...

    # ------------------------------------------------------------------
    # Approval requests
    # ------------------------------------------------------------------

    @abc.abstractmethod
    async def get_approval_request(self, request_id: int) -> Optional[ApprovalRequest]: ...

    @abc.abstractmethod
    async def get_approval_request_by_email(self, email: str) -> Optional[ApprovalRequest]: ...

    @abc.abstractmethod
    async def get_approval_request_by_microsoft_id(self, microsoft_id: str) -> Optional[ApprovalRequest]: ...

    @abc.abstractmethod
    async def get_pending_approval_requests(self) -> List[ApprovalRequest]: ...

    @abc.abstractmethod
    async def create_approval_request(self, fields: Dict[str, Any]) -> ApprovalRequest: ...

    @abc.abstractmethod
    async def update_approval_request(self, request_id: int, fields: Dict[str, Any]) -> Optional[ApprovalRequest]: ...

    # ------------------------------------------------------------------
    # Microsoft files
    # ------------------------------------------------------------------

    @abc.abstractmethod
    async def get_microsoft_files(self, user_id: int) -> List[MicrosoftFile]: ...

    @abc.abstractmethod
    async def get_microsoft_file(self, user_id: int, microsoft_file_id: str) -> Optional[MicrosoftFile]: ...

    @abc.abstractmethod
    async def upsert_microsoft_file(self, user_id: int, microsoft_file_id: str, fields: Dict[str, Any]) -> MicrosoftFile: ...

    @abc.abstractmethod
    async def update_microsoft_file(self, file_id: int, fields: Dict[str, Any]) -> Optional[MicrosoftFile]: ...

    # ------------------------------------------------------------------
    # LLM server status
    # ------------------------------------------------------------------

    @abc.abstractmethod
    async def get_llm_server_status(self) -> Optional[LlmServerStatus]: ...

    @abc.abstractmethod
    async def update_llm_server_status(self, fields: Dict[str, Any]) -> LlmServerStatus: ...

    # ------------------------------------------------------------------
    # Производные выборки
    # ------------------------------------------------------------------

    @abc.abstractmethod
    async def get_user_stats(self, user_id: int) -> Dict[str, int]: ...

    @abc.abstractmethod
    async def get_analytics(self, user_id: int, range_: AnalyticsRange = "week") -> Dict[str, Any]: ...

"""Руководство к файлу (BACKEND/STORAGE/memory.py)
Назначение:
- In-memory реализация Storage: словари сущностей по целочисленному id и
  явные счётчики id на каждую сущность.
- Используется в тестах и dev-режиме (DOCINTEL_STORAGE_BACKEND=memory).
Важно:
- Записи: те же классы моделей SQLAlchemy (в transient-состоянии), поэтому
  слой API одинаково сериализует оба бэкенда.
- Синхронизации нет: корректно в рамках одного event loop.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, Iterator, List, Optional, Type, TypeVar

from sqlalchemy import inspect

from BACKEND.DATABASE.models import (
    ApprovalRequest,
    Base,
    Document,
    LlmServerStatus,
    Message,
    MicrosoftFile,
    SystemStatus,
    User,
    UserSession,
    local_now,
)
from .analytics import PerformanceProbe, build_analytics, sample_system_performance, today_bounds, window_bounds
from .interface import (
    AnalyticsRange,
    Clock,
    DEFAULT_MESSAGES_LIMIT,
    DEFAULT_SESSION_TTL,
    DuplicateRecordError,
    Storage,
    new_session_token,
    normalize_email,
    with_normalized_email,
)


TModel = TypeVar("TModel", bound=Base)

_TIMESTAMP_FIELDS = ("created_at", "updated_at", "last_accessed", "last_ping")


@dataclass
class InMemoryTables:
    """Таблицы in-memory хранилища.

    Структуры:
      - users/documents/messages/...: {id: model}
      - sessions: {token: UserSession}
      - counters: {имя таблицы: itertools.count}
    """

    users: Dict[int, User] = field(default_factory=dict)
    documents: Dict[int, Document] = field(default_factory=dict)
    messages: Dict[int, Message] = field(default_factory=dict)
    system_status: Dict[int, SystemStatus] = field(default_factory=dict)
    sessions: Dict[str, UserSession] = field(default_factory=dict)
    approval_requests: Dict[int, ApprovalRequest] = field(default_factory=dict)
    microsoft_files: Dict[int, MicrosoftFile] = field(default_factory=dict)
    llm_server_status: Dict[int, LlmServerStatus] = field(default_factory=dict)
    counters: Dict[str, Iterator[int]] = field(default_factory=dict)

    def next_id(self, table: str) -> int:
        counter = self.counters.setdefault(table, itertools.count(1))
        return next(counter)


class MemStorage(Storage):
    def __init__(
        self,
        *,
        clock: Clock = local_now,
        session_ttl: timedelta = DEFAULT_SESSION_TTL,
        performance_probe: PerformanceProbe = sample_system_performance,
    ) -> None:
        self.clock = clock
        self.session_ttl = session_ttl
        self._probe = performance_probe
        self.tables = InMemoryTables()

    # ------------------------------------------------------------------
    # Внутренние хелперы
    # ------------------------------------------------------------------

    def _build(self, model: Type[TModel], table: str, fields: Dict[str, Any]) -> TModel:
        """Собрать запись с дефолтами колонок, новым id и таймстемпами."""

        now = self.clock()
        values: Dict[str, Any] = {}
        for prop in inspect(model).column_attrs:
            column = prop.columns[0]
            default = column.default
            if default is not None and default.is_scalar:
                values[prop.key] = default.arg
            else:
                values[prop.key] = None
        values.update(fields)
        for key in _TIMESTAMP_FIELDS:
            if key in values and values[key] is None:
                values[key] = now
        values["id"] = self.tables.next_id(table)
        return model(**values)

    def _apply(self, obj: TModel, fields: Dict[str, Any]) -> TModel:
        for key, value in fields.items():
            setattr(obj, key, value)
        if hasattr(obj, "updated_at") and "updated_at" not in fields:
            obj.updated_at = self.clock()  # type: ignore[attr-defined]
        return obj

    @staticmethod
    def _ensure_unique(rows: Dict[Any, TModel], fields: Dict[str, Any], keys: tuple[str, ...], exclude_id: Optional[int] = None) -> None:
        for key in keys:
            value = fields.get(key)
            if value is None:
                continue
            for row in rows.values():
                if getattr(row, "id") != exclude_id and getattr(row, key) == value:
                    raise DuplicateRecordError(f"{key} already exists: {value}")

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def get_user(self, user_id: int) -> Optional[User]:
        return self.tables.users.get(user_id)

    async def get_user_by_email(self, email: str) -> Optional[User]:
        return next((u for u in self.tables.users.values() if u.email == normalize_email(email)), None)

    async def get_user_by_username(self, username: str) -> Optional[User]:
        return next((u for u in self.tables.users.values() if u.username == username), None)

    async def get_user_by_microsoft_id(self, microsoft_id: str) -> Optional[User]:
        return next((u for u in self.tables.users.values() if u.microsoft_id == microsoft_id), None)

    async def list_users(self) -> List[User]:
        return list(self.tables.users.values())

    async def create_user(self, fields: Dict[str, Any]) -> User:
        fields = with_normalized_email(fields)
        self._ensure_unique(self.tables.users, fields, ("email", "username", "microsoft_id"))
        user = self._build(User, "users", fields)
        self.tables.users[user.id] = user
        return user

    async def update_user(self, user_id: int, fields: Dict[str, Any]) -> Optional[User]:
        fields = with_normalized_email(fields)
        user = self.tables.users.get(user_id)
        if user is None:
            return None
        self._ensure_unique(self.tables.users, fields, ("email", "username", "microsoft_id"), exclude_id=user_id)
        return self._apply(user, fields)

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def get_documents(self, user_id: int) -> List[Document]:
        return [d for d in self.tables.documents.values() if d.user_id == user_id]

    async def get_shared_documents(self) -> List[Document]:
        return [d for d in self.tables.documents.values() if d.is_shared]

    async def get_document(self, document_id: int) -> Optional[Document]:
        return self.tables.documents.get(document_id)

    async def create_document(self, fields: Dict[str, Any]) -> Document:
        doc = self._build(Document, "documents", fields)
        self.tables.documents[doc.id] = doc
        return doc

    async def update_document(self, document_id: int, fields: Dict[str, Any]) -> Optional[Document]:
        doc = self.tables.documents.get(document_id)
        if doc is None:
            return None
        return self._apply(doc, fields)

    async def delete_document(self, document_id: int) -> bool:
        return self.tables.documents.pop(document_id, None) is not None

    async def search_documents(self, user_id: int, query: str) -> List[Document]:
        needle = query.lower()
        return [
            d
            for d in self.tables.documents.values()
            if d.user_id == user_id and (needle in d.filename.lower() or needle in d.original_name.lower())
        ]

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def _user_messages(self, user_id: int) -> List[Message]:
        return sorted(
            (m for m in self.tables.messages.values() if m.user_id == user_id),
            key=lambda m: m.id,
        )

    async def get_messages(self, user_id: int, limit: int = DEFAULT_MESSAGES_LIMIT) -> List[Message]:
        rows = self._user_messages(user_id)
        return rows[-limit:] if limit > 0 else []

    async def create_message(self, fields: Dict[str, Any]) -> Message:
        msg = self._build(Message, "messages", fields)
        self.tables.messages[msg.id] = msg
        return msg

    # ------------------------------------------------------------------
    # System status
    # ------------------------------------------------------------------

    async def get_system_status(self) -> List[SystemStatus]:
        return list(self.tables.system_status.values())

    async def update_system_status(self, component: str, status: str, message: Optional[str] = None) -> SystemStatus:
        existing = next((s for s in self.tables.system_status.values() if s.component == component), None)
        if existing is not None:
            return self._apply(existing, {"status": status, "message": message})
        row = self._build(SystemStatus, "system_status", {"component": component, "status": status, "message": message})
        self.tables.system_status[row.id] = row
        return row

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def create_session(self, user_id: int) -> str:
        token = new_session_token()
        now = self.clock()
        row = self._build(
            UserSession,
            "user_sessions",
            {"user_id": user_id, "session_token": token, "expires_at": now + self.session_ttl},
        )
        self.tables.sessions[token] = row
        return token

    async def get_session_user(self, token: str) -> Optional[User]:
        row = self.tables.sessions.get(token)
        if row is None:
            return None
        if self.clock() >= row.expires_at:
            self.tables.sessions.pop(token, None)
            return None
        return self.tables.users.get(row.user_id)

    async def delete_session(self, token: str) -> bool:
        return self.tables.sessions.pop(token, None) is not None

    async def purge_expired_sessions(self) -> int:
        now = self.clock()
        expired = [t for t, s in self.tables.sessions.items() if now >= s.expires_at]
        for token in expired:
            del self.tables.sessions[token]
        return len(expired)

    # ------------------------------------------------------------------
    # Approval requests
    # ------------------------------------------------------------------

    async def get_approval_request(self, request_id: int) -> Optional[ApprovalRequest]:
        return self.tables.approval_requests.get(request_id)

    async def get_approval_request_by_email(self, email: str) -> Optional[ApprovalRequest]:
        return next((r for r in self.tables.approval_requests.values() if r.email == normalize_email(email)), None)

    async def get_approval_request_by_microsoft_id(self, microsoft_id: str) -> Optional[ApprovalRequest]:
        return next((r for r in self.tables.approval_requests.values() if r.microsoft_id == microsoft_id), None)

    async def get_pending_approval_requests(self) -> List[ApprovalRequest]:
        rows = [r for r in self.tables.approval_requests.values() if r.status == "pending"]
        return sorted(rows, key=lambda r: (r.created_at, r.id))

    async def create_approval_request(self, fields: Dict[str, Any]) -> ApprovalRequest:
        fields = with_normalized_email(fields)
        self._ensure_unique(self.tables.approval_requests, fields, ("email", "microsoft_id"))
        row = self._build(ApprovalRequest, "user_approval_requests", fields)
        self.tables.approval_requests[row.id] = row
        return row

    async def update_approval_request(self, request_id: int, fields: Dict[str, Any]) -> Optional[ApprovalRequest]:
        fields = with_normalized_email(fields)
        row = self.tables.approval_requests.get(request_id)
        if row is None:
            return None
        self._ensure_unique(self.tables.approval_requests, fields, ("email", "microsoft_id"), exclude_id=request_id)
        return self._apply(row, fields)

    # ------------------------------------------------------------------
    # Microsoft files
    # ------------------------------------------------------------------

    async def get_microsoft_files(self, user_id: int) -> List[MicrosoftFile]:
        return [f for f in self.tables.microsoft_files.values() if f.user_id == user_id]

    async def get_microsoft_file(self, user_id: int, microsoft_file_id: str) -> Optional[MicrosoftFile]:
        return next(
            (
                f
                for f in self.tables.microsoft_files.values()
                if f.user_id == user_id and f.microsoft_file_id == microsoft_file_id
            ),
            None,
        )

    async def upsert_microsoft_file(self, user_id: int, microsoft_file_id: str, fields: Dict[str, Any]) -> MicrosoftFile:
        existing = await self.get_microsoft_file(user_id, microsoft_file_id)
        if existing is not None:
            return self._apply(existing, fields)
        row = self._build(
            MicrosoftFile,
            "microsoft_files",
            {**fields, "user_id": user_id, "microsoft_file_id": microsoft_file_id},
        )
        self.tables.microsoft_files[row.id] = row
        return row

    async def update_microsoft_file(self, file_id: int, fields: Dict[str, Any]) -> Optional[MicrosoftFile]:
        row = self.tables.microsoft_files.get(file_id)
        if row is None:
            return None
        return self._apply(row, fields)

    # ------------------------------------------------------------------
    # LLM server status
    # ------------------------------------------------------------------

    async def get_llm_server_status(self) -> Optional[LlmServerStatus]:
        rows = sorted(self.tables.llm_server_status.values(), key=lambda r: (r.updated_at, r.id))
        return rows[-1] if rows else None

    async def update_llm_server_status(self, fields: Dict[str, Any]) -> LlmServerStatus:
        endpoint = fields["server_endpoint"]
        values = {**fields, "last_ping": fields.get("last_ping") or self.clock()}
        existing = next((r for r in self.tables.llm_server_status.values() if r.server_endpoint == endpoint), None)
        if existing is not None:
            return self._apply(existing, values)
        row = self._build(LlmServerStatus, "llm_server_status", values)
        self.tables.llm_server_status[row.id] = row
        return row

    # ------------------------------------------------------------------
    # Производные выборки
    # ------------------------------------------------------------------

    async def get_user_stats(self, user_id: int) -> Dict[str, int]:
        docs = await self.get_documents(user_id)
        user = self.tables.users.get(user_id)
        start, end = today_bounds(self.clock())
        queries_today = [
            m for m in self._user_messages(user_id) if m.role == "user" and start <= m.created_at < end
        ]
        return {
            "total_documents": len(docs),
            "storage_used": int(user.storage_used or 0) if user is not None else 0,
            "queries_today": len(queries_today),
            "processing": len([d for d in docs if d.is_processing]),
        }

    async def get_analytics(self, user_id: int, range_: AnalyticsRange = "week") -> Dict[str, Any]:
        now = self.clock()
        docs = await self.get_documents(user_id)
        msgs = self._user_messages(user_id)
        start, end = window_bounds(now, range_)
        active = {
            m.user_id for m in self.tables.messages.values() if m.role == "user" and start <= m.created_at < end
        }
        return build_analytics(
            documents=docs,
            messages=msgs,
            now=now,
            range_=range_,
            active_users=len(active),
            performance=self._probe(),
        )

"""Руководство к файлу (BACKEND/STORAGE/database.py)
Назначение:
- Реализация Storage поверх SQLAlchemy async (SQLite по умолчанию, Postgres в проде).
- Каждая операция открывает свою AsyncSession: commit при успехе, rollback при ошибке.
Важно:
- Таймстемпы выставляются по часам хранилища (clock), а не по дефолтам колонок,
  чтобы тесты с подменёнными часами работали одинаково для обоих бэкендов.
- IntegrityError (нарушение уникальности) -> DuplicateRecordError.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any, AsyncIterator, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from BACKEND.DATABASE.alembic import create_tables
from BACKEND.DATABASE.CACHE_MANAGER import (
    ApprovalManager,
    DocumentManager,
    MessageManager,
    MicrosoftFileManager,
    SessionManager,
    SystemManager,
    UserManager,
)
from BACKEND.DATABASE.models import (
    ApprovalRequest,
    Document,
    LlmServerStatus,
    Message,
    MicrosoftFile,
    SystemStatus,
    User,
    local_now,
)
from BACKEND.DATABASE.session import build_engine, build_session_factory
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


logger = logging.getLogger("docintel.storage")


class DatabaseStorage(Storage):
    def __init__(
        self,
        engine: AsyncEngine | None = None,
        *,
        database_url: str | None = None,
        clock: Clock = local_now,
        session_ttl: timedelta = DEFAULT_SESSION_TTL,
        performance_probe: PerformanceProbe = sample_system_performance,
    ) -> None:
        self.engine = engine or build_engine(database_url)
        self.session_factory: async_sessionmaker[AsyncSession] = build_session_factory(self.engine)
        self.clock = clock
        self.session_ttl = session_ttl
        self._probe = performance_probe

    async def startup(self) -> None:
        await create_tables(self.engine)
        logger.info("[DatabaseStorage.startup] tables ready url=%s", self.engine.url.render_as_string(hide_password=True))

    async def shutdown(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise DuplicateRecordError(str(exc.orig)) from exc
            except Exception:
                await session.rollback()
                raise

    def _stamp_create(self, fields: Dict[str, Any], *keys: str) -> Dict[str, Any]:
        now = self.clock()
        values = dict(fields)
        for key in keys:
            if values.get(key) is None:
                values[key] = now
        return values

    def _stamp_update(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        return {"updated_at": self.clock(), **fields}

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def get_user(self, user_id: int) -> Optional[User]:
        async with self._session() as s:
            return await UserManager(s).get_user(user_id)

    async def get_user_by_email(self, email: str) -> Optional[User]:
        async with self._session() as s:
            return await UserManager(s).get_user_by_email(normalize_email(email))

    async def get_user_by_username(self, username: str) -> Optional[User]:
        async with self._session() as s:
            return await UserManager(s).get_user_by_username(username)

    async def get_user_by_microsoft_id(self, microsoft_id: str) -> Optional[User]:
        async with self._session() as s:
            return await UserManager(s).get_user_by_microsoft_id(microsoft_id)

    async def list_users(self) -> List[User]:
        async with self._session() as s:
            return await UserManager(s).list_users()

    async def create_user(self, fields: Dict[str, Any]) -> User:
        async with self._session() as s:
            fields = with_normalized_email(fields)
            return await UserManager(s).create_user(self._stamp_create(fields, "created_at", "updated_at"))

    async def update_user(self, user_id: int, fields: Dict[str, Any]) -> Optional[User]:
        async with self._session() as s:
            return await UserManager(s).update_user(user_id, self._stamp_update(with_normalized_email(fields)))

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def get_documents(self, user_id: int) -> List[Document]:
        async with self._session() as s:
            return await DocumentManager(s).list_user_documents(user_id)

    async def get_shared_documents(self) -> List[Document]:
        async with self._session() as s:
            return await DocumentManager(s).list_shared_documents()

    async def get_document(self, document_id: int) -> Optional[Document]:
        async with self._session() as s:
            return await DocumentManager(s).get_document(document_id)

    async def create_document(self, fields: Dict[str, Any]) -> Document:
        async with self._session() as s:
            return await DocumentManager(s).create_document(self._stamp_create(fields, "created_at", "updated_at"))

    async def update_document(self, document_id: int, fields: Dict[str, Any]) -> Optional[Document]:
        async with self._session() as s:
            return await DocumentManager(s).update_document(document_id, self._stamp_update(fields))

    async def delete_document(self, document_id: int) -> bool:
        async with self._session() as s:
            return await DocumentManager(s).delete_document(document_id)

    async def search_documents(self, user_id: int, query: str) -> List[Document]:
        async with self._session() as s:
            return await DocumentManager(s).search_user_documents(user_id, query)

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def get_messages(self, user_id: int, limit: int = DEFAULT_MESSAGES_LIMIT) -> List[Message]:
        if limit <= 0:
            return []
        async with self._session() as s:
            return await MessageManager(s).list_recent(user_id, limit)

    async def create_message(self, fields: Dict[str, Any]) -> Message:
        async with self._session() as s:
            return await MessageManager(s).create_message(self._stamp_create(fields, "created_at"))

    # ------------------------------------------------------------------
    # System status
    # ------------------------------------------------------------------

    async def get_system_status(self) -> List[SystemStatus]:
        async with self._session() as s:
            return await SystemManager(s).list_statuses()

    async def update_system_status(self, component: str, status: str, message: Optional[str] = None) -> SystemStatus:
        async with self._session() as s:
            return await SystemManager(s).upsert_status(component, status, message, self.clock())

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def create_session(self, user_id: int) -> str:
        token = new_session_token()
        now = self.clock()
        async with self._session() as s:
            await SessionManager(s).create_session(
                user_id=user_id,
                token=token,
                expires_at=now + self.session_ttl,
                created_at=now,
            )
        return token

    async def get_session_user(self, token: str) -> Optional[User]:
        async with self._session() as s:
            sessions = SessionManager(s)
            row = await sessions.get_by_token(token)
            if row is None:
                return None
            if self.clock() >= row.expires_at:
                await sessions.delete_by_token(token)
                return None
            return await UserManager(s).get_user(row.user_id)

    async def delete_session(self, token: str) -> bool:
        async with self._session() as s:
            return await SessionManager(s).delete_by_token(token)

    async def purge_expired_sessions(self) -> int:
        async with self._session() as s:
            return await SessionManager(s).delete_expired(self.clock())

    # ------------------------------------------------------------------
    # Approval requests
    # ------------------------------------------------------------------

    async def get_approval_request(self, request_id: int) -> Optional[ApprovalRequest]:
        async with self._session() as s:
            return await ApprovalManager(s).get_request(request_id)

    async def get_approval_request_by_email(self, email: str) -> Optional[ApprovalRequest]:
        async with self._session() as s:
            return await ApprovalManager(s).get_by_email(normalize_email(email))

    async def get_approval_request_by_microsoft_id(self, microsoft_id: str) -> Optional[ApprovalRequest]:
        async with self._session() as s:
            return await ApprovalManager(s).get_by_microsoft_id(microsoft_id)

    async def get_pending_approval_requests(self) -> List[ApprovalRequest]:
        async with self._session() as s:
            return await ApprovalManager(s).list_pending()

    async def create_approval_request(self, fields: Dict[str, Any]) -> ApprovalRequest:
        async with self._session() as s:
            fields = with_normalized_email(fields)
            return await ApprovalManager(s).create_request(self._stamp_create(fields, "created_at"))

    async def update_approval_request(self, request_id: int, fields: Dict[str, Any]) -> Optional[ApprovalRequest]:
        async with self._session() as s:
            return await ApprovalManager(s).update_request(request_id, with_normalized_email(fields))

    # ------------------------------------------------------------------
    # Microsoft files
    # ------------------------------------------------------------------

    async def get_microsoft_files(self, user_id: int) -> List[MicrosoftFile]:
        async with self._session() as s:
            return await MicrosoftFileManager(s).list_user_files(user_id)

    async def get_microsoft_file(self, user_id: int, microsoft_file_id: str) -> Optional[MicrosoftFile]:
        async with self._session() as s:
            return await MicrosoftFileManager(s).get_user_file(user_id, microsoft_file_id)

    async def upsert_microsoft_file(self, user_id: int, microsoft_file_id: str, fields: Dict[str, Any]) -> MicrosoftFile:
        async with self._session() as s:
            files = MicrosoftFileManager(s)
            existing = await files.get_user_file(user_id, microsoft_file_id)
            if existing is not None:
                return await files.update_file(existing.id, fields)  # type: ignore[return-value]
            values = self._stamp_create(
                {**fields, "user_id": user_id, "microsoft_file_id": microsoft_file_id},
                "created_at",
                "last_accessed",
            )
            return await files.create_file(values)

    async def update_microsoft_file(self, file_id: int, fields: Dict[str, Any]) -> Optional[MicrosoftFile]:
        async with self._session() as s:
            return await MicrosoftFileManager(s).update_file(file_id, fields)

    # ------------------------------------------------------------------
    # LLM server status
    # ------------------------------------------------------------------

    async def get_llm_server_status(self) -> Optional[LlmServerStatus]:
        async with self._session() as s:
            return await SystemManager(s).get_latest_llm_status()

    async def update_llm_server_status(self, fields: Dict[str, Any]) -> LlmServerStatus:
        async with self._session() as s:
            return await SystemManager(s).upsert_llm_status(fields, self.clock())

    # ------------------------------------------------------------------
    # Производные выборки
    # ------------------------------------------------------------------

    async def get_user_stats(self, user_id: int) -> Dict[str, int]:
        start, end = today_bounds(self.clock())
        async with self._session() as s:
            docs = DocumentManager(s)
            user = await UserManager(s).get_user(user_id)
            return {
                "total_documents": await docs.count_user_documents(user_id),
                "storage_used": int(user.storage_used or 0) if user is not None else 0,
                "queries_today": await MessageManager(s).count_user_queries_between(user_id, start, end),
                "processing": await docs.count_processing(user_id),
            }

    async def get_analytics(self, user_id: int, range_: AnalyticsRange = "week") -> Dict[str, Any]:
        now = self.clock()
        start, end = window_bounds(now, range_)
        async with self._session() as s:
            messages = MessageManager(s)
            documents = await DocumentManager(s).list_user_documents(user_id)
            history = await messages.list_user_messages(user_id)
            active = await messages.count_active_users_between(start, end)
        return build_analytics(
            documents=documents,
            messages=history,
            now=now,
            range_=range_,
            active_users=active,
            performance=self._probe(),
        )


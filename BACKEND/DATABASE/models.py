# Руководство к файлу (DATABASE/models.py)
# Назначение:
# - SQLAlchemy‑модели БД DocIntel: USERS, DOCUMENTS, MESSAGES, SYSTEM_STATUS,
#   USER_SESSIONS, USER_APPROVAL_REQUESTS, MICROSOFT_FILES, LLM_SERVER_STATUS.
# - Совместимы с SQLite (dev/tests) и Postgres (prod) без изменений моделей.
# Важно:
# - Все таймстемпы: «наивное» локальное время сервера (local_now), чтобы
#   подсчёт «за сегодня» совпадал у in-memory и SQL хранилищ.
# - Каскадных удалений нет: удаление строки не трогает связанные таблицы.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    JSON,
    Index,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def local_now() -> datetime:
    return datetime.now()


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    username = Column(String(255), nullable=False, unique=True)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=True)  # у Microsoft-пользователей пароля нет
    role = Column(String(20), nullable=False, default="user")
    first_name = Column(String(255), nullable=False)
    last_name = Column(String(255), nullable=False)
    storage_used = Column(Integer, nullable=False, default=0)
    storage_limit = Column(Integer, nullable=False, default=2500)  # МБ
    microsoft_id = Column(String(255), nullable=True, unique=True)
    microsoft_access_token = Column(Text, nullable=True)
    microsoft_refresh_token = Column(Text, nullable=True)
    is_approved = Column(Boolean, nullable=False, default=False)
    approved_by = Column(Integer, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    last_login_at = Column(DateTime, nullable=True)
    preferences = Column(JSON, nullable=True)
    created_at = Column(DateTime, nullable=False, default=local_now)
    updated_at = Column(DateTime, nullable=False, default=local_now, onupdate=local_now)


class Document(Base):
    __tablename__ = "documents"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    filename = Column(String(512), nullable=False)
    original_name = Column(String(512), nullable=False)
    file_type = Column(String(255), nullable=False)
    file_size = Column(Integer, nullable=False)
    file_path = Column(String(1024), nullable=False)
    is_shared = Column(Boolean, nullable=False, default=False)
    is_indexed = Column(Boolean, nullable=False, default=False)
    is_processing = Column(Boolean, nullable=False, default=False)
    extra_metadata = Column("metadata", JSON, nullable=True)  # JSONB в Postgres
    created_at = Column(DateTime, nullable=False, default=local_now)
    updated_at = Column(DateTime, nullable=False, default=local_now, onupdate=local_now)


class Message(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    role = Column(String(20), nullable=False)  # user / assistant
    sources = Column(JSON, nullable=True)
    created_at = Column(DateTime, nullable=False, default=local_now)


class SystemStatus(Base):
    __tablename__ = "system_status"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    component = Column(String(255), nullable=False, unique=True)
    status = Column(String(50), nullable=False)  # online/offline/scheduled/error
    message = Column(Text, nullable=True)
    updated_at = Column(DateTime, nullable=False, default=local_now, onupdate=local_now)


class UserSession(Base):
    __tablename__ = "user_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    session_token = Column(String(255), nullable=False, unique=True)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, default=local_now)


class ApprovalRequest(Base):
    __tablename__ = "user_approval_requests"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    email = Column(String(255), nullable=False, unique=True)
    first_name = Column(String(255), nullable=False)
    last_name = Column(String(255), nullable=False)
    microsoft_id = Column(String(255), nullable=False, unique=True)
    request_reason = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="pending")  # pending/approved/rejected
    reviewed_by = Column(Integer, nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    review_notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=local_now)


class MicrosoftFile(Base):
    __tablename__ = "microsoft_files"
    __table_args__ = (UniqueConstraint("user_id", "microsoft_file_id", name="uq_microsoft_files_user_file"),)

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    microsoft_file_id = Column(String(255), nullable=False)
    file_name = Column(String(512), nullable=False)
    file_path = Column(String(2048), nullable=False)
    file_type = Column(String(255), nullable=False)
    source = Column(String(20), nullable=False)  # onedrive / sharepoint
    last_accessed = Column(DateTime, nullable=False, default=local_now)
    is_indexed = Column(Boolean, nullable=False, default=False)
    extra_metadata = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime, nullable=False, default=local_now)


class LlmServerStatus(Base):
    __tablename__ = "llm_server_status"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    server_endpoint = Column(String(1024), nullable=False, unique=True)
    status = Column(String(50), nullable=False)  # online/offline/processing
    last_ping = Column(DateTime, nullable=False, default=local_now)
    version = Column(String(255), nullable=True)
    capabilities = Column(JSON, nullable=True)
    updated_at = Column(DateTime, nullable=False, default=local_now, onupdate=local_now)


# Индексы для типичных фильтров
Index("ix_documents_user_created", Document.user_id, Document.created_at)
Index("ix_messages_user_created", Message.user_id, Message.created_at)
Index("ix_user_approval_requests_status", ApprovalRequest.status)

# Руководство к файлу (DATABASE/session.py)
# Назначение:
# - Асинхронная настройка SQLAlchemy: движок и фабрика сессий для DatabaseStorage.
# - По умолчанию SQLite (aiosqlite), для Docker/Postgres используется URL из настроек.
# Важно:
# - Модульных синглтонов нет: движок создаётся при сборке AppServices и
#   закрывается в shutdown() хранилища.

from __future__ import annotations

from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

DEFAULT_SQLITE_PATH = Path(__file__).resolve().parent / "docintel.sqlite3"
DEFAULT_DB_URL = f"sqlite+aiosqlite:///{DEFAULT_SQLITE_PATH}"


def build_engine(db_url: str | None = None, *, echo: bool = False) -> AsyncEngine:
    return create_async_engine(db_url or DEFAULT_DB_URL, echo=echo, future=True)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Фабрика AsyncSession.

    expire_on_commit=False: объекты моделей остаются читаемыми после commit и
    закрытия сессии (их отдают наружу как результат операций хранилища).
    """

    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

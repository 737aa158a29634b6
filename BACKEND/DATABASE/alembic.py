# Руководство к файлу (DATABASE/alembic.py)
# Назначение:
# - Минимальная инициализация БД DocIntel: создание таблиц по моделям.
# - В dev режиме заменяет полноценный Alembic до внедрения миграций.
# Использование:
# - python -m BACKEND.DATABASE.alembic  (создаст таблицы и загрузит начальные данные)

from __future__ import annotations

import asyncio

from sqlalchemy.ext.asyncio import AsyncEngine

from .models import Base


async def create_tables(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        # Важно: run_sync для create_all в async режиме
        await conn.run_sync(Base.metadata.create_all)


async def drop_tables(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def main() -> None:
    # Импорт здесь: сборка сервисов тянет FAST_API.config и .env
    from BACKEND.FAST_API.config import Settings
    from BACKEND.SERVICES.container import AppServices

    settings = Settings(storage_backend="database")
    services = AppServices.build(settings)
    await services.startup()
    await services.shutdown()


if __name__ == "__main__":
    asyncio.run(main())

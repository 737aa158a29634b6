# Руководство к файлу (DATABASE/CACHE_MANAGER/base_class.py)
# Назначение:
# - Базовый класс менеджера данных DocIntel на SQLAlchemy (async).
# - Общие утилиты: простые CRUD-хелперы, выборки и подсчёт по условиям.
# Важно:
# - Менеджеры не коммитят: границы транзакции задаёт DatabaseStorage.
# - Поиск по id возвращает None, удаление по отсутствующему id возвращает 0.
# - id вне диапазона SQLite INTEGER (64 бита) не может существовать: такие
#   запросы в БД не уходят и дают тот же результат «не найдено».

from __future__ import annotations

from typing import Any, Dict, List, Optional, Type, TypeVar

from sqlalchemy import select, delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import InstrumentedAttribute

from ..models import Base


TModel = TypeVar("TModel", bound=Base)

MAX_ROW_ID = 2**63 - 1


def _storable_id(obj_id: Any) -> bool:
    return not isinstance(obj_id, int) or -MAX_ROW_ID - 1 <= obj_id <= MAX_ROW_ID


class BaseManager:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, model: Type[TModel], obj_id: Any) -> Optional[TModel]:
        if not _storable_id(obj_id):
            return None
        q = select(model).where(getattr(model, "id") == obj_id).limit(1)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def get_one_where(self, model: Type[TModel], *conds: Any) -> Optional[TModel]:
        q = select(model).where(*conds).limit(1)
        res = await self.session.execute(q)
        return res.scalars().first()

    async def list_where(
        self,
        model: Type[TModel],
        where: List[Any] | None = None,
        order_by: InstrumentedAttribute | Any | None = None,
        limit: int | None = None,
    ) -> List[TModel]:
        q = select(model).where(*(where or []))
        if isinstance(order_by, (list, tuple)):
            q = q.order_by(*order_by)
        elif order_by is not None:
            q = q.order_by(order_by)
        if limit is not None:
            q = q.limit(limit)
        res = await self.session.execute(q)
        return list(res.scalars().all())

    async def count_where(self, model: Type[TModel], *conds: Any) -> int:
        q = select(func.count()).select_from(model).where(*conds)
        return int((await self.session.execute(q)).scalar_one() or 0)

    async def create(self, model: Type[TModel], data: Dict[str, Any]) -> TModel:
        obj = model(**data)  # type: ignore[arg-type]
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def update_by_id(self, model: Type[TModel], obj_id: Any, data: Dict[str, Any]) -> Optional[TModel]:
        obj = await self.get_by_id(model, obj_id)
        if obj is None:
            return None
        for key, value in data.items():
            setattr(obj, key, value)
        await self.session.flush()
        return obj

    async def delete_by_id(self, model: Type[TModel], obj_id: Any) -> int:
        if not _storable_id(obj_id):
            return 0
        q = delete(model).where(getattr(model, "id") == obj_id)
        res = await self.session.execute(q)
        return int(res.rowcount or 0)

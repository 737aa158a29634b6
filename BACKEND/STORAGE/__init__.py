"""Пакет хранилища DocIntel: контракт Storage и две его реализации."""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

from BACKEND.DATABASE.models import local_now
from .analytics import PerformanceProbe, sample_system_performance
from .database import DatabaseStorage
from .interface import Clock, DuplicateRecordError, Storage, StorageError
from .memory import MemStorage

if TYPE_CHECKING:
    from BACKEND.FAST_API.config import Settings


def build_storage(
    settings: "Settings",
    *,
    clock: Clock = local_now,
    performance_probe: PerformanceProbe = sample_system_performance,
) -> Storage:
    """Выбрать реализацию по settings.storage_backend (memory | database)."""

    ttl = timedelta(hours=settings.session_ttl_hours)
    if settings.storage_backend == "database":
        return DatabaseStorage(
            database_url=settings.database_url,
            clock=clock,
            session_ttl=ttl,
            performance_probe=performance_probe,
        )
    return MemStorage(clock=clock, session_ttl=ttl, performance_probe=performance_probe)


__all__ = [
    "DatabaseStorage",
    "DuplicateRecordError",
    "MemStorage",
    "Storage",
    "StorageError",
    "build_storage",
]

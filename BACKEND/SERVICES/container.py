"""Руководство к файлу (BACKEND/SERVICES/container.py)
Назначение:
- AppServices: явный контейнер сервисов приложения (хранилище, раннер задач,
  авторизация, чат, документы, Microsoft Graph) с жизненным циклом
  startup()/shutdown().
- Создаётся в create_app() и хранится в app.state.services.
Важно:
- startup(): таблицы (для database), начальный администратор и статусы
  компонентов (только если их ещё нет), очистка просроченных сессий.
- shutdown(): отмена незавершённых задач, закрытие движка БД.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from BACKEND.DATABASE.models import local_now
from BACKEND.FAST_API.config import Settings
from BACKEND.STORAGE import Storage, build_storage
from BACKEND.STORAGE.analytics import PerformanceProbe, sample_system_performance
from BACKEND.STORAGE.interface import Clock
from .assistant_service import AssistantService
from .auth_service import AuthService
from .document_service import DocumentService
from .microsoft_auth_service import MicrosoftAuthService
from .microsoft_graph import GraphConfig, MicrosoftGraphService
from .passwords import hash_password
from .task_runner import DelayedTaskRunner


logger = logging.getLogger("docintel.services")

DEFAULT_COMPONENTS = (
    ("Document Processing", "online", None),
    ("AI Assistant", "online", None),
    ("Search Index", "online", None),
    ("Backup System", "scheduled", "Next backup in 2 hours"),
)


@dataclass
class AppServices:
    settings: Settings
    storage: Storage
    tasks: DelayedTaskRunner
    auth: AuthService
    assistant: AssistantService
    documents: DocumentService
    graph: MicrosoftGraphService
    microsoft: MicrosoftAuthService

    @classmethod
    def build(
        cls,
        settings: Settings,
        *,
        storage: Optional[Storage] = None,
        graph: Optional[MicrosoftGraphService] = None,
        graph_transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Clock = local_now,
        performance_probe: PerformanceProbe = sample_system_performance,
    ) -> "AppServices":
        storage = storage or build_storage(settings, clock=clock, performance_probe=performance_probe)
        tasks = DelayedTaskRunner(
            default_max_attempts=settings.task_max_attempts, history_size=settings.task_history_size
        )
        graph = graph or MicrosoftGraphService(
            GraphConfig(
                tenant_id=settings.azure_tenant_id,
                client_id=settings.azure_client_id,
                client_secret=settings.azure_client_secret,
                timeout=settings.graph_timeout_sec,
                max_attempts=settings.graph_max_attempts,
                backoff=settings.graph_backoff_sec,
            ),
            transport=graph_transport,
        )
        return cls(
            settings=settings,
            storage=storage,
            tasks=tasks,
            auth=AuthService(storage),
            assistant=AssistantService(storage, tasks, reply_delay=settings.assistant_reply_delay_sec),
            documents=DocumentService(storage, tasks, processing_delay=settings.document_processing_delay_sec),
            graph=graph,
            microsoft=MicrosoftAuthService(storage, graph, allowed_domain=settings.allowed_email_domain),
        )

    async def startup(self) -> None:
        await self.storage.startup()
        if self.settings.seed_admin:
            await self._seed_admin()
        await self._seed_components()
        purged = await self.storage.purge_expired_sessions()
        logger.info(
            "[AppServices.startup] backend=%s purged_sessions=%s graph_configured=%s",
            self.settings.storage_backend,
            purged,
            self.graph.is_configured,
        )

    async def shutdown(self) -> None:
        await self.tasks.shutdown()
        await self.storage.shutdown()
        logger.info("[AppServices.shutdown] done")

    async def _seed_admin(self) -> None:
        s = self.settings
        if await self.storage.get_user_by_email(s.seed_admin_email) is not None:
            return
        await self.storage.create_user(
            {
                "username": s.seed_admin_username,
                "email": s.seed_admin_email,
                "password_hash": hash_password(s.seed_admin_password),
                "role": "admin",
                "first_name": "Admin",
                "last_name": "User",
                "is_approved": True,
            }
        )
        logger.info("[AppServices._seed_admin] created admin email=%s", s.seed_admin_email)

    async def _seed_components(self) -> None:
        existing = {row.component for row in await self.storage.get_system_status()}
        for component, status, message in DEFAULT_COMPONENTS:
            if component not in existing:
                await self.storage.update_system_status(component, status, message)

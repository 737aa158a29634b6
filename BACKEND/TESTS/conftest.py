# Руководство к файлу (TESTS/conftest.py)
# Назначение:
# - Общие фикстуры для pytest-тестов backend DocIntel.
# - Управляемые часы (FakeClock), хранилища обоих типов, собранные сервисы,
#   приложение FastAPI и HTTP-клиент без реального сервера.
# - Вариант с настроенным Azure: Graph подменён через httpx.MockTransport.
# Важно:
# - ASGITransport не запускает lifespan, поэтому services.startup()/shutdown()
#   вызываются фикстурой явно.

from __future__ import annotations

from datetime import datetime
from typing import AsyncIterator, Dict

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from BACKEND.FAST_API.config import Settings
from BACKEND.FAST_API.fast_api import create_app
from BACKEND.SERVICES import AppServices
from BACKEND.STORAGE import DatabaseStorage, MemStorage, Storage
from BACKEND.TESTS.helpers import (
    ADMIN_EMAIL,
    ADMIN_PASSWORD,
    FakeClock,
    FakeGraphApi,
    fixed_performance,
    login_headers,
)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 3, 14, 10, 30, 0))


@pytest_asyncio.fixture(params=["memory", "database"])
async def storage(request, clock, tmp_path) -> AsyncIterator[Storage]:
    """Хранилище каждого типа: контрактные тесты гоняются на обоих."""

    if request.param == "memory":
        backend: Storage = MemStorage(clock=clock, performance_probe=fixed_performance)
    else:
        url = f"sqlite+aiosqlite:///{tmp_path / 'contract.sqlite3'}"
        backend = DatabaseStorage(database_url=url, clock=clock, performance_probe=fixed_performance)
    await backend.startup()
    try:
        yield backend
    finally:
        await backend.shutdown()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        storage_backend="memory",
        assistant_reply_delay_sec=0.05,
        document_processing_delay_sec=0.1,
        allowed_email_domain="bpn.rw",
        client_url="http://client.test",
    )


@pytest_asyncio.fixture
async def services(settings, clock) -> AsyncIterator[AppServices]:
    svc = AppServices.build(settings, clock=clock, performance_probe=fixed_performance)
    await svc.startup()
    try:
        yield svc
    finally:
        await svc.shutdown()


@pytest.fixture
def app(services):
    return create_app(services=services, configure_logging=False)


@pytest_asyncio.fixture
async def http_client(app) -> AsyncIterator[AsyncClient]:
    """HTTP-клиент для тестирования FastAPI-приложения без реального сервера."""

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def admin_headers(http_client) -> Dict[str, str]:
    return await login_headers(http_client, ADMIN_EMAIL, ADMIN_PASSWORD)


@pytest.fixture
def graph_api() -> FakeGraphApi:
    return FakeGraphApi()


@pytest_asyncio.fixture
async def azure_services(settings, clock, graph_api) -> AsyncIterator[AppServices]:
    """Сервисы с настроенным Azure; Graph отвечает через FakeGraphApi."""

    azure_settings = settings.model_copy(
        update={
            "azure_tenant_id": "tenant-1",
            "azure_client_id": "client-1",
            "azure_client_secret": "secret-1",
            "graph_backoff_sec": 0.0,
        }
    )
    svc = AppServices.build(
        azure_settings,
        clock=clock,
        performance_probe=fixed_performance,
        graph_transport=httpx.MockTransport(graph_api),
    )
    await svc.startup()
    try:
        yield svc
    finally:
        await svc.shutdown()


@pytest_asyncio.fixture
async def azure_client(azure_services) -> AsyncIterator[AsyncClient]:
    app = create_app(services=azure_services, configure_logging=False)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

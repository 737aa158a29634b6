# Руководство к файлу (TESTS/helpers.py)
# Назначение:
# - Вспомогательные функции тестов: управляемые часы, создание пользователей,
#   поддельный Azure AD / Graph для httpx.MockTransport,
#   вход и получение заголовка Authorization.

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set
from urllib.parse import parse_qs

import httpx
from httpx import AsyncClient

from BACKEND.DATABASE.models import User
from BACKEND.SERVICES.microsoft_graph import GraphConfig, MicrosoftGraphService
from BACKEND.SERVICES.passwords import hash_password
from BACKEND.STORAGE import Storage


ADMIN_EMAIL = "admin@company.com"
ADMIN_PASSWORD = "password123"


@dataclass
class FakeClock:
    """Часы хранилища, которые двигает тест."""

    now: datetime

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


def fixed_performance() -> Dict[str, float]:
    return {"cpu_usage": 12, "memory_usage": 34, "disk_usage": 56}


async def create_user(
    storage: Storage,
    email: str,
    password: Optional[str] = "pw1",
    *,
    role: str = "user",
    **extra: Any,
) -> User:
    username = extra.pop("username", email.split("@")[0])
    return await storage.create_user(
        {
            "username": username,
            "email": email,
            "password_hash": hash_password(password) if password else None,
            "role": role,
            "first_name": extra.pop("first_name", username.title()),
            "last_name": extra.pop("last_name", "Tester"),
            "is_approved": True,
            **extra,
        }
    )


async def login_headers(client: AsyncClient, email: str, password: str) -> Dict[str, str]:
    resp = await client.post("/api/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['token']}"}


AZURE_TEST_CONFIG = GraphConfig(tenant_id="tenant-1", client_id="client-1", client_secret="secret-1", backoff=0.0)


@dataclass
class FakeGraphApi:
    """Обработчик httpx.MockTransport, изображающий Azure AD и Microsoft Graph.

    Токены выдаются по порядку (at-1, at-2, ...); чтобы «протухнуть» токен,
    его достаточно убрать из valid_tokens.
    """

    profile: Dict[str, Any] = field(
        default_factory=lambda: {"id": "ms-1", "mail": "jane@bpn.rw", "givenName": "Jane", "surname": "Doe"}
    )
    files: List[Dict[str, Any]] = field(
        default_factory=lambda: [
            {
                "id": "od-1",
                "name": "budget.xlsx",
                "webUrl": "https://onedrive.test/od-1",
                "size": 4096,
                "file": {"mimeType": "application/vnd.ms-excel"},
                "lastModifiedDateTime": "2025-03-01T08:00:00Z",
            }
        ]
    )
    valid_tokens: Set[str] = field(default_factory=set)
    issued: int = 0
    requests: List[httpx.Request] = field(default_factory=list)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path.endswith("/oauth2/v2.0/token"):
            form = parse_qs(request.content.decode())
            if form.get("code") == ["bad-code"]:
                return httpx.Response(400, json={"error": "invalid_grant"})
            self.issued += 1
            token = f"at-{self.issued}"
            self.valid_tokens.add(token)
            return httpx.Response(200, json={"access_token": token, "refresh_token": f"rt-{self.issued}", "expires_in": 3600})

        bearer = request.headers.get("Authorization", "").replace("Bearer ", "")
        if bearer not in self.valid_tokens:
            return httpx.Response(401, json={"error": "InvalidAuthenticationToken"})
        if path == "/v1.0/me":
            return httpx.Response(200, json=self.profile)
        if path == "/v1.0/me/drive/root/children":
            return httpx.Response(200, json={"value": self.files})
        if path == "/v1.0/me/followedSites":
            return httpx.Response(200, json={"value": []})
        if path.startswith("/v1.0/me/drive/items/") and path.endswith("/content"):
            file_id = path.split("/")[-2]
            if file_id not in {f["id"] for f in self.files}:
                return httpx.Response(404, json={"error": "itemNotFound"})
            return httpx.Response(200, content=f"content of {file_id}".encode())
        return httpx.Response(404, json={"error": "not found"})

    def service(self, cfg: Optional[GraphConfig] = None) -> MicrosoftGraphService:
        return MicrosoftGraphService(cfg or AZURE_TEST_CONFIG, transport=httpx.MockTransport(self))


async def eventually(check: Callable[[], Awaitable[bool]], *, timeout: float = 3.0, interval: float = 0.05) -> bool:
    """Опрашивать check() до успеха или таймаута (для фоновых задач в e2e)."""

    deadline = asyncio.get_running_loop().time() + timeout
    while True:
        if await check():
            return True
        if asyncio.get_running_loop().time() >= deadline:
            return False
        await asyncio.sleep(interval)

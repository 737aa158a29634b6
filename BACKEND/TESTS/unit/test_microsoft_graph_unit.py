# Руководство к файлу (TESTS/unit/test_microsoft_graph_unit.py)
# Назначение:
# - Unit-тесты SERVICES/microsoft_graph.py поверх httpx.MockTransport:
#   ссылка авторизации, обмен кода на токен, профиль, файлы, повторы и ошибки.
# Важно:
# - Реальные запросы к Azure/Graph не выполняются.

from __future__ import annotations

from typing import Callable, List
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from BACKEND.SERVICES.microsoft_graph import (
    GraphApiError,
    GraphConfig,
    GraphNotConfiguredError,
    MicrosoftGraphService,
)


def _service(handler: Callable[[httpx.Request], httpx.Response], **cfg) -> MicrosoftGraphService:
    config = GraphConfig(tenant_id="tenant-1", client_id="client-1", client_secret="secret-1", backoff=0.0, **cfg)
    return MicrosoftGraphService(config, transport=httpx.MockTransport(handler))


def test_auth_url_carries_oauth_parameters():
    svc = _service(lambda r: httpx.Response(500))

    url = svc.get_auth_url("http://app.test/callback", "state-xyz")
    parsed = urlparse(url)
    query = parse_qs(parsed.query)

    assert parsed.netloc == "login.microsoftonline.com"
    assert parsed.path == "/tenant-1/oauth2/v2.0/authorize"
    assert query["client_id"] == ["client-1"]
    assert query["response_type"] == ["code"]
    assert query["redirect_uri"] == ["http://app.test/callback"]
    assert query["response_mode"] == ["query"]
    assert query["state"] == ["state-xyz"]
    assert "offline_access" in query["scope"][0]


def test_unconfigured_service_refuses_oauth():
    svc = MicrosoftGraphService(GraphConfig(tenant_id="t", client_id=None, client_secret="s"))

    assert svc.is_configured is False
    with pytest.raises(GraphNotConfiguredError):
        svc.get_auth_url("http://app.test/callback", "s")


@pytest.mark.asyncio
async def test_code_exchange_posts_form_to_token_endpoint():
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"access_token": "at-1", "refresh_token": "rt-1", "expires_in": 3600})

    tokens = await _service(handler).get_token_from_code("code-1", "http://app.test/callback")

    assert tokens.access_token == "at-1"
    assert tokens.refresh_token == "rt-1"
    assert tokens.expires_in == 3600
    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == "/tenant-1/oauth2/v2.0/token"
    form = parse_qs(request.content.decode())
    assert form["grant_type"] == ["authorization_code"]
    assert form["code"] == ["code-1"]
    assert form["client_secret"] == ["secret-1"]


@pytest.mark.asyncio
async def test_token_response_without_access_token_is_an_error():
    svc = _service(lambda r: httpx.Response(200, json={"error": "nope"}))

    with pytest.raises(GraphApiError):
        await svc.refresh_token("rt-1")


@pytest.mark.asyncio
async def test_profile_falls_back_to_user_principal_name():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["Authorization"] == "Bearer at-1"
        assert request.url.path == "/v1.0/me"
        return httpx.Response(
            200,
            json={"id": "ms-42", "mail": None, "userPrincipalName": "jane@bpn.rw", "givenName": "Jane", "surname": "Doe"},
        )

    profile = await _service(handler).get_user_profile("at-1")

    assert profile.external_id == "ms-42"
    assert profile.email == "jane@bpn.rw"
    assert profile.given_name == "Jane"
    assert profile.surname == "Doe"


@pytest.mark.asyncio
async def test_server_errors_are_retried_then_succeed():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        if len(calls) < 3:
            return httpx.Response(503, text="busy")
        return httpx.Response(200, json={"id": "ms-1", "mail": "a@bpn.rw"})

    profile = await _service(handler, max_attempts=3).get_user_profile("at")

    assert len(calls) == 3
    assert profile.email == "a@bpn.rw"


@pytest.mark.asyncio
async def test_client_errors_are_not_retried():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(401, json={"error": "expired"})

    with pytest.raises(GraphApiError) as info:
        await _service(handler, max_attempts=3).get_user_profile("at")

    assert info.value.status_code == 401
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_transport_errors_exhaust_attempts():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(GraphApiError) as info:
        await _service(handler, max_attempts=2).get_user_profile("at")

    assert info.value.status_code is None
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_code_exchange_is_not_retried_after_server_error():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        return httpx.Response(503, text="busy")

    with pytest.raises(GraphApiError) as info:
        await _service(handler, max_attempts=3).get_token_from_code("code-1", "http://app.test/callback")

    assert info.value.status_code == 503
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_code_exchange_retries_only_unsent_requests():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        if len(calls) == 1:
            raise httpx.ConnectError("connection refused", request=request)
        if len(calls) == 2:
            raise httpx.ReadTimeout("no answer", request=request)
        return httpx.Response(200, json={"access_token": "at-1"})

    with pytest.raises(GraphApiError):
        await _service(handler, max_attempts=3).get_token_from_code("code-1", "http://app.test/callback")

    assert len(calls) == 2


@pytest.mark.asyncio
async def test_refresh_token_is_retried_on_server_error():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(1)
        if len(calls) == 1:
            return httpx.Response(502)
        return httpx.Response(200, json={"access_token": "at-2", "refresh_token": "rt-2"})

    tokens = await _service(handler, max_attempts=3).refresh_token("rt-1")

    assert tokens.access_token == "at-2"
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_zero_attempts_raises_graph_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"id": "u1"})

    with pytest.raises(GraphApiError, match="not attempted"):
        await _service(handler, max_attempts=0).get_user_profile("at")


@pytest.mark.asyncio
async def test_search_merges_onedrive_and_sharepoint_and_skips_broken_site():
    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/v1.0/me/drive/root/children":
            assert request.url.params.get("$search") == '"report"'
            return httpx.Response(
                200,
                json={
                    "value": [
                        {
                            "id": "od-1",
                            "name": "report.docx",
                            "webUrl": "https://onedrive/od-1",
                            "size": 2048,
                            "file": {"mimeType": "application/msword"},
                            "lastModifiedDateTime": "2025-03-01T10:00:00Z",
                            "@microsoft.graph.downloadUrl": "https://dl/od-1",
                        }
                    ]
                },
            )
        if path == "/v1.0/me/followedSites":
            return httpx.Response(200, json={"value": [{"id": "site-ok"}, {"id": "site-broken"}]})
        if path == "/v1.0/sites/site-ok/drive/root/children":
            return httpx.Response(200, json={"value": [{"id": "sp-1", "name": "plan.pdf", "size": 10}]})
        if path == "/v1.0/sites/site-broken/drive/root/children":
            return httpx.Response(403, json={"error": "forbidden"})
        return httpx.Response(404)

    files = await _service(handler).search_files("at", "report")

    assert [f.id for f in files] == ["od-1", "sp-1"]
    onedrive, sharepoint = files
    assert onedrive.source == "onedrive"
    assert onedrive.download_url == "https://dl/od-1"
    assert onedrive.to_json()["lastModifiedDateTime"] == "2025-03-01T10:00:00Z"
    assert sharepoint.source == "sharepoint"
    assert sharepoint.site_id == "site-ok"
    assert sharepoint.mime_type == "application/octet-stream"


@pytest.mark.asyncio
async def test_download_routes_by_source():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=request.url.path.encode())

    svc = _service(handler)

    assert await svc.download_file("at", "f1") == b"/v1.0/me/drive/items/f1/content"
    assert await svc.download_file("at", "f2", "sharepoint", "s9") == b"/v1.0/sites/s9/drive/items/f2/content"
    with pytest.raises(GraphApiError) as info:
        await svc.download_file("at", "f3", "sharepoint")
    assert info.value.status_code == 400

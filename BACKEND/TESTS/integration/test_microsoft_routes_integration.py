# Руководство к файлу (TESTS/integration/test_microsoft_routes_integration.py)
# Назначение:
# - Интеграционные тесты `/api/microsoft`: статус конфигурации, OAuth-редиректы
#   и их коды ошибок, админ-решения по заявкам, статус LLM-сервера.
# Важно:
# - http_client собран без Azure; azure_client ходит в FakeGraphApi.

from __future__ import annotations

from urllib.parse import parse_qs, urlparse

import pytest

from BACKEND.TESTS.helpers import create_user, login_headers


pytestmark = pytest.mark.asyncio


def _error_code(resp) -> str:
    assert resp.status_code == 302
    location = resp.headers["location"]
    assert location.startswith("http://client.test/login?")
    return parse_qs(urlparse(location).query)["error"][0]


async def _start_login(client) -> str:
    resp = await client.get("/api/microsoft/auth/microsoft")
    assert resp.status_code == 302
    return parse_qs(urlparse(resp.headers["location"]).query)["state"][0]


# ----------------------------------------------------------------------
# Без Azure
# ----------------------------------------------------------------------


async def test_config_status_without_azure(http_client):
    resp = await http_client.get("/api/microsoft/config/status")

    assert resp.status_code == 200
    body = resp.json()
    assert body["microsoftGraphEnabled"] is False
    assert "requires Azure credentials" in body["message"]


async def test_login_redirect_without_azure(http_client):
    resp = await http_client.get("/api/microsoft/auth/microsoft")

    assert _error_code(resp) == "azure_not_configured"


async def test_callback_error_codes(http_client):
    cancelled = await http_client.get("/api/microsoft/auth/callback", params={"error": "access_denied"})
    assert _error_code(cancelled) == "oauth_cancelled"

    no_cookie = await http_client.get("/api/microsoft/auth/callback", params={"code": "c", "state": "s"})
    assert _error_code(no_cookie) == "invalid_state"

    http_client.cookies.set("oauth_state", "expected")
    mismatch = await http_client.get("/api/microsoft/auth/callback", params={"code": "c", "state": "other"})
    assert _error_code(mismatch) == "invalid_state"

    non_ascii = await http_client.get("/api/microsoft/auth/callback", params={"code": "c", "state": "é"})
    assert _error_code(non_ascii) == "invalid_state"


async def test_files_need_microsoft_token(http_client, admin_headers):
    resp = await http_client.get("/api/microsoft/files", headers=admin_headers)

    assert resp.status_code == 400
    assert resp.json() == {"message": "Microsoft access token not available"}

    unauth = await http_client.get("/api/microsoft/files")
    assert unauth.status_code == 401


async def test_approval_endpoints_are_admin_only(http_client, services):
    await create_user(services.storage, "plain@company.com")
    headers = await login_headers(http_client, "plain@company.com", "pw1")

    listing = await http_client.get("/api/microsoft/admin/approval-requests", headers=headers)
    decision = await http_client.post(
        "/api/microsoft/admin/approval-requests/1/decision", json={"decision": "approved"}, headers=headers
    )

    assert listing.status_code == decision.status_code == 403


async def test_approval_decision_errors(http_client, services, admin_headers):
    empty = await http_client.get("/api/microsoft/admin/approval-requests", headers=admin_headers)
    assert empty.json() == {"requests": []}

    missing = await http_client.post(
        "/api/microsoft/admin/approval-requests/999/decision", json={"decision": "approved"}, headers=admin_headers
    )
    assert missing.status_code == 404
    assert missing.json() == {"message": "Approval request not found"}

    huge = await http_client.post(
        "/api/microsoft/admin/approval-requests/99999999999999999999/decision",
        json={"decision": "approved"},
        headers=admin_headers,
    )
    assert huge.status_code == 404

    request = await services.storage.create_approval_request(
        {"email": "new@bpn.rw", "first_name": "New", "last_name": "Person", "microsoft_id": "ms-new"}
    )
    url = f"/api/microsoft/admin/approval-requests/{request.id}/decision"

    bad = await http_client.post(url, json={"decision": "maybe"}, headers=admin_headers)
    assert bad.status_code == 400

    rejected = await http_client.post(url, json={"decision": "rejected", "reviewNotes": "unknown"}, headers=admin_headers)
    assert rejected.status_code == 200
    body = rejected.json()
    assert body["message"] == "User access rejected"
    assert body["user"] is None
    assert body["request"]["status"] == "rejected"
    assert body["request"]["reviewNotes"] == "unknown"

    again = await http_client.post(url, json={"decision": "approved"}, headers=admin_headers)
    assert again.status_code == 409


async def test_llm_server_ping_and_status(http_client, services, admin_headers):
    initial = await http_client.get("/api/microsoft/llm-server/status", headers=admin_headers)
    assert initial.json() == {"status": None}

    ping = await http_client.post(
        "/api/microsoft/llm-server/ping",
        json={"serverEndpoint": "http://llm.internal:8000", "version": "1.2", "capabilities": ["chat"]},
    )
    assert ping.status_code == 200
    assert ping.json()["status"]["status"] == "online"

    services.settings.llm_server_token = "shared-secret"
    denied = await http_client.post(
        "/api/microsoft/llm-server/ping",
        json={"serverEndpoint": "http://llm.internal:8000", "status": "offline"},
        headers={"Authorization": "Bearer wrong"},
    )
    assert denied.status_code == 401
    assert denied.json() == {"message": "Unauthorized"}

    non_ascii = await http_client.post(
        "/api/microsoft/llm-server/ping",
        json={"serverEndpoint": "http://llm.internal:8000"},
        headers={"Authorization": "Bearer clé".encode("utf-8")},
    )
    assert non_ascii.status_code == 401

    accepted = await http_client.post(
        "/api/microsoft/llm-server/ping",
        json={"serverEndpoint": "http://llm.internal:8000", "status": "processing"},
        headers={"Authorization": "Bearer shared-secret"},
    )
    assert accepted.status_code == 200

    status = (await http_client.get("/api/microsoft/llm-server/status", headers=admin_headers)).json()["status"]
    assert status["serverEndpoint"] == "http://llm.internal:8000"
    assert status["status"] == "processing"
    assert status["version"] == "1.2"

    anonymous = await http_client.get("/api/microsoft/llm-server/status")
    assert anonymous.status_code == 401


# ----------------------------------------------------------------------
# С настроенным Azure
# ----------------------------------------------------------------------


async def test_config_status_and_authorize_redirect(azure_client):
    status = await azure_client.get("/api/microsoft/config/status")
    assert status.json()["microsoftGraphEnabled"] is True

    resp = await azure_client.get("/api/microsoft/auth/microsoft")
    assert resp.status_code == 302
    location = urlparse(resp.headers["location"])
    query = parse_qs(location.query)
    assert location.netloc == "login.microsoftonline.com"
    assert location.path == "/tenant-1/oauth2/v2.0/authorize"
    assert query["redirect_uri"] == ["http://test/api/microsoft/auth/callback"]
    assert azure_client.cookies.get("oauth_state") == query["state"][0]


async def test_callback_rejects_failed_exchange_and_foreign_domain(azure_client, graph_api):
    state = await _start_login(azure_client)
    bad = await azure_client.get("/api/microsoft/auth/callback", params={"code": "bad-code", "state": state})
    assert _error_code(bad) == "token_failed"

    graph_api.profile = {"id": "ms-x", "mail": "mallory@gmail.com"}
    state = await _start_login(azure_client)
    foreign = await azure_client.get("/api/microsoft/auth/callback", params={"code": "c", "state": state})
    assert _error_code(foreign) == "invalid_domain"


async def test_callback_for_unknown_identity_files_request(azure_client, azure_services):
    state = await _start_login(azure_client)
    first = await azure_client.get("/api/microsoft/auth/callback", params={"code": "c1", "state": state})
    assert _error_code(first) == "approval_required"

    state = await _start_login(azure_client)
    second = await azure_client.get("/api/microsoft/auth/callback", params={"code": "c2", "state": state})
    assert _error_code(second) == "approval_pending"

    pending = await azure_services.storage.get_pending_approval_requests()
    assert [r.email for r in pending] == ["jane@bpn.rw"]

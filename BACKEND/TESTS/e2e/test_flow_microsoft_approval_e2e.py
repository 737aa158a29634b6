# Руководство к файлу (TESTS/e2e/test_flow_microsoft_approval_e2e.py)
# Назначение:
# - E2E-флоу входа через Microsoft: первая попытка создаёт заявку,
#   админ одобряет её, повторный вход выдаёт cookie-сессию, после чего
#   пользователь видит и скачивает свои файлы OneDrive.
# Важно:
# - Azure AD / Graph изображает FakeGraphApi через httpx.MockTransport.

from __future__ import annotations

from urllib.parse import parse_qs, urlparse

import pytest

from BACKEND.TESTS.helpers import ADMIN_EMAIL, ADMIN_PASSWORD, login_headers


async def _microsoft_login(client, code: str):
    start = await client.get("/api/microsoft/auth/microsoft")
    assert start.status_code == 302
    state = parse_qs(urlparse(start.headers["location"]).query)["state"][0]
    return await client.get("/api/microsoft/auth/callback", params={"code": code, "state": state})


@pytest.mark.asyncio
async def test_flow_microsoft_approval(azure_client, azure_services):
    # Первая попытка: заявка на доступ
    first = await _microsoft_login(azure_client, "code-1")
    assert first.headers["location"] == "http://client.test/login?error=approval_required"

    admin_headers = await login_headers(azure_client, ADMIN_EMAIL, ADMIN_PASSWORD)
    pending = (await azure_client.get("/api/microsoft/admin/approval-requests", headers=admin_headers)).json()
    assert len(pending["requests"]) == 1
    request = pending["requests"][0]
    assert request["email"] == "jane@bpn.rw"
    assert request["status"] == "pending"

    # Админ одобряет
    decision = await azure_client.post(
        f"/api/microsoft/admin/approval-requests/{request['id']}/decision",
        json={"decision": "approved", "reviewNotes": "finance team"},
        headers=admin_headers,
    )
    assert decision.status_code == 200
    body = decision.json()
    assert body["message"] == "User approved and account created"
    assert body["user"]["email"] == "jane@bpn.rw"
    assert body["user"]["username"] == "jane"
    assert body["request"]["status"] == "approved"

    # Повторная попытка решения отклоняется
    again = await azure_client.post(
        f"/api/microsoft/admin/approval-requests/{request['id']}/decision",
        json={"decision": "rejected"},
        headers=admin_headers,
    )
    assert again.status_code == 409

    # Повторный вход: cookie-сессия и редирект на клиент
    second = await _microsoft_login(azure_client, "code-2")
    assert second.status_code == 302
    assert second.headers["location"] == "http://client.test/"
    set_cookie = second.headers.get("set-cookie", "").lower()
    assert "session_token=" in set_cookie
    assert "httponly" in set_cookie

    me = await azure_client.get("/api/auth/me")
    assert me.status_code == 200
    assert me.json()["email"] == "jane@bpn.rw"
    assert me.json()["microsoftId"] == "ms-1"

    # Файлы OneDrive через сохранённый токен
    files = await azure_client.get("/api/microsoft/files", params={"source": "onedrive"})
    assert files.status_code == 200
    listed = files.json()["files"]
    assert [f["id"] for f in listed] == ["od-1"]
    assert listed[0]["webUrl"] == "https://onedrive.test/od-1"
    assert listed[0]["lastModifiedDateTime"] == "2025-03-01T08:00:00Z"

    content = await azure_client.get("/api/microsoft/files/od-1/content")
    assert content.status_code == 200
    assert content.content == b"content of od-1"

    missing = await azure_client.get("/api/microsoft/files/nope/content")
    assert missing.status_code == 404

    user = await azure_services.storage.get_user_by_email("jane@bpn.rw")
    cached = await azure_services.storage.get_microsoft_files(user.id)
    assert [c.microsoft_file_id for c in cached] == ["od-1"]

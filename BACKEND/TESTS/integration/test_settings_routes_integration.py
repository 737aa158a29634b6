# Руководство к файлу (TESTS/integration/test_settings_routes_integration.py)
# Назначение:
# - Интеграционные тесты настроек пользователя, очистки базы знаний
#   и экспорта данных.

from __future__ import annotations

import pytest


pytestmark = pytest.mark.asyncio


async def test_settings_sections_are_saved_and_read_back(http_client, admin_headers):
    empty = await http_client.get("/api/settings", headers=admin_headers)
    assert empty.json() == {"agent": {}, "user": {}, "security": {}}

    saved = await http_client.post(
        "/api/settings/agent", json={"temperature": 0.2, "model": "default"}, headers=admin_headers
    )
    assert saved.status_code == 200
    assert saved.json() == {"success": True, "message": "Agent settings saved successfully"}

    await http_client.post("/api/settings/security", json={"twoFactor": True}, headers=admin_headers)

    body = (await http_client.get("/api/settings", headers=admin_headers)).json()
    assert body["agent"] == {"temperature": 0.2, "model": "default"}
    assert body["security"] == {"twoFactor": True}
    assert body["user"] == {}


async def test_unknown_settings_section_is_rejected(http_client, admin_headers):
    resp = await http_client.post("/api/settings/billing", json={}, headers=admin_headers)

    assert resp.status_code == 400


async def test_clear_knowledge_base_removes_documents_only(http_client, services, admin_headers):
    await http_client.post("/api/upload", json={"filename": "a.pdf"}, headers=admin_headers)
    await http_client.post("/api/upload", json={"filename": "b.pdf"}, headers=admin_headers)
    await http_client.post("/api/messages", json={"content": "keep me"}, headers=admin_headers)
    await services.tasks.drain()

    resp = await http_client.delete("/api/knowledge/clear", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["message"] == "Knowledge base cleared successfully"

    assert (await http_client.get("/api/documents", headers=admin_headers)).json() == []
    assert len((await http_client.get("/api/messages", headers=admin_headers)).json()) == 2


async def test_export_bundles_user_documents_and_messages(http_client, services, admin_headers, clock):
    await http_client.post("/api/upload", json={"filename": "export-me.pdf"}, headers=admin_headers)
    await http_client.post("/api/messages", json={"content": "hello"}, headers=admin_headers)

    resp = await http_client.get("/api/data/export", headers=admin_headers)

    assert resp.status_code == 200
    body = resp.json()
    assert body["user"]["email"] == "admin@company.com"
    assert [d["filename"] for d in body["documents"]] == ["export-me.pdf"]
    assert body["messages"][0]["content"] == "hello"
    assert body["exportDate"] == clock.now.isoformat()

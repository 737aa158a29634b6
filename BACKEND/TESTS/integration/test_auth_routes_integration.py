# Руководство к файлу (TESTS/integration/test_auth_routes_integration.py)
# Назначение:
# - Интеграционные тесты роутера `/api/auth`: вход по паролю, /me,
#   выход, cookie-сессия и ошибки авторизации.

from __future__ import annotations

import pytest

from BACKEND.TESTS.helpers import ADMIN_EMAIL, ADMIN_PASSWORD, create_user


pytestmark = pytest.mark.asyncio


async def test_seeded_admin_can_log_in_and_read_me(http_client, clock):
    resp = await http_client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert resp.status_code == 200

    body = resp.json()
    assert body["token"]
    user = body["user"]
    assert user["email"] == ADMIN_EMAIL
    assert user["role"] == "admin"
    assert user["isApproved"] is True
    assert user["lastLoginAt"] == clock.now.isoformat()
    assert "passwordHash" not in user
    assert "password_hash" not in user

    me = await http_client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['token']}"})
    assert me.status_code == 200
    assert me.json()["id"] == user["id"]


async def test_wrong_password_and_unknown_email_look_the_same(http_client, services):
    wrong = await http_client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": "nope"})
    unknown = await http_client.post("/api/auth/login", json={"email": "ghost@company.com", "password": "nope"})

    assert wrong.status_code == unknown.status_code == 401
    assert wrong.json() == unknown.json() == {"message": "Invalid credentials"}
    assert services.storage.tables.sessions == {}


async def test_malformed_login_payload_is_400(http_client):
    resp = await http_client.post("/api/auth/login", json={"email": "not-an-email", "password": ""})

    assert resp.status_code == 400
    body = resp.json()
    assert body["message"] == "Invalid request"
    assert body["errors"]


async def test_missing_and_invalid_tokens(http_client):
    missing = await http_client.get("/api/auth/me")
    assert missing.status_code == 401
    assert missing.json() == {"message": "No token provided"}

    invalid = await http_client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-session"})
    assert invalid.status_code == 401
    assert invalid.json() == {"message": "Invalid token"}


async def test_session_cookie_is_accepted(http_client, services):
    await create_user(services.storage, "carol@company.com")
    resp = await http_client.post("/api/auth/login", json={"email": "carol@company.com", "password": "pw1"})
    token = resp.json()["token"]

    http_client.cookies.set("session_token", token)
    me = await http_client.get("/api/auth/me")

    assert me.status_code == 200
    assert me.json()["email"] == "carol@company.com"


async def test_logout_clears_session_cookie(http_client, services):
    await create_user(services.storage, "dave@company.com")
    resp = await http_client.post("/api/auth/login", json={"email": "dave@company.com", "password": "pw1"})
    http_client.cookies.set("session_token", resp.json()["token"])

    out = await http_client.post("/api/auth/logout")

    assert out.status_code == 200
    set_cookie = out.headers.get("set-cookie", "").lower()
    assert set_cookie.startswith("session_token=")
    assert "max-age=0" in set_cookie
    assert "httponly" in set_cookie


async def test_login_ignores_email_case(http_client, services):
    await create_user(services.storage, "Erin.Moss@Company.COM")

    for email in ("erin.moss@company.com", "Erin.Moss@Company.COM", "ERIN.MOSS@COMPANY.COM"):
        resp = await http_client.post("/api/auth/login", json={"email": email, "password": "pw1"})
        assert resp.status_code == 200, email
        assert resp.json()["user"]["email"] == "erin.moss@company.com"


async def test_logout_invalidates_token_and_is_always_successful(http_client, admin_headers):
    out = await http_client.post("/api/auth/logout", headers=admin_headers)
    assert out.status_code == 200
    assert out.json()["success"] is True

    after = await http_client.get("/api/auth/me", headers=admin_headers)
    assert after.status_code == 401

    # повторный выход и выход без токена тоже успешны
    again = await http_client.post("/api/auth/logout", headers=admin_headers)
    anonymous = await http_client.post("/api/auth/logout")
    assert again.status_code == anonymous.status_code == 200


async def test_session_expires_after_ttl(http_client, admin_headers, clock):
    clock.advance(hours=24)

    resp = await http_client.get("/api/auth/me", headers=admin_headers)

    assert resp.status_code == 401
    assert resp.json() == {"message": "Invalid token"}

# Руководство к файлу (FAST_API/deps.py)
# Назначение:
# - Зависимости FastAPI: доступ к AppServices и явный контекст запроса
#   (RequestContext) с разрешённым пользователем сессии.
# Важно:
# - Токен берётся из Authorization: Bearer <token>, иначе из cookie
#   session_token (её ставит Microsoft callback). Механизм сессий один.
# - Нет токена -> 401 "No token provided"; токен не разрешился -> 401 "Invalid token".

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, Request

from BACKEND.DATABASE.models import User
from BACKEND.SERVICES import AppServices

SESSION_COOKIE = "session_token"


@dataclass
class RequestContext:
    user: User
    token: str

    @property
    def is_admin(self) -> bool:
        return self.user.role == "admin"


def get_services(request: Request) -> AppServices:
    return request.app.state.services


def extract_token(request: Request) -> Optional[str]:
    header = request.headers.get("authorization") or ""
    scheme, _, value = header.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    cookie = request.cookies.get(SESSION_COOKIE)
    return cookie or None


async def get_request_context(
    request: Request,
    services: AppServices = Depends(get_services),
) -> RequestContext:
    token = extract_token(request)
    if not token:
        raise HTTPException(401, "No token provided")
    user = await services.auth.resolve(token)
    if user is None:
        raise HTTPException(401, "Invalid token")
    return RequestContext(user=user, token=token)


async def require_admin(ctx: RequestContext = Depends(get_request_context)) -> RequestContext:
    if not ctx.is_admin:
        raise HTTPException(403, "Admin access required")
    return ctx

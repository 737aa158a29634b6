# Руководство к файлу (ROUTES/auth.py)
# Назначение:
# - Вход по email/паролю, выход и текущий пользователь.
# - Бизнес-логика делегирована AuthService (BACKEND/SERVICES/auth_service.py).

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from ..deps import SESSION_COOKIE, RequestContext, extract_token, get_request_context, get_services
from ..schemas import LoginRequest, LoginResponse, SuccessResponse, UserOut
from BACKEND.SERVICES import AppServices, InvalidCredentialsError


logger = logging.getLogger("docintel.fastapi.auth")

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login", response_model=LoginResponse)
async def login(payload: LoginRequest, services: AppServices = Depends(get_services)):
    try:
        result = await services.auth.login(payload.email, payload.password)
    except InvalidCredentialsError as exc:
        logger.info("[auth.login] failed login email=%s", payload.email)
        raise HTTPException(401, exc.message)
    return LoginResponse(user=UserOut.model_validate(result.user), token=result.token)


@router.post("/logout", response_model=SuccessResponse)
async def logout(request: Request, response: Response, services: AppServices = Depends(get_services)):
    """Выход всегда успешен: ошибки удаления сессии только логируются.

    Cookie сессии сбрасывается с теми же атрибутами, с которыми её ставит вход через Microsoft.
    """

    await services.auth.logout(extract_token(request))
    response.delete_cookie(
        SESSION_COOKIE, httponly=True, secure=services.settings.is_production, samesite="strict"
    )
    return SuccessResponse(success=True)


@router.get("/me", response_model=UserOut)
async def me(ctx: RequestContext = Depends(get_request_context)):
    return UserOut.model_validate(ctx.user)

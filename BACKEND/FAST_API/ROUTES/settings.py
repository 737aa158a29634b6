# Руководство к файлу (ROUTES/settings.py)
# Назначение:
# - Настройки пользователя (разделы agent/user/security хранятся в
#   User.preferences), очистка базы знаний и экспорт данных пользователя.
# Важно:
# - Очистка базы знаний удаляет только документы пользователя, сообщения
#   чата остаются.

from __future__ import annotations

import logging
from typing import Any, Dict, Literal

from fastapi import APIRouter, Body, Depends

from ..deps import RequestContext, get_request_context, get_services
from ..schemas import DocumentOut, ExportOut, MessageOut, SettingsOut, SuccessResponse, UserOut
from BACKEND.SERVICES import AppServices


logger = logging.getLogger("docintel.fastapi.settings")

router = APIRouter(prefix="/api", tags=["settings"])

SettingsSection = Literal["agent", "user", "security"]

_SECTION_TITLES = {"agent": "Agent", "user": "User", "security": "Security"}


@router.get("/settings", response_model=SettingsOut)
async def get_settings(ctx: RequestContext = Depends(get_request_context)):
    return SettingsOut.model_validate(dict(ctx.user.preferences or {}))


@router.post("/settings/{section}", response_model=SuccessResponse)
async def save_settings(
    section: SettingsSection,
    payload: Dict[str, Any] = Body(...),
    ctx: RequestContext = Depends(get_request_context),
    services: AppServices = Depends(get_services),
):
    # новый dict: JSON-колонка не отслеживает мутации на месте
    preferences = {**(ctx.user.preferences or {}), section: payload}
    await services.storage.update_user(ctx.user.id, {"preferences": preferences})
    logger.info("[settings.save_settings] user_id=%s section=%s", ctx.user.id, section)
    return SuccessResponse(success=True, message=f"{_SECTION_TITLES[section]} settings saved successfully")


@router.delete("/knowledge/clear", response_model=SuccessResponse)
async def clear_knowledge(
    ctx: RequestContext = Depends(get_request_context),
    services: AppServices = Depends(get_services),
):
    await services.documents.clear_knowledge_base(ctx.user)
    return SuccessResponse(success=True, message="Knowledge base cleared successfully")


@router.get("/data/export", response_model=ExportOut)
async def export_data(
    ctx: RequestContext = Depends(get_request_context),
    services: AppServices = Depends(get_services),
):
    data = await services.documents.export_user_data(ctx.user)
    return ExportOut(
        user=UserOut.model_validate(data["user"]),
        documents=[DocumentOut.model_validate(d) for d in data["documents"]],
        messages=[MessageOut.model_validate(m) for m in data["messages"]],
        export_date=data["export_date"],
    )

# Руководство к файлу (ROUTES/messages.py)
# Назначение:
# - Чат с ассистентом: история сообщений и отправка нового сообщения.
# - Ответ ассистента создаётся отложенной задачей (AssistantService).

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends

from ..deps import RequestContext, get_request_context, get_services
from ..schemas import MessageCreate, MessageOut
from BACKEND.SERVICES import AppServices


router = APIRouter(prefix="/api/messages", tags=["messages"])


@router.get("", response_model=List[MessageOut])
async def list_messages(
    ctx: RequestContext = Depends(get_request_context),
    services: AppServices = Depends(get_services),
):
    """Последние 50 сообщений пользователя, от старых к новым."""

    return [MessageOut.model_validate(m) for m in await services.assistant.list_messages(ctx.user)]


@router.post("", response_model=MessageOut)
async def post_message(
    payload: MessageCreate,
    ctx: RequestContext = Depends(get_request_context),
    services: AppServices = Depends(get_services),
):
    message = await services.assistant.post_message(ctx.user, payload.model_dump())
    return MessageOut.model_validate(message)

# Руководство к файлу (ROUTES/system.py)
# Назначение:
# - Системные эндпоинты DocIntel: /health, статистика дашборда, статусы
#   компонентов и аналитика за окно day/week/month.
# - PUT статуса компонента доступен только администратору.

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query

from ..deps import RequestContext, get_request_context, get_services, require_admin
from ..schemas import AnalyticsOut, HealthResponse, SystemStatusOut, SystemStatusUpdate, UserStatsOut
from BACKEND.SERVICES import AppServices
from BACKEND.STORAGE.analytics import ANALYTICS_WINDOWS


logger = logging.getLogger("docintel.fastapi.system")

router = APIRouter(tags=["system"])


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/health", response_model=HealthResponse)
async def health(services: AppServices = Depends(get_services)):
    return HealthResponse(status="ok", timestamp=_now_iso(), version=services.settings.version)


@router.get("/api/dashboard/stats", response_model=UserStatsOut)
async def dashboard_stats(
    ctx: RequestContext = Depends(get_request_context),
    services: AppServices = Depends(get_services),
):
    return UserStatsOut.model_validate(await services.storage.get_user_stats(ctx.user.id))


@router.get("/api/system/status", response_model=List[SystemStatusOut])
async def system_status(
    ctx: RequestContext = Depends(get_request_context),
    services: AppServices = Depends(get_services),
):
    return [SystemStatusOut.model_validate(s) for s in await services.storage.get_system_status()]


@router.put("/api/system/status/{component}", response_model=SystemStatusOut)
async def update_system_status(
    component: str,
    payload: SystemStatusUpdate,
    ctx: RequestContext = Depends(require_admin),
    services: AppServices = Depends(get_services),
):
    row = await services.storage.update_system_status(component, payload.status, payload.message)
    logger.info("[system.update_system_status] component=%s status=%s by=%s", component, payload.status, ctx.user.id)
    return SystemStatusOut.model_validate(row)


@router.get("/api/analytics", response_model=AnalyticsOut)
async def analytics(
    range_: str = Query("week", alias="range"),
    ctx: RequestContext = Depends(get_request_context),
    services: AppServices = Depends(get_services),
):
    if range_ not in ANALYTICS_WINDOWS:
        raise HTTPException(400, f"Unsupported range: {range_}")
    report = await services.storage.get_analytics(ctx.user.id, range_)  # type: ignore[arg-type]
    return AnalyticsOut.model_validate(report)

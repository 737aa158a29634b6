# Руководство к файлу (ROUTES/microsoft.py)
# Назначение:
# - Вход через Microsoft (OAuth redirect + callback), файлы OneDrive/SharePoint,
#   админ-решения по заявкам на доступ и статус удалённого LLM-сервера.
# Важно:
# - Ошибки браузерного OAuth-потока не отдают 500: редирект на
#   <client_url>/login?error=<код>, чтобы фронтенд показал понятное сообщение.
# - Ошибки Graph на JSON-ручках -> 502.
# - state OAuth хранится в httponly cookie oauth_state.

from __future__ import annotations

import hmac
import logging
import secrets
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request
from fastapi.responses import RedirectResponse, Response

from ..deps import SESSION_COOKIE, RequestContext, get_request_context, get_services, require_admin
from ..schemas import (
    ApprovalDecisionRequest,
    ApprovalDecisionResponse,
    ApprovalRequestOut,
    ApprovalRequestsOut,
    LlmServerPing,
    LlmServerStatusOut,
    LlmServerStatusResponse,
    MicrosoftConfigStatus,
    MicrosoftFileOut,
    MicrosoftFilesOut,
    UserOut,
)
from BACKEND.SERVICES import (
    AppServices,
    ApprovalDecisionError,
    GraphApiError,
    GraphNotConfiguredError,
    MicrosoftTokenMissingError,
)


logger = logging.getLogger("docintel.fastapi.microsoft")

router = APIRouter(prefix="/api/microsoft", tags=["microsoft"])

STATE_COOKIE = "oauth_state"
STATE_TTL_SEC = 600


def _login_redirect(services: AppServices, code: str) -> RedirectResponse:
    return RedirectResponse(f"{services.settings.client_url}/login?error={code}", status_code=302)


def _redirect_uri(request: Request, services: AppServices) -> str:
    return services.settings.microsoft_redirect_uri or str(request.url_for("microsoft_callback"))


@router.get("/config/status", response_model=MicrosoftConfigStatus)
async def config_status(services: AppServices = Depends(get_services)):
    enabled = services.graph.is_configured
    return MicrosoftConfigStatus(
        microsoft_graph_enabled=enabled,
        message=(
            "Microsoft Graph API is configured and ready"
            if enabled
            else "Microsoft Graph API requires Azure credentials to be configured"
        ),
    )


@router.get("/auth/microsoft")
async def microsoft_login(request: Request, services: AppServices = Depends(get_services)):
    state = secrets.token_urlsafe(16)
    try:
        url = services.graph.get_auth_url(_redirect_uri(request, services), state)
    except GraphNotConfiguredError:
        return _login_redirect(services, "azure_not_configured")

    response = RedirectResponse(url, status_code=302)
    response.set_cookie(
        STATE_COOKIE,
        state,
        max_age=STATE_TTL_SEC,
        httponly=True,
        secure=services.settings.is_production,
        samesite="lax",
    )
    return response


@router.get("/auth/callback", name="microsoft_callback")
async def microsoft_callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    services: AppServices = Depends(get_services),
):
    if error:
        return _login_redirect(services, "oauth_cancelled")

    expected = request.cookies.get(STATE_COOKIE)
    if not code or not state or not expected or not hmac.compare_digest(state.encode(), expected.encode()):
        return _login_redirect(services, "invalid_state")

    try:
        outcome = await services.microsoft.complete_login(code, _redirect_uri(request, services))
    except Exception:
        logger.exception("[microsoft.microsoft_callback] unexpected failure")
        return _login_redirect(services, "auth_failed")

    if not outcome.ok:
        response = _login_redirect(services, outcome.status)
        response.delete_cookie(STATE_COOKIE)
        return response

    response = RedirectResponse(f"{services.settings.client_url}/", status_code=302)
    response.delete_cookie(STATE_COOKIE)
    response.set_cookie(
        SESSION_COOKIE,
        outcome.session_token or "",
        max_age=int(services.storage.session_ttl.total_seconds()),
        httponly=True,
        secure=services.settings.is_production,
        samesite="strict",
    )
    return response


@router.get("/files", response_model=MicrosoftFilesOut)
async def list_files(
    query: Optional[str] = None,
    source: Optional[Literal["onedrive", "sharepoint"]] = None,
    ctx: RequestContext = Depends(get_request_context),
    services: AppServices = Depends(get_services),
):
    try:
        files = await services.microsoft.list_files(ctx.user, query, source)
    except MicrosoftTokenMissingError as exc:
        raise HTTPException(400, str(exc))
    except GraphApiError as exc:
        logger.warning("[microsoft.list_files] user_id=%s graph error: %s", ctx.user.id, exc)
        raise HTTPException(502, "Failed to fetch Microsoft files")
    return MicrosoftFilesOut(files=[MicrosoftFileOut.model_validate(f) for f in files])


@router.get("/files/{file_id}/content")
async def download_file(
    file_id: str,
    source: Literal["onedrive", "sharepoint"] = "onedrive",
    site_id: Optional[str] = Query(None, alias="siteId"),
    ctx: RequestContext = Depends(get_request_context),
    services: AppServices = Depends(get_services),
):
    try:
        content = await services.microsoft.download(ctx.user, file_id, source, site_id)
    except MicrosoftTokenMissingError as exc:
        raise HTTPException(400, str(exc))
    except GraphApiError as exc:
        if exc.status_code in (400, 404):
            raise HTTPException(exc.status_code, str(exc))
        logger.warning("[microsoft.download_file] user_id=%s graph error: %s", ctx.user.id, exc)
        raise HTTPException(502, "Failed to download file")
    return Response(content=content, media_type="application/octet-stream")


@router.get("/admin/approval-requests", response_model=ApprovalRequestsOut)
async def approval_requests(
    ctx: RequestContext = Depends(require_admin),
    services: AppServices = Depends(get_services),
):
    rows = await services.microsoft.pending_requests()
    return ApprovalRequestsOut(requests=[ApprovalRequestOut.model_validate(r) for r in rows])


@router.post("/admin/approval-requests/{request_id}/decision", response_model=ApprovalDecisionResponse)
async def approval_decision(
    request_id: int,
    payload: ApprovalDecisionRequest,
    ctx: RequestContext = Depends(require_admin),
    services: AppServices = Depends(get_services),
):
    try:
        request, user = await services.microsoft.decide(request_id, payload.decision, ctx.user, payload.review_notes)
    except ApprovalDecisionError as exc:
        raise HTTPException(exc.status_code, exc.message)

    message = "User approved and account created" if user is not None else "User access rejected"
    return ApprovalDecisionResponse(
        message=message,
        request=ApprovalRequestOut.model_validate(request),
        user=UserOut.model_validate(user) if user is not None else None,
    )


@router.get("/llm-server/status", response_model=LlmServerStatusResponse)
async def llm_server_status(
    ctx: RequestContext = Depends(get_request_context),
    services: AppServices = Depends(get_services),
):
    row = await services.storage.get_llm_server_status()
    return LlmServerStatusResponse(status=LlmServerStatusOut.model_validate(row) if row is not None else None)


@router.post("/llm-server/ping", response_model=LlmServerStatusResponse)
async def llm_server_ping(
    payload: LlmServerPing,
    authorization: str | None = Header(None),
    services: AppServices = Depends(get_services),
):
    required = services.settings.llm_server_token
    if required:
        token = (authorization or "").replace("Bearer ", "").strip()
        if not hmac.compare_digest(token.encode(), required.encode()):
            raise HTTPException(401, "Unauthorized")
    row = await services.storage.update_llm_server_status(payload.model_dump())
    logger.info("[microsoft.llm_server_ping] endpoint=%s status=%s", payload.server_endpoint, payload.status)
    return LlmServerStatusResponse(status=LlmServerStatusOut.model_validate(row))

"""Руководство к файлу (BACKEND/SERVICES/microsoft_graph.py)
Назначение:
- HTTP-клиент к Azure AD (OAuth 2.0 authorization code) и Microsoft Graph
  (профиль, файлы OneDrive/SharePoint, скачивание содержимого).
- Явный таймаут на каждый запрос и ограниченный повтор с экспоненциальной
  паузой для сетевых ошибок, 429 и 5xx.
Важно:
- Без tenant/client/secret любые OAuth-операции бросают GraphNotConfiguredError.
- Ответы не кэшируются; кэш метаданных файлов ведёт MicrosoftAuthService.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional
from urllib.parse import urlencode

import httpx


logger = logging.getLogger("docintel.services.graph")

GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"
LOGIN_BASE_URL = "https://login.microsoftonline.com"

SCOPES = [
    "https://graph.microsoft.com/User.Read",
    "https://graph.microsoft.com/Files.Read.All",
    "https://graph.microsoft.com/Sites.Read.All",
    "offline_access",
]

FileSource = Literal["onedrive", "sharepoint"]

_RETRY_STATUSES = {429, 500, 502, 503, 504}


class GraphNotConfiguredError(Exception):
    """Не заданы учётные данные Azure (tenant/client/secret)."""


class GraphApiError(Exception):
    """Ошибка обращения к Azure AD / Microsoft Graph."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass
class GraphConfig:
    """Настройки клиента Microsoft Graph."""

    tenant_id: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    timeout: float = 10.0
    max_attempts: int = 3
    backoff: float = 0.5
    graph_base_url: str = GRAPH_BASE_URL
    login_base_url: str = LOGIN_BASE_URL


@dataclass
class TokenSet:
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None


@dataclass
class MicrosoftProfile:
    external_id: str
    email: str
    display_name: Optional[str] = None
    given_name: Optional[str] = None
    surname: Optional[str] = None


@dataclass
class GraphFile:
    id: str
    name: str
    web_url: str
    size: int
    mime_type: str
    last_modified: Optional[str]
    source: FileSource
    download_url: Optional[str] = None
    site_id: Optional[str] = None

    def to_json(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "webUrl": self.web_url,
            "size": self.size,
            "mimeType": self.mime_type,
            "lastModifiedDateTime": self.last_modified,
            "source": self.source,
            "downloadUrl": self.download_url,
            "siteId": self.site_id,
        }


class MicrosoftGraphService:
    """Async-клиент Azure AD + Microsoft Graph поверх httpx.

    transport можно подменить (httpx.MockTransport) в тестах.
    """

    def __init__(self, cfg: GraphConfig | None = None, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._cfg = cfg or GraphConfig()
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self._cfg.tenant_id and self._cfg.client_id and self._cfg.client_secret)

    def _require_config(self) -> None:
        if not self.is_configured:
            raise GraphNotConfiguredError(
                "Azure credentials not configured. Set AZURE_TENANT_ID, AZURE_CLIENT_ID and AZURE_CLIENT_SECRET."
            )

    @property
    def _authority(self) -> str:
        return f"{self._cfg.login_base_url}/{self._cfg.tenant_id}/oauth2/v2.0"

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    async def _send(
        self,
        method: str,
        url: str,
        *,
        access_token: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        single_use: bool = False,
    ) -> httpx.Response:
        """Выполнить запрос с повторами; вернуть успешный ответ или бросить GraphApiError.

        single_use=True: запрос нельзя повторять после того, как он мог дойти до
        сервера (одноразовый authorization code). Повтор только при ConnectError.
        """

        headers: Dict[str, str] = {}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"

        last_error: Optional[GraphApiError] = None
        for attempt in range(1, self._cfg.max_attempts + 1):
            try:
                async with httpx.AsyncClient(
                    timeout=self._cfg.timeout, transport=self._transport, follow_redirects=True
                ) as client:
                    resp = await client.request(method, url, params=params, data=data, headers=headers)
            except httpx.TransportError as exc:
                last_error = GraphApiError(f"{method} {url} failed: {exc}")
                if single_use and not isinstance(exc, httpx.ConnectError):
                    raise last_error from exc
            else:
                if resp.status_code < 400:
                    return resp
                last_error = GraphApiError(
                    f"{method} {url} -> HTTP {resp.status_code}: {resp.text[:300]}",
                    status_code=resp.status_code,
                )
                if single_use or resp.status_code not in _RETRY_STATUSES:
                    raise last_error

            logger.warning(
                "[MicrosoftGraphService._send] attempt %s/%s failed: %s",
                attempt,
                self._cfg.max_attempts,
                last_error,
            )
            if attempt < self._cfg.max_attempts:
                await asyncio.sleep(self._cfg.backoff * (2 ** (attempt - 1)))

        if last_error is None:
            raise GraphApiError(f"{method} {url} was not attempted (max_attempts={self._cfg.max_attempts})")
        raise last_error

    async def _get_json(self, path: str, access_token: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        resp = await self._send("GET", f"{self._cfg.graph_base_url}{path}", access_token=access_token, params=params)
        return resp.json()

    # ------------------------------------------------------------------
    # OAuth
    # ------------------------------------------------------------------

    def get_auth_url(self, redirect_uri: str, state: str) -> str:
        self._require_config()
        query = urlencode(
            {
                "client_id": self._cfg.client_id,
                "response_type": "code",
                "redirect_uri": redirect_uri,
                "response_mode": "query",
                "scope": " ".join(SCOPES),
                "state": state,
            }
        )
        return f"{self._authority}/authorize?{query}"

    async def _token_request(self, form: Dict[str, Any], *, single_use: bool = False) -> TokenSet:
        self._require_config()
        payload = {
            "client_id": self._cfg.client_id,
            "client_secret": self._cfg.client_secret,
            "scope": " ".join(SCOPES),
            **form,
        }
        resp = await self._send("POST", f"{self._authority}/token", data=payload, single_use=single_use)
        body = resp.json()
        access_token = body.get("access_token")
        if not access_token:
            raise GraphApiError("Token endpoint returned no access_token")
        return TokenSet(
            access_token=access_token,
            refresh_token=body.get("refresh_token"),
            expires_in=body.get("expires_in"),
        )

    async def get_token_from_code(self, code: str, redirect_uri: str) -> TokenSet:
        return await self._token_request(
            {"grant_type": "authorization_code", "code": code, "redirect_uri": redirect_uri},
            single_use=True,
        )

    async def refresh_token(self, refresh_token: str) -> TokenSet:
        return await self._token_request({"grant_type": "refresh_token", "refresh_token": refresh_token})

    # ------------------------------------------------------------------
    # Graph
    # ------------------------------------------------------------------

    async def get_user_profile(self, access_token: str) -> MicrosoftProfile:
        body = await self._get_json("/me", access_token)
        return MicrosoftProfile(
            external_id=str(body["id"]),
            email=body.get("mail") or body.get("userPrincipalName") or "",
            display_name=body.get("displayName"),
            given_name=body.get("givenName"),
            surname=body.get("surname"),
        )

    @staticmethod
    def _to_file(item: Dict[str, Any], source: FileSource, site_id: Optional[str] = None) -> GraphFile:
        return GraphFile(
            id=str(item["id"]),
            name=item.get("name") or "",
            web_url=item.get("webUrl") or "",
            size=int(item.get("size") or 0),
            mime_type=(item.get("file") or {}).get("mimeType") or "application/octet-stream",
            last_modified=item.get("lastModifiedDateTime"),
            source=source,
            download_url=item.get("@microsoft.graph.downloadUrl"),
            site_id=site_id,
        )

    @staticmethod
    def _search_params(query: Optional[str]) -> Optional[Dict[str, Any]]:
        return {"$search": f'"{query}"'} if query else None

    async def get_onedrive_files(self, access_token: str, query: Optional[str] = None) -> List[GraphFile]:
        body = await self._get_json("/me/drive/root/children", access_token, self._search_params(query))
        return [self._to_file(item, "onedrive") for item in body.get("value", [])]

    async def get_sharepoint_files(self, access_token: str, query: Optional[str] = None) -> List[GraphFile]:
        """Файлы из корней дисков отслеживаемых сайтов; сбой отдельного сайта пропускается."""

        try:
            sites = await self._get_json("/me/followedSites", access_token, self._search_params(query))
        except GraphApiError as exc:
            logger.warning("[MicrosoftGraphService.get_sharepoint_files] followedSites failed: %s", exc)
            return []

        files: List[GraphFile] = []
        for site in sites.get("value", []):
            site_id = str(site.get("id"))
            try:
                body = await self._get_json(f"/sites/{site_id}/drive/root/children", access_token)
            except GraphApiError as exc:
                logger.warning("[MicrosoftGraphService.get_sharepoint_files] site %s skipped: %s", site_id, exc)
                continue
            files.extend(self._to_file(item, "sharepoint", site_id) for item in body.get("value", []))
        return files

    async def search_files(self, access_token: str, query: str = "") -> List[GraphFile]:
        onedrive, sharepoint = await asyncio.gather(
            self.get_onedrive_files(access_token, query or None),
            self.get_sharepoint_files(access_token, query or None),
        )
        return [*onedrive, *sharepoint]

    async def download_file(
        self,
        access_token: str,
        file_id: str,
        source: FileSource = "onedrive",
        site_id: Optional[str] = None,
    ) -> bytes:
        if source == "sharepoint":
            if not site_id:
                raise GraphApiError("siteId is required for SharePoint downloads", status_code=400)
            path = f"/sites/{site_id}/drive/items/{file_id}/content"
        else:
            path = f"/me/drive/items/{file_id}/content"
        resp = await self._send("GET", f"{self._cfg.graph_base_url}{path}", access_token=access_token)
        return resp.content

"""Руководство к файлу (BACKEND/SERVICES/microsoft_auth_service.py)
Назначение:
- Вход через Microsoft (OAuth callback) с доменной политикой и процессом
  одобрения заявок администратором.
- Список и скачивание файлов OneDrive/SharePoint от имени пользователя,
  с кэшем метаданных в microsoft_files.
Важно:
- Домен email проверяется до любого поиска учётной записи.
- Неизвестная личность получает ровно одну pending-заявку; повторные входы
  возвращают отдельные коды (approval_pending / access_rejected).
- Одобрение сначала создаёт пользователя, затем закрывает заявку.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Literal, Optional, Tuple

from BACKEND.DATABASE.models import ApprovalRequest, User
from BACKEND.STORAGE import DuplicateRecordError, Storage
from .microsoft_graph import (
    FileSource,
    GraphApiError,
    GraphFile,
    GraphNotConfiguredError,
    MicrosoftGraphService,
    TokenSet,
)


logger = logging.getLogger("docintel.services.microsoft")

Decision = Literal["approved", "rejected"]

APPROVAL_REQUEST_REASON = "Microsoft Graph authentication request"


class ApprovalDecisionError(Exception):
    """Решение по заявке невозможно (нет заявки / уже решена / конфликт)."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class MicrosoftTokenMissingError(Exception):
    """У пользователя нет сохранённого access token Microsoft."""


@dataclass
class CallbackOutcome:
    """Итог OAuth callback: status == "ok" либо машинный код ошибки."""

    status: str
    user: Optional[User] = None
    session_token: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


class MicrosoftAuthService:
    def __init__(self, storage: Storage, graph: MicrosoftGraphService, *, allowed_domain: str = "bpn.rw") -> None:
        self.storage = storage
        self.graph = graph
        self.allowed_domain = allowed_domain.lower().lstrip("@")

    def is_allowed_email(self, email: Optional[str]) -> bool:
        return bool(email) and email.lower().endswith(f"@{self.allowed_domain}")  # type: ignore[union-attr]

    # ------------------------------------------------------------------
    # OAuth callback
    # ------------------------------------------------------------------

    async def complete_login(self, code: str, redirect_uri: str) -> CallbackOutcome:
        try:
            tokens = await self.graph.get_token_from_code(code, redirect_uri)
        except GraphNotConfiguredError:
            return CallbackOutcome("azure_not_configured")
        except GraphApiError as exc:
            logger.warning("[MicrosoftAuthService.complete_login] token exchange failed: %s", exc)
            return CallbackOutcome("token_failed")

        try:
            profile = await self.graph.get_user_profile(tokens.access_token)
        except GraphApiError as exc:
            logger.warning("[MicrosoftAuthService.complete_login] profile fetch failed: %s", exc)
            return CallbackOutcome("auth_failed")

        if not self.is_allowed_email(profile.email):
            logger.info("[MicrosoftAuthService.complete_login] rejected domain email=%s", profile.email)
            return CallbackOutcome("invalid_domain")

        user = await self.storage.get_user_by_microsoft_id(profile.external_id)
        if user is None:
            status = await self._handle_unknown_identity(
                profile.external_id,
                profile.email,
                profile.given_name,
                profile.surname,
            )
            return CallbackOutcome(status)

        if not user.is_approved:
            return CallbackOutcome("not_approved", user=user)

        user = await self.storage.update_user(
            user.id,
            {
                "microsoft_access_token": tokens.access_token,
                "microsoft_refresh_token": tokens.refresh_token,
                "last_login_at": self.storage.clock(),
            },
        ) or user
        token = await self.storage.create_session(user.id)
        logger.info("[MicrosoftAuthService.complete_login] user_id=%s signed in", user.id)
        return CallbackOutcome("ok", user=user, session_token=token)

    async def _handle_unknown_identity(
        self,
        microsoft_id: str,
        email: str,
        given_name: Optional[str],
        surname: Optional[str],
    ) -> str:
        existing = await self.storage.get_approval_request_by_microsoft_id(microsoft_id)
        if existing is None:
            existing = await self.storage.get_approval_request_by_email(email)

        if existing is not None:
            if existing.status == "pending":
                return "approval_pending"
            if existing.status == "rejected":
                return "access_rejected"
            # заявка одобрена, но учётная запись не найдена по microsoft_id
            return "not_approved"

        try:
            request = await self.storage.create_approval_request(
                {
                    "email": email,
                    "first_name": given_name or "",
                    "last_name": surname or "",
                    "microsoft_id": microsoft_id,
                    "request_reason": APPROVAL_REQUEST_REASON,
                    "status": "pending",
                }
            )
        except DuplicateRecordError:
            # параллельный вход той же личности успел создать заявку
            return "approval_pending"
        logger.info("[MicrosoftAuthService._handle_unknown_identity] request_id=%s email=%s", request.id, email)
        return "approval_required"

    # ------------------------------------------------------------------
    # Решения администратора
    # ------------------------------------------------------------------

    async def pending_requests(self) -> List[ApprovalRequest]:
        return await self.storage.get_pending_approval_requests()

    async def _unique_username(self, email: str) -> str:
        base = email.split("@")[0] or "user"
        candidate = base
        suffix = 2
        while await self.storage.get_user_by_username(candidate) is not None:
            candidate = f"{base}{suffix}"
            suffix += 1
        return candidate

    async def decide(
        self,
        request_id: int,
        decision: Decision,
        reviewer: User,
        notes: Optional[str] = None,
    ) -> Tuple[ApprovalRequest, Optional[User]]:
        request = await self.storage.get_approval_request(request_id)
        if request is None:
            raise ApprovalDecisionError(404, "Approval request not found")
        if request.status != "pending":
            raise ApprovalDecisionError(409, f"Approval request already {request.status}")

        now = self.storage.clock()
        created: Optional[User] = None
        if decision == "approved":
            try:
                created = await self.storage.create_user(
                    {
                        "username": await self._unique_username(request.email),
                        "email": request.email,
                        "password_hash": None,
                        "first_name": request.first_name,
                        "last_name": request.last_name,
                        "microsoft_id": request.microsoft_id,
                        "is_approved": True,
                        "approved_by": reviewer.id,
                        "approved_at": now,
                        "role": "user",
                    }
                )
            except DuplicateRecordError as exc:
                raise ApprovalDecisionError(409, "User account already exists") from exc

        updated = await self.storage.update_approval_request(
            request_id,
            {"status": decision, "reviewed_by": reviewer.id, "reviewed_at": now, "review_notes": notes},
        )
        logger.info(
            "[MicrosoftAuthService.decide] request_id=%s decision=%s reviewer=%s",
            request_id,
            decision,
            reviewer.id,
        )
        return updated or request, created

    # ------------------------------------------------------------------
    # Файлы
    # ------------------------------------------------------------------

    async def _refresh(self, user: User) -> Optional[User]:
        if not user.microsoft_refresh_token:
            return None
        tokens: TokenSet = await self.graph.refresh_token(user.microsoft_refresh_token)
        return await self.storage.update_user(
            user.id,
            {
                "microsoft_access_token": tokens.access_token,
                "microsoft_refresh_token": tokens.refresh_token or user.microsoft_refresh_token,
            },
        )

    async def _fetch_files(self, access_token: str, query: Optional[str], source: Optional[str]) -> List[GraphFile]:
        if source == "onedrive":
            return await self.graph.get_onedrive_files(access_token, query)
        if source == "sharepoint":
            return await self.graph.get_sharepoint_files(access_token, query)
        return await self.graph.search_files(access_token, query or "")

    async def list_files(self, user: User, query: Optional[str] = None, source: Optional[str] = None) -> List[GraphFile]:
        """Список файлов; при 401 один раз обновляет access token по refresh token."""

        if not user.microsoft_access_token:
            raise MicrosoftTokenMissingError("Microsoft access token not available")

        try:
            files = await self._fetch_files(user.microsoft_access_token, query, source)
        except GraphApiError as exc:
            if exc.status_code != 401:
                raise
            refreshed = await self._refresh(user)
            if refreshed is None:
                raise
            user = refreshed
            files = await self._fetch_files(user.microsoft_access_token, query, source)

        for f in files:
            await self.storage.upsert_microsoft_file(
                user.id,
                f.id,
                {
                    "file_name": f.name,
                    "file_path": f.web_url,
                    "file_type": f.mime_type,
                    "source": f.source,
                    "extra_metadata": {
                        "size": f.size,
                        "lastModified": f.last_modified,
                        "downloadUrl": f.download_url,
                        "siteId": f.site_id,
                    },
                },
            )
        return files

    async def download(
        self,
        user: User,
        file_id: str,
        source: FileSource = "onedrive",
        site_id: Optional[str] = None,
    ) -> bytes:
        if not user.microsoft_access_token:
            raise MicrosoftTokenMissingError("Microsoft access token not available")

        content = await self.graph.download_file(user.microsoft_access_token, file_id, source, site_id)
        cached = await self.storage.get_microsoft_file(user.id, file_id)
        if cached is not None:
            await self.storage.update_microsoft_file(cached.id, {"last_accessed": self.storage.clock()})
        return content

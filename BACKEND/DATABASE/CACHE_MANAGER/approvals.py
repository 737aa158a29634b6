# Руководство к файлу (DATABASE/CACHE_MANAGER/approvals.py)
# Назначение:
# - Менеджер заявок на доступ (user_approval_requests) для Microsoft-логина.
# - Поиск по email / microsoft_id, список pending-заявок, обновление решения.

from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from .base_class import BaseManager
from ..models import ApprovalRequest


class ApprovalManager(BaseManager):
    def __init__(self, session: AsyncSession):
        super().__init__(session)

    async def create_request(self, data: Dict[str, Any]) -> ApprovalRequest:
        return await self.create(ApprovalRequest, data)

    async def get_request(self, request_id: int) -> Optional[ApprovalRequest]:
        return await self.get_by_id(ApprovalRequest, request_id)

    async def get_by_email(self, email: str) -> Optional[ApprovalRequest]:
        return await self.get_one_where(ApprovalRequest, ApprovalRequest.email == email)

    async def get_by_microsoft_id(self, microsoft_id: str) -> Optional[ApprovalRequest]:
        return await self.get_one_where(ApprovalRequest, ApprovalRequest.microsoft_id == microsoft_id)

    async def list_pending(self) -> List[ApprovalRequest]:
        return await self.list_where(
            ApprovalRequest,
            where=[ApprovalRequest.status == "pending"],
            order_by=(ApprovalRequest.created_at, ApprovalRequest.id),
        )

    async def update_request(self, request_id: int, data: Dict[str, Any]) -> Optional[ApprovalRequest]:
        return await self.update_by_id(ApprovalRequest, request_id, data)

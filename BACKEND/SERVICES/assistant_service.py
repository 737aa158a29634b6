"""Руководство к файлу (BACKEND/SERVICES/assistant_service.py)
Назначение:
- Чат с ассистентом: сохранение сообщений и отложенный шаблонный ответ.
- Реальный LLM не вызывается: ответ ассистента фиксированный текст.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from BACKEND.DATABASE.models import Message, User
from BACKEND.STORAGE import Storage
from .task_runner import DelayedTaskRunner


logger = logging.getLogger("docintel.services.assistant")

CANNED_REPLY = (
    "I'm analyzing your business documents and extracting relevant insights. "
    "As your BPN Intelligence Assistant, I can help you with strategic analysis, "
    "document summarization, trend identification, and business intelligence reporting. "
    "What specific insights would you like me to provide?"
)


class AssistantService:
    def __init__(self, storage: Storage, tasks: DelayedTaskRunner, *, reply_delay: float = 1.0) -> None:
        self.storage = storage
        self.tasks = tasks
        self.reply_delay = reply_delay

    async def list_messages(self, user: User) -> List[Message]:
        return await self.storage.get_messages(user.id)

    async def post_message(self, user: User, payload: Dict[str, Any]) -> Message:
        message = await self.storage.create_message({**payload, "user_id": user.id})
        if message.role == "user":
            self.tasks.schedule(
                f"assistant-reply:{message.id}",
                self.reply_delay,
                lambda: self._reply(user.id),
            )
        return message

    async def _reply(self, user_id: int) -> None:
        reply = await self.storage.create_message(
            {"user_id": user_id, "content": CANNED_REPLY, "role": "assistant", "sources": None}
        )
        logger.info("[AssistantService._reply] user_id=%s message_id=%s", user_id, reply.id)

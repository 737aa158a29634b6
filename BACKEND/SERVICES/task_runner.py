# Руководство к файлу (SERVICES/task_runner.py)
# Назначение:
# - DelayedTaskRunner: отложенные побочные эффекты (ответ ассистента,
#   «индексация» документа) как явные задачи с ключом идемпотентности,
#   результатом выполнения и повторными попытками.
# Важно:
# - Задачи живут в памяти процесса: при перезапуске незавершённые теряются.
# - Повторное планирование по ключу в статусе pending/running/succeeded
#   возвращает уже существующий результат; failed/cancelled можно перезапустить.
# - Хранится не больше history_size завершённых результатов (старые вытесняются),
#   незавершённые задачи не вытесняются никогда.

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Literal, Optional

from BACKEND.DATABASE.models import local_now


logger = logging.getLogger("docintel.services.tasks")

TaskStatus = Literal["pending", "running", "succeeded", "failed", "cancelled"]
Job = Callable[[], Awaitable[None]]

_ACTIVE: tuple[str, ...] = ("pending", "running", "succeeded")


@dataclass
class TaskOutcome:
    """Состояние одной отложенной задачи."""

    key: str
    status: TaskStatus = "pending"
    attempts: int = 0
    error: Optional[str] = None
    finished_at: Optional[datetime] = None
    done: asyncio.Event = field(default_factory=asyncio.Event, repr=False)


class DelayedTaskRunner:
    def __init__(
        self, *, retry_backoff_sec: float = 0.5, default_max_attempts: int = 3, history_size: int = 1000
    ) -> None:
        self.retry_backoff_sec = retry_backoff_sec
        self.default_max_attempts = default_max_attempts
        self.history_size = history_size
        self._outcomes: Dict[str, TaskOutcome] = {}
        self._finished: "OrderedDict[str, None]" = OrderedDict()
        self._tasks: Dict[str, asyncio.Task[None]] = {}

    # ------------------------------------------------------------------
    # Публичный API
    # ------------------------------------------------------------------

    def schedule(self, key: str, delay: float, job: Job, *, max_attempts: Optional[int] = None) -> TaskOutcome:
        """Запланировать *job* через *delay* секунд под ключом *key*."""

        existing = self._outcomes.get(key)
        if existing is not None and existing.status in _ACTIVE:
            logger.debug("[DelayedTaskRunner.schedule] key=%s already %s", key, existing.status)
            return existing

        outcome = TaskOutcome(key=key)
        self._outcomes[key] = outcome
        self._finished.pop(key, None)
        attempts = max_attempts or self.default_max_attempts
        task = asyncio.create_task(self._run(outcome, delay, job, attempts), name=f"docintel:{key}")
        self._tasks[key] = task
        task.add_done_callback(lambda t, k=key: self._forget_task(k, t))
        logger.debug("[DelayedTaskRunner.schedule] key=%s delay=%.2fs attempts=%s", key, delay, attempts)
        return outcome

    def get(self, key: str) -> Optional[TaskOutcome]:
        return self._outcomes.get(key)

    def outcomes(self) -> List[TaskOutcome]:
        return list(self._outcomes.values())

    async def drain(self) -> None:
        """Дождаться завершения всех запланированных задач (включая задержку)."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    async def shutdown(self) -> None:
        """Отменить все незавершённые задачи."""

        pending = list(self._tasks.values())
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        logger.info("[DelayedTaskRunner.shutdown] cancelled=%s", len(pending))

    # ------------------------------------------------------------------
    # Выполнение
    # ------------------------------------------------------------------

    async def _run(self, outcome: TaskOutcome, delay: float, job: Job, max_attempts: int) -> None:
        try:
            await asyncio.sleep(delay)
            outcome.status = "running"
            for attempt in range(1, max_attempts + 1):
                outcome.attempts = attempt
                try:
                    await job()
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    outcome.error = str(exc)
                    logger.warning(
                        "[DelayedTaskRunner._run] attempt %s/%s for '%s' failed: %s",
                        attempt,
                        max_attempts,
                        outcome.key,
                        exc,
                    )
                    if attempt == max_attempts:
                        outcome.status = "failed"
                        logger.error("[DelayedTaskRunner._run] attempts exhausted for '%s'", outcome.key)
                        return
                    await asyncio.sleep(self.retry_backoff_sec * (2 ** (attempt - 1)))
                else:
                    outcome.status = "succeeded"
                    outcome.error = None
                    return
        except asyncio.CancelledError:
            outcome.status = "cancelled"
            raise
        finally:
            outcome.finished_at = local_now()
            outcome.done.set()
            self._remember_finished(outcome)

    def _forget_task(self, key: str, task: "asyncio.Task[None]") -> None:
        if self._tasks.get(key) is task:
            del self._tasks[key]

    def _remember_finished(self, outcome: TaskOutcome) -> None:
        if self._outcomes.get(outcome.key) is not outcome:
            return
        self._finished[outcome.key] = None
        while len(self._finished) > self.history_size:
            key, _ = self._finished.popitem(last=False)
            self._outcomes.pop(key, None)

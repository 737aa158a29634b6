# Руководство к файлу (SERVICES/__init__.py)
# Назначение:
# - Объявляет пакет BACKEND.SERVICES (сервисы DocIntel без зависимости от FastAPI).
# - Экспортирует контейнер AppServices и основные доменные исключения.

from __future__ import annotations

from .auth_service import AuthService, InvalidCredentialsError, LoginResult
from .container import AppServices
from .microsoft_auth_service import ApprovalDecisionError, CallbackOutcome, MicrosoftTokenMissingError
from .microsoft_graph import GraphApiError, GraphNotConfiguredError, MicrosoftGraphService
from .task_runner import DelayedTaskRunner, TaskOutcome

__all__ = [
    "AppServices",
    "ApprovalDecisionError",
    "AuthService",
    "CallbackOutcome",
    "DelayedTaskRunner",
    "GraphApiError",
    "GraphNotConfiguredError",
    "InvalidCredentialsError",
    "LoginResult",
    "MicrosoftGraphService",
    "MicrosoftTokenMissingError",
    "TaskOutcome",
]

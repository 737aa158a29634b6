# Руководство к файлу
# Назначение: объявляет пакет BACKEND.DATABASE.CACHE_MANAGER и экспортирует менеджеры.

from .base_class import BaseManager
from .user import UserManager
from .documents import DocumentManager
from .messages import MessageManager
from .system import SystemManager
from .sessions import SessionManager
from .approvals import ApprovalManager
from .microsoft_files import MicrosoftFileManager

__all__ = [
    "BaseManager",
    "UserManager",
    "DocumentManager",
    "MessageManager",
    "SystemManager",
    "SessionManager",
    "ApprovalManager",
    "MicrosoftFileManager",
]

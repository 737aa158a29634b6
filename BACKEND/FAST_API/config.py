# Руководство к файлу (FAST_API/config.py)
# Назначение:
# - Централизованные настройки DocIntel API: хранилище, сессии, задержки
#   симулированных задач, Microsoft Graph, доменная политика, CORS.
# Важно:
# - Все значения переопределяются переменными окружения с префиксом DOCINTEL_.
# - Azure-креды и CLIENT_URL принимаются и под привычными именами
#   (AZURE_TENANT_ID, AZURE_CLIENT_ID, AZURE_CLIENT_SECRET, CLIENT_URL).
# - Модульного экземпляра нет: настройки создаёт create_app() и передаёт дальше.

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Базовые настройки DocIntel FastAPI."""

    model_config = SettingsConfigDict(env_prefix="DOCINTEL_", extra="ignore", populate_by_name=True)

    app_name: str = Field("DocIntel API", description="Название приложения")
    version: str = Field("1.0.0", description="Версия API")
    environment: str = Field("development", description="development / production")

    # Хранилище
    storage_backend: Literal["memory", "database"] = Field("memory", description="Реализация Storage")
    database_url: Optional[str] = Field(default=None, description="SQLAlchemy async URL, по умолчанию локальный sqlite")

    # CORS
    cors_origins: str = Field(default="http://localhost:5173,http://127.0.0.1:5173", description="Разрешённые Origin")

    # Сессии
    session_ttl_hours: float = Field(default=24.0, description="Время жизни сессии в часах")

    # Симулированные фоновые эффекты
    assistant_reply_delay_sec: float = Field(default=1.0, description="Задержка ответа ассистента")
    document_processing_delay_sec: float = Field(default=5.0, description="Задержка «индексации» документа")
    task_max_attempts: int = Field(default=3, description="Попыток на одну отложенную задачу")
    task_history_size: int = Field(default=1000, ge=0, description="Сколько завершённых задач держать в памяти")

    # Microsoft Graph / Azure AD
    azure_tenant_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("DOCINTEL_AZURE_TENANT_ID", "AZURE_TENANT_ID")
    )
    azure_client_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("DOCINTEL_AZURE_CLIENT_ID", "AZURE_CLIENT_ID")
    )
    azure_client_secret: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("DOCINTEL_AZURE_CLIENT_SECRET", "AZURE_CLIENT_SECRET")
    )
    client_url: str = Field(default="", validation_alias=AliasChoices("DOCINTEL_CLIENT_URL", "CLIENT_URL"))
    microsoft_redirect_uri: Optional[str] = Field(
        default=None, description="Явный redirect_uri, иначе вычисляется из запроса"
    )
    allowed_email_domain: str = Field(default="bpn.rw", description="Корпоративный домен для Microsoft-входа")
    graph_timeout_sec: float = Field(default=10.0)
    graph_max_attempts: int = Field(default=3)
    graph_backoff_sec: float = Field(default=0.5)

    # Удалённый LLM-сервер: общий токен для /llm-server/ping (пусто: без проверки)
    llm_server_token: Optional[str] = Field(default=None)

    # Начальный администратор
    seed_admin: bool = Field(default=True)
    seed_admin_email: str = Field(default="admin@company.com")
    seed_admin_username: str = Field(default="admin")
    seed_admin_password: str = Field(default="password123")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def azure_configured(self) -> bool:
        return bool(self.azure_tenant_id and self.azure_client_id and self.azure_client_secret)

    def cors_origin_list(self) -> List[str]:
        return [o.strip() for o in (self.cors_origins or "").split(",") if o.strip()]

# Руководство к файлу (FAST_API/schemas.py)
# Назначение:
# - Централизованные Pydantic-схемы запросов/ответов FastAPI для DocIntel.
# - JSON наружу в camelCase (isProcessing, originalName, ...), на вход
#   принимаются и camelCase, и snake_case.
# Важно:
# - UserOut никогда не содержит хэш пароля и токены Microsoft.
# - Ответные схемы читают поля прямо из ORM-объектов (from_attributes).

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from BACKEND.DATABASE.CACHE_MANAGER.base_class import MAX_ROW_ID


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def _metadata_field() -> Any:
    # у ORM-моделей атрибут `metadata` занят MetaData, поэтому читаем extra_metadata
    return Field(
        default=None,
        validation_alias=AliasChoices("extra_metadata", "metadata"),
        serialization_alias="metadata",
    )


# --------------------------- Common ---------------------------

class MessageResponse(ApiModel):
    message: str


class SuccessResponse(ApiModel):
    success: bool = True
    message: Optional[str] = None


class HealthResponse(ApiModel):
    status: str
    timestamp: str
    version: str


# --------------------------- Users / Auth ---------------------------

class UserOut(ApiModel):
    id: int
    username: str
    email: str
    role: str
    first_name: str
    last_name: str
    storage_used: int
    storage_limit: int
    microsoft_id: Optional[str] = None
    is_approved: bool = False
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class LoginRequest(ApiModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class LoginResponse(ApiModel):
    user: UserOut
    token: str


# --------------------------- Documents ---------------------------

class DocumentCreate(ApiModel):
    filename: str = Field(..., min_length=1)
    original_name: str = Field(..., min_length=1)
    file_type: str
    file_size: int = Field(..., ge=0, le=MAX_ROW_ID)
    file_path: str
    is_shared: bool = False
    is_indexed: bool = False
    is_processing: bool = False
    extra_metadata: Optional[Dict[str, Any]] = _metadata_field()


class DocumentUpdate(ApiModel):
    filename: Optional[str] = Field(None, min_length=1)
    original_name: Optional[str] = Field(None, min_length=1)
    file_type: Optional[str] = None
    file_size: Optional[int] = Field(None, ge=0, le=MAX_ROW_ID)
    file_path: Optional[str] = None
    is_shared: Optional[bool] = None
    is_indexed: Optional[bool] = None
    is_processing: Optional[bool] = None
    extra_metadata: Optional[Dict[str, Any]] = _metadata_field()

    def changes(self) -> Dict[str, Any]:
        """Только переданные поля; null допустим лишь для metadata."""

        data = self.model_dump(exclude_unset=True)
        return {k: v for k, v in data.items() if v is not None or k == "extra_metadata"}


class DocumentOut(ApiModel):
    id: int
    user_id: int
    filename: str
    original_name: str
    file_type: str
    file_size: int
    file_path: str
    is_shared: bool
    is_indexed: bool
    is_processing: bool
    extra_metadata: Optional[Dict[str, Any]] = _metadata_field()
    created_at: datetime
    updated_at: datetime


class UploadRequest(ApiModel):
    filename: Optional[str] = None
    file_type: Optional[str] = None
    file_size: Optional[int] = Field(None, ge=0, le=MAX_ROW_ID)


# --------------------------- Messages ---------------------------

class MessageCreate(ApiModel):
    content: str = Field(..., min_length=1)
    role: Literal["user", "assistant"] = "user"
    sources: Optional[List[Any]] = None


class MessageOut(ApiModel):
    id: int
    user_id: int
    content: str
    role: str
    sources: Optional[List[Any]] = None
    created_at: datetime


# --------------------------- System / Analytics ---------------------------

class SystemStatusOut(ApiModel):
    id: int
    component: str
    status: str
    message: Optional[str] = None
    updated_at: datetime


class SystemStatusUpdate(ApiModel):
    status: Literal["online", "offline", "scheduled", "error", "processing"]
    message: Optional[str] = None


class UserStatsOut(ApiModel):
    total_documents: int
    storage_used: int
    queries_today: int
    processing: int


class DocumentStatsOut(ApiModel):
    total_documents: int
    processed_today: int
    processing_time: int
    error_rate: int


class HourCount(ApiModel):
    hour: int
    count: int


class UserActivityOut(ApiModel):
    total_queries: int
    active_users: int
    avg_response_time: int
    popular_times: List[HourCount]


class SystemPerformanceOut(ApiModel):
    cpu_usage: float
    memory_usage: float
    disk_usage: float
    indexing_speed: int


class DayCount(ApiModel):
    date: str
    count: int


class FileTypeShare(ApiModel):
    type: str
    count: int
    percentage: int


class TrendsOut(ApiModel):
    documents_over_time: List[DayCount]
    queries_over_time: List[DayCount]
    file_types: List[FileTypeShare]


class AnalyticsOut(ApiModel):
    range: str
    window_start: str
    document_stats: DocumentStatsOut
    user_activity: UserActivityOut
    system_performance: SystemPerformanceOut
    trends: TrendsOut


# --------------------------- Settings / Export ---------------------------

class SettingsOut(ApiModel):
    agent: Dict[str, Any] = Field(default_factory=dict)
    user: Dict[str, Any] = Field(default_factory=dict)
    security: Dict[str, Any] = Field(default_factory=dict)


class ExportOut(ApiModel):
    user: UserOut
    documents: List[DocumentOut]
    messages: List[MessageOut]
    export_date: datetime


# --------------------------- Microsoft ---------------------------

class MicrosoftConfigStatus(ApiModel):
    microsoft_graph_enabled: bool
    message: str


class MicrosoftFileOut(ApiModel):
    id: str
    name: str
    web_url: str
    size: int
    mime_type: str
    last_modified_date_time: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("last_modified", "last_modified_date_time", "lastModifiedDateTime"),
        serialization_alias="lastModifiedDateTime",
    )
    source: Literal["onedrive", "sharepoint"]
    download_url: Optional[str] = None
    site_id: Optional[str] = None


class MicrosoftFilesOut(ApiModel):
    files: List[MicrosoftFileOut]


class ApprovalRequestOut(ApiModel):
    id: int
    email: str
    first_name: str
    last_name: str
    microsoft_id: str
    request_reason: Optional[str] = None
    status: str
    reviewed_by: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    review_notes: Optional[str] = None
    created_at: datetime


class ApprovalRequestsOut(ApiModel):
    requests: List[ApprovalRequestOut]


class ApprovalDecisionRequest(ApiModel):
    decision: Literal["approved", "rejected"]
    review_notes: Optional[str] = None
    request_id: Optional[int] = None  # дублирует id из пути, не используется


class ApprovalDecisionResponse(ApiModel):
    message: str
    request: ApprovalRequestOut
    user: Optional[UserOut] = None


class LlmServerPing(ApiModel):
    server_endpoint: str = Field(..., min_length=1)
    status: Literal["online", "offline", "processing"] = "online"
    version: Optional[str] = None
    capabilities: Optional[Any] = None


class LlmServerStatusOut(ApiModel):
    id: int
    server_endpoint: str
    status: str
    last_ping: datetime
    version: Optional[str] = None
    capabilities: Optional[Any] = None
    updated_at: datetime


class LlmServerStatusResponse(ApiModel):
    status: Optional[LlmServerStatusOut] = None

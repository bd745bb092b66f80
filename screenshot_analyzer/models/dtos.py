"""
Pydantic Data Transfer Objects (DTOs) for the Screenshot Analyzer service.

These models are used for API request/response validation and for the records
passed between pipeline stages.
"""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AppConfig(BaseModel):
    """
    Validated configuration consumed by the pipeline.

    Built from the environment-backed settings at the service boundary; the
    AI service credential has no default.
    """
    anthropic_api_key: str = Field(..., min_length=1)
    telegram_bot_token: Optional[str] = None
    telegram_chat_id: Optional[str] = None
    enable_desktop_detection: bool = False
    server_port: int = 5001

    api_url: str = "https://api.anthropic.com/v1/messages"
    api_version: str = "2023-06-01"
    model: str = "claude-3-5-sonnet-20241022"
    summary_max_tokens: int = 200
    classification_max_tokens: int = 300
    upstream_timeout_seconds: float = 60.0

    telegram_api_base: str = "https://api.telegram.org"

    watch_directory: Optional[str] = None
    settle_delay_seconds: float = 1.0

    max_retained_records: int = Field(500, ge=1)
    recent_limit: int = Field(50, ge=1)

    @property
    def telegram_configured(self) -> bool:
        return bool(self.telegram_bot_token)


class ScreenshotMetadata(BaseModel):
    """
    Optional metadata sent alongside a submission.
    """
    source: Optional[str] = None
    app: Optional[str] = None
    filename: Optional[str] = None
    location: Optional[str] = None
    auto_detected: Optional[bool] = None


class ScreenshotRequest(BaseModel):
    """
    Request body for ``POST /screenshot``.
    """
    image: str = Field(..., description="Base64 image data, optionally as a data URL.")
    metadata: Optional[ScreenshotMetadata] = None


class ProcessedImage(BaseModel):
    """
    A decoded and validated image payload.
    """
    base64_data: str
    media_type: str  # 'image/png' or 'image/jpeg'
    size_bytes: int

    model_config = ConfigDict(frozen=True)


class ContentAnalysis(BaseModel):
    """
    Structured classification of a screenshot's content.

    Every field has a default so a failed or unparseable classification still
    yields a complete object.
    """
    content_type: str = "unknown"
    webpage_url: Optional[str] = None
    research_topics: List[str] = Field(default_factory=list)
    user_intent: str = ""
    follow_up: str = ""


class AnalysisRecord(BaseModel):
    """
    The enriched result of one submission, owned by the analysis store.
    """
    id: str
    image: ProcessedImage
    brief_summary: str
    content_analysis: ContentAnalysis = Field(default_factory=ContentAnalysis)
    metadata: ScreenshotMetadata = Field(default_factory=ScreenshotMetadata)
    timestamp: datetime = Field(default_factory=utc_now)
    source: str

    model_config = ConfigDict(frozen=True)


class ProcessingResult(BaseModel):
    """
    Outcome returned to the submitting caller.
    """
    success: bool
    summary: Optional[str] = None
    analysis_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=utc_now)
    follow_up_available: Optional[bool] = None
    source: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def failure(cls, error: str, source: Optional[str] = None) -> "ProcessingResult":
        return cls(success=False, error=error, source=source)


class RecentScreenshot(BaseModel):
    """
    Summary row for the recent-screenshots listing.
    """
    id: str
    name: str
    size: int
    type: str
    timestamp: datetime
    status: str = "completed"
    analysis: str
    source: str


class ServerSnapshot(BaseModel):
    """
    Point-in-time view of the running server for ``GET /status``.
    """
    server: str
    status: str
    local_ip: str
    port: int
    total_requests: int
    last_request: Optional[datetime] = None
    active_analyses: int
    telegram_configured: bool
    desktop_detection_enabled: bool


class ServerInfo(BaseModel):
    """
    Connection details for a started service.
    """
    status: str
    local_ip: str
    port: int
    endpoint_url: str
    desktop_detection: bool
    telegram_configured: bool


class ScreenshotEvent(BaseModel):
    """
    Event pushed to the UI layer after an auto-detected screenshot is processed.
    """
    event: str = "screenshot-processed"
    id: str
    name: str
    size: int
    type: str
    timestamp: datetime
    status: str = "completed"
    analysis: str
    source: str


class DesktopDetectionRequest(BaseModel):
    enable: bool


class DesktopDetectionResponse(BaseModel):
    message: str
    desktop_detection: bool

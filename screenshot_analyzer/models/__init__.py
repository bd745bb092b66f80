"""
Models package for the Screenshot Analyzer service.

This package contains the Pydantic DTOs shared by the pipeline and the API.
"""

from .dtos import (
    AnalysisRecord,
    AppConfig,
    ContentAnalysis,
    DesktopDetectionRequest,
    DesktopDetectionResponse,
    ProcessedImage,
    ProcessingResult,
    RecentScreenshot,
    ScreenshotEvent,
    ScreenshotMetadata,
    ScreenshotRequest,
    ServerInfo,
    ServerSnapshot,
)

__all__ = [
    "AnalysisRecord",
    "AppConfig",
    "ContentAnalysis",
    "DesktopDetectionRequest",
    "DesktopDetectionResponse",
    "ProcessedImage",
    "ProcessingResult",
    "RecentScreenshot",
    "ScreenshotEvent",
    "ScreenshotMetadata",
    "ScreenshotRequest",
    "ServerInfo",
    "ServerSnapshot",
]

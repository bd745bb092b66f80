"""
Runtime control endpoints.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from screenshot_analyzer.api.endpoints.screenshot import get_service
from screenshot_analyzer.core.exceptions import ServiceNotRunningError
from screenshot_analyzer.models.dtos import DesktopDetectionRequest, DesktopDetectionResponse
from screenshot_analyzer.service import ScreenshotService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post(
    "/desktop-detection",
    response_model=DesktopDetectionResponse,
    summary="Enable or disable desktop screenshot detection",
)
async def toggle_desktop_detection(
    body: DesktopDetectionRequest,
    service: ScreenshotService = Depends(get_service),
) -> DesktopDetectionResponse:
    try:
        message = await service.set_desktop_detection(body.enable)
    except ServiceNotRunningError as e:
        raise HTTPException(status_code=503, detail=str(e))

    logger.info(message)
    return DesktopDetectionResponse(message=message, desktop_detection=service.desktop_detection_enabled)

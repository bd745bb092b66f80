"""
Screenshot ingestion and status API endpoints.

The submission endpoint always answers HTTP 200 with a ProcessingResult;
pipeline failures are reported inside the body.
"""

import asyncio
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, WebSocket, WebSocketDisconnect

from screenshot_analyzer.core.event_sink import BroadcastEventSink
from screenshot_analyzer.core.exceptions import ServiceNotRunningError
from screenshot_analyzer.models.dtos import (
    ProcessingResult,
    RecentScreenshot,
    ScreenshotRequest,
    ServerInfo,
    ServerSnapshot,
)
from screenshot_analyzer.service import ScreenshotService

router = APIRouter()
logger = logging.getLogger(__name__)


def get_service(request: Request) -> ScreenshotService:
    """Get the service owned by the application."""
    return request.app.state.service


@router.post("/screenshot", response_model=ProcessingResult, summary="Submit a screenshot for analysis")
async def submit_screenshot(
    body: ScreenshotRequest,
    service: ScreenshotService = Depends(get_service),
) -> ProcessingResult:
    """
    Validate, analyze and store one screenshot.

    Args:
        body: Base64 (or data URL) image with optional metadata

    Returns:
        ProcessingResult: Success with summary and analysis ID, or an error message.
    """
    try:
        return await service.process(body.image, body.metadata)
    except ServiceNotRunningError as e:
        source = body.metadata.source if body.metadata else None
        return ProcessingResult.failure(str(e), source=source)


@router.get("/status", response_model=ServerSnapshot, summary="Server status")
async def get_status(service: ScreenshotService = Depends(get_service)) -> ServerSnapshot:
    return service.status()


@router.get("/info", response_model=ServerInfo, summary="Connection details")
async def get_info(service: ScreenshotService = Depends(get_service)) -> ServerInfo:
    try:
        return service.info()
    except ServiceNotRunningError as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.get("/screenshots/recent", response_model=List[RecentScreenshot], summary="Recently analyzed screenshots")
async def get_recent_screenshots(service: ScreenshotService = Depends(get_service)) -> List[RecentScreenshot]:
    """
    Newest first, at most ``RECENT_LIMIT`` entries.
    """
    return service.recent()


@router.websocket("/ws/events")
async def screenshot_events(websocket: WebSocket):
    """
    Push ``screenshot-processed`` events to a connected UI.
    """
    service: ScreenshotService = websocket.app.state.service
    sink = service.event_sink
    if not isinstance(sink, BroadcastEventSink):
        await websocket.close(code=1011, reason="Event streaming is not available")
        return

    async def forward_events(queue: asyncio.Queue):
        while True:
            event = await queue.get()
            await websocket.send_json(event.model_dump(mode="json"))

    async def wait_for_disconnect():
        # Clients are not expected to send anything; reading detects the close.
        while True:
            await websocket.receive_text()

    # Subscribe before accepting so no event is missed once the client is connected.
    queue = sink.subscribe()
    tasks = []
    try:
        await websocket.accept()
        logger.info(f"Event stream client connected ({sink.subscriber_count} active)")

        tasks = [asyncio.create_task(forward_events(queue)), asyncio.create_task(wait_for_disconnect())]
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            exc = task.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                logger.warning(f"Event stream closed with error: {exc}")
    finally:
        for task in tasks:
            task.cancel()
        sink.unsubscribe(queue)
        logger.info("Event stream client disconnected")

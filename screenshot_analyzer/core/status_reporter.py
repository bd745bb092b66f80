"""
Point-in-time views over the analysis store.
"""
from typing import List

from screenshot_analyzer.core.analysis_store import AnalysisStore
from screenshot_analyzer.models.dtos import (
    AnalysisRecord,
    AppConfig,
    RecentScreenshot,
    ServerSnapshot,
)


def display_name(record: AnalysisRecord) -> str:
    """Submitted filename, or a name derived from the record ID."""
    if record.metadata.filename:
        return record.metadata.filename
    return f"screenshot-{record.id[:8]}.png"


def to_recent_screenshot(record: AnalysisRecord) -> RecentScreenshot:
    return RecentScreenshot(
        id=record.id,
        name=display_name(record),
        size=record.image.size_bytes,
        type=record.image.media_type,
        timestamp=record.timestamp,
        analysis=record.brief_summary,
        source=record.source,
    )


def recent_screenshots(store: AnalysisStore, limit: int) -> List[RecentScreenshot]:
    return [to_recent_screenshot(record) for record in store.recent(limit)]


def build_snapshot(
    store: AnalysisStore,
    config: AppConfig,
    server_name: str,
    local_ip: str,
    running: bool,
    desktop_detection_enabled: bool,
) -> ServerSnapshot:
    """
    Aggregate counters, store size and availability flags.

    Args:
        store: The analysis store to read counters from
        config: Active configuration
        server_name: Server identity reported to clients
        local_ip: Address the server is reachable on
        running: Whether the service is started
        desktop_detection_enabled: Whether the desktop watcher is active

    Returns:
        ServerSnapshot: The aggregated status.
    """
    return ServerSnapshot(
        server=server_name,
        status="running" if running else "stopped",
        local_ip=local_ip,
        port=config.server_port,
        total_requests=store.request_count,
        last_request=store.last_request,
        active_analyses=store.count(),
        telegram_configured=config.telegram_configured,
        desktop_detection_enabled=desktop_detection_enabled,
    )

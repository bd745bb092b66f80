"""
Application root object for the Screenshot Analyzer service.

The service owns the pipeline, its HTTP clients and the optional desktop
watcher, and exposes the lifecycle as methods. It is created once by the
entry point (API app or CLI) and passed to whatever needs it.
"""
import logging
from typing import Callable, List, Optional

from screenshot_analyzer.config.settings import Settings
from screenshot_analyzer.core.analysis_orchestrator import AnalysisOrchestrator
from screenshot_analyzer.core.analysis_store import AnalysisStore
from screenshot_analyzer.core.desktop_watcher import DesktopWatcher, resolve_watch_directory
from screenshot_analyzer.core.event_sink import EventSink, LoggingEventSink
from screenshot_analyzer.core.exceptions import ServiceNotRunningError
from screenshot_analyzer.core.pipeline import ScreenshotPipeline
from screenshot_analyzer.core.status_reporter import build_snapshot, recent_screenshots
from screenshot_analyzer.integrations.anthropic_client import AnthropicVisionClient
from screenshot_analyzer.integrations.telegram import TelegramNotifier
from screenshot_analyzer.models.dtos import (
    AppConfig,
    ProcessingResult,
    RecentScreenshot,
    ScreenshotMetadata,
    ServerInfo,
    ServerSnapshot,
)
from screenshot_analyzer.utils.network import get_local_ip

logger = logging.getLogger(__name__)

DEFAULT_SERVER_NAME = "Screenshot AI Server"

WatcherFactory = Callable[[ScreenshotPipeline, AppConfig, EventSink], DesktopWatcher]


def default_watcher_factory(pipeline: ScreenshotPipeline, config: AppConfig, event_sink: EventSink) -> DesktopWatcher:
    return DesktopWatcher(
        pipeline=pipeline,
        directory=resolve_watch_directory(config.watch_directory),
        event_sink=event_sink,
        settle_delay=config.settle_delay_seconds,
    )


class ScreenshotService:
    """
    Owns the running pipeline and its lifecycle.

    Records survive ``restart``; only the clients and the watcher are rebuilt.
    """

    def __init__(
        self,
        config: AppConfig,
        event_sink: Optional[EventSink] = None,
        server_name: str = DEFAULT_SERVER_NAME,
        watcher_factory: WatcherFactory = default_watcher_factory,
    ):
        """
        Args:
            config: Validated configuration
            event_sink: Receives events for auto-detected screenshots
            server_name: Server identity reported by status and health
            watcher_factory: Builds the desktop watcher when detection is enabled
        """
        self.config = config
        self.event_sink = event_sink or LoggingEventSink()
        self.server_name = server_name
        self.watcher_factory = watcher_factory

        self.store = AnalysisStore(max_records=config.max_retained_records)
        self.local_ip = get_local_ip()

        self.pipeline: Optional[ScreenshotPipeline] = None
        self.watcher: Optional[DesktopWatcher] = None
        self._vision_client: Optional[AnthropicVisionClient] = None
        self._notifier: Optional[TelegramNotifier] = None

    @classmethod
    def from_settings(cls, settings: Settings, event_sink: Optional[EventSink] = None) -> "ScreenshotService":
        """
        Build a service from environment-backed settings.

        Raises:
            ConfigurationError: If the AI service credential is missing.
        """
        return cls(settings.to_app_config(), event_sink=event_sink, server_name=settings.APP_NAME)

    @property
    def running(self) -> bool:
        return self.pipeline is not None

    @property
    def desktop_detection_enabled(self) -> bool:
        return self.watcher is not None and self.watcher.running

    def _require_pipeline(self) -> ScreenshotPipeline:
        if self.pipeline is None:
            raise ServiceNotRunningError()
        return self.pipeline

    async def start(self) -> None:
        """Open the upstream clients and start the watcher if enabled."""
        if self.running:
            logger.debug("Service already running")
            return

        config = self.config
        self._vision_client = AnthropicVisionClient(
            api_key=config.anthropic_api_key,
            api_url=config.api_url,
            api_version=config.api_version,
            model=config.model,
            timeout=config.upstream_timeout_seconds,
        )
        orchestrator = AnalysisOrchestrator(
            self._vision_client,
            summary_max_tokens=config.summary_max_tokens,
            classification_max_tokens=config.classification_max_tokens,
        )

        if config.telegram_bot_token and config.telegram_chat_id:
            self._notifier = TelegramNotifier(
                bot_token=config.telegram_bot_token,
                chat_id=config.telegram_chat_id,
                api_base=config.telegram_api_base,
            )
        else:
            logger.info("Telegram not configured - notifications disabled")

        self.pipeline = ScreenshotPipeline(self.store, orchestrator, notifier=self._notifier)
        self.local_ip = get_local_ip()
        logger.info(f"{self.server_name} running on {self.local_ip}:{config.server_port}")

        if config.enable_desktop_detection:
            try:
                self._start_watcher()
            except OSError as e:
                logger.error(f"Failed to start desktop watcher: {e}")

    async def stop(self) -> None:
        """Stop the watcher, drain pending notifications and close the clients."""
        if not self.running:
            return

        await self._stop_watcher()

        pipeline, self.pipeline = self.pipeline, None
        if pipeline.pending_notifications:
            logger.info(f"Waiting for {pipeline.pending_notifications} pending notifications")
        await pipeline.wait_for_notifications()

        if self._notifier is not None:
            await self._notifier.close()
            self._notifier = None
        if self._vision_client is not None:
            await self._vision_client.close()
            self._vision_client = None

        logger.info(f"{self.server_name} stopped")

    async def restart(self, config: Optional[AppConfig] = None) -> None:
        """
        Stop and start again, optionally with a new configuration.
        """
        await self.stop()
        if config is not None:
            self.config = config
            self.store.max_records = config.max_retained_records
        await self.start()

    def _start_watcher(self) -> None:
        watcher = self.watcher_factory(self._require_pipeline(), self.config, self.event_sink)
        watcher.start()
        self.watcher = watcher

    async def _stop_watcher(self) -> None:
        if self.watcher is not None:
            watcher, self.watcher = self.watcher, None
            await watcher.stop()

    async def set_desktop_detection(self, enable: bool) -> str:
        """
        Turn desktop screenshot detection on or off.

        Returns:
            str: Human-readable outcome. A watcher that cannot start is
                reported here rather than raised.

        Raises:
            ServiceNotRunningError: If the service is stopped.
        """
        self._require_pipeline()

        if enable:
            if self.desktop_detection_enabled:
                return "Desktop detection already enabled"
            try:
                self._start_watcher()
            except OSError as e:
                logger.error(f"Failed to start desktop watcher: {e}")
                return f"Failed to enable desktop detection: {e}"
            return "Desktop detection enabled"

        if not self.desktop_detection_enabled:
            return "Desktop detection already disabled"
        await self._stop_watcher()
        return "Desktop detection disabled"

    def info(self) -> ServerInfo:
        """
        Connection details for clients.

        Raises:
            ServiceNotRunningError: If the service is stopped.
        """
        self._require_pipeline()
        port = self.config.server_port
        return ServerInfo(
            status="running",
            local_ip=self.local_ip,
            port=port,
            endpoint_url=f"http://{self.local_ip}:{port}/screenshot",
            desktop_detection=self.desktop_detection_enabled,
            telegram_configured=self.config.telegram_configured,
        )

    def status(self) -> ServerSnapshot:
        return build_snapshot(
            self.store,
            self.config,
            server_name=self.server_name,
            local_ip=self.local_ip,
            running=self.running,
            desktop_detection_enabled=self.desktop_detection_enabled,
        )

    def recent(self, limit: Optional[int] = None) -> List[RecentScreenshot]:
        return recent_screenshots(self.store, limit or self.config.recent_limit)

    async def process(self, image_base64: str, metadata: Optional[ScreenshotMetadata] = None) -> ProcessingResult:
        """
        Run one submission through the pipeline.

        Raises:
            ServiceNotRunningError: If the service is stopped.
        """
        return await self._require_pipeline().process_submission(image_base64, metadata)

"""
Desktop screenshot auto-detection.

A watchdog observer reports file events on its own thread. The handler only
filters names and hands qualifying paths to the event loop; a single worker
task waits for each file to settle, reads it and feeds it into the pipeline.
"""
import asyncio
import base64
import logging
import os
from collections import OrderedDict
from pathlib import Path
from typing import Callable, Optional, Set, Tuple

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from screenshot_analyzer.core.event_sink import EventSink, NullEventSink
from screenshot_analyzer.core.exceptions import NotFoundError
from screenshot_analyzer.core.image_validator import MAX_IMAGE_BYTES, detect_media_type
from screenshot_analyzer.core.pipeline import ScreenshotPipeline
from screenshot_analyzer.models.dtos import ProcessingResult, ScreenshotEvent, ScreenshotMetadata
from screenshot_analyzer.monitoring.metrics import record_watcher_outcome

logger = logging.getLogger(__name__)

SCREENSHOT_EXTENSIONS = {"png", "jpg", "jpeg"}
SCREENSHOT_NAME_PATTERNS = ("screenshot", "screen shot", "capture", "cleanshot")

DESKTOP_SOURCE = "desktop_auto"
DESKTOP_APP = "macOS Screenshot"

# Remembered (size, mtime) signatures of processed files
MAX_REMEMBERED_FILES = 1000


def is_screenshot_file(path: Path) -> bool:
    """
    Name heuristic for screenshot files: not hidden, a png/jpg/jpeg extension,
    and a screenshot-like name.
    """
    name = path.name
    if not name or name.startswith("."):
        return False

    extension = path.suffix.lower().lstrip(".")
    if extension not in SCREENSHOT_EXTENSIONS:
        return False

    lowered = name.lower()
    return any(pattern in lowered for pattern in SCREENSHOT_NAME_PATTERNS)


def resolve_watch_directory(configured: Optional[str] = None) -> Path:
    """
    Pick the directory to watch: the configured one, else ~/Desktop, else the
    home directory, else the current directory.
    """
    if configured:
        return Path(configured).expanduser()

    try:
        home = Path.home()
    except RuntimeError:
        return Path.cwd()

    desktop = home / "Desktop"
    if desktop.is_dir():
        return desktop
    if home.is_dir():
        return home
    return Path.cwd()


class ScreenshotFileHandler(FileSystemEventHandler):
    """
    Filters file events and forwards screenshot paths. Runs on the observer
    thread, so it must not block.
    """

    def __init__(self, on_candidate: Callable[[Path], None]):
        super().__init__()
        self.on_candidate = on_candidate

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._consider(event.src_path)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._consider(event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._consider(event.dest_path)

    def _consider(self, raw_path) -> None:
        path = Path(os.fsdecode(raw_path))
        if is_screenshot_file(path):
            self.on_candidate(path)


class DesktopWatcher:
    """
    Watches one directory (non-recursively) and processes new screenshots.
    """

    def __init__(
        self,
        pipeline: ScreenshotPipeline,
        directory: Path,
        event_sink: Optional[EventSink] = None,
        settle_delay: float = 1.0,
        observer_factory: Callable[[], Observer] = Observer,
    ):
        """
        Args:
            pipeline: Pipeline that processes detected screenshots
            directory: Directory to watch
            event_sink: Receives an event for every processed screenshot
            settle_delay: Seconds to wait before reading a detected file
            observer_factory: Builds the watchdog observer
        """
        self.pipeline = pipeline
        self.directory = directory
        self.event_sink = event_sink or NullEventSink()
        self.settle_delay = settle_delay
        self.observer_factory = observer_factory

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None
        self._observer: Optional[Observer] = None
        self._pending: Set[str] = set()
        self._processed: "OrderedDict[str, Tuple[int, int]]" = OrderedDict()

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def start(self) -> None:
        """
        Start the observer and the worker task. Must be called from the event loop.

        Raises:
            OSError: If the directory cannot be watched. Nothing is left running.
        """
        if self.running:
            return

        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()

        try:
            observer = self.observer_factory()
            observer.schedule(ScreenshotFileHandler(self.submit_threadsafe), str(self.directory), recursive=False)
            observer.start()
        except OSError:
            self._loop = None
            self._queue = None
            raise

        self._observer = observer
        self._worker = asyncio.create_task(self._run(), name="desktop-watcher")

        logger.info("Desktop screenshot auto-detection started")
        logger.info(f"Monitoring: {self.directory}")

    async def stop(self) -> None:
        """Stop the observer and cancel the worker. Pending files are dropped."""
        if self._observer is not None:
            observer, self._observer = self._observer, None
            observer.stop()
            await asyncio.to_thread(observer.join, 5)

        if self._worker is not None:
            worker, self._worker = self._worker, None
            worker.cancel()
            try:
                await worker
            except asyncio.CancelledError:
                pass

        self._pending.clear()
        logger.info("Desktop screenshot auto-detection stopped")

    def submit_threadsafe(self, path: Path) -> None:
        """Queue a path from any thread."""
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.debug(f"Watcher not running, ignoring {path}")
            return
        try:
            loop.call_soon_threadsafe(self.submit, path)
        except RuntimeError:
            logger.debug(f"Event loop closed, ignoring {path}")

    def submit(self, path: Path) -> bool:
        """
        Queue a path for processing unless it is already waiting.

        Returns:
            bool: True if the path was queued.
        """
        if self._queue is None:
            return False
        key = str(path)
        if key in self._pending:
            logger.debug(f"Already queued: {path.name}")
            return False
        self._pending.add(key)
        self._queue.put_nowait(path)
        logger.debug(f"Queued screenshot candidate: {path.name}")
        return True

    async def _run(self) -> None:
        assert self._queue is not None
        while True:
            path = await self._queue.get()
            try:
                await self._handle(path)
            finally:
                self._pending.discard(str(path))
                self._queue.task_done()

    async def _handle(self, path: Path) -> None:
        try:
            await self.process_file(path)
        except NotFoundError as e:
            logger.warning(f"Skipping desktop screenshot: {e}")
            record_watcher_outcome("missing")
        except OSError as e:
            logger.error(f"Could not read desktop screenshot {path}: {e}")
            record_watcher_outcome("failed")
        except Exception as e:
            logger.error(f"Failed to process desktop screenshot {path}: {e}", exc_info=True)
            record_watcher_outcome("failed")

    async def process_file(self, path: Path) -> Optional[ProcessingResult]:
        """
        Settle, read and submit one detected file.

        Args:
            path: The detected file

        Returns:
            Optional[ProcessingResult]: The pipeline result, or None when the
                file was skipped (too large or unchanged since last processed).

        Raises:
            NotFoundError: If the file no longer exists after the settle delay.
            OSError: If the file cannot be read.
        """
        await asyncio.sleep(self.settle_delay)

        try:
            stat = path.stat()
        except FileNotFoundError as e:
            raise NotFoundError(f"File not found: {path}") from e

        if stat.st_size > MAX_IMAGE_BYTES:
            logger.warning(f"Screenshot too large ({stat.st_size / 1024 / 1024:.1f}MB), skipping {path.name}")
            record_watcher_outcome("oversized")
            return None

        key = str(path)
        signature = (stat.st_size, stat.st_mtime_ns)
        if self._processed.get(key) == signature:
            logger.debug(f"Unchanged since last processed, skipping {path.name}")
            return None

        try:
            image_bytes = await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as e:
            raise NotFoundError(f"File not found: {path}") from e

        metadata = ScreenshotMetadata(
            source=DESKTOP_SOURCE,
            app=DESKTOP_APP,
            filename=path.name,
            location=str(path.parent),
            auto_detected=True,
        )
        image_base64 = base64.b64encode(image_bytes).decode("ascii")
        result = await self.pipeline.process_submission(image_base64, metadata)

        if not result.success:
            logger.warning(f"Desktop screenshot {path.name} was not processed: {result.error}")
            record_watcher_outcome("failed")
            return result

        self._remember(key, signature)
        record_watcher_outcome("processed")
        logger.info(f"Desktop screenshot processed (ID: {result.analysis_id})")

        self._emit(
            ScreenshotEvent(
                id=result.analysis_id or "unknown",
                name=path.name,
                size=len(image_bytes),
                type=detect_media_type(image_bytes),
                timestamp=result.timestamp,
                analysis=result.summary or "",
                source=result.source or DESKTOP_SOURCE,
            )
        )
        return result

    def _remember(self, key: str, signature: Tuple[int, int]) -> None:
        self._processed[key] = signature
        self._processed.move_to_end(key)
        while len(self._processed) > MAX_REMEMBERED_FILES:
            self._processed.popitem(last=False)

    def _emit(self, event: ScreenshotEvent) -> None:
        try:
            self.event_sink.notify(event)
        except Exception as e:
            logger.warning(f"Failed to emit screenshot event {event.id}: {e}")

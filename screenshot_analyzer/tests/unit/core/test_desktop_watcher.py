"""
Unit tests for the desktop screenshot watcher.
"""

import asyncio
import base64
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from watchdog.events import DirCreatedEvent, FileCreatedEvent, FileModifiedEvent, FileMovedEvent

from screenshot_analyzer.core.desktop_watcher import (
    DesktopWatcher,
    ScreenshotFileHandler,
    is_screenshot_file,
    resolve_watch_directory,
)
from screenshot_analyzer.core.event_sink import BroadcastEventSink
from screenshot_analyzer.core.exceptions import NotFoundError
from screenshot_analyzer.core.image_validator import MAX_IMAGE_BYTES
from screenshot_analyzer.models.dtos import ProcessingResult
from screenshot_analyzer.tests.factories import make_png


@pytest.fixture
def pipeline():
    pipeline = MagicMock()
    pipeline.process_submission = AsyncMock(
        return_value=ProcessingResult(
            success=True,
            summary="A code editor with a Python file open.",
            analysis_id="0b5e1f3a-1111-2222-3333-444455556666",
            follow_up_available=True,
            source="desktop_auto",
        )
    )
    return pipeline


@pytest.fixture
def observer_factory():
    return MagicMock(return_value=MagicMock())


def write_screenshot(directory: Path, name: str = "Screenshot 2024-01-01 at 10.00.00.png", size: int = 4096) -> Path:
    path = directory / name
    path.write_bytes(make_png(size))
    return path


class TestScreenshotFilter:
    """Test cases for the screenshot name filter."""

    @pytest.mark.parametrize(
        "name",
        [
            "Screenshot 2024-01-01.png",
            "Screen Shot 2020-05-05 at 9.41.12 AM.png",
            "window-capture.JPG",
            "CleanShot 2024-03-03.jpeg",
        ],
    )
    def test_accepted(self, name):
        assert is_screenshot_file(Path("/Users/me/Desktop") / name)

    @pytest.mark.parametrize(
        "name",
        [
            ".hidden-screenshot.png",
            "photo.gif",
            "Screenshot 2024-01-01.gif",
            "holiday.png",
            "screenshot",
        ],
    )
    def test_rejected(self, name):
        assert not is_screenshot_file(Path("/Users/me/Desktop") / name)


class TestResolveWatchDirectory:
    """Test cases for resolve_watch_directory."""

    def test_configured_directory_wins(self, tmp_path):
        assert resolve_watch_directory(str(tmp_path)) == tmp_path

    def test_desktop_under_home(self, tmp_path, monkeypatch):
        (tmp_path / "Desktop").mkdir()
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        assert resolve_watch_directory() == tmp_path / "Desktop"

    def test_home_without_desktop(self, tmp_path, monkeypatch):
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))

        assert resolve_watch_directory() == tmp_path


class TestScreenshotFileHandler:
    """Test cases for the watchdog event handler."""

    def test_created_and_modified(self):
        candidates = []
        handler = ScreenshotFileHandler(candidates.append)

        handler.on_created(FileCreatedEvent("/tmp/desk/Screenshot 1.png"))
        handler.on_modified(FileModifiedEvent("/tmp/desk/notes.txt"))

        assert candidates == [Path("/tmp/desk/Screenshot 1.png")]

    def test_moved_uses_destination(self):
        candidates = []
        handler = ScreenshotFileHandler(candidates.append)

        handler.on_moved(FileMovedEvent("/tmp/desk/.Screenshot 1.png", "/tmp/desk/Screenshot 1.png"))

        assert candidates == [Path("/tmp/desk/Screenshot 1.png")]

    def test_directories_ignored(self):
        candidates = []
        handler = ScreenshotFileHandler(candidates.append)

        handler.on_created(DirCreatedEvent("/tmp/desk/screenshots.png"))

        assert candidates == []


class TestProcessFile:
    """Test cases for DesktopWatcher.process_file."""

    @pytest.mark.asyncio
    async def test_submits_with_auto_detected_metadata(self, tmp_path, pipeline):
        path = write_screenshot(tmp_path, size=4096)
        watcher = DesktopWatcher(pipeline, tmp_path, settle_delay=0)

        result = await watcher.process_file(path)

        assert result.success is True
        image_base64, metadata = pipeline.process_submission.await_args.args
        assert base64.b64decode(image_base64) == path.read_bytes()
        assert metadata.source == "desktop_auto"
        assert metadata.app == "macOS Screenshot"
        assert metadata.filename == path.name
        assert metadata.auto_detected is True

    @pytest.mark.asyncio
    async def test_emits_event_after_success(self, tmp_path, pipeline):
        path = write_screenshot(tmp_path, size=4096)
        sink = MagicMock()
        watcher = DesktopWatcher(pipeline, tmp_path, event_sink=sink, settle_delay=0)

        await watcher.process_file(path)

        sink.notify.assert_called_once()
        event = sink.notify.call_args.args[0]
        assert event.event == "screenshot-processed"
        assert event.id == "0b5e1f3a-1111-2222-3333-444455556666"
        assert event.name == path.name
        assert event.size == 4096
        assert event.type == "image/png"
        assert event.analysis == "A code editor with a Python file open."
        assert event.source == "desktop_auto"

    @pytest.mark.asyncio
    async def test_failing_sink_does_not_fail_processing(self, tmp_path, pipeline):
        path = write_screenshot(tmp_path)
        sink = MagicMock()
        sink.notify.side_effect = RuntimeError("UI gone")
        watcher = DesktopWatcher(pipeline, tmp_path, event_sink=sink, settle_delay=0)

        result = await watcher.process_file(path)

        assert result.success is True

    @pytest.mark.asyncio
    async def test_no_event_for_failed_submission(self, tmp_path, pipeline):
        pipeline.process_submission.return_value = ProcessingResult.failure("Image too small", source="desktop_auto")
        path = write_screenshot(tmp_path)
        sink = MagicMock()
        watcher = DesktopWatcher(pipeline, tmp_path, event_sink=sink, settle_delay=0)

        result = await watcher.process_file(path)

        assert result.success is False
        sink.notify.assert_not_called()

    @pytest.mark.asyncio
    async def test_deleted_during_settle(self, tmp_path, pipeline):
        path = write_screenshot(tmp_path)
        watcher = DesktopWatcher(pipeline, tmp_path, settle_delay=0.05)

        task = asyncio.create_task(watcher.process_file(path))
        await asyncio.sleep(0)
        path.unlink()

        with pytest.raises(NotFoundError):
            await task
        pipeline.process_submission.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_oversized_file_skipped(self, tmp_path, pipeline):
        path = tmp_path / "Screenshot huge.png"
        with open(path, "wb") as f:
            f.truncate(MAX_IMAGE_BYTES + 1)
        watcher = DesktopWatcher(pipeline, tmp_path, settle_delay=0)

        assert await watcher.process_file(path) is None
        pipeline.process_submission.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unchanged_file_not_reprocessed(self, tmp_path, pipeline):
        path = write_screenshot(tmp_path)
        watcher = DesktopWatcher(pipeline, tmp_path, settle_delay=0)

        await watcher.process_file(path)
        assert await watcher.process_file(path) is None

        assert pipeline.process_submission.await_count == 1


class TestWatcherLoop:
    """Test cases for the queue and worker task."""

    @pytest.mark.asyncio
    async def test_start_schedules_observer(self, tmp_path, pipeline, observer_factory):
        watcher = DesktopWatcher(pipeline, tmp_path, settle_delay=0, observer_factory=observer_factory)

        watcher.start()
        watcher.start()
        try:
            observer = observer_factory.return_value
            observer_factory.assert_called_once()
            observer.schedule.assert_called_once()
            assert observer.schedule.call_args.args[1] == str(tmp_path)
            assert observer.schedule.call_args.kwargs == {"recursive": False}
            observer.start.assert_called_once()
            assert watcher.running
        finally:
            await watcher.stop()

        assert not watcher.running
        observer.stop.assert_called_once()
        await watcher.stop()

    @pytest.mark.asyncio
    async def test_observer_failure_leaves_nothing_running(self, tmp_path, pipeline, observer_factory):
        observer_factory.return_value.start.side_effect = FileNotFoundError(2, "No such file or directory")
        watcher = DesktopWatcher(pipeline, tmp_path / "missing", settle_delay=0, observer_factory=observer_factory)
        tasks_before = asyncio.all_tasks()

        with pytest.raises(FileNotFoundError):
            watcher.start()

        assert not watcher.running
        assert asyncio.all_tasks() == tasks_before
        assert watcher.submit(tmp_path / "Screenshot.png") is False
        await watcher.stop()

    @pytest.mark.asyncio
    async def test_missing_file_does_not_stop_the_loop(self, tmp_path, pipeline, observer_factory):
        processed = asyncio.Event()
        success_result = pipeline.process_submission.return_value

        async def fake_process(image_base64, metadata):
            processed.set()
            return success_result

        pipeline.process_submission.side_effect = fake_process
        sink = BroadcastEventSink()
        events = sink.subscribe()
        watcher = DesktopWatcher(pipeline, tmp_path, event_sink=sink, settle_delay=0, observer_factory=observer_factory)

        watcher.start()
        try:
            assert watcher.submit(tmp_path / "Screenshot vanished.png") is True
            real = write_screenshot(tmp_path, name="Screenshot real.png")
            assert watcher.submit(real) is True

            await asyncio.wait_for(processed.wait(), timeout=5)
            event = await asyncio.wait_for(events.get(), timeout=5)
        finally:
            await watcher.stop()

        assert pipeline.process_submission.await_count == 1
        assert pipeline.process_submission.await_args.args[1].filename == "Screenshot real.png"
        assert event.name == "Screenshot real.png"

    @pytest.mark.asyncio
    async def test_duplicate_submissions_are_collapsed(self, tmp_path, pipeline, observer_factory):
        watcher = DesktopWatcher(pipeline, tmp_path, settle_delay=10, observer_factory=observer_factory)
        path = write_screenshot(tmp_path)

        watcher.start()
        try:
            assert watcher.submit(path) is True
            assert watcher.submit(path) is False
        finally:
            await watcher.stop()

    @pytest.mark.asyncio
    async def test_threadsafe_submission(self, tmp_path, pipeline, observer_factory):
        watcher = DesktopWatcher(pipeline, tmp_path, settle_delay=0, observer_factory=observer_factory)
        path = write_screenshot(tmp_path)

        watcher.start()
        try:
            await asyncio.to_thread(watcher.submit_threadsafe, path)
            for _ in range(100):
                if pipeline.process_submission.await_count:
                    break
                await asyncio.sleep(0.01)
        finally:
            await watcher.stop()

        pipeline.process_submission.assert_awaited_once()

    def test_submit_before_start_is_ignored(self, tmp_path, pipeline):
        watcher = DesktopWatcher(pipeline, tmp_path)

        assert watcher.submit(tmp_path / "Screenshot.png") is False
        watcher.submit_threadsafe(tmp_path / "Screenshot.png")

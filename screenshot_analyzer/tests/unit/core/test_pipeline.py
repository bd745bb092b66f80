"""
Unit tests for the screenshot pipeline.
"""

import asyncio
import base64
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from screenshot_analyzer.core.analysis_store import AnalysisStore
from screenshot_analyzer.core.exceptions import UpstreamError
from screenshot_analyzer.core.pipeline import ScreenshotPipeline
from screenshot_analyzer.integrations.telegram import TelegramNotifier
from screenshot_analyzer.models.dtos import ContentAnalysis, ScreenshotMetadata
from screenshot_analyzer.tests.factories import find_record, make_png


@pytest.fixture
def orchestrator():
    orchestrator = MagicMock()
    orchestrator.analyze = AsyncMock(
        return_value=("A news article about solar power.", ContentAnalysis(content_type="webpage"))
    )
    return orchestrator


@pytest.fixture
def store():
    return AnalysisStore()


class TestProcessSubmission:
    """Test cases for ScreenshotPipeline.process_submission."""

    @pytest.mark.asyncio
    async def test_success_stores_record(self, store, orchestrator, png_base64):
        pipeline = ScreenshotPipeline(store, orchestrator)

        result = await pipeline.process_submission(png_base64, ScreenshotMetadata(source="iOS", filename="a.png"))

        assert result.success is True
        assert result.summary == "A news article about solar power."
        assert result.follow_up_available is True
        assert result.source == "iOS"
        assert result.error is None

        record = find_record(store, result.analysis_id)
        assert record is not None
        assert record.brief_summary == result.summary
        assert record.content_analysis.content_type == "webpage"
        assert record.metadata.filename == "a.png"
        assert store.request_count == 1
        assert store.last_request == result.timestamp

    @pytest.mark.asyncio
    async def test_default_source(self, store, orchestrator, png_base64):
        pipeline = ScreenshotPipeline(store, orchestrator)

        result = await pipeline.process_submission(png_base64)

        assert result.source == "iOS"
        orchestrator.analyze.assert_awaited_once()
        assert orchestrator.analyze.await_args.args[1] == "iOS"

    @pytest.mark.asyncio
    async def test_validation_failure(self, store, orchestrator):
        pipeline = ScreenshotPipeline(store, orchestrator)
        tiny = base64.b64encode(make_png(100)).decode("ascii")

        result = await pipeline.process_submission(tiny, ScreenshotMetadata(source="desktop"))

        assert result.success is False
        assert result.error == "Image too small"
        assert result.source == "desktop"
        orchestrator.analyze.assert_not_awaited()
        assert store.count() == 0
        # Failed submissions still count as requests
        assert store.request_count == 1

    @pytest.mark.asyncio
    async def test_upstream_failure(self, store, orchestrator, png_base64, caplog):
        orchestrator.analyze.side_effect = UpstreamError("AI service overloaded", status_code=529)
        pipeline = ScreenshotPipeline(store, orchestrator)

        with caplog.at_level("ERROR", logger="screenshot_analyzer"):
            result = await pipeline.process_submission(png_base64)

        assert result.success is False
        assert result.error == "AI service overloaded"
        assert store.count() == 0
        assert "analysis failed (HTTP 529): AI service overloaded" in caplog.text

    @pytest.mark.asyncio
    async def test_unexpected_failure_is_contained(self, store, orchestrator, png_base64):
        orchestrator.analyze.side_effect = RuntimeError("boom")
        pipeline = ScreenshotPipeline(store, orchestrator)

        result = await pipeline.process_submission(png_base64)

        assert result.success is False
        assert result.error == "Unexpected processing error: boom"

    @pytest.mark.asyncio
    async def test_concurrent_submissions(self, orchestrator):
        store = AnalysisStore(max_records=1000)
        pipeline = ScreenshotPipeline(store, orchestrator)
        n = 150
        payloads = [
            base64.b64encode(make_png(2048 + i)).decode("ascii")
            for i in range(n)
        ]

        results = await asyncio.gather(*(pipeline.process_submission(p) for p in payloads))

        ids = [r.analysis_id for r in results]
        assert all(r.success for r in results)
        assert len(set(ids)) == n
        assert store.count() == n
        assert store.request_count == n


class TestNotifications:
    """Notification is a side channel of the pipeline."""

    @pytest.mark.asyncio
    async def test_notification_scheduled(self, store, orchestrator, png_base64):
        notifier = MagicMock()
        notifier.dispatch = AsyncMock(return_value=True)
        pipeline = ScreenshotPipeline(store, orchestrator, notifier=notifier)

        result = await pipeline.process_submission(png_base64)
        await pipeline.wait_for_notifications()

        notifier.dispatch.assert_awaited_once()
        assert notifier.dispatch.await_args.args[0].id == result.analysis_id
        assert pipeline.pending_notifications == 0

    @pytest.mark.asyncio
    async def test_unreachable_messaging_service_does_not_change_result(self, store, orchestrator, png_base64):
        notifier = TelegramNotifier(bot_token="123:abc", chat_id="42")
        notifier.client = AsyncMock()
        notifier.client.post.side_effect = httpx.ConnectError("Connection refused")
        pipeline = ScreenshotPipeline(store, orchestrator, notifier=notifier)

        result = await pipeline.process_submission(png_base64)
        await pipeline.wait_for_notifications()

        assert result.success is True
        notifier.client.post.assert_awaited_once()
        assert find_record(store, result.analysis_id) is not None

    @pytest.mark.asyncio
    async def test_crashing_notifier_is_logged(self, store, orchestrator, png_base64):
        notifier = MagicMock()
        notifier.dispatch = AsyncMock(side_effect=RuntimeError("unexpected"))
        pipeline = ScreenshotPipeline(store, orchestrator, notifier=notifier)

        result = await pipeline.process_submission(png_base64)
        await pipeline.wait_for_notifications()

        assert result.success is True
        assert pipeline.pending_notifications == 0

    @pytest.mark.asyncio
    async def test_no_notifier_configured(self, store, orchestrator, png_base64):
        pipeline = ScreenshotPipeline(store, orchestrator)

        await pipeline.process_submission(png_base64)

        assert pipeline.pending_notifications == 0

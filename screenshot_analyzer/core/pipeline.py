"""
Main Pipeline Orchestrator for the Screenshot Analyzer service.

Coordinates validation, AI analysis, storage and notification for a single
submission, whichever ingestion source it came from.
"""
import asyncio
import logging
import uuid
from typing import Optional, Set

from screenshot_analyzer.core.analysis_orchestrator import AnalysisOrchestrator
from screenshot_analyzer.core.analysis_store import AnalysisStore
from screenshot_analyzer.core.exceptions import UpstreamError, ValidationError
from screenshot_analyzer.core.image_validator import prepare_image
from screenshot_analyzer.integrations.telegram import TelegramNotifier
from screenshot_analyzer.models.dtos import (
    AnalysisRecord,
    ProcessingResult,
    ScreenshotMetadata,
    utc_now,
)
from screenshot_analyzer.monitoring.metrics import record_failure, record_submission

logger = logging.getLogger(__name__)

DEFAULT_SOURCE = "iOS"


class ScreenshotPipeline:
    """
    Orchestrates the screenshot enrichment pipeline.
    """

    def __init__(
        self,
        store: AnalysisStore,
        orchestrator: AnalysisOrchestrator,
        notifier: Optional[TelegramNotifier] = None,
    ):
        """
        Args:
            store: Destination for enriched records
            orchestrator: Runs the AI prompts
            notifier: Optional messaging dispatcher; notifications are skipped when None
        """
        self.store = store
        self.orchestrator = orchestrator
        self.notifier = notifier
        self._notification_tasks: Set[asyncio.Task] = set()

    async def process_submission(
        self, image_base64: str, metadata: Optional[ScreenshotMetadata] = None
    ) -> ProcessingResult:
        """
        Processes a single submission: validates, analyzes, stores and notifies.

        Never raises; every failure is reported in the returned result.

        Args:
            image_base64: Base64 image data, optionally a data URL
            metadata: Optional submission metadata

        Returns:
            ProcessingResult: Success with summary and record ID, or failure with an error message.
        """
        now = utc_now()
        metadata = metadata or ScreenshotMetadata()
        source = metadata.source or DEFAULT_SOURCE

        count = self.store.record_request(now)
        record_submission(source)
        logger.info(f"Processing screenshot #{count} (source: {source})")

        try:
            image = prepare_image(image_base64)
            summary, content_analysis = await self.orchestrator.analyze(image, source)
        except ValidationError as e:
            logger.warning(f"Screenshot #{count} rejected: {e}")
            record_failure("validation")
            return ProcessingResult.failure(str(e), source=source)
        except UpstreamError as e:
            status = f" (HTTP {e.status_code})" if e.status_code is not None else ""
            logger.error(f"Screenshot #{count} analysis failed{status}: {e}")
            record_failure("upstream")
            return ProcessingResult.failure(str(e), source=source)
        except Exception as e:
            logger.error(f"Unexpected error processing screenshot #{count}: {e}", exc_info=True)
            record_failure("unexpected")
            return ProcessingResult.failure(f"Unexpected processing error: {e}", source=source)

        record = AnalysisRecord(
            id=str(uuid.uuid4()),
            image=image,
            brief_summary=summary,
            content_analysis=content_analysis,
            metadata=metadata,
            timestamp=now,
            source=source,
        )
        self.store.insert(record)
        self._schedule_notification(record)

        logger.info(f"Screenshot processed successfully (ID: {record.id})")
        return ProcessingResult(
            success=True,
            summary=summary,
            analysis_id=record.id,
            timestamp=now,
            follow_up_available=True,
            source=source,
        )

    def _schedule_notification(self, record: AnalysisRecord) -> None:
        if self.notifier is None:
            return
        task = asyncio.create_task(self.notifier.dispatch(record))
        self._notification_tasks.add(task)
        task.add_done_callback(self._on_notification_done)

    def _on_notification_done(self, task: asyncio.Task) -> None:
        self._notification_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Notification task failed: {exc}")

    @property
    def pending_notifications(self) -> int:
        return len(self._notification_tasks)

    async def wait_for_notifications(self) -> None:
        """Wait until every scheduled notification has finished."""
        while self._notification_tasks:
            await asyncio.gather(*list(self._notification_tasks), return_exceptions=True)

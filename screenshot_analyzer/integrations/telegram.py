"""
Telegram notification dispatcher for processed screenshots.

Sends an HTML-formatted summary with inline action buttons through the
Telegram Bot API. Delivery is a side channel: failures are logged and
reported as False, never raised to the pipeline.
"""

import html
import logging
from typing import List, Optional

import httpx
from pydantic import BaseModel, ConfigDict

from screenshot_analyzer.core.analysis_orchestrator import is_desktop_source
from screenshot_analyzer.core.exceptions import DeliveryError
from screenshot_analyzer.models.dtos import AnalysisRecord
from screenshot_analyzer.monitoring.metrics import record_notification

logger = logging.getLogger(__name__)

RESEARCH_PAPERS_ACTION = "arxiv_research"
DEEP_RESEARCH_ACTION = "deep_research"
WEBPAGE_CONTENT_ACTION = "full_webpage"


class InlineKeyboardButton(BaseModel):
    text: str
    callback_data: str


class InlineKeyboardMarkup(BaseModel):
    inline_keyboard: List[List[InlineKeyboardButton]]


class SendMessagePayload(BaseModel):
    """
    Body of a ``sendMessage`` call.
    """
    chat_id: int
    text: str
    parse_mode: str = "HTML"
    reply_markup: Optional[InlineKeyboardMarkup] = None


class TelegramResponse(BaseModel):
    ok: bool = False
    description: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


def compose_message(record: AnalysisRecord) -> str:
    """
    Build the HTML message text: a source-tagged header followed by the summary.
    """
    if is_desktop_source(record.source):
        source_emoji, source_name = "🖥️", "Desktop Screenshot"
    else:
        source_emoji, source_name = "📱", "iPhone Screenshot"

    timestamp = record.timestamp.strftime("%H:%M:%S")
    header = f"<b>{source_emoji} {source_name}</b> <i>{timestamp}</i>"
    return f"{header}\n\n<b>AI Analysis:</b>\n\n{html.escape(record.brief_summary)}"


def build_keyboard(record: AnalysisRecord) -> InlineKeyboardMarkup:
    """
    Action buttons keyed by the record ID. The webpage action is offered only
    when a URL was detected.
    """
    buttons = [
        [InlineKeyboardButton(text="🔬 Research Papers", callback_data=f"{RESEARCH_PAPERS_ACTION}_{record.id}")],
        [InlineKeyboardButton(text="🧠 Deep Research", callback_data=f"{DEEP_RESEARCH_ACTION}_{record.id}")],
    ]
    if record.content_analysis.webpage_url:
        buttons.append(
            [InlineKeyboardButton(text="🌐 Webpage Content", callback_data=f"{WEBPAGE_CONTENT_ACTION}_{record.id}")]
        )
    return InlineKeyboardMarkup(inline_keyboard=buttons)


class TelegramNotifier:
    """
    Async dispatcher for Telegram notifications.
    """

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        api_base: str = "https://api.telegram.org",
        timeout: float = 30.0,
    ):
        """
        Initialize the notifier.

        Args:
            bot_token: Telegram bot token
            chat_id: Recipient chat identifier (numeric)
            api_base: Bot API base URL
            timeout: Request timeout in seconds
        """
        self.chat_id = chat_id
        self.send_url = f"{api_base.rstrip('/')}/bot{bot_token}/sendMessage"
        self.client = httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    async def close(self) -> None:
        await self.client.aclose()

    def build_payload(self, record: AnalysisRecord) -> SendMessagePayload:
        try:
            chat_id = int(self.chat_id)
        except (TypeError, ValueError) as e:
            raise DeliveryError(f"Invalid Telegram chat id: {self.chat_id!r}") from e

        return SendMessagePayload(
            chat_id=chat_id,
            text=compose_message(record),
            reply_markup=build_keyboard(record),
        )

    async def send(self, record: AnalysisRecord) -> None:
        """
        Deliver the notification for a record.

        Raises:
            DeliveryError: On invalid chat id, transport failure, or a rejected message.
        """
        payload = self.build_payload(record)

        try:
            response = await self.client.post(self.send_url, json=payload.model_dump(exclude_none=True))
        except httpx.HTTPError as e:
            raise DeliveryError(f"Telegram request failed: {e}") from e

        if response.status_code != 200:
            raise DeliveryError(f"Telegram API error: {response.status_code}")

        try:
            body = TelegramResponse.model_validate(response.json())
        except ValueError as e:
            raise DeliveryError(f"Unreadable Telegram response: {e}") from e

        if not body.ok:
            raise DeliveryError(f"Telegram rejected message: {body.description or 'unknown error'}")

    async def dispatch(self, record: AnalysisRecord) -> bool:
        """
        Best-effort delivery.

        Returns:
            bool: True if the message was delivered, False otherwise.
        """
        try:
            await self.send(record)
        except DeliveryError as e:
            logger.warning(f"Failed to send Telegram notification for {record.id}: {e}")
            record_notification("failed")
            return False
        except Exception as e:
            logger.error(f"Unexpected error sending Telegram notification for {record.id}: {e}", exc_info=True)
            record_notification("failed")
            return False

        logger.info(f"Telegram notification sent for analysis {record.id}")
        record_notification("sent")
        return True

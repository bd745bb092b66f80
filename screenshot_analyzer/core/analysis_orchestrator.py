"""
Analysis orchestrator for the Screenshot Analyzer service.

Runs the two vision prompts for a validated image: a mandatory brief summary
and a best-effort content classification whose labeled-line answer is parsed
into a ContentAnalysis.
"""
import logging
from typing import Tuple

from screenshot_analyzer.core.exceptions import UpstreamError
from screenshot_analyzer.integrations.anthropic_client import AnthropicVisionClient
from screenshot_analyzer.models.dtos import ContentAnalysis, ProcessedImage

logger = logging.getLogger(__name__)

DESKTOP_SUMMARY_PROMPT = (
    "Analyze this desktop screenshot briefly. What is shown and what might be the user's intent?"
)
MOBILE_SUMMARY_PROMPT = (
    "Analyze this iPhone screenshot briefly. What is shown and what might be the user's intent?"
)

CLASSIFICATION_PROMPT = """Analyze this screenshot and determine:

1. Content type (webpage, app, document, social media, etc.)
2. If webpage: extract any visible URLs or domains
3. If research-related: identify key topics
4. User context: what might they want to do with this?

Respond with:
CONTENT_TYPE: [webpage/app/document/social/game/other]
WEBPAGE_URL: [URL if visible, or "none"]
RESEARCH_TOPICS: [comma-separated topics if research-related]
USER_INTENT: [likely user intent]
FOLLOW_UP: [suggested follow-up actions]"""

CONTENT_TYPE_LABEL = "CONTENT_TYPE:"
WEBPAGE_URL_LABEL = "WEBPAGE_URL:"
RESEARCH_TOPICS_LABEL = "RESEARCH_TOPICS:"
USER_INTENT_LABEL = "USER_INTENT:"
FOLLOW_UP_LABEL = "FOLLOW_UP:"

ABSENT_URL_VALUES = {"", "none", "unknown"}


def is_desktop_source(source: str) -> bool:
    return source.lower().startswith("desktop")


def summary_prompt_for(source: str) -> str:
    return DESKTOP_SUMMARY_PROMPT if is_desktop_source(source) else MOBILE_SUMMARY_PROMPT


def parse_content_analysis(analysis_text: str) -> ContentAnalysis:
    """
    Extract the labeled lines of a classification answer.

    Labels are matched case-sensitively at the start of a trimmed line. Lines
    without a recognized label are ignored and missing labels keep their
    defaults, so this never fails on arbitrary model output.

    Args:
        analysis_text: Raw model answer.

    Returns:
        ContentAnalysis: Parsed fields, defaulted where absent.
    """
    result = ContentAnalysis()
    if not analysis_text:
        return result

    for raw_line in analysis_text.splitlines():
        line = raw_line.strip()

        if line.startswith(CONTENT_TYPE_LABEL):
            value = line[len(CONTENT_TYPE_LABEL):].strip()
            result.content_type = value or "unknown"
        elif line.startswith(WEBPAGE_URL_LABEL):
            value = line[len(WEBPAGE_URL_LABEL):].strip()
            result.webpage_url = None if value.lower() in ABSENT_URL_VALUES else value
        elif line.startswith(RESEARCH_TOPICS_LABEL):
            value = line[len(RESEARCH_TOPICS_LABEL):]
            result.research_topics = [topic.strip() for topic in value.split(",") if topic.strip()]
        elif line.startswith(USER_INTENT_LABEL):
            result.user_intent = line[len(USER_INTENT_LABEL):].strip()
        elif line.startswith(FOLLOW_UP_LABEL):
            result.follow_up = line[len(FOLLOW_UP_LABEL):].strip()

    return result


class AnalysisOrchestrator:
    """
    Issues the summary and classification prompts for one image.
    """

    def __init__(
        self,
        client: AnthropicVisionClient,
        summary_max_tokens: int = 200,
        classification_max_tokens: int = 300,
    ):
        self.client = client
        self.summary_max_tokens = summary_max_tokens
        self.classification_max_tokens = classification_max_tokens

    async def summarize(self, image: ProcessedImage, source: str) -> str:
        """
        Get the brief summary. Failures propagate as UpstreamError.
        """
        prompt = summary_prompt_for(source)
        summary = await self.client.describe(prompt, image, self.summary_max_tokens, call="summary")
        return summary.strip()

    async def classify(self, image: ProcessedImage) -> ContentAnalysis:
        """
        Get the content classification, degrading to defaults on upstream failure.
        """
        try:
            analysis_text = await self.client.describe(
                CLASSIFICATION_PROMPT, image, self.classification_max_tokens, call="classification"
            )
        except UpstreamError as e:
            logger.warning(f"Content classification unavailable, using defaults: {e}")
            return ContentAnalysis()

        return parse_content_analysis(analysis_text)

    async def analyze(self, image: ProcessedImage, source: str) -> Tuple[str, ContentAnalysis]:
        """
        Run both prompts in sequence.

        Args:
            image: Validated image
            source: Submission source tag, selects the desktop or mobile framing

        Returns:
            Tuple[str, ContentAnalysis]: Summary text and parsed classification.

        Raises:
            UpstreamError: If the summary call fails.
        """
        summary = await self.summarize(image, source)
        content_analysis = await self.classify(image)
        logger.debug(f"Classification: type={content_analysis.content_type}, url={content_analysis.webpage_url}")
        return summary, content_analysis

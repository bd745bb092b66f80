"""
Async client for the Anthropic Messages API.

Sends a single user turn made of a text prompt and an inlined base64 image and
returns the text of the first content block of the answer.
"""

import logging
from typing import List, Literal, Optional, Union

import httpx
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as SchemaValidationError

from screenshot_analyzer.core.exceptions import UpstreamError
from screenshot_analyzer.models.dtos import ProcessedImage
from screenshot_analyzer.monitoring.metrics import UPSTREAM_REQUEST_DURATION

logger = logging.getLogger(__name__)


class ImageSource(BaseModel):
    type: Literal["base64"] = "base64"
    media_type: str
    data: str


class TextBlock(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ImageBlock(BaseModel):
    type: Literal["image"] = "image"
    source: ImageSource


class UserMessage(BaseModel):
    role: Literal["user"] = "user"
    content: List[Union[TextBlock, ImageBlock]]


class VisionRequest(BaseModel):
    """
    Outbound request body for the Messages API.
    """
    model: str
    max_tokens: int
    messages: List[UserMessage]

    @classmethod
    def for_image(cls, model: str, max_tokens: int, prompt: str, image: ProcessedImage) -> "VisionRequest":
        return cls(
            model=model,
            max_tokens=max_tokens,
            messages=[
                UserMessage(
                    content=[
                        TextBlock(text=prompt),
                        ImageBlock(
                            source=ImageSource(
                                media_type=image.media_type,
                                data=image.base64_data,
                            )
                        ),
                    ]
                )
            ],
        )


class ResponseBlock(BaseModel):
    type: str = "text"
    text: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class VisionResponse(BaseModel):
    """
    The part of a Messages API response the pipeline reads.
    """
    content: List[ResponseBlock] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")

    def first_text(self) -> Optional[str]:
        if not self.content:
            return None
        return self.content[0].text


class AnthropicVisionClient:
    """
    Async client for vision prompts against the Anthropic Messages API.
    """

    def __init__(
        self,
        api_key: str,
        api_url: str = "https://api.anthropic.com/v1/messages",
        api_version: str = "2023-06-01",
        model: str = "claude-3-5-sonnet-20241022",
        timeout: float = 60.0,
    ):
        """
        Initialize the vision client.

        Args:
            api_key: Anthropic API key
            api_url: Messages endpoint URL
            api_version: Value for the ``anthropic-version`` header
            model: Model identifier sent with every request
            timeout: Request timeout in seconds
        """
        self.api_url = api_url
        self.model = model

        headers = {
            "x-api-key": api_key,
            "anthropic-version": api_version,
            "Content-Type": "application/json",
        }
        self.client = httpx.AsyncClient(
            headers=headers,
            timeout=httpx.Timeout(timeout)
        )

    async def close(self) -> None:
        await self.client.aclose()

    async def describe(self, prompt: str, image: ProcessedImage, max_tokens: int, call: str = "vision") -> str:
        """
        Ask the model about an image.

        Args:
            prompt: Text prompt sent before the image
            image: Validated image to inline
            max_tokens: Upper bound on the answer length
            call: Label used for request timing metrics

        Returns:
            str: The text of the first content block.

        Raises:
            UpstreamError: On transport failure, non-success status, or a
                response without the expected text field.
        """
        payload = VisionRequest.for_image(self.model, max_tokens, prompt, image)

        with UPSTREAM_REQUEST_DURATION.labels(call=call).time():
            try:
                response = await self.client.post(self.api_url, json=payload.model_dump())
            except httpx.HTTPError as e:
                raise UpstreamError(f"AI service request failed: {e}") from e

        if not 200 <= response.status_code < 300:
            logger.error(f"AI service error ({call}): {response.status_code} - {response.text[:200]}")
            raise UpstreamError(
                f"AI service returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            body = VisionResponse.model_validate(response.json())
        except (ValueError, SchemaValidationError) as e:
            raise UpstreamError(f"Failed to parse AI service response: {e}") from e

        text = body.first_text()
        if text is None:
            raise UpstreamError("Invalid AI service response format: missing content text")
        return text

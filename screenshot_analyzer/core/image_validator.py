"""
Image validation for incoming screenshot payloads.

Strips an optional data-URL prefix, decodes standard base64, enforces size
bounds and sniffs the media type from magic bytes.
"""
import base64
import binascii
import logging

from screenshot_analyzer.core.exceptions import ValidationError
from screenshot_analyzer.models.dtos import ProcessedImage

logger = logging.getLogger(__name__)

MIN_IMAGE_BYTES = 1024
MAX_IMAGE_BYTES = 15 * 1024 * 1024

PNG_MAGIC = b"\x89PNG"
JPEG_MAGIC = b"\xff\xd8\xff"

MEDIA_TYPE_PNG = "image/png"
MEDIA_TYPE_JPEG = "image/jpeg"


def strip_data_url(payload: str) -> str:
    """
    Return the base64 part of ``payload``, removing a ``data:...;base64,`` prefix.

    Raises:
        ValidationError: If a data URL has no comma-separated payload.
    """
    payload = payload.strip()
    if not payload.startswith("data:"):
        return payload

    _, sep, data = payload.partition(",")
    if not sep:
        raise ValidationError("Invalid data URL format")
    return data.strip()


def detect_media_type(image_bytes: bytes) -> str:
    """Classify image bytes as PNG or JPEG. Unknown signatures fall back to PNG."""
    if image_bytes.startswith(PNG_MAGIC):
        return MEDIA_TYPE_PNG
    if image_bytes.startswith(JPEG_MAGIC):
        return MEDIA_TYPE_JPEG
    return MEDIA_TYPE_PNG


def prepare_image(payload: str) -> ProcessedImage:
    """
    Validate a raw submission payload.

    Args:
        payload: Base64 image data, optionally prefixed with a data-URL scheme.

    Returns:
        ProcessedImage: The cleaned base64 text, its media type and decoded size.

    Raises:
        ValidationError: If the payload is not valid base64 or the decoded
            image is outside the accepted size range.
    """
    clean_base64 = strip_data_url(payload)

    try:
        image_bytes = base64.b64decode(clean_base64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError(f"Invalid base64: {e}") from e

    size = len(image_bytes)
    if size > MAX_IMAGE_BYTES:
        raise ValidationError("Image too large (max 15MB)")
    if size < MIN_IMAGE_BYTES:
        raise ValidationError("Image too small")

    media_type = detect_media_type(image_bytes)
    logger.debug(f"Validated image: {size} bytes, {media_type}")

    return ProcessedImage(
        base64_data=clean_base64,
        media_type=media_type,
        size_bytes=size,
    )

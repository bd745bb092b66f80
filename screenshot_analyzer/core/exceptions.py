"""
Error taxonomy for the screenshot ingestion pipeline.

Validation and upstream failures terminate a single submission; delivery and
file-system failures are logged by the component that hits them and never
reach the submitting caller.
"""


class ScreenshotPipelineError(Exception):
    """Base class for all pipeline errors."""


class ValidationError(ScreenshotPipelineError):
    """The submitted image payload is malformed, too small or too large."""


class UpstreamError(ScreenshotPipelineError):
    """The AI vision service could not produce a usable answer."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(ScreenshotPipelineError):
    """A watched file vanished before it could be read."""


class DeliveryError(ScreenshotPipelineError):
    """A notification could not be delivered to the messaging service."""


class ConfigurationError(ScreenshotPipelineError):
    """Required configuration is missing or invalid."""


class ServiceNotRunningError(ScreenshotPipelineError):
    """An operation needs a started service."""

    def __init__(self, message: str = "Server is not running"):
        super().__init__(message)

from typing import Optional, Union
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from screenshot_analyzer.core.exceptions import ConfigurationError
from screenshot_analyzer.models.dtos import AppConfig

# Define the root directory of the screenshot_analyzer package
SERVICE_ROOT_DIR = Path(__file__).parent.parent.resolve()
# Path to the repository root (two levels up from this settings.py)
PROJECT_ROOT_DIR = SERVICE_ROOT_DIR.parent


class Settings(BaseSettings):
    # Application settings
    APP_NAME: str = "Screenshot AI Server"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    API_HOST: str = "0.0.0.0"
    SERVER_PORT: int = 5001

    # CORS
    CORS_ORIGINS: Union[str, list[str]] = "*"

    # AI vision service
    ANTHROPIC_API_KEY: Optional[str] = None
    ANTHROPIC_API_URL: str = "https://api.anthropic.com/v1/messages"
    ANTHROPIC_API_VERSION: str = "2023-06-01"
    ANTHROPIC_MODEL: str = "claude-3-5-sonnet-20241022"
    SUMMARY_MAX_TOKENS: int = 200
    CLASSIFICATION_MAX_TOKENS: int = 300
    UPSTREAM_TIMEOUT_SECONDS: float = 60.0

    # Messaging service
    TELEGRAM_BOT_TOKEN: Optional[str] = None
    TELEGRAM_CHAT_ID: Optional[str] = None
    TELEGRAM_API_BASE: str = "https://api.telegram.org"

    # Desktop screenshot detection
    ENABLE_DESKTOP_DETECTION: bool = False
    WATCH_DIRECTORY: Optional[str] = None
    SETTLE_DELAY_SECONDS: float = 1.0

    # In-memory retention
    MAX_RETAINED_RECORDS: int = 500
    RECENT_LIMIT: int = 50

    # Logging configuration path (can be overridden by env var)
    LOGGING_CONFIG_PATH: str = str(SERVICE_ROOT_DIR / "config" / "logging_config.yaml")

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT_DIR / ".env"),  # Load variables from project root .env
        env_file_encoding='utf-8',
        extra='ignore'
    )

    def model_post_init(self, __context) -> None:
        """Parse comma-separated strings into lists after model initialization."""
        if isinstance(self.CORS_ORIGINS, str):
            self.CORS_ORIGINS = [origin.strip() for origin in self.CORS_ORIGINS.split(',') if origin.strip()]

    def to_app_config(self) -> AppConfig:
        """
        Build the validated configuration struct consumed by the pipeline.

        Returns:
            AppConfig: Validated configuration.

        Raises:
            ConfigurationError: If the AI service credential is missing.
        """
        if not self.ANTHROPIC_API_KEY or not self.ANTHROPIC_API_KEY.strip():
            raise ConfigurationError("Anthropic API key is required (set ANTHROPIC_API_KEY)")

        return AppConfig(
            anthropic_api_key=self.ANTHROPIC_API_KEY.strip(),
            telegram_bot_token=self.TELEGRAM_BOT_TOKEN or None,
            telegram_chat_id=self.TELEGRAM_CHAT_ID or None,
            enable_desktop_detection=self.ENABLE_DESKTOP_DETECTION,
            server_port=self.SERVER_PORT,
            api_url=self.ANTHROPIC_API_URL,
            api_version=self.ANTHROPIC_API_VERSION,
            model=self.ANTHROPIC_MODEL,
            summary_max_tokens=self.SUMMARY_MAX_TOKENS,
            classification_max_tokens=self.CLASSIFICATION_MAX_TOKENS,
            upstream_timeout_seconds=self.UPSTREAM_TIMEOUT_SECONDS,
            telegram_api_base=self.TELEGRAM_API_BASE,
            watch_directory=self.WATCH_DIRECTORY,
            settle_delay_seconds=self.SETTLE_DELAY_SECONDS,
            max_retained_records=self.MAX_RETAINED_RECORDS,
            recent_limit=self.RECENT_LIMIT,
        )


# Instantiate settings
settings = Settings()

import base64
from datetime import timedelta

import pytest

from screenshot_analyzer.models.dtos import AppConfig
from screenshot_analyzer.tests.factories import BASE_TIME, make_png, make_record


@pytest.fixture
def png_bytes() -> bytes:
    return make_png()


@pytest.fixture
def png_base64(png_bytes) -> str:
    return base64.b64encode(png_bytes).decode("ascii")


@pytest.fixture
def app_config() -> AppConfig:
    return AppConfig(
        anthropic_api_key="sk-ant-test-key",
        telegram_bot_token="123456:telegram-token",
        telegram_chat_id="987654321",
        server_port=5001,
        max_retained_records=500,
        recent_limit=50,
    )


@pytest.fixture
def records_over_time():
    """Factory for records one second apart, oldest first."""
    def _build(count: int):
        return [
            make_record(record_id=f"record-{i:04d}", timestamp=BASE_TIME + timedelta(seconds=i))
            for i in range(count)
        ]
    return _build

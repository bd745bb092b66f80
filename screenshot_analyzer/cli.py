"""Command-line interface for the Screenshot Analyzer service."""

import asyncio
import base64
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import typer
import uvicorn
from typing_extensions import Annotated

from screenshot_analyzer.api.main import create_app
from screenshot_analyzer.config.settings import settings
from screenshot_analyzer.core.event_sink import BroadcastEventSink
from screenshot_analyzer.core.exceptions import ConfigurationError
from screenshot_analyzer.models.dtos import AppConfig, ProcessingResult, ScreenshotMetadata
from screenshot_analyzer.service import ScreenshotService
from screenshot_analyzer.utils.logging_utils import setup_logging

app = typer.Typer(help="Screenshot Analyzer - AI summaries for phone and desktop screenshots")

logger = logging.getLogger(__name__)

SECRET_FIELDS = {"anthropic_api_key", "telegram_bot_token"}


def load_config(**overrides: Any) -> AppConfig:
    """
    Build the validated configuration, applying non-None overrides.

    Raises:
        typer.Exit: If required configuration is missing.
    """
    try:
        config = settings.to_app_config()
    except ConfigurationError as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(code=1)

    updates = {key: value for key, value in overrides.items() if value is not None}
    return config.model_copy(update=updates) if updates else config


def mask_secret(value: Optional[str]) -> str:
    if not value:
        return "<not set>"
    if len(value) <= 8:
        return "****"
    return f"{value[:4]}...{value[-4:]}"


def masked_config(config: AppConfig) -> Dict[str, Any]:
    data = config.model_dump()
    for field in SECRET_FIELDS:
        data[field] = mask_secret(data.get(field))
    data["telegram_configured"] = config.telegram_configured
    return data


@app.command()
def serve(
    host: Annotated[Optional[str], typer.Option("--host", help="Interface to bind (overrides API_HOST)")] = None,
    port: Annotated[Optional[int], typer.Option("--port", "-p", help="Port to listen on (overrides SERVER_PORT)")] = None,
    desktop_detection: Annotated[
        Optional[bool],
        typer.Option("--desktop-detection/--no-desktop-detection", help="Watch the desktop for new screenshots"),
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
) -> None:
    """
    Run the HTTP server.
    """
    setup_logging(level=logging.DEBUG if verbose else None)

    config = load_config(server_port=port, enable_desktop_detection=desktop_detection)
    service = ScreenshotService(config, event_sink=BroadcastEventSink(), server_name=settings.APP_NAME)

    bind_host = host or settings.API_HOST
    logger.info(f"Starting {settings.APP_NAME} on {bind_host}:{config.server_port}")
    uvicorn.run(create_app(service), host=bind_host, port=config.server_port, log_config=None)


async def process_file(service: ScreenshotService, path: Path, source: str) -> ProcessingResult:
    """
    Submit one image file through a started service and stop it afterwards.
    """
    image_bytes = await asyncio.to_thread(path.read_bytes)
    metadata = ScreenshotMetadata(source=source, app="CLI", filename=path.name, location=str(path.parent))

    await service.start()
    try:
        return await service.process(base64.b64encode(image_bytes).decode("ascii"), metadata)
    finally:
        await service.stop()


@app.command()
def process(
    path: Annotated[Path, typer.Argument(exists=True, dir_okay=False, readable=True, help="Image file to analyze")],
    source: Annotated[str, typer.Option("--source", "-s", help="Source tag, e.g. iOS or desktop")] = "desktop_cli",
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
) -> None:
    """
    Analyze a single image file and print the result as JSON.
    """
    setup_logging(level=logging.DEBUG if verbose else None)

    config = load_config(enable_desktop_detection=False)
    service = ScreenshotService(config, server_name=settings.APP_NAME)

    result = asyncio.run(process_file(service, path, source))
    typer.echo(result.model_dump_json(indent=2))
    if not result.success:
        raise typer.Exit(code=1)


@app.command("config")
def show_config() -> None:
    """
    Print the effective configuration with secrets masked.
    """
    config = load_config()
    for key, value in masked_config(config).items():
        typer.echo(f"{key}: {value}")


if __name__ == "__main__":
    app()

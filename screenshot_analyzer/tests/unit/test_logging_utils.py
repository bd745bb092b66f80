"""
Unit tests for logging setup.
"""

import logging

import pytest

from screenshot_analyzer.config.settings import SERVICE_ROOT_DIR
from screenshot_analyzer.utils.logging_utils import setup_logging


def test_packaged_config_loads(mocker):
    dict_config = mocker.patch("logging.config.dictConfig")

    setup_logging(SERVICE_ROOT_DIR / "config" / "logging_config.yaml")

    config = dict_config.call_args.args[0]
    assert config["loggers"]["screenshot_analyzer"]["level"] == "INFO"
    assert config["loggers"]["watchdog"]["level"] == "WARNING"


def test_missing_file_falls_back(mocker, tmp_path):
    basic_config = mocker.patch("logging.basicConfig")

    setup_logging(tmp_path / "missing.yaml")

    basic_config.assert_any_call(level=logging.INFO)


def test_invalid_file_falls_back(mocker, tmp_path):
    broken = tmp_path / "broken.yaml"
    broken.write_text("version: [unclosed")
    basic_config = mocker.patch("logging.basicConfig")

    setup_logging(broken)

    basic_config.assert_any_call(level=logging.INFO)


def test_level_override(mocker):
    mocker.patch("logging.config.dictConfig")
    package_logger = logging.getLogger("screenshot_analyzer")
    previous = package_logger.level

    try:
        setup_logging(SERVICE_ROOT_DIR / "config" / "logging_config.yaml", level=logging.DEBUG)
        assert package_logger.level == logging.DEBUG
    finally:
        package_logger.setLevel(previous)


@pytest.fixture
def restore_loggers():
    names = ["", "screenshot_analyzer", "watchdog", "httpx"]
    saved = {}
    for name in names:
        logger = logging.getLogger(name)
        saved[name] = (logger.level, list(logger.handlers), logger.propagate, logger.disabled)
    yield
    for name, (level, handlers, propagate, disabled) in saved.items():
        logger = logging.getLogger(name)
        logger.setLevel(level)
        logger.handlers[:] = handlers
        logger.propagate = propagate
        logger.disabled = disabled


def test_debug_level_reaches_console(restore_loggers, capsys):
    setup_logging(SERVICE_ROOT_DIR / "config" / "logging_config.yaml", level=logging.DEBUG)

    package_logger = logging.getLogger("screenshot_analyzer.cli")
    package_logger.debug("verbose detail line")
    package_logger.info("regular info line")

    out = capsys.readouterr().out
    assert "verbose detail line" in out
    assert "regular info line" in out


def test_info_level_hides_debug(restore_loggers, capsys):
    setup_logging(SERVICE_ROOT_DIR / "config" / "logging_config.yaml")

    package_logger = logging.getLogger("screenshot_analyzer.cli")
    package_logger.debug("verbose detail line")

    assert "verbose detail line" not in capsys.readouterr().out

"""
Unit tests for logging setup.
"""

import logging

import pytest

from src.core.logging_config import setup_logging


@pytest.fixture
def logger_name(request):
    name = f"sentinel.tests.{request.node.name}"
    yield name
    logger = logging.getLogger(name)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


def test_setup_logging_adds_console_and_file(logger_name, tmp_path):
    logger = setup_logging(logger_name, logs_dir=tmp_path / "logs", level="DEBUG")

    kinds = sorted(type(h).__name__ for h in logger.handlers)
    assert kinds == ["RotatingFileHandler", "StreamHandler"]
    assert logger.level == logging.DEBUG

    logger.info("engine started")
    for handler in logger.handlers:
        handler.flush()
    log_file = tmp_path / "logs" / f"{logger_name}.log"
    assert "engine started" in log_file.read_text()


def test_setup_logging_is_idempotent(logger_name, tmp_path):
    first = setup_logging(logger_name, logs_dir=tmp_path)
    second = setup_logging(logger_name, logs_dir=tmp_path)

    assert first is second
    assert len(second.handlers) == 2

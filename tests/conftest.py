"""Pytest fixtures for isolator tests."""

import logging
from collections.abc import Generator
from pathlib import Path

import pytest
import structlog


@pytest.fixture(autouse=True)
def reset_logging_state() -> Generator[None, None, None]:
    """Reset CLI logging options, structlog and root handlers around each test."""
    from isolator.cli import helpers

    helpers.reset_logging_options()
    structlog.reset_defaults()

    root_logger = logging.getLogger()
    original_handlers = root_logger.handlers[:]
    original_level = root_logger.level
    for handler in original_handlers:
        root_logger.removeHandler(handler)

    yield

    helpers.reset_logging_options()
    structlog.reset_defaults()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()
    for handler in original_handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(original_level)


@pytest.fixture
def sock_dir(tmp_path: Path) -> Path:
    """Directory for socket files (kept short: AF_UNIX paths max ~108 bytes)."""
    path = tmp_path / "s"
    path.mkdir()
    return path

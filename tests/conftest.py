"""Pytest configuration and fixtures."""

import logging
from pathlib import Path

import pytest

from domconform.accessors import StaticDomAccessor

EXAMPLES_DIR = Path(__file__).parent.parent / "examples"


@pytest.fixture(autouse=True)
def cleanup_loggers():
    """Clean up domconform loggers after each test to prevent name collisions."""
    yield

    # Remove all domconform loggers from registry
    loggers_to_remove = [
        name
        for name in logging.Logger.manager.loggerDict.keys()
        if name.startswith("domconform")
    ]

    for name in loggers_to_remove:
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            handler.close()
        logger.handlers.clear()
        del logging.Logger.manager.loggerDict[name]


@pytest.fixture
def dom():
    """Build a static accessor from an HTML snippet."""

    def _make(html: str) -> StaticDomAccessor:
        return StaticDomAccessor(html)

    return _make


@pytest.fixture
def examples_dir() -> Path:
    return EXAMPLES_DIR


@pytest.fixture
def landing_page() -> Path:
    return EXAMPLES_DIR / "fixtures" / "landing-page.html"


@pytest.fixture
def write_page(tmp_path):
    """Write an HTML page under tmp_path and return its path."""

    def _write(html: str, name: str = "index.html") -> Path:
        path = tmp_path / name
        path.write_text(html)
        return path

    return _write

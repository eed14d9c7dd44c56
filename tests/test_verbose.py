"""Tests for verbose logging."""

from pathlib import Path
import logging

import pytest

from domconform.verbose import close_logger, setup_logger


def test_verbose_logger_creates_debug_log(tmp_path: Path):
    """Logger should always create debug.log file."""
    debug_file = tmp_path / "debug.log"
    logger = setup_logger(debug_file=debug_file, verbose=False)

    assert not logger.disabled
    assert logger.level == logging.DEBUG
    assert not logger.propagate
    assert debug_file.exists()


def test_verbose_logger_writes_to_file(tmp_path: Path):
    debug_file = tmp_path / "debug.log"
    logger = setup_logger(debug_file=debug_file, verbose=False)

    logger.debug("test message")

    content = debug_file.read_text()
    assert "test message" in content
    assert content.startswith("[")  # timestamp


def test_verbose_mode_adds_stderr_handler(tmp_path: Path):
    logger = setup_logger(debug_file=tmp_path / "debug.log", verbose=True)

    handler_types = [type(h).__name__ for h in logger.handlers]
    assert sorted(handler_types) == ["FileHandler", "StreamHandler"]


def test_non_verbose_mode_only_file_handler(tmp_path: Path):
    logger = setup_logger(debug_file=tmp_path / "debug.log", verbose=False)

    assert [type(h).__name__ for h in logger.handlers] == ["FileHandler"]


def test_logger_creates_parent_directories(tmp_path: Path):
    debug_file = tmp_path / "nested" / "dir" / "debug.log"
    setup_logger(debug_file=debug_file, verbose=False)

    assert debug_file.exists()


def test_unique_logger_names_are_isolated(tmp_path: Path):
    """Parallel jobs log to their own files only."""
    log1 = tmp_path / "job1.log"
    log2 = tmp_path / "job2.log"
    logger1 = setup_logger(log1, logger_name="domconform_document_static")
    logger2 = setup_logger(log2, logger_name="domconform_document_chromium")

    logger1.debug("from static")
    logger2.debug("from chromium")

    assert "from static" in log1.read_text()
    assert "from chromium" not in log1.read_text()
    assert "from chromium" in log2.read_text()
    assert "from static" not in log2.read_text()


def test_same_logger_name_raises_error(tmp_path: Path):
    setup_logger(tmp_path / "a.log", logger_name="domconform_shared")

    with pytest.raises(RuntimeError, match="already exists"):
        setup_logger(tmp_path / "b.log", logger_name="domconform_shared")


def test_close_logger_allows_reuse(tmp_path: Path):
    logger = setup_logger(tmp_path / "a.log", logger_name="domconform_reused")
    close_logger(logger)

    assert logger.handlers == []
    again = setup_logger(tmp_path / "b.log", logger_name="domconform_reused")
    again.debug("second life")
    assert "second life" in (tmp_path / "b.log").read_text()

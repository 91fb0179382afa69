"""Tests for docsite.logging."""

from __future__ import annotations

import logging
from pathlib import Path

from docsite.logging import configure_logging, get_logger


def test_log_file_records_debug_output_on_a_quiet_console(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "docsite.log"

    logger = configure_logging(verbose=False, log_file=log_file)
    get_logger("releases").debug("Release %s download url %s", "2.1", "https://host/2.1.zip")
    for handler in logger.handlers:
        handler.flush()

    stream_handler, file_handler = logger.handlers
    assert stream_handler.level == logging.INFO
    assert file_handler.level == logging.DEBUG
    content = log_file.read_text(encoding="utf-8")
    assert "[docsite] DEBUG docsite.releases: Release 2.1 download url https://host/2.1.zip" in content


def test_configure_logging_replaces_previous_handlers() -> None:
    configure_logging(verbose=True)
    logger = configure_logging(verbose=False)

    assert len(logger.handlers) == 1
    assert logger.level == logging.INFO
    assert logger.propagate is False

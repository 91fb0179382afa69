from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator

import pytest

from tests._fixtures.site_builder import SiteSourceBuilder


@pytest.fixture
def site(tmp_path: Path) -> SiteSourceBuilder:
    """Provide a reusable site source builder rooted at the pytest tmp_path."""
    return SiteSourceBuilder(tmp_path)


@pytest.fixture(autouse=True)
def _reset_docsite_logger() -> Iterator[None]:
    """Undo configure_logging() so caplog keeps seeing docsite records."""
    yield
    logger = logging.getLogger("docsite")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)

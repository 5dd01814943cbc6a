"""Shared fixtures for the safe_extract test suite."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import pytest

from SafeExtract.extractor import Extractor
from SafeExtract.io import OSFilesystem
from SafeExtract.logging_config import LOGGER_NAME
from SafeExtract.settings import ExtractionSettings, invalidate_default_settings_cache


@pytest.fixture(autouse=True)
def _isolate_defaults():
    """Re-read environment overrides for every test."""

    invalidate_default_settings_cache()
    yield
    invalidate_default_settings_cache()


@pytest.fixture(autouse=True)
def _reset_package_logger():
    """Drop handlers installed by ``setup_logging`` (e.g. via the CLI)."""

    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        if getattr(handler, "_safeextract_managed", False):
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def zero_umask():
    """Clear the process umask so permission bits land exactly as requested."""

    if os.name != "posix":
        pytest.skip("umask semantics are POSIX only")
    previous = os.umask(0)
    try:
        yield
    finally:
        os.umask(previous)


@pytest.fixture
def extractor() -> Extractor:
    return Extractor(OSFilesystem(), ExtractionSettings())


@pytest.fixture
def destination(tmp_path: Path) -> Path:
    """Extraction root that does not exist yet."""

    return tmp_path / "test"

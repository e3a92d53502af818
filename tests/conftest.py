from __future__ import annotations

from pathlib import Path
from typing import Generator

import pytest

import sys


ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from refbuild.config import Settings, get_settings
from refbuild.core.filtered_log import FilteredLog


@pytest.fixture
def settings() -> Generator[Settings, None, None]:
    """Return a fresh Settings instance that ignores any local .env file."""

    yield Settings(_env_file=None)


@pytest.fixture
def trail() -> FilteredLog:
    return FilteredLog("EMPTY")


@pytest.fixture
def fresh_settings_cache() -> Generator[None, None, None]:
    """Drop cached settings so environment changes made by a test take effect."""

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()

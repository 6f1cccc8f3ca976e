"""Shared pytest fixtures for annostore tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from annostore.config import get_settings

if TYPE_CHECKING:
    from collections.abc import Generator


@pytest.fixture(autouse=True)
def _reset_settings_cache() -> Generator[None]:
    """Each test sees settings built from its own environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()

"""CIC test configuration — shared fixtures for unit and integration tests."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------

FIXTURES_DIR = Path(__file__).parent / "fixtures"
PAGES_DIR = FIXTURES_DIR / "pages"


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    """Clear the settings LRU cache between tests."""
    from cic.settings.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def settings(monkeypatch):
    """Fresh ``Settings`` built from the default TOML only."""
    monkeypatch.delenv("CIC_ENV", raising=False)
    from cic.settings.config import Settings

    return Settings()


# ---------------------------------------------------------------------------
# Mock page
# ---------------------------------------------------------------------------


@pytest.fixture()
def mock_page():
    """Return a ``MagicMock`` shaped like a Playwright ``Page``.

    ``page.url`` starts at the target and ``page.context.expect_page``
    behaves like a context manager that times out (no new tab).
    """
    from playwright.sync_api import TimeoutError as PlaywrightTimeout

    page = MagicMock(name="page")
    page.url = "https://blog.example.com/post"

    cm = MagicMock(name="expect_page")
    cm.__enter__.return_value = MagicMock(name="page_info")
    cm.__exit__.side_effect = PlaywrightTimeout("Timeout 4000ms exceeded while waiting for event \"page\"")
    page.context.expect_page.return_value = cm
    page.wait_for_url.side_effect = PlaywrightTimeout("Timeout 5000ms exceeded")
    return page

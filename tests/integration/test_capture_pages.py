"""Integration tests: real Chromium against the fixture pages.

The pages are served from ``tests/fixtures/pages`` by a local HTTP server;
``ip.json`` on the same server stands in for the IP providers so the
tests need no internet access.  Skipped when no Chromium build is
installed (``playwright install chromium``).
"""

from __future__ import annotations

import functools
import threading
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import pytest

from cic.engine.runner import run_capture
from cic.engine.scan import scan_page
from cic.exceptions import RunFailedError
from cic.models.capture import CaptureMethod, RankingTier
from cic.models.states import RunState

PAGES_DIR = Path(__file__).resolve().parent.parent / "fixtures" / "pages"

pytestmark = [pytest.mark.integration, pytest.mark.slow]


class _QuietHandler(SimpleHTTPRequestHandler):
    def log_message(self, format, *args):
        pass


@pytest.fixture(scope="module")
def chromium_available():
    from playwright.sync_api import Error as PlaywrightError, sync_playwright

    try:
        with sync_playwright() as pw:
            pw.chromium.launch(headless=True).close()
    except PlaywrightError as exc:
        pytest.skip(f"Chromium not available: {exc}")


@pytest.fixture(scope="module")
def site():
    """Base URL of a throwaway server for the fixture pages."""
    handler = functools.partial(_QuietHandler, directory=str(PAGES_DIR))
    server = ThreadingHTTPServer(("127.0.0.1", 0), handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_address[1]}"
    server.shutdown()
    server.server_close()


@pytest.fixture()
def fast_settings(settings, site, chromium_available):
    settings.identity.providers = [f"{site}/ip.json"]
    settings.identity.timeout_ms = 3000
    settings.browser.navigation_timeout_ms = 10000
    settings.interaction.new_tab_timeout_ms = 1500
    settings.interaction.navigation_wait_ms = 1500
    settings.interaction.max_attempts = 2
    return settings


class TestCapturePages:
    def test_target_blank_link_opens_new_tab(self, site, fast_settings):
        result = run_capture(f"{site}/new_tab.html", settings=fast_settings)

        first = result.records[0]
        assert first.method is CaptureMethod.NEW_TAB
        assert first.url == f"{site}/landing.html?from=tab"
        assert first.tier is RankingTier.TARGET_BLANK
        assert first.ip == "127.0.0.1"
        assert all(r.ip == "127.0.0.1" for r in result.records)

    def test_button_navigates_same_tab(self, site, fast_settings):
        result = run_capture(f"{site}/navigation.html", settings=fast_settings)

        assert result.records[0].method is CaptureMethod.NAVIGATION
        assert result.records[0].url == f"{site}/landing.html?from=nav"
        assert result.records[0].label == "Get Deal"

    def test_window_open_popup(self, site, fast_settings):
        result = run_capture(f"{site}/popup.html", settings=fast_settings)

        assert result.records[0].method is CaptureMethod.NEW_TAB
        assert result.records[0].url == f"{site}/landing.html?from=popup"

    def test_prevented_click_uses_href(self, site, fast_settings):
        result = run_capture(f"{site}/direct_href.html", settings=fast_settings)

        assert result.records[0].method is CaptureMethod.DIRECT_HREF
        assert result.records[0].url == f"{site}/landing.html?from=href"

    def test_page_without_candidates(self, site, fast_settings):
        result = run_capture(f"{site}/no_cta.html", settings=fast_settings)

        assert result.state is RunState.DONE
        assert [r.method for r in result.records] == [CaptureMethod.ORIGINAL_PAGE]
        assert result.records[0].url == f"{site}/no_cta.html"

    def test_unreachable_target(self, fast_settings, chromium_available):
        with pytest.raises(RunFailedError) as exc_info:
            run_capture("http://127.0.0.1:9/closed.html", settings=fast_settings)

        assert [r.method for r in exc_info.value.result.records] == [CaptureMethod.ERROR_FALLBACK]


class TestScanPages:
    def test_scan_reports_region_and_ranking(self, site, fast_settings):
        report = scan_page(f"{site}/new_tab.html", settings=fast_settings)

        assert report.ok, report.error
        assert report.content_selector == "article"
        assert report.ip == "127.0.0.1"
        assert [c.tier for c in report.candidates] == [RankingTier.TARGET_BLANK, RankingTier.FALLBACK_ANCHOR]

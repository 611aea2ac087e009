"""Interaction & capture protocol.

Clicks one candidate and classifies what happened:

1. a new page opened in the context        → ``new_tab``
2. the current page's URL changed           → ``navigation``
3. nothing, but the element carried an href → ``direct_href`` (weak signal)

The click races a bounded wait for a new page (``context.expect_page``);
whichever resolves first decides between outcome 1 and the rest.
Destinations equal to the original target, or not http(s), are not captures.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING
from urllib.parse import urldefrag, urlparse

from playwright.sync_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeout

from cic.exceptions import InteractionError
from cic.models.capture import CaptureMethod

if TYPE_CHECKING:
    from playwright.sync_api import Locator, Page

    from cic.models.capture import CandidateElement, CaptureRecord, RunContext
    from cic.settings.config import InteractionSettings

logger = logging.getLogger(__name__)

_BLANK_URLS = {"", "about:blank"}


@dataclass(frozen=True)
class InteractionOutcome:
    """Destination reached by clicking a candidate, and how."""

    url: str
    method: CaptureMethod


def interact(
    page: Page,
    candidate: CandidateElement,
    original_url: str,
    settings: InteractionSettings,
) -> InteractionOutcome | None:
    """Click *candidate* on *page* and classify the outcome.

    Returns:
        The outcome, or ``None`` when the click led nowhere new.

    Raises:
        InteractionError: If the element could not be clicked.
    """
    url_before = page.url
    locator = page.locator(candidate.selector).first

    try:
        locator.scroll_into_view_if_needed(timeout=settings.click_timeout_ms)
    except PlaywrightError as exc:
        logger.debug("scroll_into_view failed for %s: %s", candidate.describe(), exc)

    new_page = _click_racing_new_page(page, locator, settings)

    if new_page is not None:
        url = _read_new_page_url(new_page, settings)
        if is_destination(url, original_url):
            return InteractionOutcome(url=url, method=CaptureMethod.NEW_TAB)
        logger.info("New tab opened but led nowhere usable (%s)", url or "blank")
    else:
        url = _wait_for_url_change(page, url_before, settings.navigation_wait_ms)
        if url is not None and is_destination(url, original_url):
            return InteractionOutcome(url=url, method=CaptureMethod.NAVIGATION)

    if candidate.href and is_destination(candidate.href, original_url):
        logger.info("Click had no effect, using literal href of %s", candidate.describe())
        return InteractionOutcome(url=candidate.href, method=CaptureMethod.DIRECT_HREF)

    return None


def capture(
    page: Page,
    candidate: CandidateElement,
    run: RunContext,
    settings: InteractionSettings,
) -> CaptureRecord | None:
    """Interact with *candidate* and mint a record for a successful outcome."""
    outcome = interact(page, candidate, run.target_url, settings)
    if outcome is None:
        return None
    return run.record(outcome.url, outcome.method, label=candidate.text, tier=candidate.tier)


def is_destination(url: str | None, original_url: str) -> bool:
    """True for an http(s) URL that is not the original target."""
    if not url or url in _BLANK_URLS:
        return False
    if urlparse(url).scheme.lower() not in ("http", "https"):
        return False
    return normalize_url(url) != normalize_url(original_url)


def normalize_url(url: str) -> str:
    """Compare-form of a URL: no fragment, no trailing slash, lowercase scheme/host."""
    bare, _ = urldefrag(url.strip())
    parsed = urlparse(bare)
    path = parsed.path.rstrip("/")
    normalized = parsed._replace(scheme=parsed.scheme.lower(), netloc=parsed.netloc.lower(), path=path)
    return normalized.geturl()


def _click_racing_new_page(page: Page, locator: Locator, settings: InteractionSettings) -> Page | None:
    """Click while waiting for a new page; return it, or ``None`` if none came."""
    try:
        with page.context.expect_page(timeout=settings.new_tab_timeout_ms) as page_info:
            try:
                locator.click(timeout=settings.click_timeout_ms)
            except PlaywrightError as exc:
                raise InteractionError(f"click failed: {_first_line(exc)}") from exc
        return page_info.value
    except PlaywrightTimeout:
        return None


def _read_new_page_url(new_page: Page, settings: InteractionSettings) -> str:
    """Let the new page finish its initial load, read its URL, close it."""
    try:
        try:
            new_page.wait_for_load_state("domcontentloaded", timeout=settings.new_tab_load_timeout_ms)
        except PlaywrightTimeout:
            logger.warning("New tab did not finish loading within %dms", settings.new_tab_load_timeout_ms)
        if new_page.url in _BLANK_URLS:
            # Popups opened via window.open() start blank and redirect.
            try:
                new_page.wait_for_url(
                    lambda u: u not in _BLANK_URLS, timeout=settings.new_tab_load_timeout_ms, wait_until="commit"
                )
            except PlaywrightTimeout:
                pass
        return new_page.url
    finally:
        try:
            new_page.close()
        except PlaywrightError as exc:
            logger.warning("Ignoring failure while closing new tab: %s", exc)


def _wait_for_url_change(page: Page, url_before: str, timeout_ms: int) -> str | None:
    """Wait up to *timeout_ms* for the page URL to move away from *url_before*."""
    try:
        page.wait_for_url(lambda u: u != url_before, timeout=timeout_ms, wait_until="commit")
    except PlaywrightTimeout:
        return None
    return page.url


def _first_line(exc: BaseException) -> str:
    text = str(exc).strip()
    return text.splitlines()[0] if text else type(exc).__name__

"""Content region locator.

Restricts candidate search to the page's primary content so the engine
does not click navigation bars, cookie banners or footer links.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from playwright.sync_api import Locator, Page

logger = logging.getLogger(__name__)

DEFAULT_REGION_SELECTORS: tuple[str, ...] = (
    "main",
    "article",
    '[role="main"]',
    ".entry-content",
    ".post-content",
    ".article-content",
    ".blog-content",
    ".main-content",
    "#content",
    ".content",
)

_FALLBACK_SELECTOR = "body"

# Non-empty means the node has element children or visible-ish text.
_HAS_CONTENT_JS = "el => el.children.length > 0 || (el.textContent || '').trim().length > 0"


@dataclass
class ContentRegion:
    """Handle on the DOM subtree holding the page's main content."""

    locator: Locator
    selector: str
    degraded: bool = False


def locate_content_region(page: Page, selectors: list[str] | tuple[str, ...] | None = None) -> ContentRegion:
    """Return the first non-empty content region, or the whole body.

    Args:
        page: Loaded Playwright page.
        selectors: Ordered structural selectors; defaults to ``DEFAULT_REGION_SELECTORS``.
    """
    for selector in selectors or DEFAULT_REGION_SELECTORS:
        locator = page.locator(selector).first
        try:
            if locator.count() == 0:
                continue
            if not locator.evaluate(_HAS_CONTENT_JS):
                logger.debug("Region selector %s matched an empty element", selector)
                continue
        except Exception as exc:
            logger.debug("Region selector %s could not be evaluated: %s", selector, exc)
            continue
        logger.info("Content region: %s", selector)
        return ContentRegion(locator=locator, selector=selector)

    logger.warning("No content region matched, falling back to whole document body")
    return ContentRegion(locator=page.locator(_FALLBACK_SELECTOR).first, selector=_FALLBACK_SELECTOR, degraded=True)

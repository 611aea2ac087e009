"""Browser session lifecycle: one Chromium process and one isolated context per run.

Usage::

    from cic.browser.session import browser_session

    with browser_session(proxy, get_settings().browser) as session:
        session.page.goto(url)

The context manager closes everything on every exit path.  Failures while
closing are logged and swallowed so they never mask the run's own outcome.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from playwright.sync_api import Error as PlaywrightError, sync_playwright

from cic.exceptions import SessionLaunchError

if TYPE_CHECKING:
    from playwright.sync_api import Browser, BrowserContext, Page, Playwright

    from cic.models.capture import ProxyBinding
    from cic.settings.config import BrowserSettings

logger = logging.getLogger(__name__)

_CHROMIUM_ARGS: list[str] = [
    "--disable-dev-shm-usage",
    "--disable-blink-features=AutomationControlled",
]


@dataclass
class BrowserProfile:
    """Playwright launch + context arguments for a single session."""

    launch_args: dict[str, Any] = field(default_factory=dict)
    context_args: dict[str, Any] = field(default_factory=dict)
    proxy_server: str = ""


@dataclass
class BrowserSession:
    """Everything one run owns in the browser. Never shared between runs."""

    playwright: Playwright
    browser: Browser
    context: BrowserContext
    page: Page
    profile: BrowserProfile


def build_browser_profile(proxy: ProxyBinding | None, settings: BrowserSettings) -> BrowserProfile:
    """Build launch/context arguments for the fixed desktop profile.

    Args:
        proxy: Egress proxy, or ``None`` for a direct connection.
        settings: Browser section of the settings.

    Returns:
        A ``BrowserProfile`` ready for Playwright.
    """
    profile = BrowserProfile()

    args = list(_CHROMIUM_ARGS)
    if not settings.sandbox:
        args += ["--no-sandbox", "--disable-setuid-sandbox"]
    profile.launch_args["headless"] = settings.headless
    profile.launch_args["args"] = args

    if proxy is not None:
        profile.launch_args["proxy"] = proxy.to_playwright()
        profile.proxy_server = proxy.server
        logger.debug("Using proxy: %s", proxy.redacted())

    ctx = profile.context_args
    ctx["user_agent"] = settings.user_agent
    ctx["viewport"] = {"width": settings.viewport_width, "height": settings.viewport_height}
    ctx["locale"] = settings.locale
    ctx["ignore_https_errors"] = settings.ignore_https_errors

    return profile


def open_session(proxy: ProxyBinding | None, settings: BrowserSettings) -> BrowserSession:
    """Launch Chromium and open one context + page configured for *proxy*.

    Raises:
        SessionLaunchError: If the driver or the browser cannot be started
            (missing executable, broken install, ...).  Anything already
            started is torn down before raising.
    """
    profile = build_browser_profile(proxy, settings)

    try:
        pw = sync_playwright().start()
    except Exception as exc:
        raise SessionLaunchError(f"Playwright driver failed to start: {exc}") from exc

    browser = None
    try:
        browser = pw.chromium.launch(**profile.launch_args)
        context = browser.new_context(**profile.context_args)
        page = context.new_page()
    except PlaywrightError as exc:
        if browser is not None:
            _quietly("browser.close", browser.close)
        _quietly("playwright.stop", pw.stop)
        raise SessionLaunchError(f"Browser launch failed: {_first_line(exc)}") from exc

    logger.debug(
        "Browser session opened (headless=%s, proxy=%s)",
        settings.headless,
        profile.proxy_server or "direct",
    )
    return BrowserSession(playwright=pw, browser=browser, context=context, page=page, profile=profile)


def close_session(session: BrowserSession) -> None:
    """Release context, browser and driver.  Never raises."""
    _quietly("context.close", session.context.close)
    _quietly("browser.close", session.browser.close)
    _quietly("playwright.stop", session.playwright.stop)
    logger.debug("Browser session closed")


@contextmanager
def browser_session(proxy: ProxyBinding | None, settings: BrowserSettings) -> Iterator[BrowserSession]:
    """Scoped acquisition of a ``BrowserSession``."""
    session = open_session(proxy, settings)
    try:
        yield session
    finally:
        close_session(session)


def _quietly(what: str, fn) -> None:
    try:
        fn()
    except Exception as exc:
        logger.warning("Ignoring failure during %s: %s", what, exc)


def _first_line(exc: BaseException) -> str:
    text = str(exc).strip()
    return text.splitlines()[0] if text else type(exc).__name__

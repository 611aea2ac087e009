"""Bounded page loading with wait-strategy fallback.

Pages that keep a socket or analytics beacon open never settle, so a strict
wait strategy that times out is retried with the next weaker one.  Errors
that no weaker strategy can fix (DNS, refused connection, TLS, proxy
rejection) surface immediately as ``NavigationError``.
"""

from __future__ import annotations

import logging
from typing import Literal

from playwright.sync_api import Error as PlaywrightError, Page, Response, TimeoutError as PlaywrightTimeout

from cic.exceptions import NavigationError

logger = logging.getLogger(__name__)

# Chromium net errors no weaker wait strategy can recover from.
_NON_RETRYABLE_ERRORS: tuple[str, ...] = (
    "ERR_NAME_NOT_RESOLVED",
    "ERR_CONNECTION_REFUSED",
    "ERR_CONNECTION_RESET",
    "ERR_CONNECTION_CLOSED",
    "ERR_ADDRESS_UNREACHABLE",
    "ERR_INTERNET_DISCONNECTED",
    "ERR_SSL_PROTOCOL_ERROR",
    "ERR_CERT_AUTHORITY_INVALID",
    "ERR_CERT_COMMON_NAME_INVALID",
    "ERR_PROXY_CONNECTION_FAILED",
    "ERR_TUNNEL_CONNECTION_FAILED",
    "ERR_PROXY_AUTH_UNSUPPORTED",
    "ERR_INVALID_AUTH_CREDENTIALS",
    "ERR_NO_SUPPORTED_PROXIES",
)

# HTTP statuses on the main document meaning the page itself was never reached.
_PROXY_REJECTION_STATUSES = {407}

WaitUntil = Literal["commit", "domcontentloaded", "load", "networkidle"]

_FALLBACK_STRATEGY: list[WaitUntil] = ["networkidle", "load", "domcontentloaded", "commit"]


def resilient_goto(
    page: Page,
    url: str,
    *,
    timeout_ms: int = 30_000,
    wait_until: WaitUntil = "domcontentloaded",
) -> Response | None:
    """Navigate to *url*, falling back to weaker wait strategies on timeout.

    Args:
        page: Page owned by the run.
        url: Absolute URL to load.
        timeout_ms: Budget for each strategy, in milliseconds.
        wait_until: Strategy to try first; weaker ones follow.

    Returns:
        The main-frame ``Response``, or ``None`` if none was produced.

    Raises:
        NavigationError: On a non-retryable network error, on a proxy
            rejection status, or when every strategy timed out.
    """
    for strategy in _build_fallback_chain(wait_until):
        try:
            logger.debug("Loading %s with wait_until=%s (%dms)", url, strategy, timeout_ms)
            response = page.goto(url, wait_until=strategy, timeout=timeout_ms)
        except PlaywrightError as exc:
            error_msg = str(exc)
            for pattern in _NON_RETRYABLE_ERRORS:
                if pattern in error_msg:
                    reason = pattern.replace("ERR_", "").replace("_", " ").lower()
                    logger.warning("Target %s unreachable: %s", url, pattern)
                    raise NavigationError(url, reason) from exc
            if isinstance(exc, PlaywrightTimeout):
                logger.warning(
                    "Navigation to %s timed out with wait_until=%s, retrying with weaker strategy",
                    url,
                    strategy,
                )
                continue
            raise NavigationError(url, error_msg.splitlines()[0] if error_msg else "unknown error") from exc

        if response is not None and response.status in _PROXY_REJECTION_STATUSES:
            raise NavigationError(url, f"proxy rejected the request (HTTP {response.status})")
        return response

    raise NavigationError(url, "timeout")


def restore_target(page: Page, url: str, *, timeout_ms: int = 20_000, wait_until: WaitUntil = "domcontentloaded") -> None:
    """Bring *page* back to the original target before the next attempt.

    Always navigates, even if the URL looks unchanged, so DOM mutations made
    by a previous click are discarded.
    """
    resilient_goto(page, url, timeout_ms=timeout_ms, wait_until=wait_until)


def _build_fallback_chain(preferred: WaitUntil) -> list[WaitUntil]:
    """Return the fallback chain starting from *preferred*."""
    if preferred in _FALLBACK_STRATEGY:
        idx = _FALLBACK_STRATEGY.index(preferred)
        return _FALLBACK_STRATEGY[idx:]
    return [preferred, *_FALLBACK_STRATEGY]

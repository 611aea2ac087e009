"""Network identity resolution: the egress IP as seen by the outside world.

Requests go through ``page.request``, which shares the browser context's
network stack, so a configured proxy is exercised exactly like the
navigation that follows.  Providers are tried in order; each has its own
timeout and any failure falls through to the next one.
"""

from __future__ import annotations

import ipaddress
import json
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from playwright.sync_api import Page

logger = logging.getLogger(__name__)

DEFAULT_PROVIDERS: tuple[str, ...] = (
    "https://api.ipify.org?format=json",
    "https://ifconfig.me/ip",
    "https://icanhazip.com",
    "https://httpbin.org/ip",
)

# JSON keys used by common providers (ipify: "ip", httpbin: "origin").
_JSON_KEYS: tuple[str, ...] = ("ip", "origin", "query", "address")


def resolve_identity(
    page: Page,
    providers: list[str] | tuple[str, ...] | None = None,
    *,
    timeout_ms: int = 8_000,
) -> str | None:
    """Return the externally visible IP for *page*'s context, or ``None``.

    Args:
        page: Playwright page whose context (and proxy) to use.
        providers: Ordered provider URLs; defaults to ``DEFAULT_PROVIDERS``.
        timeout_ms: Per-provider timeout in milliseconds.
    """
    for provider in providers or DEFAULT_PROVIDERS:
        try:
            response = page.request.get(provider, timeout=timeout_ms)
        except Exception as exc:
            logger.warning("IP provider %s failed: %s", provider, _first_line(exc))
            continue

        try:
            if not response.ok:
                logger.warning("IP provider %s returned HTTP %s", provider, response.status)
                continue
            ip = parse_ip(response.text())
        except Exception as exc:
            logger.warning("IP provider %s returned an unreadable body: %s", provider, _first_line(exc))
            continue
        finally:
            _dispose(response)

        if ip:
            logger.info("IP detected via %s: %s", provider, ip)
            return ip
        logger.warning("IP provider %s returned no usable address", provider)

    logger.warning("IP detection failed with every provider")
    return None


def parse_ip(body: str) -> str | None:
    """Extract and validate an IP address from a provider response body.

    Accepts JSON (``{"ip": "1.2.3.4"}``, httpbin's ``{"origin": "1.2.3.4, 5.6.7.8"}``)
    or plain text.  Returns ``None`` when nothing valid is found.
    """
    text = (body or "").strip()
    if not text:
        return None

    candidate = text
    if text.startswith("{"):
        try:
            data = json.loads(text)
        except ValueError:
            return None
        if not isinstance(data, dict):
            return None
        candidate = ""
        for key in _JSON_KEYS:
            if isinstance(data.get(key), str):
                candidate = data[key]
                break

    # httpbin lists the whole forwarding chain; the first hop is the client.
    candidate = candidate.split(",")[0].strip()
    try:
        return str(ipaddress.ip_address(candidate))
    except ValueError:
        return None


def _dispose(response) -> None:
    try:
        response.dispose()
    except Exception:
        logger.debug("Could not dispose API response", exc_info=True)


def _first_line(exc: BaseException) -> str:
    text = str(exc).strip()
    return text.splitlines()[0] if text else type(exc).__name__

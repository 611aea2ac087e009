"""Debug scan: everything a run does up to ranking, without clicking.

Useful for tuning region selectors and the CTA vocabulary against a page.
Failures are reported in the report instead of raised.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from playwright.sync_api import Error as PlaywrightError

from cic.browser.identity import resolve_identity
from cic.browser.navigation import resilient_goto
from cic.browser.ranking import rank_candidates
from cic.browser.region import locate_content_region
from cic.browser.session import browser_session
from cic.engine.runner import validate_target_url
from cic.exceptions import CICError
from cic.models.capture import CandidateElement, ProxyBinding
from cic.settings.config import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass
class ScanReport:
    """What the engine would see on a page."""

    url: str
    ok: bool = False
    ip: str | None = None
    final_url: str = ""
    content_selector: str | None = None
    degraded: bool = False
    candidates: list[CandidateElement] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "url": self.url,
            "final_url": self.final_url,
            "ip": self.ip,
            "content_selector": self.content_selector,
            "degraded": self.degraded,
            "candidates": [
                {
                    "ordinal": c.ordinal,
                    "tier": c.tier.label,
                    "kind": c.kind.value,
                    "tag": c.tag,
                    "text": c.text,
                    "href": c.href or None,
                }
                for c in self.candidates
            ],
            "error": self.error,
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, default=str)


def scan_page(target_url: str, proxy: ProxyBinding | None = None, settings: Settings | None = None) -> ScanReport:
    """Open a session, load *target_url* and report region + ranked candidates."""
    settings = settings or get_settings()
    report = ScanReport(url=target_url)

    try:
        url = validate_target_url(target_url)
        with browser_session(proxy, settings.browser) as session:
            page = session.page
            report.ip = resolve_identity(page, settings.identity.providers, timeout_ms=settings.identity.timeout_ms)
            resilient_goto(
                page,
                url,
                timeout_ms=settings.browser.navigation_timeout_ms,
                wait_until=settings.browser.wait_until,
            )
            report.final_url = page.url

            region = locate_content_region(page, settings.ranking.region_selectors)
            report.content_selector = region.selector
            report.degraded = region.degraded
            report.candidates = rank_candidates(
                region,
                page.url,
                max_candidates=settings.ranking.max_candidates,
                cta_phrases=settings.ranking.cta_phrases,
                button_class_patterns=settings.ranking.button_class_patterns,
            )
    except (CICError, PlaywrightError) as exc:
        logger.warning("Scan of %s failed: %s", target_url, exc)
        report.error = str(exc)
        return report

    report.ok = True
    return report

"""Candidate ranking engine.

One in-page script enumerates interactive elements inside the content
region, tags each with a DOM-order ordinal (``data-cic-candidate``) and
reports what it saw.  Ranking itself is pure Python over those raw dicts
(``rank_raw_elements``), so the policy is testable without a browser.

Tiers, best first:

    1. TARGET_BLANK     visible anchor with a usable href opening a new tab
    2. CTA_TEXT         link/button whose text matches the CTA vocabulary
    3. INTERACTIVE_CSS  <button>, role=button, submit inputs, btn/cta classes
    4. FALLBACK_ANCHOR  any other visible anchor with a usable href

Each element lands in its best tier only.  Ties break on DOM order.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import replace
from typing import TYPE_CHECKING, Any
from urllib.parse import urljoin

from cic.models.capture import CANDIDATE_ATTRIBUTE, CandidateElement, CandidateKind, RankingTier

if TYPE_CHECKING:
    from cic.browser.region import ContentRegion

logger = logging.getLogger(__name__)

DEFAULT_CTA_PHRASES: tuple[str, ...] = (
    "read more",
    "continue reading",
    "continue",
    "learn more",
    "view more",
    "see more",
    "get deal",
    "get offer",
    "shop now",
    "buy now",
    "order now",
    "get started",
    "sign up",
    "download",
    "visit site",
    "click here",
    "go to",
)

DEFAULT_BUTTON_CLASS_PATTERNS: tuple[str, ...] = (r"\bbtn\b", r"\bbtn-", r"\bbutton\b", r"\bcta\b", r"\bcta-")

DEFAULT_MAX_CANDIDATES = 6

# Everything the scan script looks at.  Generic elements are only kept when
# their classes look like buttons (see tier 3).
INTERACTIVE_SELECTOR = ", ".join(
    [
        "a[href]",
        "button",
        '[role="button"]',
        'input[type="submit"]',
        'input[type="button"]',
        '[class*="btn"]',
        '[class*="button"]',
        '[class*="cta"]',
    ]
)

_SCAN_JS = """
(root, args) => {
    const attr = args.attribute;
    document.querySelectorAll('[' + attr + ']').forEach(n => n.removeAttribute(attr));

    function isVisible(el) {
        const rect = el.getBoundingClientRect();
        const style = window.getComputedStyle(el);
        return (
            rect.width > 0 &&
            rect.height > 0 &&
            style.display !== 'none' &&
            style.visibility !== 'hidden' &&
            style.opacity !== '0'
        );
    }

    function visibleText(el) {
        const raw = el.innerText || el.textContent || el.value ||
            el.getAttribute('aria-label') || el.getAttribute('title') || '';
        return String(raw).replace(/\\s+/g, ' ').trim().substring(0, 120);
    }

    const out = [];
    let ordinal = 0;
    const nodes = root.matches(args.selector) ? [root, ...root.querySelectorAll(args.selector)]
                                              : [...root.querySelectorAll(args.selector)];
    nodes.forEach(el => {
        const parent = el.parentElement ? el.parentElement.closest('[' + attr + ']') : null;
        el.setAttribute(attr, String(ordinal));
        out.push({
            ordinal: ordinal,
            tag: el.tagName.toLowerCase(),
            text: visibleText(el),
            href: el.getAttribute('href') || '',
            target: el.getAttribute('target') || '',
            role: el.getAttribute('role') || '',
            input_type: el.getAttribute('type') || '',
            class_name: el.getAttribute('class') || '',
            visible: isVisible(el),
            parent_ordinal: parent ? Number(parent.getAttribute(attr)) : null,
        });
        ordinal++;
    });
    return out;
}
"""

_BUTTON_INPUT_TYPES = {"submit", "button"}


def rank_candidates(
    region: ContentRegion,
    page_url: str,
    *,
    max_candidates: int = DEFAULT_MAX_CANDIDATES,
    cta_phrases: Iterable[str] | None = None,
    button_class_patterns: Iterable[str] | None = None,
) -> list[CandidateElement]:
    """Scan *region* and return at most *max_candidates* ranked candidates.

    A failing scan is logged and yields an empty list; the caller falls
    back to its guaranteed record.
    """
    raw = scan_region(region)
    if raw is None:
        return []
    candidates = rank_raw_elements(
        raw,
        page_url,
        max_candidates=max_candidates,
        cta_phrases=cta_phrases,
        button_class_patterns=button_class_patterns,
    )
    logger.info(
        "Ranked %d candidate(s) from %d element(s) in %s", len(candidates), len(raw), region.selector
    )
    return candidates


def scan_region(region: ContentRegion) -> list[dict[str, Any]] | None:
    """Tag and describe every interactive element in *region* (DOM order)."""
    try:
        raw = region.locator.evaluate(
            _SCAN_JS, {"attribute": CANDIDATE_ATTRIBUTE, "selector": INTERACTIVE_SELECTOR}
        )
    except Exception as exc:
        logger.warning("Candidate scan failed in %s: %s", region.selector, exc)
        return None
    if not isinstance(raw, list):
        logger.warning("Candidate scan in %s returned %s, expected a list", region.selector, type(raw).__name__)
        return None
    return raw


def rank_raw_elements(
    raw_elements: Iterable[dict[str, Any]],
    page_url: str,
    *,
    max_candidates: int = DEFAULT_MAX_CANDIDATES,
    cta_phrases: Iterable[str] | None = None,
    button_class_patterns: Iterable[str] | None = None,
) -> list[CandidateElement]:
    """Apply the tier policy to raw scan dicts.  Pure; no browser access."""
    cta_re = compile_cta_pattern(cta_phrases if cta_phrases is not None else DEFAULT_CTA_PHRASES)
    class_res = [
        re.compile(p, re.IGNORECASE)
        for p in (button_class_patterns if button_class_patterns is not None else DEFAULT_BUTTON_CLASS_PATTERNS)
    ]

    buckets: dict[RankingTier, list[CandidateElement]] = {tier: [] for tier in RankingTier}
    for el in raw_elements:
        candidate = classify_element(el, page_url, cta_re, class_res)
        if candidate is not None:
            buckets[candidate.tier].append(candidate)

    ranked: list[CandidateElement] = []
    for tier in sorted(RankingTier):
        if len(ranked) >= max_candidates:
            break
        for candidate in sorted(buckets[tier], key=lambda c: c.ordinal):
            if len(ranked) >= max_candidates:
                break
            ranked.append(candidate)
    return ranked


def classify_element(
    el: dict[str, Any],
    page_url: str,
    cta_re: re.Pattern[str] | None,
    class_res: list[re.Pattern[str]],
) -> CandidateElement | None:
    """Return the candidate for one raw element at its best tier, or ``None``."""
    ordinal = _ordinal(el)
    if ordinal is None or not el.get("visible"):
        return None

    tag = str(el.get("tag", "")).lower()
    text = str(el.get("text", "") or "")
    href = str(el.get("href", "") or "").strip()
    role = str(el.get("role", "") or "").lower()
    input_type = str(el.get("input_type", "") or "").lower()
    class_name = str(el.get("class_name", "") or "")

    is_link = tag == "a" and usable_href(href)
    is_button = tag == "button" or role == "button" or (tag == "input" and input_type in _BUTTON_INPUT_TYPES)
    has_button_class = any(r.search(class_name) for r in class_res)

    if is_link:
        kind = CandidateKind.LINK
    elif is_button:
        kind = CandidateKind.BUTTON
    else:
        kind = CandidateKind.CLICKABLE
        # A styled span inside a link or button is the same control twice.
        if el.get("parent_ordinal") is not None:
            return None

    if is_link and str(el.get("target", "")).strip().lower() == "_blank":
        tier = RankingTier.TARGET_BLANK
    elif (is_link or is_button) and matches_cta(text, cta_re):
        tier = RankingTier.CTA_TEXT
    elif is_button or has_button_class:
        tier = RankingTier.INTERACTIVE_CSS
    elif is_link:
        tier = RankingTier.FALLBACK_ANCHOR
    else:
        return None

    return CandidateElement(
        ordinal=ordinal,
        kind=kind,
        tier=tier,
        tag=tag,
        text=text,
        href=urljoin(page_url, href) if usable_href(href) else "",
    )


def rebind_candidate(candidate: CandidateElement, raw_elements: list[dict[str, Any]]) -> CandidateElement | None:
    """Find *candidate* again after the page was reloaded and re-tagged.

    The ordinal is trusted when tag and text still agree; otherwise the
    first element with the same tag and text wins.  ``None`` when gone.
    """

    def _same(el: dict[str, Any]) -> bool:
        return str(el.get("tag", "")).lower() == candidate.tag and str(el.get("text", "") or "") == candidate.text

    rows = [el for el in raw_elements if _ordinal(el) is not None]
    for el in rows:
        if el["ordinal"] == candidate.ordinal and _same(el):
            return candidate
    for el in rows:
        if _same(el) and el.get("visible"):
            return replace(candidate, ordinal=el["ordinal"])
    return None


def _ordinal(el: Any) -> int | None:
    """The row's DOM ordinal, or ``None`` for rows a hostile page has mangled."""
    if not isinstance(el, dict):
        return None
    ordinal = el.get("ordinal")
    if isinstance(ordinal, bool) or not isinstance(ordinal, int):
        return None
    return ordinal


def compile_cta_pattern(phrases: Iterable[str]) -> re.Pattern[str] | None:
    """Compile the vocabulary into one case-insensitive whole-word pattern."""
    cleaned = sorted({p.strip().lower() for p in phrases if p and p.strip()}, key=len, reverse=True)
    if not cleaned:
        return None
    alternatives = "|".join(r"\s+".join(re.escape(w) for w in p.split()) for p in cleaned)
    return re.compile(rf"(?<!\w)(?:{alternatives})(?!\w)", re.IGNORECASE)


def matches_cta(text: str, cta_re: re.Pattern[str] | None) -> bool:
    return bool(cta_re and text and cta_re.search(text))


def usable_href(href: str) -> bool:
    """Non-empty, not a same-page fragment and not a ``javascript:`` URL."""
    href = (href or "").strip()
    if not href or href.startswith("#"):
        return False
    return not href.lower().startswith("javascript:")

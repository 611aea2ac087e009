"""Run orchestrator: one target URL in, one ``RunResult`` out.

Sequence::

    INIT → IDENTITY_RESOLVED → PAGE_LOADED → REGION_LOCATED → RANKING
         → INTERACTING (0..N) → FINALIZING → DONE

Failures before ``PAGE_LOADED`` (browser launch, unreachable target) end in
``FAILED`` and raise ``RunFailedError`` carrying a one-record fallback
result.  Once the page has loaded the run always reaches ``DONE`` with at
least one record.  The browser session is closed on every path.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from urllib.parse import urlparse

from playwright.sync_api import Error as PlaywrightError

from cic.browser.identity import resolve_identity
from cic.browser.interaction import capture, normalize_url
from cic.browser.navigation import resilient_goto, restore_target
from cic.browser.ranking import rank_candidates, rebind_candidate, scan_region
from cic.browser.region import ContentRegion, locate_content_region
from cic.browser.session import BrowserSession, close_session, open_session
from cic.engine.runlog import LogSink, RunLog
from cic.exceptions import (
    InteractionError,
    InvalidTargetError,
    NavigationError,
    RunFailedError,
    SessionLaunchError,
)
from cic.models.capture import (
    CandidateElement,
    CaptureMethod,
    CaptureRecord,
    ProxyBinding,
    RunContext,
    RunResult,
)
from cic.models.states import RunState, can_transition
from cic.settings.config import Settings, get_settings

logger = logging.getLogger(__name__)


def run_capture(
    target_url: str,
    proxy: ProxyBinding | None = None,
    log_sink: LogSink | None = None,
    settings: Settings | None = None,
) -> RunResult:
    """Find the call-to-action on *target_url*, click it, record where it leads.

    Args:
        target_url: Absolute http(s) URL of the page to process.
        proxy: Egress proxy for this run, ``None`` for a direct connection.
        log_sink: Called synchronously with every run log line.
        settings: Explicit settings; defaults to ``get_settings()``.

    Returns:
        A ``RunResult`` with at least one record.

    Raises:
        InvalidTargetError: If *target_url* is not an absolute http(s) URL.
        RunFailedError: If the browser could not start or the target could
            not be reached.  ``exc.result`` holds the fallback result.
    """
    url = validate_target_url(target_url)
    run = CaptureRun(url, proxy, settings or get_settings(), RunLog(log_sink))
    return run.execute()


def validate_target_url(url: str) -> str:
    """Return *url* stripped, or raise ``InvalidTargetError``."""
    if not isinstance(url, str) or not url.strip():
        raise InvalidTargetError(str(url))
    cleaned = url.strip()
    parsed = urlparse(cleaned)
    if parsed.scheme.lower() not in ("http", "https") or not parsed.netloc:
        raise InvalidTargetError(cleaned)
    return cleaned


class CaptureRun:
    """State for a single run.  Not reusable."""

    def __init__(self, target_url: str, proxy: ProxyBinding | None, settings: Settings, log: RunLog) -> None:
        self.target_url = target_url
        self.proxy = proxy
        self.settings = settings
        self.log = log
        self.state = RunState.INIT
        self.ip: str | None = None
        self.started_at = datetime.now(timezone.utc)
        self.attempts = 0

    @property
    def context(self) -> RunContext:
        return RunContext(target_url=self.target_url, ip=self.ip, proxy=self.proxy)

    # ------------------------------------------------------------------
    # Top level
    # ------------------------------------------------------------------

    def execute(self) -> RunResult:
        if self.proxy is not None:
            self.log.info(f"Using proxy: {self.proxy.redacted()}")
        else:
            self.log.info("Using direct connection")

        try:
            session = open_session(self.proxy, self.settings.browser)
        except SessionLaunchError as exc:
            raise self._fail(str(exc)) from exc

        try:
            return self._run(session)
        finally:
            close_session(session)

    def _run(self, session: BrowserSession) -> RunResult:
        page = session.page

        self.ip = resolve_identity(
            page,
            self.settings.identity.providers,
            timeout_ms=self.settings.identity.timeout_ms,
        )
        if self.ip:
            self.log.info(f"IP detected: {self.ip}")
        else:
            self.log.warning("IP detection failed; records will carry no IP")
        self._advance(RunState.IDENTITY_RESOLVED)

        self.log.info(f"Navigating to: {self.target_url}")
        try:
            resilient_goto(
                page,
                self.target_url,
                timeout_ms=self.settings.browser.navigation_timeout_ms,
                wait_until=self.settings.browser.wait_until,
            )
        except NavigationError as exc:
            raise self._fail(str(exc)) from exc
        self._advance(RunState.PAGE_LOADED)

        records: list[CaptureRecord] = []
        try:
            self._collect(page, records)
        except Exception as exc:
            # Nothing after PAGE_LOADED may cost the run its result.
            logger.debug("Interaction phase of %s aborted", self.target_url, exc_info=True)
            self.log.error(f"Interaction phase aborted: {type(exc).__name__}: {exc}")
        return self._finalize(records)

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def _collect(self, page, records: list[CaptureRecord]) -> None:
        """Locate, rank and click candidates, appending captures to *records*."""
        ranking = self.settings.ranking
        interaction = self.settings.interaction

        region = locate_content_region(page, ranking.region_selectors)
        if region.degraded:
            self.log.warning("No content region found, searching the whole page")
        else:
            self.log.info(f"Content region: {region.selector}")
        self._advance(RunState.REGION_LOCATED)

        self._advance(RunState.RANKING)
        candidates = rank_candidates(
            region,
            page.url,
            max_candidates=ranking.max_candidates,
            cta_phrases=ranking.cta_phrases,
            button_class_patterns=ranking.button_class_patterns,
        )
        self.log.info(f"Candidates ranked: {len(candidates)}")

        seen: set[str] = set()
        for candidate in candidates:
            if self.attempts >= interaction.max_attempts:
                self.log.info(f"Attempt budget reached ({interaction.max_attempts})")
                break
            if len(records) >= interaction.max_captures:
                self.log.info(f"Capture budget reached ({interaction.max_captures})")
                break

            if self.attempts > 0:
                try:
                    rebound = self._restore(page, region, candidate)
                except NavigationError as exc:
                    self.log.warning(f"Could not restore original page, stopping: {exc}")
                    break
                if rebound is None:
                    self.log.warning(f"Candidate {candidate.describe()} vanished after reload, skipping")
                    continue
                candidate = rebound

            self._advance(RunState.INTERACTING)
            self.attempts += 1
            self.log.info(f"Attempt {self.attempts}/{interaction.max_attempts}: {candidate.describe()}")

            try:
                record = capture(page, candidate, self.context, interaction)
            except (InteractionError, PlaywrightError) as exc:
                self.log.warning(f"Interaction failed for {candidate.describe()}: {exc}")
                continue

            if record is None:
                self.log.info("Click had no effect")
                continue
            key = normalize_url(record.url)
            if key in seen:
                self.log.info(f"Duplicate destination ignored: {record.url}")
                continue
            seen.add(key)
            records.append(record)
            self.log.success(f"Captured ({record.method.value}): {record.url}")

    def _restore(self, page, region: ContentRegion, candidate: CandidateElement) -> CandidateElement | None:
        """Reload the original target and find *candidate* again."""
        restore_target(
            page,
            self.target_url,
            timeout_ms=self.settings.interaction.restore_timeout_ms,
            wait_until=self.settings.browser.wait_until,
        )
        fresh = ContentRegion(locator=page.locator(region.selector).first, selector=region.selector, degraded=region.degraded)
        raw = scan_region(fresh)
        if raw is None:
            return None
        return rebind_candidate(candidate, raw)

    def _finalize(self, records: list[CaptureRecord]) -> RunResult:
        self._advance(RunState.FINALIZING)
        if not records:
            self.log.warning("No outbound destination captured, recording the original page")
            records = [self.context.record(self.target_url, CaptureMethod.ORIGINAL_PAGE)]
        self._advance(RunState.DONE)
        self.log.success(f"Automation completed. URLs: {len(records)}")
        return self._result(records)

    def _fail(self, reason: str) -> RunFailedError:
        """Move to FAILED and build the ``RunFailedError`` carrying a fallback record."""
        self._advance(RunState.FAILED)
        self.log.error(f"Automation failed: {reason}")
        fallback = self.context.record(self.target_url, CaptureMethod.ERROR_FALLBACK)
        return RunFailedError(reason, self._result([fallback]))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _result(self, records: list[CaptureRecord]) -> RunResult:
        if not records:
            raise RuntimeError(f"Run for {self.target_url} produced no records")
        return RunResult(
            target_url=self.target_url,
            records=tuple(records),
            logs=self.log.snapshot(),
            ip=self.ip,
            proxy=self.proxy,
            state=self.state,
            started_at=self.started_at,
            finished_at=datetime.now(timezone.utc),
        )

    def _advance(self, target: RunState) -> None:
        if not can_transition(self.state, target):
            raise RuntimeError(f"Illegal run transition {self.state.value} -> {target.value}")
        logger.debug("Run %s: %s -> %s", self.target_url, self.state.value, target.value)
        self.state = target

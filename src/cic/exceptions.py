"""CIC-specific exception hierarchy."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cic.models.capture import RunResult


class CICError(Exception):
    """Base exception for all CIC-specific errors."""


class InvalidTargetError(CICError, ValueError):
    """Raised when the target is not an absolute ``http``/``https`` URL."""

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(f"Invalid target URL: {url!r} (expected an absolute http(s) URL)")


class SessionLaunchError(CICError):
    """Raised when the browser process or its context cannot be started."""


class NavigationError(CICError):
    """Raised when the target page cannot be reached at all.

    Attributes:
        url: The URL that failed to load.
        reason: Short human-readable cause (``name not resolved``, ``timeout``...).
    """

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"Navigation to {url} failed: {reason}")


class InteractionError(CICError):
    """Raised when clicking a single candidate fails; never fatal for the run."""


class RunFailedError(CICError):
    """Raised when a run fails before the target page was loaded.

    Attributes:
        reason: Description of the fatal cause.
        result: The run's fallback ``RunResult`` (one ``error_fallback``
            record plus the logs accumulated so far).
    """

    def __init__(self, reason: str, result: RunResult) -> None:
        self.reason = reason
        self.result = result
        super().__init__(reason)

"""Human-readable run log.

Every line goes to three places: the run's own list (returned in
``RunResult.logs``), the module logger, and the caller's optional sink,
which is invoked synchronously.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)

LogSink = Callable[[str], None]


class RunLog:
    """Collects ``[level] message`` lines for one run."""

    def __init__(self, sink: LogSink | None = None, *, target: logging.Logger | None = None) -> None:
        self._sink = sink
        self._logger = target or logger
        self.lines: list[str] = []

    def info(self, message: str) -> None:
        self._emit("info", logging.INFO, message)

    def success(self, message: str) -> None:
        self._emit("success", logging.INFO, message)

    def warning(self, message: str) -> None:
        self._emit("warning", logging.WARNING, message)

    def error(self, message: str) -> None:
        self._emit("error", logging.ERROR, message)

    def snapshot(self) -> tuple[str, ...]:
        return tuple(self.lines)

    def _emit(self, tag: str, level: int, message: str) -> None:
        line = f"[{tag}] {message}"
        self.lines.append(line)
        self._logger.log(level, "%s", message)
        if self._sink is None:
            return
        try:
            self._sink(line)
        except Exception:
            # A broken sink must not take the run down with it.
            self._logger.warning("Log sink raised; line kept in run log only", exc_info=True)

"""Sequential batch runs.

Each item gets its own run and its own browser session.  A failing item
is recorded as ``failed`` and the batch moves on, unless
``batch.stop_on_error`` is set.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from cic.engine.runlog import LogSink
from cic.engine.runner import run_capture
from cic.exceptions import CICError, RunFailedError
from cic.models.capture import ProxyBinding, RunResult
from cic.settings.config import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchItem:
    """One target URL with its own optional proxy."""

    url: str
    proxy: ProxyBinding | None = None

    @classmethod
    def from_raw(cls, raw: str | dict[str, Any]) -> BatchItem:
        """Accept a bare URL string or ``{"url": ..., "proxy": {...} | "scheme://..."}``."""
        if isinstance(raw, str):
            return cls(url=raw.strip())
        proxy_raw = raw.get("proxy")
        if isinstance(proxy_raw, str) and proxy_raw.strip():
            proxy = ProxyBinding.from_url(proxy_raw)
        elif isinstance(proxy_raw, dict):
            proxy = ProxyBinding.from_dict(proxy_raw)
        else:
            proxy = None
        return cls(url=str(raw.get("url", "")).strip(), proxy=proxy)


@dataclass
class BatchItemResult:
    """Outcome of one batch item."""

    url: str
    status: str  # "completed" | "failed"
    result: RunResult | None = None
    error: str = ""
    proxy: ProxyBinding | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "url": self.url,
            "status": self.status,
            "proxy": self.proxy.to_dict() if self.proxy else None,
        }
        if self.result is not None:
            out["ip"] = self.result.ip
            out["captured"] = [r.to_dict() for r in self.result.records]
        if self.error:
            out["error"] = self.error
        return out


@dataclass
class BatchResult:
    """Summary of a sequential batch."""

    items: list[BatchItemResult] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: datetime | None = None

    @property
    def total(self) -> int:
        return len(self.items)

    @property
    def completed(self) -> int:
        return sum(1 for i in self.items if i.status == "completed")

    @property
    def failed(self) -> int:
        return sum(1 for i in self.items if i.status == "failed")

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "completed": self.completed,
            "failed": self.failed,
            "results": [i.to_dict() for i in self.items],
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, default=str)


def run_batch(
    items: list[BatchItem],
    settings: Settings | None = None,
    log_sink: LogSink | None = None,
) -> BatchResult:
    """Run every item one after another and collect per-item outcomes."""
    settings = settings or get_settings()
    batch = BatchResult()

    for index, item in enumerate(items, start=1):
        logger.info("Batch item %d/%d: %s", index, len(items), item.url)
        try:
            result = run_capture(item.url, item.proxy, log_sink=log_sink, settings=settings)
        except RunFailedError as exc:
            logger.warning("Batch item %d failed: %s", index, exc.reason)
            batch.items.append(
                BatchItemResult(url=item.url, status="failed", result=exc.result, error=exc.reason, proxy=item.proxy)
            )
        except CICError as exc:
            logger.warning("Batch item %d rejected: %s", index, exc)
            batch.items.append(BatchItemResult(url=item.url, status="failed", error=str(exc), proxy=item.proxy))
        except Exception as exc:
            logger.exception("Batch item %d crashed", index)
            batch.items.append(
                BatchItemResult(url=item.url, status="failed", error=f"{type(exc).__name__}: {exc}", proxy=item.proxy)
            )
        else:
            batch.items.append(BatchItemResult(url=item.url, status="completed", result=result, proxy=item.proxy))
            continue

        if settings.batch.stop_on_error:
            logger.warning("Stopping batch after failure (batch.stop_on_error)")
            break

    batch.finished_at = datetime.now(timezone.utc)
    logger.info(
        "Batch complete: %d completed, %d failed of %d", batch.completed, batch.failed, batch.total
    )
    return batch

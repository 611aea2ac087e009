"""Content-aware Interaction & Capture: find a page's call-to-action, click it, record where it leads."""

from __future__ import annotations

try:
    from importlib.metadata import version

    __version__ = version("cic")
except Exception:
    __version__ = "0.0.0"

from cic.engine.runner import run_capture  # noqa: E402

__all__ = ["run_capture", "__version__"]

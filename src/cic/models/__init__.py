"""Data model for capture runs."""

from cic.models.capture import (
    CandidateElement,
    CandidateKind,
    CaptureMethod,
    CaptureRecord,
    ProxyBinding,
    RankingTier,
    RunResult,
)
from cic.models.states import RunState

__all__ = [
    "CandidateElement",
    "CandidateKind",
    "CaptureMethod",
    "CaptureRecord",
    "ProxyBinding",
    "RankingTier",
    "RunResult",
    "RunState",
]

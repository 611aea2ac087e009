"""Run state machine definitions."""

from enum import Enum


class RunState(str, Enum):
    """States of one capture run, in the order a successful run visits them."""

    INIT = "INIT"
    IDENTITY_RESOLVED = "IDENTITY_RESOLVED"
    PAGE_LOADED = "PAGE_LOADED"
    REGION_LOCATED = "REGION_LOCATED"
    RANKING = "RANKING"
    INTERACTING = "INTERACTING"
    FINALIZING = "FINALIZING"
    DONE = "DONE"
    FAILED = "FAILED"


TERMINAL_STATES = {RunState.DONE, RunState.FAILED}

# FAILED is reachable only before PAGE_LOADED (launch or navigation failure).
# After PAGE_LOADED every state may short-cut to FINALIZING when the
# interaction phase is aborted, so DONE is always reached.
STATE_TRANSITIONS: dict[RunState, list[RunState]] = {
    RunState.INIT: [RunState.IDENTITY_RESOLVED, RunState.FAILED],
    RunState.IDENTITY_RESOLVED: [RunState.PAGE_LOADED, RunState.FAILED],
    RunState.PAGE_LOADED: [RunState.REGION_LOCATED, RunState.FINALIZING],
    RunState.REGION_LOCATED: [RunState.RANKING, RunState.FINALIZING],
    RunState.RANKING: [RunState.INTERACTING, RunState.FINALIZING],
    RunState.INTERACTING: [RunState.INTERACTING, RunState.FINALIZING],
    RunState.FINALIZING: [RunState.DONE],
}


def can_transition(current: RunState, target: RunState) -> bool:
    """Return whether *current* → *target* is a legal run transition."""
    return target in STATE_TRANSITIONS.get(current, [])

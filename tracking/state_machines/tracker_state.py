from enum import Enum

from parcels.exceptions import StateTransitionError


class TrackerState(str, Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    ACTIVE = "active"


_ALLOWED = {
    # stop() is idempotent, so STOPPED -> STOPPED is legal
    TrackerState.STOPPED: {TrackerState.STARTING, TrackerState.STOPPED},
    TrackerState.STARTING: {TrackerState.ACTIVE, TrackerState.STOPPED},
    TrackerState.ACTIVE: {TrackerState.STOPPED},
}


def transition_tracker(current: TrackerState, target: TrackerState) -> TrackerState:
    """
    Validate a tracker transition and return the new state.
    Starting while ACTIVE is not a direct transition: the tracker must stop first.
    """
    if target not in _ALLOWED[current]:
        raise StateTransitionError(f"Cannot move live tracker from {current.value} to {target.value}")
    return target

from enum import Enum

from parcels.exceptions import StateTransitionError


class SessionState(str, Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    # found, and the courier position is streamed
    DELIVERING = "delivering"
    # found, nothing to stream (registered / delivered / unrecognized status)
    STATIC = "static"


_ALLOWED = {
    SessionState.IDLE: {SessionState.IDLE, SessionState.SEARCHING},
    # a newer lookup may supersede one still searching
    SessionState.SEARCHING: {
        SessionState.SEARCHING,
        SessionState.DELIVERING,
        SessionState.STATIC,
        SessionState.IDLE,
    },
    # status changes observed on the event log move between the two found states
    SessionState.DELIVERING: {SessionState.SEARCHING, SessionState.IDLE, SessionState.STATIC},
    SessionState.STATIC: {SessionState.SEARCHING, SessionState.IDLE, SessionState.DELIVERING},
}


def transition_session(current: SessionState, target: SessionState) -> SessionState:
    """
    Validate a session transition and return the new state.
    """
    if target not in _ALLOWED[current]:
        raise StateTransitionError(f"Cannot move tracking session from {current.value} to {target.value}")
    return target


def is_found(state: SessionState) -> bool:
    return state in (SessionState.DELIVERING, SessionState.STATIC)

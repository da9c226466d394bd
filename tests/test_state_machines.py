import pytest

from parcels.exceptions import StateTransitionError
from tracking.state_machines import SessionState, TrackerState, transition_session, transition_tracker
from tracking.state_machines.session_state import is_found


def test_tracker_lifecycle():
    state = TrackerState.STOPPED
    for target in (TrackerState.STARTING, TrackerState.ACTIVE, TrackerState.STOPPED, TrackerState.STOPPED):
        state = transition_tracker(state, target)
    assert state == TrackerState.STOPPED


@pytest.mark.parametrize("current,target", [
    (TrackerState.STOPPED, TrackerState.ACTIVE),
    (TrackerState.ACTIVE, TrackerState.STARTING),
    (TrackerState.ACTIVE, TrackerState.ACTIVE),
])
def test_tracker_rejects_shortcuts(current, target):
    with pytest.raises(StateTransitionError):
        transition_tracker(current, target)


def test_session_lookup_paths():
    assert transition_session(SessionState.IDLE, SessionState.SEARCHING) == SessionState.SEARCHING
    assert transition_session(SessionState.SEARCHING, SessionState.DELIVERING) == SessionState.DELIVERING
    assert transition_session(SessionState.DELIVERING, SessionState.STATIC) == SessionState.STATIC
    assert transition_session(SessionState.STATIC, SessionState.SEARCHING) == SessionState.SEARCHING
    assert transition_session(SessionState.SEARCHING, SessionState.IDLE) == SessionState.IDLE


@pytest.mark.parametrize("current,target", [
    (SessionState.IDLE, SessionState.DELIVERING),
    (SessionState.IDLE, SessionState.STATIC),
    (SessionState.DELIVERING, SessionState.DELIVERING),
])
def test_session_rejects_skipping_search(current, target):
    with pytest.raises(StateTransitionError):
        transition_session(current, target)


def test_is_found():
    assert is_found(SessionState.DELIVERING)
    assert is_found(SessionState.STATIC)
    assert not is_found(SessionState.SEARCHING)

#Transition rules for the two long-lived state holders:
#LiveLocationTracker (Stopped → Starting → Active → Stopped)
#TrackingSession (Idle → Searching → Delivering | Static → Searching/Idle)

from .session_state import SessionState, transition_session
from .tracker_state import TrackerState, transition_tracker

__all__ = [
    "SessionState",
    "TrackerState",
    "transition_session",
    "transition_tracker",
]

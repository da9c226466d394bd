#Expose the high-level tracking pieces:
#Live location tracker (courier position stream)
#Tracking session orchestrator (the “one call” entry point: lookup)
#Policy knobs

from .location_tracker import LiveLocationTracker
from .policy import TrackingPolicy, default_tracking_policy
from .session import (
    LookupOutcome,
    LookupResult,
    TrackingSession,
    TrackingSnapshot,
    create_session,
)
from .state_machines import SessionState, TrackerState

__all__ = [
    "LiveLocationTracker",
    "TrackingSession",
    "TrackingSnapshot",
    "LookupOutcome",
    "LookupResult",
    "create_session",
    "TrackingPolicy",
    "default_tracking_policy",
    "SessionState",
    "TrackerState",
]

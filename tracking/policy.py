"""
Purpose: Central configuration for tracking sessions and the live tracker.
What it does:

Stores all tunable timeouts and fallbacks:

STORE_TIMEOUT_S = 10, GEOCODE_TIMEOUT_S = 8, ROUTE_TIMEOUT_S = 10

DEFAULT_ORIGIN = (3.1390, 101.6869) used when no position can be resolved

DESTINATION_OFFSET = (+0.02, +0.02) degrees from the current position when the
receiver address cannot be geocoded

LIVE_STATUSES = In Transit, Out for Delivery

Rule: No logic here, just parameters so you can tune without rewriting code.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from parcels.models import ParcelStatus, is_valid_coordinate


@dataclass(frozen=True)
class TrackingPolicy:
    """
    Central configuration for a TrackingSession.
    """

    # --- Timeouts (seconds) ---
    store_timeout_s: float = 10.0
    geocode_timeout_s: float = 8.0
    route_timeout_s: float = 10.0

    # --- Fallback positions ---
    default_origin: Tuple[float, float] = (3.1390, 101.6869)
    default_origin_description: str = "Location unavailable"
    destination_offset: Tuple[float, float] = (0.02, 0.02)

    # --- Live tracking ---
    # Statuses for which the courier position is streamed after a lookup.
    live_statuses: Tuple[ParcelStatus, ...] = (
        ParcelStatus.IN_TRANSIT,
        ParcelStatus.OUT_FOR_DELIVERY,
    )

    # Rebuild the timeline when the event log changes while a parcel is shown.
    watch_event_log: bool = True

    def validate(self) -> None:
        """
        Basic sanity checks.
        """
        if min(self.store_timeout_s, self.geocode_timeout_s, self.route_timeout_s) <= 0:
            raise ValueError("timeouts must be > 0")

        if not is_valid_coordinate(*self.default_origin):
            raise ValueError("default_origin must be a valid (lat, lng)")

        if self.destination_offset == (0.0, 0.0):
            raise ValueError("destination_offset must move the destination away from the origin")


def default_tracking_policy() -> TrackingPolicy:
    """
    Convenience factory for the default policy.
    """
    p = TrackingPolicy()
    p.validate()
    return p

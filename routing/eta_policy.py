"""
Purpose: Central configuration for the ETA estimator (single source of truth).
What it does:

Stores all tunable constants of the delivery-time heuristic:

BASE_SPEED_KMH = 80, TRAFFIC_FACTOR = 0.8 (effective road speed 64 km/h)

SORTING_HOURS / LOADING_HOURS / PER_STOP_HOURS (administrative overheads)

DISTANCE_TIERS (extra handling per distance band)

RUSH_HOUR / WEEKEND factors, BUFFER_DAYS, REST_DAY, BUSINESS_CLOSE_HOUR

Rule: No logic here, just parameters so you can tune without rewriting code.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timezone, tzinfo
from typing import Dict, Tuple

from parcels.models import ParcelStatus


@dataclass(frozen=True)
class EtaPolicy:
    """
    Central configuration for delivery estimates.

    Notes:
    - effective speed = base_speed_kmh * traffic_factor
    - distance tiers are (upper bound km, extra hours); the last tier applies
      to everything at or above the previous bound
    - weekday numbers follow datetime.weekday(): Monday=0 ... Sunday=6
    """

    # --- Road speed ---
    base_speed_kmh: float = 80.0
    traffic_factor: float = 0.8

    # --- Fixed administrative overheads (hours) ---
    sorting_hours: float = 0.5
    loading_hours: float = 0.5
    per_stop_hours: float = 0.1

    # --- Distance tiers: extra handling hours ---
    # < 50 km: same network, < 150 km: next day hub, < 300 km: two hubs, beyond: long haul
    distance_tiers: Tuple[Tuple[float, float], ...] = (
        (50.0, 2.0),
        (150.0, 24.0),
        (300.0, 48.0),
        (float("inf"), 72.0),
    )

    # --- Stop count bands: (upper bound km, stops on the way) ---
    stop_bands: Tuple[Tuple[float, int], ...] = (
        (10.0, 5),
        (50.0, 10),
        (150.0, 15),
        (float("inf"), 20),
    )

    # --- Fixed-hours fallback when no distance is known ---
    status_fallback_hours: Dict[ParcelStatus, float] = field(default_factory=lambda: {
        ParcelStatus.REGISTERED: 48.0,
        ParcelStatus.IN_TRANSIT: 24.0,
        ParcelStatus.OUT_FOR_DELIVERY: 4.0,
    })
    unknown_status_hours: float = 48.0

    # --- Time-of-day / day-of-week adjustments ---
    # [start, end) hours
    morning_rush: Tuple[int, int] = (7, 10)
    evening_rush: Tuple[int, int] = (16, 19)
    rush_hour_factor: float = 1.3

    busy_weekdays: Tuple[int, ...] = (4, 5)  # Friday, Saturday
    busy_day_factor: float = 1.2

    # --- Calendar ---
    buffer_days: float = 0.5
    rest_weekday: int = 6  # Sunday
    business_close_hour: int = 18
    timezone: tzinfo = timezone.utc

    @property
    def effective_speed_kmh(self) -> float:
        return self.base_speed_kmh * self.traffic_factor

    def validate(self) -> None:
        """
        Basic sanity checks. Call once at startup if you want.
        """
        if self.effective_speed_kmh <= 0:
            raise ValueError("effective speed must be > 0")

        if min(self.sorting_hours, self.loading_hours, self.per_stop_hours) < 0:
            raise ValueError("overhead hours must be >= 0")

        if not self.distance_tiers or not self.stop_bands:
            raise ValueError("distance_tiers and stop_bands must not be empty")

        bounds = [bound for bound, _ in self.distance_tiers]
        if bounds != sorted(bounds):
            raise ValueError("distance_tiers must be sorted by upper bound")

        if self.rush_hour_factor < 1.0 or self.busy_day_factor < 1.0:
            raise ValueError("adjustment factors must be >= 1.0")

        if self.buffer_days < 0:
            raise ValueError("buffer_days must be >= 0")

        if not 0 <= self.rest_weekday <= 6:
            raise ValueError("rest_weekday must be in 0..6")

        if not 0 <= self.business_close_hour <= 24:
            raise ValueError("business_close_hour must be in 0..24")


def default_eta_policy() -> EtaPolicy:
    """
    Convenience factory for the default policy.
    """
    p = EtaPolicy()
    p.validate()
    return p

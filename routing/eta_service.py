#Purpose: ETA estimation policy.
#Converts a haversine distance, the wall clock and the parcel status into the
#customer-facing "arrives on <day>, between <window>" estimate.
#Typical responsibilities:
#travel time at effective road speed + handling overheads + distance tier
#fixed-hours fallback by status when no distance is known
#rush-hour and busy-day adjustments
#working-day walk that skips the weekly rest day
#Deterministic: same (parcel, distance, now) → same EstimatedDelivery.

from __future__ import annotations

import math
from datetime import date, datetime, timedelta
from typing import Optional

from parcels.models import EstimatedDelivery, Parcel, ParcelStatus
from parcels.timestamps import from_epoch_millis

from .eta_policy import EtaPolicy, default_eta_policy


def estimate(
        parcel: Parcel,
        distance_km: Optional[float],
        now: datetime,
        policy: Optional[EtaPolicy] = None,
) -> Optional[EstimatedDelivery]:
    """
    Predict the delivery date and time window for a parcel.

    Args:
        parcel: parcel snapshot (status + creation time are used)
        distance_km: haversine distance between current position and destination,
            or None when unknown
        now: wall-clock time of the estimate; naive values are taken in policy.timezone
        policy: model constants (defaults to default_eta_policy())

    Returns:
        EstimatedDelivery, or None when the parcel is already Delivered.
    """
    if parcel.status == ParcelStatus.DELIVERED:
        return None

    policy = policy or default_eta_policy()
    local_now = _localize(now, policy)

    if _usable_distance(distance_km):
        hours = distance_hours(distance_km, parcel.status, policy)
        basis = "distance"
    else:
        distance_km = None
        hours = policy.status_fallback_hours.get(parcel.status, policy.unknown_status_hours)
        basis = "status"

    hours *= adjustment_factor(local_now, policy)

    # hours → whole days, then the buffer, then whole working days
    whole_days = math.ceil(hours / 24.0)
    working_days = math.ceil(whole_days + policy.buffer_days)

    start = _walk_start(parcel, local_now, policy)
    target = add_working_days(start, working_days, policy.rest_weekday)

    days_remaining = max(0, (target - local_now.date()).days)

    return EstimatedDelivery(
        target_date=target,
        formatted_date=f"{target:%B} {target.day}, {target.year}",
        day_name=f"{target:%A}",
        time_window=time_window(days_remaining, distance_km, local_now.hour),
        days_remaining=days_remaining,
        estimated_hours=round(hours, 3),
        working_days=working_days,
        basis=basis,
    )


def distance_hours(distance_km: float, status: ParcelStatus, policy: EtaPolicy) -> float:
    """
    Unadjusted hours for a given distance.

    Out for Delivery parcels are already on the van: only driving and stops
    remain. In Transit parcels have been sorted already.
    """
    travel = distance_km / policy.effective_speed_kmh
    stops = stop_count(distance_km, policy) * policy.per_stop_hours

    if status == ParcelStatus.OUT_FOR_DELIVERY:
        return travel + stops

    hours = travel + stops + policy.loading_hours + tier_hours(distance_km, policy)
    if status != ParcelStatus.IN_TRANSIT:
        hours += policy.sorting_hours
    return hours


def tier_hours(distance_km: float, policy: EtaPolicy) -> float:
    for upper_bound, extra_hours in policy.distance_tiers:
        if distance_km < upper_bound:
            return extra_hours
    return policy.distance_tiers[-1][1]


def stop_count(distance_km: float, policy: EtaPolicy) -> int:
    for upper_bound, stops in policy.stop_bands:
        if distance_km < upper_bound:
            return stops
    return policy.stop_bands[-1][1]


def adjustment_factor(local_now: datetime, policy: EtaPolicy) -> float:
    factor = 1.0
    hour = local_now.hour
    for start, end in (policy.morning_rush, policy.evening_rush):
        if start <= hour < end:
            factor *= policy.rush_hour_factor
            break
    if local_now.weekday() in policy.busy_weekdays:
        factor *= policy.busy_day_factor
    return factor


def add_working_days(start: date, working_days: int, rest_weekday: int) -> date:
    """
    Walk forward one calendar day at a time from start, counting only days
    that are not the rest day, until working_days have elapsed.
    """
    target = start
    counted = 0
    while counted < working_days:
        target += timedelta(days=1)
        if target.weekday() != rest_weekday:
            counted += 1
    return target


def time_window(days_remaining: int, distance_km: Optional[float], hour: int) -> str:
    """
    Same-day windows narrow as the day goes on; future-day windows widen
    with distance.
    """
    if days_remaining <= 0:
        if hour < 10:
            return "10:00 AM - 6:00 PM"
        if hour < 13:
            return "1:00 PM - 6:00 PM"
        if hour < 16:
            return "4:00 PM - 7:00 PM"
        return "By end of day"

    if distance_km is None:
        return "9:00 AM - 6:00 PM"
    if distance_km < 50:
        return "9:00 AM - 12:00 PM"
    if distance_km < 150:
        return "9:00 AM - 3:00 PM"
    if distance_km < 300:
        return "9:00 AM - 6:00 PM"
    return "9:00 AM - 8:00 PM"


#----------------
# Internal helpers
#----------------

def _usable_distance(distance_km: Optional[float]) -> bool:
    return (
        isinstance(distance_km, (int, float))
        and not isinstance(distance_km, bool)
        and math.isfinite(distance_km)
        and distance_km >= 0
    )


def _localize(now: datetime, policy: EtaPolicy) -> datetime:
    if now.tzinfo is None:
        return now.replace(tzinfo=policy.timezone)
    return now.astimezone(policy.timezone)


def _walk_start(parcel: Parcel, local_now: datetime, policy: EtaPolicy) -> date:
    if parcel.created_at is not None:
        start = from_epoch_millis(parcel.created_at, tz=policy.timezone).date()
    else:
        start = local_now.date()

    if local_now.hour >= policy.business_close_hour:
        start += timedelta(days=1)
    return start

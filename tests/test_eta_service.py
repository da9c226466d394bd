from datetime import date, datetime, timezone

import pytest

from parcels.models import Parcel, ParcelStatus
from parcels.timestamps import to_epoch_millis
from routing.eta_policy import EtaPolicy, default_eta_policy
from routing.eta_service import add_working_days, adjustment_factor, distance_hours, estimate, time_window


def make_parcel(status=ParcelStatus.REGISTERED, created="2024-01-01T09:00:00Z"):
    return Parcel(tracking_id="TRK1", status=status, created_at=to_epoch_millis(created))


def at(year, month, day, hour):
    return datetime(year, month, day, hour, 0, tzinfo=timezone.utc)


def test_registered_parcel_40km():
    """
    40 km, Registered, created Monday 09:00, estimated Monday 11:00:
    0.625 h travel + 1.0 h stops + 0.5 loading + 2 tier + 0.5 sorting = 4.625 h
    -> 1 day + 0.5 buffer -> 2 working days -> Wednesday.
    """
    eta = estimate(make_parcel(), 40.0, at(2024, 1, 1, 11))

    assert eta.estimated_hours == pytest.approx(4.625)
    assert eta.working_days == 2
    assert eta.target_date == date(2024, 1, 3)
    assert eta.formatted_date == "January 3, 2024"
    assert eta.day_name == "Wednesday"
    assert eta.days_remaining == 2
    assert eta.time_window == "9:00 AM - 12:00 PM"
    assert eta.basis == "distance"


def test_delivered_has_no_estimate():
    assert estimate(make_parcel(ParcelStatus.DELIVERED), 40.0, at(2024, 1, 1, 11)) is None


def test_estimate_is_deterministic():
    parcel = make_parcel(ParcelStatus.IN_TRANSIT)
    now = at(2024, 1, 1, 11)
    assert estimate(parcel, 120.0, now) == estimate(parcel, 120.0, now)


def test_out_for_delivery_counts_only_driving_and_stops():
    policy = default_eta_policy()
    # 8 km: 0.125 h driving + 5 stops * 0.1 h
    assert distance_hours(8.0, ParcelStatus.OUT_FOR_DELIVERY, policy) == pytest.approx(0.625)
    # In Transit skips sorting, Registered does not
    in_transit = distance_hours(8.0, ParcelStatus.IN_TRANSIT, policy)
    registered = distance_hours(8.0, ParcelStatus.REGISTERED, policy)
    assert registered - in_transit == pytest.approx(policy.sorting_hours)


@pytest.mark.parametrize("status,hours", [
    (ParcelStatus.REGISTERED, 48.0),
    (ParcelStatus.IN_TRANSIT, 24.0),
    (ParcelStatus.OUT_FOR_DELIVERY, 4.0),
    (ParcelStatus.UNRECOGNIZED, 48.0),
])
def test_status_fallback_without_distance(status, hours):
    eta = estimate(make_parcel(status), None, at(2024, 1, 1, 11))
    assert eta.basis == "status"
    assert eta.estimated_hours == pytest.approx(hours)
    assert eta.time_window == "9:00 AM - 6:00 PM"


@pytest.mark.parametrize("distance", [-1.0, float("nan"), float("inf")])
def test_unusable_distance_falls_back_to_status(distance):
    assert estimate(make_parcel(), distance, at(2024, 1, 1, 11)).basis == "status"


def test_rush_hour_and_busy_day_factors():
    policy = default_eta_policy()
    assert adjustment_factor(at(2024, 1, 1, 11), policy) == 1.0
    assert adjustment_factor(at(2024, 1, 1, 8), policy) == pytest.approx(1.3)
    assert adjustment_factor(at(2024, 1, 1, 19), policy) == 1.0
    # Friday 17:00: evening rush on a busy day
    assert adjustment_factor(at(2024, 1, 5, 17), policy) == pytest.approx(1.3 * 1.2)


def test_working_days_skip_sunday():
    # Saturday + 1 working day -> Monday
    assert add_working_days(date(2024, 1, 6), 1, rest_weekday=6) == date(2024, 1, 8)
    # Friday + 2 -> Saturday counts, Sunday skipped, Monday
    assert add_working_days(date(2024, 1, 5), 2, rest_weekday=6) == date(2024, 1, 8)


def test_after_business_close_starts_next_day():
    eta = estimate(make_parcel(), 40.0, at(2024, 1, 1, 19))
    assert eta.target_date == date(2024, 1, 4)
    assert eta.days_remaining == 3


def test_days_remaining_never_negative():
    old = make_parcel(ParcelStatus.IN_TRANSIT, created="2023-12-01T09:00:00Z")
    eta = estimate(old, 40.0, at(2024, 1, 10, 11))
    assert eta.target_date < date(2024, 1, 10)
    assert eta.days_remaining == 0
    assert eta.time_window == "1:00 PM - 6:00 PM"


@pytest.mark.parametrize("days,distance,hour,window", [
    (0, 10.0, 9, "10:00 AM - 6:00 PM"),
    (0, 10.0, 12, "1:00 PM - 6:00 PM"),
    (0, 10.0, 15, "4:00 PM - 7:00 PM"),
    (0, 10.0, 17, "By end of day"),
    (1, 120.0, 11, "9:00 AM - 3:00 PM"),
    (1, 250.0, 11, "9:00 AM - 6:00 PM"),
    (3, 400.0, 11, "9:00 AM - 8:00 PM"),
])
def test_time_windows(days, distance, hour, window):
    assert time_window(days, distance, hour) == window


def test_naive_now_is_policy_timezone():
    naive = datetime(2024, 1, 1, 11, 0)
    assert estimate(make_parcel(), 40.0, naive) == estimate(make_parcel(), 40.0, at(2024, 1, 1, 11))


def test_policy_validation():
    default_eta_policy()
    with pytest.raises(ValueError):
        EtaPolicy(traffic_factor=0).validate()
    with pytest.raises(ValueError):
        EtaPolicy(rest_weekday=7).validate()
    with pytest.raises(ValueError):
        EtaPolicy(distance_tiers=((150.0, 24.0), (50.0, 2.0))).validate()

"""
Purpose: Domain models for the Parcels capability.
What it does:
- Defines core data structures:
- Parcel (tracking id, status, sender/receiver, pickup location, timestamps, courier)
- TrackingEvent (one point in the parcel's history, with provenance)
- LocationSample (one validated courier position)
- MapCoordinates (current + destination view-state of a tracking session)
- EstimatedDelivery (ETA snapshot)

Defines enums/constants:
- ParcelStatus = REGISTERED | IN_TRANSIT | OUT_FOR_DELIVERY | DELIVERED | UNRECOGNIZED
- EventProvenance = EVENT_LOG | PARCEL_RECORD

Rule: No store access, no provider calls. Models and boundary normalization only.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from .exceptions import DataIntegrityWarning, InvalidCoordinatesError
from .timestamps import EpochMillis, to_epoch_millis

LatLon = Tuple[float, float]


class ParcelStatus(str, Enum):
    """
    Canonical lifecycle statuses. Anything else the producers write
    (e.g. "Assigned for delivery", "Pending") maps to UNRECOGNIZED and the
    raw text is kept next to it.
    """
    REGISTERED = "Registered"
    IN_TRANSIT = "In Transit"
    OUT_FOR_DELIVERY = "Out for Delivery"
    DELIVERED = "Delivered"
    UNRECOGNIZED = "Unrecognized"

    @classmethod
    def parse(cls, raw: Any) -> "ParcelStatus":
        if isinstance(raw, ParcelStatus):
            return raw
        if not isinstance(raw, str) or not raw.strip():
            return cls.UNRECOGNIZED
        needle = raw.strip().lower()
        for status in CANONICAL_STATUSES:
            if status.value.lower() == needle:
                return status
        return cls.UNRECOGNIZED

    @property
    def is_canonical(self) -> bool:
        return self is not ParcelStatus.UNRECOGNIZED

    @property
    def rank(self) -> int:
        """Position in the delivery lifecycle; UNRECOGNIZED sorts first."""
        return _STATUS_RANK[self]


CANONICAL_STATUSES = (
    ParcelStatus.REGISTERED,
    ParcelStatus.IN_TRANSIT,
    ParcelStatus.OUT_FOR_DELIVERY,
    ParcelStatus.DELIVERED,
)

_STATUS_RANK = {
    ParcelStatus.UNRECOGNIZED: -1,
    ParcelStatus.REGISTERED: 0,
    ParcelStatus.IN_TRANSIT: 1,
    ParcelStatus.OUT_FOR_DELIVERY: 2,
    ParcelStatus.DELIVERED: 3,
}

STATUS_TITLES: Dict[ParcelStatus, str] = {
    ParcelStatus.REGISTERED: "Parcel Registered",
    ParcelStatus.IN_TRANSIT: "In Transit",
    ParcelStatus.OUT_FOR_DELIVERY: "Out for Delivery",
    ParcelStatus.DELIVERED: "Delivered",
}

STATUS_DESCRIPTIONS: Dict[ParcelStatus, str] = {
    ParcelStatus.REGISTERED: "Parcel has been registered",
    ParcelStatus.IN_TRANSIT: "Parcel is in transit to delivery location",
    ParcelStatus.OUT_FOR_DELIVERY: "Parcel is out for delivery to recipient",
    ParcelStatus.DELIVERED: "Parcel has been delivered successfully",
}

STATUS_ICONS: Dict[ParcelStatus, str] = {
    ParcelStatus.REGISTERED: "cube-outline",
    ParcelStatus.IN_TRANSIT: "car-outline",
    ParcelStatus.OUT_FOR_DELIVERY: "bicycle-outline",
    ParcelStatus.DELIVERED: "checkmark-circle-outline",
}


def status_description(status: ParcelStatus, raw: Optional[str] = None) -> str:
    if status in STATUS_DESCRIPTIONS:
        return STATUS_DESCRIPTIONS[status]
    return f"Status updated to: {raw or status.value}"


class EventProvenance(str, Enum):
    EVENT_LOG = "log"
    PARCEL_RECORD = "parcel"


def _pick(record: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    """First non-empty value among keys (the producers use both camelCase and snake_case)."""
    for key in keys:
        value = record.get(key)
        if value is not None and value != "":
            return value
    return default


@dataclass(frozen=True)
class Parcel:
    """
    Read-only snapshot of one parcel record. Timestamps are epoch milliseconds.
    """
    tracking_id: str
    status: ParcelStatus = ParcelStatus.REGISTERED
    status_text: str = ParcelStatus.REGISTERED.value

    sender_name: Optional[str] = None
    sender_address: Optional[str] = None
    receiver_name: Optional[str] = None
    receiver_address: Optional[str] = None
    pickup_location: Optional[str] = None

    created_at: Optional[EpochMillis] = None
    updated_at: Optional[EpochMillis] = None
    delivered_at: Optional[EpochMillis] = None

    courier_id: Optional[str] = None
    courier_name: Optional[str] = None
    proof_of_delivery: Optional[str] = None

    # last courier position copied onto the parcel by the location reporter
    location_lat: Optional[float] = None
    location_lng: Optional[float] = None
    location_description: Optional[str] = None
    location_updated_at: Optional[EpochMillis] = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> Parcel:
        """
        Build a Parcel from a raw store document. A missing status defaults to
        Registered; unknown status strings are kept as free text.
        """
        tracking_id = _pick(record, "trackingId", "tracking_id")
        if not isinstance(tracking_id, str) or not tracking_id.strip():
            raise DataIntegrityWarning("Parcel record has no tracking ID")

        raw_status = _pick(record, "status", default=ParcelStatus.REGISTERED.value)
        status = ParcelStatus.parse(raw_status)
        status_text = status.value if status.is_canonical else str(raw_status)

        return cls(
            tracking_id=tracking_id.strip(),
            status=status,
            status_text=status_text,
            sender_name=_pick(record, "senderName", "sender_name"),
            sender_address=_pick(record, "senderAddress", "sender_address"),
            receiver_name=_pick(record, "receiverName", "receiver_name"),
            receiver_address=_pick(record, "receiverAddress", "receiver_address"),
            pickup_location=_pick(record, "pickupLocation", "pickup_location"),
            created_at=to_epoch_millis(_pick(record, "createdAt", "addedDate", "created_at")),
            updated_at=to_epoch_millis(_pick(record, "updatedAt", "updated_at")),
            delivered_at=to_epoch_millis(_pick(record, "deliveredAt", "delivered_at")),
            courier_id=_pick(record, "deliverymanId", "courier_id"),
            courier_name=_pick(record, "deliverymanName", "courier_name"),
            proof_of_delivery=_pick(record, "photoURL", "proof_of_delivery"),
            location_lat=_pick(record, "locationLat", "location_lat"),
            location_lng=_pick(record, "locationLng", "location_lng"),
            location_description=_pick(record, "locationDescription", "location_description"),
            location_updated_at=to_epoch_millis(_pick(record, "locationUpdatedAt", "location_updated_at")),
        )

    def last_known_location(self) -> Optional[LocationSample]:
        """
        Courier position the location reporter copied onto this record, or None
        when it is missing, out of range or undated.
        """
        timestamp = self.location_updated_at if self.location_updated_at is not None else self.updated_at
        if timestamp is None or not is_valid_coordinate(self.location_lat, self.location_lng):
            return None
        return LocationSample(
            lat=float(self.location_lat),
            lng=float(self.location_lng),
            timestamp=timestamp,
            description=self.location_description,
        )


@dataclass(frozen=True)
class TrackingEvent:
    """
    One point in a parcel's timeline. Immutable; the timeline builder only
    appends and sorts these.
    """
    title: str
    status: ParcelStatus
    description: str
    timestamp: EpochMillis
    location: str = ""
    icon: str = "ellipse-outline"
    courier_name: Optional[str] = None
    proof_of_delivery: Optional[str] = None
    provenance: EventProvenance = EventProvenance.EVENT_LOG
    active: bool = True


def is_valid_coordinate(lat: Any, lng: Any) -> bool:
    """
    True when lat/lng are finite real numbers inside [-90, 90] / [-180, 180].
    Booleans and numeric strings are rejected.
    """
    for value in (lat, lng):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return False
        if not math.isfinite(value):
            return False
    return -90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0


@dataclass(frozen=True)
class LocationSample:
    """
    A validated courier position. Construction enforces the coordinate invariant.
    """
    lat: float
    lng: float
    timestamp: EpochMillis
    description: Optional[str] = None
    accuracy_m: Optional[float] = None

    def __post_init__(self) -> None:
        if not is_valid_coordinate(self.lat, self.lng):
            raise InvalidCoordinatesError(f"Invalid coordinates: lat={self.lat!r}, lng={self.lng!r}")

    @property
    def coordinates(self) -> LatLon:
        return (float(self.lat), float(self.lng))

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> LocationSample:
        """
        Normalize an Assignment Store record. Raises InvalidCoordinatesError for
        bad coordinates and DataIntegrityWarning for an unusable timestamp.
        """
        lat = _pick(record, "lat", "locationLat", "latitude")
        lng = _pick(record, "lng", "locationLng", "longitude")
        if not is_valid_coordinate(lat, lng):
            raise InvalidCoordinatesError(f"Invalid coordinates: lat={lat!r}, lng={lng!r}")

        timestamp = to_epoch_millis(_pick(record, "timestamp", "locationUpdatedAt", "time"))
        if timestamp is None:
            raise DataIntegrityWarning("Location record has no usable timestamp")

        accuracy = _pick(record, "accuracy", "accuracy_m")
        if not isinstance(accuracy, (int, float)) or isinstance(accuracy, bool):
            accuracy = None

        description = _pick(record, "locationDescription", "description")
        return cls(
            lat=float(lat),
            lng=float(lng),
            timestamp=timestamp,
            description=description if isinstance(description, str) else None,
            accuracy_m=accuracy,
        )


@dataclass(frozen=True)
class MapCoordinates:
    """
    View-state owned by one tracking session. Replaced wholesale, never patched.
    """
    current: LatLon
    destination: LatLon
    current_description: str = ""
    route_distance_km: Optional[float] = None


@dataclass(frozen=True)
class EstimatedDelivery:
    """
    ETA snapshot. Recomputed from scratch for every parcel snapshot.
    """
    target_date: date
    formatted_date: str
    day_name: str
    time_window: str
    days_remaining: int = 0
    estimated_hours: float = 0.0
    working_days: int = 0
    # "distance" when computed from a haversine distance, "status" for the fixed-hours table
    basis: str = "distance"

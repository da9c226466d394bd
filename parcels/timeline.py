"""
Purpose: Timeline Builder.
What it does:
Merges the parcel record and the raw event log into one deduplicated list of
TrackingEvent, newest first:

1. synthetic "Parcel Registered" event from the parcel's creation time
2. event-log entries restricted to the four canonical statuses
3. merge, skipping duplicates (same status, timestamps < 1 s apart)
4. synthesize a missing Out for Delivery / Delivered event from the parcel record
5. sort newest first (display order)

The event log is authoritative: the parcel record only fills gaps.
Rule: pure function, no store access. Bad records are dropped, never fatal.
"""
from __future__ import annotations

import logging
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from .exceptions import DataIntegrityWarning
from .models import (
    CANONICAL_STATUSES,
    STATUS_ICONS,
    STATUS_TITLES,
    EventProvenance,
    Parcel,
    ParcelStatus,
    TrackingEvent,
    status_description,
)
from .timestamps import to_epoch_millis

_LOGGER = logging.getLogger(__name__)

DEDUP_WINDOW_MS = 1000

# statuses the parcel record may synthesize when the log has no entry for them
_TERMINAL_STATUSES = (ParcelStatus.OUT_FOR_DELIVERY, ParcelStatus.DELIVERED)


def build_timeline(parcel: Parcel, event_log_entries: Optional[Iterable[Mapping[str, Any]]]) -> List[TrackingEvent]:
    """
    Build the display timeline for one parcel.

    Args:
        parcel: normalized parcel snapshot
        event_log_entries: raw event-log records (may be None or empty)

    Returns:
        List[TrackingEvent], newest first. Callers needing chronological
        order should use chronological().
    """
    events: List[TrackingEvent] = []

    registered = _registered_event(parcel)
    if registered is not None:
        events.append(registered)

    for entry in event_log_entries or ():
        try:
            event = event_from_log_entry(entry, parcel.tracking_id)
        except DataIntegrityWarning as warning:
            _LOGGER.warning("Dropping event log entry for %s: %s", parcel.tracking_id, warning)
            continue

        if event is None:
            continue

        if is_duplicate(event, events):
            _LOGGER.debug(
                "Skipping duplicate %s event at %s for %s",
                event.status.value, event.timestamp, parcel.tracking_id,
            )
            continue
        events.append(event)

    for status in _TERMINAL_STATUSES:
        if parcel.status != status:
            continue
        if any(event.status == status for event in events):
            continue
        synthesized = _synthesize_from_record(parcel, status)
        if synthesized is not None:
            events.append(synthesized)

    return sort_for_display(events)


def event_from_log_entry(entry: Mapping[str, Any], tracking_id: str) -> Optional[TrackingEvent]:
    """
    Normalize one raw event-log record.

    Returns None for statuses outside the canonical four (handler-only
    entries such as "Assigned for delivery"). Raises DataIntegrityWarning for
    records that belong to another parcel or carry no usable timestamp.
    """
    owner = entry.get("trackingId")
    if owner is not None and owner != tracking_id:
        raise DataIntegrityWarning(f"entry belongs to {owner!r}")

    status = ParcelStatus.parse(entry.get("status"))
    if status not in CANONICAL_STATUSES:
        return None

    timestamp = to_epoch_millis(entry.get("timestamp"))
    if timestamp is None:
        raise DataIntegrityWarning(f"unusable timestamp {entry.get('timestamp')!r}")

    return TrackingEvent(
        title=entry.get("title") or STATUS_TITLES[status],
        status=status,
        description=entry.get("description") or status_description(status),
        timestamp=timestamp,
        location=entry.get("location") or "",
        icon=STATUS_ICONS[status],
        courier_name=entry.get("deliverymanName") or entry.get("courierName"),
        proof_of_delivery=entry.get("photoURL") or entry.get("photoRef"),
        provenance=EventProvenance.EVENT_LOG,
    )


def is_duplicate(candidate: TrackingEvent, existing: Sequence[TrackingEvent]) -> bool:
    for event in existing:
        if event.status != candidate.status:
            continue
        if abs(event.timestamp - candidate.timestamp) < DEDUP_WINDOW_MS:
            return True
    return False


def sort_for_display(events: Iterable[TrackingEvent]) -> List[TrackingEvent]:
    """Newest first; ties put the later lifecycle stage first."""
    return sorted(events, key=lambda event: (event.timestamp, event.status.rank), reverse=True)


def chronological(events: Iterable[TrackingEvent]) -> List[TrackingEvent]:
    """Oldest first, for consumers that need storage order."""
    return sorted(events, key=lambda event: (event.timestamp, event.status.rank))


def latest_event(events: Sequence[TrackingEvent]) -> Optional[TrackingEvent]:
    if not events:
        return None
    return max(events, key=lambda event: (event.timestamp, event.status.rank))


# --------------------------------------------------------------------------
# Internal helpers
# --------------------------------------------------------------------------

def _registered_event(parcel: Parcel) -> Optional[TrackingEvent]:
    if parcel.created_at is None:
        _LOGGER.warning("Parcel %s has no creation timestamp; no registration event", parcel.tracking_id)
        return None
    return TrackingEvent(
        title=STATUS_TITLES[ParcelStatus.REGISTERED],
        status=ParcelStatus.REGISTERED,
        description=status_description(ParcelStatus.REGISTERED),
        timestamp=parcel.created_at,
        location=parcel.pickup_location or "",
        icon=STATUS_ICONS[ParcelStatus.REGISTERED],
        provenance=EventProvenance.PARCEL_RECORD,
        active=True,
    )


def _synthesize_from_record(parcel: Parcel, status: ParcelStatus) -> Optional[TrackingEvent]:
    if status == ParcelStatus.DELIVERED:
        timestamp = _first(parcel.delivered_at, parcel.updated_at, parcel.created_at)
        location = _first(parcel.location_description, parcel.receiver_address, parcel.pickup_location)
    else:
        timestamp = _first(parcel.location_updated_at, parcel.updated_at, parcel.created_at)
        location = _first(parcel.location_description, parcel.pickup_location)

    if timestamp is None:
        return None

    return TrackingEvent(
        title=STATUS_TITLES[status],
        status=status,
        description=status_description(status),
        timestamp=timestamp,
        location=location or "",
        icon=STATUS_ICONS[status],
        courier_name=parcel.courier_name,
        proof_of_delivery=parcel.proof_of_delivery if status == ParcelStatus.DELIVERED else None,
        provenance=EventProvenance.PARCEL_RECORD,
    )


def _first(*values: Optional[Any]) -> Optional[Any]:
    for value in values:
        if value is not None and value != "":
            return value
    return None

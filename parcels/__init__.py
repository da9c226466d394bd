"""
Parcels domain package.

Public API:
- Domain models: Parcel, TrackingEvent, LocationSample, MapCoordinates,
  EstimatedDelivery, ParcelStatus, EventProvenance
- Timeline: build_timeline, chronological
- Timestamp normalization: to_epoch_millis
- Stores: protocols + in-memory implementations
- Subscription (cancellable stream)

"""
from .models import (
    EstimatedDelivery,
    EventProvenance,
    LocationSample,
    MapCoordinates,
    Parcel,
    ParcelStatus,
    TrackingEvent,
)
from .stores import (
    AssignmentStore,
    EventLogStore,
    InMemoryAssignmentStore,
    InMemoryEventLogStore,
    InMemoryParcelStore,
    ParcelRecordStore,
)
from .subscriptions import Subscription
from .timeline import build_timeline, chronological
from .timestamps import to_epoch_millis

__all__ = ["Parcel",
           "ParcelStatus",
             "TrackingEvent",
               "EventProvenance",
               "LocationSample",
               "MapCoordinates",
               "EstimatedDelivery",
               "build_timeline",
               "chronological",
               "to_epoch_millis",
               "Subscription",
               "ParcelRecordStore",
               "EventLogStore",
               "AssignmentStore",
               "InMemoryParcelStore",
               "InMemoryEventLogStore",
               "InMemoryAssignmentStore",
               ]

import asyncio
import time
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from parcels.stores import InMemoryAssignmentStore, InMemoryEventLogStore, InMemoryParcelStore
from routing.geo import haversine_km
from routing.geocoding_client import GeocodingError
from routing.geocoding_service import GeocodingAdapter
from routing.osrm_client import OSRMError
from routing.route_service import RoutingAdapter
from tracking.session import TrackingSession

# Monday 2024-01-01 11:00 UTC: outside rush hours, not a busy day
NOW = datetime(2024, 1, 1, 11, 0, tzinfo=timezone.utc)

HUB = (3.1073, 101.6067)
RECEIVER = (3.1600, 101.7200)

ADDRESSES = {
    "Hub 1, Petaling Jaya": HUB,
    "12 Jalan Ampang, Kuala Lumpur": RECEIVER,
}


class FakeGeocoder:
    """Synchronous stand-in for NominatimClient."""

    def __init__(self, addresses=None, reverse_text="Jalan Tun Razak, Kuala Lumpur", fail=False):
        self.addresses = dict(ADDRESSES if addresses is None else addresses)
        self.reverse_text = reverse_text
        self.fail = fail
        self.forward_calls = []
        self.reverse_calls = []

    def forward(self, address):
        self.forward_calls.append(address)
        if self.fail:
            raise GeocodingError("geocoder down")
        hit = self.addresses.get(address)
        if hit is None:
            return None
        return {"lat": hit[0], "lng": hit[1], "formatted_address": address}

    def reverse(self, lat, lng):
        self.reverse_calls.append((lat, lng))
        if self.fail:
            raise GeocodingError("geocoder down")
        if self.reverse_text is None:
            return None
        return {"formatted_address": self.reverse_text}


class FakeRouter:
    """Synchronous stand-in for OSRMClient: road distance = 1.3 x straight line."""

    def __init__(self, fail=False, delay_s=0.0):
        self.fail = fail
        self.delay_s = delay_s
        self.calls = []

    def compute_route(self, coordinates):
        self.calls.append(list(coordinates))
        if self.delay_s:
            time.sleep(self.delay_s)
        if self.fail:
            raise OSRMError("OSRM error: NoRoute")
        origin, destination = coordinates[0], coordinates[-1]
        midpoint = ((origin[0] + destination[0]) / 2, (origin[1] + destination[1]) / 2)
        meters = haversine_km(origin, destination) * 1000 * 1.3
        return {"distance": meters, "duration": meters / 10, "geometry": [origin, midpoint, destination]}



def parcel_record(tracking_id="TRK1", status="Registered", **fields):
    record = {
        "trackingId": tracking_id,
        "status": status,
        "senderName": "Aisyah",
        "receiverName": "Daniel",
        "receiverAddress": "12 Jalan Ampang, Kuala Lumpur",
        "pickupLocation": "Hub 1, Petaling Jaya",
        "createdAt": "2024-01-01T09:00:00Z",
    }
    record.update(fields)
    return record


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def stores():
    return SimpleNamespace(
        parcels=InMemoryParcelStore(),
        events=InMemoryEventLogStore(),
        assignments=InMemoryAssignmentStore(),
    )


@pytest.fixture
def geocoder():
    return FakeGeocoder()


@pytest.fixture
def router():
    return FakeRouter()


@pytest.fixture
def make_session(stores, geocoder, router, clock):
    """Factory so individual tests can swap a store or provider."""

    def _make(parcel_store=None, geocoding_provider=None, routing_provider=None, route_timeout=2.0,
              assignment_store=None, **kwargs):
        return TrackingSession(
            parcel_store or stores.parcels,
            stores.events,
            assignment_store or stores.assignments,
            GeocodingAdapter(geocoding_provider or geocoder, timeout=2.0),
            RoutingAdapter(routing_provider or router, timeout=route_timeout),
            clock=clock,
            **kwargs,
        )

    return _make


@pytest.fixture
def eventually():
    """Await until predicate() is true, failing after timeout seconds."""

    async def _eventually(predicate, timeout=2.0, interval=0.01):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition not met in time")
            await asyncio.sleep(interval)

    return _eventually


@pytest.fixture
def make_record():
    return parcel_record


@pytest.fixture
def make_router():
    return FakeRouter


@pytest.fixture
def make_geocoder():
    return FakeGeocoder

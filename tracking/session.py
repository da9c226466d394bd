"""
TrackingSession: orchestrates one user-facing parcel lookup.

Responsibilities:
- Validate the tracking id and load the parcel record.
- Build the timeline, resolve current/destination coordinates, compute the ETA
  and request the initial route.
- For parcels on the move, start the LiveLocationTracker and re-resolve the
  route on each accepted position.
- While a parcel is shown, rebuild timeline and ETA whenever the event log
  changes.
- Push a fresh TrackingSnapshot to listeners after every applied change.

Every lookup takes a new generation token. Anything that awaits (store reads,
geocoding, routing, stream callbacks) re-checks the token before applying its
result, so a superseded lookup can finish its I/O but never touches the
current state.
"""
from __future__ import annotations

import asyncio
import dataclasses
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from parcels.exceptions import (
    DataIntegrityWarning,
    InvalidTrackingIdError,
    ParcelNotFoundError,
    ValidationError,
)
from parcels.models import EstimatedDelivery, LocationSample, MapCoordinates, Parcel, ParcelStatus, TrackingEvent
from parcels.stores import AssignmentStore, EventLogStore, ParcelRecordStore
from parcels.subscriptions import Subscription
from parcels.timeline import build_timeline, latest_event
from parcels.timestamps import EpochMillis, to_epoch_millis
from routing.eta_policy import EtaPolicy, default_eta_policy
from routing.eta_service import estimate
from routing.geo import haversine_km, offset
from routing.geocoding_client import NominatimClient
from routing.geocoding_service import GeocodingAdapter, describe_coordinates
from routing.osrm_client import OSRMClient
from routing.route_service import RouteResult, RoutingAdapter

from .location_tracker import LiveLocationTracker
from .policy import TrackingPolicy, default_tracking_policy
from .state_machines import SessionState, transition_session

_LOGGER = logging.getLogger(__name__)

LatLon = Tuple[float, float]

SEARCH_FAILED_MESSAGE = "An error occurred while searching. Please try again."


class LookupOutcome(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    FAILED = "failed"
    SUPERSEDED = "superseded"


@dataclass(frozen=True)
class TrackingSnapshot:
    """
    Everything the presentation layer needs to render one parcel.
    """
    tracking_id: str
    parcel: Parcel
    timeline: Tuple[TrackingEvent, ...]
    map_coordinates: MapCoordinates
    route: RouteResult
    estimated_delivery: Optional[EstimatedDelivery]
    is_live: bool
    last_updated: EpochMillis
    generation: int
    # timestamp of the courier sample behind map_coordinates.current, if any
    position_at: Optional[EpochMillis] = None

    @property
    def route_available(self) -> bool:
        return self.route.available


@dataclass(frozen=True)
class LookupResult:
    tracking_id: str
    outcome: LookupOutcome
    snapshot: Optional[TrackingSnapshot] = None
    message: str = ""
    error: Optional[Exception] = None

    @property
    def found(self) -> bool:
        return self.outcome == LookupOutcome.FOUND


SnapshotListener = Callable[[TrackingSnapshot], None]


class TrackingSession:
    """
    One tracking view: at most one lookup is applied at a time, and starting
    a new lookup tears the previous one down first.
    """

    def __init__(
        self,
        parcel_store: ParcelRecordStore,
        event_log_store: EventLogStore,
        assignment_store: AssignmentStore,
        geocoder: GeocodingAdapter,
        router: RoutingAdapter,
        *,
        policy: Optional[TrackingPolicy] = None,
        eta_policy: Optional[EtaPolicy] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.parcel_store = parcel_store
        self.event_log_store = event_log_store
        self.assignment_store = assignment_store
        self.geocoder = geocoder
        self.router = router
        self.policy = policy or default_tracking_policy()
        self.eta_policy = eta_policy or default_eta_policy()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        self.tracker = LiveLocationTracker(assignment_store)

        self.state: SessionState = SessionState.IDLE
        self.generation: int = 0
        self._snapshot: Optional[TrackingSnapshot] = None
        self._listeners: List[SnapshotListener] = []

        self._remove_tracker_listener: Optional[Callable[[], None]] = None
        self._event_log_subscription: Optional[Subscription] = None
        self._event_log_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    @property
    def snapshot(self) -> Optional[TrackingSnapshot]:
        return self._snapshot

    @property
    def map_coordinates(self) -> Optional[MapCoordinates]:
        return self._snapshot.map_coordinates if self._snapshot else None

    def add_listener(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register a snapshot listener; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    async def lookup(self, tracking_id: Any) -> LookupResult:
        """
        Look up a parcel and start tracking it.

        Raises InvalidTrackingIdError for an empty tracking id (before any I/O).
        Every other problem is reported through the returned LookupResult.
        """
        if not isinstance(tracking_id, str) or not tracking_id.strip():
            raise InvalidTrackingIdError("Please enter a tracking ID")
        tracking_id = tracking_id.strip()

        generation = self._next_generation()
        await self._teardown()
        if not self._is_current(generation):
            return self._superseded(tracking_id)
        self._set_state(SessionState.SEARCHING)

        try:
            parcel = await asyncio.wait_for(
                self.parcel_store.get_by_tracking_id(tracking_id),
                timeout=self.policy.store_timeout_s,
            )
        except Exception as exc:  # noqa: BLE001
            if not self._is_current(generation):
                return self._superseded(tracking_id)
            _LOGGER.error("Error searching for parcel %s: %s", tracking_id, exc)
            self._set_state(SessionState.IDLE)
            return LookupResult(tracking_id, LookupOutcome.FAILED, message=SEARCH_FAILED_MESSAGE, error=exc)

        if not self._is_current(generation):
            return self._superseded(tracking_id)

        if parcel is None:
            _LOGGER.info("No parcel found for %s", tracking_id)
            self._set_state(SessionState.IDLE)
            error = ParcelNotFoundError(tracking_id)
            return LookupResult(tracking_id, LookupOutcome.NOT_FOUND, message=str(error), error=error)

        snapshot = await self._build_snapshot(generation, parcel)
        if snapshot is None:
            return self._superseded(tracking_id)

        self._snapshot = snapshot
        if snapshot.is_live:
            self._set_state(SessionState.DELIVERING)
            await self._start_tracker(generation, tracking_id, since=snapshot.position_at)
        else:
            self._set_state(SessionState.STATIC)

        if self.policy.watch_event_log:
            self._watch_event_log(generation, tracking_id)

        self._notify()
        return LookupResult(tracking_id, LookupOutcome.FOUND, snapshot=snapshot)

    async def reset(self) -> None:
        """Drop the current lookup and go back to Idle."""
        self._next_generation()
        await self._teardown()
        self._set_state(SessionState.IDLE)

    async def close(self) -> None:
        """Tear everything down. Safe to call more than once."""
        await self.reset()
        self.geocoder.clear_cache()

    def close_nowait(self) -> None:
        """Synchronous teardown for cleanup paths that cannot await."""
        self._next_generation()
        self._detach()
        self._snapshot = None
        self._set_state(SessionState.IDLE)

    # ------------------------------------------------------------------
    # Lookup pipeline
    # ------------------------------------------------------------------

    async def _build_snapshot(self, generation: int, parcel: Parcel) -> Optional[TrackingSnapshot]:
        entries = await self._fetch_event_log(parcel.tracking_id)
        if not self._is_current(generation):
            return None
        timeline = build_timeline(parcel, entries)

        current, description, position_at = await self._resolve_current(parcel, timeline)
        if not self._is_current(generation):
            return None

        destination = await self._resolve_destination(parcel, current)
        if not self._is_current(generation):
            return None

        eta = estimate(parcel, haversine_km(current, destination), self._clock(), self.eta_policy)

        route = await self.router.resolve(current, destination)
        if not self._is_current(generation):
            return None

        return TrackingSnapshot(
            tracking_id=parcel.tracking_id,
            parcel=parcel,
            timeline=tuple(timeline),
            map_coordinates=MapCoordinates(
                current=current,
                destination=destination,
                current_description=description,
                route_distance_km=route.distance_km if route.available else None,
            ),
            route=route,
            estimated_delivery=eta,
            is_live=parcel.status in self.policy.live_statuses,
            last_updated=position_at if position_at is not None else self._now_millis(),
            generation=generation,
            position_at=position_at,
        )

    async def _fetch_event_log(self, tracking_id: str) -> List[Dict[str, Any]]:
        try:
            entries = await asyncio.wait_for(
                self.event_log_store.query_by_tracking_id(tracking_id),
                timeout=self.policy.store_timeout_s,
            )
        except Exception as exc:  # noqa: BLE001
            _LOGGER.warning("Could not load event log for %s, using parcel record only: %s", tracking_id, exc)
            return []
        return list(entries or [])

    async def _resolve_current(
        self, parcel: Parcel, timeline: List[TrackingEvent]
    ) -> Tuple[LatLon, str, Optional[EpochMillis]]:
        """
        Courier position first (Out for Delivery only; Assignment Store, then the
        copy on the parcel record), then the location text of the newest
        timeline event, then the default origin.
        """
        if parcel.status == ParcelStatus.OUT_FOR_DELIVERY:
            sample = await self._latest_courier_sample(parcel.tracking_id)
            if sample is None:
                sample = parcel.last_known_location()
            if sample is not None:
                description = sample.description or parcel.location_description
                if not description:
                    description = await self._describe(sample.lat, sample.lng)
                return sample.coordinates, description, sample.timestamp

        newest = latest_event(timeline)
        if newest is not None and newest.location:
            result = await self.geocoder.forward(newest.location)
            if result is not None:
                return result.coordinates, newest.location, None

        _LOGGER.warning("Could not resolve a position for %s; using default origin", parcel.tracking_id)
        return self.policy.default_origin, self.policy.default_origin_description, None

    async def _latest_courier_sample(self, tracking_id: str) -> Optional[LocationSample]:
        try:
            record = await asyncio.wait_for(
                self.assignment_store.latest_by_tracking_id(tracking_id),
                timeout=self.policy.store_timeout_s,
            )
        except Exception as exc:  # noqa: BLE001
            _LOGGER.warning("Could not read courier position for %s: %s", tracking_id, exc)
            return None
        if not record:
            return None
        try:
            return LocationSample.from_record(record)
        except (ValidationError, DataIntegrityWarning) as exc:
            _LOGGER.warning("Ignoring courier position for %s: %s", tracking_id, exc)
            return None

    async def _resolve_destination(self, parcel: Parcel, current: LatLon) -> LatLon:
        result = await self.geocoder.forward(parcel.receiver_address)
        if result is not None:
            return result.coordinates
        _LOGGER.warning(
            "Could not geocode receiver address for %s; placing destination near current position",
            parcel.tracking_id,
        )
        return offset(current, *self.policy.destination_offset)

    async def _describe(self, lat: float, lng: float) -> str:
        address = await self.geocoder.reverse(lat, lng)
        return address or describe_coordinates(lat, lng)

    # ------------------------------------------------------------------
    # Live updates
    # ------------------------------------------------------------------

    async def _start_tracker(self, generation: int, tracking_id: str, since: Optional[EpochMillis]) -> None:
        self._remove_location_listener()

        async def _on_location(sample: LocationSample) -> None:
            await self._apply_location(generation, sample)

        self._remove_tracker_listener = self.tracker.add_listener(_on_location)
        try:
            await self.tracker.start(tracking_id, since=since)
        except Exception as exc:  # noqa: BLE001
            _LOGGER.warning("Could not start live tracking for %s: %s", tracking_id, exc)

    async def _apply_location(self, generation: int, sample: LocationSample) -> None:
        if not self._is_current(generation) or self._snapshot is None:
            return

        description = sample.description or await self._describe(sample.lat, sample.lng)
        if not self._is_current(generation) or self._snapshot is None:
            return

        destination = self._snapshot.map_coordinates.destination
        route = await self.router.resolve(sample.coordinates, destination)
        if not self._is_current(generation) or self._snapshot is None:
            return

        self._snapshot = dataclasses.replace(
            self._snapshot,
            map_coordinates=MapCoordinates(
                current=sample.coordinates,
                destination=destination,
                current_description=description,
                route_distance_km=route.distance_km if route.available else None,
            ),
            route=route,
            last_updated=sample.timestamp,
            position_at=sample.timestamp,
        )
        self._notify()

    def _watch_event_log(self, generation: int, tracking_id: str) -> None:
        watch = getattr(self.event_log_store, "watch_by_tracking_id", None)
        if watch is None:
            return
        try:
            subscription = watch(tracking_id)
        except Exception as exc:  # noqa: BLE001
            _LOGGER.warning("Could not watch event log for %s: %s", tracking_id, exc)
            return
        self._event_log_subscription = subscription
        self._event_log_task = asyncio.ensure_future(self._consume_event_log(generation, subscription))

    async def _consume_event_log(self, generation: int, subscription: Subscription) -> None:
        async for entries in subscription:
            if not self._is_current(generation):
                break
            try:
                await self._apply_event_log(generation, entries)
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # noqa: BLE001
                _LOGGER.warning("Could not apply event log update for %s: %s", subscription.name, exc)

    async def _apply_event_log(self, generation: int, entries: List[Dict[str, Any]]) -> None:
        snapshot = self._snapshot
        if snapshot is None:
            return

        parcel = snapshot.parcel
        try:
            reloaded = await asyncio.wait_for(
                self.parcel_store.get_by_tracking_id(snapshot.tracking_id),
                timeout=self.policy.store_timeout_s,
            )
        except Exception as exc:  # noqa: BLE001
            _LOGGER.warning("Could not reload parcel %s: %s", snapshot.tracking_id, exc)
            reloaded = None
        if not self._is_current(generation) or self._snapshot is None:
            return
        if reloaded is not None:
            parcel = reloaded

        timeline = build_timeline(parcel, entries)
        coordinates = self._snapshot.map_coordinates
        eta = estimate(
            parcel,
            haversine_km(coordinates.current, coordinates.destination),
            self._clock(),
            self.eta_policy,
        )
        is_live = parcel.status in self.policy.live_statuses

        self._snapshot = dataclasses.replace(
            self._snapshot,
            parcel=parcel,
            timeline=tuple(timeline),
            estimated_delivery=eta,
            is_live=is_live,
        )

        if is_live and not self.tracker.is_active:
            if self.state != SessionState.DELIVERING:
                self._set_state(SessionState.DELIVERING)
            await self._start_tracker(generation, parcel.tracking_id, since=self._snapshot.position_at)
        elif not is_live and self.state == SessionState.DELIVERING:
            self._set_state(SessionState.STATIC)
            await self.tracker.stop()

        if self._is_current(generation):
            self._notify()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _next_generation(self) -> int:
        self.generation += 1
        return self.generation

    def _is_current(self, generation: int) -> bool:
        return generation == self.generation

    def _superseded(self, tracking_id: str) -> LookupResult:
        _LOGGER.debug("Lookup for %s superseded by a newer one", tracking_id)
        return LookupResult(tracking_id, LookupOutcome.SUPERSEDED, message="Superseded by a newer search")

    def _set_state(self, target: SessionState) -> None:
        if target != self.state:
            _LOGGER.info("Tracking session %s -> %s", self.state.value, target.value)
        self.state = transition_session(self.state, target)

    async def _teardown(self) -> None:
        """Stop live tracking and the event-log watch, wait for both, clear the map."""
        self._remove_location_listener()
        await self.tracker.stop()

        task = self._cancel_event_log_watch()
        self._snapshot = None
        if task is not None and task is not asyncio.current_task():
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as exc:  # noqa: BLE001
                _LOGGER.warning("Event log watch ended with an error: %s", exc)

    def _detach(self) -> None:
        """Same as _teardown without waiting for the cancelled tasks."""
        self._remove_location_listener()
        self.tracker.stop_nowait()
        self._cancel_event_log_watch()

    def _remove_location_listener(self) -> None:
        if self._remove_tracker_listener is not None:
            self._remove_tracker_listener()
            self._remove_tracker_listener = None

    def _cancel_event_log_watch(self) -> Optional[asyncio.Task]:
        if self._event_log_subscription is not None:
            self._event_log_subscription.cancel()
            self._event_log_subscription = None

        task, self._event_log_task = self._event_log_task, None
        if task is not None and not task.done():
            task.cancel()
        return task

    def _notify(self) -> None:
        snapshot = self._snapshot
        if snapshot is None:
            return
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as exc:  # noqa: BLE001
                _LOGGER.warning("Snapshot listener failed: %s", exc)

    def _now_millis(self) -> EpochMillis:
        return to_epoch_millis(self._clock())


def create_session(
    parcel_store: ParcelRecordStore,
    event_log_store: EventLogStore,
    assignment_store: AssignmentStore,
    *,
    policy: Optional[TrackingPolicy] = None,
    eta_policy: Optional[EtaPolicy] = None,
) -> TrackingSession:
    """
    Build a session wired to the HTTP providers configured in the environment
    (OSRM_BASE_URL, NOMINATIM_BASE_URL, NOMINATIM_USER_AGENT).
    """
    policy = policy or default_tracking_policy()
    geocoder = GeocodingAdapter(
        NominatimClient(timeout=int(policy.geocode_timeout_s)),
        timeout=policy.geocode_timeout_s,
    )
    router = RoutingAdapter(
        OSRMClient(timeout=int(policy.route_timeout_s)),
        timeout=policy.route_timeout_s,
    )
    return TrackingSession(
        parcel_store,
        event_log_store,
        assignment_store,
        geocoder,
        router,
        policy=policy,
        eta_policy=eta_policy,
    )

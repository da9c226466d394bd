"""
LiveLocationTracker: streams one parcel's courier position.

Responsibilities:
- Own exactly one Assignment Store subscription at a time.
- Validate every incoming record (coordinate range, usable timestamp) and
  drop invalid or stale samples without changing state.
- Forward each accepted sample, once, to the registered listeners.
- Start/stop lifecycle: Stopped → Starting → Active → Stopped. start() while
  Active stops the previous subscription first; stop() is idempotent.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Union

from parcels.exceptions import DataIntegrityWarning, ValidationError
from parcels.models import LocationSample
from parcels.stores import AssignmentStore
from parcels.subscriptions import Subscription
from parcels.timestamps import EpochMillis

from .state_machines import TrackerState, transition_tracker

_LOGGER = logging.getLogger(__name__)

LocationListener = Callable[[LocationSample], Union[None, Awaitable[None]]]


class LiveLocationTracker:
    """
    Subscribes to the Assignment Store for one tracking id and emits
    normalized LocationSample updates.
    """

    def __init__(self, assignment_store: AssignmentStore) -> None:
        self._store = assignment_store
        self._listeners: List[LocationListener] = []

        self.state: TrackerState = TrackerState.STOPPED
        self.tracking_id: Optional[str] = None

        self._subscription: Optional[Subscription] = None
        self._task: Optional[asyncio.Task] = None

        # newest sample timestamp applied so far; older ones are dropped
        self._last_timestamp: Optional[EpochMillis] = None
        # consecutive invalid samples; only the first of a run is logged loudly
        self._invalid_streak: int = 0

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: LocationListener) -> Callable[[], None]:
        """Register a listener; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    @property
    def is_active(self) -> bool:
        return self.state == TrackerState.ACTIVE

    @property
    def last_timestamp(self) -> Optional[EpochMillis]:
        return self._last_timestamp

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, tracking_id: str, since: Optional[EpochMillis] = None) -> None:
        """
        Open a new subscription for tracking_id, stopping any previous one.

        since: timestamp of a position already shown to the user; samples not
        newer than it are dropped.
        """
        await self.stop()

        self.state = transition_tracker(self.state, TrackerState.STARTING)
        self.tracking_id = tracking_id
        self._last_timestamp = since
        self._invalid_streak = 0

        try:
            subscription = self._store.watch_by_tracking_id(tracking_id)
        except Exception:
            self.state = transition_tracker(self.state, TrackerState.STOPPED)
            self.tracking_id = None
            raise

        self._subscription = subscription
        self._task = asyncio.ensure_future(self._consume(subscription))
        self.state = transition_tracker(self.state, TrackerState.ACTIVE)
        _LOGGER.info("Live location tracking started for %s", tracking_id)

    async def stop(self) -> None:
        """Cancel the subscription and wait for the consumer to finish. Idempotent."""
        tracking_id = self.tracking_id
        task = self._cancel()
        if task is not None and task is not asyncio.current_task():
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as exc:  # noqa: BLE001
                _LOGGER.warning("Location stream for %s ended with an error: %s", tracking_id, exc)

    def stop_nowait(self) -> None:
        """Synchronous stop for cleanup paths that cannot await."""
        self._cancel()

    def _cancel(self) -> Optional[asyncio.Task]:
        if self.state == TrackerState.STOPPED and self._task is None:
            return None

        subscription, self._subscription = self._subscription, None
        task, self._task = self._task, None

        if subscription is not None:
            subscription.cancel()
        if task is not None and not task.done():
            task.cancel()

        if self.tracking_id is not None:
            _LOGGER.info("Live location tracking stopped for %s", self.tracking_id)
        self.state = transition_tracker(self.state, TrackerState.STOPPED)
        self.tracking_id = None
        return task

    # ------------------------------------------------------------------
    # Sample handling
    # ------------------------------------------------------------------

    def accept(self, record: Mapping[str, Any]) -> Optional[LocationSample]:
        """
        Validate one raw record. Returns the normalized sample, or None when it
        must be dropped (invalid coordinates, no timestamp, not newer than the
        last applied sample).
        """
        try:
            sample = LocationSample.from_record(record)
        except (ValidationError, DataIntegrityWarning) as exc:
            self._invalid_streak += 1
            if self._invalid_streak == 1:
                _LOGGER.warning("Dropping location sample for %s: %s", self.tracking_id, exc)
            else:
                _LOGGER.debug(
                    "Dropping location sample for %s (%d invalid in a row): %s",
                    self.tracking_id, self._invalid_streak, exc,
                )
            return None
        except (AttributeError, TypeError) as exc:
            self._invalid_streak += 1
            _LOGGER.warning("Dropping malformed location record for %s: %s", self.tracking_id, exc)
            return None

        self._invalid_streak = 0

        if self._last_timestamp is not None and sample.timestamp <= self._last_timestamp:
            _LOGGER.debug(
                "Dropping stale location sample for %s (%s <= %s)",
                self.tracking_id, sample.timestamp, self._last_timestamp,
            )
            return None

        self._last_timestamp = sample.timestamp
        return sample

    async def _consume(self, subscription: Subscription) -> None:
        async for record in subscription:
            sample = self.accept(record)
            if sample is None:
                continue
            _LOGGER.debug("Accepted location %s for %s", sample.coordinates, self.tracking_id)
            await self._emit(sample)

    async def _emit(self, sample: LocationSample) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(sample)
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # noqa: BLE001
                _LOGGER.warning("Location listener failed for %s: %s", self.tracking_id, exc)

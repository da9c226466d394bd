"""
Purpose: Interfaces of the external stores the engine reads from, plus
in-memory implementations used by tests and the simulation script.

- ParcelRecordStore: one parcel document per tracking id
- EventLogStore: append-only status events per tracking id
- AssignmentStore: last courier coordinates per tracking id

All reads are async. Watches return a Subscription the caller must cancel.
Rule: the engine never writes to these stores; the in-memory writers exist
to play the role of the out-of-scope producers.
"""
from __future__ import annotations

import copy
from typing import Any, Dict, List, Mapping, Optional, Protocol

from .models import Parcel
from .subscriptions import Subscription
from .timestamps import to_epoch_millis

Record = Dict[str, Any]


class ParcelRecordStore(Protocol):
    async def get_by_tracking_id(self, tracking_id: str) -> Optional[Parcel]:
        ...


class EventLogStore(Protocol):
    async def query_by_tracking_id(self, tracking_id: str) -> List[Record]:
        ...

    def watch_by_tracking_id(self, tracking_id: str) -> Subscription[List[Record]]:
        ...


class AssignmentStore(Protocol):
    async def latest_by_tracking_id(self, tracking_id: str) -> Optional[Record]:
        ...

    def watch_by_tracking_id(self, tracking_id: str) -> Subscription[Record]:
        ...


class _Watchers:
    """Registry of open subscriptions per tracking id."""

    def __init__(self) -> None:
        self._by_id: Dict[str, List[Subscription]] = {}

    def open(self, tracking_id: str, name: str) -> Subscription:
        subscription: Subscription = Subscription(
            name=f"{name}:{tracking_id}",
            on_cancel=lambda: self._remove(tracking_id, subscription),
        )
        self._by_id.setdefault(tracking_id, []).append(subscription)
        return subscription

    def publish(self, tracking_id: str, item: Any) -> None:
        for subscription in list(self._by_id.get(tracking_id, ())):
            subscription.push(item)

    def count(self, tracking_id: str) -> int:
        return len(self._by_id.get(tracking_id, ()))

    def _remove(self, tracking_id: str, subscription: Subscription) -> None:
        subscriptions = self._by_id.get(tracking_id, [])
        if subscription in subscriptions:
            subscriptions.remove(subscription)
        if not subscriptions:
            self._by_id.pop(tracking_id, None)


class InMemoryParcelStore:
    """
    Parcel documents keyed by tracking id, stored raw (as the producers write
    them) and normalized on read.
    """

    def __init__(self, records: Optional[List[Mapping[str, Any]]] = None) -> None:
        self._records: Dict[str, Record] = {}
        for record in records or ():
            self.put(record)

    def put(self, record: Mapping[str, Any]) -> None:
        tracking_id = record.get("trackingId") or record.get("tracking_id")
        if not tracking_id:
            raise ValueError("record must carry a trackingId")
        self._records[tracking_id] = dict(record)

    def update(self, tracking_id: str, **fields: Any) -> None:
        self._records[tracking_id].update(fields)

    async def get_by_tracking_id(self, tracking_id: str) -> Optional[Parcel]:
        record = self._records.get(tracking_id)
        if record is None:
            return None
        return Parcel.from_record(record)


class InMemoryEventLogStore:
    """
    Append-only event log. Watchers receive the full, time-ordered history
    after every append (snapshot semantics, like a live query).
    """

    def __init__(self) -> None:
        self._entries: Dict[str, List[Record]] = {}
        self._watchers = _Watchers()

    def append(self, tracking_id: str, entry: Mapping[str, Any]) -> None:
        record = dict(entry)
        record.setdefault("trackingId", tracking_id)
        self._entries.setdefault(tracking_id, []).append(record)
        self._watchers.publish(tracking_id, self._snapshot(tracking_id))

    def watcher_count(self, tracking_id: str) -> int:
        return self._watchers.count(tracking_id)

    async def query_by_tracking_id(self, tracking_id: str) -> List[Record]:
        return self._snapshot(tracking_id)

    def watch_by_tracking_id(self, tracking_id: str) -> Subscription[List[Record]]:
        return self._watchers.open(tracking_id, "event-log")

    def _snapshot(self, tracking_id: str) -> List[Record]:
        entries = copy.deepcopy(self._entries.get(tracking_id, []))
        # unparseable timestamps sort first; the timeline builder drops them
        entries.sort(key=lambda entry: to_epoch_millis(entry.get("timestamp")) or 0)
        return entries


class InMemoryAssignmentStore:
    """
    Last reported courier coordinates per tracking id. report_location()
    stands in for the courier-side location reporter.
    """

    def __init__(self) -> None:
        self._latest: Dict[str, Record] = {}
        self._watchers = _Watchers()

    def report_location(self, tracking_id: str, record: Mapping[str, Any]) -> None:
        self._latest[tracking_id] = dict(record)
        self._watchers.publish(tracking_id, dict(record))

    def watcher_count(self, tracking_id: str) -> int:
        return self._watchers.count(tracking_id)

    async def latest_by_tracking_id(self, tracking_id: str) -> Optional[Record]:
        record = self._latest.get(tracking_id)
        return dict(record) if record is not None else None

    def watch_by_tracking_id(self, tracking_id: str) -> Subscription[Record]:
        return self._watchers.open(tracking_id, "assignment")

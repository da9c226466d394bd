import asyncio

import pytest

from tracking.location_tracker import LiveLocationTracker
from tracking.state_machines import TrackerState


def location(lat, lng, minute):
    return {"lat": lat, "lng": lng, "timestamp": f"2024-01-01T10:{minute:02d}:00Z"}


@pytest.fixture
def tracker(stores):
    return LiveLocationTracker(stores.assignments)


def test_accept_validates_and_orders_samples(tracker):
    assert tracker.accept(location(95.0, 101.7, 30)) is None
    assert tracker.last_timestamp is None

    sample = tracker.accept(location(3.15, 101.7, 30))
    assert sample.coordinates == (3.15, 101.7)

    # same or older timestamp: stale
    assert tracker.accept(location(3.16, 101.71, 30)) is None
    assert tracker.accept(location(3.16, 101.71, 20)) is None
    assert tracker.last_timestamp == sample.timestamp

    assert tracker.accept({"lat": 3.16, "lng": 101.71}) is None
    assert tracker.accept(location(3.16, 101.71, 35)) is not None


def test_each_valid_sample_is_emitted_once(tracker, stores, eventually):
    received = []
    tracker.add_listener(received.append)

    async def scenario():
        await tracker.start("TRK1")
        assert tracker.is_active
        stores.assignments.report_location("TRK1", location(3.15, 101.70, 30))
        stores.assignments.report_location("TRK1", location(95.0, 101.70, 31))
        stores.assignments.report_location("TRK1", location(3.16, 101.71, 32))
        stores.assignments.report_location("TRK1", location(3.17, 101.72, 31))
        await eventually(lambda: len(received) >= 2)
        await asyncio.sleep(0.05)
        await tracker.stop()

    asyncio.run(scenario())
    assert [sample.coordinates for sample in received] == [(3.15, 101.70), (3.16, 101.71)]


def test_since_drops_positions_already_shown(tracker, stores, eventually):
    received = []
    tracker.add_listener(received.append)
    shown = tracker.accept(location(3.15, 101.70, 30)).timestamp

    async def scenario():
        await tracker.start("TRK1", since=shown)
        stores.assignments.report_location("TRK1", location(3.15, 101.70, 30))
        stores.assignments.report_location("TRK1", location(3.16, 101.71, 35))
        await eventually(lambda: len(received) == 1)
        await tracker.stop()

    asyncio.run(scenario())
    assert received[0].coordinates == (3.16, 101.71)


def test_start_while_active_replaces_subscription(tracker, stores):
    async def scenario():
        await tracker.start("TRK1")
        await tracker.start("TRK2")
        counts = (stores.assignments.watcher_count("TRK1"), stores.assignments.watcher_count("TRK2"))
        state = (tracker.state, tracker.tracking_id)
        await tracker.stop()
        return counts, state

    counts, state = asyncio.run(scenario())
    assert counts == (0, 1)
    assert state == (TrackerState.ACTIVE, "TRK2")
    assert stores.assignments.watcher_count("TRK2") == 0


def test_stop_is_idempotent(tracker, stores):
    async def scenario():
        await tracker.stop()
        await tracker.start("TRK1")
        await tracker.stop()
        await tracker.stop()
        tracker.stop_nowait()

    asyncio.run(scenario())
    assert tracker.state == TrackerState.STOPPED
    assert tracker.tracking_id is None
    assert stores.assignments.watcher_count("TRK1") == 0


def test_no_updates_after_stop(tracker, stores):
    received = []
    tracker.add_listener(received.append)

    async def scenario():
        await tracker.start("TRK1")
        await tracker.stop()
        stores.assignments.report_location("TRK1", location(3.15, 101.70, 30))
        await asyncio.sleep(0.05)

    asyncio.run(scenario())
    assert received == []


def test_failing_listener_does_not_block_others(tracker, stores, eventually):
    received = []

    def broken(sample):
        raise RuntimeError("render failed")

    async def async_listener(sample):
        received.append(sample)

    tracker.add_listener(broken)
    remove = tracker.add_listener(async_listener)

    async def scenario():
        await tracker.start("TRK1")
        stores.assignments.report_location("TRK1", location(3.15, 101.70, 30))
        await eventually(lambda: len(received) == 1)
        remove()
        stores.assignments.report_location("TRK1", location(3.16, 101.71, 31))
        await asyncio.sleep(0.05)
        await tracker.stop()

    asyncio.run(scenario())
    assert len(received) == 1


def test_subscription_failure_leaves_tracker_stopped():
    class BrokenStore:
        def watch_by_tracking_id(self, tracking_id):
            raise ConnectionError("permission denied")

    tracker = LiveLocationTracker(BrokenStore())
    with pytest.raises(ConnectionError):
        asyncio.run(tracker.start("TRK1"))
    assert tracker.state == TrackerState.STOPPED



def test_stop_after_stream_error():
    class BrokenStream:
        def cancel(self):
            pass

        def __aiter__(self):
            return self

        async def __anext__(self):
            raise ConnectionError("stream reset")

    class Store:
        def watch_by_tracking_id(self, tracking_id):
            return BrokenStream()

    tracker = LiveLocationTracker(Store())

    async def scenario():
        await tracker.start("TRK1")
        await asyncio.sleep(0.01)
        await tracker.stop()

    asyncio.run(scenario())
    assert tracker.state == TrackerState.STOPPED
    assert tracker.tracking_id is None

"""
End-to-end tracking run against in-memory stores.

Loads the CSVs written by generate_mock_parcels.py, looks up a handful of
parcels with a TrackingSession wired to the real OSRM / Nominatim endpoints
(from .env), replays the courier positions and prints what a user would see.
"""
import argparse
import asyncio
import logging
import os
from typing import List

import pandas as pd

from parcels.stores import InMemoryAssignmentStore, InMemoryEventLogStore, InMemoryParcelStore
from tracking.session import LookupOutcome, TrackingSnapshot, create_session

BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def _records(filepath: str) -> List[dict]:
    absolute_path = os.path.join(BASE_DIR, filepath)
    df = pd.read_csv(absolute_path, keep_default_na=False)
    return df.to_dict(orient="records")


def print_snapshot(snapshot: TrackingSnapshot) -> None:
    coordinates = snapshot.map_coordinates
    eta = snapshot.estimated_delivery
    print(f"  status: {snapshot.parcel.status_text}")
    print(f"  at: {coordinates.current_description} {coordinates.current}")
    if snapshot.route.available:
        print(f"  route: {coordinates.route_distance_km:.1f} km by road")
    else:
        print(f"  route: unavailable ({snapshot.route.reason}), drawing a straight line")
    if eta is not None:
        print(f"  ETA: {eta.day_name}, {eta.formatted_date} {eta.time_window} ({eta.days_remaining} days)")
    for event in snapshot.timeline:
        print(f"    - {event.title}: {event.description} [{event.location}]")


async def run(limit: int, update_delay: float) -> None:
    parcel_store = InMemoryParcelStore(_records("mock_parcels.csv"))
    event_log_store = InMemoryEventLogStore()
    for entry in _records("mock_tracking_history.csv"):
        event_log_store.append(entry["trackingId"], entry)
    assignment_store = InMemoryAssignmentStore()
    positions = _records("mock_courier_locations.csv")

    session = create_session(parcel_store, event_log_store, assignment_store)
    session.add_listener(lambda snapshot: print(f"  ↻ update: {snapshot.map_coordinates.current}"))

    tracking_ids = [record["trackingId"] for record in _records("mock_parcels.csv")][:limit]
    try:
        for tracking_id in tracking_ids:
            print(f"\nTracking {tracking_id}...")
            result = await session.lookup(tracking_id)
            if result.outcome != LookupOutcome.FOUND:
                print(f"  {result.message}")
                continue
            print_snapshot(result.snapshot)

            for position in [p for p in positions if p["trackingId"] == tracking_id]:
                assignment_store.report_location(tracking_id, position)
                await asyncio.sleep(update_delay)
    finally:
        await session.close()


def main():
    parser = argparse.ArgumentParser(description="Replay mock parcels through a tracking session")
    parser.add_argument("--limit", type=int, default=5)
    parser.add_argument("--update-delay", type=float, default=1.5)
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    asyncio.run(run(args.limit, args.update_delay))


if __name__ == "__main__":
    main()

import pandas as pd
import numpy as np
import uuid
from datetime import datetime, timezone, timedelta

STATUSES = ["Registered", "In Transit", "Out for Delivery", "Delivered"]

# handler-only statuses the producers also write to the log
NOISE_STATUSES = ["Assigned for delivery", "Photo verification submitted", "Pending"]


def generate_mock_parcels(num_parcels=50, parcels_file="mock_parcels.csv",
                          events_file="mock_tracking_history.csv",
                          locations_file="mock_courier_locations.csv"):
    """
    Generates parcels, their tracking history and courier positions for the
    tracking simulation. History deliberately contains the kind of noise the
    timeline builder has to deal with: near-duplicate entries, handler-only
    statuses and the odd out-of-range courier coordinate.
    """
    # Center around Kuala Lumpur
    CENTER_LAT = 3.139003
    CENTER_LON = 101.686855

    now = datetime.now(timezone.utc)
    parcels, events, locations = [], [], []

    for parcel_index in range(num_parcels):
        tracking_id = f"TRK{str(uuid.uuid4())[:8].upper()}"
        created_at = now - timedelta(hours=int(np.random.randint(2, 96)))
        stage = int(np.random.randint(0, len(STATUSES)))

        pickup_lat = CENTER_LAT + np.random.uniform(-0.1, 0.1)
        pickup_lon = CENTER_LON + np.random.uniform(-0.1, 0.1)

        parcels.append({
            "trackingId": tracking_id,
            "status": STATUSES[stage],
            "senderName": f"Sender {parcel_index + 1}",
            "receiverName": f"Receiver {parcel_index + 1}",
            "receiverAddress": f"{np.random.randint(1, 200)} Jalan Ampang, Kuala Lumpur",
            "pickupLocation": f"Hub {np.random.randint(1, 6)}, Petaling Jaya",
            "createdAt": created_at.isoformat(),
            "updatedAt": (created_at + timedelta(hours=stage * 6)).isoformat(),
            "deliverymanName": f"Courier {np.random.randint(1, 20)}" if stage >= 2 else "",
        })

        # one log entry per reached stage (Registered comes from the parcel record)
        for step in range(1, stage + 1):
            timestamp = created_at + timedelta(hours=step * 6)
            events.append({
                "trackingId": tracking_id,
                "status": STATUSES[step],
                "timestamp": timestamp.isoformat(),
                "location": f"Hub {np.random.randint(1, 6)}, Kuala Lumpur",
            })
            # ~20% near-duplicates, a few hundred ms apart
            if np.random.random() < 0.2:
                events.append({
                    "trackingId": tracking_id,
                    "status": STATUSES[step],
                    "timestamp": (timestamp + timedelta(milliseconds=int(np.random.randint(100, 900)))).isoformat(),
                    "location": "",
                })

        if np.random.random() < 0.3:
            events.append({
                "trackingId": tracking_id,
                "status": np.random.choice(NOISE_STATUSES),
                "timestamp": (created_at + timedelta(minutes=30)).isoformat(),
                "location": "",
            })

        # courier positions drifting from the pickup towards the city centre
        if STATUSES[stage] in ("In Transit", "Out for Delivery"):
            for step in range(5):
                lat = pickup_lat + (CENTER_LAT - pickup_lat) * step / 5
                lon = pickup_lon + (CENTER_LON - pickup_lon) * step / 5
                if np.random.random() < 0.1:
                    lat = 95.0  # invalid sample the tracker must drop
                locations.append({
                    "trackingId": tracking_id,
                    "lat": np.round(lat, 6),
                    "lng": np.round(lon, 6),
                    "timestamp": (now + timedelta(minutes=2 * step)).isoformat(),
                })

    pd.DataFrame(parcels).to_csv(parcels_file, index=False)
    pd.DataFrame(events).to_csv(events_file, index=False)
    pd.DataFrame(locations).to_csv(locations_file, index=False)
    print(f"✅ Generated {num_parcels} parcels, {len(events)} log entries and "
          f"{len(locations)} courier positions")

    df = pd.DataFrame(parcels)
    print("\nParcels per status:")
    for status, count in df["status"].value_counts().items():
        print(f"  {status}: {count}")


if __name__ == "__main__":
    generate_mock_parcels(num_parcels=50)

#Purpose: Boundary normalization for timestamps.
#Records reach us as datetime objects, Firestore-style {seconds, nanoseconds}
#objects, epoch numbers (seconds or milliseconds) and ISO-8601 strings.
#Everything is converted to one canonical type (epoch milliseconds, int)
#on ingress so nothing downstream branches on representation.

from __future__ import annotations

import math
from datetime import date, datetime, time, timezone
from typing import Any, Optional

EpochMillis = int

# Numbers below this are treated as epoch seconds (year ~5138 in seconds,
# ~1973 in milliseconds), anything above as epoch milliseconds.
_SECONDS_CUTOFF = 100_000_000_000


def to_epoch_millis(value: Any) -> Optional[EpochMillis]:
    """
    Normalize any supported timestamp representation to epoch milliseconds.

    Returns None when the value is missing or cannot be interpreted.
    Naive datetimes and ISO strings without an offset are taken as UTC.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return int(round(value.timestamp() * 1000))

    if isinstance(value, date):
        return to_epoch_millis(datetime.combine(value, time.min))

    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        if abs(value) < _SECONDS_CUTOFF:
            return int(round(value * 1000))
        return int(round(value))

    if isinstance(value, str):
        return _parse_iso(value)

    # Firestore Timestamp: dict payload or object with .seconds/.nanoseconds
    if isinstance(value, dict):
        seconds = value.get("seconds", value.get("_seconds"))
        nanos = value.get("nanoseconds", value.get("_nanoseconds", 0))
    else:
        seconds = getattr(value, "seconds", None)
        nanos = getattr(value, "nanoseconds", 0)

    if isinstance(seconds, (int, float)) and not isinstance(seconds, bool):
        nanos = nanos if isinstance(nanos, (int, float)) else 0
        return int(seconds * 1000 + nanos // 1_000_000)

    return None


def _parse_iso(text: str) -> Optional[EpochMillis]:
    text = text.strip()
    if not text:
        return None
    # fromisoformat() only learned the "Z" suffix in 3.11
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return to_epoch_millis(parsed)


def from_epoch_millis(millis: EpochMillis, tz=timezone.utc) -> datetime:
    """Inverse of to_epoch_millis; returns an aware datetime in tz."""
    return datetime.fromtimestamp(millis / 1000, tz=tz)

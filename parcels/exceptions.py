"""
Error taxonomy for the tracking engine.

- ValidationError: bad input rejected before any I/O (empty tracking id,
  out-of-range coordinates).
- ParcelNotFoundError: the tracking id has no parcel. Reported, never retried.
- TransientProviderError: geocoding / routing / timeout failures. Always
  absorbed by the calling adapter with a fallback.
- DataIntegrityWarning: a single external record is unusable (bad timestamp,
  wrong owner, stale sample). The record is dropped and processing continues.
"""

from __future__ import annotations


class TrackingError(Exception):
    """Base class for every error raised by the tracking engine."""
    pass


class ValidationError(TrackingError, ValueError):
    """Raised when input is rejected before any I/O happens."""
    pass


class InvalidTrackingIdError(ValidationError):
    pass


class InvalidCoordinatesError(ValidationError):
    pass


class ParcelNotFoundError(TrackingError):
    def __init__(self, tracking_id: str):
        super().__init__(f"No parcel found with tracking ID {tracking_id}")
        self.tracking_id = tracking_id


class TransientProviderError(TrackingError):
    """A best-effort external service (geocoding, routing) failed or timed out."""
    pass


class DataIntegrityWarning(TrackingError, UserWarning):
    """An external record could not be normalized and was dropped."""
    pass


class StateTransitionError(TrackingError):
    """Raised when an invalid tracker/session transition is attempted."""
    pass

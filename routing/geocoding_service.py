"""
Geocoding Adapter: best-effort, async wrapper around a geocoding provider.

Responsibilities:
- Run the blocking provider client off the event loop with a hard timeout.
- Validate what comes back (coordinates in range, non-empty address text).
- Cache forward lookups per normalized address so repeated lookups of the same
  receiver address do not hit the provider again. The cache is a bounded LRU.
- Never raise for provider trouble: transient errors and timeouts are logged
  and reported as None so callers fall back.
"""
from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol, Tuple

from parcels.exceptions import TransientProviderError
from parcels.models import is_valid_coordinate

_LOGGER = logging.getLogger(__name__)

LatLon = Tuple[float, float]


class GeocodingProvider(Protocol):
    def forward(self, address: str) -> Optional[Dict[str, Any]]:
        ...

    def reverse(self, lat: float, lng: float) -> Optional[Dict[str, Any]]:
        ...


@dataclass(frozen=True)
class GeocodeResult:
    lat: float
    lng: float
    formatted_address: str

    @property
    def coordinates(self) -> LatLon:
        return (self.lat, self.lng)


def describe_coordinates(lat: float, lng: float) -> str:
    """Fallback description used when reverse geocoding has nothing."""
    return f"Near {lat:.5f}, {lng:.5f}"


class GeocodingAdapter:
    """
    Async facade over a (synchronous) geocoding provider client.
    """

    def __init__(self, provider: GeocodingProvider, timeout: float = 8.0, cache_size: int = 256) -> None:
        if cache_size < 1:
            raise ValueError("cache_size must be at least 1")
        self.provider = provider
        self.timeout = timeout
        self.cache_size = cache_size
        # normalized address -> result (None is cached too: "provider has no answer")
        self._forward_cache: OrderedDict[str, Optional[GeocodeResult]] = OrderedDict()

    def clear_cache(self) -> None:
        self._forward_cache.clear()

    async def forward(self, address: Optional[str]) -> Optional[GeocodeResult]:
        """Address → coordinates, or None when unknown/unavailable."""
        if not address or not address.strip():
            return None

        key = " ".join(address.lower().split())
        if key in self._forward_cache:
            _LOGGER.debug("Geocode cache hit for %r", address)
            self._forward_cache.move_to_end(key)
            return self._forward_cache[key]

        try:
            raw = await self._call(self.provider.forward, address)
        except TransientProviderError as exc:
            # transient: do not cache, the next lookup may succeed
            _LOGGER.warning("Forward geocoding failed for %r: %s", address, exc)
            return None

        result = _to_result(raw, fallback_address=address)
        if raw is not None and result is None:
            _LOGGER.warning("Discarding invalid geocoding result for %r: %s", address, raw)
        self._forward_cache[key] = result
        if len(self._forward_cache) > self.cache_size:
            self._forward_cache.popitem(last=False)
        return result

    async def reverse(self, lat: float, lng: float) -> Optional[str]:
        """Coordinates → human-readable address, or None when unknown/unavailable."""
        if not is_valid_coordinate(lat, lng):
            return None
        try:
            raw = await self._call(self.provider.reverse, lat, lng)
        except TransientProviderError as exc:
            _LOGGER.warning("Reverse geocoding failed for (%.5f, %.5f): %s", lat, lng, exc)
            return None

        if not isinstance(raw, dict):
            return None
        address = raw.get("formatted_address")
        return address if isinstance(address, str) and address.strip() else None

    async def _call(self, func, *args):
        try:
            return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            raise TransientProviderError(f"geocoding timed out after {self.timeout}s") from exc


def _to_result(raw: Optional[Dict[str, Any]], fallback_address: str) -> Optional[GeocodeResult]:
    if not isinstance(raw, dict):
        return None
    lat, lng = raw.get("lat"), raw.get("lng")
    if not is_valid_coordinate(lat, lng):
        return None
    return GeocodeResult(
        lat=float(lat),
        lng=float(lng),
        formatted_address=raw.get("formatted_address") or fallback_address,
    )

#Purpose: Route computation for downstream use (Routing Adapter).
#Returns the “best route” information needed by:
#map display / polyline geometry
#route distance shown next to the ETA
#Uses OSRM /route (via OSRMClient) and never raises: when the provider fails
#or times out the result says "route unavailable" and carries a straight line
#between the two points so the map layer can still draw something.

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Tuple

from parcels.exceptions import TransientProviderError
from parcels.models import is_valid_coordinate

from .geo import haversine_km, straight_line

_LOGGER = logging.getLogger(__name__)

LatLon = Tuple[float, float]


class RoutingProvider(Protocol):
    def compute_route(self, coordinates: List[LatLon]) -> Dict[str, Any]:
        ...


@dataclass(frozen=True)
class RouteResult:
    """
    Output of a route resolution.

    available=False means the polyline is the straight-line fallback and
    distance_km is the haversine distance.
    """
    origin: LatLon
    destination: LatLon
    available: bool
    polyline: List[LatLon] = field(default_factory=list)
    distance_km: Optional[float] = None
    duration_s: Optional[float] = None
    reason: Optional[str] = None

    @classmethod
    def fallback(cls, origin: LatLon, destination: LatLon, reason: str) -> RouteResult:
        return cls(
            origin=origin,
            destination=destination,
            available=False,
            polyline=straight_line(origin, destination),
            distance_km=haversine_km(origin, destination),
            reason=reason,
        )


class RoutingAdapter:
    """
    Async facade over a (synchronous) routing provider client.
    """

    def __init__(self, provider: RoutingProvider, timeout: float = 10.0) -> None:
        self.provider = provider
        self.timeout = timeout

    async def resolve(self, origin: LatLon, destination: LatLon) -> RouteResult:
        if not (is_valid_coordinate(*origin) and is_valid_coordinate(*destination)):
            #fail closed : nothing sensible to ask the provider
            return RouteResult(origin=origin, destination=destination, available=False,
                               reason="invalid coordinates")

        try:
            route = await asyncio.wait_for(
                asyncio.to_thread(self.provider.compute_route, [origin, destination]),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            _LOGGER.warning("Routing timed out after %ss; using straight line", self.timeout)
            return RouteResult.fallback(origin, destination, "routing timed out")
        except (TransientProviderError, ValueError) as exc:
            _LOGGER.warning("Routing failed (%s); using straight line", exc)
            return RouteResult.fallback(origin, destination, str(exc))

        try:
            distance_km = float(route["distance"]) / 1000.0
            duration_s = float(route["duration"])
        except (KeyError, TypeError, ValueError):
            _LOGGER.warning("Malformed routing response %r; using straight line", route)
            return RouteResult.fallback(origin, destination, "malformed routing response")

        polyline = [
            tuple(point) for point in _as_list(route.get("geometry"))
            if isinstance(point, (list, tuple)) and len(point) == 2 and is_valid_coordinate(*point)
        ]
        if len(polyline) < 2:
            polyline = straight_line(origin, destination)

        return RouteResult(
            origin=origin,
            destination=destination,
            available=True,
            polyline=polyline,
            distance_km=distance_km,
            duration_s=duration_s,
        )


def _as_list(value: Any) -> list:
    return list(value) if isinstance(value, (list, tuple)) else []

#Marks routing as a package.
#Re-exports clean public APIs (OSRMClient, NominatimClient, the async
#adapters, estimate) so other modules import from routing without knowing
#internal file names.
#No business logic.

from .eta_policy import EtaPolicy, default_eta_policy
from .eta_service import estimate
from .geo import haversine_km
from .geocoding_client import GeocodingError, NominatimClient
from .geocoding_service import GeocodeResult, GeocodingAdapter
from .osrm_client import OSRMClient, OSRMError
from .route_service import RouteResult, RoutingAdapter

__all__ = [
           "estimate",
           "EtaPolicy",
           "default_eta_policy",
           "haversine_km",
           "OSRMClient",
           "OSRMError",
           "NominatimClient",
           "GeocodingError",
           "GeocodingAdapter",
           "GeocodeResult",
           "RoutingAdapter",
           "RouteResult",
             ]

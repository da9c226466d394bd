#Purpose: The OSRM “adapter/client” (Routing Provider).
#Sole responsibility: talk to OSRM via HTTP and return normalized outputs.
#Encapsulates OSRM-specific details:
#coordinate formatting (lon,lat)
#URL construction (/route)
#timeouts and error handling
#parsing response JSON (including the GeoJSON geometry) into our internal shape
#It should not contain fallback rules or ETA logic.


from dotenv import load_dotenv
import os
from typing import List, Tuple, Dict, Any

import requests

from parcels.exceptions import TransientProviderError

# Read OSRM base URL from environment
# Example in .env:
# OSRM_BASE_URL=http://router.project-osrm.org
load_dotenv()
BASE_URL = os.getenv("OSRM_BASE_URL", "https://router.project-osrm.org")
PROFILE = os.getenv("OSRM_PROFILE", "driving")

# Internal coordinate type: (lat, lon)
LatLon = Tuple[float, float]

class OSRMError(TransientProviderError):
    """Custom exception for OSRM client errors (HTTP, timeout, no route)."""
    pass

class OSRMClient:
    """
    OSRM Adapter / Client

    Sole responsibility:
    - Talk to OSRM via HTTP
    - Convert internal (lat, lon) → OSRM (lon,lat)
    - Return normalized outputs

    """
    def __init__(self, base_url: str = None, profile: str = None, timeout: int = 5):
        self.base_url = (base_url or BASE_URL or "").rstrip("/")
        self.timeout = timeout #the time to wait for a response from OSRM before giving up
        self.profile = profile or PROFILE #the mode of transportation (driving, walking, cycling)

        if not self.base_url:
            raise ValueError("OSRM base URL not set. Please set OSRM_BASE_URL in the .env file.")

        #----------------
        # Internal helper methods for coordinate formatting
        #----------------
    def format_coordinates(self, coords: List[LatLon]) -> str:

        """Convert list of (lat, lon) to OSRM format 'lon,lat;lon,lat;...'"""
        return ';'.join([f"{lon},{lat}" for lat, lon in coords])
        #----------------
        # Public methods
        #----------------
    def compute_route(self, coordinates: List[LatLon]
                          ) -> Dict[str, Any]:

        """
            calls the OSRM /route endpoint with the given coordinates and
            returns the road-following path

            Returns:
                {
                    "distance": float, # in meters
                    "duration": float, # in seconds
                    "geometry": List[(lat, lon)], # ordered polyline
                }

            Raises:
                OSRMError on timeout, HTTP failure or when OSRM finds no route
        """
        if len(coordinates) < 2:
                raise ValueError("At least two coordinates are required to compute a route.")

        formatted = self.format_coordinates(coordinates)
        url = f"{self.base_url}/route/v1/{self.profile}/{formatted}"

        try:
            response = requests.get(
                url,
                params = {
                    "overview": "full", # we need the geometry to draw the route
                    "geometries": "geojson",
                      },
                    timeout= self.timeout
            )
            data = response.json() #OSRM returns a JSON response with routes, each containing distance and duration
        except requests.Timeout as exc:
            raise OSRMError(f"OSRM request timed out after {self.timeout}s") from exc
        except (requests.RequestException, ValueError) as exc:
            raise OSRMError(f"OSRM request failed: {exc}") from exc

        #validating OSRM response
        if not isinstance(data, dict):
            raise OSRMError(f"OSRM returned an unexpected payload: {data!r}")
        if data.get("code") != "Ok" or not data.get("routes"):
            raise OSRMError(f"OSRM error: {data.get('message', data.get('code', 'Unknown error'))}")

        try:
            route = data["routes"][0] #take the first route (OSRM may return alternatives)

            #GeoJSON coordinates are [lon, lat]; flip back to our (lat, lon)
            geometry = [
                (float(point[1]), float(point[0]))
                for point in (route.get("geometry") or {}).get("coordinates", [])
            ]

            #Normalize output to internal format
            return {
                "distance": float(route["distance"]),
                "duration": float(route["duration"]),
                "geometry": geometry,
            }
        except (KeyError, IndexError, TypeError, ValueError, AttributeError) as exc:
            raise OSRMError(f"Malformed OSRM route: {exc!r}") from exc

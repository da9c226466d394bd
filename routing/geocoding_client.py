#Purpose: The Nominatim “adapter/client” (Geocoding Provider).
#Sole responsibility: talk to Nominatim via HTTP and return normalized outputs.
#Encapsulates Nominatim-specific details:
#/search (address → coordinates) and /reverse (coordinates → address)
#User-Agent header and the 1 request/second usage policy
#timeouts and error handling
#"no result" is returned as None; transport failures raise GeocodingError.


from dotenv import load_dotenv
import os
import threading
import time
from typing import Dict, Any, Optional

import requests

from parcels.exceptions import TransientProviderError

# Example in .env:
# NOMINATIM_BASE_URL=https://nominatim.openstreetmap.org
# NOMINATIM_USER_AGENT=my-tracking-app/1.0 (ops@example.com)
load_dotenv()
BASE_URL = os.getenv("NOMINATIM_BASE_URL", "https://nominatim.openstreetmap.org")
USER_AGENT = os.getenv("NOMINATIM_USER_AGENT", "parcel-tracking-engine/0.1")

MIN_REQUEST_INTERVAL_S = 1.0


class GeocodingError(TransientProviderError):
    """Custom exception for geocoding transport/HTTP errors (distinct from 'no result')."""
    pass


class NominatimClient:
    """
    Nominatim Adapter / Client

    - forward(address) -> {"lat", "lng", "formatted_address"} | None
    - reverse(lat, lng) -> {"formatted_address"} | None
    """

    def __init__(
        self,
        base_url: str = None,
        user_agent: str = None,
        timeout: int = 5,
        min_request_interval_s: float = MIN_REQUEST_INTERVAL_S,
    ):
        self.base_url = (base_url or BASE_URL).rstrip("/")
        self.timeout = timeout
        self.min_request_interval_s = min_request_interval_s
        self._headers = {
            "User-Agent": user_agent or USER_AGENT,
            "Accept": "application/json",
        }
        # requests are spaced out across threads sharing one client
        self._lock = threading.Lock()
        self._last_request_at = 0.0

    def forward(self, address: str) -> Optional[Dict[str, Any]]:
        if not address or not address.strip():
            return None

        data = self._get("/search", {"q": address.strip(), "format": "json", "limit": 1})
        if not data:
            return None
        if not isinstance(data, list) or not isinstance(data[0], dict):
            raise GeocodingError(f"Unexpected Nominatim search payload: {data!r}")

        best = data[0]
        try:
            return {
                "lat": float(best["lat"]),
                "lng": float(best["lon"]),
                "formatted_address": best.get("display_name") or address,
            }
        except (KeyError, TypeError, ValueError) as exc:
            raise GeocodingError(f"Malformed Nominatim search result: {exc!r}") from exc

    def reverse(self, lat: float, lng: float) -> Optional[Dict[str, Any]]:
        data = self._get(
            "/reverse",
            {"lat": lat, "lon": lng, "format": "json", "zoom": 18, "addressdetails": 1},
        )
        if not data:
            return None
        if not isinstance(data, dict):
            raise GeocodingError(f"Unexpected Nominatim reverse payload: {data!r}")
        if "error" in data or not isinstance(data.get("display_name"), str) or not data["display_name"]:
            return None
        return {"formatted_address": data["display_name"]}

    #----------------
    # Internal helpers
    #----------------

    def _get(self, path: str, params: Dict[str, Any]) -> Any:
        with self._lock:
            wait = self.min_request_interval_s - (time.monotonic() - self._last_request_at)
            if wait > 0:
                time.sleep(wait)
            self._last_request_at = time.monotonic()

        try:
            response = requests.get(
                f"{self.base_url}{path}",
                params=params,
                headers=self._headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
            return response.json()
        except requests.Timeout as exc:
            raise GeocodingError(f"Nominatim request timed out after {self.timeout}s") from exc
        except (requests.RequestException, ValueError) as exc:
            raise GeocodingError(f"Nominatim request failed: {exc}") from exc

"""
Google Maps Geocoding API client for turning addresses into coordinates.
"""

import logging
import time
from typing import Any, Callable, Dict, Optional

import requests

from ..domain.exceptions import GeocodingError
from ..domain.models import Location
from ..services.ports import CachePort
from .cache import NullCache

logger = logging.getLogger(__name__)

# API statuses worth another attempt; everything else is final
RETRYABLE_STATUSES = {"OVER_QUERY_LIMIT", "UNKNOWN_ERROR"}


class GeocodingClient:
    """
    Client for the Google Geocoding ``/geocode/json`` endpoint.

    Transient failures (network errors, HTTP errors, quota responses) are
    retried with exponential backoff. Addresses that simply do not resolve
    return None right away. Successful lookups are cached.
    """

    GEOCODE_ENDPOINT = "https://maps.googleapis.com/maps/api/geocode/json"

    def __init__(
        self,
        api_key: Optional[str],
        *,
        region: str = "se",
        max_retries: int = 3,
        retry_delay_seconds: float = 1.0,
        timeout_seconds: float = 10.0,
        cache: Optional[CachePort] = None,
        cache_ttl_seconds: Optional[float] = 86400,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the geocoding client.

        Args:
            api_key: Google Maps API key; lookups return None without one
            region: ccTLD region bias, e.g. "se"
            max_retries: Total attempts per lookup
            retry_delay_seconds: Delay before the second attempt, doubled after each retry
            timeout_seconds: Per-request timeout
            cache: Where resolved addresses are kept
            cache_ttl_seconds: Lifetime of cached results
            session: Optional requests session (connection reuse)
            sleep: Replaced in tests to avoid real waiting
        """
        self.api_key = api_key
        self.region = region
        self.max_retries = max(1, max_retries)
        self.retry_delay_seconds = retry_delay_seconds
        self.timeout_seconds = timeout_seconds
        self.cache = cache if cache is not None else NullCache()
        self.cache_ttl_seconds = cache_ttl_seconds
        self.http = session if session is not None else requests
        self._sleep = sleep

    def geocode(
        self,
        address: str,
        city: Optional[str] = None,
        postal_code: Optional[str] = None,
    ) -> Optional[Location]:
        """
        Resolve an address to a ``Location``.

        Args:
            address: Street address, e.g. "Storgatan 1"
            city: Optional city name
            postal_code: Optional postal code

        Returns:
            The location, or None if the address is unknown or every attempt failed
        """
        if not self.api_key:
            logger.error("Geocoding API key is not configured")
            return None

        query = ", ".join(part for part in (address, city, postal_code) if part)
        if not query:
            logger.error("Geocoding called without any address components")
            return None

        cache_key = f"geocode:{self.region}:{query.lower()}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        delay = self.retry_delay_seconds
        last_error: Optional[Exception] = None
        for attempt in range(1, self.max_retries + 1):
            try:
                location = self._request(query)
            except GeocodingError as exc:
                last_error = exc
                logger.warning(
                    "Geocoding attempt %d/%d failed: %s",
                    attempt,
                    self.max_retries,
                    exc,
                )
                if attempt < self.max_retries:
                    self._sleep(delay)
                    delay *= 2
                continue

            if location is not None:
                self.cache.set(cache_key, location, self.cache_ttl_seconds)
            return location

        logger.error(
            "Geocoding failed after %d attempts. Last error: %s",
            self.max_retries,
            last_error,
        )
        return None

    def _request(self, query: str) -> Optional[Location]:
        """One API call. Raises GeocodingError for failures worth retrying."""
        params = {"address": query, "region": self.region, "key": self.api_key}
        try:
            response = self.http.get(self.GEOCODE_ENDPOINT, params=params, timeout=self.timeout_seconds)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            raise GeocodingError(f"Geocoding request failed: {e}") from e
        except ValueError as e:
            raise GeocodingError(f"Geocoding returned invalid JSON: {e}") from e

        status = data.get("status")
        if status in RETRYABLE_STATUSES:
            raise GeocodingError(f"Geocoding API returned {status}")
        if status != "OK":
            logger.warning("Geocoding failed for %r: %s", query, status)
            return None

        return self._parse_location(data, query)

    @staticmethod
    def _parse_location(data: Dict[str, Any], query: str) -> Optional[Location]:
        """
        Read the first result's coordinates.

        Response format:
        {
            "status": "OK",
            "results": [
                {
                    "formatted_address": "Storgatan 1, 441 30 Alingsås, Sweden",
                    "geometry": {"location": {"lat": 57.93, "lng": 12.53}}
                }
            ]
        }
        """
        try:
            result = data["results"][0]
            coords = result["geometry"]["location"]
            return Location(
                latitude=float(coords["lat"]),
                longitude=float(coords["lng"]),
                address=result.get("formatted_address") or query,
            )
        except (KeyError, IndexError, TypeError, ValueError) as e:
            logger.error("Invalid response structure from Geocoding API: %s", e)
            return None


def is_valid_swedish_coordinates(latitude: float, longitude: float) -> bool:
    """Conservative bounding box for Sweden, excluding the Copenhagen area."""
    in_latitude_range = 55.3 <= latitude <= 69.2
    in_longitude_range = 11.0 <= longitude <= 24.2
    in_copenhagen = 55.6 <= latitude <= 55.8 and 12.4 <= longitude <= 12.7
    return in_latitude_range and in_longitude_range and not in_copenhagen

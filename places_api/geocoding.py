"""
Address geocoding through the Geocodio REST API.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import requests

from places_api.errors import AddressLookupError
from places_api.types import Coordinates

NO_RESULTS_MESSAGE = "Could not find location for specified address."


class Geocoder(Protocol):
    def geocode(self, address: str) -> Coordinates:
        ...


@dataclass
class GeocodioGeocoder:
    """
    Resolves an address with a single Geocodio request. No retries.
    """

    api_key: str
    base_url: str = "https://api.geocod.io/v1.7"
    timeout: float = 10.0

    def geocode(self, address: str) -> Coordinates:
        """
        Args:
            address (str): Free-text postal address.

        Returns:
            Coordinates: Location of the best match.

        Raises:
            AddressLookupError: If the service returns no results.
            requests.RequestException: On transport or HTTP errors.
        """
        response = requests.get(
            f"{self.base_url.rstrip('/')}/geocode",
            params={"q": address, "api_key": self.api_key},
            timeout=self.timeout,
        )
        response.raise_for_status()

        results = response.json().get("results") or []
        if not results:
            raise AddressLookupError(NO_RESULTS_MESSAGE)

        location = results[0]["location"]
        return Coordinates(lat=float(location["lat"]), lng=float(location["lng"]))


@dataclass
class FixedGeocoder:
    """Returns the same coordinates for every address (local development)."""

    lat: float
    lng: float

    def geocode(self, address: str) -> Coordinates:
        return Coordinates(lat=self.lat, lng=self.lng)

"""
Place name to coordinates.

In production, this would call a geocoding API (city, landmark, or
address lookup). ``StaticGeocoder`` resolves from a fixed table.
"""

import logging
from typing import Optional, Protocol

from pydantic import BaseModel

from vendor_assistant.utils import normalize_name

logger = logging.getLogger(__name__)


class Coordinates(BaseModel):
    latitude: float
    longitude: float


class LocationNotFoundError(Exception):
    """The place name could not be resolved to coordinates."""


class Geocoder(Protocol):
    async def resolve(self, place_name: str) -> Coordinates: ...


KNOWN_PLACES: dict[str, Coordinates] = {
    "kanpur": Coordinates(latitude=26.4499, longitude=80.3319),
    "lucknow": Coordinates(latitude=26.8467, longitude=80.9462),
    "delhi": Coordinates(latitude=28.6139, longitude=77.2090),
    "mumbai": Coordinates(latitude=19.0760, longitude=72.8777),
    "bangalore": Coordinates(latitude=12.9716, longitude=77.5946),
}


class StaticGeocoder:
    """Case-insensitive lookup over a fixed place table."""

    def __init__(self, places: Optional[dict[str, Coordinates]] = None) -> None:
        source = KNOWN_PLACES if places is None else places
        self._places = {normalize_name(name): coords for name, coords in source.items()}

    async def resolve(self, place_name: str) -> Coordinates:
        coords = self._places.get(normalize_name(place_name))
        if coords is None:
            logger.info("No coordinates for place '%s'", place_name)
            raise LocationNotFoundError(f"No results found for location: {place_name}")
        return coords

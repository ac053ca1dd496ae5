"""Geolocation abstraction - where "current location" comes from."""
from abc import ABC, abstractmethod
from typing import Optional
from weather_data import Coordinates


class LocationPermissionError(Exception):
    """Location is unavailable or the user has not allowed it."""
    pass


class LocationProviderBase(ABC):
    """Abstract base class for device location sources."""

    @abstractmethod
    def get_position(self) -> Coordinates:
        """
        Return the current position.

        Raises:
            LocationPermissionError: If location is denied or unavailable
        """
        pass


class StaticLocationProvider(LocationProviderBase):
    """Fixed coordinates, typically WEATHER_LAT/WEATHER_LON from the environment."""

    def __init__(self, lat: Optional[float], lon: Optional[float]):
        self.lat = lat
        self.lon = lon

    @classmethod
    def from_strings(cls, lat: Optional[str], lon: Optional[str]) -> "StaticLocationProvider":
        """Parse raw config values; unset or invalid values leave location disabled."""
        try:
            return cls(float(lat), float(lon))
        except (TypeError, ValueError):
            return cls(None, None)

    def get_position(self) -> Coordinates:
        if self.lat is None or self.lon is None:
            raise LocationPermissionError("No location configured")
        if not (-90 <= self.lat <= 90 and -180 <= self.lon <= 180):
            raise LocationPermissionError(f"Invalid coordinates: {self.lat}, {self.lon}")
        return Coordinates(self.lat, self.lon)

"""Weather provider abstraction - allows swapping different weather APIs."""
from abc import ABC, abstractmethod
from typing import List, Optional
from weather_data import ConditionsSnapshot, Coordinates, ForecastPoint, Query, Units


class WeatherProviderBase(ABC):
    """Abstract base class for weather data providers."""

    @abstractmethod
    def get_current(self, query: Query) -> ConditionsSnapshot:
        """
        Fetch current conditions for a city.

        Returns:
            ConditionsSnapshot: Current weather information

        Raises:
            CityNotFoundError: If the provider cannot resolve the city
            TransportError: If the request or response parsing fails
        """
        pass

    @abstractmethod
    def get_current_at(self, coords: Coordinates, units: Units) -> ConditionsSnapshot:
        """Fetch current conditions by coordinates (also used as a reverse lookup)."""
        pass

    @abstractmethod
    def get_forecast(self, query: Query) -> List[ForecastPoint]:
        """Fetch the 5-day / 3-hour forecast as an ordered list of samples."""
        pass


class WeatherProviderError(Exception):
    """Exception raised when a weather provider fails."""
    pass


class CityNotFoundError(WeatherProviderError):
    """The provider answered with a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TransportError(WeatherProviderError):
    """Network failure, timeout or a malformed response body."""
    pass

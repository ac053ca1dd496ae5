"""Weather domain model - pure data structures independent of any API."""
import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional


class Units(str, Enum):
    """Unit system passed straight through to the provider."""
    METRIC = "metric"
    IMPERIAL = "imperial"

    def toggled(self) -> "Units":
        return Units.IMPERIAL if self is Units.METRIC else Units.METRIC

    @property
    def temp_suffix(self) -> str:
        return "°C" if self is Units.METRIC else "°F"

    @property
    def speed_suffix(self) -> str:
        return "m/s" if self is Units.METRIC else "mph"


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lon: float


@dataclass(frozen=True)
class Query:
    """A single city lookup. Built from user input, used once."""
    city: str
    units: Units
    country: Optional[str] = None

    @classmethod
    def from_input(cls, raw: Optional[str], units: Units, country: Optional[str] = None) -> Optional["Query"]:
        """
        Build a query from raw user input.

        Returns:
            Query, or None if the input is empty after trimming
        """
        city = (raw or "").strip()
        if not city:
            return None
        return cls(city=city, units=units, country=country or None)

    @property
    def location(self) -> str:
        """Value for the provider's ``q`` parameter."""
        if self.country:
            return f"{self.city},{self.country}"
        return self.city


@dataclass(frozen=True)
class ConditionsSnapshot:
    """Current conditions for one location at one instant."""
    name: str
    country: str
    timestamp: int  # UNIX timestamp (UTC)
    temp: float
    temp_min: float
    temp_max: float
    humidity: float
    pressure: float
    wind_speed: float
    condition_main: str  # e.g., "Clouds", "Rain", "Clear"
    condition_description: str  # e.g., "broken clouds", "light rain"
    sunrise: int
    sunset: int
    units: Units = Units.METRIC

    wind_deg: Optional[int] = None
    cloudiness: Optional[int] = None  # percentage
    visibility: Optional[int] = None  # metres
    precip_1h: Optional[float] = None  # mm in the last hour, None when not reported

    @property
    def rounded_temp(self) -> int:
        return round_half_up(self.temp)

    def is_daytime(self, now: float) -> bool:
        """True if ``now`` falls within [sunrise, sunset)."""
        return self.sunrise <= now < self.sunset


@dataclass(frozen=True)
class ForecastPoint:
    """One 3-hourly forecast sample."""
    timestamp: int
    temp: float
    temp_min: float
    temp_max: float
    condition_main: str
    condition_description: str = ""
    pop: float = 0.0  # probability of precipitation, 0-1
    wind_speed: Optional[float] = None


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (22.5 -> 23, -0.5 -> 0)."""
    return int(math.floor(value + 0.5))


HOURLY_POINTS = 4
DAILY_STRIDE = 8  # 8 x 3h = 24h
DAILY_POINTS = 5


def hourly_view(points: List[ForecastPoint]) -> List[ForecastPoint]:
    """First four samples (3-hour spacing)."""
    return list(points[:HOURLY_POINTS])


def daily_view(points: List[ForecastPoint]) -> List[ForecastPoint]:
    """Every 8th sample, one per day, at most five."""
    return list(points[::DAILY_STRIDE][:DAILY_POINTS])


@dataclass(frozen=True)
class RecentSearchEntry:
    city: str
    country: str
    temp: int
    condition: str
    searched_at: float
    units: Units = Units.METRIC

    @classmethod
    def from_snapshot(cls, snapshot: ConditionsSnapshot, searched_at: float) -> "RecentSearchEntry":
        return cls(
            city=snapshot.name,
            country=snapshot.country,
            temp=snapshot.rounded_temp,
            condition=snapshot.condition_main,
            searched_at=searched_at,
            units=snapshot.units,
        )


class SessionState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


@dataclass(frozen=True)
class SessionStatus:
    """Session status; ``message`` is only set for ERROR."""
    state: SessionState
    message: Optional[str] = None

    @classmethod
    def idle(cls) -> "SessionStatus":
        return cls(SessionState.IDLE)

    @classmethod
    def loading(cls) -> "SessionStatus":
        return cls(SessionState.LOADING)

    @classmethod
    def ready(cls) -> "SessionStatus":
        return cls(SessionState.READY)

    @classmethod
    def error(cls, message: str) -> "SessionStatus":
        return cls(SessionState.ERROR, message)

    @property
    def is_loading(self) -> bool:
        return self.state is SessionState.LOADING

    @property
    def is_error(self) -> bool:
        return self.state is SessionState.ERROR

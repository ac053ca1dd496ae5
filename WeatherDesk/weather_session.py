"""Weather session - owns search state and mediates every fetch."""
import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, List, Optional
from weather_provider import WeatherProviderBase, WeatherProviderError, CityNotFoundError
from location_provider import LocationProviderBase, LocationPermissionError
from recent_searches import RecentSearches
from weather_data import (
    ConditionsSnapshot,
    ForecastPoint,
    Query,
    RecentSearchEntry,
    SessionStatus,
    Units,
    daily_view,
    hourly_view,
)

CITY_NOT_FOUND_MESSAGE = "City not found. Please try again."
TRANSPORT_ERROR_MESSAGE = "Unable to reach the weather service. Please try again."
LOCATION_ERROR_MESSAGE = "Please enable location services"


class WeatherSession:
    """
    Stateful front for a weather provider.

    Operations return immediately with a Future; provider calls run on a
    worker pool so the caller's thread (the UI) never waits on I/O. Status
    moves to LOADING before any work is submitted.

    Only the most recently issued operation may write state. Each operation
    takes a ticket when issued; when it settles, its result is applied only
    if no newer operation has been issued since. A slow, older search can
    therefore never overwrite a newer one.
    """

    def __init__(
        self,
        provider: WeatherProviderBase,
        default_city: str,
        units: Units = Units.METRIC,
        country: Optional[str] = None,
        location_provider: Optional[LocationProviderBase] = None,
        max_recent: int = 4,
        max_workers: int = 2,
        clock: Callable[[], float] = time.time,
        listener: Optional[Callable[["WeatherSession"], None]] = None,
    ):
        """
        Initialize weather session.

        Args:
            provider: Weather provider to use
            default_city: City fetched by toggle_unit() before any search succeeded
            units: Initial unit system
            country: Optional country code appended to every city query
            location_provider: Source of coordinates for use_current_location()
            max_recent: Size bound for the recent searches list
            max_workers: Worker threads for provider calls
            clock: Returns the current UNIX time; used for day/night and recent entries
            listener: Called with the session after every accepted state change
        """
        default_city = (default_city or "").strip()
        if not default_city:
            raise ValueError("default_city must not be empty")

        self.provider = provider
        self.location_provider = location_provider
        self.default_city = default_city
        self.country = country or None
        self.clock = clock
        self.listener = listener

        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="weather-session")
        self._lock = threading.Lock()
        self._ticket = 0

        self._units = Units(units)
        self._status = SessionStatus.idle()
        self._current: Optional[ConditionsSnapshot] = None
        self._hourly: List[ForecastPoint] = []
        self._daily: List[ForecastPoint] = []
        self._time_of_day: Optional[str] = None
        self._last_city: Optional[str] = None
        self._pending: Optional[Query] = None  # query of the newest unsettled operation
        self._recent = RecentSearches(max_recent)

    # Operations

    def search_city(self, name: Optional[str]) -> Optional[Future]:
        """
        Search a city by name.

        Returns:
            Future that settles when the search is done, or None if the name
            was empty after trimming (nothing changes in that case)
        """
        with self._lock:
            query = Query.from_input(name, self._units, self.country)
            if query is None:
                logging.debug("Ignoring empty search")
                return None
            ticket = self._begin(query)
        logging.info(f"Searching '{query.location}' ({query.units.value}), ticket {ticket}")
        self._notify()
        return self._executor.submit(self._run, ticket, self._search, query)

    def use_current_location(self) -> Future:
        """Resolve the device position to a city name, then search it."""
        with self._lock:
            units = self._units
            ticket = self._begin()
        logging.info(f"Searching current location, ticket {ticket}")
        self._notify()
        return self._executor.submit(self._run, ticket, self._locate, units)

    def toggle_unit(self) -> Future:
        """
        Flip metric/imperial and re-fetch the current city in the new units.

        The current city is the one still loading, if any, else the last
        successful one, else default_city.
        """
        with self._lock:
            self._units = self._units.toggled()
            if self._pending is not None:
                query = Query(city=self._pending.city, units=self._units, country=self._pending.country)
            else:
                city = self._last_city or self.default_city
                query = Query(city=city, units=self._units, country=self.country)
            ticket = self._begin(query)
        logging.info(f"Units now {query.units.value}, re-fetching '{query.location}', ticket {ticket}")
        self._notify()
        return self._executor.submit(self._run, ticket, self._search, query)

    def dismiss_error(self) -> None:
        """Clear an error message; no-op unless the status is ERROR."""
        with self._lock:
            if not self._status.is_error:
                return
            self._status = SessionStatus.ready() if self._current is not None else SessionStatus.idle()
        self._notify()

    def close(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    # Derived views

    @property
    def status(self) -> SessionStatus:
        with self._lock:
            return self._status

    @property
    def current(self) -> Optional[ConditionsSnapshot]:
        with self._lock:
            return self._current

    @property
    def hourly_forecast(self) -> List[ForecastPoint]:
        with self._lock:
            return list(self._hourly)

    @property
    def daily_forecast(self) -> List[ForecastPoint]:
        with self._lock:
            return list(self._daily)

    @property
    def recent_searches(self) -> List[RecentSearchEntry]:
        with self._lock:
            return self._recent.entries()

    @property
    def time_of_day(self) -> Optional[str]:
        """Either "day" or "night" at the displayed location; None when nothing is displayed."""
        with self._lock:
            return self._time_of_day

    @property
    def units(self) -> Units:
        with self._lock:
            return self._units

    @property
    def last_city(self) -> Optional[str]:
        with self._lock:
            return self._last_city

    # Internals

    def _begin(self, pending: Optional[Query] = None) -> int:
        """Issue a new ticket and enter LOADING. Caller holds the lock."""
        self._ticket += 1
        self._pending = pending
        self._status = SessionStatus.loading()
        return self._ticket

    def _run(self, ticket: int, work: Callable, *args) -> bool:
        """Worker entry point; guarantees the operation settles."""
        try:
            return work(ticket, *args)
        except Exception as e:
            logging.exception(f"Unexpected error in session operation {ticket}: {e}")
            return self._fail(ticket, TRANSPORT_ERROR_MESSAGE)

    def _search(self, ticket: int, query: Query) -> bool:
        try:
            snapshot = self.provider.get_current(query)
        except CityNotFoundError as e:
            logging.warning(f"Current conditions lookup failed for '{query.location}': {e}")
            return self._fail(ticket, CITY_NOT_FOUND_MESSAGE)
        except WeatherProviderError as e:
            logging.warning(f"Current conditions request failed for '{query.location}': {e}")
            return self._fail(ticket, TRANSPORT_ERROR_MESSAGE)

        if self._is_superseded(ticket):
            logging.debug(f"Ticket {ticket} superseded, skipping forecast for '{query.location}'")
            return False

        # Current conditions alone are enough to show; forecast failure only empties the forecast
        try:
            points = self.provider.get_forecast(query)
        except WeatherProviderError as e:
            logging.warning(f"Forecast request failed for '{query.location}', showing current conditions only: {e}")
            points = []

        return self._accept(ticket, query, snapshot, points)

    def _locate(self, ticket: int, units: Units) -> bool:
        if self.location_provider is None:
            logging.warning("Current location requested but no location provider is configured")
            return self._fail(ticket, LOCATION_ERROR_MESSAGE)
        try:
            coords = self.location_provider.get_position()
        except LocationPermissionError as e:
            logging.warning(f"Location unavailable: {e}")
            return self._fail(ticket, LOCATION_ERROR_MESSAGE)

        logging.info(f"Resolving place name for {coords.lat}, {coords.lon}")
        try:
            place = self.provider.get_current_at(coords, units)
        except CityNotFoundError as e:
            logging.warning(f"Reverse lookup failed: {e}")
            return self._fail(ticket, CITY_NOT_FOUND_MESSAGE)
        except WeatherProviderError as e:
            logging.warning(f"Reverse lookup request failed: {e}")
            return self._fail(ticket, TRANSPORT_ERROR_MESSAGE)

        query = Query.from_input(place.name, units, place.country or self.country)
        if query is None:
            logging.warning(f"No place name for {coords.lat}, {coords.lon}")
            return self._fail(ticket, CITY_NOT_FOUND_MESSAGE)
        with self._lock:
            if ticket != self._ticket:
                return False
            self._pending = query
        return self._search(ticket, query)

    def _is_superseded(self, ticket: int) -> bool:
        with self._lock:
            return ticket != self._ticket

    def _accept(self, ticket: int, query: Query, snapshot: ConditionsSnapshot, points: List[ForecastPoint]) -> bool:
        now = self.clock()
        with self._lock:
            if ticket != self._ticket:
                logging.debug(f"Discarding result for '{query.location}' (ticket {ticket}, newest {self._ticket})")
                return False
            self._current = snapshot
            self._hourly = hourly_view(points)
            self._daily = daily_view(points)
            self._time_of_day = "day" if snapshot.is_daytime(now) else "night"
            self._last_city = query.city
            self._pending = None
            self._recent.add(RecentSearchEntry.from_snapshot(snapshot, searched_at=now))
            self._status = SessionStatus.ready()
        logging.info(
            f"Weather ready: {snapshot.name}, {snapshot.country} "
            f"{snapshot.temp}{snapshot.units.temp_suffix} {snapshot.condition_main}, "
            f"{len(points)} forecast samples"
        )
        self._notify()
        return True

    def _fail(self, ticket: int, message: str) -> bool:
        with self._lock:
            if ticket != self._ticket:
                logging.debug(f"Discarding error for superseded ticket {ticket}: {message}")
                return False
            self._current = None
            self._hourly = []
            self._daily = []
            self._pending = None
            self._time_of_day = None
            self._status = SessionStatus.error(message)
        logging.info(f"Session error: {message}")
        self._notify()
        return True

    def _notify(self) -> None:
        if self.listener is None:
            return
        try:
            self.listener(self)
        except Exception as e:
            logging.exception(f"Session listener failed: {e}")

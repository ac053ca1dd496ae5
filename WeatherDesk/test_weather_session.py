"""Tests for weather session."""
import threading
import pytest
from unittest.mock import Mock, patch
from openweather_provider import OpenWeatherProvider
from weather_session import (
    WeatherSession,
    CITY_NOT_FOUND_MESSAGE,
    LOCATION_ERROR_MESSAGE,
    TRANSPORT_ERROR_MESSAGE,
)
from weather_provider import WeatherProviderBase, CityNotFoundError, TransportError
from location_provider import LocationProviderBase, LocationPermissionError, StaticLocationProvider
from weather_data import ConditionsSnapshot, Coordinates, ForecastPoint, SessionState, Units

NOW = 1697540000
WAIT = 5


def make_snapshot(name, units=Units.METRIC, temp=None, country="XX", sunrise=NOW - 3600, sunset=NOW + 3600):
    if temp is None:
        temp = 20.4 if units is Units.METRIC else 68.7
    return ConditionsSnapshot(
        name=name,
        country=country,
        timestamp=NOW,
        temp=temp,
        temp_min=temp - 1,
        temp_max=temp + 1,
        humidity=50.0,
        pressure=1010.0,
        wind_speed=3.0,
        condition_main="Clear",
        condition_description="clear sky",
        sunrise=sunrise,
        sunset=sunset,
        units=units,
    )


def make_forecast(count=40):
    return [
        ForecastPoint(timestamp=NOW + i * 10800, temp=float(i), temp_min=float(i), temp_max=float(i),
                      condition_main="Clouds", pop=0.1)
        for i in range(count)
    ]


class MockProvider(WeatherProviderBase):
    """Mock weather provider for testing."""

    def __init__(self, forecast=None, missing=(), forecast_error=None, current_error=None, place=None):
        self.forecast = make_forecast() if forecast is None else forecast
        self.missing = set(missing)
        self.forecast_error = forecast_error
        self.current_error = current_error
        self.place = place or make_snapshot("Greenwich", country="GB")
        self.gates = {}
        self.calls = []
        self._lock = threading.Lock()

    def _record(self, call):
        with self._lock:
            self.calls.append(call)

    def get_current(self, query):
        self._record(("current", query.location, query.units))
        gate = self.gates.get(query.city)
        if gate is not None:
            assert gate.wait(WAIT)
        if self.current_error:
            raise self.current_error
        if query.city in self.missing:
            raise CityNotFoundError("OpenWeather API error 404: city not found", status_code=404)
        return make_snapshot(query.city, query.units)

    def get_current_at(self, coords, units):
        self._record(("current_at", coords, units))
        return self.place

    def get_forecast(self, query):
        self._record(("forecast", query.location, query.units))
        if self.forecast_error:
            raise self.forecast_error
        return self.forecast


class DeniedLocation(LocationProviderBase):
    def get_position(self):
        raise LocationPermissionError("User denied geolocation")


@pytest.fixture
def provider():
    return MockProvider()


@pytest.fixture
def session(provider):
    session = WeatherSession(provider, default_city="New York", clock=lambda: NOW, max_workers=4)
    yield session
    session.close()


def search(session, name):
    future = session.search_city(name)
    assert future is not None
    future.result(timeout=WAIT)


def test_initial_state(session):
    assert session.status.state is SessionState.IDLE
    assert session.current is None
    assert session.hourly_forecast == []
    assert session.daily_forecast == []
    assert session.recent_searches == []
    assert session.time_of_day is None
    assert session.units is Units.METRIC


def test_default_city_required(provider):
    with pytest.raises(ValueError):
        WeatherSession(provider, default_city="  ")


def test_search_success(session, provider):
    """Test that a search fills current, forecast views and recents."""
    search(session, "  London ")

    assert session.status.state is SessionState.READY
    assert session.status.message is None
    assert session.current.name == "London"
    assert session.current.temp == 20.4
    assert len(session.hourly_forecast) == 4
    assert [p.temp for p in session.daily_forecast] == [0.0, 8.0, 16.0, 24.0, 32.0]
    assert session.time_of_day == "day"
    assert session.last_city == "London"
    assert [e.city for e in session.recent_searches] == ["London"]
    assert session.recent_searches[0].temp == 20
    assert provider.calls == [
        ("current", "London", Units.METRIC),
        ("forecast", "London", Units.METRIC),
    ]


def test_search_night(provider):
    """Test that time of day is night outside [sunrise, sunset)."""
    session = WeatherSession(provider, default_city="New York", clock=lambda: NOW + 7200)
    try:
        search(session, "London")
        assert session.time_of_day == "night"
    finally:
        session.close()


def test_blank_search_is_ignored(session, provider):
    assert session.search_city("   ") is None
    assert session.search_city("") is None
    assert session.status.state is SessionState.IDLE
    assert provider.calls == []


def test_search_sets_loading_before_fetch(session, provider):
    """Test that LOADING is visible while the provider is still working."""
    gate = threading.Event()
    provider.gates["London"] = gate

    future = session.search_city("London")
    assert session.status.state is SessionState.LOADING

    gate.set()
    future.result(timeout=WAIT)
    assert session.status.state is SessionState.READY


def test_city_not_found_clears_views(session, provider):
    """Test that a 404 leaves an error and clears the displayed data."""
    provider.missing.add("Xyzzyxville123")
    search(session, "London")
    assert session.current.name == "London"

    search(session, "Xyzzyxville123")

    assert session.status.state is SessionState.ERROR
    assert session.status.message == CITY_NOT_FOUND_MESSAGE
    assert session.current is None
    assert session.hourly_forecast == []
    assert session.daily_forecast == []
    assert session.time_of_day is None
    # Recents survive a failed search
    assert [e.city for e in session.recent_searches] == ["London"]
    # Forecast is never requested after the current lookup fails
    assert ("forecast", "Xyzzyxville123", Units.METRIC) not in provider.calls


def test_transport_error_message(session, provider):
    provider.current_error = TransportError("Network error: connection refused")

    search(session, "London")

    assert session.status.state is SessionState.ERROR
    assert session.status.message == TRANSPORT_ERROR_MESSAGE
    assert session.current is None


def test_unexpected_error_never_leaves_loading(session, provider):
    provider.current_error = RuntimeError("boom")

    search(session, "London")

    assert session.status.state is SessionState.ERROR
    assert session.status.message == TRANSPORT_ERROR_MESSAGE


def test_forecast_failure_keeps_current(session, provider):
    """Test partial success: current shown, forecast empty, status ready."""
    provider.forecast_error = TransportError("Network error: timed out")

    search(session, "London")

    assert session.status.state is SessionState.READY
    assert session.current.name == "London"
    assert session.hourly_forecast == []
    assert session.daily_forecast == []
    assert [e.city for e in session.recent_searches] == ["London"]


def test_search_after_error_recovers(session, provider):
    provider.missing.add("Nowhere")
    search(session, "Nowhere")
    assert session.status.is_error

    search(session, "Paris")

    assert session.status.state is SessionState.READY
    assert session.current.name == "Paris"


def test_recent_searches_bounded_and_deduplicated(session):
    for city in ["London", "Paris", "Tokyo", "Oslo", "Lima", "Paris"]:
        search(session, city)

    recent = [e.city for e in session.recent_searches]
    assert recent == ["Paris", "Lima", "Oslo", "Tokyo"]


def test_repeat_search_moves_to_front(session):
    for city in ["London", "Paris", "Tokyo"]:
        search(session, city)

    search(session, "London")

    assert [e.city for e in session.recent_searches] == ["London", "Tokyo", "Paris"]


def test_later_search_wins_when_earlier_settles_last(session, provider):
    """Paris is issued first but answers after Tokyo; Tokyo must stay displayed."""
    paris_gate = threading.Event()
    provider.gates["Paris"] = paris_gate

    paris = session.search_city("Paris")
    tokyo = session.search_city("Tokyo")

    assert tokyo.result(timeout=WAIT) is True
    assert session.current.name == "Tokyo"

    paris_gate.set()
    assert paris.result(timeout=WAIT) is False

    assert session.current.name == "Tokyo"
    assert session.status.state is SessionState.READY
    assert [e.city for e in session.recent_searches] == ["Tokyo"]


def test_stale_error_does_not_override_newer_result(session, provider):
    gate = threading.Event()
    provider.gates["Nowhere"] = gate
    provider.missing.add("Nowhere")

    stale = session.search_city("Nowhere")
    search(session, "Tokyo")
    gate.set()
    stale.result(timeout=WAIT)

    assert session.status.state is SessionState.READY
    assert session.current.name == "Tokyo"


def test_status_stays_loading_until_newest_settles(session, provider):
    tokyo_gate = threading.Event()
    provider.gates["Tokyo"] = tokyo_gate

    paris = session.search_city("Paris")
    tokyo = session.search_city("Tokyo")
    paris.result(timeout=WAIT)

    assert session.status.state is SessionState.LOADING

    tokyo_gate.set()
    tokyo.result(timeout=WAIT)
    assert session.status.state is SessionState.READY


def test_toggle_unit_refetches_default_city(session, provider):
    """Test toggling before any search fetches the configured default city."""
    session.toggle_unit().result(timeout=WAIT)

    assert session.units is Units.IMPERIAL
    assert session.current.name == "New York"
    assert session.current.units is Units.IMPERIAL
    assert provider.calls[0] == ("current", "New York", Units.IMPERIAL)


def test_toggle_unit_refetches_last_city(session, provider):
    search(session, "London")
    metric_temp = session.current.temp

    session.toggle_unit().result(timeout=WAIT)

    assert session.current.name == "London"
    assert session.current.units is Units.IMPERIAL
    assert session.current.temp == 68.7
    assert provider.calls[-2:] == [
        ("current", "London", Units.IMPERIAL),
        ("forecast", "London", Units.IMPERIAL),
    ]

    session.toggle_unit().result(timeout=WAIT)

    assert session.units is Units.METRIC
    assert session.current.temp == metric_temp
    # Re-fetching the same city does not add a recents entry
    assert [e.city for e in session.recent_searches] == ["London"]


def test_toggle_unit_after_failed_search_uses_last_success(session, provider):
    provider.missing.add("Nowhere")
    search(session, "London")
    search(session, "Nowhere")

    session.toggle_unit().result(timeout=WAIT)

    assert session.current.name == "London"
    assert session.status.state is SessionState.READY


def test_later_searches_use_toggled_units(session, provider):
    session.toggle_unit().result(timeout=WAIT)
    search(session, "Paris")
    assert provider.calls[-1] == ("forecast", "Paris", Units.IMPERIAL)


def test_country_is_appended(provider):
    session = WeatherSession(provider, default_city="Delhi", country="IN")
    try:
        search(session, "Pune")
        assert provider.calls[0] == ("current", "Pune,IN", Units.METRIC)
    finally:
        session.close()


def test_current_location_denied(provider):
    """Test denied geolocation: error shown and no HTTP calls."""
    session = WeatherSession(provider, default_city="New York", location_provider=DeniedLocation())
    try:
        session.use_current_location().result(timeout=WAIT)

        assert session.status.state is SessionState.ERROR
        assert session.status.message == LOCATION_ERROR_MESSAGE
        assert provider.calls == []
    finally:
        session.close()


def test_current_location_not_configured(session, provider):
    session.use_current_location().result(timeout=WAIT)

    assert session.status.message == LOCATION_ERROR_MESSAGE
    assert provider.calls == []


def test_current_location_resolves_and_searches(provider):
    location = StaticLocationProvider(51.48, 0.0)
    session = WeatherSession(provider, default_city="New York", location_provider=location)
    try:
        session.use_current_location().result(timeout=WAIT)

        assert provider.calls[0] == ("current_at", Coordinates(51.48, 0.0), Units.METRIC)
        assert provider.calls[1] == ("current", "Greenwich,GB", Units.METRIC)
        assert session.current.name == "Greenwich"
        assert session.status.state is SessionState.READY
        assert session.last_city == "Greenwich"
    finally:
        session.close()


def test_current_location_superseded_by_search(provider):
    location = StaticLocationProvider(51.48, 0.0)
    session = WeatherSession(provider, default_city="New York", location_provider=location, max_workers=2)
    gate = threading.Event()
    provider.gates["Greenwich"] = gate
    try:
        here = session.use_current_location()
        search(session, "Tokyo")
        gate.set()
        here.result(timeout=WAIT)

        assert session.current.name == "Tokyo"
    finally:
        session.close()


def test_dismiss_error(session, provider):
    provider.missing.add("Nowhere")
    search(session, "Nowhere")

    session.dismiss_error()

    assert session.status.state is SessionState.IDLE
    assert session.status.message is None


def test_dismiss_is_noop_when_ready(session):
    search(session, "London")
    session.dismiss_error()
    assert session.status.state is SessionState.READY


def test_listener_sees_loading_then_ready(provider):
    seen = []
    session = WeatherSession(provider, default_city="New York", listener=lambda s: seen.append(s.status.state))
    try:
        search(session, "London")
    finally:
        session.close()

    assert seen == [SessionState.LOADING, SessionState.READY]


def test_listener_errors_do_not_break_session(provider):
    def broken(_session):
        raise RuntimeError("render failed")

    session = WeatherSession(provider, default_city="New York", listener=broken)
    try:
        search(session, "London")
        assert session.status.state is SessionState.READY
    finally:
        session.close()


def json_response(payload):
    response = Mock()
    response.ok = True
    response.status_code = 200
    response.json.return_value = payload
    return response


def test_malformed_forecast_body_keeps_current():
    """A forecast the provider cannot parse still leaves current conditions on screen."""
    current_body = {
        "weather": [{"main": "Clouds", "description": "scattered clouds"}],
        "main": {"temp": 11.2, "humidity": 70, "pressure": 1008},
        "wind": {"speed": 6.1},
        "dt": NOW,
        "sys": {"country": "GB", "sunrise": NOW - 3600, "sunset": NOW + 3600},
        "name": "London"
    }
    forecast_body = {"list": [{"dt": NOW, "main": {"temp": 10.0}, "weather": ["Clouds"]}]}

    with patch('openweather_provider.requests.get') as mock_get:
        mock_get.side_effect = [json_response(current_body), json_response(forecast_body)]
        session = WeatherSession(OpenWeatherProvider(api_key="test_key"), default_city="New York",
                                 clock=lambda: NOW)
        try:
            search(session, "London")
        finally:
            session.close()

    assert mock_get.call_count == 2
    assert session.status.state is SessionState.READY
    assert session.current.name == "London"
    assert session.hourly_forecast == []
    assert session.daily_forecast == []


def test_toggle_unit_while_loading_refetches_pending_city(session, provider):
    """Toggling during a search switches units for the city being loaded, not the previous one."""
    search(session, "London")
    gate = threading.Event()
    provider.gates["Paris"] = gate

    pending = session.search_city("Paris")
    toggled = session.toggle_unit()
    gate.set()
    pending.result(timeout=WAIT)
    toggled.result(timeout=WAIT)

    assert ("current", "Paris", Units.IMPERIAL) in provider.calls
    assert ("current", "London", Units.IMPERIAL) not in provider.calls
    assert session.current.name == "Paris"
    assert session.current.units is Units.IMPERIAL
    assert session.last_city == "Paris"

"""OpenWeather Current Weather and 5 day / 3 hour Forecast API provider."""
import logging
import requests
from typing import Any, Dict, List
from weather_provider import WeatherProviderBase, CityNotFoundError, TransportError
from weather_data import ConditionsSnapshot, Coordinates, ForecastPoint, Query, Units


class OpenWeatherProvider(WeatherProviderBase):
    """
    Weather provider using the free OpenWeather 2.5 APIs.

    Current weather: https://openweathermap.org/current
    Forecast: https://openweathermap.org/forecast5
    """

    BASE_URL = "https://api.openweathermap.org/data/2.5"

    def __init__(
        self,
        api_key: str,
        lang: str = "en",
        timeout: int = 10,
        base_url: str = BASE_URL,
    ):
        """
        Initialize OpenWeather provider.

        Args:
            api_key: OpenWeather API key
            lang: Language code for descriptions (e.g., "en", "de")
            timeout: HTTP request timeout in seconds
            base_url: API root, without trailing slash
        """
        self.api_key = api_key
        self.lang = lang
        self.timeout = timeout
        self.base_url = base_url.rstrip("/")

    def get_current(self, query: Query) -> ConditionsSnapshot:
        data = self._request("weather", {"q": query.location}, query.units)
        return self._parse_current(data, query.units)

    def get_current_at(self, coords: Coordinates, units: Units) -> ConditionsSnapshot:
        data = self._request("weather", {"lat": coords.lat, "lon": coords.lon}, units)
        return self._parse_current(data, units)

    def get_forecast(self, query: Query) -> List[ForecastPoint]:
        data = self._request("forecast", {"q": query.location}, query.units)
        samples = data.get("list")
        if not isinstance(samples, list):
            logging.error("Forecast response missing 'list'")
            raise TransportError("Forecast response missing 'list'")
        try:
            points = [self._parse_forecast_point(item) for item in samples]
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            logging.error(f"Failed to parse forecast sample: {e}", exc_info=True)
            raise TransportError(f"Failed to parse response: {str(e)}")
        logging.info(f"Parsed {len(points)} forecast samples")
        return points

    def _request(self, endpoint: str, params: Dict[str, Any], units: Units) -> Dict[str, Any]:
        """
        Issue one GET against the API and return the decoded JSON body.

        Raises:
            CityNotFoundError: On a non-2xx response
            TransportError: On network errors or an undecodable body
        """
        url = f"{self.base_url}/{endpoint}"
        params = dict(params)
        params.update({
            "appid": self.api_key,
            "units": Units(units).value,
            "lang": self.lang,
        })

        try:
            logging.info(f"Making OpenWeather API request: {url}")
            safe_params = {k: v for k, v in params.items() if k != "appid"}
            logging.debug(f"Request parameters: {safe_params}")

            response = requests.get(url, params=params, timeout=self.timeout)

            logging.info(f"API response status: {response.status_code}")
        except requests.exceptions.RequestException as e:
            logging.error(f"Network error during API request: {e}")
            raise TransportError(f"Network error: {str(e)}")

        if not response.ok:
            logging.error(f"API request failed with status {response.status_code}")
            self._handle_error_response(response)

        try:
            data = response.json()
        except ValueError as e:
            logging.error(f"Failed to decode API response: {e}")
            raise TransportError(f"Failed to parse response: {str(e)}")
        if not isinstance(data, dict):
            raise TransportError("Unexpected response shape")

        logging.debug(f"API response data keys: {list(data.keys())}")
        logging.debug(f"API response (truncated): {str(data)[:500]}...")
        return data

    def _parse_current(self, data: Dict[str, Any], units: Units) -> ConditionsSnapshot:
        """Map a current weather payload to a ConditionsSnapshot."""
        try:
            weather_array = data.get("weather", [])
            if not weather_array:
                logging.error("Response missing 'weather' array")
                raise TransportError("Response missing 'weather' array")
            weather = weather_array[0]
            logging.debug(f"Weather condition: {weather.get('main')} - {weather.get('description')}")

            main_data = data.get("main", {})
            if not main_data:
                raise TransportError("Response missing 'main' block")

            sys_data = data.get("sys") or {}
            wind_data = data.get("wind") or {}
            clouds_data = data.get("clouds") or {}

            # Only rain is reported as precipitation
            rain = data.get("rain") or {}
            precip_1h = rain.get("1h")

            snapshot = ConditionsSnapshot(
                name=data.get("name", ""),
                country=sys_data.get("country", ""),
                timestamp=int(data.get("dt", 0)),
                temp=float(main_data["temp"]),
                temp_min=float(main_data.get("temp_min", main_data["temp"])),
                temp_max=float(main_data.get("temp_max", main_data["temp"])),
                humidity=float(main_data.get("humidity", 0.0)),
                pressure=float(main_data.get("pressure", 0.0)),
                wind_speed=float(wind_data.get("speed", 0.0)),
                condition_main=weather.get("main", "Unknown"),
                condition_description=weather.get("description", ""),
                sunrise=int(sys_data["sunrise"]),
                sunset=int(sys_data["sunset"]),
                units=Units(units),
                wind_deg=wind_data.get("deg"),
                cloudiness=clouds_data.get("all"),
                visibility=data.get("visibility"),
                precip_1h=float(precip_1h) if precip_1h is not None else None,
            )
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            logging.error(f"Failed to parse API response: {e}", exc_info=True)
            raise TransportError(f"Failed to parse response: {str(e)}")

        logging.info(
            f"Successfully parsed weather data: {snapshot.name} {snapshot.temp}{snapshot.units.temp_suffix}, "
            f"{snapshot.condition_main}"
        )
        return snapshot

    @staticmethod
    def _parse_forecast_point(item: Dict[str, Any]) -> ForecastPoint:
        main_data = item["main"]
        weather = (item.get("weather") or [{}])[0]
        wind_data = item.get("wind") or {}
        speed = wind_data.get("speed")
        return ForecastPoint(
            timestamp=int(item["dt"]),
            temp=float(main_data["temp"]),
            temp_min=float(main_data.get("temp_min", main_data["temp"])),
            temp_max=float(main_data.get("temp_max", main_data["temp"])),
            condition_main=weather.get("main", "Unknown"),
            condition_description=weather.get("description", ""),
            pop=float(item.get("pop", 0.0)),
            wind_speed=float(speed) if speed is not None else None,
        )

    def _handle_error_response(self, response: requests.Response) -> None:
        """Parse and raise error from OpenWeather error response."""
        try:
            error_data = response.json()
        except ValueError:
            # Not JSON, use HTTP status
            logging.error(f"Non-JSON error response: HTTP {response.status_code}, body: {response.text[:500]}")
            raise CityNotFoundError(
                f"HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        logging.error(f"OpenWeather API error response: {error_data}")
        if not isinstance(error_data, dict):
            error_data = {}
        cod = error_data.get("cod", response.status_code)
        message = error_data.get("message", "Unknown error")
        raise CityNotFoundError(
            f"OpenWeather API error {cod}: {message}",
            status_code=response.status_code,
        )

"""Interactive terminal weather lookup."""
import argparse
import logging
import os
import signal
import sys
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from layout import format_current_lines, format_forecast_line, format_recent, format_status
from location_provider import StaticLocationProvider
from openweather_provider import OpenWeatherProvider
from weather_data import SessionState, Units
from weather_session import WeatherSession

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
DEFAULT_LOG_FILE = os.path.join(BASE_DIR, "weather-desk.log")
DEFAULT_CITY = "New York"

HELP_TEXT = """Commands:
  <city>     search a city
  :u         toggle metric/imperial
  :here      use current location (WEATHER_LAT/WEATHER_LON)
  :recent    show recent searches
  :ok        dismiss the current error
  :q         quit"""


@dataclass
class SessionConfig:
    api_key: str
    default_city: str
    country: Optional[str]
    lang: str
    lat: Optional[str]
    lon: Optional[str]


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser("Terminal weather lookup")
    parser.add_argument("--log-file", default=DEFAULT_LOG_FILE)
    parser.add_argument("--units", choices=[u.value for u in Units], default=Units.METRIC.value)
    parser.add_argument("--timeout", type=int, default=10, help="HTTP timeout in seconds")
    parser.add_argument("--no-startup-search", action="store_true", help="Don't fetch the default city on start")
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args(argv)


def setup_logging(log_file: str, verbose: bool) -> None:
    log_level = logging.DEBUG if verbose else logging.INFO
    handlers = [logging.FileHandler(log_file)]
    if verbose:
        handlers.append(logging.StreamHandler(sys.stderr))
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )


def load_config() -> SessionConfig:
    load_dotenv()
    api_key = os.getenv("WEATHER_API_KEY")
    if not api_key:
        raise SystemExit("Missing WEATHER_API_KEY in environment")

    config = SessionConfig(
        api_key=api_key,
        default_city=os.getenv("WEATHER_DEFAULT_CITY", DEFAULT_CITY).strip() or DEFAULT_CITY,
        country=os.getenv("WEATHER_COUNTRY") or None,
        lang=os.getenv("WEATHER_LANG", "en"),
        lat=os.getenv("WEATHER_LAT"),
        lon=os.getenv("WEATHER_LON"),
    )
    logging.info(
        "Configuration loaded: default_city=%s country=%s lang=%s location=%s",
        config.default_city,
        config.country,
        config.lang,
        "set" if config.lat and config.lon else "unset",
    )
    return config


def build_session(config: SessionConfig, args: argparse.Namespace) -> WeatherSession:
    provider = OpenWeatherProvider(
        api_key=config.api_key,
        lang=config.lang,
        timeout=args.timeout,
    )
    session = WeatherSession(
        provider=provider,
        default_city=config.default_city,
        units=Units(args.units),
        country=config.country,
        location_provider=StaticLocationProvider.from_strings(config.lat, config.lon),
        listener=render,
    )
    logging.info("Weather session ready (units=%s)", args.units)
    return session


def render(session: WeatherSession) -> None:
    status = session.status
    if status.state is not SessionState.READY:
        message = format_status(status)
        if message:
            print(message, flush=True)
        return

    snapshot = session.current
    if snapshot is None:
        return
    lines = [""] + format_current_lines(snapshot, session.time_of_day)

    hourly = session.hourly_forecast
    if hourly:
        lines.append("Next hours:")
        lines.extend("  " + format_forecast_line(p, snapshot.units) for p in hourly)
    daily = session.daily_forecast
    if daily:
        lines.append("Next days:")
        lines.extend("  " + format_forecast_line(p, snapshot.units, daily=True) for p in daily)
    if not hourly and not daily:
        lines.append("Forecast unavailable")
    print("\n".join(lines), flush=True)


def handle_command(session: WeatherSession, line: str) -> bool:
    """Dispatch one input line. Returns False when the user quits."""
    command = line.strip()
    if command in (":q", ":quit"):
        return False
    if command in ("", ":h", ":help"):
        print(HELP_TEXT)
    elif command == ":u":
        session.toggle_unit()
    elif command == ":here":
        session.use_current_location()
    elif command == ":ok":
        session.dismiss_error()
    elif command == ":recent":
        entries = session.recent_searches
        print("\n".join(format_recent(entries)) if entries else "No recent searches")
    else:
        session.search_city(command)
    return True


def signal_handler(signum, frame):
    logging.info("Received signal %s, shutting down", signum)
    raise KeyboardInterrupt()


def main(argv=None) -> None:
    args = parse_args(argv)
    setup_logging(args.log_file, args.verbose)
    config = load_config()
    session = build_session(config, args)

    signal.signal(signal.SIGTERM, signal_handler)

    print(HELP_TEXT)
    if not args.no_startup_search:
        session.search_city(config.default_city)

    try:
        while True:
            try:
                line = input("> ")
            except EOFError:
                break
            if not handle_command(session, line):
                break
    except KeyboardInterrupt:
        logging.info("Stopping")
    finally:
        session.close(wait=False)
        logging.info("Session closed")


if __name__ == "__main__":
    main()

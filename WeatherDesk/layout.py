"""Text layout for the terminal front-end - pure functions for testability."""
import time
from typing import List, Optional
from weather_data import ConditionsSnapshot, ForecastPoint, RecentSearchEntry, SessionStatus, Units, round_half_up

COMPASS_POINTS = ["N", "NE", "E", "SE", "S", "SW", "W", "NW"]


def get_condition_text(condition_main: str) -> str:
    """
    Get short text representation of weather condition.

    Args:
        condition_main: Provider condition label, e.g. "Clouds"

    Returns:
        Short condition string (e.g., "Cloudy", "Rain", "Clear")
    """
    main = condition_main.lower()

    # Map common conditions to short display strings
    condition_map = {
        "clear": "Clear",
        "clouds": "Cloudy",
        "rain": "Rain",
        "drizzle": "Drizzle",
        "thunderstorm": "Storm",
        "snow": "Snow",
        "mist": "Mist",
        "fog": "Fog",
        "haze": "Haze",
    }

    return condition_map.get(main, condition_main.capitalize())


def wind_direction(deg: Optional[int]) -> str:
    """Compass point for a wind bearing in degrees, "" if unknown."""
    if deg is None:
        return ""
    return COMPASS_POINTS[int((deg % 360) / 45.0 + 0.5) % 8]


def format_temp(value: float, units: Units) -> str:
    return f"{round_half_up(value)}{units.temp_suffix}"


def format_clock(timestamp: int, fmt: str = "%H:%M") -> str:
    return time.strftime(fmt, time.localtime(timestamp))


def format_current_lines(snapshot: ConditionsSnapshot, time_of_day: Optional[str] = None) -> List[str]:
    units = snapshot.units
    place = f"{snapshot.name}, {snapshot.country}" if snapshot.country else snapshot.name
    header = f"{place} - {get_condition_text(snapshot.condition_main)}"
    if time_of_day:
        header += f" ({time_of_day})"

    wind = f"Wind {snapshot.wind_speed:.1f}{units.speed_suffix}"
    direction = wind_direction(snapshot.wind_deg)
    if direction:
        wind += f" {direction}"

    lines = [
        header,
        f"{format_temp(snapshot.temp, units)}  "
        f"(min {format_temp(snapshot.temp_min, units)} / max {format_temp(snapshot.temp_max, units)})",
        f"Hum {int(snapshot.humidity)}%  Pressure {int(snapshot.pressure)}hPa  {wind}",
    ]

    extras = []
    if snapshot.cloudiness is not None:
        extras.append(f"Clouds {snapshot.cloudiness}%")
    if snapshot.visibility is not None:
        extras.append(f"Visibility {snapshot.visibility / 1000:.1f}km")
    if snapshot.precip_1h is not None:
        extras.append(f"Rain {snapshot.precip_1h:.1f}mm/h")
    if extras:
        lines.append("  ".join(extras))

    lines.append(f"Sunrise {format_clock(snapshot.sunrise)}  Sunset {format_clock(snapshot.sunset)}")
    return lines


def format_forecast_line(point: ForecastPoint, units: Units, daily: bool = False) -> str:
    label = format_clock(point.timestamp, "%a" if daily else "%H:%M")
    temps = format_temp(point.temp, units)
    if daily:
        temps = f"{format_temp(point.temp_min, units)}/{format_temp(point.temp_max, units)}"
    return f"{label:<6}{temps:>12}  {get_condition_text(point.condition_main):<8} {int(round(point.pop * 100))}%"


def format_recent(entries: List[RecentSearchEntry]) -> List[str]:
    return [
        f"{i}. {e.city}, {e.country}  {e.temp}{e.units.temp_suffix}  {get_condition_text(e.condition)}"
        for i, e in enumerate(entries, start=1)
    ]


def format_status(status: SessionStatus) -> str:
    if status.is_loading:
        return "Loading..."
    if status.is_error:
        return f"Error: {status.message}"
    return ""

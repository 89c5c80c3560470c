"""Current conditions from Open-Meteo, shaped for the weather component.

No API key required.
- Geocoding: https://geocoding-api.open-meteo.com/
- Forecast:   https://api.open-meteo.com/
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Optional

import httpx

GEOCODING_URL = "https://geocoding-api.open-meteo.com/v1/search"
FORECAST_URL = "https://api.open-meteo.com/v1/forecast"

# WMO weather interpretation codes -> (description, icon).  Icons are the ones
# the weather card knows how to draw: sun, cloud, rain, snow.
_WMO_CODES: dict[int, tuple[str, str]] = {
    0: ("Clear skies", "sun"),
    1: ("Mainly clear", "sun"),
    2: ("Partly cloudy", "cloud"),
    3: ("Overcast", "cloud"),
    45: ("Fog", "cloud"),
    48: ("Depositing rime fog", "cloud"),
    51: ("Light drizzle", "rain"),
    53: ("Drizzle", "rain"),
    55: ("Dense drizzle", "rain"),
    61: ("Light rain", "rain"),
    63: ("Rain", "rain"),
    65: ("Heavy rain", "rain"),
    66: ("Freezing rain", "rain"),
    67: ("Heavy freezing rain", "rain"),
    71: ("Light snow", "snow"),
    73: ("Snow", "snow"),
    75: ("Heavy snow", "snow"),
    77: ("Snow grains", "snow"),
    80: ("Rain showers", "rain"),
    81: ("Rain showers", "rain"),
    82: ("Violent rain showers", "rain"),
    85: ("Snow showers", "snow"),
    86: ("Heavy snow showers", "snow"),
    95: ("Thunderstorm", "rain"),
    96: ("Thunderstorm with hail", "rain"),
    99: ("Thunderstorm with heavy hail", "rain"),
}


@dataclass(frozen=True)
class Location:
    name: str
    latitude: float
    longitude: float
    timezone: str


def c_to_f(c: Any) -> Optional[float]:
    if c is None:
        return None
    try:
        return round((float(c) * 9.0 / 5.0) + 32.0, 1)
    except (TypeError, ValueError):
        return None


def fmt_num(x: Any, suffix: str = "") -> str:
    if x is None:
        return ""
    try:
        v = float(x)
    except (TypeError, ValueError):
        return f"{x}{suffix}"
    if v.is_integer():
        return f"{int(v)}{suffix}"
    return f"{round(v, 1)}{suffix}"


def fmt_temp_c_f(c: Any) -> str:
    if c is None:
        return ""
    f = c_to_f(c)
    if f is None:
        return str(c)
    return f"{fmt_num(f)}°F ({fmt_num(c)}°C)"


def _name_candidates(raw: str) -> list[str]:
    # Open-Meteo geocoding is picky about qualifiers like "Seattle, WA";
    # try progressively simpler variants.
    candidates: list[str] = [raw]

    def add(name: str) -> None:
        name = name.strip()
        if name and name not in candidates:
            candidates.append(name)

    if "," in raw:
        add(raw.split(",", 1)[0])

    m = re.search(r"\s+([A-Za-z]{2})\s*$", raw)
    if m:
        shortened = raw[: m.start(1)].strip().rstrip(",")
        add(shortened)

    for suffix in (" usa", " us"):
        if raw.lower().endswith(suffix):
            add(raw[: -len(suffix)])
    return candidates


def geocode_location(query: str) -> Optional[Location]:
    raw = (query or "").strip()
    if not raw:
        return None

    base_params: dict[str, Any] = {"count": 1, "language": "en", "format": "json"}
    # A trailing two-letter state code biases the search toward the US.
    if re.search(r"(,\s*[A-Za-z]{2}\s*$)|(\s+[A-Za-z]{2}\s*$)", raw):
        base_params["country_code"] = "US"

    for name in _name_candidates(raw):
        r = httpx.get(GEOCODING_URL, params={**base_params, "name": name}, timeout=10.0)
        r.raise_for_status()
        results = (r.json() or {}).get("results") or []
        if not results:
            continue
        first = results[0]
        return Location(
            name=str(first.get("name") or name),
            latitude=float(first["latitude"]),
            longitude=float(first["longitude"]),
            timezone=str(first.get("timezone") or "auto"),
        )
    return None


def fetch_current(location: Location) -> dict[str, Any]:
    params = {
        "latitude": location.latitude,
        "longitude": location.longitude,
        "current": ",".join(
            [
                "temperature_2m",
                "relative_humidity_2m",
                "apparent_temperature",
                "weather_code",
                "wind_speed_10m",
            ]
        ),
        "wind_speed_unit": "mph",
        "timezone": "auto",
    }
    r = httpx.get(FORECAST_URL, params=params, timeout=10.0)
    r.raise_for_status()
    data = r.json() or {}
    return {
        "location": {
            "name": location.name,
            "latitude": location.latitude,
            "longitude": location.longitude,
            "timezone": data.get("timezone") or location.timezone,
        },
        "current": data.get("current") or {},
    }


def describe_code(code: Any) -> tuple[Optional[str], Optional[str]]:
    if isinstance(code, bool) or not isinstance(code, (int, float)):
        return None, None
    return _WMO_CODES.get(int(code), (None, None))


def current_conditions(forecast: dict[str, Any]) -> dict[str, str]:
    """Weather-card fields (all strings) for whatever values are present."""
    current = forecast.get("current") or {}
    out: dict[str, str] = {}

    temperature = fmt_temp_c_f(current.get("temperature_2m"))
    if temperature:
        out["temperature"] = temperature
    feels_like = fmt_temp_c_f(current.get("apparent_temperature"))
    if feels_like:
        out["feelsLike"] = feels_like
    if current.get("relative_humidity_2m") is not None:
        out["humidity"] = fmt_num(current.get("relative_humidity_2m"), "%")
    if current.get("wind_speed_10m") is not None:
        out["windSpeed"] = fmt_num(current.get("wind_speed_10m"), " mph")

    description, icon = describe_code(current.get("weather_code"))
    if description:
        out["description"] = description
    if icon:
        out["icon"] = icon
    return out

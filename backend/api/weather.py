"""
Weather proxy support: Open-Meteo request building, response reshaping and a TTL cache.

The widget on the site expects an OpenWeatherMap-like body, so the Open-Meteo
"current" block is reshaped into coord/weather/main/wind.
"""
from __future__ import annotations

import threading
import time
from typing import Any, Optional

from shared.utils.logging import get_logger

logger = get_logger(__name__)

VALID_UNITS = ("imperial", "metric")

CURRENT_FIELDS = (
    "temperature_2m,relative_humidity_2m,apparent_temperature,"
    "precipitation,weather_code,wind_speed_10m"
)

# WMO weather interpretation codes -> (main, description)
WMO_DESCRIPTIONS: dict[int, tuple[str, str]] = {
    0: ("Clear", "Clear sky"),
    1: ("Clouds", "Partly cloudy"),
    2: ("Clouds", "Partly cloudy"),
    3: ("Clouds", "Partly cloudy"),
    45: ("Fog", "Foggy"),
    48: ("Fog", "Foggy"),
    51: ("Drizzle", "Light drizzle"),
    53: ("Drizzle", "Light drizzle"),
    55: ("Drizzle", "Light drizzle"),
    56: ("Drizzle", "Freezing drizzle"),
    57: ("Drizzle", "Freezing drizzle"),
    61: ("Rain", "Rain"),
    63: ("Rain", "Rain"),
    65: ("Rain", "Rain"),
    66: ("Rain", "Freezing rain"),
    67: ("Rain", "Freezing rain"),
    71: ("Snow", "Snow"),
    73: ("Snow", "Snow"),
    75: ("Snow", "Snow"),
    77: ("Snow", "Snow grains"),
    80: ("Rain", "Rain showers"),
    81: ("Rain", "Rain showers"),
    82: ("Rain", "Rain showers"),
    85: ("Snow", "Snow showers"),
    86: ("Snow", "Snow showers"),
    95: ("Thunderstorm", "Thunderstorm"),
    96: ("Thunderstorm", "Thunderstorm with hail"),
    99: ("Thunderstorm", "Thunderstorm with hail"),
}

_ICON_GROUPS: tuple[tuple[frozenset[int], str], ...] = (
    (frozenset({0}), "01d"),
    (frozenset({1, 2}), "02d"),
    (frozenset({3}), "03d"),
    (frozenset({45, 48}), "50d"),
    (frozenset({51, 53, 55, 56, 57, 61, 63, 65, 66, 67, 80, 81, 82}), "10d"),
    (frozenset({71, 73, 75, 77, 85, 86}), "13d"),
    (frozenset({95, 96, 99}), "11d"),
)


def describe_weather(code: int) -> tuple[str, str]:
    return WMO_DESCRIPTIONS.get(code, ("Unknown", "Unknown conditions"))


def weather_icon(code: int) -> str:
    for codes, icon in _ICON_GROUPS:
        if code in codes:
            return icon
    return "01d"


def build_params(lat: float, lon: float, units: str) -> dict[str, str]:
    imperial = units == "imperial"
    return {
        "latitude": str(lat),
        "longitude": str(lon),
        "current": CURRENT_FIELDS,
        "temperature_unit": "fahrenheit" if imperial else "celsius",
        "wind_speed_unit": "mph" if imperial else "kmh",
        "timezone": "auto",
    }


def transform_response(lat: float, lon: float, body: dict[str, Any]) -> dict[str, Any]:
    """Reshape an Open-Meteo forecast body. Raises KeyError/TypeError/ValueError on a malformed body."""
    current = body["current"]
    code = int(current["weather_code"])
    main, description = describe_weather(code)
    return {
        "coord": {"lat": lat, "lon": lon},
        "weather": [
            {"id": code, "main": main, "description": description, "icon": weather_icon(code)}
        ],
        "main": {
            "temp": float(current["temperature_2m"]),
            "feels_like": float(current["apparent_temperature"]),
            "humidity": int(current["relative_humidity_2m"]),
        },
        "wind": {"speed": float(current["wind_speed_10m"])},
        # Open-Meteo has no place names; the client reverse-geocodes if it wants one.
        "name": "Location",
    }


class WeatherCache:
    """Per-location TTL cache of reshaped weather responses."""

    def __init__(self, clock: Any = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[float, dict[str, Any]]] = {}
        self._lock = threading.Lock()

    @staticmethod
    def key(lat: float, lon: float, units: str) -> str:
        return f"weather:{lat}:{lon}:{units}"

    def get(self, key: str) -> Optional[dict[str, Any]]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: dict[str, Any], ttl_s: float) -> None:
        with self._lock:
            now = self._clock()
            # Expired entries for locations nobody asks about again are dropped here.
            expired = [k for k, (expires_at, _) in self._entries.items() if now >= expires_at]
            for k in expired:
                del self._entries[k]
            self._entries[key] = (now + ttl_s, value)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

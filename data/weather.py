"""
Open-Meteo current-conditions client.

Given a city name, returns a WeatherSnapshot (temperature, humidity,
rainfall, wind, condition). Free API, no key required. Wind speed is
requested in km/h so no unit conversion is needed downstream.
"""

from datetime import datetime, timezone

import requests

from geocoder import get_coordinates
from risk.models import WeatherSnapshot


OPEN_METEO_URL = "https://api.open-meteo.com/v1/forecast"
TIMEOUT_SECONDS = 10

CURRENT_FIELDS = "temperature_2m,relative_humidity_2m,precipitation,rain,weather_code,wind_speed_10m"

# WMO weather interpretation codes → condition label
WEATHER_CODE_CONDITIONS = [
    ({0}, "Clear"),
    ({1, 2, 3}, "Clouds"),
    ({45, 48}, "Fog"),
    (set(range(51, 58)), "Drizzle"),
    (set(range(61, 68)) | {80, 81, 82}, "Rain"),
    (set(range(71, 78)) | {85, 86}, "Snow"),
    (set(range(95, 100)), "Thunderstorm"),
]


def condition_for_code(code: int | None) -> str:
    if code is None:
        return "Clear"
    for codes, label in WEATHER_CODE_CONDITIONS:
        if code in codes:
            return label
    return "Clouds"


def parse_current(city: str, data: dict) -> WeatherSnapshot:
    """Build a WeatherSnapshot from an Open-Meteo response body."""
    current = data["current"]

    # "precipitation" includes showers; fall back to "rain" when absent
    rainfall = current.get("precipitation")
    if rainfall is None:
        rainfall = current.get("rain") or 0.0

    observed_at = None
    if current.get("time"):
        observed_at = datetime.fromisoformat(current["time"]).replace(tzinfo=timezone.utc)

    return WeatherSnapshot(
        city=city,
        temperature=current.get("temperature_2m"),
        humidity=current.get("relative_humidity_2m"),
        rainfall=max(0.0, float(rainfall)),
        wind_speed=max(0.0, float(current.get("wind_speed_10m") or 0.0)),
        weather_condition=condition_for_code(current.get("weather_code")),
        observed_at=observed_at,
    )


def fetch_snapshot(city: str, get=requests.get) -> WeatherSnapshot | None:
    """
    Call Open-Meteo for *city* and return its current conditions.

    Cities outside the monitored directory are not looked up at all. On
    failure (unknown city, timeout, bad response, etc.) returns None so
    callers can treat the city as "no telemetry" and keep going.
    """
    coords = get_coordinates(city)
    if coords is None:
        print(f"[WEATHER] No coordinates for {city} — no telemetry")
        return None

    try:
        resp = get(
            OPEN_METEO_URL,
            params={
                "latitude": coords["lat"],
                "longitude": coords["lon"],
                "current": CURRENT_FIELDS,
                "wind_speed_unit": "kmh",
                "timezone": "GMT",
            },
            timeout=TIMEOUT_SECONDS,
        )
        resp.raise_for_status()
        return parse_current(city, resp.json())

    except Exception as e:
        print(f"[WEATHER] Open-Meteo call failed for {city}: {e}")
        return None


def fetch_snapshots(cities: list[str]) -> list[WeatherSnapshot]:
    """Current conditions for every city that answered; failures are skipped."""
    snapshots = []
    for city in cities:
        snapshot = fetch_snapshot(city)
        if snapshot is not None:
            snapshots.append(snapshot)
    print(f"[WEATHER] {len(snapshots)}/{len(cities)} cities reporting")
    return snapshots


def snapshot_from_dict(raw: dict) -> WeatherSnapshot:
    """
    Build a WeatherSnapshot from caller-supplied JSON.

    Accepts snake_case or camelCase keys; rainfall and wind default to 0.
    """
    def pick(*keys):
        for key in keys:
            if raw.get(key) is not None:
                return raw[key]
        return None

    temperature = pick("temperature", "temp")
    humidity = pick("humidity")
    return WeatherSnapshot(
        city=str(pick("city", "name") or "Unknown"),
        temperature=float(temperature) if temperature is not None else None,
        humidity=float(humidity) if humidity is not None else None,
        rainfall=max(0.0, float(pick("rainfall", "rain") or 0.0)),
        wind_speed=max(0.0, float(pick("wind_speed", "windSpeed") or 0.0)),
        weather_condition=str(pick("weather_condition", "weatherCondition", "condition") or "Clear"),
    )

"""
Heat index calculator (DOST-PAGASA heat index guidelines).

Model:
  T_f       = temperature in °F
  simple    = 0.5 × (T_f + 61 + (T_f − 68) × 1.2 + RH × 0.094)
  if simple ≥ 80 °F → Rothfusz regression, then the NWS boundary corrections
  result    = back to °C, rounded to the nearest degree

  ≥ 52 °C → Extreme Danger   (suspend)
  ≥ 42 °C → Danger           (suspend)
  ≥ 33 °C → Extreme Caution
  ≥ 27 °C → Caution
  else     → Normal

Pure arithmetic. Callers must skip cities missing temperature or humidity.
"""

import math

from risk.models import HeatIndexCategory, HeatIndexResult, WeatherSnapshot, round_half_up


# ---------------------------------------------------------------------------
# Formula
# ---------------------------------------------------------------------------

def _c_to_f(celsius: float) -> float:
    return celsius * 9 / 5 + 32


def _f_to_c(fahrenheit: float) -> float:
    return (fahrenheit - 32) * 5 / 9


def calculate_heat_index(temperature: float, humidity: float) -> int:
    """Heat index in °C for a temperature (°C) and relative humidity (%)."""
    t = _c_to_f(temperature)
    rh = humidity

    hi = 0.5 * (t + 61.0 + ((t - 68.0) * 1.2) + (rh * 0.094))

    if hi >= 80:
        hi = (
            -42.379
            + 2.04901523 * t
            + 10.14333127 * rh
            - 0.22475541 * t * rh
            - 0.00683783 * t * t
            - 0.05481717 * rh * rh
            + 0.00122874 * t * t * rh
            + 0.00085282 * t * rh * rh
            - 0.00000199 * t * t * rh * rh
        )

        if rh < 13 and 80 <= t <= 112:
            hi -= ((13 - rh) / 4) * math.sqrt((17 - abs(t - 95)) / 17)
        elif rh > 85 and 80 <= t <= 87:
            hi += ((rh - 85) / 10) * ((87 - t) / 5)

    return round_half_up(_f_to_c(hi))


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

HEAT_INDEX_CATEGORIES = [
    (52, HeatIndexCategory(
        level="extreme-danger",
        label="Extreme Danger",
        description="Heat stroke imminent! Avoid outdoor activities.",
        recommendation="Stay indoors in air-conditioned areas. Emergency measures required.",
        suspension_recommended=True,
        suspension_reason="Extreme heat index poses severe health risks",
    )),
    (42, HeatIndexCategory(
        level="danger",
        label="Danger",
        description="Heat cramps and heat exhaustion likely. Heat stroke possible.",
        recommendation="Minimize outdoor exposure. Stay hydrated and in shaded areas.",
        suspension_recommended=True,
        suspension_reason="Dangerous heat index - health risks to students and teachers",
    )),
    (33, HeatIndexCategory(
        level="extreme-caution",
        label="Extreme Caution",
        description="Heat cramps and heat exhaustion possible.",
        recommendation="Limit outdoor activities. Drink plenty of water.",
        suspension_recommended=False,
        suspension_reason=None,
    )),
    (27, HeatIndexCategory(
        level="caution",
        label="Caution",
        description="Fatigue possible with prolonged exposure.",
        recommendation="Take breaks and stay hydrated during outdoor activities.",
        suspension_recommended=False,
        suspension_reason=None,
    )),
]

NORMAL_CATEGORY = HeatIndexCategory(
    level="normal",
    label="Normal",
    description="No significant heat-related health risks.",
    recommendation="Normal activities safe. Stay hydrated as usual.",
    suspension_recommended=False,
    suspension_reason=None,
)


def heat_index_category(heat_index: int) -> HeatIndexCategory:
    for min_value, category in HEAT_INDEX_CATEGORIES:
        if heat_index >= min_value:
            return category
    return NORMAL_CATEGORY


def assess_heat(temperature: float, humidity: float) -> HeatIndexResult:
    hi = calculate_heat_index(temperature, humidity)
    return HeatIndexResult(heat_index=hi, category=heat_index_category(hi))


def should_suspend_for_heat(heat_index: int) -> bool:
    return heat_index_category(heat_index).suspension_recommended


# ---------------------------------------------------------------------------
# Helpers over several cities
# ---------------------------------------------------------------------------

def feels_like(temperature: float, humidity: float, wind_speed: float = 0.0) -> int:
    """
    Apparent temperature in °C.

    Heat index for hot weather, wind chill for cold windy weather,
    otherwise the air temperature itself.
    """
    if temperature >= 27:
        return calculate_heat_index(temperature, humidity)

    if temperature < 10 and wind_speed > 5:
        wind_mph = wind_speed * 0.621371
        t = _c_to_f(temperature)
        chill = (35.74 + 0.6215 * t - 35.75 * wind_mph ** 0.16
                 + 0.4275 * t * wind_mph ** 0.16)
        return round_half_up(_f_to_c(chill))

    return round_half_up(temperature)


def _has_heat_inputs(snapshot: WeatherSnapshot) -> bool:
    return snapshot.temperature is not None and snapshot.humidity is not None


def average_heat_index(snapshots: list[WeatherSnapshot]) -> int:
    """Mean heat index across cities that report temperature and humidity (0 if none)."""
    values = [
        calculate_heat_index(s.temperature, s.humidity)
        for s in snapshots
        if _has_heat_inputs(s)
    ]
    if not values:
        return 0
    return round_half_up(sum(values) / len(values))


def cities_with_dangerous_heat(snapshots: list[WeatherSnapshot]) -> list[tuple[str, HeatIndexResult]]:
    """Cities whose heat index warrants a suspension, hottest first."""
    flagged = []
    for snapshot in snapshots:
        if not _has_heat_inputs(snapshot):
            continue
        result = assess_heat(snapshot.temperature, snapshot.humidity)
        if result.category.suspension_recommended:
            flagged.append((snapshot.city, result))
    flagged.sort(key=lambda item: item[1].heat_index, reverse=True)
    return flagged


COMMON_TIPS = [
    "Drink plenty of water even if not thirsty",
    "Wear light-colored, loose-fitting clothing",
    "Stay in shaded or air-conditioned areas when possible",
]

DANGER_TIPS = [
    "Avoid strenuous outdoor activities",
    "Reschedule outdoor work to cooler hours",
    "Check on elderly and children frequently",
    "Never leave anyone in a parked vehicle",
    "Know the signs of heat exhaustion and heat stroke",
]


def heat_safety_tips(heat_index: int) -> list[str]:
    if heat_index >= 42:
        return COMMON_TIPS + DANGER_TIPS + ["Seek immediate medical help if feeling dizzy or nauseous"]
    if heat_index >= 33:
        return COMMON_TIPS + DANGER_TIPS
    if heat_index >= 27:
        return COMMON_TIPS + ["Take frequent breaks during outdoor activities"]
    return list(COMMON_TIPS)

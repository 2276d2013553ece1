"""
Suspension candidate ranking.

Merges per-city telemetry and per-city report counts into a ranked list of
cities an administrator may want to suspend classes in. Ranking only:
issuing a suspension is always an explicit action by the caller.

  weather_risk = 0   if rain ≤ 20 and wind ≤ 60
                 50  otherwise
                 60  if rain ≥ 30 or wind ≥ 50
                 70  if rain ≥ 35 or wind ≥ 55
  report_risk  = critical × 15 + high × 10
  risk_score   = weather_risk + report_risk         (not clamped)

  candidate iff risk_score ≥ 50 or critical ≥ 3
"""

from risk.models import (
    UNKNOWN_CITY,
    Report,
    SuspensionCandidate,
    WeatherSnapshot,
    city_key,
)


CANDIDATE_MIN_SCORE = 50
CANDIDATE_MIN_CRITICAL = 3


def weather_risk(rainfall: float, wind_speed: float) -> int:
    if rainfall <= 20 and wind_speed <= 60:
        return 0
    if rainfall >= 35 or wind_speed >= 55:
        return 70
    if rainfall >= 30 or wind_speed >= 50:
        return 60
    return 50


def report_risk(critical_count: int, high_count: int) -> int:
    return critical_count * 15 + high_count * 10


def _reasons(
    snapshot: WeatherSnapshot | None,
    w_risk: int,
    critical: int,
    high: int,
    already_suspended: bool,
) -> list[str]:
    reasons = []
    if w_risk and snapshot is not None:
        reasons.append(
            f"Weather risk {w_risk}: {snapshot.rainfall:g}mm/h rain, "
            f"{snapshot.wind_speed:g} km/h wind"
        )
    if critical:
        reasons.append(f"{critical} critical report{'s' if critical != 1 else ''}")
    if high:
        reasons.append(f"{high} high-severity report{'s' if high != 1 else ''}")
    if already_suspended:
        reasons.append("Classes already suspended")
    return reasons


def rank_candidates(
    reports: list[Report],
    snapshots: list[WeatherSnapshot],
    suspended_cities: list[str] | tuple[str, ...] | set[str] = (),
) -> list[SuspensionCandidate]:
    """
    Rank cities for suspension action, highest risk first.

    Ties are broken by total report count (more first), then city name.
    Cities without telemetry contribute zero weather risk.
    """
    suspended = {city_key(c) for c in suspended_cities}

    names: dict[str, str] = {}
    weather_by_city: dict[str, WeatherSnapshot] = {}
    for snapshot in snapshots:
        key = city_key(snapshot.city)
        names.setdefault(key, snapshot.city)
        weather_by_city.setdefault(key, snapshot)

    tallies: dict[str, dict[str, int]] = {}
    for report in reports:
        if not report.city or report.city == UNKNOWN_CITY:
            continue
        key = city_key(report.city)
        names.setdefault(key, report.city)
        tally = tallies.setdefault(key, {"critical": 0, "high": 0, "total": 0})
        tally["total"] += 1
        if report.severity == "critical":
            tally["critical"] += 1
        elif report.severity == "high":
            tally["high"] += 1

    candidates = []
    for key, name in names.items():
        snapshot = weather_by_city.get(key)
        tally = tallies.get(key, {"critical": 0, "high": 0, "total": 0})

        rainfall = snapshot.rainfall if snapshot else 0.0
        wind = snapshot.wind_speed if snapshot else 0.0

        w_risk = weather_risk(rainfall, wind)
        r_risk = report_risk(tally["critical"], tally["high"])
        total = w_risk + r_risk

        if total < CANDIDATE_MIN_SCORE and tally["critical"] < CANDIDATE_MIN_CRITICAL:
            continue

        is_suspended = key in suspended
        candidates.append(SuspensionCandidate(
            city=name,
            critical_report_count=tally["critical"],
            high_report_count=tally["high"],
            total_report_count=tally["total"],
            rainfall=rainfall,
            wind_speed=wind,
            weather_risk=w_risk,
            report_risk=r_risk,
            risk_score=total,
            has_weather_risk=w_risk > 0,
            already_suspended=is_suspended,
            reasons=_reasons(snapshot, w_risk, tally["critical"], tally["high"], is_suspended),
        ))

    candidates.sort(key=lambda c: (-c.risk_score, -c.total_report_count, c.city))
    return candidates

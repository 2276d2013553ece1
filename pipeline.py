"""
Core pipeline — entry points for the SMS webhook, the JSON API and the CLI:

  1. assess_city(city)
     → Suspension status for one city. Call when user texts a city.
     → Returns (CityStatus, sms_text, twiml)

  2. handle_menu(command, status)
     → Menu follow-up. Call when user replies 1-3, WHY, ALL or STOP.
     → Returns (sms_text, twiml)

  3. province_overview()
     → Province-wide advisory plus ranked suspension candidates.
     → Returns (RiskAssessment, candidates, sms_text)

  4. verify_submission(report)
     → Credibility check of a new report against live weather for its city.

  5. compile_report_groups(reports) / analyze_city_reports(city)
     → Compiled summaries per place-and-time group, and a per-city analysis.

Data sources:
  - Open-Meteo current conditions (api.open-meteo.com)
  - Community reports (REPORTS_PATH JSON store)
  - Google Gemini (optional, GEMINI_API_KEY) with rule-based fallback

Every fetcher is a keyword argument so callers and tests can pass their own.
"""

import os
from dataclasses import dataclass
from datetime import datetime

from data.reports import load_reports, reports_for_city
from data.weather import fetch_snapshot, fetch_snapshots
from geocoder import MONITORED_CITIES
from risk.advisor import SuspensionAdvisor, build_advisor
from risk.candidates import rank_candidates
from risk.credibility import credibility_level, verify_report
from risk.engine import DEFAULT_GROUP_WINDOW_MINUTES, group_reports_by_location_and_time
from risk.heat_index import assess_heat
from risk.models import (
    UNKNOWN_CITY,
    CompiledReport,
    CredibilityResult,
    HeatIndexResult,
    LocationAnalysis,
    Report,
    RiskAssessment,
    SuspensionCandidate,
    WeatherSnapshot,
)
from risk.response import (
    format_actions,
    format_heat,
    format_no_session,
    format_overview,
    format_status,
    format_stop,
    format_twiml,
    format_why,
)


DEFAULT_GEMINI_TIMEOUT = 20  # seconds


# ---------------------------------------------------------------------------
# Known menu commands — if input matches one of these, it's not a city
# ---------------------------------------------------------------------------
MENU_COMMANDS = {
    "1", "2", "3",
    "status", "actions", "heat",   # word aliases for 1-3
    "why", "all", "stop",
}


def is_menu_command(text: str) -> bool:
    """Check if the raw SMS text is a menu command (not a city)."""
    return text.strip().lower() in MENU_COMMANDS


@dataclass(frozen=True)
class CityStatus:
    """Everything the SMS replies need about one city."""
    city: str
    assessment: RiskAssessment
    snapshot: WeatherSnapshot | None
    heat: HeatIndexResult | None
    report_count: int
    critical_count: int


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

_advisor: SuspensionAdvisor | None = None


def default_advisor() -> SuspensionAdvisor:
    """Process-wide advisor built from the environment on first use."""
    global _advisor
    if _advisor is None:
        timeout = float(os.getenv("GEMINI_TIMEOUT", DEFAULT_GEMINI_TIMEOUT))
        _advisor = build_advisor(timeout=timeout)
    return _advisor


def suspended_cities() -> list[str]:
    """Cities with classes already suspended (SUSPENDED_CITIES, comma-separated)."""
    raw = os.getenv("SUSPENDED_CITIES", "")
    return [c.strip() for c in raw.split(",") if c.strip()]


# ---------------------------------------------------------------------------
# 1) City status — user texts a city
# ---------------------------------------------------------------------------

def assess_city(
    city: str,
    advisor: SuspensionAdvisor | None = None,
    fetch_weather=fetch_snapshot,
    load=load_reports,
    now: datetime | None = None,
) -> tuple[CityStatus, str, str]:
    """
    Run the suspension pipeline for one city.

    Returns:
        (status, sms_text, twiml)
    """
    advisor = advisor or default_advisor()

    print(f"\n{'='*60}")
    print(f"[PIPELINE] Assessing class suspension for: {city}")
    print(f"{'='*60}")

    # 1) Live weather
    snapshot = fetch_weather(city)
    if snapshot is not None:
        print(
            f"[PIPELINE] Weather: {snapshot.temperature}°C, {snapshot.humidity}% RH, "
            f"{snapshot.rainfall}mm/h, {snapshot.wind_speed} km/h ({snapshot.weather_condition})"
        )
    else:
        print("[PIPELINE] Weather: unavailable")

    # 2) Community reports for the city
    reports = reports_for_city(load(), city)
    critical = sum(1 for r in reports if r.is_critical_or_high)
    print(f"[PIPELINE] Reports: {len(reports)} ({critical} critical/high)")

    # 3) Heat index (skipped without temperature and humidity)
    heat = None
    if snapshot is not None and snapshot.temperature is not None and snapshot.humidity is not None:
        heat = assess_heat(snapshot.temperature, snapshot.humidity)
        print(f"[PIPELINE] Heat index: {heat.heat_index}°C ({heat.category.label})")

    # 4) Advisory
    snapshots = [snapshot] if snapshot is not None else []
    assessment = advisor.advise(snapshots, reports, now)
    print(
        f"[PIPELINE] Advisory for {city}: {assessment.overall_risk} "
        f"(combined={assessment.combined_score}, suspend={assessment.suspension_recommended}, "
        f"source={assessment.source})"
    )

    status = CityStatus(
        city=city,
        assessment=assessment,
        snapshot=snapshot,
        heat=heat,
        report_count=len(reports),
        critical_count=critical,
    )

    sms_text = format_status(status)
    print(f"\n[PIPELINE] SMS reply:\n---\n{sms_text}\n---\n")
    return status, sms_text, format_twiml(sms_text)


# ---------------------------------------------------------------------------
# 2) Province overview — ALL
# ---------------------------------------------------------------------------

def province_overview(
    advisor: SuspensionAdvisor | None = None,
    cities: list[str] | None = None,
    fetch_weather=fetch_snapshots,
    load=load_reports,
    suspended: list[str] | None = None,
    now: datetime | None = None,
) -> tuple[RiskAssessment, list[SuspensionCandidate], str]:
    """Province-wide advisory and ranked candidates across all monitored cities."""
    advisor = advisor or default_advisor()
    cities = cities or MONITORED_CITIES
    suspended = suspended if suspended is not None else suspended_cities()

    print(f"[PIPELINE] Province overview for {len(cities)} cities")

    snapshots = fetch_weather(cities)
    reports = load()

    assessment = advisor.advise(snapshots, reports, now)
    candidates = rank_candidates(reports, snapshots, suspended)
    print(
        f"[PIPELINE] Province: {assessment.overall_risk} "
        f"(combined={assessment.combined_score}), {len(candidates)} candidate(s)"
    )

    return assessment, candidates, format_overview(assessment, candidates)


# ---------------------------------------------------------------------------
# 3) Menu command handler — user replies with 1-3, WHY, ALL, STOP
# ---------------------------------------------------------------------------

def handle_menu(
    command: str,
    status: CityStatus | None,
    overview=province_overview,
) -> tuple[str, str]:
    """
    Handle a menu reply. Most commands need the CityStatus from a prior city query.

    Args:
        command: The raw user input ("1", "2", "3", "why", "all", "stop")
        status: The CityStatus from their last city query (or None)
        overview: Callable producing the province overview (for ALL)

    Returns:
        (sms_text, twiml)
    """
    cmd = command.strip().lower()

    # STOP and ALL don't need a session
    if cmd == "stop":
        sms_text = format_stop()
        return sms_text, format_twiml(sms_text)

    if cmd == "all":
        _, _, sms_text = overview()
        return sms_text, format_twiml(sms_text)

    if status is None:
        sms_text = format_no_session()
        return sms_text, format_twiml(sms_text)

    if cmd in ("1", "status"):
        # Cached status (caller can call assess_city() for a live refresh)
        sms_text = format_status(status)

    elif cmd in ("2", "actions"):
        sms_text = format_actions(status)

    elif cmd in ("3", "heat"):
        sms_text = format_heat(status)

    elif cmd == "why":
        sms_text = format_why(status)

    else:
        sms_text = format_no_session()

    print(f"[PIPELINE] Menu '{cmd}' for {status.city}:\n---\n{sms_text}\n---\n")
    return sms_text, format_twiml(sms_text)


# ---------------------------------------------------------------------------
# 4) Report verification — a new submission
# ---------------------------------------------------------------------------

def verify_submission(
    report: Report,
    snapshot: WeatherSnapshot | None = None,
    fetch_weather=fetch_snapshot,
) -> CredibilityResult:
    """
    Check a report against weather for its city.

    Uses *snapshot* when given; otherwise fetches live weather, unless the
    report has no known city.
    """
    if snapshot is None and report.city and report.city != UNKNOWN_CITY:
        snapshot = fetch_weather(report.city)

    result = verify_report(report, snapshot)
    print(
        f"[PIPELINE] Verified report {report.id or '(new)'} ({report.category}, {report.city}): "
        f"credible={result.is_credible}, confidence={result.confidence} "
        f"({credibility_level(result.confidence)})"
    )
    return result


# ---------------------------------------------------------------------------
# 5) Report compilation — groups of reports about one place and time
# ---------------------------------------------------------------------------

def compile_report_groups(
    reports: list[Report],
    advisor: SuspensionAdvisor | None = None,
    window_minutes: int = DEFAULT_GROUP_WINDOW_MINUTES,
    now: datetime | None = None,
) -> list[CompiledReport]:
    """Group reports by city and time window, then compile each group."""
    advisor = advisor or default_advisor()
    groups = group_reports_by_location_and_time(reports, window_minutes)
    print(f"[PIPELINE] Compiling {len(reports)} reports in {len(groups)} group(s)")
    return [advisor.compile_reports(group, now) for group in groups]


def analyze_city_reports(
    city: str,
    advisor: SuspensionAdvisor | None = None,
    load=load_reports,
    now: datetime | None = None,
) -> LocationAnalysis:
    """Credibility and severity analysis across every stored report for *city*."""
    advisor = advisor or default_advisor()
    reports = reports_for_city(load(), city)
    analysis = advisor.analyze_location(city, reports, now)
    print(
        f"[PIPELINE] Location analysis for {city}: {analysis.actual_severity} "
        f"(credibility={analysis.credibility_score}, urgency={analysis.urgency_level}, "
        f"source={analysis.source})"
    )
    return analysis

"""
Risk engine — deterministic, rule-based scoring.

Used whenever the AI service is unavailable or returns something unusable,
so every function here is pure and always produces a complete result.

Entry points:

  classify_reports(reports)
    critical  = severity critical/high, or a critical keyword in the text
    medium    = a medium keyword in the text
    low       = everything else
    priority  = Critical if critical ≥ 5
                Medium   if critical ≥ 2 or medium ≥ 10
                Low      otherwise

  score_advisory(snapshots, reports)
    weather   = Σ per city: rain >20 → +40 (>10 → +25)
                            wind >60 → +35 (>40 → +20)
                            temp >38 → +15
    reports   = min(critical_or_high × 10, 100)
    combined  = min((weather + reports) / 2, 100)   (weather uncapped here)

    combined ≥ 70 → Critical  (suspend)
    combined ≥ 50 → High      (suspend)
    combined ≥ 30 → Moderate
    else          → Low

  compile_reports(group)
    severity  = worst declared (or keyword-read) severity in the group

  analyze_location(city, reports)
    CRITICAL  if critical ≥ 3
    HIGH      if critical ≥ 1 or high ≥ 3
    MEDIUM    if high ≥ 1 or medium ≥ 2
    LOW       otherwise
"""

from datetime import datetime, timedelta, timezone

from risk.keywords import DEFAULT_KEYWORDS, KeywordTables
from risk.models import (
    SEVERITIES,
    SOURCE_FALLBACK,
    UNKNOWN_CITY,
    CompiledReport,
    LocationAnalysis,
    LocationBreakdown,
    Report,
    ReportClassification,
    RiskAssessment,
    WeatherSnapshot,
    city_key,
    clamp_score,
    round_half_up,
)


MAX_RISK_FACTORS = 10
MAX_SUMMARY_THREATS = 3


# ---------------------------------------------------------------------------
# Tiers
# ---------------------------------------------------------------------------

TIER_THRESHOLDS = [
    (70, "Critical", True),
    (50, "High",     True),
    (30, "Moderate", False),
]


def risk_tier(combined_score: int) -> tuple[str, bool]:
    """Return (tier, suspension_recommended) for a combined score."""
    for min_score, tier, suspend in TIER_THRESHOLDS:
        if combined_score >= min_score:
            return tier, suspend
    return "Low", False


def classification_priority(critical_count: int, medium_count: int) -> str:
    if critical_count >= 5:
        return "Critical"
    if critical_count >= 2 or medium_count >= 10:
        return "Medium"
    return "Low"


# ---------------------------------------------------------------------------
# (a) Report-batch classification
# ---------------------------------------------------------------------------

def classify_report(report: Report, keywords: KeywordTables = DEFAULT_KEYWORDS) -> tuple[str, str | None]:
    """
    Classify a single report as "critical", "medium" or "low".

    Returns (level, matched_critical_keyword). The keyword is only set when
    the text, not the severity field, made the report critical.
    """
    if report.is_critical_or_high:
        return "critical", None

    text = f"{report.description or ''} {report.category or ''}".lower()

    for keyword in keywords.critical:
        if keyword in text:
            return "critical", keyword

    if any(keyword in text for keyword in keywords.medium):
        return "medium", None

    return "low", None


def classification_recommendation(
    priority: str,
    critical_count: int,
    medium_count: int,
    affected_areas: list[str],
) -> str:
    if priority == "Critical":
        return (
            f"High priority: {critical_count} critical reports indicate dangerous "
            f"conditions in {', '.join(affected_areas)}. Strongly recommend class "
            "suspension and public safety advisory."
        )
    if priority == "Medium":
        return (
            f"Monitor situation closely. {medium_count} moderate reports require "
            "attention. Prepare contingency plans and keep schools on alert."
        )
    return (
        "Situation under control. Continue routine monitoring. "
        "No class suspension necessary at this time."
    )


def classify_reports(
    reports: list[Report],
    keywords: KeywordTables | None = None,
) -> ReportClassification:
    """Bucket a batch of reports by priority and summarise them per city."""
    keywords = keywords or DEFAULT_KEYWORDS

    counts = {"critical": 0, "medium": 0, "low": 0}
    areas: dict[str, None] = {}        # insertion-ordered set
    threats: dict[str, None] = {}
    by_city: dict[str, dict] = {}

    for report in reports:
        city = report.city or UNKNOWN_CITY
        areas.setdefault(city, None)
        bucket = by_city.setdefault(
            city, {"critical": 0, "medium": 0, "low": 0, "main_issues": []}
        )

        level, keyword = classify_report(report, keywords)
        if keyword:
            threats.setdefault(keyword, None)
            bucket["main_issues"].append(keyword)

        counts[level] += 1
        bucket[level] += 1

        if report.category:
            threats.setdefault(report.category, None)

    priority = classification_priority(counts["critical"], counts["medium"])
    affected_areas = list(areas)
    main_threats = list(threats)

    sample = ", ".join(main_threats[:MAX_SUMMARY_THREATS])
    summary = (
        f"{len(reports)} community reports analyzed. "
        f"{counts['critical']} critical alerts detected"
        f"{f' involving {sample}' if sample else ''}."
    )

    return ReportClassification(
        summary=summary,
        total_reports=len(reports),
        critical_count=counts["critical"],
        medium_count=counts["medium"],
        low_count=counts["low"],
        affected_areas=affected_areas,
        main_threats=main_threats,
        priority=priority,
        recommendation=classification_recommendation(
            priority, counts["critical"], counts["medium"], affected_areas
        ),
        suspension_advised=priority == "Critical",
        reports_by_location={
            city: LocationBreakdown(
                critical=b["critical"],
                medium=b["medium"],
                low=b["low"],
                main_issues=b["main_issues"],
            )
            for city, b in by_city.items()
        },
        source=SOURCE_FALLBACK,
    )


# ---------------------------------------------------------------------------
# (b) Combined weather + reports scoring
# ---------------------------------------------------------------------------

def _fmt(value: float) -> str:
    return f"{value:g}"


def weather_contribution(snapshot: WeatherSnapshot) -> tuple[int, list[str], bool]:
    """
    Points one city adds to the weather score.

    Returns (points, risk_factors, is_affected). A city is "affected" only
    by the severe tiers (heavy rain, strong wind, extreme heat).
    """
    points = 0
    factors = []
    affected = False
    city = snapshot.city

    if snapshot.rainfall > 20:
        points += 40
        factors.append(f"Heavy rainfall in {city} ({_fmt(snapshot.rainfall)}mm/h)")
        affected = True
    elif snapshot.rainfall > 10:
        points += 25
        factors.append(f"Moderate rainfall in {city} ({_fmt(snapshot.rainfall)}mm/h)")

    if snapshot.wind_speed > 60:
        points += 35
        factors.append(f"Strong winds in {city} ({_fmt(snapshot.wind_speed)} km/h)")
        affected = True
    elif snapshot.wind_speed > 40:
        points += 20
        factors.append(f"Gusty winds in {city} ({_fmt(snapshot.wind_speed)} km/h)")

    if snapshot.temperature is not None and snapshot.temperature > 38:
        points += 15
        factors.append(f"Extreme heat in {city} ({_fmt(snapshot.temperature)}°C)")
        affected = True

    return points, factors, affected


def unique_items(items: list[str], limit: int | None = None) -> list[str]:
    seen = list(dict.fromkeys(items))
    return seen[:limit] if limit is not None else seen


def advisory_text(tier: str, suspend: bool, affected: list[str], factors: list[str]) -> str:
    if suspend:
        where = ", ".join(affected) or "the affected areas"
        concerns = "; ".join(factors[:3]) or "elevated combined risk score"
        return (
            f"CLASS SUSPENSION RECOMMENDED for {where}. Dangerous conditions "
            f"detected: {concerns}. Parents and guardians should keep children "
            "at home. Schools should prepare for extended closure if conditions worsen."
        )
    if factors:
        return (
            f"Monitor conditions closely. Risk level: {tier}. "
            f"Current concerns: {'; '.join(factors[:2])}."
        )
    return (
        f"Monitor conditions closely. Risk level: {tier}. "
        "Weather conditions within normal parameters."
    )


def priority_actions(suspend: bool, affected: list[str]) -> list[str]:
    if suspend:
        return [
            "Issue immediate class suspension announcement",
            f"Alert all schools in {', '.join(affected) or 'the affected areas'}",
            "Notify parents via SMS/social media",
            "Activate emergency response teams",
            "Monitor conditions for possible extension",
        ]
    return [
        "Continue active monitoring",
        "Prepare contingency plans",
        "Keep communication channels open",
        "Update every 2-3 hours",
    ]


def expected_conditions(combined_score: int) -> str:
    if combined_score >= 50:
        return (
            "Conditions expected to remain severe for the next 6-12 hours. Heavy "
            "rainfall and strong winds may continue. Roads may become impassable. "
            "Exercise extreme caution."
        )
    if combined_score >= 30:
        return (
            "Moderate weather conditions expected to persist. Situation may improve "
            "or worsen depending on weather system movement. Stay updated with "
            "latest advisories."
        )
    return (
        "Weather conditions expected to remain stable or improve gradually. "
        "Normal activities can proceed with routine weather monitoring."
    )


def score_advisory(
    snapshots: list[WeatherSnapshot],
    reports: list[Report],
    now: datetime | None = None,
) -> RiskAssessment:
    """
    Core fallback computation for the suspension advisory.

    Empty inputs are fine: no telemetry and no reports yields a Low,
    not-recommended assessment with a zero score.
    """
    raw_weather = 0
    factors: list[str] = []
    affected: list[str] = []

    for snapshot in snapshots:
        points, city_factors, is_affected = weather_contribution(snapshot)
        raw_weather += points
        factors.extend(city_factors)
        if is_affected:
            affected.append(snapshot.city)

    critical_reports = [r for r in reports if r.is_critical_or_high]
    reports_score = min(len(critical_reports) * 10, 100)

    if len(critical_reports) >= 5:
        factors.append(f"{len(critical_reports)} critical community reports")
        for report in critical_reports[:3]:
            if report.city and report.city != UNKNOWN_CITY:
                affected.append(report.city)

    # Straight 50/50 average, even when one of the two signals is absent.
    combined = clamp_score(min((raw_weather + reports_score) / 2, 100))
    tier, suspend = risk_tier(combined)

    affected = unique_items(affected)
    factors = unique_items(factors, MAX_RISK_FACTORS)

    return RiskAssessment(
        overall_risk=tier,
        suspension_recommended=suspend,
        weather_score=clamp_score(raw_weather),
        reports_score=reports_score,
        combined_score=combined,
        affected_cities=affected,
        risk_factors=factors,
        advisory=advisory_text(tier, suspend, affected, factors),
        priority_actions=priority_actions(suspend, affected),
        expected_conditions=expected_conditions(combined),
        source=SOURCE_FALLBACK,
        timestamp=(now or datetime.now(timezone.utc)).isoformat(),
    )


# ---------------------------------------------------------------------------
# (c) Grouping and compilation
# ---------------------------------------------------------------------------

DEFAULT_GROUP_WINDOW_MINUTES = 60
COMPILE_BASE_CONFIDENCE = 70
MAX_KEY_POINTS = 5

COMPILE_RECOMMENDATIONS = {
    "critical": "Recommend class suspension",
    "high": "Monitor situation closely and prepare for possible class suspension",
    "medium": "Monitor situation",
    "low": "No action needed",
}


def group_reports_by_location_and_time(
    reports: list[Report],
    window_minutes: int = DEFAULT_GROUP_WINDOW_MINUTES,
) -> list[list[Report]]:
    """
    Group reports about the same city made close together in time.

    A report joins the first group for its city whose first report is
    within *window_minutes* of it; otherwise it starts a new group. Undated
    reports for a city share one group of their own. Groups keep input order.
    """
    window = timedelta(minutes=window_minutes)
    groups: list[tuple[str, datetime | None, list[Report]]] = []

    for report in reports:
        key = city_key(report.city or UNKNOWN_CITY)
        for group_key, anchor, members in groups:
            if group_key != key:
                continue
            if anchor is None or report.created_at is None:
                joins = anchor is None and report.created_at is None
            else:
                joins = abs(report.created_at - anchor) <= window
            if joins:
                members.append(report)
                break
        else:
            groups.append((key, report.created_at, [report]))

    return [members for _, _, members in groups]


def report_severity(report: Report, keywords: KeywordTables = DEFAULT_KEYWORDS) -> str:
    """Declared severity, else one read from the text via the keyword tables."""
    if report.severity in SEVERITIES:
        return report.severity
    level, _ = classify_report(report, keywords)
    return level


def most_severe(severities: list[str]) -> str:
    return min(severities, key=SEVERITIES.index, default="low")


def primary_location(reports: list[Report]) -> tuple[str, int]:
    """The city most reports name (first seen wins ties) and its report count."""
    counts: dict[str, int] = {}
    for report in reports:
        city = report.city or UNKNOWN_CITY
        counts[city] = counts.get(city, 0) + 1
    if not counts:
        return UNKNOWN_CITY, 0
    city = max(counts, key=counts.get)
    return city, counts[city]


def word_count(reports: list[Report]) -> int:
    return sum(len(r.description.split()) for r in reports)


def compile_reports(
    reports: list[Report],
    keywords: KeywordTables | None = None,
    now: datetime | None = None,
) -> CompiledReport:
    """
    Merge a group of reports into one summary with an assigned severity.

    Severity is the worst of the reports' severities, reading the text where
    none was declared. Confidence starts at 70 and gains 10 each for three
    or more reports from one city, a single shared category, and photos.
    """
    if not reports:
        raise ValueError("No reports provided")
    keywords = keywords or DEFAULT_KEYWORDS

    rated = [(report_severity(r, keywords), r) for r in reports]
    severity = most_severe([s for s, _ in rated])
    location, same_place = primary_location(reports)
    locations = unique_items([r.city or UNKNOWN_CITY for r in reports])
    categories = unique_items([r.category for r in reports if r.category])
    images = sum(r.image_count for r in reports)

    confidence = COMPILE_BASE_CONFIDENCE
    if same_place >= 3:
        confidence += 10
    if len(reports) > 1 and len(categories) == 1:
        confidence += 10
    if images:
        confidence += 10

    worst_first = sorted(rated, key=lambda item: SEVERITIES.index(item[0]))
    key_points = [
        f"{r.city}: {r.description} ({s})" for s, r in worst_first if r.description
    ][:MAX_KEY_POINTS - 1]
    if images:
        key_points.append(f"{images} photo(s) attached across {len(reports)} report(s)")
    if not key_points:
        key_points = ["Manual review recommended"]

    summary = (
        f"{len(reports)} report(s) from {', '.join(locations)} describe "
        f"{', '.join(categories) or 'unspecified incidents'}. "
        f"Most severe reported condition: {severity}."
    )

    return CompiledReport(
        severity=severity,
        confidence=clamp_score(confidence),
        summary=summary,
        key_points=key_points,
        recommendation=COMPILE_RECOMMENDATIONS[severity],
        location=location,
        sources=len(reports),
        image_count=images,
        report_ids=[r.id for r in reports],
        word_count=word_count(reports),
        source=SOURCE_FALLBACK,
        timestamp=(now or datetime.now(timezone.utc)).isoformat(),
    )


# ---------------------------------------------------------------------------
# (d) Per-city analysis of compiled reports
# ---------------------------------------------------------------------------

LOCATION_SEVERITIES = ("CRITICAL", "HIGH", "MEDIUM", "LOW")
URGENCY_LEVELS = ("IMMEDIATE", "HIGH", "MODERATE", "LOW")
MAX_TOP_CATEGORIES = 3


def location_counts(reports: list[Report]) -> dict[str, int]:
    """Severity and status tallies for one city's reports."""
    return {
        "total": len(reports),
        "critical": sum(1 for r in reports if r.severity == "critical"),
        "high": sum(1 for r in reports if r.severity == "high"),
        "medium": sum(1 for r in reports if r.severity == "medium"),
        "verified": sum(1 for r in reports if r.status == "verified"),
        "pending": sum(1 for r in reports if r.status == "pending"),
    }


def location_severity(critical: int, high: int, medium: int) -> str:
    if critical >= 3:
        return "CRITICAL"
    if critical >= 1 or high >= 3:
        return "HIGH"
    if high >= 1 or medium >= 2:
        return "MEDIUM"
    return "LOW"


def urgency_level(severity: str) -> str:
    if severity == "CRITICAL":
        return "IMMEDIATE"
    if severity == "HIGH":
        return "HIGH"
    return "MODERATE"


def location_credibility(counts: dict[str, int], has_images: bool) -> int:
    score = 50
    if counts["verified"] > counts["total"] * 0.5:
        score += 20
    if counts["total"] >= 5:
        score += 15
    if has_images:
        score += 10
    return min(100, score)


def top_categories(reports: list[Report], limit: int = MAX_TOP_CATEGORIES) -> list[str]:
    tally: dict[str, int] = {}
    for report in reports:
        category = report.category or "general"
        tally[category] = tally.get(category, 0) + 1
    ranked = sorted(tally.items(), key=lambda item: -item[1])
    return [f"{category} ({count} reports)" for category, count in ranked[:limit]]


def analyze_location(
    city: str,
    reports: list[Report],
    now: datetime | None = None,
) -> LocationAnalysis:
    """Rule-based credibility, severity and pattern summary for one city."""
    counts = location_counts(reports)
    total = counts["total"]
    severity = location_severity(counts["critical"], counts["high"], counts["medium"])
    rate = round_half_up(counts["verified"] / total * 100) if total else 0
    categories = top_categories(reports)

    inconsistencies = []
    if counts["pending"] > counts["verified"] * 2:
        inconsistencies.append("High number of unverified reports - manual review recommended")

    if severity == "CRITICAL":
        first_step = "Immediate response required - dispatch emergency teams"
    else:
        first_step = "Monitor situation closely"
    if counts["pending"]:
        second_step = f"Verify {counts['pending']} pending reports"
    else:
        second_step = "Continue standard verification procedures"

    return LocationAnalysis(
        city=city,
        compiled_summary=(
            f"{city} has received {total} incident reports, with {counts['critical']} "
            f"marked as critical. The situation requires {severity.lower()} priority "
            "attention based on the volume and severity of reported incidents."
        ),
        credibility_score=location_credibility(counts, any(r.image_count for r in reports)),
        credibility_assessment=(
            f"Based on {counts['verified']} verified reports out of {total} total reports. "
            "Credibility assessment uses basic heuristics."
        ),
        actual_severity=severity,
        severity_reasoning=(
            f"Severity determined by {counts['critical']} critical and "
            f"{counts['high']} high-priority reports."
        ),
        patterns=(
            [f"Primary incident types: {', '.join(categories)}"]
            if categories else ["Insufficient data for pattern detection"]
        ),
        inconsistencies=inconsistencies,
        key_findings=[
            f"{total} total reports received",
            f"{counts['critical']} critical severity incidents",
            f"{rate}% verification rate",
        ],
        recommendations=[
            first_step,
            second_step,
            "Request AI analysis for more detailed insights",
        ],
        affected_areas=[city],
        estimated_impact=f"Potentially affecting multiple areas within {city}",
        urgency_level=urgency_level(severity),
        source=SOURCE_FALLBACK,
        timestamp=(now or datetime.now(timezone.utc)).isoformat(),
    )

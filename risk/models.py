"""
Domain types shared by the suspension decision engine.

Inputs (Report, WeatherSnapshot) are snapshots handed in by the caller.
Outputs (RiskAssessment, ReportClassification, CredibilityResult, PeerReview,
SuspensionCandidate, HeatIndexResult) are created fresh on every call and
never mutated afterwards.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime


# ---------------------------------------------------------------------------
# Enumerations (kept as plain strings, like the rest of the codebase)
# ---------------------------------------------------------------------------

WEATHER_CATEGORIES = ("flooding", "heavy_rain", "storm", "strong_wind", "landslide")
NON_WEATHER_CATEGORIES = ("road_blockage", "power_outage", "infrastructure", "other")
REPORT_CATEGORIES = WEATHER_CATEGORIES + NON_WEATHER_CATEGORIES

SEVERITIES = ("critical", "high", "medium", "low")
STATUSES = ("pending", "verified", "investigating", "resolved")

RISK_TIERS = ("Critical", "High", "Moderate", "Low")
PRIORITIES = ("Critical", "Medium", "Low")

SOURCE_AI = "ai"
SOURCE_FALLBACK = "fallback"

UNKNOWN_CITY = "Unknown"


def city_key(city: str) -> str:
    """Case- and whitespace-insensitive key used to match city names."""
    return " ".join(city.split()).casefold()


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positives (round() would round to even)."""
    return int(math.floor(value + 0.5))


def clamp_score(value: float, low: int = 0, high: int = 100) -> int:
    """Round and clamp a score into [low, high]."""
    return max(low, min(high, round_half_up(value)))


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Report:
    """A community hazard report, normalised at the boundary (data/reports.py)."""
    id: str
    category: str
    description: str
    city: str = UNKNOWN_CITY
    barangay: str | None = None
    severity: str | None = None       # critical | high | medium | low
    status: str = "pending"           # pending | verified | investigating | resolved
    created_at: datetime | None = None
    user_id: str | None = None
    image_count: int = 0

    @property
    def is_critical_or_high(self) -> bool:
        return self.severity in ("critical", "high")


@dataclass(frozen=True)
class WeatherSnapshot:
    """Current conditions for one city."""
    city: str
    temperature: float | None     # °C
    humidity: float | None        # %
    rainfall: float = 0.0         # mm/h
    wind_speed: float = 0.0       # km/h
    weather_condition: str = "Clear"   # Clear | Clouds | Rain | Drizzle | Thunderstorm | ...
    observed_at: datetime | None = None


# ---------------------------------------------------------------------------
# Outputs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RiskAssessment:
    overall_risk: str                 # Critical | High | Moderate | Low
    suspension_recommended: bool
    weather_score: int                # 0-100
    reports_score: int                # 0-100
    combined_score: int               # 0-100
    affected_cities: list[str]
    risk_factors: list[str]
    advisory: str
    priority_actions: list[str]
    expected_conditions: str
    source: str                       # "ai" | "fallback"
    timestamp: str                    # ISO-8601, UTC


@dataclass(frozen=True)
class LocationBreakdown:
    critical: int = 0
    medium: int = 0
    low: int = 0
    main_issues: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ReportClassification:
    summary: str
    total_reports: int
    critical_count: int
    medium_count: int
    low_count: int
    affected_areas: list[str]
    main_threats: list[str]
    priority: str                     # Critical | Medium | Low
    recommendation: str
    suspension_advised: bool
    reports_by_location: dict[str, LocationBreakdown]
    source: str


@dataclass(frozen=True)
class CredibilityResult:
    is_credible: bool
    confidence: int                   # 0-100, the value consumers should sort on
    reason: str
    suggestion: str | None = None
    warning: str | None = None
    weather_conditions_used: WeatherSnapshot | None = None


@dataclass(frozen=True)
class PeerReview:
    is_spam: bool
    credibility_score: int            # 0-100
    category: str                     # CREDIBLE | LIKELY_CREDIBLE | SUSPICIOUS | LIKELY_SPAM | SPAM
    reason: str
    red_flags: list[str]
    supporting_factors: list[str]
    recommendation: str               # APPROVE | REVIEW_MANUALLY | REJECT
    source: str


@dataclass(frozen=True)
class SuspensionCandidate:
    city: str
    critical_report_count: int
    high_report_count: int
    total_report_count: int
    rainfall: float
    wind_speed: float
    weather_risk: int
    report_risk: int
    risk_score: int                   # weather_risk + report_risk, never clamped
    has_weather_risk: bool
    already_suspended: bool
    reasons: list[str]


@dataclass(frozen=True)
class HeatIndexCategory:
    level: str
    label: str
    description: str
    recommendation: str
    suspension_recommended: bool
    suspension_reason: str | None


@dataclass(frozen=True)
class HeatIndexResult:
    heat_index: int                   # °C
    category: HeatIndexCategory


@dataclass(frozen=True)
class CompiledReport:
    """Several reports about one place and time merged into one summary."""
    severity: str                     # critical | high | medium | low
    confidence: int                   # 0-100
    summary: str
    key_points: list[str]
    recommendation: str
    location: str
    sources: int                      # number of reports compiled
    image_count: int
    report_ids: list[str]
    word_count: int                   # words in the original descriptions
    source: str
    timestamp: str


@dataclass(frozen=True)
class LocationAnalysis:
    """Credibility, severity and patterns across every report for one city."""
    city: str
    compiled_summary: str
    credibility_score: int            # 0-100
    credibility_assessment: str
    actual_severity: str              # CRITICAL | HIGH | MEDIUM | LOW
    severity_reasoning: str
    patterns: list[str]
    inconsistencies: list[str]
    key_findings: list[str]
    recommendations: list[str]
    affected_areas: list[str]
    estimated_impact: str
    urgency_level: str                # IMMEDIATE | HIGH | MODERATE | LOW
    source: str
    timestamp: str

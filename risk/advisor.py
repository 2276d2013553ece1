"""
AI advisory client.

Asks Google Gemini to classify reports, write the suspension advisory,
review single reports, compile report groups and analyse a city's reports,
and normalises its JSON replies into the same result
types the rule-based engine produces.

Two scorers share one interface:

  AiScorer        prompt → Gemini → extract JSON → validate → result (source="ai")
  FallbackScorer  risk.engine / risk.credibility            → result (source="fallback")

SuspensionAdvisor is the only place that chooses between them: the AI result
is used when the call succeeded and validated, otherwise the fallback answers.
Missing API key, HTTP errors, unparsable replies and out-of-range scores all
end up on the fallback path, so a failing AI service never blocks a decision.

One request per analysis, no retries. No timeout is enforced here; the caller
passes one to GeminiClient.
"""

import json
import os
import re
from datetime import datetime, timezone

import requests

from risk import credibility, engine
from risk.keywords import KeywordTables, load_keyword_tables
from risk.models import (
    PRIORITIES,
    RISK_TIERS,
    SOURCE_AI,
    SEVERITIES,
    SOURCE_FALLBACK,
    CompiledReport,
    LocationAnalysis,
    LocationBreakdown,
    PeerReview,
    Report,
    ReportClassification,
    RiskAssessment,
    WeatherSnapshot,
    clamp_score,
)


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
DEFAULT_MODEL = "gemini-1.5-flash"
PROVINCE = "Batangas Province"

# Most recent N reports sent to the model, to bound request size
CLASSIFICATION_REPORT_LIMIT = 50
ADVISORY_REPORT_LIMIT = 20
REVIEW_PEER_LIMIT = 10
COMPILE_REPORT_LIMIT = 20
LOCATION_REPORT_LIMIT = 50

REVIEW_CATEGORIES = ("CREDIBLE", "LIKELY_CREDIBLE", "SUSPICIOUS", "LIKELY_SPAM", "SPAM")
REVIEW_RECOMMENDATIONS = ("APPROVE", "REVIEW_MANUALLY", "REJECT")


class AdvisoryError(Exception):
    """The AI service could not produce a usable answer."""


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------

class GeminiClient:
    """Thin wrapper over the generateContent endpoint. Returns the reply text."""

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        timeout: float | None = None,
        post=requests.post,
    ):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._post = post

    def generate(self, prompt: str, temperature: float = 0.3, max_tokens: int = 1024) -> str:
        if not self.api_key:
            raise AdvisoryError("GEMINI_API_KEY not configured")

        body = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": temperature,
                "topK": 40,
                "topP": 0.95,
                "maxOutputTokens": max_tokens,
            },
        }

        try:
            resp = self._post(
                GEMINI_API_URL.format(model=self.model),
                params={"key": self.api_key},
                json=body,
                timeout=self.timeout,
            )
            resp.raise_for_status()
            data = resp.json()
        except requests.RequestException as e:
            raise AdvisoryError(f"Gemini request failed: {e}") from e
        except ValueError as e:
            raise AdvisoryError(f"Gemini returned a non-JSON body: {e}") from e

        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise AdvisoryError("Gemini reply contained no text") from e

        if not isinstance(text, str) or not text.strip():
            raise AdvisoryError("Gemini reply was empty")
        return text


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def most_recent(reports: list[Report], limit: int) -> list[Report]:
    """Newest first; undated reports sort last."""
    ordered = sorted(reports, key=lambda r: r.created_at or _OLDEST, reverse=True)
    return ordered[:limit]


def _when(report: Report) -> str:
    if report.created_at is None:
        return "Unknown"
    return report.created_at.strftime("%Y-%m-%d %H:%M")


def _where(report: Report) -> str:
    if report.barangay:
        return f"{report.city}, {report.barangay}"
    return report.city


def build_classification_prompt(reports: list[Report]) -> str:
    shown = most_recent(reports, CLASSIFICATION_REPORT_LIMIT)
    lines = []
    for i, r in enumerate(shown, 1):
        lines.append(
            f"{i}. Location: {_where(r)}\n"
            f"   Category: {r.category or 'general'}\n"
            f"   Description: {r.description or 'No description'}\n"
            f"   Severity: {r.severity or 'unknown'}\n"
            f"   Time: {_when(r)}"
        )

    return f"""You are an AI assistant for the {PROVINCE} disaster management system in the Philippines.
Analyze these community disaster reports and classify them by priority for class suspension decisions.

Instructions:
1. Classify each report as: Critical (immediate danger), Medium (monitor closely), or Low (normal conditions)
2. Identify patterns across locations (flooding, landslides, strong winds, etc.)
3. Count critical reports per city/municipality
4. Provide overall risk assessment
5. Recommend whether class suspension should be considered

Reports ({len(reports)} total, {len(shown)} most recent shown):
{chr(10).join(lines)}

Respond in JSON format:
{{
  "summary": "Brief summary of overall situation",
  "totalReports": {len(reports)},
  "criticalCount": 0,
  "mediumCount": 0,
  "lowCount": 0,
  "affectedAreas": ["City1", "City2"],
  "mainThreats": ["flooding", "strong winds"],
  "priority": "Critical|Medium|Low",
  "recommendation": "Detailed recommendation for LGUs and schools",
  "suspensionAdvised": true,
  "reportsByLocation": {{
    "CityName": {{"critical": 0, "medium": 0, "low": 0, "mainIssues": ["flooding"]}}
  }}
}}"""


def build_advisory_prompt(snapshots: list[WeatherSnapshot], reports: list[Report]) -> str:
    weather_lines = [
        f"{s.city}: {s.temperature if s.temperature is not None else 'N/A'}°C, {s.weather_condition}\n"
        f"Rainfall: {s.rainfall:g}mm/h, Wind: {s.wind_speed:g} km/h, "
        f"Humidity: {s.humidity if s.humidity is not None else 'N/A'}%"
        for s in snapshots
    ]
    report_lines = [
        f"{i}. [{r.category or 'general'}] {r.city}: {r.description} "
        f"(Severity: {r.severity or 'unknown'})"
        for i, r in enumerate(most_recent(reports, ADVISORY_REPORT_LIMIT), 1)
    ]

    return f"""You are a disaster management AI for {PROVINCE}, Philippines.
Analyze weather conditions and community reports to determine if class suspension should be recommended.

WEATHER DATA ({len(snapshots)} cities):
{chr(10).join(weather_lines) or 'No weather data available'}

COMMUNITY REPORTS ({len(reports)} total, showing most recent):
{chr(10).join(report_lines) or 'No reports'}

CRITERIA FOR CLASS SUSPENSION:
- Heavy rainfall (>20mm/h) OR Strong winds (>60km/h)
- Multiple flooding reports in school areas
- Landslides or infrastructure damage near schools
- Critical severity reports affecting transport routes
- Temperature extremes (>38°C)

Provide analysis in JSON format. All scores are integers from 0 to 100:
{{
  "overallRisk": "Critical|High|Moderate|Low",
  "suspensionRecommended": true,
  "affectedCities": ["City1", "City2"],
  "riskFactors": ["heavy rainfall in Lipa", "5 flooding reports"],
  "weatherScore": 0,
  "reportsScore": 0,
  "combinedScore": 0,
  "advisory": "Detailed advisory message for LGUs, schools, and parents",
  "priorityActions": ["Issue immediate suspension", "Alert affected schools"],
  "expectedConditions": "Description of expected conditions in next 6-12 hours"
}}"""


def build_review_prompt(report: Report, peers: list[Report]) -> str:
    others = most_recent([p for p in peers if p.id != report.id], REVIEW_PEER_LIMIT)
    peer_lines = [
        f"Report {i}:\n"
        f"  Category: {p.category or 'general'}\n"
        f"  Severity: {p.severity or 'unknown'}\n"
        f"  Description: {p.description or 'No description'}\n"
        f"  Time: {_when(p)}\n"
        f"  Has Images: {'Yes' if p.image_count else 'No'}"
        for i, p in enumerate(others, 1)
    ]

    return f"""You are an AI assistant helping detect spam and fake weather incident reports for {report.city} in {PROVINCE}, Philippines.

REPORT TO ANALYZE:
Category: {report.category or 'general'}
Severity: {report.severity or 'unknown'}
Description: {report.description or 'No description'}
Time: {_when(report)}
Location: {_where(report)}
Has Images: {f'Yes ({report.image_count})' if report.image_count else 'No'}
Status: {report.status}

OTHER REPORTS FROM THE SAME CITY (for comparison):
{chr(10).join(peer_lines) or 'No other reports to compare'}

Decide whether this report is CREDIBLE or SPAM. Consider consistency with the other
reports, specificity, plausibility for the stated severity, supporting images,
duplicates, and contradictions.

Respond in JSON format ONLY:
{{
  "isSpam": false,
  "credibilityScore": 0,
  "spamReason": "Specific explanation of why this is spam or credible",
  "category": "CREDIBLE|LIKELY_CREDIBLE|SUSPICIOUS|LIKELY_SPAM|SPAM",
  "redFlags": ["specific red flag"],
  "supportingFactors": ["factor that supports credibility"],
  "recommendation": "APPROVE|REVIEW_MANUALLY|REJECT"
}}"""


def build_compile_prompt(reports: list[Report]) -> str:
    shown = most_recent(reports, COMPILE_REPORT_LIMIT)
    blocks = [
        f"Report {i}:\n"
        f"Location: {_where(r)}\n"
        f"Time: {_when(r)}\n"
        f"Type: {r.category or 'general'}\n"
        f"Description: {r.description or 'No description'}\n"
        f"{f'Images: {r.image_count} attached' if r.image_count else 'No images'}\n"
        "---"
        for i, r in enumerate(shown, 1)
    ]

    return f"""You are an AI assistant helping the Local Government Unit (LGU) analyze weather-related community reports for class suspension decisions.

Analyze these {len(reports)} community reports and provide:

1. Severity Level: "critical", "high", "medium", or "low"
   - Critical: Immediate danger, flooding, impassable roads, severe storm
   - High: Heavy rain, strong winds, potential flooding, safety concerns
   - Medium: Moderate weather conditions, some disruption
   - Low: Light rain, minor issues
2. Confidence Score (0-100) based on the number of reports from the same
   location, consistency of descriptions and severity of reported conditions
3. Compiled Summary (100-150 words) for government officials
4. Key Points: 3-5 of the most critical facts
5. Recommendation: e.g. "Recommend class suspension", "Monitor situation", "No action needed"

Reports to analyze:
{chr(10).join(blocks)}

Respond in JSON format:
{{
  "severity": "critical|high|medium|low",
  "confidence": 85,
  "summary": "Your compiled summary here...",
  "keyPoints": ["point 1", "point 2", "point 3"],
  "recommendation": "Your recommendation",
  "location": "Primary affected location"
}}"""


def build_location_prompt(city: str, reports: list[Report]) -> str:
    counts = engine.location_counts(reports)
    shown = most_recent(reports, LOCATION_REPORT_LIMIT)
    blocks = [
        f"Report {i}:\n"
        f"  Severity: {r.severity or 'unknown'}\n"
        f"  Category: {r.category or 'general'}\n"
        f"  Status: {r.status}\n"
        f"  Description: {r.description or 'No description'}\n"
        f"  Time: {_when(r)}\n"
        f"  Location: {r.barangay or ''}, {r.city or city}\n"
        f"  Has Images: {f'Yes ({r.image_count})' if r.image_count else 'No'}"
        for i, r in enumerate(shown, 1)
    ]

    return f"""You are an AI assistant helping emergency management officials in {PROVINCE}, Philippines analyze compiled weather-related incident reports for a specific location.

LOCATION: {city}
TOTAL REPORTS: {counts['total']}
CRITICAL REPORTS: {counts['critical']}
HIGH PRIORITY REPORTS: {counts['high']}
MEDIUM PRIORITY REPORTS: {counts['medium']}
VERIFIED REPORTS: {counts['verified']}
PENDING REPORTS: {counts['pending']}

INDIVIDUAL REPORTS ({len(shown)} most recent shown):
{chr(10).join(blocks) or 'No reports'}

Analyze ALL these reports and provide: a 3-4 sentence compiled summary of what
is actually happening in {city}; a credibility score (0-100) based on consistency,
detail, verification status, images, duplicates and contradictions; the actual
severity of all reports combined; patterns (timeline, common themes, geography);
inconsistencies or likely fake reports; and actionable recommendations.

Respond in JSON format ONLY (no markdown, no extra text):
{{
  "compiledSummary": "3-4 sentence compiled narrative of the situation",
  "credibilityScore": 75,
  "credibilityAssessment": "Explanation of the credibility score",
  "actualSeverity": "CRITICAL|HIGH|MEDIUM|LOW",
  "severityReasoning": "Why this severity level",
  "patterns": ["pattern 1", "pattern 2"],
  "inconsistencies": ["red flag 1"],
  "keyFindings": ["finding 1", "finding 2", "finding 3"],
  "recommendations": ["action 1", "action 2", "action 3"],
  "affectedAreas": ["Barangay 1", "Barangay 2"],
  "estimatedImpact": "Estimated impact on residents and infrastructure",
  "urgencyLevel": "IMMEDIATE|HIGH|MODERATE|LOW"
}}"""


# ---------------------------------------------------------------------------
# Reply parsing and validation
# ---------------------------------------------------------------------------

FENCED_JSON = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")
BARE_OBJECT = re.compile(r"\{[\s\S]*\}")


def extract_json(text: str) -> dict:
    """Pull one JSON object out of a model reply, fenced or not."""
    match = FENCED_JSON.search(text) or BARE_OBJECT.search(text)
    if match:
        candidate = match.group(1) if match.groups() else match.group(0)
    else:
        candidate = text

    try:
        data = json.loads(candidate.strip())
    except ValueError as e:
        raise AdvisoryError(f"AI reply is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise AdvisoryError("AI reply is not a JSON object")
    return data


def _number(data: dict, key: str) -> float:
    value = data.get(key)
    if isinstance(value, bool):
        raise AdvisoryError(f"'{key}' is not numeric")
    if isinstance(value, str):
        try:
            value = float(value.strip().rstrip("%"))
        except ValueError:
            raise AdvisoryError(f"'{key}' is not numeric") from None
    if not isinstance(value, (int, float)):
        raise AdvisoryError(f"missing numeric field '{key}'")
    return float(value)


def _score(data: dict, key: str) -> int:
    value = _number(data, key)
    if not 0 <= value <= 100:
        raise AdvisoryError(f"'{key}' out of range: {value}")
    return clamp_score(value)


def _count(data: dict, key: str) -> int:
    value = _number(data, key)
    if value < 0:
        raise AdvisoryError(f"'{key}' is negative: {value}")
    return int(value)


def _text(value) -> str:
    return value.strip() if isinstance(value, str) else ""


def _strings(value, limit: int | None = None) -> list[str]:
    if not isinstance(value, list):
        return []
    items = [v.strip() for v in value if isinstance(v, str) and v.strip()]
    return engine.unique_items(items, limit)


def _choice(value, options: tuple[str, ...]) -> str | None:
    if not isinstance(value, str):
        return None
    for option in options:
        if value.strip().lower() == option.lower():
            return option
    return None


def normalize_assessment(data: dict, now: datetime | None = None) -> RiskAssessment:
    weather_score = _score(data, "weatherScore")
    reports_score = _score(data, "reportsScore")
    combined = _score(data, "combinedScore")

    derived_tier, derived_suspend = engine.risk_tier(combined)
    tier = _choice(data.get("overallRisk"), RISK_TIERS) or derived_tier
    suspend = data.get("suspensionRecommended")
    if not isinstance(suspend, bool):
        suspend = derived_suspend

    affected = _strings(data.get("affectedCities"))
    factors = _strings(data.get("riskFactors"), engine.MAX_RISK_FACTORS)

    actions = _strings(data.get("priorityActions"))
    if len(actions) < 3:
        actions = engine.unique_items(actions + engine.priority_actions(suspend, affected))

    return RiskAssessment(
        overall_risk=tier,
        suspension_recommended=suspend,
        weather_score=weather_score,
        reports_score=reports_score,
        combined_score=combined,
        affected_cities=affected,
        risk_factors=factors,
        advisory=_text(data.get("advisory")) or engine.advisory_text(tier, suspend, affected, factors),
        priority_actions=actions,
        expected_conditions=_text(data.get("expectedConditions")) or engine.expected_conditions(combined),
        source=SOURCE_AI,
        timestamp=(now or datetime.now(timezone.utc)).isoformat(),
    )


def _breakdowns(value) -> dict[str, LocationBreakdown]:
    if not isinstance(value, dict):
        return {}
    result = {}
    for city, entry in value.items():
        if not isinstance(city, str) or not isinstance(entry, dict):
            continue
        try:
            result[city] = LocationBreakdown(
                critical=_count(entry, "critical") if "critical" in entry else 0,
                medium=_count(entry, "medium") if "medium" in entry else 0,
                low=_count(entry, "low") if "low" in entry else 0,
                main_issues=_strings(entry.get("mainIssues")),
            )
        except AdvisoryError:
            continue
    return result


def normalize_classification(data: dict, reports: list[Report]) -> ReportClassification:
    critical = _count(data, "criticalCount")
    medium = _count(data, "mediumCount")
    low = _count(data, "lowCount")

    priority = _choice(data.get("priority"), PRIORITIES) or engine.classification_priority(critical, medium)
    advised = data.get("suspensionAdvised")
    if not isinstance(advised, bool):
        advised = priority == "Critical"

    areas = _strings(data.get("affectedAreas"))
    summary = _text(data.get("summary")) or (
        f"{len(reports)} community reports analyzed. {critical} critical alerts detected."
    )

    return ReportClassification(
        summary=summary,
        total_reports=len(reports),
        critical_count=critical,
        medium_count=medium,
        low_count=low,
        affected_areas=areas,
        main_threats=_strings(data.get("mainThreats")),
        priority=priority,
        recommendation=_text(data.get("recommendation"))
        or engine.classification_recommendation(priority, critical, medium, areas),
        suspension_advised=advised,
        reports_by_location=_breakdowns(data.get("reportsByLocation")),
        source=SOURCE_AI,
    )


def normalize_review(data: dict) -> PeerReview:
    score = _score(data, "credibilityScore")
    is_spam = data.get("isSpam")
    if not isinstance(is_spam, bool):
        is_spam = score < 40

    return PeerReview(
        is_spam=is_spam,
        credibility_score=score,
        category=_choice(data.get("category"), REVIEW_CATEGORIES) or credibility.review_category(score),
        reason=_text(data.get("spamReason")) or "No explanation provided",
        red_flags=_strings(data.get("redFlags")),
        supporting_factors=_strings(data.get("supportingFactors")),
        recommendation=_choice(data.get("recommendation"), REVIEW_RECOMMENDATIONS)
        or credibility.review_recommendation(score),
        source=SOURCE_AI,
    )


def normalize_compiled(data: dict, reports: list[Report], now: datetime | None = None) -> CompiledReport:
    confidence = _score(data, "confidence")
    fallback = engine.compile_reports(reports, now=now)
    severity = _choice(data.get("severity"), SEVERITIES) or fallback.severity

    return CompiledReport(
        severity=severity,
        confidence=confidence,
        summary=_text(data.get("summary")) or fallback.summary,
        key_points=_strings(data.get("keyPoints"), engine.MAX_KEY_POINTS) or fallback.key_points,
        recommendation=_text(data.get("recommendation")) or engine.COMPILE_RECOMMENDATIONS[severity],
        location=_text(data.get("location")) or fallback.location,
        sources=len(reports),
        image_count=fallback.image_count,
        report_ids=fallback.report_ids,
        word_count=fallback.word_count,
        source=SOURCE_AI,
        timestamp=fallback.timestamp,
    )


def normalize_location(
    data: dict,
    city: str,
    reports: list[Report],
    now: datetime | None = None,
) -> LocationAnalysis:
    score = _score(data, "credibilityScore")
    fallback = engine.analyze_location(city, reports, now=now)
    severity = _choice(data.get("actualSeverity"), engine.LOCATION_SEVERITIES) or fallback.actual_severity

    return LocationAnalysis(
        city=city,
        compiled_summary=_text(data.get("compiledSummary")) or fallback.compiled_summary,
        credibility_score=score,
        credibility_assessment=_text(data.get("credibilityAssessment")) or "No assessment available",
        actual_severity=severity,
        severity_reasoning=_text(data.get("severityReasoning")) or "No reasoning available",
        patterns=_strings(data.get("patterns")),
        inconsistencies=_strings(data.get("inconsistencies")),
        key_findings=_strings(data.get("keyFindings")),
        recommendations=_strings(data.get("recommendations")) or fallback.recommendations,
        affected_areas=_strings(data.get("affectedAreas")) or [city],
        estimated_impact=_text(data.get("estimatedImpact")) or "Impact assessment unavailable",
        urgency_level=_choice(data.get("urgencyLevel"), engine.URGENCY_LEVELS)
        or engine.urgency_level(severity),
        source=SOURCE_AI,
        timestamp=fallback.timestamp,
    )


# ---------------------------------------------------------------------------
# Scorers
# ---------------------------------------------------------------------------

class FallbackScorer:
    """Rule-based answers. Never raises for well-formed inputs."""

    source = SOURCE_FALLBACK

    def __init__(self, keywords: KeywordTables | None = None):
        self.keywords = keywords or load_keyword_tables()

    def classify_reports(self, reports: list[Report]) -> ReportClassification:
        return engine.classify_reports(reports, self.keywords)

    def advise(self, snapshots, reports, now=None) -> RiskAssessment:
        return engine.score_advisory(snapshots, reports, now=now)

    def review_report(self, report: Report, peers: list[Report]) -> PeerReview:
        return credibility.review_report(report, peers)

    def compile_reports(self, reports: list[Report], now=None) -> CompiledReport:
        return engine.compile_reports(reports, self.keywords, now=now)

    def analyze_location(self, city: str, reports: list[Report], now=None) -> LocationAnalysis:
        return engine.analyze_location(city, reports, now=now)


class AiScorer:
    """Gemini-backed answers. Raises AdvisoryError on anything unusable."""

    source = SOURCE_AI

    def __init__(self, client: GeminiClient):
        self.client = client

    def classify_reports(self, reports: list[Report]) -> ReportClassification:
        if not reports:
            raise AdvisoryError("no reports to classify")
        reply = self.client.generate(build_classification_prompt(reports), temperature=0.2)
        return normalize_classification(extract_json(reply), reports)

    def advise(self, snapshots, reports, now=None) -> RiskAssessment:
        reply = self.client.generate(build_advisory_prompt(snapshots, reports), temperature=0.3)
        return normalize_assessment(extract_json(reply), now=now)

    def review_report(self, report: Report, peers: list[Report]) -> PeerReview:
        reply = self.client.generate(build_review_prompt(report, peers), temperature=0.2, max_tokens=512)
        return normalize_review(extract_json(reply))

    def compile_reports(self, reports: list[Report], now=None) -> CompiledReport:
        if not reports:
            raise AdvisoryError("no reports to compile")
        reply = self.client.generate(build_compile_prompt(reports), temperature=0.4)
        return normalize_compiled(extract_json(reply), reports, now=now)

    def analyze_location(self, city: str, reports: list[Report], now=None) -> LocationAnalysis:
        if not reports:
            raise AdvisoryError(f"no reports for {city}")
        reply = self.client.generate(build_location_prompt(city, reports), temperature=0.3, max_tokens=2048)
        return normalize_location(extract_json(reply), city, reports, now=now)


# ---------------------------------------------------------------------------
# Public API — SuspensionAdvisor
# ---------------------------------------------------------------------------

class SuspensionAdvisor:
    """Runs each analysis on the AI scorer when available, else on the fallback."""

    def __init__(self, ai: AiScorer | None = None, fallback: FallbackScorer | None = None):
        self.ai = ai
        self.fallback = fallback or FallbackScorer()

    def _run(self, operation: str, *args):
        if self.ai is not None:
            try:
                return getattr(self.ai, operation)(*args)
            except (AdvisoryError, requests.RequestException) as e:
                print(f"[ADVISOR] {operation}: AI analysis failed ({e}) — using fallback")
            except Exception as e:
                print(
                    f"[ADVISOR] {operation}: unexpected {type(e).__name__} in AI path "
                    f"({e}) — using fallback"
                )
        return getattr(self.fallback, operation)(*args)

    def classify_reports(self, reports: list[Report]) -> ReportClassification:
        return self._run("classify_reports", reports)

    def advise(
        self,
        snapshots: list[WeatherSnapshot],
        reports: list[Report],
        now: datetime | None = None,
    ) -> RiskAssessment:
        return self._run("advise", snapshots, reports, now)

    def review_report(self, report: Report, peers: list[Report]) -> PeerReview:
        return self._run("review_report", report, peers)

    def compile_reports(self, reports: list[Report], now: datetime | None = None) -> CompiledReport:
        """One compiled summary for a group of reports. Raises ValueError when empty."""
        if not reports:
            raise ValueError("No reports provided")
        return self._run("compile_reports", reports, now)

    def analyze_location(
        self,
        city: str,
        reports: list[Report],
        now: datetime | None = None,
    ) -> LocationAnalysis:
        return self._run("analyze_location", city, reports, now)


def build_advisor(
    api_key: str | None = None,
    model: str | None = None,
    timeout: float | None = None,
) -> SuspensionAdvisor:
    """
    Build an advisor from arguments or the environment.

    Without GEMINI_API_KEY the advisor runs rule-based analysis only.
    """
    api_key = api_key if api_key is not None else os.getenv("GEMINI_API_KEY", "")
    if not api_key:
        print("[ADVISOR] GEMINI_API_KEY not configured — rule-based analysis only")
        return SuspensionAdvisor(ai=None)

    client = GeminiClient(
        api_key,
        model=model or os.getenv("GEMINI_MODEL", DEFAULT_MODEL),
        timeout=timeout,
    )
    return SuspensionAdvisor(ai=AiScorer(client))

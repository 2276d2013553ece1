"""
Report credibility checks.

verify_report()  — does the claimed hazard match live telemetry for the city?
review_report()  — is the report consistent with other reports from the city?
                   (rule-based; risk/advisor.py can answer the same question
                   with the AI service)

Both are pure and never reject a report just because evidence is missing:
no telemetry → credible with confidence 50.
"""

from risk.models import (
    NON_WEATHER_CATEGORIES,
    SOURCE_FALLBACK,
    CredibilityResult,
    PeerReview,
    Report,
    WeatherSnapshot,
)


# ---------------------------------------------------------------------------
# Category rules — each returns (is_credible, confidence, reason, warning, suggestion)
# ---------------------------------------------------------------------------

def _check_flooding(w: WeatherSnapshot) -> tuple:
    has_recent_rain = w.rainfall > 0 or w.weather_condition == "Rain"
    high_humidity = (w.humidity or 0) > 80

    if w.rainfall > 5:
        return (True, 95,
                f"Current heavy rainfall ({w.rainfall}mm/h) supports flooding report",
                None, None)

    if has_recent_rain or high_humidity:
        return (True, 75,
                f"Weather conditions ({w.weather_condition}, humidity: {w.humidity}%) "
                "are consistent with possible flooding",
                "Moderate credibility - light rainfall detected", None)

    if w.rainfall == 0 and w.weather_condition == "Clear":
        return (False, 30,
                f"No active rainfall detected (0mm/h). Current weather: {w.weather_condition}",
                "Current weather is clear with no rainfall",
                "Please verify this report. If flooding exists, it may be due to "
                "drainage issues or water from other areas.")

    return (True, 60,
            "Weather conditions neither strongly support nor contradict the report",
            "Unable to fully verify - weather data inconclusive", None)


def _check_heavy_rain(w: WeatherSnapshot) -> tuple:
    if w.rainfall > 7.5:
        return (True, 95, f"Very heavy rainfall confirmed ({w.rainfall}mm/h)", None, None)

    if w.rainfall > 2.5 or w.weather_condition == "Rain":
        return (True, 85,
                f"Rainfall detected ({w.rainfall}mm/h). Weather: {w.weather_condition}",
                None, None)

    if w.rainfall == 0 and "Rain" not in w.weather_condition:
        return (False, 25,
                f"Current weather: {w.weather_condition} with 0mm/h rainfall",
                "No rainfall detected at this time",
                "Current weather conditions do not support heavy rain reports. "
                "Please verify your location and timing.")

    return (True, 65, "Some precipitation possible but not confirmed",
            "Weather partially supports this report", None)


def _check_storm(w: WeatherSnapshot) -> tuple:
    storm_conditions = (
        (w.rainfall > 10 and w.wind_speed > 40)
        or w.weather_condition == "Thunderstorm"
        or w.wind_speed > 60
    )
    if storm_conditions:
        return (True, 95,
                f"Storm conditions confirmed: {w.rainfall}mm/h rainfall, {w.wind_speed}km/h winds",
                None, None)

    if w.rainfall > 5 or w.wind_speed > 30:
        return (True, 70,
                f"Severe weather developing: {w.rainfall}mm/h rainfall, {w.wind_speed}km/h winds",
                "Moderate weather activity detected", None)

    if w.rainfall < 2 and w.wind_speed < 20 and w.weather_condition == "Clear":
        return (False, 20,
                f"Current conditions are calm: {w.weather_condition}, "
                f"{w.wind_speed}km/h winds, {w.rainfall}mm/h rain",
                "No storm activity detected",
                "No storm or typhoon detected in your area at this time. "
                "Please check official weather advisories.")

    return (True, 60, "Some weather activity but not storm-level",
            "Weather conditions inconclusive for storm activity", None)


def _check_strong_wind(w: WeatherSnapshot) -> tuple:
    if w.wind_speed > 50:
        return (True, 95, f"Very strong winds confirmed ({w.wind_speed}km/h)", None, None)

    if w.wind_speed > 30:
        return (True, 85, f"Strong winds detected ({w.wind_speed}km/h)", None, None)

    if w.wind_speed < 15:
        return (False, 30,
                f"Wind speed is low ({w.wind_speed}km/h). Current weather: {w.weather_condition}",
                "Winds are currently calm",
                "Wind conditions appear normal at this time. Strong winds may be "
                "localized or have already passed.")

    return (True, 70, f"Wind speed: {w.wind_speed}km/h - within normal to moderate range",
            "Moderate wind activity", None)


def _check_landslide(w: WeatherSnapshot) -> tuple:
    humidity = w.humidity or 0

    if w.rainfall > 10 or (w.rainfall > 5 and humidity > 90):
        return (True, 90,
                f"Heavy rainfall ({w.rainfall}mm/h) and high humidity ({w.humidity}%) "
                "create landslide conditions",
                None, None)

    if w.rainfall > 2 or humidity > 80:
        return (True, 75, "Moderate rainfall and high humidity support possible landslide",
                None, None)

    # Soil can stay saturated long after the rain stops: note, never reject.
    if w.rainfall == 0 and w.weather_condition == "Clear":
        return (True, 60,
                "Landslides can occur after rainfall has stopped due to soil saturation",
                "Current weather is clear",
                "If this is an active landslide, please report exact location "
                "for emergency response.")

    return (True, 70, "Landslides can be caused by various factors beyond immediate weather",
            None, None)


CATEGORY_RULES = {
    "flooding": _check_flooding,
    "heavy_rain": _check_heavy_rain,
    "storm": _check_storm,
    "strong_wind": _check_strong_wind,
    "landslide": _check_landslide,
}


# ---------------------------------------------------------------------------
# Public API — verify_report()
# ---------------------------------------------------------------------------

def verify_report(report: Report, snapshot: WeatherSnapshot | None) -> CredibilityResult:
    """Cross-check a report's category against current telemetry for its city."""
    # Missing telemetry is checked first for every category, including the
    # ones that need no weather check: those score 50 here, 85 below.
    if snapshot is None:
        return CredibilityResult(
            is_credible=True,
            confidence=50,
            reason="Unable to verify - weather data unavailable",
        )

    if report.category in NON_WEATHER_CATEGORIES:
        return CredibilityResult(
            is_credible=True,
            confidence=85,
            reason="Report category does not require weather verification",
        )

    rule = CATEGORY_RULES.get(report.category)
    if rule is None:
        return CredibilityResult(
            is_credible=True,
            confidence=70,
            reason=f"Unable to verify this type of report ({report.category})",
        )

    is_credible, confidence, reason, warning, suggestion = rule(snapshot)
    return CredibilityResult(
        is_credible=is_credible,
        confidence=max(0, min(100, confidence)),
        reason=reason,
        suggestion=suggestion,
        warning=warning,
        weather_conditions_used=snapshot,
    )


def credibility_level(confidence: int) -> str:
    if confidence >= 80:
        return "High"
    if confidence >= 60:
        return "Moderate"
    if confidence >= 40:
        return "Low"
    return "Very Low"


# ---------------------------------------------------------------------------
# Peer consistency review (rule-based)
# ---------------------------------------------------------------------------

SIMILAR_WINDOW_SECONDS = 3600


def _seconds_apart(a: Report, b: Report) -> float:
    if a.created_at is None or b.created_at is None:
        # Undated reports are treated as simultaneous.
        return 0.0
    return abs((a.created_at - b.created_at).total_seconds())


def review_category(score: int) -> str:
    if score >= 80:
        return "CREDIBLE"
    if score >= 60:
        return "LIKELY_CREDIBLE"
    if score <= 30:
        return "SPAM"
    if score <= 50:
        return "LIKELY_SPAM"
    return "SUSPICIOUS"


def review_recommendation(score: int) -> str:
    if score >= 70:
        return "APPROVE"
    if score >= 40:
        return "REVIEW_MANUALLY"
    return "REJECT"


def review_report(report: Report, peers: list[Report]) -> PeerReview:
    """Score a report against other reports from the same city."""
    score = 50
    red_flags = []
    supporting = []

    if report.image_count > 0:
        score += 25
        supporting.append("Has supporting images")
    elif report.is_critical_or_high:
        score -= 15
        red_flags.append("High severity claim without images")

    length = len(report.description or "")
    if length < 20:
        score -= 20
        red_flags.append("Very short description")
    elif length > 50:
        score += 10
        supporting.append("Detailed description")

    if report.status == "verified":
        score += 20
        supporting.append("Verified by admin")

    others = [p for p in peers if p.id != report.id]
    similar = [
        p for p in others
        if p.category == report.category
        and _seconds_apart(p, report) < SIMILAR_WINDOW_SECONDS
    ]
    if len(similar) >= 2:
        score += 15
        supporting.append(f"{len(similar)} similar reports nearby")
    elif len(others) > 5 and not similar:
        score -= 10
        red_flags.append("No corroborating reports")

    score = max(0, min(100, score))

    return PeerReview(
        is_spam=score < 40,
        credibility_score=score,
        category=review_category(score),
        reason=(
            "Report appears credible based on available evidence"
            if score >= 60
            else "Report has multiple red flags suggesting low credibility"
        ),
        red_flags=red_flags,
        supporting_factors=supporting,
        recommendation=review_recommendation(score),
        source=SOURCE_FALLBACK,
    )

"""
SMS response formatter.

Produces SMS-ready text for:
  - City status (suspension recommended vs not)
  - Menu commands (WHY, Actions, Heat index)
  - Province overview with ranked suspension candidates
  - Error / help messages

Every response includes a menu footer so the user knows their options.
Templates are sized to fit within 2-3 SMS segments (~300-450 chars).
"""

from twilio.twiml.messaging_response import MessagingResponse

from risk.heat_index import heat_safety_tips
from risk.models import RiskAssessment, SuspensionCandidate


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

TIER_EMOJI = {
    "Critical": "\U0001f534",  # 🔴
    "High":     "\U0001f7e0",  # 🟠
    "Moderate": "\U0001f7e1",  # 🟡
    "Low":      "\u2705",      # ✅
}

SOURCE_LABELS = {
    "ai": "Gemini AI",
    "fallback": "Rule-based",
}

MENU_FOOTER = (
    "Reply:\n"
    "1 Status\n"
    "2 Actions\n"
    "3 Heat index\n"
    "WHY details\n"
    "ALL province\n"
    "Or text another city."
)

MENU_FOOTER_SHORT = "Reply 1-3, WHY, ALL, or a city."

MAX_OVERVIEW_CANDIDATES = 5


def _headline(assessment: RiskAssessment, title: str) -> str:
    emoji = TIER_EMOJI.get(assessment.overall_risk, "")
    return f"{emoji} {assessment.overall_risk.upper()} RISK | {title.upper()}"


def _weather_line(status) -> str:
    s = status.snapshot
    if s is None:
        return "Weather: Unavailable"
    temp = f"{s.temperature:g}°C, " if s.temperature is not None else ""
    return f"Weather: {temp}{s.weather_condition}, {s.rainfall:g}mm/h rain, {s.wind_speed:g} km/h wind"


# ---------------------------------------------------------------------------
# 1) City status — the first reply to a city text
# ---------------------------------------------------------------------------

def format_status(status) -> str:
    """
    Build the status SMS for one city.

    Two modes:
      - Suspend (Critical/High): verdict + weather + top actions + short menu
      - Monitor (Moderate/Low): verdict + weather + full menu
    """
    a = status.assessment
    verdict = "CLASS SUSPENSION RECOMMENDED" if a.suspension_recommended else "No suspension recommended"

    lines = [
        _headline(a, status.city),
        verdict,
        _weather_line(status),
    ]
    if status.heat is not None:
        lines.append(f"Heat index: {status.heat.heat_index}°C ({status.heat.category.label})")
    lines.append(f"Reports: {status.report_count} ({status.critical_count} critical/high)")
    lines.append("")

    if a.suspension_recommended:
        lines.append("DO NOW:")
        for i, action in enumerate(a.priority_actions[:3], 1):
            lines.append(f"{i}. {action}")
        lines.append("")
        lines.append(MENU_FOOTER_SHORT)
    else:
        if a.overall_risk == "Moderate":
            lines.append("Stay alert. Monitor official advisories.")
            lines.append("")
        lines.append(MENU_FOOTER)

    return "\n".join(lines)


# ---------------------------------------------------------------------------
# 2) Menu command responses
# ---------------------------------------------------------------------------

def format_why(status) -> str:
    """WHY — explainability: how the score was reached."""
    a = status.assessment
    lines = [
        f"{TIER_EMOJI.get(a.overall_risk, '')} WHY {a.overall_risk.upper()} | {status.city.upper()}",
        "",
        f"Weather score: {a.weather_score}/100",
        f"Reports score: {a.reports_score}/100",
        f"Combined: {a.combined_score}/100",
        "Thresholds: 70+ Critical, 50+ High (suspend), 30+ Moderate",
    ]
    if a.risk_factors:
        lines.append("")
        lines.append("Factors:")
        for factor in a.risk_factors[:4]:
            lines.append(f"- {factor}")
    lines.append("")
    lines.append(f"Source: {SOURCE_LABELS.get(a.source, a.source)}")
    lines.append(MENU_FOOTER_SHORT)
    return "\n".join(lines)


def format_actions(status) -> str:
    """Menu 2 — priority actions for schools and LGUs."""
    a = status.assessment
    lines = [
        f"{TIER_EMOJI.get(a.overall_risk, '')} ACTIONS | {status.city.upper()} ({a.overall_risk})",
        "",
    ]
    for i, action in enumerate(a.priority_actions, 1):
        lines.append(f"{i}. {action}")
    lines.append("")
    lines.append(a.expected_conditions)
    lines.append("")
    lines.append(MENU_FOOTER_SHORT)
    return "\n".join(lines)


def format_heat(status) -> str:
    """Menu 3 — heat index and safety tips."""
    if status.heat is None:
        return (
            f"HEAT INDEX | {status.city.upper()}\n"
            "Unavailable: no temperature/humidity reading.\n"
            "\n"
            f"{MENU_FOOTER_SHORT}"
        )

    heat = status.heat
    lines = [
        f"HEAT INDEX | {status.city.upper()}",
        f"{heat.heat_index}°C — {heat.category.label}",
        heat.category.description,
    ]
    if heat.category.suspension_recommended:
        lines.append(f"Suspension advised: {heat.category.suspension_reason}")
    lines.append("")
    for i, tip in enumerate(heat_safety_tips(heat.heat_index)[:4], 1):
        lines.append(f"{i}. {tip}")
    lines.append("")
    lines.append(MENU_FOOTER_SHORT)
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# 3) Province overview
# ---------------------------------------------------------------------------

def format_overview(assessment: RiskAssessment, candidates: list[SuspensionCandidate]) -> str:
    verdict = "SUSPENSION RECOMMENDED" if assessment.suspension_recommended else "No province-wide suspension"
    lines = [
        _headline(assessment, "Batangas"),
        f"{verdict} (score {assessment.combined_score})",
    ]
    if assessment.affected_cities:
        lines.append(f"Affected: {', '.join(assessment.affected_cities)}")
    lines.append("")

    if candidates:
        lines.append("Candidates:")
        for i, c in enumerate(candidates[:MAX_OVERVIEW_CANDIDATES], 1):
            mark = " (suspended)" if c.already_suspended else ""
            lines.append(f"{i}. {c.city} — {c.risk_score}{mark}")
    else:
        lines.append("No cities meet suspension criteria.")

    lines.append("")
    lines.append(MENU_FOOTER_SHORT)
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# 4) Error / help messages
# ---------------------------------------------------------------------------

def format_unknown_city(raw_input: str, known_cities: list[str]) -> str:
    """Reply when the parser can't match a monitored city."""
    return (
        f"\"{raw_input}\" is not a monitored city.\n"
        f"Try: {', '.join(known_cities[:5])}\n"
        "\n"
        "Or text STOP to unsubscribe."
    )


def format_no_session() -> str:
    """Reply when user sends a menu command but has no prior city."""
    return (
        "No city on file.\n"
        "Text a city name to get started.\n"
        "Example: Lipa City"
    )


def format_stop() -> str:
    """Reply for STOP / unsubscribe."""
    return "You've been unsubscribed. Text any city name to start again."


def format_help() -> str:
    return "Send a Batangas city (e.g. 'Lipa City' or 'Nasugbu') to get the class suspension status."


# ---------------------------------------------------------------------------
# TwiML wrapper
# ---------------------------------------------------------------------------

def format_twiml(sms_text: str) -> str:
    """Wrap SMS text in TwiML for Twilio webhook response."""
    resp = MessagingResponse()
    resp.message(sms_text)
    return str(resp)

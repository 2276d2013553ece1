#!/usr/bin/env python3
"""
Tests for the AI advisory client and the AI/fallback decision point.

All offline: the Gemini transport is replaced by fakes passed in through
GeminiClient(post=...) and AiScorer(client). One live check runs only from
the module runner when GEMINI_API_KEY is set:

    python -m tests.test_advisor          # offline + live
    python -m tests.test_advisor --quick  # offline only
"""

import json
import os
from datetime import datetime, timedelta, timezone

import requests

from tests.harness import run, section

NOW = datetime(2024, 7, 24, 8, 0, tzinfo=timezone.utc)

GOOD_ADVISORY = {
    "overallRisk": "High",
    "suspensionRecommended": True,
    "affectedCities": ["Lipa City"],
    "riskFactors": ["Heavy rainfall in Lipa City"],
    "weatherScore": 60,
    "reportsScore": 50,
    "combinedScore": 55,
    "advisory": "Suspend classes in Lipa City.",
    "priorityActions": ["Announce suspension", "Alert schools", "Notify parents"],
    "expectedConditions": "Rain continues through the afternoon.",
}


class FakeClient:
    """Stands in for GeminiClient: returns a canned reply or raises."""

    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.prompts = []

    def generate(self, prompt, temperature=0.3, max_tokens=1024):
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return self.reply


class FakeResponse:
    def __init__(self, payload=None, status=200, body_error=None):
        self.payload = payload
        self.status = status
        self.body_error = body_error

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status} Error")

    def json(self):
        if self.body_error:
            raise self.body_error
        return self.payload


def _gemini_payload(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def _snap(city="Lipa City", rain=25.0, wind=65.0):
    from risk.models import WeatherSnapshot
    return WeatherSnapshot(city=city, temperature=30.0, humidity=80.0, rainfall=rain, wind_speed=wind)


def _report(rid, severity=None, minutes_ago=0, category="flooding"):
    from risk.models import Report
    return Report(
        id=rid, category=category, description=f"Report {rid}", city="Lipa City",
        severity=severity, created_at=NOW - timedelta(minutes=minutes_ago),
    )


def _advisor(reply=None, error=None):
    from risk.advisor import AiScorer, SuspensionAdvisor
    client = FakeClient(reply, error)
    return SuspensionAdvisor(ai=AiScorer(client)), client


# ---------------------------------------------------------------------------
# 1. Transport
# ---------------------------------------------------------------------------
def test_gemini_client_request():
    section("TEST: Gemini Client - request and reply")
    from risk.advisor import GeminiClient

    calls = []

    def fake_post(url, params=None, json=None, timeout=None):
        calls.append({"url": url, "params": params, "json": json, "timeout": timeout})
        return FakeResponse(_gemini_payload("hello"))

    client = GeminiClient("test-key", model="gemini-test", timeout=7, post=fake_post)
    assert client.generate("prompt text", temperature=0.2, max_tokens=256) == "hello"

    call = calls[0]
    assert call["url"].endswith("/models/gemini-test:generateContent")
    assert call["params"] == {"key": "test-key"}
    assert call["timeout"] == 7
    assert call["json"]["contents"][0]["parts"][0]["text"] == "prompt text"
    assert call["json"]["generationConfig"]["temperature"] == 0.2
    assert call["json"]["generationConfig"]["maxOutputTokens"] == 256
    print("  PASS")


def test_gemini_client_failures():
    section("TEST: Gemini Client - failures become AdvisoryError")
    from risk.advisor import AdvisoryError, GeminiClient

    def post_returning(response):
        return lambda *args, **kwargs: response

    def post_raising(*args, **kwargs):
        raise requests.ConnectionError("network down")

    cases = [
        ("missing key", GeminiClient("", post=post_returning(FakeResponse(_gemini_payload("x"))))),
        ("network", GeminiClient("k", post=post_raising)),
        ("http 500", GeminiClient("k", post=post_returning(FakeResponse(status=500)))),
        ("bad body", GeminiClient("k", post=post_returning(FakeResponse(body_error=ValueError("bad"))))),
        ("no candidates", GeminiClient("k", post=post_returning(FakeResponse({"candidates": []})))),
        ("empty text", GeminiClient("k", post=post_returning(FakeResponse(_gemini_payload("   "))))),
    ]
    for name, client in cases:
        try:
            client.generate("p")
        except AdvisoryError as e:
            print(f"  {name:14s} → AdvisoryError({e})")
        else:
            raise AssertionError(f"{name}: expected AdvisoryError")
    print("  PASS")


# ---------------------------------------------------------------------------
# 2. Reply parsing
# ---------------------------------------------------------------------------
def test_extract_json():
    section("TEST: JSON Extraction")
    from risk.advisor import AdvisoryError, extract_json

    assert extract_json('{"a": 1}') == {"a": 1}
    assert extract_json('Here you go:\n```json\n{"a": 2}\n```\nThanks') == {"a": 2}
    assert extract_json('```\n{"a": 3}\n```') == {"a": 3}
    assert extract_json('Analysis follows {"a": {"b": 4}} end') == {"a": {"b": 4}}

    for bad in ("no json here", "[1, 2, 3]", "```json\n{broken\n```"):
        try:
            extract_json(bad)
        except AdvisoryError:
            continue
        raise AssertionError(f"expected AdvisoryError for {bad!r}")
    print("  PASS")


# ---------------------------------------------------------------------------
# 3. Decision point
# ---------------------------------------------------------------------------
def test_ai_advisory_used_when_valid():
    section("TEST: Advisor - valid AI reply is used")

    advisor, client = _advisor(f"```json\n{json.dumps(GOOD_ADVISORY)}\n```")
    a = advisor.advise([_snap()], [_report("r1", "high")], NOW)

    assert a.source == "ai"
    assert a.overall_risk == "High"
    assert a.suspension_recommended is True
    assert (a.weather_score, a.reports_score, a.combined_score) == (60, 50, 55)
    assert a.advisory == "Suspend classes in Lipa City."
    assert a.timestamp == NOW.isoformat()
    assert "Lipa City: 30.0°C" in client.prompts[0]
    print("  PASS")


def test_ai_advisory_falls_back():
    section("TEST: Advisor - unusable AI replies fall back")
    from risk.advisor import AdvisoryError
    from risk.engine import score_advisory

    snapshots, reports = [_snap()], [_report("r1", "critical")]
    expected = score_advisory(snapshots, reports, now=NOW)

    missing = dict(GOOD_ADVISORY)
    del missing["weatherScore"]
    out_of_range = dict(GOOD_ADVISORY, combinedScore=150)
    negative = dict(GOOD_ADVISORY, reportsScore=-5)
    boolean = dict(GOOD_ADVISORY, weatherScore=True)

    cases = [
        ("service error", None, AdvisoryError("timeout")),
        ("unexpected error", None, RuntimeError("boom")),
        ("not json", "I cannot help with that.", None),
        ("missing score", json.dumps(missing), None),
        ("score > 100", json.dumps(out_of_range), None),
        ("score < 0", json.dumps(negative), None),
        ("bool score", json.dumps(boolean), None),
    ]
    for name, reply, error in cases:
        advisor, _ = _advisor(reply, error)
        a = advisor.advise(snapshots, reports, NOW)
        print(f"  {name:16s} → source={a.source}")
        assert a.source == "fallback"
        assert a == expected
    print("  PASS")


def test_ai_advisory_normalized():
    section("TEST: Advisor - partial AI replies are completed")

    reply = {
        "overallRisk": "extreme",           # not a tier → derived from combined
        "weatherScore": "72",               # numeric strings accepted
        "reportsScore": 40.4,
        "combinedScore": 56.5,
        "priorityActions": ["Announce suspension"],
        "riskFactors": ["a", "a", "b"],
    }
    advisor, _ = _advisor(json.dumps(reply))
    a = advisor.advise([_snap()], [], NOW)

    assert a.source == "ai"
    assert (a.weather_score, a.reports_score, a.combined_score) == (72, 40, 57)
    assert a.overall_risk == "High"
    assert a.suspension_recommended is True
    assert a.risk_factors == ["a", "b"]
    assert a.priority_actions[0] == "Announce suspension"
    assert len(a.priority_actions) >= 3
    assert a.advisory.startswith("CLASS SUSPENSION RECOMMENDED")
    assert a.expected_conditions
    print("  PASS")


def test_no_ai_uses_fallback():
    section("TEST: Advisor - no AI configured")
    from risk.advisor import SuspensionAdvisor, build_advisor

    advisor = SuspensionAdvisor()
    assert advisor.advise([], [], NOW).source == "fallback"
    assert advisor.classify_reports([]).source == "fallback"

    advisor = build_advisor(api_key="")
    assert advisor.ai is None

    advisor = build_advisor(api_key="k", model="gemini-test", timeout=3)
    assert advisor.ai.client.model == "gemini-test"
    assert advisor.ai.client.timeout == 3
    print("  PASS")


def test_ai_classification():
    section("TEST: Advisor - report classification")
    reports = [_report("r1", "critical"), _report("r2"), _report("r3")]

    reply = {
        "summary": "Flooding in Lipa",
        "criticalCount": 1, "mediumCount": 1, "lowCount": 1,
        "affectedAreas": ["Lipa City"],
        "mainThreats": ["flooding"],
        "priority": "low",
        "recommendation": "Monitor.",
        "reportsByLocation": {
            "Lipa City": {"critical": 1, "medium": 1, "low": 1, "mainIssues": ["flooding"]},
            "Bad Entry": {"critical": -1},
        },
    }
    advisor, _ = _advisor(json.dumps(reply))
    c = advisor.classify_reports(reports)
    assert c.source == "ai"
    assert c.total_reports == 3
    assert c.priority == "Low"
    assert c.suspension_advised is False
    assert list(c.reports_by_location) == ["Lipa City"]

    # Empty batches never reach the AI service
    advisor, client = _advisor(json.dumps(reply))
    c = advisor.classify_reports([])
    assert c.source == "fallback"
    assert client.prompts == []

    bad = dict(reply, criticalCount=-2)
    advisor, _ = _advisor(json.dumps(bad))
    assert advisor.classify_reports(reports).source == "fallback"
    print("  PASS")


def test_ai_review():
    section("TEST: Advisor - peer review")
    report = _report("r1", "high")

    reply = {"isSpam": False, "credibilityScore": 82, "spamReason": "Consistent with peers",
             "category": "credible", "redFlags": [], "supportingFactors": ["3 similar reports"],
             "recommendation": "approve"}
    advisor, client = _advisor(json.dumps(reply))
    review = advisor.review_report(report, [report, _report("r2")])
    assert review.source == "ai"
    assert review.category == "CREDIBLE"
    assert review.recommendation == "APPROVE"
    assert "Report 1:" in client.prompts[0]
    assert "Report 2:" not in client.prompts[0]    # the reviewed report isn't its own peer

    advisor, _ = _advisor(json.dumps({"isSpam": False}))
    assert advisor.review_report(report, []).source == "fallback"
    print("  PASS")


def test_prompt_caps():
    section("TEST: Prompts - most recent reports only")
    from risk.advisor import build_advisory_prompt, build_classification_prompt, most_recent

    reports = [_report(f"r{i}", minutes_ago=i) for i in range(60)]
    assert [r.id for r in most_recent(reports, 3)] == ["r0", "r1", "r2"]

    prompt = build_classification_prompt(list(reversed(reports)))
    assert "60 total, 50 most recent shown" in prompt
    assert "Report r0" in prompt and "Report r49" in prompt
    assert "Report r50" not in prompt

    prompt = build_advisory_prompt([], reports)
    assert "20. [flooding]" in prompt
    assert "21. [flooding]" not in prompt
    assert "No weather data available" in prompt
    print("  PASS")


def test_ai_compile_reports():
    section("TEST: Advisor - compile reports")
    from risk.engine import compile_reports

    group = [_report("r1", "high"), _report("r2", minutes_ago=10)]
    reply = {"severity": "HIGH", "confidence": "80%", "summary": "Flooding near Lipa schools.",
             "keyPoints": ["Knee-deep water", "Two sources"], "recommendation": "Monitor situation",
             "location": "Lipa City"}
    advisor, client = _advisor(json.dumps(reply))
    c = advisor.compile_reports(group, NOW)
    assert c.source == "ai"
    assert (c.severity, c.confidence) == ("high", 80)
    assert c.sources == 2 and c.report_ids == ["r1", "r2"]
    assert "Analyze these 2 community reports" in client.prompts[0]
    print("  valid reply → AI compilation ✓")

    advisor, _ = _advisor(json.dumps(dict(reply, confidence=140)))
    assert advisor.compile_reports(group, NOW) == compile_reports(group, now=NOW)
    print("  out-of-range confidence → fallback ✓")

    advisor, client = _advisor(json.dumps(reply))
    try:
        advisor.compile_reports([], NOW)
        raise AssertionError("empty group should raise")
    except ValueError:
        pass
    assert client.prompts == []
    print("  empty group → ValueError, no AI call ✓")
    print("  PASS")


def test_ai_location_analysis():
    section("TEST: Advisor - location analysis")
    from risk.engine import analyze_location

    reports = [_report("r1", "critical"), _report("r2", "critical"), _report("r3", "high")]
    reply = {"compiledSummary": "Flooding across Lipa.", "credibilityScore": 88,
             "actualSeverity": "critical", "patterns": ["Started at 7am"],
             "recommendations": ["Dispatch teams"], "urgencyLevel": "bogus"}
    advisor, client = _advisor(json.dumps(reply))
    a = advisor.analyze_location("Lipa City", reports, NOW)
    assert a.source == "ai"
    assert a.actual_severity == "CRITICAL"
    assert a.urgency_level == "IMMEDIATE"        # derived from the severity
    assert a.credibility_score == 88
    assert a.affected_areas == ["Lipa City"]
    assert "CRITICAL REPORTS: 2" in client.prompts[0]
    print("  valid reply → AI analysis ✓")

    advisor, _ = _advisor(json.dumps({"compiledSummary": "No score"}))
    assert advisor.analyze_location("Lipa City", reports, NOW) == analyze_location("Lipa City", reports, now=NOW)

    advisor, client = _advisor(json.dumps(reply))
    assert advisor.analyze_location("Taal", [], NOW).source == "fallback"
    assert client.prompts == []
    print("  missing score or no reports → fallback ✓")
    print("  PASS")


def test_unexpected_ai_error_falls_back():
    section("TEST: Advisor - unexpected error in AI path")
    from risk.engine import score_advisory

    snapshots, reports = [_snap()], [_report("r1", "critical")]
    for error in (requests.ConnectionError("offline"), KeyError("weatherScore"),
                  ZeroDivisionError("bug")):
        advisor, _ = _advisor(error=error)
        assert advisor.advise(snapshots, reports, NOW) == score_advisory(snapshots, reports, now=NOW)
    print("  PASS")


# ---------------------------------------------------------------------------
# 4. Live (module runner only)
# ---------------------------------------------------------------------------
def live_gemini_advisory():
    section("LIVE: Gemini advisory")
    from risk.advisor import build_advisor

    if not os.getenv("GEMINI_API_KEY"):
        print("  SKIP (GEMINI_API_KEY not set)")
        return

    a = build_advisor(timeout=20).advise([_snap()], [_report("r1", "critical")])
    print(f"  {a.overall_risk} (combined={a.combined_score}) source={a.source}")
    assert 0 <= a.combined_score <= 100
    print("  PASS")


TESTS = [
    ("Gemini Client Request", test_gemini_client_request),
    ("Gemini Client Failures", test_gemini_client_failures),
    ("Extract JSON", test_extract_json),
    ("AI Advisory Valid", test_ai_advisory_used_when_valid),
    ("AI Advisory Fallback", test_ai_advisory_falls_back),
    ("AI Advisory Normalized", test_ai_advisory_normalized),
    ("No AI", test_no_ai_uses_fallback),
    ("AI Classification", test_ai_classification),
    ("AI Review", test_ai_review),
    ("Prompt Caps", test_prompt_caps),
    ("AI Compile Reports", test_ai_compile_reports),
    ("AI Location Analysis", test_ai_location_analysis),
    ("Unexpected AI Error", test_unexpected_ai_error_falls_back),
]

LIVE = [
    ("Gemini Advisory", live_gemini_advisory),
]


if __name__ == "__main__":
    run(TESTS, LIVE)

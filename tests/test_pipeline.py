#!/usr/bin/env python3
"""
Test harness for the class suspension pipeline.

Tests the SMS flow offline with fake weather/report sources, then (unless
--quick) the full pipeline end-to-end against live APIs.
Run from repo root:  python -m tests.test_pipeline

Usage:
    python -m tests.test_pipeline                  # run all tests
    python -m tests.test_pipeline --quick          # skip slow API calls
    python -m tests.test_pipeline --city "Lipa City"
    python -m tests.test_pipeline --demo           # simulate a full SMS conversation
"""

import sys
import time
from datetime import datetime, timezone

from tests.harness import run, section

NOW = datetime(2024, 7, 24, 8, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------
def _snap(city, rain=0.0, wind=0.0, temp=31.0, humidity=70.0, condition="Clouds"):
    from risk.models import WeatherSnapshot
    return WeatherSnapshot(
        city=city, temperature=temp, humidity=humidity,
        rainfall=rain, wind_speed=wind, weather_condition=condition,
    )


def _report(rid, city, severity=None, category="flooding"):
    from risk.models import Report
    return Report(id=rid, category=category, description="Flooded road near school",
                  city=city, severity=severity, created_at=NOW)


STORMY = {
    "Lipa City": _snap("Lipa City", rain=28, wind=70, condition="Thunderstorm"),
    "Taal": _snap("Taal", rain=2, wind=10),
}

REPORTS = [
    _report("r1", "Lipa City", "critical"),
    _report("r2", "Lipa City", "high"),
    _report("r3", "Lipa City", "critical"),
    _report("r4", "Taal", "low"),
]


def fake_weather(city):
    return STORMY.get(city)


def fake_weather_many(cities):
    return [STORMY[c] for c in cities if c in STORMY]


def fake_load():
    return list(REPORTS)


def _fallback_advisor():
    from risk.advisor import SuspensionAdvisor
    return SuspensionAdvisor()


def _status(city="Lipa City"):
    from pipeline import assess_city
    status, _, _ = assess_city(city, _fallback_advisor(), fetch_weather=fake_weather,
                               load=fake_load, now=NOW)
    return status


# ---------------------------------------------------------------------------
# 1. City assessment (offline)
# ---------------------------------------------------------------------------
def test_assess_city():
    section("TEST: City Assessment (offline)")
    from pipeline import assess_city

    status, sms, twiml = assess_city("Lipa City", _fallback_advisor(),
                                     fetch_weather=fake_weather, load=fake_load, now=NOW)
    a = status.assessment

    # weather 40 + 35 = 75, reports 3 × 10 = 30 → combined 52.5 → 53
    assert a.combined_score == 53
    assert a.overall_risk == "High"
    assert a.suspension_recommended is True
    assert status.report_count == 3 and status.critical_count == 3
    assert status.heat is not None

    assert "HIGH RISK | LIPA CITY" in sms
    assert "CLASS SUSPENSION RECOMMENDED" in sms
    assert "DO NOW:" in sms
    assert "Reply" in sms
    assert twiml.startswith("<?xml")
    print(f"  Lipa City → {a.overall_risk} ({a.combined_score}), {len(sms)} chars ✓")

    status, sms, _ = assess_city("Nasugbu", _fallback_advisor(),
                                 fetch_weather=fake_weather, load=fake_load, now=NOW)
    assert status.snapshot is None and status.heat is None
    assert status.assessment.overall_risk == "Low"
    assert "Weather: Unavailable" in sms
    assert "DO NOW:" not in sms
    assert "1 Status" in sms
    print("  Nasugbu (no telemetry, no reports) → Low with full menu ✓")
    print("  PASS")


# ---------------------------------------------------------------------------
# 2. Menu commands (offline)
# ---------------------------------------------------------------------------
def test_menu_commands():
    section("TEST: Menu Commands (offline)")
    from pipeline import handle_menu

    status = _status()
    commands = {
        "1": ("SUSPENSION RECOMMENDED", "status (number)"),
        "status": ("SUSPENSION RECOMMENDED", "status (word)"),
        "2": ("ACTIONS", "actions (number)"),
        "actions": ("ACTIONS", "actions (word)"),
        "3": ("HEAT INDEX", "heat (number)"),
        "heat": ("HEAT INDEX", "heat (word)"),
        "why": ("Combined: 53/100", "explainability"),
        "WHY": ("Weather score: 75/100", "case insensitive"),
        "stop": ("unsubscribed", "stop message"),
    }

    for cmd, (expected_text, desc) in commands.items():
        sms, twiml = handle_menu(cmd, status)
        found = expected_text.lower() in sms.lower()
        print(f"  Menu '{cmd:7s}' → {desc:20s} {'PASS' if found else 'FAIL'}")
        assert found, f"Expected '{expected_text}' in response to '{cmd}'"

    sms, _ = handle_menu("2", None)
    assert "No city" in sms
    print("  Menu no-session → asks for city ✓")

    sms, _ = handle_menu("stop", None)
    assert "unsubscribed" in sms.lower()
    print("  STOP no-session → still works ✓")

    sms, _ = handle_menu("all", None, overview=lambda: (None, [], "PROVINCE OVERVIEW"))
    assert sms == "PROVINCE OVERVIEW"
    print("  ALL → province overview ✓")
    print("  PASS")


def test_command_detection():
    section("TEST: Command Detection (offline)")
    from pipeline import is_menu_command

    menu_inputs = ["1", "2", "3", "WHY", "why", "STOP", " 2 ", "status", "ACTIONS", "heat", "all"]
    city_inputs = ["Lipa City", "Taal", "4", "hello", ""]

    for inp in menu_inputs:
        assert is_menu_command(inp), f"Should be menu: '{inp}'"
    for inp in city_inputs:
        assert not is_menu_command(inp), f"Should NOT be menu: '{inp}'"
    print("  PASS")


def test_parse_intent():
    section("TEST: Intent Parsing (offline)")
    from parser.intent_parser import parse_intent, resolve_city

    assert parse_intent("WHY") == {"type": "command", "action": "why"}
    assert parse_intent("1")["action"] == "status"

    cases = {
        "Lipa City": "Lipa City",
        "lipa": "Lipa City",
        "  TANAUAN  ": "Tanauan City",
        "Tanawan": "Tanauan City",
        "santo tomas": "Santo Tomas",
        "Brgy Marawoy, Lipa City": "Lipa City",
        "city of batangas": "Batangas City",
    }
    for text, city in cases.items():
        got = resolve_city(text)
        print(f"  {text!r:28s} → {got}")
        assert got == city, (text, got)

    intent = parse_intent("hello world")
    assert intent["type"] == "unknown"
    assert "Lipa City" in intent["known_cities"]
    print("  PASS")


# ---------------------------------------------------------------------------
# 3. Province overview and verification (offline)
# ---------------------------------------------------------------------------
def test_province_overview():
    section("TEST: Province Overview (offline)")
    from pipeline import province_overview

    assessment, candidates, sms = province_overview(
        _fallback_advisor(), cities=["Lipa City", "Taal", "Nasugbu"],
        fetch_weather=fake_weather_many, load=fake_load, suspended=["Lipa City"], now=NOW,
    )
    assert assessment.source == "fallback"
    assert [c.city for c in candidates] == ["Lipa City"]
    assert candidates[0].already_suspended is True
    assert "Lipa City" in sms and "(suspended)" in sms
    print(f"  {assessment.overall_risk} ({assessment.combined_score}), "
          f"{len(candidates)} candidate(s) ✓")
    print("  PASS")


def test_verify_submission():
    section("TEST: Report Verification (offline)")
    from pipeline import verify_submission

    fetched = []

    def tracking_weather(city):
        fetched.append(city)
        return fake_weather(city)

    result = verify_submission(_report("n1", "Lipa City", category="storm"), fetch_weather=tracking_weather)
    assert result.is_credible is True and result.confidence == 95
    assert fetched == ["Lipa City"]

    result = verify_submission(_report("n2", "Unknown"), fetch_weather=tracking_weather)
    assert result.confidence == 50
    assert fetched == ["Lipa City"]     # no lookup for an unknown city

    result = verify_submission(_report("n3", "Taal", category="heavy_rain"),
                               snapshot=_snap("Taal", rain=0, condition="Clear"),
                               fetch_weather=tracking_weather)
    assert result.is_credible is False
    assert fetched == ["Lipa City"]
    print("  PASS")


# ---------------------------------------------------------------------------
# 4. Flask app (offline)
# ---------------------------------------------------------------------------
def test_flask_routes():
    section("TEST: Flask Routes (offline)")
    import pipeline
    from app import app

    pipeline._advisor = _fallback_advisor()
    client = app.test_client()

    assert client.get("/health").get_json() == {"status": "ok"}

    resp = client.get("/api/heat-index?temperature=32&humidity=70")
    assert resp.status_code == 200
    assert resp.get_json()["category"]["label"] == "Extreme Caution"
    assert client.get("/api/heat-index?temperature=32").status_code == 400
    assert client.get("/api/heat-index?temperature=hot&humidity=70").status_code == 400
    for query in ("temperature=nan&humidity=50", "temperature=inf&humidity=50",
                  "temperature=32&humidity=nan", "temperature=32&humidity=120",
                  "temperature=32&humidity=-5"):
        assert client.get(f"/api/heat-index?{query}").status_code == 400, query
    print("  /health, /api/heat-index ✓")

    payload = {
        "weather": [{"city": "Lipa City", "temperature": 30, "humidity": 80,
                     "rainfall": 25, "windSpeed": 65}],
        "reports": [{"id": "r1", "category": "flooding", "description": "Flood",
                     "location": {"city": "Lipa City"}, "severity": "critical"}],
    }
    body = client.post("/api/advisory", json=payload).get_json()
    assert body["combined_score"] == 43 and body["source"] == "fallback"

    body = client.post("/api/reports/classify", json={"reports": payload["reports"]}).get_json()
    assert body["critical_count"] == 1

    body = client.post("/api/candidates", json=dict(payload, suspended=[])).get_json()
    assert [c["city"] for c in body] == ["Lipa City"]

    verify = dict(payload["reports"][0], weather=payload["weather"][0])
    body = client.post("/api/reports/verify", json=verify).get_json()
    assert body["confidence"] == 95

    body = client.post("/api/reports/review", json={"report": payload["reports"][0], "peers": []}).get_json()
    assert body["source"] == "fallback"
    assert client.post("/api/reports/review", json={}).status_code == 400
    print("  /api/advisory, classify, candidates, verify, review ✓")

    reports = [
        {"id": "c1", "category": "flooding", "description": "Flooded road",
         "location": {"city": "Lipa City"}, "severity": "critical", "status": "verified",
         "createdAt": "2024-07-24T08:00:00Z"},
        {"id": "c2", "category": "flooding", "description": "Water rising",
         "location": {"city": "Lipa City"}, "severity": "high",
         "createdAt": "2024-07-24T08:30:00Z"},
        {"id": "c3", "category": "storm", "description": "Strong gusts",
         "location": {"city": "Taal"}, "createdAt": "2024-07-24T08:10:00Z"},
    ]
    body = client.post("/api/reports/compile", json={"reports": reports}).get_json()
    assert [c["report_ids"] for c in body] == [["c1", "c2"], ["c3"]]
    assert body[0]["severity"] == "critical" and body[0]["source"] == "fallback"
    assert client.post("/api/reports/compile", json={"reports": reports,
                                                      "windowMinutes": 0}).status_code == 400

    body = client.post("/api/locations/analysis", json={"city": "lipa", "reports": reports}).get_json()
    assert body["city"] == "Lipa City"
    assert body["actual_severity"] == "HIGH"
    assert body["key_findings"][0] == "2 total reports received"
    assert client.post("/api/locations/analysis", json={"city": "Cebu"}).status_code == 400
    print("  /api/reports/compile, /api/locations/analysis ✓")

    resp = client.post("/sms", data={"Body": "", "From": "+639170000000"})
    assert b"<Message>" in resp.data
    resp = client.post("/sms", data={"Body": "hello world", "From": "+639170000000"})
    assert b"not a monitored city" in resp.data
    resp = client.post("/sms", data={"Body": "2", "From": "+639170000000"})
    assert b"No city on file" in resp.data
    print("  /sms help, unknown city, no session ✓")
    print("  PASS")


# ---------------------------------------------------------------------------
# 5. Full pipeline end-to-end (live)
# ---------------------------------------------------------------------------
def live_full_pipeline():
    section("TEST: Full Pipeline (end-to-end, live APIs)")
    from geocoder import MONITORED_CITIES
    from pipeline import assess_city

    for city in MONITORED_CITIES[:4]:  # first 4 to save time
        t0 = time.time()
        status, _, _ = assess_city(city)
        a = status.assessment
        print(f"  {city:15s} → {a.overall_risk:8s} (combined={a.combined_score:>3d}, "
              f"source={a.source}) [{time.time() - t0:.1f}s]")
    print("  PASS")


def live_open_meteo():
    section("TEST: Open-Meteo Current Conditions (live)")
    from data.weather import fetch_snapshot

    snapshot = fetch_snapshot("Lipa City")
    assert snapshot is not None, "Open-Meteo should return data"
    print(f"  {snapshot}")
    assert snapshot.rainfall >= 0 and snapshot.wind_speed >= 0
    print("  PASS")


# ---------------------------------------------------------------------------
# 6. Demo mode — simulate a full SMS conversation
# ---------------------------------------------------------------------------
def demo_conversation():
    section("DEMO: Simulated SMS Conversation")
    from pipeline import assess_city, handle_menu

    def show(user, reply):
        print(f"  USER → {user}")
        print("  BOT  ←")
        for line in reply.split("\n"):
            print(f"         {line}")
        print()

    status, sms, _ = assess_city("Lipa City")
    show("Lipa", sms)
    show("WHY", handle_menu("why", status)[0])
    show("3", handle_menu("3", status)[0])
    show("ALL", handle_menu("all", status)[0])
    print("  DEMO COMPLETE")


TESTS = [
    ("Assess City", test_assess_city),
    ("Menu Commands", test_menu_commands),
    ("Command Detection", test_command_detection),
    ("Parse Intent", test_parse_intent),
    ("Province Overview", test_province_overview),
    ("Verify Submission", test_verify_submission),
    ("Flask Routes", test_flask_routes),
]

LIVE = [
    ("Open-Meteo", live_open_meteo),
    ("Full Pipeline", live_full_pipeline),
]


def main():
    args = sys.argv[1:]

    if "--city" in args:
        city = args[args.index("--city") + 1]
        section(f"Single city: {city}")
        from pipeline import assess_city
        assess_city(city)
        return

    if "--demo" in args:
        demo_conversation()
        return

    run(TESTS, LIVE)


if __name__ == "__main__":
    main()

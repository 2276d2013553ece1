"""
app.py — Flask entry point for the Batangas Class Suspension Advisor.

Exposes:
    POST /sms                   — Twilio webhook (receives SMS, returns TwiML)
    POST /api/advisory          — Suspension advisory from weather + reports
    POST /api/reports/classify  — Priority classification of a report batch
    POST /api/reports/verify    — Weather cross-check of one report
    POST /api/reports/review    — Peer consistency review of one report
    POST /api/reports/compile   — Compiled summaries per place-and-time group
    POST /api/locations/analysis — Credibility/severity analysis for one city
    POST /api/candidates        — Ranked suspension candidates
    GET  /api/heat-index        — Heat index for ?temperature=&humidity=
    GET  /health                — Simple health check

Bridges:
    parser/  → matches raw SMS text to a monitored city
    pipeline → runs city assessments or handles menu commands
"""

import math
import os
from dataclasses import asdict

from flask import Flask, jsonify, request
from dotenv import load_dotenv
from twilio.twiml.messaging_response import MessagingResponse

from data.reports import load_reports, parse_report, reports_for_city
from data.weather import fetch_snapshots, snapshot_from_dict
from geocoder import MONITORED_CITIES, match_city
from parser.intent_parser import parse_intent
from pipeline import (
    analyze_city_reports,
    assess_city,
    compile_report_groups,
    default_advisor,
    handle_menu,
    is_menu_command,
    suspended_cities,
    verify_submission,
)
from risk.candidates import rank_candidates
from risk.engine import DEFAULT_GROUP_WINDOW_MINUTES
from risk.heat_index import assess_heat
from risk.response import format_help, format_twiml, format_unknown_city

load_dotenv()

app = Flask(__name__)

# ---------------------------------------------------------------------------
# In-memory session store: phone_number → CityStatus
# (In production, replace with Redis or a database.)
# ---------------------------------------------------------------------------
sessions: dict = {}


def _twiml(body: str):
    return body, 200, {"Content-Type": "text/xml"}


@app.route("/sms", methods=["POST"])
def sms_webhook():
    """
    Twilio webhook endpoint.

    Flow:
      1. Read Body + From from Twilio POST
      2. If Body is a menu command (1-3, WHY, ALL, STOP) → handle_menu()
      3. If Body is a monitored city → assess_city() → store session
      4. Return TwiML response
    """
    body = request.form.get("Body", "").strip()
    from_number = request.form.get("From", "")

    # Empty message → help text
    if not body:
        resp = MessagingResponse()
        resp.message(format_help())
        return _twiml(str(resp))

    # --- Menu command ---
    if is_menu_command(body):
        sms_text, twiml = handle_menu(body, sessions.get(from_number))
        if body.strip().lower() == "stop":
            sessions.pop(from_number, None)
        return _twiml(twiml)

    # --- City ---
    intent = parse_intent(body)
    if intent["type"] != "city":
        print(f"[APP] Unrecognised city from {from_number}: {body!r}")
        return _twiml(format_twiml(format_unknown_city(body, MONITORED_CITIES)))

    status, sms_text, twiml = assess_city(intent["city"])
    sessions[from_number] = status
    return _twiml(twiml)


# ---------------------------------------------------------------------------
# JSON API
# ---------------------------------------------------------------------------

def _payload() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _reports_from(payload: dict, key: str = "reports"):
    """Reports from the payload when given, else from the report store."""
    if key in payload:
        return [parse_report(r) for r in payload[key] if isinstance(r, dict)]
    return load_reports()


def _weather_from(payload: dict, key: str = "weather"):
    """Snapshots from the payload when given, else live for every monitored city."""
    if key in payload:
        return [snapshot_from_dict(w) for w in payload[key] if isinstance(w, dict)]
    return fetch_snapshots(MONITORED_CITIES)


def _bad_request(message: str):
    return jsonify({"error": message}), 400


@app.route("/api/advisory", methods=["POST"])
def advisory():
    payload = _payload()
    try:
        snapshots = _weather_from(payload)
        reports = _reports_from(payload)
    except (TypeError, ValueError) as e:
        return _bad_request(f"Invalid input: {e}")

    assessment = default_advisor().advise(snapshots, reports)
    return jsonify(asdict(assessment))


@app.route("/api/reports/classify", methods=["POST"])
def classify():
    payload = _payload()
    try:
        reports = _reports_from(payload)
    except (TypeError, ValueError) as e:
        return _bad_request(f"Invalid input: {e}")

    return jsonify(asdict(default_advisor().classify_reports(reports)))


@app.route("/api/reports/verify", methods=["POST"])
def verify():
    payload = _payload()
    if not payload:
        return _bad_request("Expected a JSON report")
    try:
        report = parse_report(payload)
        snapshot = snapshot_from_dict(payload["weather"]) if isinstance(payload.get("weather"), dict) else None
    except (TypeError, ValueError) as e:
        return _bad_request(f"Invalid input: {e}")

    return jsonify(asdict(verify_submission(report, snapshot)))


@app.route("/api/reports/review", methods=["POST"])
def review():
    payload = _payload()
    if not isinstance(payload.get("report"), dict):
        return _bad_request("Expected {\"report\": {...}}")
    try:
        report = parse_report(payload["report"])
        if "peers" in payload:
            peers = _reports_from(payload, key="peers")
        else:
            peers = reports_for_city(load_reports(), report.city)
    except (TypeError, ValueError) as e:
        return _bad_request(f"Invalid input: {e}")

    return jsonify(asdict(default_advisor().review_report(report, peers)))


@app.route("/api/reports/compile", methods=["POST"])
def compile_reports():
    payload = _payload()
    try:
        reports = _reports_from(payload)
        window = int(payload.get("windowMinutes", DEFAULT_GROUP_WINDOW_MINUTES))
    except (TypeError, ValueError) as e:
        return _bad_request(f"Invalid input: {e}")
    if window <= 0:
        return _bad_request("windowMinutes must be positive")

    compiled = compile_report_groups(reports, window_minutes=window)
    return jsonify([asdict(c) for c in compiled])


@app.route("/api/locations/analysis", methods=["POST"])
def location_analysis():
    payload = _payload()
    city = match_city(str(payload.get("city") or ""))
    if city is None:
        return _bad_request("Expected {\"city\": <monitored city>}")

    if "reports" in payload:
        try:
            reports = reports_for_city(_reports_from(payload), city)
        except (TypeError, ValueError) as e:
            return _bad_request(f"Invalid input: {e}")
        analysis = default_advisor().analyze_location(city, reports)
    else:
        analysis = analyze_city_reports(city)
    return jsonify(asdict(analysis))


@app.route("/api/candidates", methods=["POST"])
def candidates():
    payload = _payload()
    try:
        snapshots = _weather_from(payload)
        reports = _reports_from(payload)
    except (TypeError, ValueError) as e:
        return _bad_request(f"Invalid input: {e}")

    suspended = payload.get("suspended")
    if not isinstance(suspended, list):
        suspended = suspended_cities()

    ranked = rank_candidates(reports, snapshots, [str(c) for c in suspended])
    return jsonify([asdict(c) for c in ranked])


@app.route("/api/heat-index", methods=["GET"])
def heat_index():
    try:
        temperature = float(request.args["temperature"])
        humidity = float(request.args["humidity"])
    except KeyError as e:
        return _bad_request(f"Missing parameter: {e.args[0]}")
    except ValueError:
        return _bad_request("temperature and humidity must be numbers")

    if not (math.isfinite(temperature) and math.isfinite(humidity)):
        return _bad_request("temperature and humidity must be finite numbers")
    if not 0 <= humidity <= 100:
        return _bad_request("humidity must be between 0 and 100")

    return jsonify(asdict(assess_heat(temperature, humidity)))


@app.route("/health", methods=["GET"])
def health():
    """Simple health check."""
    return {"status": "ok"}, 200


if __name__ == "__main__":
    port = int(os.getenv("PORT", 5000))
    debug = os.getenv("FLASK_DEBUG", "0") == "1"
    app.run(host="0.0.0.0", port=port, debug=debug)

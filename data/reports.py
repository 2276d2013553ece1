"""
Community report store.

Reports are kept as a JSON array (REPORTS_PATH, default reports.json) in
the shape the report-submission app writes them:

    {
      "id": "r1",
      "category": "flooding",
      "description": "Knee-deep water on the national highway",
      "location": {"city": "Lipa City", "barangay": "Marawoy"},
      "severity": "high",
      "status": "pending",
      "createdAt": "2024-07-24T08:15:00Z",      # or epoch seconds, or {"seconds": ...}
      "userId": "u42",
      "images": ["https://..."]
    }

parse_report() turns one of those into a Report, substituting defaults for
anything missing so the engine never sees a half-filled record.
"""

import json
import os
from datetime import datetime, timezone

from risk.models import SEVERITIES, STATUSES, UNKNOWN_CITY, Report, city_key


DEFAULT_REPORTS_PATH = "reports.json"


def parse_timestamp(value) -> datetime | None:
    """ISO-8601 string, epoch seconds/millis, or {"seconds": ...} → aware UTC datetime."""
    if value is None or value == "":
        return None

    if isinstance(value, dict):
        value = value.get("seconds", value.get("_seconds"))
        if value is None:
            return None

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = value / 1000 if value > 1e11 else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)

    return None


def _clean(value) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_report(raw: dict) -> Report:
    location = raw.get("location") if isinstance(raw.get("location"), dict) else {}

    city = _clean(location.get("city")) or _clean(raw.get("city")) or UNKNOWN_CITY
    barangay = _clean(location.get("barangay")) or _clean(raw.get("barangay"))

    severity = _clean(raw.get("severity"))
    severity = severity.lower() if severity else None
    if severity not in SEVERITIES:
        severity = None

    status = (_clean(raw.get("status")) or "pending").lower()
    if status not in STATUSES:
        status = "pending"

    images = raw.get("images")
    if isinstance(images, list):
        image_count = len(images)
    else:
        try:
            image_count = max(0, int(raw.get("imageCount") or 0))
        except (TypeError, ValueError):
            image_count = 0

    return Report(
        id=_clean(raw.get("id")) or "",
        category=(_clean(raw.get("category")) or "other").lower(),
        description=_clean(raw.get("description")) or "",
        city=city,
        barangay=barangay,
        severity=severity,
        status=status,
        created_at=parse_timestamp(raw.get("createdAt", raw.get("created_at"))),
        user_id=_clean(raw.get("userId", raw.get("user_id"))),
        image_count=image_count,
    )


def load_reports(path: str | None = None) -> list[Report]:
    """
    Load every report from *path* (or REPORTS_PATH).

    A missing, unreadable or corrupt file is an empty store. Entries that
    aren't objects are skipped.
    """
    path = path or os.getenv("REPORTS_PATH", DEFAULT_REPORTS_PATH)
    if not os.path.exists(path):
        print(f"[REPORTS] {path} not found — no reports loaded")
        return []

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        print(f"[REPORTS] Could not read {path}: {e} — no reports loaded")
        return []

    if not isinstance(data, list):
        print(f"[REPORTS] {path} is not a JSON array — no reports loaded")
        return []

    reports = [parse_report(item) for item in data if isinstance(item, dict)]
    print(f"[REPORTS] Loaded {len(reports)} reports from {path}")
    return reports


def reports_for_city(reports: list[Report], city: str) -> list[Report]:
    key = city_key(city)
    return [r for r in reports if city_key(r.city) == key]

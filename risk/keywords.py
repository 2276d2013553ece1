"""
Keyword tables for rule-based report classification.

The defaults below can be replaced without touching the scorer by pointing
RISK_KEYWORDS_PATH at a JSON file:

    {"critical": ["flood", "landslide", ...], "medium": ["rain", ...]}

Order matters: the first critical keyword found in a report is the one
recorded as its threat.
"""

import json
import os
from dataclasses import dataclass


@dataclass(frozen=True)
class KeywordTables:
    critical: tuple[str, ...]
    medium: tuple[str, ...]


DEFAULT_KEYWORDS = KeywordTables(
    critical=(
        "flood", "landslide", "strong wind", "typhoon", "severe",
        "emergency", "impassable", "evacuation", "danger",
    ),
    medium=(
        "rain", "wind", "weather", "storm", "warning", "alert", "slippery",
    ),
)


def load_keyword_tables(path: str | None = None) -> KeywordTables:
    """
    Load keyword tables from *path* (or RISK_KEYWORDS_PATH).

    Missing or unreadable files fall back to DEFAULT_KEYWORDS; a table
    missing from the file keeps its default.
    """
    path = path or os.getenv("RISK_KEYWORDS_PATH")
    if not path:
        return DEFAULT_KEYWORDS

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        critical = data.get("critical", DEFAULT_KEYWORDS.critical)
        medium = data.get("medium", DEFAULT_KEYWORDS.medium)
        return KeywordTables(
            critical=tuple(str(k).lower() for k in critical),
            medium=tuple(str(k).lower() for k in medium),
        )
    except (OSError, ValueError, AttributeError) as e:
        print(f"[KEYWORDS] Could not load {path}: {e} — using defaults")
        return DEFAULT_KEYWORDS

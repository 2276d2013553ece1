"""
intent_parser.py — City-first SMS intent parser.

Flow:
  1. User sends a city name (e.g. "Lipa" or "Tanauan City")
  2. System matches it against the monitored Batangas cities
  3. System returns the city + available command menu

If the message is a known command keyword, it is returned as an action
instead of being treated as a city.
"""

from geocoder import MONITORED_CITIES, match_city

# ---------------------------------------------------------------------------
# Known commands the user can send *after* choosing a city.
# ---------------------------------------------------------------------------

KNOWN_COMMANDS = {
    "1":       "status",    # Suspension status for the city
    "status":  "status",
    "2":       "actions",   # Priority actions
    "actions": "actions",
    "3":       "heat",      # Heat index
    "heat":    "heat",
    "why":     "why",       # Explain the score
    "all":     "all",       # Province-wide overview + candidates
    "stop":    "stop",      # Unsubscribe
}

COMMAND_MENU = (
    "Reply with:\n"
    "  1 - Suspension status\n"
    "  2 - Priority actions\n"
    "  3 - Heat index\n"
    "  WHY - Explain score\n"
    "  ALL - Province overview\n"
    "  STOP - Unsubscribe"
)


def normalize_text(raw: str) -> str:
    """Lowercase, strip, collapse whitespace."""
    return " ".join(raw.lower().split())


def resolve_city(raw: str) -> str | None:
    """Map a free-text city to its display name, or None if it isn't monitored."""
    text = normalize_text(raw)
    for prefix in ("city of ", "brgy ", "barangay "):
        if text.startswith(prefix):
            text = text[len(prefix):]
    # "Marawoy, Lipa City" → try the part after the last comma too
    if "," in text:
        return match_city(text.rsplit(",", 1)[1]) or match_city(text)
    return match_city(text)


# ---------------------------------------------------------------------------
# Public API — parse_intent()
# ---------------------------------------------------------------------------

def parse_intent(raw_text: str) -> dict:
    """
    Parse an incoming SMS message.

    Returns one of three shapes:

    A) Command message (user sent a known keyword):
       {"type": "command", "action": "status" | "actions" | "heat" | "why" | "all" | "stop"}

    B) City message (user sent a monitored city):
       {"type": "city", "city": "Lipa City", "menu": <command menu string>}

    C) Anything else:
       {"type": "unknown", "text": <original text>, "known_cities": [...]}
    """
    text = normalize_text(raw_text)

    if text in KNOWN_COMMANDS:
        return {"type": "command", "action": KNOWN_COMMANDS[text]}

    city = resolve_city(raw_text)
    if city:
        return {"type": "city", "city": city, "menu": COMMAND_MENU}

    return {"type": "unknown", "text": raw_text.strip(), "known_cities": list(MONITORED_CITIES)}

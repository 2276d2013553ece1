"""
geocoder.py — the monitored-city directory for Batangas Province.

Every city the advisor covers is known up front, with its coordinates in
the read-only seed file locations_cache.json. Nothing outside the directory
is resolved: an unknown name gets no coordinates, so no other city's
weather is ever used in its place.
"""

import json
import os
import difflib

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

CACHE_PATH = os.path.join(os.path.dirname(__file__), "locations_cache.json")

# Cities monitored for class suspension, in display order
MONITORED_CITIES = [
    "Batangas City",
    "Lipa City",
    "Tanauan City",
    "Santo Tomas",
    "Taal",
    "Balayan",
    "Nasugbu",
    "Lemery",
]

FUZZY_CUTOFF = 0.75


# ---------------------------------------------------------------------------
# Seed file
# ---------------------------------------------------------------------------

def _load_cache(path: str = CACHE_PATH) -> dict:
    """Load the seed coordinates from disk (read-only)."""
    if not os.path.exists(path):
        return {}
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def lookup_cache(location: str) -> dict | None:
    """Return seeded {lat, lon} for *location* or None."""
    return _load_cache().get(" ".join(location.lower().split()))


# ---------------------------------------------------------------------------
# City names
# ---------------------------------------------------------------------------

def match_city(text: str, fuzzy: bool = True) -> str | None:
    """
    Map free text to a monitored city's display name, or None.

    Accepts exact names in any case ("lipa city") and names without the
    "City" suffix ("lipa"). With *fuzzy*, close misspellings ("tanawan")
    match too.
    """
    key = " ".join(text.lower().split())
    if not key:
        return None

    by_key = {c.lower(): c for c in MONITORED_CITIES}
    for city in MONITORED_CITIES:
        short = city.lower().removesuffix(" city")
        by_key.setdefault(short, city)

    if key in by_key:
        return by_key[key]
    if not fuzzy:
        return None

    matches = difflib.get_close_matches(key, by_key.keys(), n=1, cutoff=FUZZY_CUTOFF)
    if matches:
        return by_key[matches[0]]
    return None


# ---------------------------------------------------------------------------
# Public API — get_coordinates()
# ---------------------------------------------------------------------------

def get_coordinates(location: str) -> dict | None:
    """
    Coordinates of a monitored city, or None when *location* isn't one.

    Only exact names (any case, "City" suffix optional) resolve; misspellings
    and places outside the directory return None.

    Returns dict:
        city  str    display name from MONITORED_CITIES
        lat   float
        lon   float
    """
    city = match_city(location, fuzzy=False)
    if city is None:
        print(f"[GEOCODER] {location!r} is not a monitored city")
        return None

    coords = lookup_cache(city)
    if coords is None:
        print(f"[GEOCODER] No seeded coordinates for {city}")
        return None

    return {"city": city, "lat": coords["lat"], "lon": coords["lon"]}

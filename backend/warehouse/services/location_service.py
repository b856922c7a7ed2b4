"""
Locations & Geocoding Service

- The barangay list is a JSON file generated offline from the PSGC public API
  (`flask locations generate`) and read on demand, reloaded when the file changes.
- Geocoding goes to a Nominatim-compatible `search` endpoint via httpx.
  Results (including misses) are cached in-process for GEOCODE_CACHE_SECONDS.
  Any failure returns None: geocoding is always best effort.
"""

from __future__ import annotations

import json
import os
import threading
import time
from datetime import datetime, timezone

import httpx
from flask import current_app

from ..validation import NotFoundError, ValidationError


PROVINCE_NAME = "Batangas"


# =============================================================================
# LOCATION FILE
# =============================================================================

_file_cache: dict[str, tuple[float, list[dict]]] = {}
_file_lock = threading.Lock()


def load_locations(path: str | None = None) -> list[dict]:
    path = path or current_app.config["LOCATIONS_FILE"]
    try:
        mtime = os.path.getmtime(path)
    except OSError:
        current_app.logger.warning("Locations file not found: %s", path)
        return []

    with _file_lock:
        cached = _file_cache.get(path)
        if cached and cached[0] == mtime:
            return cached[1]

        with open(path, encoding="utf-8") as fh:
            payload = json.load(fh)
        locations = payload.get("locations", []) if isinstance(payload, dict) else payload
        _file_cache[path] = (mtime, locations)
        return locations


def search_locations(search: str | None = None, city: str | None = None) -> list[dict]:
    locations = load_locations()

    if city and city.strip():
        wanted = city.strip().lower()
        locations = [loc for loc in locations if loc.get("city", "").lower() == wanted]

    if search and search.strip():
        needle = search.strip().lower()
        locations = [
            loc for loc in locations
            if needle in loc.get("barangay", "").lower()
            or needle in loc.get("city", "").lower()
            or needle in loc.get("fullAddress", "").lower()
        ]

    return locations


def list_cities() -> list[str]:
    return sorted({loc.get("city", "") for loc in load_locations() if loc.get("city")})


def find_location(address: str) -> dict | None:
    """
    First entry where the full address equals the query, the barangay contains
    it, or the query contains the barangay (all case-insensitive).
    """
    needle = address.strip().lower()
    for loc in load_locations():
        full = loc.get("fullAddress", "").lower()
        barangay = loc.get("barangay", "").lower()
        if full == needle or (barangay and (needle in barangay or barangay in needle)):
            return loc
    return None


def resolve_coordinates(address) -> dict:
    """
    Coordinates for a free-text address via the location list.

    Raises ValidationError for a blank address, NotFoundError when nothing
    matches or the match has no coordinates (stored or geocoded).
    """
    if not isinstance(address, str) or not address.strip():
        raise ValidationError("Address is required")

    match = find_location(address)
    if match is None:
        raise NotFoundError("Coordinates not found for this address")

    coordinates = match.get("coordinates")
    if not coordinates:
        result = get_geocoder().geocode(match.get("fullAddress", address))
        if result:
            coordinates = {"lat": result["lat"], "lng": result["lng"]}

    if not coordinates:
        raise NotFoundError("Coordinates not found for this address")

    return {"coordinates": coordinates, "address": match.get("fullAddress")}


# =============================================================================
# GEOCODER
# =============================================================================

class Geocoder:
    """Nominatim search client with a time-bounded in-process cache."""

    def __init__(self, app=None):
        self._cache: dict[str, tuple[float, dict | None]] = {}
        self._lock = threading.Lock()
        if app is not None:
            self.init_app(app)

    def init_app(self, app) -> None:
        self.enabled = app.config.get("GEOCODING_ENABLED", True)
        self.base_url = app.config["GEOCODER_URL"].rstrip("/")
        self.user_agent = app.config.get("GEOCODER_USER_AGENT", "LGW Warehouse")
        self.ttl = app.config.get("GEOCODE_CACHE_SECONDS", 3600)
        self.timeout = app.config.get("HTTP_TIMEOUT_SECONDS", 10)
        app.extensions["geocoder"] = self

    def _cached(self, key: str):
        with self._lock:
            hit = self._cache.get(key)
            if hit is None:
                return False, None
            expires_at, value = hit
            if expires_at < time.monotonic():
                del self._cache[key]
                return False, None
            return True, value

    def _store(self, key: str, value: dict | None) -> None:
        with self._lock:
            self._cache[key] = (time.monotonic() + self.ttl, value)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def fetch(self, address: str) -> dict | None:
        response = httpx.get(
            f"{self.base_url}/search",
            params={"q": address, "format": "json", "limit": 1, "countrycodes": "ph"},
            headers={"User-Agent": self.user_agent, "Accept": "application/json"},
            timeout=self.timeout,
        )
        response.raise_for_status()
        data = response.json()
        if not data:
            return None
        first = data[0]
        return {
            "lat": float(first["lat"]),
            "lng": float(first["lon"]),
            "formattedAddress": first.get("display_name"),
        }

    def geocode(self, address: str | None) -> dict | None:
        if not self.enabled or not address or not address.strip():
            return None

        key = address.strip().lower()
        found, value = self._cached(key)
        if found:
            return value

        try:
            value = self.fetch(address.strip())
        except (httpx.HTTPError, ValueError, KeyError):
            current_app.logger.warning("Geocoding failed for %r", address, exc_info=True)
            return None

        self._store(key, value)
        return value


def get_geocoder() -> Geocoder:
    return current_app.extensions["geocoder"]


# =============================================================================
# OFFLINE GENERATION (PSGC)
# =============================================================================

def generate_locations(client: httpx.Client, base_url: str, province_code: str, log=print) -> dict:
    """Build the location file payload from the PSGC cities and barangays endpoints."""
    base_url = base_url.rstrip("/")
    resp = client.get(f"{base_url}/provinces/{province_code}/cities-municipalities.json")
    resp.raise_for_status()
    cities = resp.json()
    log(f"Found {len(cities)} cities/municipalities")

    locations = []
    for city in cities:
        resp = client.get(f"{base_url}/cities-municipalities/{city['code']}/barangays.json")
        resp.raise_for_status()
        barangays = resp.json()
        for barangay in barangays:
            locations.append({
                "id": barangay["code"],
                "barangay": barangay["name"],
                "city": city["name"],
                "province": PROVINCE_NAME,
                "fullAddress": f"{barangay['name']}, {city['name']}, {PROVINCE_NAME}",
                "cityCode": city["code"],
                "barangayCode": barangay["code"],
            })
        log(f"  {city['name']}: {len(barangays)} barangays")

    return {
        "generatedAt": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "count": len(locations),
        "locations": locations,
    }

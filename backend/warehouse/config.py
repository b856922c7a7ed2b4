# backend/warehouse/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/warehouse.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///warehouse.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Session cookie carrying the plaintext session token
    AUTH_COOKIE_NAME = os.environ.get("AUTH_COOKIE_NAME", "warehouse_session")
    AUTH_COOKIE_SECURE = _env_bool("AUTH_COOKIE_SECURE", False)
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    PUBLIC_URL = os.environ.get("PUBLIC_URL", "http://localhost:5000")
    HTTP_TIMEOUT_SECONDS = float(os.environ.get("HTTP_TIMEOUT_SECONDS", "10"))

    # Geocoding (Nominatim) and the generated barangay list
    GEOCODING_ENABLED = _env_bool("GEOCODING_ENABLED", True)
    GEOCODER_URL = os.environ.get("GEOCODER_URL", "https://nominatim.openstreetmap.org")
    GEOCODER_USER_AGENT = os.environ.get("GEOCODER_USER_AGENT", "LGW Warehouse")
    GEOCODE_CACHE_SECONDS = int(os.environ.get("GEOCODE_CACHE_SECONDS", "3600"))
    LOCATIONS_FILE = os.environ.get(
        "LOCATIONS_FILE",
        os.path.join(os.path.dirname(__file__), "data", "batangas-locations.json"),
    )
    PSGC_BASE_URL = os.environ.get("PSGC_BASE_URL", "https://psgc.gitlab.io/api")
    PSGC_PROVINCE_CODE = os.environ.get("PSGC_PROVINCE_CODE", "041000000")

    # Firebase Cloud Messaging credentials; push is skipped when unset
    FIREBASE_PROJECT_ID = os.environ.get("FIREBASE_PROJECT_ID")
    FIREBASE_CLIENT_EMAIL = os.environ.get("FIREBASE_CLIENT_EMAIL")
    FIREBASE_PRIVATE_KEY = os.environ.get("FIREBASE_PRIVATE_KEY")

    # Live event stream
    SSE_HEARTBEAT_SECONDS = float(os.environ.get("SSE_HEARTBEAT_SECONDS", "15"))
    SSE_QUEUE_SIZE = int(os.environ.get("SSE_QUEUE_SIZE", "100"))

    # Completed deliveries stay in the active collection this long
    DELIVERY_RETENTION_DAYS = int(os.environ.get("DELIVERY_RETENTION_DAYS", "7"))

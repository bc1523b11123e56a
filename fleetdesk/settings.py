# fleetdesk/settings.py
from __future__ import annotations

import os


def _normalize_api_url(url: str | None) -> str | None:
    if not url:
        return None
    u = url.strip()

    # Tolerate a trailing slash in env values
    return u.rstrip("/") or None


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # ======================
    # Core
    # ======================
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key")

    # ======================
    # Backend API
    # ======================
    # Priority:
    # 1) API_BASE_URL
    # 2) NEXT_PUBLIC_API_URL (older deployments shared the frontend env file)
    # 3) Local default
    API_BASE_URL = (
        _normalize_api_url(os.environ.get("API_BASE_URL"))
        or _normalize_api_url(os.environ.get("NEXT_PUBLIC_API_URL"))
        or "http://localhost:5001/api"
    )
    API_TIMEOUT = _env_int("API_TIMEOUT", 10)

    # Day-end and stop listings page through the backend 10 rows at a time
    PAGE_SIZE = _env_int("PAGE_SIZE", 10)
    TRIPS_PAGE_SIZE = _env_int("TRIPS_PAGE_SIZE", 15)

    # ======================
    # Session cookie
    # ======================
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = _env_bool("SESSION_COOKIE_SECURE", False)

    # ======================
    # Flask-Limiter
    # ======================
    RATELIMIT_STORAGE_URI = (
        os.environ.get("LIMITER_STORAGE_URL")
        or os.environ.get("REDIS_URL")
        or "memory://"
    )
    RATELIMIT_HEADERS_ENABLED = True
    LOGIN_RATE_LIMIT = os.environ.get("LOGIN_RATE_LIMIT", "5 per minute")

    # ======================
    # Logging
    # ======================
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

    # ======================
    # Proxy / Gunicorn
    # ======================
    PREFERRED_URL_SCHEME = os.environ.get("PREFERRED_URL_SCHEME", "https")

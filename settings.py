from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_STORE_BACKEND_ENV = "STORE_BACKEND"
_AUTH_BACKEND_ENV = "AUTH_BACKEND"
_SUPABASE_URL_ENV = "SUPABASE_URL"
_SUPABASE_KEY_ENV = "SUPABASE_SERVICE_ROLE_KEY"
_JWT_SECRET_ENV = "JWT_SECRET"
_JWT_ALGORITHM_ENV = "JWT_ALGORITHM"
_JWT_AUDIENCE_ENV = "JWT_AUDIENCE"
_ASSETS_PATH_ENV = "ASSETS_PATH"
_READINGS_PATH_ENV = "READINGS_PATH"
_ALERTS_PATH_ENV = "ALERTS_PATH"
_STORE_TIMEOUT_ENV = "STORE_TIMEOUT_SECONDS"
_LOG_LEVEL_ENV = "LOG_LEVEL"

_BACKENDS = {"local", "supabase"}
_AUTH_BACKENDS = {"jwt", "supabase"}


@dataclass(frozen=True)
class Settings:
    store_backend: str
    auth_backend: str
    supabase_url: Optional[str]
    supabase_key: Optional[str]
    jwt_secret: str
    jwt_algorithm: str
    jwt_audience: Optional[str]
    assets_path: Optional[str]
    readings_path: Optional[str]
    alerts_path: Optional[str]
    store_timeout: float
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_choice_env(name: str, choices: set[str], default: str) -> str:
    candidate = _read_str_env(name, default).lower()
    return candidate if candidate in choices else default


def _read_timeout(default: float) -> float:
    value = os.getenv(_STORE_TIMEOUT_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        store_backend=_read_choice_env(_STORE_BACKEND_ENV, _BACKENDS, "local"),
        auth_backend=_read_choice_env(_AUTH_BACKEND_ENV, _AUTH_BACKENDS, "jwt"),
        supabase_url=_read_optional_env(_SUPABASE_URL_ENV, None),
        supabase_key=_read_optional_env(_SUPABASE_KEY_ENV, None),
        jwt_secret=_read_str_env(_JWT_SECRET_ENV, "dev-secret-change-me-in-production-0000"),
        jwt_algorithm=_read_str_env(_JWT_ALGORITHM_ENV, "HS256"),
        jwt_audience=_read_optional_env(_JWT_AUDIENCE_ENV, "authenticated"),
        assets_path=_read_optional_env(_ASSETS_PATH_ENV, "./tmp/assets.json"),
        readings_path=_read_optional_env(_READINGS_PATH_ENV, "./tmp/readings.json"),
        alerts_path=_read_optional_env(_ALERTS_PATH_ENV, "./tmp/alerts.json"),
        store_timeout=_read_timeout(5.0),
        log_level=_read_log_level("INFO"),
    )

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache


DEFAULT_ISOCHRONE_URL = "https://api.mapbox.com/isochrone/v1/mapbox"
DEFAULT_BOUNDARIES_SERVICE_URL = "http://localhost:8081"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    v = str(raw).strip().lower()
    if v in {"1", "true", "t", "yes", "y", "on"}:
        return True
    if v in {"0", "false", "f", "no", "n", "off"}:
        return False
    return default


def _env_int(name: str, default: int, *, minimum: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None or not str(raw).strip():
        return default
    try:
        return max(int(str(raw).strip()), minimum)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not str(raw).strip():
        return default
    try:
        return float(str(raw).strip())
    except ValueError:
        return default


def _env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None:
        return default
    return str(raw).strip() or default


@dataclass(frozen=True)
class Settings:
    """Process-wide settings read from the environment.

    Env vars are plain strings so deployments and tests can flip them without
    a config file. Defaults MUST keep the constructor usable offline.
    """

    max_polygons: int
    mapbox_token: str
    isochrone_url: str
    boundaries_service_url: str
    geometry_db: str
    http_timeout: float
    theme: str
    persist_on_apply: bool
    log_json: bool

    @classmethod
    def from_env(cls) -> "Settings":
        theme = _env_str("LF_THEME", "dark").lower()
        if theme not in {"light", "dark"}:
            theme = "dark"
        return cls(
            max_polygons=_env_int("LF_MAX_POLYGONS", 4, minimum=1),
            mapbox_token=os.getenv("LF_MAPBOX_TOKEN", ""),
            isochrone_url=_env_str("LF_ISOCHRONE_URL", DEFAULT_ISOCHRONE_URL).rstrip("/"),
            boundaries_service_url=_env_str(
                "LF_BOUNDARIES_SERVICE_URL", DEFAULT_BOUNDARIES_SERVICE_URL
            ).rstrip("/"),
            geometry_db=_env_str("LF_GEOMETRY_DB", "./geometries.sqlite"),
            http_timeout=_env_float("LF_HTTP_TIMEOUT", 10.0),
            theme=theme,
            persist_on_apply=_env_bool("LF_PERSIST_ON_APPLY", False),
            log_json=_env_bool("LF_LOG_JSON", False),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()


def reset_settings_cache() -> None:
    """Test helper to force env re-read."""

    get_settings.cache_clear()

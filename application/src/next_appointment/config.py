"""Environment-driven settings. Credentials are required; everything else has a default."""

from __future__ import annotations

import os
from dataclasses import dataclass
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

DEFAULT_BASE_URL = "https://acuityscheduling.com/api/v1"
DEFAULT_TZ = "America/Edmonton"


class ConfigError(RuntimeError):
    """Raised when the environment cannot produce a usable Settings."""


@dataclass(frozen=True)
class Settings:
    acuity_user_id: str
    acuity_api_key: str

    port: int = 3000
    acuity_base_url: str = DEFAULT_BASE_URL

    cache_ttl_seconds: int = 60
    display_timezone: str = DEFAULT_TZ
    search_horizon_days: int = 30

    # Per upstream call vs. whole request (watchdog).
    upstream_timeout_seconds: float = 7.0
    request_timeout_seconds: float = 8.0

    cors_origins: tuple[str, ...] = ("*",)
    log_level: str = "INFO"

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.display_timezone)


def _require(name: str) -> str:
    value = (os.getenv(name) or "").strip()
    if not value:
        raise ConfigError(f"Missing required environment variable: {name}")
    return value


def _int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigError(f"Invalid {name} value: {raw!r}. Expected an integer.") from e
    if value < 0:
        raise ConfigError(f"Invalid {name} value: {raw!r}. Must not be negative.")
    return value


def _float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ConfigError(f"Invalid {name} value: {raw!r}. Expected a number.") from e
    if value <= 0:
        raise ConfigError(f"Invalid {name} value: {raw!r}. Must be positive.")
    return value


def _parse_origins(raw: str) -> tuple[str, ...]:
    # CORS_ORIGINS=* or CORS_ORIGINS=https://a.example,https://b.example
    parts = [p.strip() for p in raw.split(",")]
    return tuple(p for p in parts if p) or ("*",)


def load_settings(dotenv_path: str | None = None) -> Settings:
    # Real environment wins over .env; dotenv_path allows overriding in tests.
    load_dotenv(dotenv_path=dotenv_path, override=False)

    display_timezone = os.getenv("DISPLAY_TIMEZONE", "").strip() or DEFAULT_TZ
    try:
        ZoneInfo(display_timezone)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigError(f"Unknown DISPLAY_TIMEZONE: {display_timezone!r}") from e

    return Settings(
        acuity_user_id=_require("ACUITY_USER_ID"),
        acuity_api_key=_require("ACUITY_API_KEY"),
        port=_int("PORT", 3000),
        acuity_base_url=(os.getenv("ACUITY_BASE_URL", "").strip() or DEFAULT_BASE_URL).rstrip("/"),
        cache_ttl_seconds=_int("CACHE_TTL_SECONDS", 60),
        display_timezone=display_timezone,
        search_horizon_days=_int("SEARCH_HORIZON_DAYS", 30),
        upstream_timeout_seconds=_float("UPSTREAM_TIMEOUT_SECONDS", 7.0),
        request_timeout_seconds=_float("REQUEST_TIMEOUT_SECONDS", 8.0),
        cors_origins=_parse_origins(os.getenv("CORS_ORIGINS", "*")),
        log_level=(os.getenv("LOG_LEVEL", "").strip() or "INFO").upper(),
    )

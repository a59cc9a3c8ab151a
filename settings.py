from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache


_API_BASE_URL_ENV = "DOTGAIN_API_BASE_URL"
_HTTP_TIMEOUT_ENV = "DOTGAIN_HTTP_TIMEOUT"
_DEFAULT_SYMBOL_ENV = "DOTGAIN_DEFAULT_SYMBOL"
_LOG_LEVEL_ENV = "LOG_LEVEL"


@dataclass(frozen=True)
class Settings:
    api_base_url: str
    request_timeout: float
    default_symbol: str
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_timeout(default: float) -> float:
    value = os.getenv(_HTTP_TIMEOUT_ENV)
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
        api_base_url=_read_str_env(_API_BASE_URL_ENV, "https://api.binance.com"),
        request_timeout=_read_timeout(30.0),
        default_symbol=_read_str_env(_DEFAULT_SYMBOL_ENV, "DOTEUR"),
        log_level=_read_log_level("WARNING"),
    )

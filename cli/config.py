from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from settings import get_settings


@dataclass(frozen=True)
class CLIConfig:
    base_url: str
    timeout: float
    default_symbol: str
    log_level: str


def load_config(
    base_url: Optional[str] = None,
    timeout: Optional[float] = None,
    log_level: Optional[str] = None,
) -> CLIConfig:
    """Merge command-line overrides over environment-driven settings."""
    settings = get_settings()
    url = base_url or settings.api_base_url
    if timeout is None or timeout <= 0:
        timeout = settings.request_timeout
    return CLIConfig(
        base_url=url.rstrip("/"),
        timeout=timeout,
        default_symbol=settings.default_symbol,
        log_level=(log_level or settings.log_level).upper(),
    )

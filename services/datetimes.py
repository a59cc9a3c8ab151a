"""Parsing and formatting of the human-entered UTC date/times used in reports."""

from __future__ import annotations

from datetime import date, datetime, timezone

from services.errors import InvalidDateFormat

CANONICAL_FORMAT = "%Y-%m-%d %H:%M:%S"
DATE_FORMAT = "%Y-%m-%d"

# Tried in order, first match wins.
ACCEPTED_FORMATS = (
    CANONICAL_FORMAT,
    "%Y-%m-%d %H:%M",
    DATE_FORMAT,
)


def parse_datetime(value: str) -> datetime:
    """Parse ``value`` as a UTC instant.

    No offset or local-time conversion is performed: the input is assumed to
    already be in UTC. Missing seconds or time of day default to zero.
    """
    for fmt in ACCEPTED_FORMATS:
        try:
            parsed = datetime.strptime(value, fmt)
        except ValueError:
            continue
        return parsed.replace(tzinfo=timezone.utc)
    raise InvalidDateFormat(value)


def format_datetime(instant: datetime) -> str:
    """Render ``instant`` in the canonical ``YYYY-MM-DD HH:MM:SS`` form (UTC)."""
    if instant.tzinfo is not None:
        instant = instant.astimezone(timezone.utc)
    return instant.strftime(CANONICAL_FORMAT)


def parse_date(value: str) -> date:
    try:
        return datetime.strptime(value, DATE_FORMAT).date()
    except ValueError as exc:
        raise InvalidDateFormat(value) from exc

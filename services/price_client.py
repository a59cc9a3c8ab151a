"""Historical close price lookups against the Binance public klines API."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, List, Protocol

from pydantic import TypeAdapter, ValidationError

from models.records import PriceQuote
from services.datetimes import format_datetime
from services.errors import MalformedResponse, UpstreamError
from services.transport import HttpTransport

logger = logging.getLogger(__name__)

KLINES_PATH = "/api/v3/klines"
KLINE_INTERVAL = "1m"
KLINE_FIELD_COUNT = 12
OPEN_TIME_FIELD = 0
CLOSE_PRICE_FIELD = 4

# Example kline record:
# [
#   1499040000000,      // open time
#   "0.01634790",       // open
#   "0.80000000",       // high
#   "0.01575800",       // low
#   "0.01577100",       // close
#   "148976.11427815",  // volume
#   1499644799999,      // close time
#   "2434.19055334",    // quote asset volume
#   308,                // number of trades
#   "1756.87402397",    // taker buy base asset volume
#   "28.46694368",      // taker buy quote asset volume
#   "0"                 // unused
# ]
_KLINES_ADAPTER: TypeAdapter[List[List[Any]]] = TypeAdapter(List[List[Any]])


class PriceSource(Protocol):
    def fetch_close_price(self, symbol: str, instant: datetime) -> Decimal:
        ...


def minute_floor_ms(instant: datetime) -> int:
    """Milliseconds since the epoch of the start of the minute containing ``instant``.

    The API must be asked for the floored minute: an exact timestamp selects
    the candle of the following minute.
    """
    seconds = int(instant.timestamp())
    return seconds // 60 * 60 * 1000


def _describe_ms(value: int) -> str:
    try:
        moment = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return str(value)
    return f"{value} ({format_datetime(moment)} UTC)"


class PriceClient:
    """Fetches the close price of the one-minute candle containing an instant.

    Exactly one request is issued per lookup. Nothing is cached and nothing is
    retried; any failure is raised to the caller.
    """

    def __init__(self, transport: HttpTransport, base_url: str = "https://api.binance.com") -> None:
        self._transport = transport
        self._base_url = base_url.rstrip("/")

    @property
    def klines_url(self) -> str:
        return f"{self._base_url}{KLINES_PATH}"

    def fetch_close_price(self, symbol: str, instant: datetime) -> Decimal:
        return self.fetch_quote(symbol, instant).close_price

    def fetch_quote(self, symbol: str, instant: datetime) -> PriceQuote:
        requested_ms = minute_floor_ms(instant)
        url = self.klines_url
        params = {
            "symbol": symbol,
            "interval": KLINE_INTERVAL,
            "startTime": str(requested_ms),
            "limit": "1",
        }
        logger.debug(
            "Requesting kline",
            extra={"symbol": symbol, "instant": format_datetime(instant), "requested_ms": requested_ms},
        )

        response = self._transport.get(url, params)
        if not response.is_success:
            logger.warning(
                "Price API returned an error status",
                extra={"symbol": symbol, "status": response.status_code, "url": url},
            )
            raise UpstreamError(url, response.status_code, response.headers, response.body)

        close_price = self._extract_close_price(url, response.body, requested_ms)
        interval_start = datetime.fromtimestamp(requested_ms // 1000, tz=timezone.utc)
        return PriceQuote(interval_start=interval_start, close_price=close_price)

    @staticmethod
    def _extract_close_price(url: str, body: str, requested_ms: int) -> Decimal:
        try:
            klines = _KLINES_ADAPTER.validate_json(body)
        except ValidationError as exc:
            raise MalformedResponse(
                url, f"body is not a list of kline records ({exc.error_count()} errors)", body
            ) from exc

        if not klines:
            raise MalformedResponse(url, "response must contain at least one kline record", body)

        kline = klines[0]
        if len(kline) != KLINE_FIELD_COUNT:
            raise MalformedResponse(
                url,
                f"kline record contains {len(kline)} fields instead of {KLINE_FIELD_COUNT}",
                body,
            )

        open_time = kline[OPEN_TIME_FIELD]
        if isinstance(open_time, bool) or not isinstance(open_time, int):
            raise MalformedResponse(url, f"open time {open_time!r} is not an integer", body)

        if open_time != requested_ms:
            logger.warning(
                "Kline open time does not match the requested minute",
                extra={"requested_ms": requested_ms, "url": url, "reason": f"returned {open_time}"},
            )
            raise MalformedResponse(
                url,
                f"returned timestamp {_describe_ms(open_time)} doesn't match "
                f"requested timestamp {_describe_ms(requested_ms)}",
                body,
            )

        raw_price = kline[CLOSE_PRICE_FIELD]
        if not isinstance(raw_price, str):
            raise MalformedResponse(url, f"close price {raw_price!r} is not a string", body)
        try:
            price = Decimal(raw_price)
        except InvalidOperation as exc:
            raise MalformedResponse(
                url, f"cannot convert close price {raw_price!r} to number", body
            ) from exc
        if not price.is_finite():
            raise MalformedResponse(url, f"close price {raw_price!r} is not finite", body)
        return price

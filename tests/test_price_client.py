"""Unit tests for the klines price client and its response validation."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, List, Mapping

import pytest

from services.datetimes import parse_datetime
from services.errors import MalformedResponse, TransportError, UpstreamError
from services.price_client import PriceClient, minute_floor_ms
from services.transport import TransportResponse

REQUESTED_MS = 1677001980000  # 2023-02-21 17:53:00 UTC


class StubTransport:
    def __init__(self, *responses: TransportResponse) -> None:
        self.responses = list(responses)
        self.calls: List[tuple[str, dict]] = []

    def get(self, url: str, params: Mapping[str, str]) -> TransportResponse:
        self.calls.append((url, dict(params)))
        return self.responses.pop(0)


def _kline(open_time: Any = REQUESTED_MS, close: Any = "6.12300000") -> list:
    return [
        open_time,
        "6.10000000",
        "6.15000000",
        "6.09000000",
        close,
        "1234.56000000",
        open_time + 59999 if isinstance(open_time, int) else 0,
        "7560.12000000",
        42,
        "600.00000000",
        "3670.00000000",
        "0",
    ]


def _ok(payload: Any) -> TransportResponse:
    return TransportResponse(status_code=200, body=json.dumps(payload))


def _client(*responses: TransportResponse) -> tuple[PriceClient, StubTransport]:
    transport = StubTransport(*responses)
    return PriceClient(transport, base_url="https://api.example.test/"), transport


@pytest.mark.parametrize("clock", ["17:53:00", "17:53:28", "17:53:59"])
def test_minute_floor_selects_start_of_containing_minute(clock: str) -> None:
    assert minute_floor_ms(parse_datetime(f"2023-02-21 {clock}")) == REQUESTED_MS


def test_fetch_close_price_requests_floored_minute() -> None:
    client, transport = _client(_ok([_kline()]))

    price = client.fetch_close_price("DOTEUR", parse_datetime("2023-02-21 17:53:28"))

    assert price == Decimal("6.123")
    assert transport.calls == [
        (
            "https://api.example.test/api/v3/klines",
            {
                "symbol": "DOTEUR",
                "interval": "1m",
                "startTime": str(REQUESTED_MS),
                "limit": "1",
            },
        )
    ]


def test_fetch_quote_reports_interval_start() -> None:
    client, _ = _client(_ok([_kline(close="7.5")]))

    quote = client.fetch_quote("DOTEUR", parse_datetime("2023-02-21 17:53:28"))

    assert quote.interval_start == datetime(2023, 2, 21, 17, 53, tzinfo=timezone.utc)
    assert quote.close_price == Decimal("7.5")


def test_mismatched_candle_is_rejected() -> None:
    client, _ = _client(_ok([_kline(open_time=1000, close="1.0")]))

    with pytest.raises(MalformedResponse) as excinfo:
        client.fetch_close_price("DOTEUR", datetime.fromtimestamp(0, tz=timezone.utc))

    assert "doesn't match requested timestamp" in str(excinfo.value)


def test_off_by_one_minute_candle_is_rejected() -> None:
    client, _ = _client(_ok([_kline(open_time=REQUESTED_MS + 60000)]))

    with pytest.raises(MalformedResponse) as excinfo:
        client.fetch_close_price("DOTEUR", parse_datetime("2023-02-21 17:53:28"))

    message = str(excinfo.value)
    assert str(REQUESTED_MS + 60000) in message
    assert "2023-02-21 17:53:00 UTC" in message


@pytest.mark.parametrize("field_count", [11, 13])
def test_wrong_field_count_is_rejected(field_count: int) -> None:
    kline = _kline()
    record = kline[:field_count] if field_count < len(kline) else kline + ["extra"]
    client, _ = _client(_ok([record]))

    with pytest.raises(MalformedResponse) as excinfo:
        client.fetch_close_price("DOTEUR", parse_datetime("2023-02-21 17:53:28"))

    assert f"{field_count} fields" in excinfo.value.reason


@pytest.mark.parametrize(
    ("payload", "fragment"),
    [
        ([], "at least one kline record"),
        ([_kline(open_time="1677001980000")], "not an integer"),
        ([_kline(open_time=1677001980000.0)], "not an integer"),
        ([_kline(close=6.123)], "not a string"),
        ([_kline(close="six")], "cannot convert close price"),
        ([_kline(close="NaN")], "not finite"),
        ({"code": 0}, "not a list of kline records"),
    ],
)
def test_structurally_invalid_payloads_are_rejected(payload: Any, fragment: str) -> None:
    client, _ = _client(_ok(payload))

    with pytest.raises(MalformedResponse) as excinfo:
        client.fetch_close_price("DOTEUR", parse_datetime("2023-02-21 17:53:28"))

    assert fragment in excinfo.value.reason


def test_non_json_body_is_rejected() -> None:
    client, _ = _client(TransportResponse(status_code=200, body="<html>maintenance</html>"))

    with pytest.raises(MalformedResponse) as excinfo:
        client.fetch_close_price("DOTEUR", parse_datetime("2023-02-21 17:53:28"))

    assert excinfo.value.body == "<html>maintenance</html>"


def test_error_status_carries_diagnostics() -> None:
    response = TransportResponse(
        status_code=400,
        body='{"code":-1121,"msg":"Invalid symbol."}',
        headers={"content-type": "application/json"},
    )
    client, _ = _client(response)

    with pytest.raises(UpstreamError) as excinfo:
        client.fetch_close_price("NOPE", parse_datetime("2023-02-21 17:53:28"))

    error = excinfo.value
    assert error.status_code == 400
    assert error.headers == {"content-type": "application/json"}
    assert "Invalid symbol." in error.body
    assert error.url == "https://api.example.test/api/v3/klines"
    assert "Status: 400" in str(error)


def test_transport_errors_propagate_unchanged() -> None:
    class FailingTransport:
        def get(self, url: str, params: Mapping[str, str]) -> TransportResponse:
            raise TransportError(url, "connection refused")

    client = PriceClient(FailingTransport())

    with pytest.raises(TransportError) as excinfo:
        client.fetch_close_price("DOTEUR", parse_datetime("2023-02-21 17:53:28"))

    assert excinfo.value.url == "https://api.binance.com/api/v3/klines"


def test_each_lookup_issues_its_own_request() -> None:
    client, transport = _client(_ok([_kline()]), _ok([_kline()]))
    instant = parse_datetime("2023-02-21 17:53:28")

    client.fetch_close_price("DOTEUR", instant)
    client.fetch_close_price("DOTEUR", instant)

    assert len(transport.calls) == 2

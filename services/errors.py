"""Error taxonomy for the reward report pipeline.

Every error is fatal to a run. Each exception keeps the context an operator
needs to fix the input or retry: the offending source string, the CSV row
number, or the HTTP diagnostics of a failed price request.
"""

from __future__ import annotations

from datetime import datetime
from typing import Mapping, Optional


class DotgainError(Exception):
    """Base class for all pipeline failures."""


class InvalidDateFormat(DotgainError, ValueError):
    def __init__(self, value: str, row_number: Optional[int] = None) -> None:
        self.value = value
        self.row_number = row_number
        message = f"invalid date: {value!r}"
        if row_number is not None:
            message = f"row {row_number}: {message}"
        super().__init__(message)


class InputFormatError(DotgainError):
    """The input CSV does not have the expected layout."""


class MissingColumn(InputFormatError):
    def __init__(self, column: str) -> None:
        self.column = column
        super().__init__(f"no {column!r} column found")


class RowTooShort(InputFormatError):
    def __init__(self, row_number: int, expected: int, actual: int) -> None:
        self.row_number = row_number
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"row {row_number}: expected at least {expected} columns, found {actual}"
        )


class NumericParseError(DotgainError, ValueError):
    def __init__(
        self,
        value: str,
        row_number: Optional[int] = None,
        reason: str = "cannot convert to number",
    ) -> None:
        self.value = value
        self.row_number = row_number
        self.reason = reason
        message = f"{reason}: {value!r}"
        if row_number is not None:
            message = f"row {row_number}: {message}"
        super().__init__(message)


class PriceLookupError(DotgainError):
    """A single price request could not produce a verified quote."""

    def __init__(self, message: str, url: str) -> None:
        self.url = url
        super().__init__(message)


class UpstreamError(PriceLookupError):
    """The price API answered with a non-success status."""

    def __init__(
        self,
        url: str,
        status_code: int,
        headers: Mapping[str, str],
        body: str,
    ) -> None:
        self.status_code = status_code
        self.headers = dict(headers)
        self.body = body
        header_lines = "\n".join(f"  {name}: {value}" for name, value in self.headers.items())
        super().__init__(
            f"request to {url!r} failed.\n"
            f"Status: {status_code}\n"
            f"Headers:\n{header_lines}\n"
            f"Body:\n{body}",
            url=url,
        )


class MalformedResponse(PriceLookupError):
    """The price API answered successfully but the candle data is unusable."""

    def __init__(self, url: str, reason: str, body: str = "") -> None:
        self.reason = reason
        self.body = body
        message = f"unexpected response from {url!r}: {reason}"
        if body:
            message = f"{message}\nBody:\n{body}"
        super().__init__(message, url=url)


class TransportError(PriceLookupError):
    """The request could not be completed (connection failure, timeout)."""

    def __init__(self, url: str, detail: str) -> None:
        self.detail = detail
        super().__init__(f"request to {url!r} could not be completed: {detail}", url=url)


class PriceLookupFailed(DotgainError):
    """Aggregation aborted because the price for one entry was unavailable.

    The underlying :class:`PriceLookupError` is chained as ``__cause__``.
    """

    def __init__(
        self, timestamp: datetime, row_index: int, row_number: Optional[int] = None
    ) -> None:
        self.timestamp = timestamp
        self.row_index = row_index
        self.row_number = row_number
        if row_number is not None:
            location = f"CSV row {row_number}"
        else:
            location = f"selected entry {row_index + 1}"
        super().__init__(
            f"failed to fetch price for {timestamp:%Y-%m-%d %H:%M:%S} UTC ({location})"
        )


class SampleRangeError(DotgainError, ValueError):
    def __init__(self, begin: object, end: object) -> None:
        self.begin = begin
        self.end = end
        super().__init__(f"end date {end} must be greater than begin date {begin}")

"""HTTP transport used by the price client.

The price client only needs "send a GET, get back status, headers and body".
:class:`HttpTransport` describes that capability so tests can substitute canned
responses; :class:`HttpxTransport` is the production implementation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Protocol

import httpx

from services.errors import TransportError


@dataclass(frozen=True)
class TransportResponse:
    status_code: int
    body: str
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300


class HttpTransport(Protocol):
    def get(self, url: str, params: Mapping[str, str]) -> TransportResponse:
        ...


class HttpxTransport:
    """Blocking transport backed by a shared :class:`httpx.Client`."""

    def __init__(self, timeout: float = 30.0, client: Optional[httpx.Client] = None) -> None:
        self._client = client or httpx.Client(timeout=timeout)

    def __enter__(self) -> "HttpxTransport":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def get(self, url: str, params: Mapping[str, str]) -> TransportResponse:
        try:
            response = self._client.get(url, params=dict(params))
        except httpx.HTTPError as exc:
            raise TransportError(url, str(exc) or type(exc).__name__) from exc
        return TransportResponse(
            status_code=response.status_code,
            body=response.text,
            headers=dict(response.headers),
        )

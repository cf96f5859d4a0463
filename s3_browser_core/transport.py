from __future__ import annotations
"""HTTP transport used for requests against presigned URLs."""
from dataclasses import dataclass
from typing import Protocol

import httpx

DEFAULT_UPLOAD_TIMEOUT = 300.0


class TransportError(RuntimeError):
    """Raised when a request could not be completed (connection, timeout)."""


@dataclass(frozen=True)
class TransportResponse:
    status_code: int
    body: bytes = b""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class HttpTransport(Protocol):
    def put(
        self,
        url: str,
        body: bytes,
        headers: dict[str, str],
        timeout: float = DEFAULT_UPLOAD_TIMEOUT,
    ) -> TransportResponse:
        ...


class HttpxTransport:
    """:class:`HttpTransport` built on :mod:`httpx`."""

    def __init__(self, client: httpx.Client | None = None, user_agent: str = "s3-browser-core"):
        self._client = client or httpx.Client(headers={"User-Agent": user_agent})

    def put(
        self,
        url: str,
        body: bytes,
        headers: dict[str, str],
        timeout: float = DEFAULT_UPLOAD_TIMEOUT,
    ) -> TransportResponse:
        try:
            response = self._client.put(url, content=body, headers=headers, timeout=timeout)
        except httpx.HTTPError as exc:
            raise TransportError(str(exc)) from exc
        return TransportResponse(status_code=response.status_code, body=response.content)

    def close(self) -> None:  # pragma: no cover - convenience helper
        self._client.close()

"""
Tool: Push Transports
Purpose: HTTP POST collaborators used by WebPush to deliver requests

Usage:
    from pushdispatch.push.transport import HttpxTransport, MultiplexedHttpxTransport

    with HttpxTransport(timeout=30) as transport:
        response = transport.post(url, headers, body)

    transport = MultiplexedHttpxTransport(timeout=30)
    transport.submit(url, headers, body)
    transport.submit(url2, headers2, body2)
    outcomes = transport.flush_pending()  # [PushResponse | TransportError, ...]

Contract:
    - An HTTP error status is a response, not a TransportError
    - Network and protocol failures raise (or return) TransportError, as do
      URLs httpx cannot parse
    - The timeout is fixed at construction

Dependencies:
    pip install httpx
"""

import asyncio
import logging
from abc import ABC, abstractmethod

import httpx

from pushdispatch.exceptions import TransportError
from pushdispatch.models import PushResponse

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

# httpx.InvalidURL is not an HTTPError subclass
REQUEST_ERRORS = (httpx.HTTPError, httpx.InvalidURL)


class PushTransport(ABC):
    """Abstract base for anything that can POST a push request."""

    @abstractmethod
    def post(self, url: str, headers: dict[str, str], body: bytes) -> PushResponse:
        """
        Send one request and wait for the response.

        Raises:
            TransportError: network or protocol failure
        """
        ...

    def close(self) -> None:
        """Release connections. Override if the transport holds any."""

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class MultiplexedPushTransport(PushTransport):
    """
    Transport that can have many requests in flight at once.

    WebPush submits every request of a flush before calling
    flush_pending(), which blocks until all of them complete.
    """

    @abstractmethod
    def submit(self, url: str, headers: dict[str, str], body: bytes) -> None:
        """Queue a request for the next flush_pending()."""
        ...

    @abstractmethod
    def flush_pending(self) -> list[PushResponse | TransportError]:
        """Complete every submitted request; outcomes are in submission order."""
        ...

    @property
    @abstractmethod
    def pending_count(self) -> int:
        """Number of submitted requests not yet flushed."""
        ...

    def post(self, url: str, headers: dict[str, str], body: bytes) -> PushResponse:
        """
        Send one request on its own.

        Raises:
            RuntimeError: other submitted requests are waiting for
                flush_pending(), or the flush did not return exactly
                one outcome
            TransportError: network or protocol failure
        """
        if self.pending_count:
            raise RuntimeError(
                f"post() called with {self.pending_count} submitted requests pending; "
                "call flush_pending() first"
            )

        self.submit(url, headers, body)
        outcomes = self.flush_pending()
        if len(outcomes) != 1:
            raise RuntimeError(f"Expected 1 outcome from flush_pending(), got {len(outcomes)}")

        outcome = outcomes[0]
        if isinstance(outcome, TransportError):
            raise outcome
        return outcome


def _to_push_response(response: httpx.Response) -> PushResponse:
    return PushResponse(status_code=response.status_code, headers=dict(response.headers))


class HttpxTransport(PushTransport):
    """Sequential transport on a shared httpx.Client."""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ):
        self.timeout = timeout
        self._client = httpx.Client(timeout=timeout, transport=transport)

    def post(self, url: str, headers: dict[str, str], body: bytes) -> PushResponse:
        try:
            response = self._client.post(url, headers=headers, content=body)
        except REQUEST_ERRORS as e:
            raise TransportError(f"POST {url} failed: {e}", url=url) from e
        return _to_push_response(response)

    def close(self) -> None:
        self._client.close()


class MultiplexedHttpxTransport(MultiplexedPushTransport):
    """
    Concurrent transport on httpx.AsyncClient.

    flush_pending() runs its own event loop, so it must not be called
    from inside a running loop.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        max_connections: int = 100,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.timeout = timeout
        self.max_connections = max_connections
        self._transport = transport
        self._pending: list[tuple[str, dict[str, str], bytes]] = []

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def submit(self, url: str, headers: dict[str, str], body: bytes) -> None:
        self._pending.append((url, dict(headers), body))

    def flush_pending(self) -> list[PushResponse | TransportError]:
        pending, self._pending = self._pending, []
        if not pending:
            return []

        logger.debug(f"Sending {len(pending)} requests concurrently")
        return asyncio.run(self._send_all(pending))

    async def _send_all(
        self,
        pending: list[tuple[str, dict[str, str], bytes]],
    ) -> list[PushResponse | TransportError]:
        limits = httpx.Limits(max_connections=self.max_connections)
        async with httpx.AsyncClient(timeout=self.timeout, limits=limits, transport=self._transport) as client:
            return await asyncio.gather(
                *(self._send_one(client, url, headers, body) for url, headers, body in pending)
            )

    async def _send_one(
        self,
        client: httpx.AsyncClient,
        url: str,
        headers: dict[str, str],
        body: bytes,
    ) -> PushResponse | TransportError:
        try:
            response = await client.post(url, headers=headers, content=body)
        except REQUEST_ERRORS as e:
            error = TransportError(f"POST {url} failed: {e}", url=url)
            error.__cause__ = e
            return error
        return _to_push_response(response)

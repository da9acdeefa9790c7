"""
Request transport for latency sampling.

The sampler only needs ``issue(uri, cancel_event)``; connection pooling, TLS
and timeouts are the transport's business. ``AiohttpTransport`` is the
production implementation on top of a shared ``aiohttp.ClientSession``.
"""

import asyncio
import ssl
from dataclasses import dataclass
from typing import Any, Awaitable, Optional, Protocol, TypeVar

import aiohttp

from .timing import Timer


T = TypeVar("T")


class RequestCancelledError(Exception):
    """The run was cancelled while the request was in flight."""


@dataclass(frozen=True)
class TransportResult:
    """Outcome of one request as seen by the transport."""

    duration_ms: float
    status: Optional[int] = None
    error: Optional[BaseException] = None

    @property
    def success(self) -> bool:
        return self.error is None


class Transport(Protocol):
    async def issue(self, uri: str, cancel_event: asyncio.Event) -> TransportResult: ...


async def run_cancellable(awaitable: Awaitable[T], cancel_event: asyncio.Event) -> T:
    """Await ``awaitable`` unless ``cancel_event`` fires first.

    Raises:
        RequestCancelledError: if the event was set before completion.
    """
    if cancel_event.is_set():
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise RequestCancelledError()

    work = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(cancel_event.wait())
    try:
        await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        work.cancel()
        raise
    finally:
        waiter.cancel()

    if work.done():
        return work.result()

    work.cancel()
    try:
        await work
    except asyncio.CancelledError:
        pass
    raise RequestCancelledError()


def classify_error(error: BaseException) -> str:
    """Stable kind tag for an error, independent of its message."""
    if isinstance(error, RequestCancelledError):
        return "cancelled"
    if isinstance(error, (asyncio.TimeoutError, aiohttp.ServerTimeoutError)):
        return "timeout"
    if isinstance(error, (aiohttp.ClientSSLError, ssl.SSLError)):
        return "ssl"
    if isinstance(error, (aiohttp.ClientConnectionError, ConnectionError)):
        return "connection"
    if isinstance(error, aiohttp.ClientPayloadError):
        return "payload"
    if isinstance(error, aiohttp.ClientResponseError):
        return "http"
    error_type = type(error)
    return f"{error_type.__module__}.{error_type.__qualname__}"


class AiohttpTransport:
    """GET requests over one pooled aiohttp session.

    Usage:
        async with AiohttpTransport(timeout_seconds=10) as transport:
            result = await transport.issue("https://example.com", cancel_event)
    """

    def __init__(
        self,
        timeout_seconds: float = 30.0,
        session: Optional[aiohttp.ClientSession] = None,
        headers: Optional[dict[str, Any]] = None,
    ):
        self.timeout_seconds = timeout_seconds
        self.headers = headers or {}
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "AiohttpTransport":
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
                headers=self.headers,
            )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    async def issue(self, uri: str, cancel_event: asyncio.Event) -> TransportResult:
        if self._session is None:
            raise RuntimeError("Transport is not open; use 'async with AiohttpTransport()'")

        timer = Timer(uri).start()
        try:
            status = await run_cancellable(self._get(uri), cancel_event)
        except (aiohttp.ClientError, asyncio.TimeoutError, RequestCancelledError) as e:
            timer.stop()
            return TransportResult(duration_ms=timer.elapsed_ms, error=e)
        timer.stop()
        return TransportResult(duration_ms=timer.elapsed_ms, status=status)

    async def _get(self, uri: str) -> int:
        async with self._session.get(uri) as resp:
            await resp.read()
            return resp.status

"""Wave Ledger client implementation with async/sync interfaces."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any

import httpx

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Response Models (mirrors server models for type safety)
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class Wave:
    """A wave as stored by the ledger."""

    index: int
    sender: str
    message: str
    timestamp: int


@dataclass(slots=True)
class NewWave:
    """A wave delivered over the event stream."""

    index: int
    sender: str
    timestamp: int
    message: str


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class WaveClientError(Exception):
    """Base exception for Wave Ledger client errors."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class WaveConnectionError(WaveClientError):
    """Connection to the ledger service failed."""
    pass


class WaveNotFoundError(WaveClientError):
    """Requested wave index is outside the ledger."""
    pass


class WaveRejectedError(WaveClientError):
    """The service rejected the submitted wave."""
    pass


# ---------------------------------------------------------------------------
# Client Configuration
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class WaveClientConfig:
    """Configuration for WaveClient."""

    base_url: str
    timeout: float = 30.0
    max_retries: int = 3
    retry_backoff: float = 1.0
    connection_pool_size: int = 10

    @classmethod
    def from_env(cls) -> WaveClientConfig:
        """Load configuration from environment variables."""
        return cls(
            base_url=os.environ.get("WAVE_LEDGER_URL", "http://localhost:4950"),
            timeout=float(os.environ.get("WAVE_LEDGER_TIMEOUT", "30.0")),
            max_retries=int(os.environ.get("WAVE_LEDGER_MAX_RETRIES", "3")),
        )


def _parse_wave(data: dict[str, Any]) -> Wave:
    return Wave(
        index=data["index"],
        sender=data["sender"],
        message=data["message"],
        timestamp=data["timestamp"],
    )


def parse_sse_line(line: str) -> NewWave | None:
    """Decode one SSE line into a NewWave, if it carries one."""
    if not line or line.startswith(":") or not line.startswith("data:"):
        return None

    data = line[5:].strip()
    if not data:
        return None

    try:
        event = json.loads(data)
    except json.JSONDecodeError:
        logger.warning("Invalid JSON in SSE data", extra={"data": data[:100]})
        return None

    if event.get("event_type") != "NewWave":
        return None

    payload = event.get("payload", {})
    return NewWave(
        index=payload["index"],
        sender=payload["sender"],
        timestamp=payload["timestamp"],
        message=payload["message"],
    )


# ---------------------------------------------------------------------------
# Async Client
# ---------------------------------------------------------------------------


class WaveClient:
    """Async client for the Wave Ledger service.

    Example:
        >>> async with WaveClient("http://localhost:4950") as client:
        ...     index = await client.send_wave("0xA11CE", "Hello, Linea!")
        ...     total = await client.get_total_waves()
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        max_retries: int = 3,
        retry_backoff: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._config = WaveClientConfig(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            max_retries=max_retries,
            retry_backoff=retry_backoff,
        )
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def config(self) -> WaveClientConfig:
        return self._config

    async def __aenter__(self) -> WaveClient:
        await self._ensure_client()
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._config.base_url,
                timeout=self._config.timeout,
                limits=httpx.Limits(
                    max_connections=self._config.connection_pool_size,
                    max_keepalive_connections=5,
                ),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the client connection."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def _build_headers(self, correlation_id: str | None = None) -> dict[str, str]:
        headers = {}
        if correlation_id:
            headers["X-Correlation-ID"] = correlation_id
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        correlation_id: str | None = None,
        idempotent: bool = True,
    ) -> dict[str, Any]:
        """Make request with retry logic.

        Non-idempotent requests are only retried when the connection was
        never established; a timeout or 5xx after sending may mean the
        server already applied the request.
        """
        client = await self._ensure_client()
        headers = self._build_headers(correlation_id)

        last_error: Exception | None = None
        for attempt in range(self._config.max_retries):
            try:
                response = await client.request(method, path, json=json, headers=headers)

                if response.status_code == 404:
                    raise WaveNotFoundError(_detail(response), 404)
                elif response.status_code == 422:
                    raise WaveRejectedError(_detail(response), 422)
                elif 400 <= response.status_code < 500:
                    raise WaveClientError(
                        f"HTTP {response.status_code}: {_detail(response)}",
                        response.status_code,
                    )

                response.raise_for_status()
                return response.json()

            except httpx.ConnectError as e:
                last_error = WaveConnectionError(f"Connection failed: {e}")
            except httpx.TimeoutException as e:
                last_error = WaveConnectionError(f"Request timed out: {e}")
                if not idempotent and not isinstance(e, httpx.ConnectTimeout):
                    raise last_error from e
            except WaveClientError:
                raise  # Client-side errors are not retried
            except httpx.HTTPStatusError as e:
                last_error = WaveClientError(
                    f"HTTP {e.response.status_code}: {e.response.text}",
                    e.response.status_code,
                )
                if not idempotent:
                    raise last_error from e

            # Exponential backoff before retry
            if attempt < self._config.max_retries - 1:
                delay = self._config.retry_backoff * (2 ** attempt)
                logger.debug(f"Retry {attempt + 1}/{self._config.max_retries} after {delay}s")
                await asyncio.sleep(delay)

        if last_error:
            raise last_error
        raise WaveConnectionError("Request failed after retries")

    # -----------------------------------------------------------------------
    # Wave API
    # -----------------------------------------------------------------------

    async def send_wave(
        self,
        sender: str,
        message: str,
        *,
        correlation_id: str | None = None,
    ) -> int:
        """Append a wave as ``sender``.

        Returns:
            Index the ledger assigned to the wave.
        """
        data = await self._request(
            "POST",
            "/waves",
            json={"sender": sender, "message": message},
            correlation_id=correlation_id,
            idempotent=False,
        )
        return data["index"]

    async def get_all_waves(self, *, correlation_id: str | None = None) -> list[Wave]:
        """Every wave in append order."""
        data = await self._request("GET", "/waves", correlation_id=correlation_id)
        return [_parse_wave(w) for w in data.get("waves", [])]

    async def get_total_waves(self, *, correlation_id: str | None = None) -> int:
        data = await self._request("GET", "/waves/count", correlation_id=correlation_id)
        return data["total_count"]

    async def get_wave(self, index: int, *, correlation_id: str | None = None) -> Wave:
        """Get one wave.

        Raises:
            WaveNotFoundError: if ``index`` is outside the ledger
        """
        data = await self._request("GET", f"/waves/{index}", correlation_id=correlation_id)
        return _parse_wave(data)

    async def watch_waves(self) -> AsyncIterator[NewWave]:
        """Yield each new wave as the service announces it.

        Only waves appended after the stream is connected are delivered.
        """
        client = await self._ensure_client()
        async with client.stream(
            "GET", "/events/stream", timeout=httpx.Timeout(self._config.timeout, read=None)
        ) as response:
            response.raise_for_status()
            async for line in response.aiter_lines():
                event = parse_sse_line(line)
                if event is not None:
                    yield event

    # -----------------------------------------------------------------------
    # Health API
    # -----------------------------------------------------------------------

    async def health(self) -> dict[str, Any]:
        """Get service health status."""
        return await self._request("GET", "/healthz")

    async def ready(self) -> bool:
        """Check if service is ready."""
        try:
            data = await self._request("GET", "/ready")
            return data.get("ready", False)
        except WaveClientError:
            return False


def _detail(response: httpx.Response) -> str:
    try:
        detail = response.json().get("detail")
    except ValueError:
        return response.text
    return detail if isinstance(detail, str) else json.dumps(detail)


# ---------------------------------------------------------------------------
# Sync Client Wrapper
# ---------------------------------------------------------------------------


class WaveClientSync:
    """Synchronous wrapper for WaveClient.

    Each call runs on a fresh event loop, so the wrapper must not be used
    from inside a running loop.

    Example:
        >>> client = WaveClientSync("http://localhost:4950")
        >>> client.send_wave("0xB0B", "Wave from Bob")
        0
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        max_retries: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._async_client = WaveClient(
            base_url,
            timeout=timeout,
            max_retries=max_retries,
            transport=transport,
        )

    def _run(self, coro):
        """Run coroutine to completion and release the connection pool."""

        async def runner():
            try:
                return await coro
            finally:
                await self._async_client.close()

        return asyncio.run(runner())

    def send_wave(self, sender: str, message: str, *, correlation_id: str | None = None) -> int:
        return self._run(
            self._async_client.send_wave(sender, message, correlation_id=correlation_id)
        )

    def get_all_waves(self) -> list[Wave]:
        return self._run(self._async_client.get_all_waves())

    def get_total_waves(self) -> int:
        return self._run(self._async_client.get_total_waves())

    def get_wave(self, index: int) -> Wave:
        return self._run(self._async_client.get_wave(index))

    def health(self) -> dict[str, Any]:
        """Get service health status."""
        return self._run(self._async_client.health())

    def ready(self) -> bool:
        """Check if service is ready."""
        return self._run(self._async_client.ready())

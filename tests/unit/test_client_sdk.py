"""Tests for the Wave Ledger client SDK."""

from __future__ import annotations

import json

import httpx
import pytest

from wave_ledger.service.app import create_ledger_app
from wave_ledger.service.config import LedgerConfig, StorageBackend
from wave_ledger_client.client import (
    NewWave,
    Wave,
    WaveClient,
    WaveClientConfig,
    WaveClientError,
    WaveClientSync,
    WaveConnectionError,
    WaveNotFoundError,
    WaveRejectedError,
    parse_sse_line,
)


# ---------------------------------------------------------------------------
# Model / Config Tests (no transport needed)
# ---------------------------------------------------------------------------


class TestModels:
    """Tests for client data models."""

    def test_wave_fields(self):
        wave = Wave(index=0, sender="alice", message="gm", timestamp=1)
        assert wave.sender == "alice"
        assert wave.index == 0

    def test_default_config(self):
        """WaveClientConfig has sensible defaults."""
        config = WaveClientConfig(base_url="http://localhost:4950")
        assert config.timeout == 30.0
        assert config.max_retries == 3
        assert config.retry_backoff == 1.0
        assert config.connection_pool_size == 10

    def test_config_from_env(self, monkeypatch):
        monkeypatch.setenv("WAVE_LEDGER_URL", "http://ledger.test")
        monkeypatch.setenv("WAVE_LEDGER_MAX_RETRIES", "5")
        config = WaveClientConfig.from_env()
        assert config.base_url == "http://ledger.test"
        assert config.max_retries == 5

    def test_trailing_slash_stripped(self):
        client = WaveClient("http://localhost:4950/")
        assert client.config.base_url == "http://localhost:4950"


class TestExceptions:
    """Tests for client exceptions."""

    def test_client_error_stores_status(self):
        err = WaveClientError("Test error", 500)
        assert str(err) == "Test error"
        assert err.status_code == 500

    def test_subclasses(self):
        assert issubclass(WaveConnectionError, WaveClientError)
        assert issubclass(WaveNotFoundError, WaveClientError)
        assert issubclass(WaveRejectedError, WaveClientError)


class TestParseSseLine:
    """Tests for SSE line decoding."""

    def test_new_wave(self):
        line = "data: " + json.dumps(
            {
                "event_type": "NewWave",
                "payload": {"index": 2, "sender": "bob", "message": "hi", "timestamp": 7},
            }
        )
        assert parse_sse_line(line) == NewWave(index=2, sender="bob", timestamp=7, message="hi")

    @pytest.mark.parametrize(
        "line",
        ["", ": keep-alive", "event: NewWave", "data:", "data: {not json", 'data: {"event_type": "Other"}'],
    )
    def test_ignored_lines(self, line):
        assert parse_sse_line(line) is None


# ---------------------------------------------------------------------------
# Against the real app (ASGI transport)
# ---------------------------------------------------------------------------


@pytest.fixture
def asgi_transport(ledger):
    app = create_ledger_app(LedgerConfig(storage_backend=StorageBackend.MEMORY), ledger=ledger)
    return httpx.ASGITransport(app=app)


class TestAgainstService:
    """End-to-end client calls against the FastAPI app."""

    @pytest.mark.asyncio
    async def test_send_and_read_back(self, asgi_transport):
        async with WaveClient("http://ledger.test", transport=asgi_transport) as client:
            assert await client.get_total_waves() == 0

            assert await client.send_wave("alice", "Wave from Alice") == 0
            assert await client.send_wave("bob", "Wave from Bob") == 1
            assert await client.send_wave("alice", "Another wave from Alice") == 2

            waves = await client.get_all_waves()
            assert [(w.sender, w.message) for w in waves] == [
                ("alice", "Wave from Alice"),
                ("bob", "Wave from Bob"),
                ("alice", "Another wave from Alice"),
            ]
            assert await client.get_total_waves() == 3
            assert (await client.get_wave(1)).sender == "bob"

    @pytest.mark.asyncio
    async def test_out_of_range_raises_not_found(self, asgi_transport):
        async with WaveClient("http://ledger.test", transport=asgi_transport) as client:
            with pytest.raises(WaveNotFoundError) as excinfo:
                await client.get_wave(0)
            assert excinfo.value.status_code == 404

    @pytest.mark.asyncio
    async def test_rejected_submission(self, asgi_transport):
        async with WaveClient("http://ledger.test", transport=asgi_transport) as client:
            with pytest.raises(WaveRejectedError):
                await client.send_wave("", "no sender")

    @pytest.mark.asyncio
    async def test_health_and_ready(self, asgi_transport):
        async with WaveClient("http://ledger.test", transport=asgi_transport) as client:
            assert (await client.health())["status"] == "ok"
            assert await client.ready() is True


# ---------------------------------------------------------------------------
# Transport behaviour (mock transport)
# ---------------------------------------------------------------------------


class TestRetries:
    """Tests for retry and error mapping."""

    @pytest.mark.asyncio
    async def test_retries_server_errors(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) < 3:
                return httpx.Response(503, text="unavailable")
            return httpx.Response(200, json={"total_count": 4})

        client = WaveClient(
            "http://ledger.test",
            retry_backoff=0,
            transport=httpx.MockTransport(handler),
        )
        async with client:
            assert await client.get_total_waves() == 4
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client = WaveClient(
            "http://ledger.test",
            max_retries=2,
            retry_backoff=0,
            transport=httpx.MockTransport(handler),
        )
        async with client:
            with pytest.raises(WaveConnectionError):
                await client.get_total_waves()

    @pytest.mark.asyncio
    async def test_send_wave_not_resent_after_timeout(self):
        """A POST that timed out may have landed, so it is sent only once."""
        config = LedgerConfig(storage_backend=StorageBackend.MEMORY)
        app = create_ledger_app(config)
        inner = httpx.ASGITransport(app=app)
        posts = []

        class TimeoutAfterPost(httpx.AsyncBaseTransport):
            async def handle_async_request(self, request):
                response = await inner.handle_async_request(request)
                if request.method == "POST":
                    posts.append(request)
                    raise httpx.ReadTimeout("no response", request=request)
                return response

        client = WaveClient(
            "http://ledger.test",
            retry_backoff=0,
            transport=TimeoutAfterPost(),
        )
        async with client:
            with pytest.raises(WaveConnectionError):
                await client.send_wave("alice", "once")
            assert await client.get_total_waves() == 1
        assert len(posts) == 1

    @pytest.mark.asyncio
    async def test_send_wave_not_resent_after_server_error(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(503, text="unavailable")

        client = WaveClient(
            "http://ledger.test",
            retry_backoff=0,
            transport=httpx.MockTransport(handler),
        )
        async with client:
            with pytest.raises(WaveClientError) as exc_info:
                await client.send_wave("alice", "gm")
        assert exc_info.value.status_code == 503
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_send_wave_retried_when_connection_refused(self):
        """Nothing reached the server, so the POST is safe to send again."""
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) < 2:
                raise httpx.ConnectError("refused", request=request)
            return httpx.Response(201, json={"index": 0})

        client = WaveClient(
            "http://ledger.test",
            retry_backoff=0,
            transport=httpx.MockTransport(handler),
        )
        async with client:
            assert await client.send_wave("alice", "gm") == 0
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_ready_false_on_error(self):
        client = WaveClient(
            "http://ledger.test",
            max_retries=1,
            transport=httpx.MockTransport(lambda request: httpx.Response(500)),
        )
        async with client:
            assert await client.ready() is False

    @pytest.mark.asyncio
    async def test_correlation_id_header(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["corr"] = request.headers.get("X-Correlation-ID")
            return httpx.Response(201, json={"index": 0})

        client = WaveClient("http://ledger.test", transport=httpx.MockTransport(handler))
        async with client:
            await client.send_wave("alice", "gm", correlation_id="corr-9")
        assert seen["corr"] == "corr-9"


class TestWatchWaves:
    """Tests for following the event stream."""

    @pytest.mark.asyncio
    async def test_yields_new_waves(self):
        body = "".join(
            f"data: {json.dumps({'event_type': 'NewWave', 'payload': p})}\n\n"
            for p in (
                {"index": 0, "sender": "alice", "message": "one", "timestamp": 1},
                {"index": 1, "sender": "bob", "message": "two", "timestamp": 2},
            )
        )

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/events/stream"
            return httpx.Response(
                200,
                content=body.encode(),
                headers={"content-type": "text/event-stream"},
            )

        client = WaveClient("http://ledger.test", transport=httpx.MockTransport(handler))
        async with client:
            events = [event async for event in client.watch_waves()]

        assert [(e.index, e.sender, e.message) for e in events] == [
            (0, "alice", "one"),
            (1, "bob", "two"),
        ]


class TestSyncClient:
    """Tests for the synchronous wrapper."""

    def test_send_and_count(self):
        state = {"count": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "POST":
                index = state["count"]
                state["count"] += 1
                return httpx.Response(201, json={"index": index})
            return httpx.Response(200, json={"total_count": state["count"]})

        client = WaveClientSync("http://ledger.test", transport=httpx.MockTransport(handler))
        assert client.send_wave("alice", "Hello, Linea!") == 0
        assert client.send_wave("bob", "Wave from Bob") == 1
        assert client.get_total_waves() == 2

    def test_not_found(self):
        client = WaveClientSync(
            "http://ledger.test",
            transport=httpx.MockTransport(
                lambda request: httpx.Response(404, json={"detail": "Wave index 3 out of range"})
            ),
        )
        with pytest.raises(WaveNotFoundError, match="out of range"):
            client.get_wave(3)

"""Pytest configuration and fixtures."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import httpx
import pytest
import pytest_asyncio

from relaywire.auth import AuthResult, OAuthClientProvider, OAuthTokens
from relaywire.transport import SSEClientTransport, TransportConfig

# Enable async tests without marking each one
pytest_plugins = ["pytest_asyncio"]

BASE_URL = "https://example.com"
SSE_URL = f"{BASE_URL}/sse"


class SSEServer:
    """
    Scripted SSE server answered through httpx.MockTransport.

    Each GET opens a new stream fed from its own queue. Events emitted
    while no stream is open (or queued with preload) are delivered to the
    next stream that opens.
    """

    def __init__(self) -> None:
        self.stream_statuses: list[int] = []
        self.stream_content_type = "text/event-stream"
        self.post_statuses: list[int] = []
        self.post_body = "error body"
        self.post_exception: Exception | None = None
        self.post_gate: asyncio.Event | None = None
        self.get_requests: list[httpx.Request] = []
        self.post_requests: list[httpx.Request] = []
        self.streams: list[asyncio.Queue] = []
        self._pending: list[str | None] = []

    def emit(self, event: str, data: str, id: str | None = None) -> None:
        chunk = f"event: {event}\n"
        if id is not None:
            chunk += f"id: {id}\n"
        chunk += f"data: {data}\n\n"
        self._push(chunk)

    def emit_raw(self, text: str) -> None:
        self._push(text)

    def preload(self, event: str, data: str) -> None:
        """Queue an event for the next stream to open."""
        self._pending.append(f"event: {event}\ndata: {data}\n\n")

    def end_stream(self) -> None:
        self._push(None)

    def _push(self, chunk: str | None) -> None:
        if self.streams:
            self.streams[-1].put_nowait(chunk)
        else:
            self._pending.append(chunk)

    async def handler(self, request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return self._open_stream(request)

        self.post_requests.append(request)
        if self.post_gate is not None:
            await self.post_gate.wait()
        if self.post_exception is not None:
            raise self.post_exception
        status = self.post_statuses.pop(0) if self.post_statuses else 202
        body = "Accepted" if status < 400 else self.post_body
        return httpx.Response(status, text=body)

    def _open_stream(self, request: httpx.Request) -> httpx.Response:
        self.get_requests.append(request)
        status = self.stream_statuses.pop(0) if self.stream_statuses else 200
        if status != 200:
            return httpx.Response(status, text="denied")

        queue: asyncio.Queue = asyncio.Queue()
        for chunk in self._pending:
            queue.put_nowait(chunk)
        self._pending.clear()
        self.streams.append(queue)

        async def body():
            while True:
                chunk = await queue.get()
                if chunk is None:
                    return
                yield chunk.encode("utf-8")

        return httpx.Response(
            200,
            headers={"Content-Type": self.stream_content_type},
            content=body(),
        )


class Recorder:
    """Collects everything a transport reports through its callback slots."""

    def __init__(self) -> None:
        self.messages: list = []
        self.errors: list[Exception] = []
        self.closes = 0

    def attach(self, transport: SSEClientTransport) -> None:
        transport.on_message = self.messages.append
        transport.on_error = self.errors.append
        transport.on_close = self._closed

    def _closed(self) -> None:
        self.closes += 1


class StaticTokenProvider(OAuthClientProvider):
    """Provider whose token the test (or the authorizer) sets directly."""

    def __init__(self, token: str | None = None):
        self.token = token

    async def tokens(self) -> OAuthTokens | None:
        if self.token is None:
            return None
        return OAuthTokens(access_token=self.token)


@pytest.fixture
def sse_server():
    return SSEServer()


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def provider():
    return StaticTokenProvider()


@pytest.fixture
def make_authorizer():
    """Build an authorizer mock that stores a fresh token when it authorizes."""

    def factory(
        provider: StaticTokenProvider,
        result: AuthResult = AuthResult.AUTHORIZED,
        token: str = "fresh-token",
    ) -> AsyncMock:
        async def authorize(p, server_url):
            if result is AuthResult.AUTHORIZED:
                provider.token = token
            return result

        return AsyncMock(side_effect=authorize)

    return factory


@pytest_asyncio.fixture
async def make_transport(sse_server, recorder):
    """Factory for transports wired to the scripted server; closes them afterwards."""
    transports: list[SSEClientTransport] = []

    def factory(config: TransportConfig | None = None, **kwargs) -> SSEClientTransport:
        if config is None:
            config = TransportConfig(url=SSE_URL, reconnect_delay=0.01)
        transport = SSEClientTransport(
            config,
            http_transport=httpx.MockTransport(sse_server.handler),
            **kwargs,
        )
        recorder.attach(transport)
        transports.append(transport)
        return transport

    yield factory

    for transport in transports:
        await transport.close()


@pytest.fixture
def eventually():
    """Wait until a condition holds, failing after a short timeout."""

    async def wait(predicate, timeout: float = 2.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition not met before timeout")
            await asyncio.sleep(0.01)

    return wait

"""SSE client transport: server push over an event stream, client messages over POST."""

from __future__ import annotations

import asyncio
import logging
from contextlib import aclosing
from typing import Any

import httpx

from relaywire.auth import AuthResult, Authorizer, OAuthClientProvider, bearer_headers
from relaywire.protocol.codec import JSONRPCCodec, MessageCodec
from relaywire.protocol.errors import DecodeError
from relaywire.protocol.messages import JSONRPCMessage
from relaywire.transport.base import Transport
from relaywire.transport.cancellation import CancellationScope
from relaywire.transport.errors import (
    AlreadyStartedError,
    ChannelError,
    DeliveryError,
    EndpointOriginMismatchError,
    HttpDeliveryError,
    NoAuthProviderError,
    NotConnectedError,
    SendCancelledError,
    TransportClosedError,
    UnauthorizedError,
)
from relaywire.transport.sse import EventSource
from relaywire.transport.state import ConnectionState, ConnectionStateMachine
from relaywire.transport.types import TransportConfig, TransportEventType

logger = logging.getLogger(__name__)

UNAUTHORIZED = 401


def _origin(url: httpx.URL) -> str:
    origin = f"{url.scheme}://{url.host}"
    if url.port is not None:
        origin += f":{url.port}"
    return origin


class SSEClientTransport(Transport):
    """
    Client transport for SSE servers.

    Receives messages over a Server-Sent Events stream and sends each
    message as its own HTTP POST to the endpoint the server announces in
    an "endpoint" event.

    Every (re)opened stream starts a new connection generation with its
    own endpoint and cancellation scope. Events from an older generation
    are ignored, and POSTs of an older generation are cancelled.

    When an auth provider is configured, a 401 from the stream or from a
    POST runs the authorizer once and retries the operation once.
    """

    MAX_AUTH_RETRIES = 1

    def __init__(
        self,
        config: TransportConfig,
        *,
        auth_provider: OAuthClientProvider | None = None,
        authorizer: Authorizer | None = None,
        codec: MessageCodec | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the transport.

        Args:
            config: Server URL, timeouts and low-level request customization.
            auth_provider: Source of bearer tokens; enables reauthorization.
            authorizer: Runs the authorization flow; required with auth_provider.
            codec: Message codec, JSON-RPC over JSON by default.
            http_transport: httpx transport for the owned client (mainly tests).
        """
        super().__init__(config)
        if auth_provider is not None and authorizer is None:
            raise ValueError("auth_provider requires an authorizer")

        self._url = httpx.URL(config.url)
        self._auth_provider = auth_provider
        self._authorizer = authorizer
        self._codec: MessageCodec = codec or JSONRPCCodec()
        self._http_transport = http_transport

        self._state = ConnectionStateMachine()
        self._state.on_transition(self._on_state_change)

        self._client: httpx.AsyncClient | None = None
        self._generation = 0
        self._endpoint: httpx.URL | None = None
        self._scope: CancellationScope | None = None
        self._endpoint_waiter: asyncio.Future[None] | None = None
        self._stream_task: asyncio.Task | None = None
        self._reconnect_task: asyncio.Task | None = None
        self._reconnect_delay = config.reconnect_delay
        self._last_event_id: str | None = None

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state.state

    @property
    def generation(self) -> int:
        """Number of streams opened so far; identifies the current one."""
        return self._generation

    @property
    def endpoint(self) -> str | None:
        """POST endpoint of the current generation, once announced."""
        return str(self._endpoint) if self._endpoint is not None else None

    def is_connected(self) -> bool:
        """Check if messages can be sent."""
        return self._state.is_open and self._endpoint is not None

    async def start(self) -> None:
        """
        Open the event stream and wait for the server's endpoint.

        Raises:
            AlreadyStartedError: If start() was called before.
            ChannelError: If the stream fails before the endpoint arrives.
            EndpointOriginMismatchError: If the endpoint is on another origin.
            UnauthorizedError: If reauthorization did not succeed.
            TransportClosedError: If close() was called while starting.
        """
        if self._state.state is not ConnectionState.IDLE:
            raise AlreadyStartedError(
                "SSEClientTransport already started! "
                "If using a client session, note that connect() calls start() automatically."
            )

        self._state.transition(ConnectionState.CONNECTING)
        self._client = self._create_client()

        try:
            await self._establish()
        except asyncio.CancelledError:
            await self.close()
            raise
        except Exception as e:
            if not self._state.is_terminal:
                await self._fail(e)
            raise

    async def send(self, message: JSONRPCMessage | dict[str, Any]) -> None:
        """
        POST one message to the current endpoint.

        Raises:
            NotConnectedError: If no endpoint is known; nothing is sent.
            HttpDeliveryError: If the server answers with a non-2xx status.
            UnauthorizedError: If reauthorization did not succeed.
            DeliveryError: On network failure.
            SendCancelledError: If the transport closed while sending.
        """
        endpoint = self._endpoint
        scope = self._scope
        if endpoint is None or scope is None or not self._state.is_open:
            raise NotConnectedError("Not connected")

        try:
            await self._deliver(message, endpoint, scope)
        except SendCancelledError:
            raise
        except Exception as e:
            self._report_error(e)
            raise

    async def close(self) -> None:
        """Stop the stream, cancel in-flight sends and fire on_close once."""
        # Nothing to close before start() or after the transport ended
        if not self._state.can_transition_to(ConnectionState.CLOSED):
            return

        logger.info(f"Closing SSE transport for {self.config.url}")
        self._state.transition(ConnectionState.CLOSED)
        await self._release()
        self._notify_close()

    def _create_client(self) -> httpx.AsyncClient:
        timeout = httpx.Timeout(
            connect=self.config.connect_timeout,
            read=self.config.timeout,
            write=self.config.timeout,
            pool=self.config.timeout,
        )
        return httpx.AsyncClient(
            timeout=timeout,
            verify=self.config.verify_ssl,
            transport=self._http_transport,
        )

    def _on_state_change(self, old: ConnectionState, new: ConnectionState) -> None:
        self._emit_event(
            TransportEventType.STATE_CHANGED,
            data={"from": old.name, "to": new.name, "generation": self._generation},
        )

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation and not self._state.is_terminal

    # Connection establishment

    async def _establish(self, challenge: ChannelError | None = None) -> None:
        """
        Open generations until one announces its endpoint.

        A 401 with a provider configured is answered by one authorization
        and a fresh stream; a second 401 in a row is final.
        """
        attempts = 0
        while True:
            if challenge is not None:
                if attempts >= self.MAX_AUTH_RETRIES:
                    raise UnauthorizedError(
                        "Server rejected the stream after reauthorization",
                        cause=challenge,
                    )
                attempts += 1
                await self._reauthorize_stream(challenge)

            try:
                await self._open_generation()
                return
            except ChannelError as e:
                if e.code != UNAUTHORIZED or self._auth_provider is None:
                    raise
                challenge = e

    async def _reauthorize_stream(self, challenge: ChannelError) -> None:
        logger.warning(f"Stream authentication challenge from {self.config.url}")
        self._state.transition(ConnectionState.AUTH_CHALLENGE)
        self._emit_event(
            TransportEventType.AUTH_CHALLENGE,
            data={"source": "stream", "generation": self._generation},
            error=challenge,
        )

        await self._authorize()

        if self._state.state is not ConnectionState.AUTH_CHALLENGE:
            raise TransportClosedError("Transport closed during authorization")
        self._state.transition(ConnectionState.CONNECTING)

    async def _open_generation(self) -> None:
        self._generation += 1
        generation = self._generation

        if self._scope is not None:
            self._scope.cancel()
        self._scope = CancellationScope(generation)
        self._endpoint = None

        previous = self._stream_task
        if previous is not None and not previous.done() and previous is not asyncio.current_task():
            previous.cancel()

        headers = await self._stream_headers()
        if self._last_event_id is not None:
            headers["Last-Event-ID"] = self._last_event_id
        if not self._is_current(generation):
            raise TransportClosedError("Transport closed while connecting")

        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._endpoint_waiter = waiter

        source = EventSource(
            self._client,
            self.config.url,
            headers=headers,
            connect_timeout=self.config.connect_timeout,
            on_open=lambda: self._emit_event(
                TransportEventType.STREAM_OPENED,
                data={"url": self.config.url, "generation": generation},
            ),
        )
        logger.debug(f"Opening event stream {generation} to {self.config.url}")
        self._stream_task = asyncio.create_task(
            self._read_stream(source, generation, waiter),
            name=f"relaywire-stream-{generation}",
        )

        try:
            await waiter
        finally:
            if self._endpoint_waiter is waiter:
                self._endpoint_waiter = None

    async def _stream_headers(self) -> dict[str, str]:
        stream_options = self.config.stream_options
        if stream_options is not None:
            # Explicit options win: no automatic Authorization header
            return dict(stream_options.headers)
        return await bearer_headers(self._auth_provider)

    async def _read_stream(
        self,
        source: EventSource,
        generation: int,
        waiter: asyncio.Future[None],
    ) -> None:
        try:
            async with aclosing(source.events()) as events:
                async for event in events:
                    if not self._is_current(generation):
                        logger.debug(f"Dropping event from stale stream {generation}")
                        return

                    if event.event == "endpoint":
                        self._handle_endpoint(event.data, waiter)
                    elif event.event == "message":
                        self._handle_message(event.data)
                    else:
                        logger.debug(f"Ignoring SSE event type {event.event!r}")

            raise ChannelError(None, "Stream closed by server")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if source.retry is not None:
                self._reconnect_delay = source.retry / 1000
            if source.last_event_id is not None:
                self._last_event_id = source.last_event_id
            if not self._is_current(generation):
                logger.debug(f"Stale stream {generation} ended: {e}")
                return
            if not waiter.done():
                waiter.set_exception(e)
                return
            await self._handle_stream_failure(e)
        finally:
            self._emit_event(
                TransportEventType.STREAM_CLOSED,
                data={"generation": generation},
            )

    def _handle_endpoint(self, data: str, waiter: asyncio.Future[None]) -> None:
        if self._endpoint is not None:
            logger.warning(f"Ignoring repeated endpoint event: {data!r}")
            return

        endpoint = self._url.join(data.strip())
        if _origin(endpoint) != _origin(self._url):
            raise EndpointOriginMismatchError(str(endpoint), _origin(self._url))

        self._endpoint = endpoint
        self._state.transition(ConnectionState.OPEN)
        logger.info(f"SSE endpoint received: {endpoint}")
        self._emit_event(
            TransportEventType.ENDPOINT_DISCOVERED,
            data={"endpoint": str(endpoint), "generation": self._generation},
        )
        if not waiter.done():
            waiter.set_result(None)

    def _handle_message(self, data: str) -> None:
        try:
            message = self._codec.decode(data)
        except DecodeError as e:
            logger.warning(f"Dropping malformed message: {e}")
            self._report_error(e)
            return

        self._emit_event(TransportEventType.MESSAGE_RECEIVED, data={"message": str(message)})
        self._deliver_message(message)

    async def _handle_stream_failure(self, error: Exception) -> None:
        """Decide what happens when an open stream ends or fails."""
        if not isinstance(error, ChannelError):
            logger.warning(f"Event stream failed: {error}")
            await self._fail(error)
            return

        if error.code == UNAUTHORIZED and self._auth_provider is not None:
            challenge: ChannelError | None = error
        elif error.code is None and self.config.reconnect:
            # Dropped connection: reported, but the transport stays usable
            logger.warning(f"Event stream dropped: {error}")
            self._report_error(error)
            challenge = None
        else:
            logger.warning(f"Event stream failed: {error}")
            await self._fail(error)
            return

        self._endpoint = None
        self._reconnect_task = asyncio.create_task(
            self._reconnect(challenge),
            name=f"relaywire-reconnect-{self._generation}",
        )

    async def _reconnect(self, challenge: ChannelError | None) -> None:
        try:
            if challenge is None:
                logger.info(
                    f"Reconnecting event stream in {self._reconnect_delay}s"
                )
                self._state.transition(ConnectionState.CONNECTING)
                await asyncio.sleep(self._reconnect_delay)
                if self._state.is_terminal:
                    return
            await self._establish(challenge)
        except TransportClosedError:
            logger.debug("Reconnect abandoned: transport closed")
        except Exception as e:
            if not self._state.is_terminal:
                await self._fail(e)

    # Authentication

    async def _authorize(self) -> None:
        """
        Run the authorizer once.

        Raises:
            NoAuthProviderError: If no provider is configured.
            UnauthorizedError: If the flow did not authorize the client.
        """
        if self._auth_provider is None or self._authorizer is None:
            raise NoAuthProviderError("No auth provider")

        result = await self._authorizer(self._auth_provider, self.config.url)
        if result is not AuthResult.AUTHORIZED:
            raise UnauthorizedError("Unauthorized")
        logger.info(f"Reauthorized with {self.config.url}")

    # Sending

    async def _deliver(
        self,
        message: JSONRPCMessage | dict[str, Any],
        endpoint: httpx.URL,
        scope: CancellationScope,
    ) -> None:
        body = self._codec.encode(message)
        attempts = 0

        while True:
            response = await scope.run(self._post(endpoint, body))
            if response.is_success:
                self._emit_event(
                    TransportEventType.MESSAGE_SENT,
                    data={"endpoint": str(endpoint), "status": response.status_code},
                )
                return

            if response.status_code == UNAUTHORIZED and self._auth_provider is not None:
                if attempts >= self.MAX_AUTH_RETRIES:
                    raise UnauthorizedError("Server rejected the message after reauthorization")
                attempts += 1
                logger.warning(f"POST to {endpoint} was rejected with 401, reauthorizing")
                self._emit_event(
                    TransportEventType.AUTH_CHALLENGE,
                    data={"source": "send", "generation": scope.generation},
                )
                await self._authorize()
                continue

            raise HttpDeliveryError(response.status_code, response.text or None)

    async def _post(self, endpoint: httpx.URL, body: str) -> httpx.Response:
        headers = httpx.Headers(await bearer_headers(self._auth_provider))
        request_options = self.config.request_options
        kwargs: dict[str, Any] = {}
        if request_options is not None:
            headers.update(request_options.headers)
            if request_options.timeout is not None:
                kwargs["timeout"] = request_options.timeout
        headers["content-type"] = self._codec.content_type

        try:
            return await self._client.post(
                str(endpoint),
                content=body.encode("utf-8"),
                headers=headers,
                **kwargs,
            )
        except httpx.TimeoutException as e:
            raise DeliveryError(f"Request timed out: {e}", cause=e)
        except httpx.HTTPError as e:
            raise DeliveryError(f"HTTP error: {e}", cause=e)

    # Teardown

    async def _fail(self, error: Exception) -> None:
        """Report a fatal error once, then shut the transport down."""
        self._report_error(error)
        self._state.transition(ConnectionState.FAILED)
        await self._release()
        self._notify_close()

    async def _release(self) -> None:
        self._endpoint = None
        if self._scope is not None:
            self._scope.cancel()

        current = asyncio.current_task()
        tasks = [
            task
            for task in (self._stream_task, self._reconnect_task)
            if task is not None and task is not current and not task.done()
        ]
        for task in tasks:
            task.cancel()

        # A start() still waiting on the endpoint is told why
        waiter = self._endpoint_waiter
        if waiter is not None and not waiter.done():
            waiter.set_exception(
                TransportClosedError("Transport closed before the endpoint was received")
            )

        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        if self._client is not None:
            await self._client.aclose()
            self._client = None

"""Server-Sent Events stream over httpx."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Mapping

import httpx

from relaywire.transport.errors import ChannelError

logger = logging.getLogger(__name__)

EVENT_STREAM = "text/event-stream"


@dataclass
class ServerSentEvent:
    """One parsed event block from the stream."""

    event: str = "message"
    data: str | None = None
    id: str | None = None
    retry: int | None = None

    @property
    def dispatchable(self) -> bool:
        """Only blocks that carried data lines are delivered as events."""
        return self.data is not None


def parse_event(event_str: str) -> ServerSentEvent | None:
    """
    Parse a single SSE event block into its components.

    SSE format:
        event: <event-type>
        data: <data>
        id: <id>
        retry: <milliseconds>

    Lines starting with ":" are comments. Only one space after the colon
    is stripped, so data keeps any further leading whitespace. Returns None
    for blocks without any recognized field.
    """
    if not event_str.strip():
        return None

    event = ServerSentEvent()
    data_lines: list[str] = []
    seen = False

    for line in event_str.split("\n"):
        if not line or line.startswith(":"):
            continue

        field, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]

        if field == "data":
            data_lines.append(value)
        elif field == "event":
            event.event = value or "message"
        elif field == "id":
            # Ids containing NUL are ignored per the SSE processing model
            if "\0" in value:
                continue
            event.id = value
        elif field == "retry":
            if not value.isdigit():
                continue
            event.retry = int(value)
        else:
            continue
        seen = True

    if data_lines:
        event.data = "\n".join(data_lines)

    return event if seen else None


async def parse_event_stream(chunks: AsyncIterator[str]) -> AsyncIterator[ServerSentEvent]:
    """
    Split decoded text chunks on blank lines and yield parsed events.

    Lines may end in \\n, \\r\\n or a bare \\r; all are normalized to \\n.
    """
    buffer = ""
    after_cr = False

    async for chunk in chunks:
        if not chunk:
            continue
        # \r\n split across two chunks: the \r already ended the line
        if after_cr and chunk.startswith("\n"):
            chunk = chunk[1:]
        after_cr = chunk.endswith("\r")
        buffer += chunk.replace("\r\n", "\n").replace("\r", "\n")

        # Process complete events (delimited by double newlines)
        while "\n\n" in buffer:
            event_str, buffer = buffer.split("\n\n", 1)
            event = parse_event(event_str)
            if event is not None:
                yield event


class EventSource:
    """
    A single GET request held open to receive Server-Sent Events.

    One EventSource is one connection attempt; it does not reconnect, but
    remembers the last reconnection delay the server asked for in retry.
    Any failure to open or read the stream surfaces as ChannelError, with
    the HTTP status as its code when the server answered.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        url: str,
        headers: Mapping[str, str] | None = None,
        connect_timeout: float = 10.0,
        on_open: Callable[[], None] | None = None,
    ):
        self._client = client
        self.url = url
        self._headers = dict(headers or {})
        self._timeout = httpx.Timeout(connect_timeout, read=None)
        self._on_open = on_open
        self.retry: int | None = None
        self.last_event_id: str | None = None

    async def events(self) -> AsyncIterator[ServerSentEvent]:
        """
        Open the stream and yield events until the server ends it.

        Raises:
            ChannelError: On a non-200 status, a non event-stream content
                type, or a network failure.
        """
        headers = httpx.Headers(self._headers)
        headers["Accept"] = EVENT_STREAM
        headers.setdefault("Cache-Control", "no-cache")

        try:
            async with self._client.stream(
                "GET",
                self.url,
                headers=headers,
                timeout=self._timeout,
            ) as response:
                if response.status_code != 200:
                    raise ChannelError(
                        response.status_code,
                        f"Non-200 status code ({response.status_code})",
                    )

                content_type = response.headers.get("Content-Type", "")
                if not content_type.startswith(EVENT_STREAM):
                    raise ChannelError(
                        response.status_code,
                        f"Invalid content type, expected \"{EVENT_STREAM}\" (got \"{content_type}\")",
                    )

                logger.debug(f"Event stream opened: {self.url}")
                if self._on_open is not None:
                    self._on_open()

                async for event in parse_event_stream(response.aiter_text()):
                    if event.retry is not None:
                        self.retry = event.retry
                    if event.id is not None:
                        self.last_event_id = event.id
                    if event.dispatchable:
                        yield event
        except httpx.TimeoutException as e:
            raise ChannelError(None, f"Timed out: {e}", cause=e)
        except httpx.HTTPError as e:
            raise ChannelError(None, f"HTTP error: {e}", cause=e)

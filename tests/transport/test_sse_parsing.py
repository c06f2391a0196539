"""Tests for SSE event parsing and the EventSource stream reader."""

import httpx
import pytest

from relaywire.transport import ChannelError
from relaywire.transport.sse import EventSource, ServerSentEvent, parse_event, parse_event_stream


async def collect(source):
    return [event async for event in source]


async def chunks(*parts):
    for part in parts:
        yield part


class TestParseEvent:
    """Parsing single event blocks."""

    def test_named_event(self):
        event = parse_event("event: endpoint\ndata: /messages")
        assert event == ServerSentEvent(event="endpoint", data="/messages")

    def test_default_event_type_is_message(self):
        event = parse_event('data: {"jsonrpc": "2.0"}')
        assert event.event == "message"
        assert event.data == '{"jsonrpc": "2.0"}'

    def test_multiline_data_joined(self):
        event = parse_event("data: line1\ndata: line2\ndata: line3")
        assert event.data == "line1\nline2\nline3"

    def test_only_one_leading_space_stripped(self):
        event = parse_event("data:   indented\ndata:tight")
        assert event.data == "  indented\ntight"

    def test_comments_ignored(self):
        event = parse_event(": keep-alive\nevent: message\ndata: x")
        assert event.data == "x"

    def test_comment_only_block(self):
        assert parse_event(": ping") is None

    def test_empty_block(self):
        assert parse_event("") is None
        assert parse_event("   ") is None

    def test_id_and_retry(self):
        event = parse_event("id: 42\nretry: 3000\ndata: x")
        assert event.id == "42"
        assert event.retry == 3000

    def test_invalid_retry_ignored(self):
        event = parse_event("retry: soon\ndata: x")
        assert event.retry is None

    def test_retry_only_block_is_not_dispatchable(self):
        event = parse_event("retry: 10")
        assert event is not None
        assert event.retry == 10
        assert not event.dispatchable

    def test_empty_data_line_is_dispatchable(self):
        event = parse_event("data:")
        assert event.data == ""
        assert event.dispatchable

    def test_unknown_fields_ignored(self):
        assert parse_event("foo: bar") is None


class TestParseEventStream:
    """Reassembling events across chunk boundaries."""

    @pytest.mark.asyncio
    async def test_events_split_across_chunks(self):
        events = await collect(
            parse_event_stream(chunks("event: endp", "oint\ndata: /m\n", "\ndata: a\n\n"))
        )
        assert [(e.event, e.data) for e in events] == [("endpoint", "/m"), ("message", "a")]

    @pytest.mark.asyncio
    async def test_crlf_line_endings(self):
        events = await collect(parse_event_stream(chunks("event: endpoint\r\ndata: /m\r\n\r\n")))
        assert events == [ServerSentEvent(event="endpoint", data="/m")]

    @pytest.mark.asyncio
    async def test_bare_cr_line_endings(self):
        events = await collect(parse_event_stream(chunks("event: endpoint\rdata: /m\r\r")))
        assert events == [ServerSentEvent(event="endpoint", data="/m")]

    @pytest.mark.asyncio
    async def test_crlf_split_across_chunks(self):
        events = await collect(
            parse_event_stream(chunks("data: a\r", "\ndata: b\r", "\n\r", "\n", "data: c\r\r"))
        )
        assert [e.data for e in events] == ["a\nb", "c"]

    @pytest.mark.asyncio
    async def test_incomplete_trailing_block_not_yielded(self):
        events = await collect(parse_event_stream(chunks("data: done\n\ndata: partial\n")))
        assert [e.data for e in events] == ["done"]


class TestEventSource:
    """Opening the stream with httpx."""

    def make_client(self, handler):
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    @pytest.mark.asyncio
    async def test_request_headers_and_events(self):
        seen = []
        opened = []

        def handler(request):
            seen.append(request)
            return httpx.Response(
                200,
                headers={"Content-Type": "text/event-stream; charset=utf-8"},
                content=b"id: 1\nretry: 250\ndata: hello\n\nretry: 500\n\n",
            )

        async with self.make_client(handler) as client:
            source = EventSource(
                client,
                "https://example.com/sse",
                headers={"X-Client": "tests"},
                on_open=lambda: opened.append(True),
            )
            events = await collect(source.events())

        assert [e.data for e in events] == ["hello"]
        assert opened == [True]
        assert source.retry == 500
        assert source.last_event_id == "1"
        assert seen[0].headers["Accept"] == "text/event-stream"
        assert seen[0].headers["Cache-Control"] == "no-cache"
        assert seen[0].headers["X-Client"] == "tests"

    @pytest.mark.asyncio
    async def test_non_200_status(self):
        async with self.make_client(lambda request: httpx.Response(403)) as client:
            with pytest.raises(ChannelError) as exc_info:
                await collect(EventSource(client, "https://example.com/sse").events())

        assert exc_info.value.code == 403
        assert "Non-200 status code (403)" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_wrong_content_type(self):
        def handler(request):
            return httpx.Response(200, json={"hello": "world"})

        async with self.make_client(handler) as client:
            with pytest.raises(ChannelError, match="Invalid content type") as exc_info:
                await collect(EventSource(client, "https://example.com/sse").events())

        assert exc_info.value.code == 200

    @pytest.mark.asyncio
    async def test_network_error_has_no_code(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with self.make_client(handler) as client:
            with pytest.raises(ChannelError) as exc_info:
                await collect(EventSource(client, "https://example.com/sse").events())

        assert exc_info.value.code is None
        assert isinstance(exc_info.value.cause, httpx.ConnectError)

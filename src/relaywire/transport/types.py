"""Transport layer types and configuration."""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any


class TransportEventType(Enum):
    """Types of transport events for observability."""

    STATE_CHANGED = auto()
    STREAM_OPENED = auto()
    STREAM_CLOSED = auto()
    ENDPOINT_DISCOVERED = auto()
    AUTH_CHALLENGE = auto()
    MESSAGE_SENT = auto()
    MESSAGE_RECEIVED = auto()
    ERROR = auto()
    CLOSED = auto()


@dataclass
class TransportEvent:
    """Event emitted by transport for observability."""

    type: TransportEventType
    timestamp: float
    data: dict[str, Any] | None = None
    error: Exception | None = None

    def __str__(self) -> str:
        base = f"[{self.type.name}]"
        if self.data:
            base += f" {self.data}"
        if self.error:
            base += f" error={self.error}"
        return base


@dataclass
class StreamOptions:
    """
    Customizes the GET request that opens the event stream.

    Supplying stream options disables the automatic Authorization header
    even when an auth provider is configured; set it here yourself if the
    server needs it.
    """

    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class RequestOptions:
    """Customizes the POST requests that carry outbound messages."""

    headers: dict[str, str] = field(default_factory=dict)
    """Headers overlaid on the automatic ones (these win on collision)."""

    timeout: float | None = None
    """Per-request timeout in seconds; defaults to TransportConfig.timeout."""


@dataclass
class TransportConfig:
    """Configuration for the SSE client transport."""

    url: str
    """http:// or https:// URL the event stream is opened against."""

    timeout: float = 30.0
    """Request timeout in seconds for outbound POSTs."""

    connect_timeout: float = 10.0
    """Connection establishment timeout in seconds."""

    verify_ssl: bool = True
    """Whether to verify SSL certificates (always True for production)."""

    reconnect: bool = True
    """Reopen the stream when it drops after the endpoint was received."""

    reconnect_delay: float = 1.0
    """Seconds to wait before reconnecting, until the server sends retry."""

    stream_options: StreamOptions | None = None
    """Low-level customization of the stream request."""

    request_options: RequestOptions | None = None
    """Low-level customization of outbound POSTs."""

    def __post_init__(self) -> None:
        """Validate configuration."""
        if not self.url:
            raise ValueError("url is required")
        if not self.url.startswith(("http://", "https://")):
            raise ValueError("url must be an http:// or https:// URL")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if self.connect_timeout <= 0:
            raise ValueError("connect_timeout must be positive")
        if self.reconnect_delay < 0:
            raise ValueError("reconnect_delay must not be negative")
        if (
            self.request_options is not None
            and self.request_options.timeout is not None
            and self.request_options.timeout <= 0
        ):
            raise ValueError("request_options.timeout must be positive")

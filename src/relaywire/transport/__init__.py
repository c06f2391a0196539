"""
Transport layer.

Implements the SSE client transport: a Server-Sent Events stream for
server-to-client messages and one HTTP POST per client-to-server message.
"""

from relaywire.transport.types import (
    RequestOptions,
    StreamOptions,
    TransportConfig,
    TransportEvent,
    TransportEventType,
)
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
    TransportError,
    UnauthorizedError,
)
from relaywire.transport.state import (
    ConnectionState,
    ConnectionStateMachine,
    InvalidStateTransition,
)
from relaywire.transport.base import Transport
from relaywire.transport.sse import EventSource, ServerSentEvent
from relaywire.transport.sse_client import SSEClientTransport

__all__ = [
    "Transport",
    "TransportConfig",
    "StreamOptions",
    "RequestOptions",
    "TransportEvent",
    "TransportEventType",
    # Errors
    "TransportError",
    "AlreadyStartedError",
    "ChannelError",
    "EndpointOriginMismatchError",
    "NoAuthProviderError",
    "UnauthorizedError",
    "NotConnectedError",
    "TransportClosedError",
    "DeliveryError",
    "HttpDeliveryError",
    "SendCancelledError",
    # State
    "ConnectionState",
    "ConnectionStateMachine",
    "InvalidStateTransition",
    # Stream
    "EventSource",
    "ServerSentEvent",
    "SSEClientTransport",
]

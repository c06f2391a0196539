"""
JSON-RPC protocol layer.

Message types, validation and the wire codec used by the transport.
"""

from relaywire.protocol.messages import (
    JSONRPCRequest,
    JSONRPCResponse,
    JSONRPCNotification,
    JSONRPCError,
    JSONRPCMessage,
    parse_message,
)
from relaywire.protocol.errors import (
    DecodeError,
    PARSE_ERROR,
    INVALID_REQUEST,
)
from relaywire.protocol.codec import JSONRPCCodec, MessageCodec

__all__ = [
    # Messages
    "JSONRPCRequest",
    "JSONRPCResponse",
    "JSONRPCNotification",
    "JSONRPCError",
    "JSONRPCMessage",
    "parse_message",
    # Errors
    "DecodeError",
    "PARSE_ERROR",
    "INVALID_REQUEST",
    # Codec
    "JSONRPCCodec",
    "MessageCodec",
]

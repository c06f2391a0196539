"""relaywire: JSON-RPC client transport over Server-Sent Events and HTTP POST."""

from relaywire.auth import AuthResult, OAuthClientProvider, OAuthTokens
from relaywire.protocol import DecodeError, JSONRPCCodec
from relaywire.transport import (
    SSEClientTransport,
    TransportConfig,
    TransportError,
)

__version__ = "0.1.0"

__all__ = [
    "AuthResult",
    "OAuthClientProvider",
    "OAuthTokens",
    "DecodeError",
    "JSONRPCCodec",
    "SSEClientTransport",
    "TransportConfig",
    "TransportError",
]

"""
Authorization capability consumed by the transport.

The token exchange itself lives outside this package; the transport only
needs a provider that can hand out the current tokens and an authorizer
that runs the flow when the server rejects them.
"""

from relaywire.auth.provider import (
    AuthResult,
    Authorizer,
    OAuthClientProvider,
    OAuthTokens,
    bearer_headers,
)

__all__ = [
    "AuthResult",
    "Authorizer",
    "OAuthClientProvider",
    "OAuthTokens",
    "bearer_headers",
]

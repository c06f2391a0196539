"""Auth provider interface, tokens and the authorization outcome."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable


class AuthResult(Enum):
    """Outcome of running the authorization flow against a server."""

    AUTHORIZED = "authorized"
    NOT_AUTHORIZED = "not-authorized"

    def __str__(self) -> str:
        return self.value


@dataclass
class OAuthTokens:
    """OAuth 2.0 token response fields the transport cares about."""

    access_token: str
    token_type: str = "Bearer"
    expires_in: int | None = None
    refresh_token: str | None = None
    scope: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OAuthTokens":
        """Create from a token endpoint response body."""
        return cls(
            access_token=data["access_token"],
            token_type=data.get("token_type", "Bearer"),
            expires_in=data.get("expires_in"),
            refresh_token=data.get("refresh_token"),
            scope=data.get("scope"),
        )

    def __repr__(self) -> str:
        # Keep secrets out of logs and tracebacks
        return f"OAuthTokens(token_type={self.token_type!r}, scope={self.scope!r})"


class OAuthClientProvider(ABC):
    """
    Source of the caller's current OAuth credentials.

    Implementations typically also store the client registration and the
    PKCE verifier used by the authorizer; the transport only reads tokens.
    """

    @abstractmethod
    async def tokens(self) -> OAuthTokens | None:
        """
        Return the currently stored tokens.

        Returns:
            Tokens if the client has authorized before, None otherwise.
        """
        pass


# Runs the authorization flow for (provider, server_url)
Authorizer = Callable[[OAuthClientProvider, str], Awaitable[AuthResult]]


async def bearer_headers(provider: OAuthClientProvider | None) -> dict[str, str]:
    """Authorization header for the provider's current token, if any."""
    headers: dict[str, str] = {}
    if provider is not None:
        tokens = await provider.tokens()
        if tokens:
            headers["Authorization"] = f"Bearer {tokens.access_token}"
    return headers

"""Transport error types."""

from __future__ import annotations


class TransportError(Exception):
    """Base exception for transport errors."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause


class AlreadyStartedError(TransportError):
    """start() was called on a transport that already opened a stream."""

    pass


class ChannelError(TransportError):
    """The event stream failed; code is the HTTP status when there is one."""

    def __init__(
        self,
        code: int | None,
        message: str,
        cause: Exception | None = None,
    ):
        super().__init__(f"SSE error: {message}", cause=cause)
        self.code = code


class EndpointOriginMismatchError(TransportError):
    """The server announced a POST endpoint on a different origin."""

    def __init__(self, endpoint: str, expected_origin: str):
        super().__init__(
            f"Endpoint origin does not match connection origin: {endpoint}"
        )
        self.endpoint = endpoint
        self.expected_origin = expected_origin


class NoAuthProviderError(TransportError):
    """An authentication challenge arrived but no auth provider is configured."""

    pass


class UnauthorizedError(TransportError):
    """The authorization flow finished without authorizing the client."""

    pass


class NotConnectedError(TransportError):
    """send() was called before an endpoint was received."""

    pass


class TransportClosedError(TransportError):
    """The transport was closed while an operation was in progress."""

    pass


class DeliveryError(TransportError):
    """A POST to the endpoint failed."""

    pass


class HttpDeliveryError(DeliveryError):
    """The endpoint answered a POST with a non-success status."""

    def __init__(self, status: int, body: str | None):
        super().__init__(f"Error POSTing to endpoint (HTTP {status}): {body}")
        self.status = status
        self.body = body


class SendCancelledError(DeliveryError):
    """A POST was cancelled because its connection generation ended."""

    pass

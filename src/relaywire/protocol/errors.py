"""Protocol error types and error codes."""

from dataclasses import dataclass
from typing import Any

# Standard JSON-RPC 2.0 error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600

ERROR_MESSAGES = {
    PARSE_ERROR: "Parse error",
    INVALID_REQUEST: "Invalid Request",
}


@dataclass(eq=False)
class DecodeError(Exception):
    """
    An inbound payload could not be parsed or validated.

    Carries the JSON-RPC error code that best describes the failure so a
    higher layer can answer with a matching error object if it wants to.
    """

    code: int
    message: str
    data: dict[str, Any] | None = None

    def __post_init__(self):
        super().__init__(self.message)

    @classmethod
    def parse_error(cls, details: str | None = None) -> "DecodeError":
        """The payload is not valid JSON."""
        return cls(
            code=PARSE_ERROR,
            message=ERROR_MESSAGES[PARSE_ERROR],
            data={"details": details} if details else None,
        )

    @classmethod
    def invalid_request(cls, details: str | None = None) -> "DecodeError":
        """The payload is JSON but not a JSON-RPC 2.0 message."""
        return cls(
            code=INVALID_REQUEST,
            message=ERROR_MESSAGES[INVALID_REQUEST],
            data={"details": details} if details else None,
        )

    def __str__(self) -> str:
        base = f"DecodeError({self.code}): {self.message}"
        if self.data:
            base += f" {self.data}"
        return base

    def __repr__(self) -> str:
        return f"DecodeError(code={self.code}, message={self.message!r}, data={self.data})"

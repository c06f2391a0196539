"""JSON-RPC 2.0 envelopes carried by the transport.

The transport never looks inside params or results; these types exist so
inbound frames are validated once, at the edge, and outbound frames are
serialized consistently.
"""

from dataclasses import dataclass, field
from typing import Any, Union
import uuid

JSONRPC_VERSION = "2.0"

RequestId = Union[str, int]
Params = Union[dict[str, Any], list[Any], None]


def _envelope(**members: Any) -> dict[str, Any]:
    """Build a wire dict, leaving out optional members that are unset."""
    msg: dict[str, Any] = {"jsonrpc": JSONRPC_VERSION}
    for key, value in members.items():
        if value is not None or key in ("id", "result"):
            msg[key] = value
    return msg


@dataclass
class JSONRPCRequest:
    """A call that expects a response carrying the same id."""

    method: str
    params: Params = None
    id: RequestId = field(default_factory=lambda: str(uuid.uuid4()))
    jsonrpc: str = field(default=JSONRPC_VERSION, init=False)

    def to_dict(self) -> dict[str, Any]:
        return _envelope(id=self.id, method=self.method, params=self.params)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "JSONRPCRequest":
        return cls(method=data["method"], params=data.get("params"), id=data["id"])

    def __str__(self) -> str:
        return f"Request({self.method}, id={self.id})"


@dataclass
class JSONRPCNotification:
    """A one-way message; it has no id and gets no response."""

    method: str
    params: Params = None
    jsonrpc: str = field(default=JSONRPC_VERSION, init=False)

    def to_dict(self) -> dict[str, Any]:
        return _envelope(method=self.method, params=self.params)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "JSONRPCNotification":
        return cls(method=data["method"], params=data.get("params"))

    def __str__(self) -> str:
        return f"Notification({self.method})"


@dataclass
class JSONRPCError:
    """The error member of a failed response."""

    code: int
    message: str
    data: Any = None

    def to_dict(self) -> dict[str, Any]:
        error: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            error["data"] = self.data
        return error


@dataclass
class JSONRPCResponse:
    """
    Answer to a request.

    Carries exactly one of result or error. id is None only when the peer
    could not read the id of the request it is answering.
    """

    id: RequestId | None
    result: Any = None
    error: JSONRPCError | None = None
    jsonrpc: str = field(default=JSONRPC_VERSION, init=False)

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def to_dict(self) -> dict[str, Any]:
        if self.error is not None:
            return _envelope(id=self.id, error=self.error.to_dict())
        return _envelope(id=self.id, result=self.result)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "JSONRPCResponse":
        error = data.get("error")
        return cls(
            id=data.get("id"),
            result=data.get("result"),
            error=JSONRPCError(error["code"], error["message"], error.get("data")) if error else None,
        )

    def __str__(self) -> str:
        if self.error is not None:
            return f"Response(id={self.id}, error={self.error.code})"
        return f"Response(id={self.id}, success)"


JSONRPCMessage = Union[JSONRPCRequest, JSONRPCNotification, JSONRPCResponse]


def _is_id(value: Any) -> bool:
    # bool is an int subclass but never a valid id
    return isinstance(value, (str, int)) and not isinstance(value, bool)


def _check_error_member(error: Any) -> None:
    if (
        not isinstance(error, dict)
        or not isinstance(error.get("code"), int)
        or not isinstance(error.get("message"), str)
    ):
        raise ValueError("error must be an object with integer code and string message")


def parse_message(data: Any) -> JSONRPCMessage:
    """
    Validate a decoded JSON value and build the matching message type.

    A value with a method is a request (with id) or a notification
    (without); a value with an id and a result or error is a response.

    Raises:
        ValueError: If the value is not a well-formed JSON-RPC 2.0 message.
    """
    if not isinstance(data, dict):
        raise ValueError("Message must be a JSON object")
    if data.get("jsonrpc") != JSONRPC_VERSION:
        raise ValueError("Invalid JSON-RPC version")

    if "method" in data:
        if not isinstance(data["method"], str):
            raise ValueError("method must be a string")
        if data.get("params") is not None and not isinstance(data["params"], (dict, list)):
            raise ValueError("params must be an object or array")
        if "id" not in data:
            return JSONRPCNotification.from_dict(data)
        if not _is_id(data["id"]):
            raise ValueError("Request id must be a string or integer")
        return JSONRPCRequest.from_dict(data)

    has_result = "result" in data
    has_error = "error" in data
    if "id" not in data or not (has_result or has_error):
        raise ValueError("Cannot determine message type")
    if has_result and has_error:
        raise ValueError("Response cannot carry both result and error")
    if data["id"] is not None and not _is_id(data["id"]):
        raise ValueError("Response id must be a string, integer or null")
    if has_error:
        _check_error_member(data["error"])
    return JSONRPCResponse.from_dict(data)

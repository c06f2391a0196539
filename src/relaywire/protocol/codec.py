"""Wire codec for JSON-RPC envelopes."""

from __future__ import annotations

from typing import Any, Protocol

from relaywire.lib import oj
from relaywire.protocol.errors import DecodeError
from relaywire.protocol.messages import JSONRPCMessage, parse_message


class MessageCodec(Protocol):
    """What the transport needs from a codec."""

    content_type: str

    def encode(self, message: Any) -> str: ...

    def decode(self, text: str) -> Any: ...


class JSONRPCCodec:
    """
    Encode and decode JSON-RPC 2.0 messages as JSON text.

    encode() accepts either a message dataclass or a plain dict so a
    higher layer can forward envelopes it built itself.
    """

    content_type = "application/json"

    def encode(self, message: JSONRPCMessage | dict[str, Any]) -> str:
        if isinstance(message, dict):
            return oj.dumps_str(message)
        return oj.dumps_str(message.to_dict())

    def decode(self, text: str) -> JSONRPCMessage:
        """
        Parse and validate one inbound envelope.

        Raises:
            DecodeError: If the text is not JSON or not a JSON-RPC message.
        """
        try:
            data = oj.loads(text)
        except oj.JSONDecodeError as e:
            raise DecodeError.parse_error(str(e)) from e

        try:
            return parse_message(data)
        except (KeyError, ValueError) as e:
            raise DecodeError.invalid_request(str(e)) from e

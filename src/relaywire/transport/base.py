"""Abstract base transport."""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable

from relaywire.protocol.messages import JSONRPCMessage
from relaywire.transport.types import TransportConfig, TransportEvent, TransportEventType

logger = logging.getLogger(__name__)

MessageCallback = Callable[[JSONRPCMessage], None]
ErrorCallback = Callable[[Exception], None]
CloseCallback = Callable[[], None]


class Transport(ABC):
    """
    Abstract base class for message transports.

    A transport delivers validated messages from the server through the
    on_message slot, reports failures through on_error and announces its
    end through on_close. Each slot holds at most one callback and can be
    replaced or cleared (set to None) at any time.
    """

    def __init__(self, config: TransportConfig):
        self.config = config
        self.on_message: MessageCallback | None = None
        self.on_error: ErrorCallback | None = None
        self.on_close: CloseCallback | None = None
        self._event_handlers: list[Callable[[TransportEvent], None]] = []

    def on_event(self, handler: Callable[[TransportEvent], None]) -> None:
        """
        Register an event handler for transport events.

        Args:
            handler: Callback invoked when transport events occur.
        """
        self._event_handlers.append(handler)

    def _emit_event(
        self,
        type: TransportEventType,
        data: dict[str, Any] | None = None,
        error: Exception | None = None,
    ) -> None:
        """Emit an event to all registered handlers."""
        event = TransportEvent(type=type, timestamp=time.time(), data=data, error=error)
        for handler in self._event_handlers:
            try:
                handler(event)
            except Exception:
                logger.exception(f"Transport event handler failed for {event.type.name}")

    def _deliver_message(self, message: JSONRPCMessage) -> None:
        callback = self.on_message
        if callback is None:
            return
        try:
            callback(message)
        except Exception:
            logger.exception(f"on_message callback failed for {message}")

    def _report_error(self, error: Exception) -> None:
        self._emit_event(TransportEventType.ERROR, error=error)
        callback = self.on_error
        if callback is None:
            logger.debug(f"Unhandled transport error: {error}")
            return
        try:
            callback(error)
        except Exception:
            logger.exception("on_error callback failed")

    def _notify_close(self) -> None:
        self._emit_event(TransportEventType.CLOSED)
        callback = self.on_close
        if callback is None:
            return
        try:
            callback()
        except Exception:
            logger.exception("on_close callback failed")

    @abstractmethod
    async def start(self) -> None:
        """
        Open the connection and wait until messages can be sent.

        Raises:
            TransportError: If the connection cannot be established.
        """
        pass

    @abstractmethod
    async def send(self, message: JSONRPCMessage) -> None:
        """
        Deliver one message to the server.

        Raises:
            TransportError: If delivery fails.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """
        Close the connection and release all resources.

        This method should be safe to call multiple times.
        """
        pass

    @abstractmethod
    def is_connected(self) -> bool:
        """
        Check if transport is currently connected.

        Returns:
            True if connected and ready for communication.
        """
        pass

    async def __aenter__(self) -> "Transport":
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

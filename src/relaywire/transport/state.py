"""Connection state machine for the SSE client transport."""

from __future__ import annotations

import logging
from enum import Enum, auto
from typing import Callable

logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """
    Connection lifecycle states.

    State transitions:
        IDLE -> CONNECTING <-> OPEN -> CLOSED
                  ^    \\       |
                  |     v       v
               AUTH_CHALLENGE <-

    FAILED is terminal and reachable from CONNECTING, AUTH_CHALLENGE and
    OPEN when the stream cannot be (re)established.
    """

    IDLE = auto()
    CONNECTING = auto()
    AUTH_CHALLENGE = auto()
    OPEN = auto()
    CLOSED = auto()
    FAILED = auto()

    def __str__(self) -> str:
        return self.name


class InvalidStateTransition(Exception):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_state: ConnectionState, to_state: ConnectionState):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Invalid state transition: {from_state.name} -> {to_state.name}"
        )


# Type for state transition callbacks
StateTransitionCallback = Callable[[ConnectionState, ConnectionState], None]


class ConnectionStateMachine:
    """
    Tracks the transport's connection state.

    Enforces valid state transitions and notifies listeners
    when transitions occur.
    """

    VALID_TRANSITIONS: dict[ConnectionState, list[ConnectionState]] = {
        ConnectionState.IDLE: [ConnectionState.CONNECTING],
        ConnectionState.CONNECTING: [
            ConnectionState.OPEN,
            ConnectionState.AUTH_CHALLENGE,
            ConnectionState.FAILED,
            ConnectionState.CLOSED,
        ],
        ConnectionState.AUTH_CHALLENGE: [
            ConnectionState.CONNECTING,
            ConnectionState.FAILED,
            ConnectionState.CLOSED,
        ],
        ConnectionState.OPEN: [
            ConnectionState.CONNECTING,  # Stream dropped, reconnecting
            ConnectionState.AUTH_CHALLENGE,  # Token rejected mid-stream
            ConnectionState.FAILED,
            ConnectionState.CLOSED,
        ],
        ConnectionState.CLOSED: [],  # Terminal state
        ConnectionState.FAILED: [],  # Terminal state
    }

    def __init__(self, initial_state: ConnectionState = ConnectionState.IDLE):
        self._state = initial_state
        self._listeners: list[StateTransitionCallback] = []

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state

    @property
    def is_open(self) -> bool:
        """Check if the stream is open and an endpoint is known."""
        return self._state == ConnectionState.OPEN

    @property
    def is_terminal(self) -> bool:
        """Check if the transport can no longer be used."""
        return self._state in (ConnectionState.CLOSED, ConnectionState.FAILED)

    def can_transition_to(self, new_state: ConnectionState) -> bool:
        """Check if transition to new_state is valid."""
        return new_state in self.VALID_TRANSITIONS.get(self._state, [])

    def transition(self, new_state: ConnectionState) -> None:
        """
        Transition to a new state.

        Args:
            new_state: The target state.

        Raises:
            InvalidStateTransition: If the transition is not valid.
        """
        if not self.can_transition_to(new_state):
            raise InvalidStateTransition(self._state, new_state)

        old_state = self._state
        self._state = new_state
        logger.debug(f"Connection state {old_state} -> {new_state}")

        for listener in self._listeners:
            try:
                listener(old_state, new_state)
            except Exception:
                logger.exception("State transition listener failed")

    def on_transition(self, callback: StateTransitionCallback) -> None:
        """
        Register a callback for state transitions.

        Args:
            callback: Function called with (old_state, new_state) on transitions.
        """
        self._listeners.append(callback)

    def __str__(self) -> str:
        return f"ConnectionStateMachine({self._state.name})"

    def __repr__(self) -> str:
        return f"ConnectionStateMachine(state={self._state!r})"

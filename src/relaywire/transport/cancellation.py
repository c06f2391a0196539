"""Cancellation scope shared by the sends of one connection generation."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, TypeVar

from relaywire.transport.errors import SendCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationScope:
    """
    Groups the in-flight requests of one connection generation.

    Work started through run() is tracked as a task; cancel() cancels all
    of it at once and makes later run() calls fail immediately.
    """

    def __init__(self, generation: int):
        self.generation = generation
        self._tasks: set[asyncio.Task] = set()
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        """True once cancel() has been called."""
        return self._cancelled

    @property
    def pending(self) -> int:
        """Number of tracked requests still in flight."""
        return len(self._tasks)

    async def run(self, awaitable: Awaitable[T]) -> T:
        """
        Await work inside this scope.

        Raises:
            SendCancelledError: If the scope is or becomes cancelled.
        """
        if self._cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise SendCancelledError(
                f"Connection generation {self.generation} is closed"
            )

        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)
        try:
            return await task
        except asyncio.CancelledError:
            if self._cancelled and task.cancelled():
                raise SendCancelledError(
                    f"Request cancelled: connection generation {self.generation} closed"
                ) from None
            raise
        finally:
            self._tasks.discard(task)

    def cancel(self) -> None:
        """Cancel every tracked request. Safe to call more than once."""
        if self._cancelled:
            return
        self._cancelled = True
        if self._tasks:
            logger.debug(
                f"Cancelling {len(self._tasks)} request(s) of generation {self.generation}"
            )
        for task in list(self._tasks):
            if not task.done():
                task.cancel()

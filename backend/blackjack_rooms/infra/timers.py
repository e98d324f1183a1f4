import asyncio
import logging
from typing import Awaitable, Callable, Optional, Set

logger = logging.getLogger(__name__)


class TimerGroup:
    """Owns the callbacks fired by its timers so they can be awaited on shutdown."""

    def __init__(self) -> None:
        # Fired callbacks run as tasks; keep references so they are not collected mid-flight.
        self._inflight: Set["asyncio.Task[None]"] = set()

    def __len__(self) -> int:
        return len(self._inflight)

    def start(
        self,
        delay: float,
        callback: Callable[["RoomTimer"], Awaitable[None]],
        label: str = "",
    ) -> "RoomTimer":
        return RoomTimer(delay, callback, self, label=label)

    def _track(self, task: "asyncio.Task[None]") -> None:
        self._inflight.add(task)

    def _untrack(self, task: "asyncio.Task[None]") -> None:
        self._inflight.discard(task)

    async def drain(self) -> None:
        """Wait for every fired callback to finish."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)


class RoomTimer:
    """Cancelable deferred callback.

    Once ``cancel()`` has been called the callback never starts. A callback that
    already fired and is waiting on the room lock sees ``cancelled`` and must bail.
    """

    def __init__(
        self,
        delay: float,
        callback: Callable[["RoomTimer"], Awaitable[None]],
        group: TimerGroup,
        label: str = "",
    ) -> None:
        self.label = label
        self.cancelled = False
        self._callback = callback
        self._group = group
        loop = asyncio.get_running_loop()
        self._handle: Optional[asyncio.TimerHandle] = loop.call_later(
            max(delay, 0.0), self._fire
        )

    def _fire(self) -> None:
        self._handle = None
        if self.cancelled:
            return
        task = asyncio.ensure_future(self._callback(self))
        self._group._track(task)
        task.add_done_callback(self._finished)

    def _finished(self, task: "asyncio.Task[None]") -> None:
        self._group._untrack(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Timer callback %s failed", self.label, exc_info=exc)

    def cancel(self) -> None:
        self.cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

"""Periodic background task with an explicit stopped/running state."""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable
from enum import StrEnum

from winboat.core.utils import logger


class PollerState(StrEnum):
    STOPPED = "stopped"
    RUNNING = "running"


class Poller:
    """Run ``tick`` every ``interval`` seconds until stopped.

    Ticks never overlap: the next one is scheduled only after the previous one
    returns. An exception raised by a tick is logged and the loop continues.

    Args:
        name: Name used in log messages.
        tick: Coroutine function called on every iteration.
        interval: Seconds between the end of one tick and the start of the next.
    """

    def __init__(self, name: str, tick: Callable[[], Awaitable[None]], interval: float) -> None:
        self.name = name
        self.tick = tick
        self.interval = interval
        self._task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()

    @property
    def state(self) -> PollerState:
        if self._task is None or self._task.done():
            return PollerState.STOPPED
        return PollerState.RUNNING

    @property
    def running(self) -> bool:
        return self.state == PollerState.RUNNING

    def start(self) -> None:
        """Start the loop; a no-op when already running."""
        if self.running:
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run(), name=f"poller-{self.name}")
        logger.debug(f"Poller '{self.name}' started")

    async def stop(self) -> None:
        """Stop the loop, cancelling an in-flight tick."""
        task = self._task
        if task is None:
            return
        self._stop_event.set()
        self._task = None
        if task is asyncio.current_task():
            # Stopping from inside a tick: the loop exits once the tick returns
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.debug(f"Poller '{self.name}' stopped")

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                await self.tick()
            except Exception:
                logger.exception(f"Poller '{self.name}' tick failed")
            if self._stop_event.is_set():
                break
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)


__all__ = [
    "Poller",
    "PollerState",
]

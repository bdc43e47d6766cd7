"""
Periodic Tasks

Each live component owns its own PeriodicTask with its own cancellation.
There is no shared scheduler.
"""

from __future__ import annotations
import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Optional, Union


logger = logging.getLogger(__name__)

TickCallback = Callable[[], Union[None, Awaitable[None]]]


class PeriodicTask:
    """
    Runs callback every `interval` seconds on the running event loop.

    A tick that raises is logged and the loop keeps going; one bad poll
    must not stop the next. cancel() and stop() are idempotent.
    """

    def __init__(self, name: str, interval: float, callback: TickCallback, run_immediately: bool = True):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.name = name
        self.interval = interval
        self._callback = callback
        self._run_immediately = run_immediately
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(), name=self.name)
        logger.info("Started periodic task %s (every %.1fs)", self.name, self.interval)

    def cancel(self) -> None:
        if self._task is None:
            return
        if not self._task.done():
            self._task.cancel()
            logger.info("Cancelled periodic task %s", self.name)

    async def stop(self) -> None:
        """Cancel and wait for the task to finish."""
        task = self._task
        self.cancel()
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _run(self) -> None:
        if not self._run_immediately:
            await asyncio.sleep(self.interval)
        while True:
            await self._tick()
            await asyncio.sleep(self.interval)

    async def _tick(self) -> None:
        try:
            result = self._callback()
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Periodic task %s tick failed", self.name)

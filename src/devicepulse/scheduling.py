"""Cancellable periodic timers on the running asyncio loop."""

from __future__ import annotations

import asyncio
import logging as py_logging
from collections.abc import Awaitable, Callable

logger = py_logging.getLogger(__name__)


class PeriodicTask:
    """Run ``callback`` every ``interval`` seconds until cancelled.

    ``start`` is a no-op while the timer is live and ``cancel`` is idempotent,
    including when called from inside ``callback``. Once cancelled, the
    callback is never invoked again.
    """

    def __init__(
        self,
        name: str,
        interval: float,
        callback: Callable[[], Awaitable[None]],
        *,
        run_immediately: bool = False,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"Timer interval must be positive: {interval}")
        self.name = name
        self.interval = interval
        self._callback = callback
        self._run_immediately = run_immediately
        self._task: asyncio.Task[None] | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> bool:
        if self._running:
            logger.debug("timer already running name=%s", self.name)
            return False
        loop = asyncio.get_running_loop()
        self._running = True
        self._task = loop.create_task(self._loop(), name=self.name)
        self._task.add_done_callback(self._on_done)
        logger.debug("timer started name=%s interval=%.3f", self.name, self.interval)
        return True

    def cancel(self) -> bool:
        if not self._running:
            return False
        self._running = False
        task = self._task
        if task is not None and task is not asyncio.current_task():
            task.cancel()
        logger.debug("timer cancelled name=%s", self.name)
        return True

    async def wait_closed(self) -> None:
        task = self._task
        if task is None or task is asyncio.current_task():
            return
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _loop(self) -> None:
        if not self._run_immediately:
            await asyncio.sleep(self.interval)
        while self._running:
            try:
                await self._callback()
            except Exception:
                logger.exception("timer callback failed name=%s", self.name)
            if not self._running:
                break
            await asyncio.sleep(self.interval)

    def _on_done(self, task: asyncio.Task[None]) -> None:
        if self._task is task:
            self._task = None
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("timer loop died name=%s error=%r", self.name, exc)

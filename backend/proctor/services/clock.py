"""Countdown tickers.

A ticker calls an async callback once per interval until cancelled. The
session controller uses the callback both to count down and to fire the
timeout, so cancelling on every terminal transition is mandatory.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Protocol

from proctor.core.config import settings

logger = logging.getLogger(__name__)

TickCallback = Callable[[], Awaitable[None]]


class Ticker(Protocol):
    """Repeating tick source."""

    @property
    def running(self) -> bool: ...

    def start(self, callback: TickCallback) -> None: ...

    def cancel(self) -> None: ...


class AsyncioTicker:
    """Real-time ticker on the running event loop."""

    def __init__(self, interval: float | None = None):
        self.interval = interval or settings.TICK_INTERVAL_SECONDS
        self._task: asyncio.Task | None = None
        self._stopped = True

    @property
    def running(self) -> bool:
        return not self._stopped

    def start(self, callback: TickCallback) -> None:
        if self._task is not None and not self._task.done():
            raise RuntimeError("Ticker already started")
        self._stopped = False
        self._task = asyncio.get_running_loop().create_task(self._run(callback))

    async def _run(self, callback: TickCallback) -> None:
        # Fixed rate: tick N is due at start + N * interval, however long the
        # callbacks take. Overdue ticks fire back to back.
        loop = asyncio.get_running_loop()
        next_at = loop.time() + self.interval
        while not self._stopped:
            await asyncio.sleep(max(0.0, next_at - loop.time()))
            if self._stopped:
                break
            next_at += self.interval
            try:
                await callback()
            except Exception:
                logger.exception("Countdown tick failed")

    def cancel(self) -> None:
        self._stopped = True
        task, self._task = self._task, None
        # A tick that fires the timeout cancels its own ticker; let that
        # callback finish instead of interrupting its persistence write.
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

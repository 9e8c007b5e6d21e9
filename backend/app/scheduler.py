"""
Interval-driven background tasks on the asyncio event loop.

Each ``RecurringTask`` waits one interval, runs its action, and repeats
until stopped, the same cadence as a JavaScript ``setInterval``. A failing
action is logged and the loop carries on. The ``sleep`` hook lets tests
drive the loop with a fake clock, and ``run_once`` triggers one run by hand.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)

Action = Callable[[], Any] | Callable[[], Awaitable[Any]]


class RecurringTask:
    def __init__(
        self,
        name: str,
        interval_seconds: float,
        action: Action,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.name = name
        self.interval_seconds = interval_seconds
        self._action = action
        self._sleep = sleep
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name=self.name)
        logger.info("%s scheduled every %.1fs", self.name, self.interval_seconds)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        logger.info("%s stopped", self.name)

    async def run_once(self) -> Any:
        try:
            if inspect.iscoroutinefunction(self._action):
                return await self._action()
            # blocking upstream calls must not stall the event loop
            return await asyncio.to_thread(self._action)
        except asyncio.CancelledError:
            raise
        except Exception:  # noqa: BLE001
            logger.exception("%s failed", self.name)
            return None

    async def _loop(self) -> None:
        while True:
            await self._sleep(self.interval_seconds)
            await self.run_once()

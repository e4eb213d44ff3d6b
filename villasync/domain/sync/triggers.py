"""
Interval triggers for scheduler jobs.

The scheduler only asks a trigger to call a coroutine every N seconds, so the
in-process asyncio loop can be swapped for a manual trigger in tests or for
arq cron entries in a dedicated worker.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)

JobCallback = Callable[[], Awaitable[Any]]


class TriggerHandle(ABC):
    @abstractmethod
    def cancel(self) -> None:
        pass


class IntervalTrigger(ABC):
    @abstractmethod
    def schedule(self, name: str, interval_seconds: float, callback: JobCallback) -> TriggerHandle:
        """Arrange for callback to run every interval_seconds"""


class _TaskHandle(TriggerHandle):
    def __init__(self, task: asyncio.Task):
        self.task = task

    def cancel(self) -> None:
        if not self.task.done():
            self.task.cancel()


class AsyncioIntervalTrigger(IntervalTrigger):
    """Runs each job in its own asyncio task on the current event loop"""

    def __init__(
        self,
        run_immediately: bool = False,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.run_immediately = run_immediately
        self.sleep = sleep

    def schedule(self, name: str, interval_seconds: float, callback: JobCallback) -> TriggerHandle:
        task = asyncio.get_running_loop().create_task(
            self._loop(name, interval_seconds, callback), name=f"scheduler:{name}"
        )
        return _TaskHandle(task)

    async def _loop(self, name: str, interval_seconds: float, callback: JobCallback) -> None:
        if not self.run_immediately:
            await self.sleep(interval_seconds)
        while True:
            try:
                await callback()
            except Exception as e:
                logger.error(f"❌ Scheduled job '{name}' failed: {e}")
            await self.sleep(interval_seconds)

"""
Periodic background jobs owned by a service instance.

Nothing starts at import time: the owner calls start()/stop(), and tests call
run_once() to drive a tick deterministically.
"""
import asyncio
from typing import Any, Awaitable, Callable, Optional

from src.shared.utils import get_logger

logger = get_logger(__name__)


class PeriodicTask:
    """Run a coroutine function every `interval_seconds` until stopped"""

    def __init__(
        self,
        name: str,
        job_func: Callable[[], Awaitable[Any]],
        interval_seconds: float,
        initial_delay_seconds: float = 0,
    ):
        self.name = name
        self._job_func = job_func
        self._interval_seconds = interval_seconds
        self._initial_delay_seconds = initial_delay_seconds
        self._task: Optional[asyncio.Task] = None
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        if self._running:
            logger.info(f"Job {self.name} already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info(f"Job {self.name} scheduled every {self._interval_seconds}s")

    async def stop(self) -> None:
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info(f"Job {self.name} stopped")

    async def run_once(self) -> Any:
        """Run a single tick; failures are logged and swallowed like scheduled ticks."""
        try:
            return await self._job_func()
        except Exception as e:
            logger.error(f"Job {self.name} failed: {e}", exc_info=True)
            return None

    async def _run_loop(self) -> None:
        if self._initial_delay_seconds:
            await asyncio.sleep(self._initial_delay_seconds)

        while self._running:
            await self.run_once()
            await asyncio.sleep(self._interval_seconds)

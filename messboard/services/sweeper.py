# FILE: messboard/services/sweeper.py
"""
Background expiry sweep
"""
import asyncio
import logging
from typing import Optional

from messboard.services.lifecycle import LifecycleEngine

logger = logging.getLogger(__name__)


class Sweeper:
    """Runs LifecycleEngine.sweep on a fixed interval"""

    def __init__(self, engine: LifecycleEngine, interval_seconds: float, run_on_start: bool = True):
        self.engine = engine
        self.interval_seconds = interval_seconds
        self.run_on_start = run_on_start
        self.runs = 0
        self.failures = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> Optional[int]:
        """One sweep; failures are logged and reported as None"""
        self.runs += 1
        try:
            deleted = await self.engine.sweep()
        except Exception as e:
            self.failures += 1
            logger.error(f"Error in background sweep: {e}", exc_info=True)
            return None
        if deleted:
            logger.info(f"Background sweep cleaned up {deleted} expired record(s)")
        return deleted

    async def _loop(self) -> None:
        if not self.run_on_start:
            await asyncio.sleep(self.interval_seconds)
        while True:
            await self.run_once()
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> asyncio.Task:
        """Schedule the loop on the running event loop"""
        if self.running:
            return self._task
        logger.info(f"Starting background sweep every {self.interval_seconds}s")
        self._task = asyncio.create_task(self._loop())
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)
        self._task = None
        logger.info("Background sweep stopped")

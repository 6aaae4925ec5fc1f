"""
Keep-alive scheduler.

Sends a cheap authenticated HEAD request on its own timer so the portal
session does not idle out between ticks. Best effort: failures are logged
and dropped, never raised.
"""

import asyncio
import logging
import math
from typing import Optional

from browser.page_engine import PageEngine

logger = logging.getLogger(__name__)

MIN_INTERVAL_MINUTES = 2
DEFAULT_INTERVAL_MINUTES = 4
SECONDS_PER_MINUTE = 60


def interval_seconds(interval_minutes) -> float:
    """max(2, interval) minutes in seconds; unusable values fall back to the default."""
    try:
        minutes = float(interval_minutes)
    except (TypeError, ValueError):
        minutes = DEFAULT_INTERVAL_MINUTES
    if not math.isfinite(minutes) or minutes <= 0:
        minutes = DEFAULT_INTERVAL_MINUTES
    return max(MIN_INTERVAL_MINUTES, minutes) * SECONDS_PER_MINUTE


class KeepAliveScheduler:
    """Periodic HEAD probe against a low-cost authenticated page."""

    def __init__(self, page: PageEngine, url: str, lock: Optional[asyncio.Lock] = None):
        self.page = page
        self.url = url
        self.lock = lock or asyncio.Lock()
        self.pings = 0
        self.failures = 0
        self._task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, interval_minutes=DEFAULT_INTERVAL_MINUTES):
        if self.running:
            self._task.cancel()
        self._stop_event = asyncio.Event()
        every = interval_seconds(interval_minutes)
        self._task = asyncio.create_task(self._run(every), name="keep-alive")
        logger.info(f"Keep-alive every {every / SECONDS_PER_MINUTE:g} min")

    async def stop(self):
        self._stop_event.set()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _run(self, every: float):
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=every)
                break
            except asyncio.TimeoutError:
                pass
            await self.ping()

    async def ping(self) -> bool:
        """One keep-alive probe. Returns whether the portal answered."""
        try:
            async with self.lock:
                response = await self.page.request("HEAD", self.url)
            self.pings += 1
            logger.debug(f"Keep-alive {response.status}")
            return True
        except Exception as e:
            self.failures += 1
            logger.debug(f"Keep-alive failed: {e}")
            return False

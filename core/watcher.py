"""
Watcher Loop

Drives the ticks:
- Keeps the page positioned on the listing (retries quietly when it can't)
- Fetches a snapshot and runs one accept pass
- Re-authenticates on login bounces and after unexpected failures
- Folds every tick into the stats and sleeps poll interval + jitter

No iteration failure is fatal. stop() lets the running iteration finish.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Optional

from api.logging_config import log_tick
from core.accept_engine import AcceptEngine
from core.error_handler import FetchError, RecoveryAction, get_error_category, recovery_action
from core.listing import ListingFetcher
from core.models import SeenKeySet, TickResult
from core.session_manager import SessionManager
from monitoring.metrics import StatsAggregator, Timer

logger = logging.getLogger(__name__)

JITTER_MAX_MS = 150


@dataclass
class WatcherConfig:
    poll_ms: int = 1000
    max_per_tick: int = 3


@dataclass
class WatcherLoop:
    session: SessionManager
    fetcher: ListingFetcher
    engine: AcceptEngine
    stats: StatsAggregator = field(default_factory=StatsAggregator)
    config: WatcherConfig = field(default_factory=WatcherConfig)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    seen: SeenKeySet = field(default_factory=SeenKeySet)
    _task: Optional[asyncio.Task] = None
    _running: bool = False
    _stop_event: asyncio.Event = field(default_factory=asyncio.Event)

    @property
    def running(self) -> bool:
        return self._running

    def start(self):
        if self._task and not self._task.done():
            return
        self._running = True
        self._stop_event.clear()
        self._task = asyncio.create_task(self.run_loop(), name="watcher")
        logger.info(f"Watcher started @ {self.config.poll_ms}ms, maxPerTick={self.config.max_per_tick}")

    async def stop(self):
        """Clear the running flag and wait for the current iteration to finish."""
        self._running = False
        self._stop_event.set()
        if self._task:
            await self._task
            self._task = None
        logger.info("Watcher stopped")

    async def run_loop(self):
        while self._running:
            await self.run_iteration()
            await self._sleep(self.next_delay_seconds())

    def next_delay_seconds(self) -> float:
        jitter = random.randint(0, JITTER_MAX_MS - 1)
        return (self.config.poll_ms + jitter) / 1000

    async def _sleep(self, seconds: float):
        """Inter-tick pause; returns early when stop() is called."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def run_iteration(self) -> Optional[TickResult]:
        """
        One watcher iteration.

        Returns:
            The tick result, or None when the listing was not ready or the
            iteration failed
        """
        timer = Timer(self.stats.tick_duration)
        async with self.lock:
            with timer:
                try:
                    if not await self.fetcher.ensure_listing_page():
                        logger.debug("Listing not ready, retrying next tick")
                        return None

                    result = await self._tick()
                    log_tick(result)

                    if result.need_login:
                        self.session.invalidate("listing bounced to login")
                        await self.session.ensure_authenticated()
                    else:
                        self.stats.record_tick(result)
                    return result

                except Exception as e:
                    logger.error(f"Watcher iteration failed ({get_error_category(e).value}): {e}")
                    self.stats.record_error(e)
                    await self._recover(e)
                    return None

                finally:
                    self.stats.touch()

    async def _tick(self) -> TickResult:
        try:
            snapshot = await self.fetcher.fetch_snapshot()
        except FetchError as e:
            self.stats.record_error(e)
            return TickResult.failed()
        return await self.engine.run_tick(snapshot, self.seen, self.config.max_per_tick)

    async def _recover(self, error: Exception):
        action = recovery_action(error, startup=False)
        if action is not RecoveryAction.REAUTHENTICATE:
            logger.info(f"Recovery: {action.value}")
            return
        try:
            await self.session.ensure_authenticated()
        except Exception as e:
            logger.error(f"Re-authentication failed: {e}")
            self.stats.record_error(e)

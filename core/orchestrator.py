"""
Watcher Orchestrator - ties the session, listing, accept, keep-alive and
watcher components together behind one explicit lifecycle.

Usage:
    bot = WatcherBot(config)
    await bot.initialize()   # launch browser, log in, open the listing
    bot.start()              # run the watcher loop
    await bot.stop()         # graceful drain
    await bot.dispose()      # close everything
"""

import asyncio
import logging
from typing import Optional

from api.config import AppConfig
from browser.page_engine import PageEngine, PlaywrightPageEngine
from browser.storage import SessionStore
from core.accept_engine import AcceptEngine
from core.error_handler import MissingCredentials, NavigationError
from core.keep_alive import KeepAliveScheduler
from core.listing import ACCOUNT_PATH, ListingFetcher
from core.session_manager import SessionManager
from core.watcher import WatcherConfig, WatcherLoop
from monitoring.metrics import StatsAggregator

logger = logging.getLogger(__name__)


class WatcherBot:
    """
    The watcher process as one record.

    Configuration, page engine and session store are injected; nothing is
    held in module-level state. All page access from the watcher and the
    keep-alive goes through one shared lock.
    """

    def __init__(
        self,
        config: AppConfig,
        engine: Optional[PageEngine] = None,
        store: Optional[SessionStore] = None,
        stats: Optional[StatsAggregator] = None,
    ):
        self.config = config
        self.engine = engine or PlaywrightPageEngine(
            headless=config.headless,
            default_timeout_ms=config.page_timeout_ms,
        )
        self.store = store or SessionStore(config.storage_state_path)
        self.stats = stats or StatsAggregator()
        self.lock = asyncio.Lock()

        self.session = SessionManager(self.engine, config.base_url, config.credentials, self.store)
        self.fetcher = ListingFetcher(self.engine, config.base_url, self.session)
        self.accept_engine = AcceptEngine(self.engine)
        self.keep_alive = KeepAliveScheduler(self.engine, config.base_url + ACCOUNT_PATH, lock=self.lock)
        self.watcher = WatcherLoop(
            session=self.session,
            fetcher=self.fetcher,
            engine=self.accept_engine,
            stats=self.stats,
            config=WatcherConfig(poll_ms=config.poll_ms, max_per_tick=config.max_per_tick),
            lock=self.lock,
        )

        self.ready = False
        self._launched = False

    @property
    def is_logged_in(self) -> bool:
        return self.session.is_logged_in

    async def initialize(self):
        """
        Launch the browser, authenticate and open the listing.

        Raises:
            MissingCredentials: username or password not configured
            LoginFailed: the initial login did not succeed
            NavigationError: the listing could not be opened
        """
        if self.config.credentials is None:
            raise MissingCredentials()

        async with self.lock:
            await self.engine.launch(storage_state=self.store.load_path())
            self._launched = True

            await self.engine.navigate(self.config.base_url + "/")
            await self.engine.dismiss_overlays()
            await self.session.ensure_authenticated()

            if not await self.fetcher.open_listing_page():
                raise NavigationError("Could not open listing")

        self.ready = True
        self.keep_alive.start(self.config.keep_alive_min)
        logger.info("Watcher bot ready")

    def start(self):
        self.watcher.start()

    async def stop(self):
        await self.watcher.stop()

    async def dispose(self):
        """Stop everything and close the browser. Never raises."""
        try:
            await self.watcher.stop()
        except Exception as e:
            logger.warning(f"Error stopping watcher: {e}")
        await self.keep_alive.stop()
        if self._launched:
            try:
                await self.engine.close()
            except Exception as e:
                logger.warning(f"Error closing browser: {e}")
            self._launched = False
        self.ready = False
        self.session.mark_logged_out()

    def health(self) -> dict:
        """Payload of GET /health."""
        return {
            "ready": self.ready,
            "isLoggedIn": self.is_logged_in,
            "lastTick": self.stats.last_tick,
            "acceptedTotal": self.stats.accepted.value,
            "triedTotal": self.stats.tried.value,
            "errorsTotal": self.stats.errors.value,
            "lastAcceptKey": self.stats.last_accept_key,
            "storageStateExists": self.store.exists(),
        }

"""
Page Automation Engine

The watcher only talks to the portal through the PageEngine interface:
navigation, element queries, form filling, script evaluation and
cookie-carrying HTTP requests. PlaywrightPageEngine is the production
implementation (local headless Chromium).

Features:
- Storage-state reuse so a saved session survives restarts
- Images, fonts and media are blocked to keep polling cheap
- Cookie banners and consent overlays are dismissed on demand
- HTTP requests share the browser context's cookie jar
"""

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, Pattern, Sequence, Tuple, Union
from urllib.parse import urlencode

from playwright.async_api import (
    async_playwright,
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    FormData,
    Page,
    Playwright,
    Route,
    TimeoutError as PlaywrightTimeoutError,
)

from core.error_handler import NavigationError, NetworkFailure

logger = logging.getLogger(__name__)


CHROMIUM_ARGS = [
    "--headless=new",
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--no-first-run",
    "--disable-gpu",
    "--use-gl=disabled",
    "--no-zygote",
]

VIEWPORT = {"width": 1280, "height": 800}

BLOCKED_RESOURCE_TYPES = {"image", "font", "media"}

# Consent buttons on the portal (German labels), clicked in this order
OVERLAY_BUTTONS = [
    'cms-accept-tags button:has-text("Akzeptieren")',
    'cms-accept-tags button:has-text("Verstanden")',
    'cms-accept-tags button:has-text("Zustimmen")',
    'cms-accept-tags button:has-text("OK")',
    '.cookiebar button:has-text("OK")',
    '#cookiebar button:has-text("OK")',
    'button:has-text("Alle akzeptieren")',
    'button[aria-label="Akzeptieren"]',
]

REMOVE_OVERLAYS_JS = """
() => {
  const kill = (q) => document.querySelector(q)?.remove();
  kill("cms-accept-tags");
  document.querySelectorAll(".mod_cms_accept_tags").forEach((n) => n.remove());
  const cb = document.querySelector("#cookiebar, .cookiebar, #cookie-bar, .cookie-bar");
  if (cb) cb.remove();
  document.body.classList.remove("cookie-bar-visible");
}
"""


FormFields = Sequence[Tuple[str, str]]


@dataclass
class PageState:
    """Where the page ended up after a navigation."""
    url: str
    status: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.status is None or 200 <= self.status < 400


@dataclass
class HttpResponse:
    """Response of a cookie-carrying request issued through the engine."""
    status: int
    url: str
    body: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class PageEngine(ABC):
    """
    Abstract page automation engine.
    The session, listing, accept and keep-alive modules only use this interface.
    """

    @abstractmethod
    async def launch(self, storage_state: Optional[str] = None) -> None:
        """Start the browser, reusing a saved storage state when given."""

    @abstractmethod
    async def close(self) -> None:
        pass

    @abstractmethod
    async def navigate(self, url: str, wait_until: str = "networkidle") -> PageState:
        """Navigate the page. Raises NavigationError on failure."""

    @abstractmethod
    async def reload(self) -> None:
        pass

    @abstractmethod
    def current_url(self) -> str:
        pass

    @abstractmethod
    async def evaluate(self, script: str, arg: Any = None) -> Any:
        """Evaluate a script in the page context and return its JSON result."""

    @abstractmethod
    async def is_visible(self, selector: str) -> bool:
        pass

    @abstractmethod
    async def count(self, selector: str) -> int:
        pass

    @abstractmethod
    async def click(self, selector: str, timeout_ms: int = 800) -> bool:
        pass

    @abstractmethod
    async def fill(self, selector: str, value: str) -> None:
        pass

    @abstractmethod
    async def wait_for_url(self, pattern: Union[str, Pattern[str]], timeout_ms: int) -> bool:
        pass

    @abstractmethod
    async def wait_for_load(self, timeout_ms: int) -> bool:
        pass

    @abstractmethod
    async def wait_for_selector(self, selector: str, timeout_ms: int) -> bool:
        pass

    @abstractmethod
    async def request(
        self,
        method: str,
        url: str,
        form: Optional[FormFields] = None,
        params: Optional[FormFields] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> HttpResponse:
        """
        Issue an HTTP request with the session cookies.

        form and params are ordered name/value pairs; repeated names are all sent.
        Raises NetworkFailure.
        """

    @abstractmethod
    async def save_storage_state(self, path: str) -> None:
        pass

    @abstractmethod
    async def dismiss_overlays(self) -> None:
        """Best-effort removal of cookie bars and consent dialogs."""


class PlaywrightPageEngine(PageEngine):
    """
    Local Playwright Chromium implementation of the PageEngine.

    Example:
        engine = PlaywrightPageEngine(headless=True)
        await engine.launch(storage_state="auth.json")
        state = await engine.navigate("https://example.com/")
        await engine.close()
    """

    def __init__(self, headless: bool = True, default_timeout_ms: int = 25000):
        self.headless = headless
        self.default_timeout_ms = default_timeout_ms
        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None

    async def launch(self, storage_state: Optional[str] = None) -> None:
        if not self.playwright:
            self.playwright = await async_playwright().start()

        logger.info("Launching Chromium...")
        self.browser = await self.playwright.chromium.launch(
            headless=self.headless,
            args=CHROMIUM_ARGS if self.headless else [a for a in CHROMIUM_ARGS if not a.startswith("--headless")],
        )

        context_options: Dict[str, Any] = {"viewport": VIEWPORT}
        if storage_state:
            context_options["storage_state"] = storage_state
            logger.info(f"Reusing stored session from {storage_state}")
        self.context = await self.browser.new_context(**context_options)

        self.page = await self.context.new_page()
        self.page.set_default_timeout(self.default_timeout_ms)
        await self.page.route("**/*", self._block_non_essential)

    async def _block_non_essential(self, route: Route) -> None:
        if route.request.resource_type in BLOCKED_RESOURCE_TYPES:
            await route.abort()
        else:
            await route.continue_()

    async def close(self) -> None:
        for resource in (self.page, self.context, self.browser):
            if resource is None:
                continue
            try:
                await resource.close()
            except PlaywrightError as e:
                logger.debug(f"Error closing {type(resource).__name__}: {e}")
        if self.playwright:
            await self.playwright.stop()
        self.page = self.context = self.browser = self.playwright = None
        logger.info("Browser closed")

    def _require_page(self) -> Page:
        if self.page is None:
            raise NavigationError("Browser not launched")
        return self.page

    async def navigate(self, url: str, wait_until: str = "networkidle") -> PageState:
        page = self._require_page()
        try:
            response = await page.goto(url, wait_until=wait_until)
        except PlaywrightError as e:
            raise NavigationError(f"Navigation to {url} failed: {e}") from e
        return PageState(url=page.url, status=response.status if response else None)

    async def reload(self) -> None:
        page = self._require_page()
        try:
            await page.reload(wait_until="networkidle")
        except PlaywrightError as e:
            logger.debug(f"Reload failed: {e}")

    def current_url(self) -> str:
        return self.page.url if self.page else ""

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        return await self._require_page().evaluate(script, arg)

    async def is_visible(self, selector: str) -> bool:
        try:
            return await self._require_page().locator(selector).first.is_visible()
        except PlaywrightError:
            return False

    async def count(self, selector: str) -> int:
        try:
            return await self._require_page().locator(selector).count()
        except PlaywrightError:
            return 0

    async def click(self, selector: str, timeout_ms: int = 800) -> bool:
        try:
            await self._require_page().locator(selector).first.click(timeout=timeout_ms)
            return True
        except PlaywrightError:
            return False

    async def fill(self, selector: str, value: str) -> None:
        await self._require_page().fill(selector, value)

    async def wait_for_url(self, pattern: Union[str, Pattern[str]], timeout_ms: int) -> bool:
        if isinstance(pattern, str):
            pattern = re.compile(pattern)
        try:
            await self._require_page().wait_for_url(pattern, timeout=timeout_ms)
            return True
        except PlaywrightTimeoutError:
            return False

    async def wait_for_load(self, timeout_ms: int) -> bool:
        try:
            await self._require_page().wait_for_load_state("networkidle", timeout=timeout_ms)
            return True
        except PlaywrightTimeoutError:
            return False

    async def wait_for_selector(self, selector: str, timeout_ms: int) -> bool:
        try:
            await self._require_page().wait_for_selector(selector, timeout=timeout_ms)
            return True
        except PlaywrightTimeoutError:
            return False

    async def request(
        self,
        method: str,
        url: str,
        form: Optional[FormFields] = None,
        params: Optional[FormFields] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> HttpResponse:
        if self.context is None:
            raise NetworkFailure("Browser context not available")
        if params:
            separator = "&" if "?" in url else "?"
            url = f"{url}{separator}{urlencode(list(params))}"
        form_data = None
        if form is not None:
            form_data = FormData()
            for name, value in form:
                form_data.append(name, value)
        try:
            response = await self.context.request.fetch(
                url,
                method=method,
                form=form_data,
                headers=headers,
            )
            body = "" if method.upper() == "HEAD" else await response.text()
        except PlaywrightError as e:
            raise NetworkFailure(f"{method} {url} failed: {e}") from e
        return HttpResponse(status=response.status, url=response.url, body=body)

    async def save_storage_state(self, path: str) -> None:
        if self.context is not None:
            await self.context.storage_state(path=path)

    async def dismiss_overlays(self) -> None:
        if self.page is None:
            return
        for selector in OVERLAY_BUTTONS:
            if await self.count(selector):
                await self.click(selector, timeout_ms=800)
                await asyncio.sleep(0.12)
        try:
            await self.page.evaluate(REMOVE_OVERLAYS_JS)
        except PlaywrightError as e:
            logger.debug(f"Overlay cleanup skipped: {e}")

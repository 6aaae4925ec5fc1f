"""
Session Manager - login flow, session-validity detection and persistence.

State machine:
    LOGGED_OUT -> LOGGING_IN -> LOGGED_IN
    LOGGED_IN  -> LOGGING_IN   (expiry detected)
    LOGGING_IN -> LOGGED_OUT   (login failed)
"""

import asyncio
import logging
import re
from typing import Optional

from api.logging_config import log_session_event
from browser.page_engine import PageEngine
from browser.storage import SessionStore
from core.error_handler import LoginFailed, MissingCredentials
from core.models import AuthState, Credentials, Session

logger = logging.getLogger(__name__)


LOGIN_PATH = "/login"
USERNAME_SELECTOR = 'input[name="username"], #username'
PASSWORD_SELECTOR = 'input[name="password"], #password'
LOGGED_IN_URL = re.compile(r"/intern/(meine-(daten|jobs))")
LOGIN_TIMEOUT_MS = 8000

REMOVE_COOKIE_BARS_JS = """
() => {
  const killers = ["cms-accept-tags", ".mod_cms_accept_tags", ".cookiebar", ".mod_cookiebar"];
  for (const sel of killers) document.querySelectorAll(sel).forEach((el) => el.remove());
  document.body.classList.remove("cookie-bar-visible");
}
"""

# Native submit so the portal's own handlers and CSRF fields are honoured
SUBMIT_LOGIN_JS = """
() => {
  const form =
    document.querySelector('form[id^="tl_login_"]') ||
    document.querySelector('form[action*="/login"]') ||
    document.querySelector("form");
  if (!form) throw new Error("Login form not found");
  const btn = form.querySelector('button[type="submit"], input[type="submit"]');
  if (form.requestSubmit) form.requestSubmit(btn || undefined);
  else form.submit();
}
"""


class SessionManager:
    """
    Owns the portal session.

    Example:
        manager = SessionManager(engine, base_url, credentials, store)
        await manager.ensure_authenticated()
    """

    def __init__(
        self,
        engine: PageEngine,
        base_url: str,
        credentials: Optional[Credentials],
        store: SessionStore,
        login_timeout_ms: int = LOGIN_TIMEOUT_MS,
    ):
        self.engine = engine
        self.base_url = base_url.rstrip("/")
        self.store = store
        self.login_timeout_ms = login_timeout_ms
        self.session = Session(credentials=credentials, storage_path=str(store.path))
        self.state = AuthState.LOGGED_OUT
        self._expired = False

    @property
    def is_logged_in(self) -> bool:
        return self.state is AuthState.LOGGED_IN and self.session.valid

    def invalidate(self, reason: str = "") -> None:
        """Mark the session expired; the next ensure_authenticated() logs in again."""
        if self.session.valid:
            logger.warning(f"Session invalidated{': ' + reason if reason else ''}")
        self.session.valid = False
        self._expired = True

    def mark_logged_out(self) -> None:
        self.session.valid = False
        self.state = AuthState.LOGGED_OUT

    async def at_login_page(self) -> bool:
        if LOGIN_PATH in self.engine.current_url():
            return True
        return await self.engine.is_visible(USERNAME_SELECTOR)

    async def ensure_authenticated(self) -> None:
        """Log in if the session expired or the page shows the login form."""
        if self._expired or await self.at_login_page():
            logger.warning("Session expired - logging in...")
            await self.login()
            return

        if not self.is_logged_in:
            self.session.valid = True
            self.state = AuthState.LOGGED_IN

    async def login(self) -> None:
        credentials = self.session.credentials
        if credentials is None or not credentials.complete:
            raise MissingCredentials()

        self.state = AuthState.LOGGING_IN
        self.session.valid = False
        try:
            await self.engine.navigate(self.base_url + LOGIN_PATH)
            await self.engine.dismiss_overlays()

            await self.engine.fill(USERNAME_SELECTOR, credentials.username)
            await self.engine.fill(PASSWORD_SELECTOR, credentials.password)

            await self.engine.evaluate(REMOVE_COOKIE_BARS_JS)
            await self.engine.evaluate(SUBMIT_LOGIN_JS)

            moved = await self._wait_for_redirect()
            if not moved or LOGIN_PATH in self.engine.current_url():
                raise LoginFailed()
        except BaseException:
            self.state = AuthState.LOGGED_OUT
            raise

        await self.store.save(self.engine)
        self.session.valid = True
        self._expired = False
        self.state = AuthState.LOGGED_IN
        log_session_event("logged in", self.base_url)

    async def _wait_for_redirect(self) -> bool:
        """
        Race the landing-URL match against the page settling.

        Returns True as soon as either signal fires while the page is off the
        login path, False once both have given up.
        """
        waiters = [
            asyncio.ensure_future(self.engine.wait_for_url(LOGGED_IN_URL, self.login_timeout_ms)),
            asyncio.ensure_future(self.engine.wait_for_load(self.login_timeout_ms)),
        ]
        moved = False
        try:
            for next_done in asyncio.as_completed(waiters):
                if await next_done:
                    moved = True
                    if LOGIN_PATH not in self.engine.current_url():
                        break
        finally:
            for waiter in waiters:
                if not waiter.done():
                    waiter.cancel()
        return moved

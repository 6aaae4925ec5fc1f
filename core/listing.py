"""
Listing Fetcher - retrieves and parses the "Meine Jobs" listing.

parse_listing() turns raw markup into a typed ListingSnapshot with
BeautifulSoup, so the accept logic never depends on a live page.
ListingFetcher adds the network fetch and the page readiness checks.
"""

import logging
import re
from typing import List, Tuple

from bs4 import BeautifulSoup, Tag

from browser.page_engine import PageEngine
from core.error_handler import BadStatus, FetchError, NavigationError
from core.models import AcceptControl, EntryForm, JobEntry, ListingSnapshot
from core.session_manager import SessionManager

logger = logging.getLogger(__name__)


LISTING_PATH = "/intern/meine-jobs"
ACCOUNT_PATH = "/intern/meine-daten"

ENTRY_SELECTOR = "div.entry"
LOCATION_SELECTOR = "span.date.location"
ACCEPT_SELECTOR = "#ctrl_accept, [name='accept']"
CANCEL_SELECTOR = "#ctrl_cancel, [name='cancel']"
LISTING_LINK_SELECTOR = 'a[href*="intern/meine-jobs"]'
LIVE_ACCEPT_SELECTOR = 'div.entry form button#ctrl_accept, div.entry form [name="accept"]'
READY_SELECTOR = "span.date.location, div.entry, form button#ctrl_accept"

ENTRY_ID_RE = re.compile(r"#\s?(\d{4,7})")
USERNAME_MARKER_RE = re.compile(r"""name=["']username["']|id=["']username["']""", re.IGNORECASE)
PASSWORD_MARKER_RE = re.compile(r"""type=["']password["']""", re.IGNORECASE)

NO_CACHE_HEADERS = {"Cache-Control": "no-cache", "Pragma": "no-cache"}
NON_VALUE_INPUT_TYPES = {"submit", "button", "image", "reset", "file"}


# ============== Parsing ==============

def is_login_page(markup: str) -> bool:
    """A listing response that carries both login field markers is a bounce to /login."""
    return bool(USERNAME_MARKER_RE.search(markup)) and bool(PASSWORD_MARKER_RE.search(markup))


def entry_key(entry: Tag) -> str:
    text = entry.get_text(" ")
    match = ENTRY_ID_RE.search(text)
    if match:
        return f"#{match.group(1)}"
    location = entry.select_one(LOCATION_SELECTOR)
    return location.get_text(strip=True) if location else ""


def _form_fields(form: Tag) -> Tuple[Tuple[str, str], ...]:
    """Collect the fields a browser would send for this form without a submitter."""
    fields: List[Tuple[str, str]] = []
    for element in form.find_all(["input", "select", "textarea"]):
        name = element.get("name")
        if not name or element.has_attr("disabled"):
            continue

        if element.name == "input":
            input_type = (element.get("type") or "text").lower()
            if input_type in NON_VALUE_INPUT_TYPES:
                continue
            if input_type in ("checkbox", "radio"):
                if element.has_attr("checked"):
                    fields.append((name, element.get("value", "on")))
                continue
            fields.append((name, element.get("value", "")))

        elif element.name == "select":
            options = element.find_all("option")
            selected = [o for o in options if o.has_attr("selected")]
            if not selected and options and not element.has_attr("multiple"):
                selected = options[:1]
            for option in selected:
                fields.append((name, option.get("value", option.get_text(strip=True))))

        else:
            fields.append((name, element.get_text()))
    return tuple(fields)


def parse_form(form: Tag) -> EntryForm:
    control = form.select_one(ACCEPT_SELECTOR)
    accept_control = None
    if control is not None:
        accept_control = AcceptControl(
            name=control.get("name") or "",
            value=control.get("value") or "",
        )
    return EntryForm(
        action=(form.get("action") or "").strip(),
        method=(form.get("method") or "POST").strip().upper(),
        fields=_form_fields(form),
        accept_control=accept_control,
    )


def parse_entry(entry: Tag) -> JobEntry:
    form_tag = entry.find("form")
    form = parse_form(form_tag) if form_tag is not None else None
    return JobEntry(
        key=entry_key(entry),
        raw_text=entry.get_text(" ", strip=True),
        has_accept_control=form is not None and form.accept_control is not None,
        has_cancel_control=entry.select_one(CANCEL_SELECTOR) is not None,
        form=form,
    )


def parse_listing(markup: str) -> ListingSnapshot:
    """
    Parse listing markup into a snapshot.

    Args:
        markup: Raw HTML of the listing page

    Returns:
        ListingSnapshot with every entry, or need_login=True for a login bounce
    """
    if is_login_page(markup):
        return ListingSnapshot.login_required()
    soup = BeautifulSoup(markup, "html.parser")
    entries = tuple(parse_entry(entry) for entry in soup.select(ENTRY_SELECTOR))
    return ListingSnapshot(entries=entries)


# ============== Fetching ==============

class ListingFetcher:
    """Fetches listing snapshots and keeps the page positioned on the listing."""

    def __init__(self, engine: PageEngine, base_url: str, session: SessionManager):
        self.engine = engine
        self.base_url = base_url.rstrip("/")
        self.session = session

    @property
    def listing_url(self) -> str:
        return self.base_url + LISTING_PATH

    def on_listing_page(self) -> bool:
        return LISTING_PATH in self.engine.current_url()

    async def fetch_snapshot(self) -> ListingSnapshot:
        """
        Fetch and parse the listing with the session cookies.

        Raises:
            NetworkFailure: the request produced no response
            BadStatus: the portal answered with a non-2xx status
        """
        response = await self.engine.request("GET", self.listing_url, headers=NO_CACHE_HEADERS)
        if not response.ok:
            logger.warning(f"fetch list failed: {response.status}")
            raise BadStatus(response.status, self.listing_url)
        return parse_listing(response.body)

    async def has_listing(self, soft: bool = False) -> bool:
        """Whether the live page shows the listing; optionally confirm with a fetch."""
        if await self.engine.count(LIVE_ACCEPT_SELECTOR) > 0:
            return True
        if await self.engine.count(LOCATION_SELECTOR) > 0:
            return True
        if await self.engine.count(ENTRY_SELECTOR) > 0:
            return True

        if soft:
            try:
                snapshot = await self.fetch_snapshot()
            except FetchError as e:
                logger.debug(f"Soft listing check failed: {e}")
                return False
            return not snapshot.need_login
        return False

    async def _settle(self) -> None:
        await self.engine.dismiss_overlays()
        await self.session.ensure_authenticated()

    async def open_listing_page(self) -> bool:
        """Navigate via the account page to the listing and wait until it is usable."""
        if self.on_listing_page() and await self.has_listing(soft=True):
            return True

        await self.engine.navigate(self.base_url + ACCOUNT_PATH)
        await self._settle()

        if await self.engine.is_visible(LISTING_LINK_SELECTOR):
            await self.engine.click(LISTING_LINK_SELECTOR, timeout_ms=10000)
            await self.engine.wait_for_url(re.compile(re.escape(LISTING_PATH)), 10000)
            await self.engine.wait_for_load(10000)
        else:
            await self.engine.navigate(self.listing_url)
        await self._settle()

        await self.engine.wait_for_selector(READY_SELECTOR, 8000)
        if await self.has_listing(soft=True):
            return True

        await self.engine.reload()
        await self._settle()
        return await self.has_listing(soft=True)

    async def ensure_listing_page(self) -> bool:
        """Open the listing if the page is elsewhere. Never raises on navigation failure."""
        if self.on_listing_page():
            return True
        try:
            return await self.open_listing_page()
        except NavigationError as e:
            logger.warning(f"Could not open listing: {e}")
            return False

"""
Listing Tests - parsing of the "Meine Jobs" markup and listing fetches.
"""

import pytest

from browser.page_engine import HttpResponse
from core.error_handler import BadStatus, NetworkFailure
from core.listing import (
    LISTING_PATH,
    ListingFetcher,
    is_login_page,
    parse_listing,
)
from core.session_manager import SessionManager
from tests.utils.fake_page import failing_navigation


def _by_key(snapshot):
    return {entry.key: entry for entry in snapshot.entries}


class TestParseListing:
    """Entries, keys and controls."""

    def test_parses_every_entry(self, listing_html):
        snapshot = parse_listing(listing_html)

        assert snapshot.need_login is False
        assert len(snapshot.entries) == 5

    def test_keys_prefer_entry_id(self, listing_html):
        keys = [entry.key for entry in parse_listing(listing_html).entries]

        assert keys[:4] == ["#1001", "#1002", "#1003", "#1004"]

    def test_key_falls_back_to_location_text(self, listing_html):
        last = parse_listing(listing_html).entries[-1]

        assert last.key == "17.11.2026 Leipzig"
        assert last.has_accept_control is False

    def test_id_with_space_after_hash(self):
        snapshot = parse_listing('<div class="entry"><p>Auftrag # 55123</p></div>')

        assert snapshot.entries[0].key == "#55123"

    def test_entry_without_id_or_location_has_empty_key(self):
        markup = """
        <div class="entry"><form><button id="ctrl_accept" name="accept">Ok</button></form></div>
        """
        entry = parse_listing(markup).entries[0]

        assert entry.key == ""
        assert entry.has_accept_control is True
        assert entry.actionable is False

    def test_only_accept_entries_are_actionable(self, listing_html):
        snapshot = parse_listing(listing_html)

        assert [e.key for e in snapshot.actionable()] == ["#1001", "#1002"]

    @pytest.mark.safety
    def test_cancel_control_excludes_entry(self, listing_html):
        entries = _by_key(parse_listing(listing_html))

        assert entries["#1003"].has_accept_control is True
        assert entries["#1003"].has_cancel_control is True
        assert entries["#1003"].actionable is False
        assert entries["#1004"].actionable is False

    @pytest.mark.safety
    def test_cancel_control_outside_form_still_excludes(self):
        markup = """
        <div class="entry"><p>#2001</p>
          <form><button id="ctrl_accept" name="accept">Ok</button></form>
          <a id="ctrl_cancel" href="#">Absagen</a>
        </div>
        """
        entry = parse_listing(markup).entries[0]

        assert entry.has_cancel_control is True
        assert entry.actionable is False

    def test_empty_listing_is_not_a_login_page(self):
        snapshot = parse_listing("<html><body><p>Keine Jobs</p></body></html>")

        assert snapshot.need_login is False
        assert snapshot.entries == ()


class TestFormFields:
    """Form serialisation mirrors what the browser would submit."""

    def test_hidden_fields_and_control(self, listing_html):
        form = _by_key(parse_listing(listing_html))["#1001"].form

        assert form.action == "/intern/meine-jobs"
        assert form.method == "POST"
        assert form.fields == (
            ("FORM_SUBMIT", "job_accept"),
            ("REQUEST_TOKEN", "tok-1"),
            ("job", "1001"),
        )
        assert form.accept_control.name == "accept"
        assert form.accept_control.value == ""

    def test_control_value_is_kept(self, listing_html):
        form = _by_key(parse_listing(listing_html))["#1002"].form

        assert form.accept_control.value == "yes"

    def test_field_types(self):
        markup = """
        <div class="entry"><p>#3001</p>
          <form method="get" action="accept.php">
            <input name="plain" value="a">
            <input type="checkbox" name="agree" checked>
            <input type="checkbox" name="newsletter" value="1">
            <input type="radio" name="slot" value="am">
            <input type="radio" name="slot" value="pm" checked>
            <input type="text" name="off" value="x" disabled>
            <input type="file" name="upload">
            <input value="nameless">
            <select name="size"><option value="s">S</option><option value="l" selected>L</option></select>
            <select name="first"><option value="one">1</option><option value="two">2</option></select>
            <textarea name="note">bitte klingeln</textarea>
            <input type="submit" name="accept" value="go">
          </form>
        </div>
        """
        form = parse_listing(markup).entries[0].form

        assert form.method == "GET"
        assert form.action == "accept.php"
        assert form.fields == (
            ("plain", "a"),
            ("agree", "on"),
            ("slot", "pm"),
            ("size", "l"),
            ("first", "one"),
            ("note", "bitte klingeln"),
        )
        assert form.accept_control.name == "accept"
        assert form.accept_control.value == "go"


class TestLoginDetection:

    def test_login_markup_detected(self, login_html):
        assert is_login_page(login_html) is True

    def test_login_bounce_yields_need_login(self, login_html):
        snapshot = parse_listing(login_html)

        assert snapshot.need_login is True
        assert snapshot.entries == ()

    def test_single_marker_is_not_enough(self):
        assert is_login_page('<input name="username">') is False
        assert is_login_page('<input type="password" name="pin">') is False


@pytest.fixture
def fetcher(fake_engine, base_url, credentials, session_store):
    session = SessionManager(fake_engine, base_url, credentials, session_store)
    return ListingFetcher(fake_engine, base_url, session)


class TestListingFetcher:

    @pytest.mark.asyncio
    async def test_fetch_snapshot_uses_no_cache_get(self, fetcher, fake_engine, listing_html):
        fake_engine.route("GET", fetcher.listing_url, HttpResponse(200, fetcher.listing_url, listing_html))

        snapshot = await fetcher.fetch_snapshot()

        assert len(snapshot.entries) == 5
        request = fake_engine.requests_to("GET", fetcher.listing_url)[0]
        assert request["headers"]["Cache-Control"] == "no-cache"
        assert request["headers"]["Pragma"] == "no-cache"

    @pytest.mark.asyncio
    async def test_fetch_snapshot_login_bounce(self, fetcher, fake_engine, login_html):
        fake_engine.route("GET", fetcher.listing_url, HttpResponse(200, fetcher.listing_url, login_html))

        snapshot = await fetcher.fetch_snapshot()

        assert snapshot.need_login is True

    @pytest.mark.asyncio
    async def test_fetch_snapshot_bad_status(self, fetcher, fake_engine):
        fake_engine.route("GET", fetcher.listing_url, HttpResponse(503, fetcher.listing_url))

        with pytest.raises(BadStatus) as exc_info:
            await fetcher.fetch_snapshot()

        assert exc_info.value.status == 503

    @pytest.mark.asyncio
    async def test_fetch_snapshot_network_failure_propagates(self, fetcher, fake_engine):
        fake_engine.route("GET", fetcher.listing_url, NetworkFailure("connection reset"))

        with pytest.raises(NetworkFailure):
            await fetcher.fetch_snapshot()

    @pytest.mark.asyncio
    async def test_has_listing_from_live_page(self, fetcher, fake_engine):
        fake_engine.counts["div.entry"] = 2

        assert await fetcher.has_listing() is True
        assert fake_engine.requests == []

    @pytest.mark.asyncio
    async def test_empty_listing_counts_as_ready_when_soft(self, fetcher, fake_engine):
        fake_engine.route("GET", fetcher.listing_url, HttpResponse(200, fetcher.listing_url, "<p>leer</p>"))

        assert await fetcher.has_listing() is False
        assert await fetcher.has_listing(soft=True) is True

    @pytest.mark.asyncio
    async def test_soft_check_fails_on_login_bounce(self, fetcher, fake_engine, login_html):
        fake_engine.route("GET", fetcher.listing_url, HttpResponse(200, fetcher.listing_url, login_html))

        assert await fetcher.has_listing(soft=True) is False

    @pytest.mark.asyncio
    async def test_ensure_listing_page_noop_when_on_listing(self, fetcher, fake_engine):
        assert await fetcher.ensure_listing_page() is True
        assert fake_engine.navigations == []

    @pytest.mark.asyncio
    async def test_open_listing_via_account_link(self, fetcher, fake_engine, base_url):
        fake_engine.url = base_url + "/intern/meine-daten"
        fake_engine.visible.add('a[href*="intern/meine-jobs"]')
        fake_engine.click_targets['a[href*="intern/meine-jobs"]'] = base_url + LISTING_PATH
        fake_engine.counts["span.date.location"] = 3

        assert await fetcher.ensure_listing_page() is True
        assert fake_engine.navigations == [base_url + "/intern/meine-daten"]
        assert fake_engine.clicks == ['a[href*="intern/meine-jobs"]']

    @pytest.mark.asyncio
    async def test_open_listing_direct_when_no_link(self, fetcher, fake_engine, base_url):
        fake_engine.url = base_url + "/"
        fake_engine.counts["div.entry"] = 1

        assert await fetcher.open_listing_page() is True
        assert fake_engine.navigations == [
            base_url + "/intern/meine-daten",
            base_url + LISTING_PATH,
        ]

    @pytest.mark.asyncio
    async def test_ensure_listing_page_swallows_navigation_error(self, fetcher, fake_engine, base_url):
        account = base_url + "/intern/meine-daten"
        fake_engine.url = base_url + "/"
        fake_engine.navigation_errors[account] = failing_navigation(account)

        assert await fetcher.ensure_listing_page() is False

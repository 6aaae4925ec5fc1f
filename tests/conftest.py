"""
Pytest fixtures and configuration for the Umzug Watcher test suite.
"""

import pytest
from pathlib import Path

# Add project root to path
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))


BASE_URL = "https://portal.test"


# === Markup Fixtures ===

LISTING_HTML = """
<html><body>
<div class="mod_jobs">
  <div class="entry">
    <p>Umzug Auftrag #1001</p>
    <span class="date location">14.11.2026 Berlin</span>
    <form action="/intern/meine-jobs" method="post">
      <input type="hidden" name="FORM_SUBMIT" value="job_accept">
      <input type="hidden" name="REQUEST_TOKEN" value="tok-1">
      <input type="hidden" name="job" value="1001">
      <button type="submit" id="ctrl_accept" name="accept" class="submit">Annehmen</button>
    </form>
  </div>
  <div class="entry">
    <p>Umzug Auftrag #1002</p>
    <span class="date location">15.11.2026 Potsdam</span>
    <form action="/intern/meine-jobs" method="post">
      <input type="hidden" name="FORM_SUBMIT" value="job_accept">
      <input type="hidden" name="REQUEST_TOKEN" value="tok-2">
      <input type="hidden" name="job" value="1002">
      <button type="submit" id="ctrl_accept" name="accept" value="yes">Annehmen</button>
    </form>
  </div>
  <div class="entry">
    <p>Umzug Auftrag #1003</p>
    <span class="date location">16.11.2026 Hamburg</span>
    <form action="/intern/meine-jobs" method="post">
      <input type="hidden" name="job" value="1003">
      <button type="submit" id="ctrl_accept" name="accept">Annehmen</button>
      <button type="submit" id="ctrl_cancel" name="cancel">Absagen</button>
    </form>
  </div>
  <div class="entry">
    <p>Umzug Auftrag #1004</p>
    <form action="/intern/meine-jobs" method="post">
      <button type="submit" id="ctrl_cancel" name="cancel">Absagen</button>
    </form>
  </div>
  <div class="entry">
    <span class="date location">17.11.2026 Leipzig</span>
    <p>Noch keine Details</p>
  </div>
</div>
</body></html>
"""

LOGIN_HTML = """
<html><body>
<form id="tl_login_3" action="/login" method="post">
  <input type="text" name="username" id="username">
  <input type="password" name="password" id="password">
  <button type="submit">Anmelden</button>
</form>
</body></html>
"""


@pytest.fixture
def base_url():
    return BASE_URL


@pytest.fixture
def listing_html():
    """Listing with two acceptable entries, one guarded by cancel and two without accept."""
    return LISTING_HTML


@pytest.fixture
def login_html():
    return LOGIN_HTML


# === Component Fixtures ===

@pytest.fixture
def fake_engine():
    """Page engine positioned on the listing."""
    from tests.utils.fake_page import FakePageEngine
    return FakePageEngine(url=BASE_URL + "/intern/meine-jobs")


@pytest.fixture
def session_store(tmp_path):
    from browser.storage import SessionStore
    return SessionStore(tmp_path / "auth.json")


@pytest.fixture
def credentials():
    from core.models import Credentials
    return Credentials(username="mover@example.com", password="s3cret")


@pytest.fixture
def app_config(tmp_path):
    from api.config import AppConfig
    return AppConfig(
        username="mover@example.com",
        password="s3cret",
        base_url=BASE_URL,
        poll_ms=10,
        storage_state_path=str(tmp_path / "auth.json"),
    )


# === Markers ===

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "resilience: Failure and recovery tests")
    config.addinivalue_line("markers", "safety: Accept safety rules")

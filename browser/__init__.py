"""
Browser Automation Module

Playwright-backed page engine plus the persisted session blob.

    from browser import PlaywrightPageEngine, SessionStore
"""

from browser.page_engine import (
    HttpResponse,
    PageEngine,
    PageState,
    PlaywrightPageEngine,
)
from browser.storage import SessionStore


__all__ = [
    "HttpResponse",
    "PageEngine",
    "PageState",
    "PlaywrightPageEngine",
    "SessionStore",
]

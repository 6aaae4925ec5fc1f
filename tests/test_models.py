"""
Model Tests - seen keys, entries, tick results and the session store.
"""

import pytest

from browser.storage import SessionStore
from core.models import JobEntry, SeenKeySet, TickResult
from tests.utils.fake_page import FakePageEngine


class TestSeenKeySet:

    def test_add_and_contains(self):
        seen = SeenKeySet()
        seen.add("#1001")
        seen.add("#1001")

        assert "#1001" in seen
        assert "#1002" not in seen
        assert len(seen) == 1

    def test_empty_keys_ignored(self):
        seen = SeenKeySet(["", "#1"])

        assert len(seen) == 1

    def test_iterates_sorted(self):
        assert list(SeenKeySet(["#3", "#1", "#2"])) == ["#1", "#2", "#3"]

    def test_no_removal(self):
        assert not hasattr(SeenKeySet(), "remove")
        assert not hasattr(SeenKeySet(), "discard")


class TestJobEntry:

    @pytest.mark.parametrize("key, accept, cancel, expected", [
        ("#1", True, False, True),
        ("#1", True, True, False),
        ("#1", False, False, False),
        ("", True, False, False),
    ])
    def test_actionable(self, key, accept, cancel, expected):
        entry = JobEntry(key=key, raw_text="", has_accept_control=accept, has_cancel_control=cancel)

        assert entry.actionable is expected


def test_tick_result_helpers():
    assert TickResult.login_required().need_login is True
    assert TickResult.failed().errors == 1
    assert TickResult() == TickResult(0, 0, 0, None, False)


class TestSessionStore:

    @pytest.mark.asyncio
    async def test_save_and_clear(self, tmp_path):
        store = SessionStore(tmp_path / "state" / "auth.json")
        assert store.load_path() is None

        await store.save(FakePageEngine())

        assert store.exists()
        assert store.load_path() == str(store.path)

        store.clear()
        assert not store.exists()

    def test_clear_missing_is_noop(self, tmp_path):
        SessionStore(tmp_path / "auth.json").clear()

#!/usr/bin/env python3
"""
Data Models for the Umzug Watcher

All shared data models are defined here so the session, listing, accept
and watcher modules agree on one vocabulary.
"""

from typing import Iterable, Iterator, List, Optional, Tuple
from dataclasses import dataclass, field
from enum import Enum


# ============== Enums ==============

class AuthState(str, Enum):
    """Session authentication states."""
    LOGGED_OUT = "logged_out"
    LOGGING_IN = "logging_in"
    LOGGED_IN = "logged_in"


# ============== Session ==============

@dataclass(frozen=True)
class Credentials:
    """Portal login credentials."""
    username: str
    password: str = field(repr=False)

    @property
    def complete(self) -> bool:
        return bool(self.username) and bool(self.password)


@dataclass
class Session:
    """Authenticated portal session. Owned by the SessionManager."""
    credentials: Optional[Credentials]
    storage_path: str
    valid: bool = False


# ============== Listing ==============

@dataclass(frozen=True)
class AcceptControl:
    """The control whose activation accepts a posting."""
    name: str = ""
    value: str = ""


@dataclass(frozen=True)
class EntryForm:
    """Form of one listing entry, reduced to what a submission needs."""
    action: str = ""
    method: str = "POST"
    fields: Tuple[Tuple[str, str], ...] = ()
    accept_control: Optional[AcceptControl] = None


@dataclass(frozen=True)
class JobEntry:
    """One job posting row in the listing view."""
    key: str
    raw_text: str
    has_accept_control: bool
    has_cancel_control: bool
    form: Optional[EntryForm] = None

    @property
    def actionable(self) -> bool:
        """Only rows with an accept control, no cancel control and a key qualify."""
        return bool(self.key) and self.has_accept_control and not self.has_cancel_control


@dataclass(frozen=True)
class ListingSnapshot:
    """Parsed result of one listing fetch."""
    entries: Tuple[JobEntry, ...] = ()
    need_login: bool = False

    @classmethod
    def login_required(cls) -> "ListingSnapshot":
        return cls(entries=(), need_login=True)

    def actionable(self) -> List[JobEntry]:
        return [entry for entry in self.entries if entry.actionable]


class SeenKeySet:
    """
    Keys already evaluated during this watcher session.

    Keys are only ever added. Membership means "evaluated this run",
    not "successfully accepted".
    """

    def __init__(self, keys: Iterable[str] = ()):
        self._keys = set()
        self.add_all(keys)

    def add(self, key: str) -> None:
        if key:
            self._keys.add(key)

    def add_all(self, keys: Iterable[str]) -> None:
        for key in keys:
            self.add(key)

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._keys))

    def __repr__(self) -> str:
        return f"SeenKeySet({len(self._keys)} keys)"


# ============== Results ==============

@dataclass(frozen=True)
class TickResult:
    """Outcome of one watcher tick."""
    accepted: int = 0
    tried: int = 0
    errors: int = 0
    last_accept_key: Optional[str] = None
    need_login: bool = False

    @classmethod
    def login_required(cls) -> "TickResult":
        return cls(need_login=True)

    @classmethod
    def failed(cls) -> "TickResult":
        return cls(errors=1)

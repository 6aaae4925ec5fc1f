"""
Core components of the Umzug watcher.

Modules:
- models: JobEntry, ListingSnapshot, SeenKeySet, TickResult
- error_handler: Error taxonomy and recovery policy
- session_manager: Login flow and session validity
- listing: Listing fetch, parsing and readiness
- accept_engine: Filter, dedupe, rate-limit and submit accepts
- keep_alive: Periodic keep-alive probe
- watcher: The tick loop
- orchestrator: Ties everything together
"""

from .models import (
    AuthState,
    Credentials,
    JobEntry,
    ListingSnapshot,
    SeenKeySet,
    TickResult,
)
from .error_handler import (
    AuthError,
    BadStatus,
    ErrorCategory,
    FetchError,
    LoginFailed,
    MissingCredentials,
    NavigationError,
    NetworkFailure,
    RecoveryAction,
    SubmitError,
    WatcherError,
    recovery_action,
)

__all__ = [
    "AuthState",
    "Credentials",
    "JobEntry",
    "ListingSnapshot",
    "SeenKeySet",
    "TickResult",
    "AuthError",
    "BadStatus",
    "ErrorCategory",
    "FetchError",
    "LoginFailed",
    "MissingCredentials",
    "NavigationError",
    "NetworkFailure",
    "RecoveryAction",
    "SubmitError",
    "WatcherError",
    "recovery_action",
]

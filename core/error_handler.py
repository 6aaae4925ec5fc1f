"""
Error taxonomy and recovery policy for the watcher.

Every failure the watcher can meet is one of the exceptions below. The
recovery policy decides, per error and per phase, whether the process
aborts, re-authenticates, retries on the next tick or just counts it.
"""

from enum import Enum
from typing import Optional


class ErrorCategory(str, Enum):
    """Coarse error categories used for logging and recovery decisions."""
    AUTH = "auth"
    NETWORK = "network"
    SUBMIT = "submit"
    NAVIGATION = "navigation"
    UNKNOWN = "unknown"


class RecoveryAction(str, Enum):
    ABORT = "abort"
    REAUTHENTICATE = "reauthenticate"
    RETRY_NEXT_TICK = "retry_next_tick"
    COUNT_AND_CONTINUE = "count_and_continue"


class WatcherError(Exception):
    """Base class for all watcher errors."""
    category = ErrorCategory.UNKNOWN


class AuthError(WatcherError):
    category = ErrorCategory.AUTH


class MissingCredentials(AuthError):
    def __init__(self, message: str = "LOGIN_USERNAME and LOGIN_PASSWORD must be provided"):
        super().__init__(message)


class LoginFailed(AuthError):
    def __init__(self, message: str = "Login failed - still on /login"):
        super().__init__(message)


class FetchError(WatcherError):
    category = ErrorCategory.NETWORK


class NetworkFailure(FetchError):
    """The request never produced a response (DNS, reset, timeout...)."""


class BadStatus(FetchError):
    def __init__(self, status: int, url: str = ""):
        self.status = status
        self.url = url
        super().__init__(f"HTTP {status} for {url}" if url else f"HTTP {status}")


class SubmitError(WatcherError):
    category = ErrorCategory.SUBMIT

    def __init__(self, key: str, reason: str, status: Optional[int] = None):
        self.key = key
        self.reason = reason
        self.status = status
        super().__init__(f"Accept for {key} failed: {reason}")


class NavigationError(WatcherError):
    category = ErrorCategory.NAVIGATION


def get_error_category(error: BaseException) -> ErrorCategory:
    if isinstance(error, WatcherError):
        return error.category
    if isinstance(error, (ConnectionError, TimeoutError)):
        return ErrorCategory.NETWORK
    return ErrorCategory.UNKNOWN


def recovery_action(error: BaseException, startup: bool = False) -> RecoveryAction:
    """
    Decide how to recover from an error.

    Args:
        error: The exception that was raised
        startup: True while the bot is still initializing

    Returns:
        The RecoveryAction to take
    """
    if isinstance(error, MissingCredentials):
        return RecoveryAction.ABORT
    if startup and isinstance(error, (AuthError, NavigationError)):
        return RecoveryAction.ABORT
    if isinstance(error, (LoginFailed, NavigationError)):
        return RecoveryAction.RETRY_NEXT_TICK
    if isinstance(error, (FetchError, SubmitError)):
        return RecoveryAction.COUNT_AND_CONTINUE
    return RecoveryAction.REAUTHENTICATE


def describe_error(error: BaseException) -> str:
    """Short human readable form used for lastError."""
    return str(error) or error.__class__.__name__

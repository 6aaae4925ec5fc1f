"""
Persisted session storage.

The Playwright storage state (cookies + local storage) is kept as an
opaque JSON blob on disk. Only its presence is inspected; loading happens
when the browser context is created and saving after a successful login.
"""

import logging
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)


class SessionStore:
    """Opaque session blob at a fixed path."""

    def __init__(self, path: Union[str, Path] = "auth.json"):
        self.path = Path(path).resolve()

    def exists(self) -> bool:
        return self.path.is_file()

    def load_path(self) -> Optional[str]:
        """Path to hand to the browser context, or None for a fresh session."""
        return str(self.path) if self.exists() else None

    async def save(self, engine) -> None:
        """Persist the engine's current storage state."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        await engine.save_storage_state(str(self.path))
        logger.debug(f"Session state saved to {self.path}")

    def clear(self) -> None:
        if self.exists():
            self.path.unlink()
            logger.info(f"Removed stored session {self.path}")

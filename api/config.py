"""
Unified Configuration Module for the Umzug Watcher

All configuration settings are centralized here.
Import from this module: from api.config import AppConfig, load_config
"""

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml
from dotenv import load_dotenv

from core.models import Credentials


DEFAULT_BASE_URL = "https://studenten-umzugshilfe.com"

# field name -> environment variable
ENV_VARS = {
    "username": "LOGIN_USERNAME",
    "password": "LOGIN_PASSWORD",
    "base_url": "BASE_URL",
    "poll_ms": "POLL_MS",
    "max_per_tick": "MAX_PER_TICK",
    "keep_alive_min": "KEEP_ALIVE_MIN",
    "host": "HOST",
    "port": "PORT",
    "headless": "HEADLESS",
    "storage_state_path": "STORAGE_STATE_PATH",
    "page_timeout_ms": "PAGE_TIMEOUT_MS",
}


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class AppConfig:
    """Unified application configuration."""

    # === Portal Credentials ===
    username: Optional[str] = None
    password: Optional[str] = None

    # === Portal ===
    base_url: str = DEFAULT_BASE_URL

    # === Watcher ===
    poll_ms: int = 1000
    max_per_tick: int = 3
    keep_alive_min: float = 4

    # === Health Server ===
    host: str = "0.0.0.0"
    port: int = 3001

    # === Browser ===
    headless: bool = True
    page_timeout_ms: int = 25000

    # === Paths ===
    storage_state_path: str = "auth.json"

    def __post_init__(self):
        self.base_url = (self.base_url or DEFAULT_BASE_URL).rstrip("/")
        self.poll_ms = int(self.poll_ms)
        self.max_per_tick = int(self.max_per_tick)
        self.keep_alive_min = float(self.keep_alive_min)
        self.port = int(self.port)
        self.page_timeout_ms = int(self.page_timeout_ms)
        self.headless = _to_bool(self.headless)

    @property
    def credentials(self) -> Optional[Credentials]:
        if not self.username or not self.password:
            return None
        return Credentials(username=self.username, password=self.password)

    def validate(self) -> List[str]:
        """Validate configuration and return list of missing required settings."""
        missing = []
        if not self.username:
            missing.append(ENV_VARS["username"])
        if not self.password:
            missing.append(ENV_VARS["password"])
        return missing

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AppConfig":
        environ = os.environ if environ is None else environ
        values = {
            name: environ[var]
            for name, var in ENV_VARS.items()
            if environ.get(var) not in (None, "")
        }
        return cls(**values)

    def with_overrides(self, overrides: Mapping[str, Any]) -> "AppConfig":
        """Copy of this config with known keys replaced; unknown keys raise ValueError."""
        known = {f.name for f in fields(self)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(unknown)}")
        values: Dict[str, Any] = {f.name: getattr(self, f.name) for f in fields(self)}
        values.update({k: v for k, v in overrides.items() if v is not None})
        return AppConfig(**values)

    def public_dict(self) -> Dict[str, Any]:
        """Config for logging; never includes the password."""
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["password"] = "***" if self.password else None
        return data


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    env_file: Optional[Union[str, Path]] = None,
) -> AppConfig:
    """
    Load configuration from the environment, a .env file and an optional YAML file.

    Args:
        config_path: YAML mapping of AppConfig field names; overrides the environment
        env_file: .env file to load (default: search from the working directory)

    Returns:
        AppConfig instance
    """
    load_dotenv(dotenv_path=env_file, override=False)
    config = AppConfig.from_env()

    if config_path:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{config_path} must contain a mapping")
        config = config.with_overrides(data)

    return config

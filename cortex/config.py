"""Client Configuration.

Centralized configuration management for the Cortex client.

Environment Variables:
    CORTEX_API_KEY: API key sent as a bearer token
    CORTEX_USER_ID: User (project owner) id used in SDK paths
    CORTEX_BASE_URL: Override the SDK base URL
    CORTEX_TIMEOUT: HTTP timeout in seconds
    VERBOSE: Enable verbose runner output (1, true, yes)
    RUN_API_TESTS: Enable tests that hit the live API (1, true, yes)

Settings File:
    ~/.cortex/settings.toml

    [cortex]
    api_key = "sk-..."
    user_id = "..."
    base_url = "https://trycortex.ai/api/sdk"
    timeout = 120

Environment variables take priority over the settings file. A ``.env`` file
in the working directory is loaded on import.
"""

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

load_dotenv()

# =============================================================================
# Defaults
# =============================================================================

DEFAULT_BASE_URL = "https://trycortex.ai/api/sdk"
TIMEOUT_DEFAULT = 120.0

SETTINGS_PATH = Path.home() / ".cortex" / "settings.toml"


# =============================================================================
# Settings Loading
# =============================================================================


def load_settings(path: Path = SETTINGS_PATH) -> dict[str, Any]:
    """Load settings from ~/.cortex/settings.toml.

    Returns:
        Settings dict, or an empty one if the file doesn't exist.
    """
    if not path.exists():
        return {}
    with open(path, "rb") as f:
        return tomllib.load(f)


def _setting(settings: dict[str, Any], env_var: str, key: str, default=None):
    if value := os.environ.get(env_var):
        return value
    return settings.get("cortex", {}).get(key, default)


def _flag(env_var: str) -> bool:
    return os.environ.get(env_var, "").lower() in ("1", "true", "yes")


def is_verbose() -> bool:
    """Check if verbose mode is enabled.

    Returns:
        True if VERBOSE env var is set to 1/true/yes.
    """
    return _flag("VERBOSE")


def is_api_tests_enabled() -> bool:
    """Check if live API tests should run.

    Returns:
        True if RUN_API_TESTS env var is set to 1/true/yes.
    """
    return _flag("RUN_API_TESTS")


# =============================================================================
# Configuration Dataclass
# =============================================================================


@dataclass
class CortexConfig:
    """Complete client configuration."""

    api_key: str | None
    user_id: str | None
    base_url: str
    timeout: float
    verbose: bool

    @classmethod
    def from_env(cls, settings_path: Path = SETTINGS_PATH) -> "CortexConfig":
        """Create config from environment and settings.

        Returns:
            CortexConfig instance with all settings loaded.
        """
        settings = load_settings(settings_path)
        return cls(
            api_key=_setting(settings, "CORTEX_API_KEY", "api_key"),
            user_id=_setting(settings, "CORTEX_USER_ID", "user_id"),
            base_url=_setting(settings, "CORTEX_BASE_URL", "base_url", DEFAULT_BASE_URL),
            timeout=float(_setting(settings, "CORTEX_TIMEOUT", "timeout", TIMEOUT_DEFAULT)),
            verbose=is_verbose(),
        )


def get_config() -> CortexConfig:
    """Get the current client configuration.

    Returns:
        CortexConfig instance.
    """
    return CortexConfig.from_env()

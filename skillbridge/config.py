"""Configuration for the skill debug bridge.

Values come from command-line switches first, then environment variables
(optionally loaded from a ``.env`` file), then defaults.
"""

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Mapping, Optional

from .errors import ConfigurationError
from .regions import DEFAULT_REGION, REGION_ENDPOINTS, resolve_region

TRUE_VALUES = ("1", "true", "yes", "on")


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in TRUE_VALUES


def _env_float(name: str, default: str) -> float:
    raw = os.getenv(name, default)
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e


@lru_cache(maxsize=1)
def load_config() -> dict:
    """
    Load bridge configuration from environment variables.

    Returns:
        dict with configuration values
    """
    return {
        # Mode switch and relay credentials, normally passed by `ask run`
        "DEBUG_SERVER": _env_flag("ASK_DEBUG_SERVER"),
        "ACCESS_TOKEN": os.getenv("ASK_ACCESS_TOKEN", ""),
        "SKILL_ID": os.getenv("ASK_SKILL_ID", ""),
        "REGION": os.getenv("ASK_REGION", DEFAULT_REGION),

        # Seconds to wait for a response frame to be written (0 = no limit)
        "SEND_TIMEOUT": _env_float("SKILL_BRIDGE_SEND_TIMEOUT", "5.0"),
        # Answer malformed request payloads with a failure frame instead of
        # ending the session
        "RECOVER_PAYLOADS": _env_flag("SKILL_BRIDGE_RECOVER_PAYLOADS"),
    }


def get_config_value(key: str, default=None):
    """Get a single configuration value."""
    config = load_config()
    return config.get(key, default)


@dataclass
class DebugConfig:
    """Resolved settings for one run of the bridge."""
    debug_server: bool = False
    access_token: str = ""
    skill_id: str = ""
    region: str = DEFAULT_REGION
    send_timeout: Optional[float] = 5.0
    recover_malformed_payloads: bool = False

    def validate(self, endpoints: Mapping[str, str] = REGION_ENDPOINTS) -> None:
        """Check the debug-mode settings before any connection is attempted.

        Raises:
            ConfigurationError: listing every problem found
        """
        problems = []
        if not resolve_region(self.region, endpoints):
            known = ", ".join(sorted(endpoints))
            problems.append(f"unknown region {self.region!r} (expected one of {known})")
        if not self.access_token:
            problems.append("access token is required (--accessToken or ASK_ACCESS_TOKEN)")
        if not self.skill_id:
            problems.append("skill ID is required (--skillId or ASK_SKILL_ID)")
        if self.send_timeout is not None and self.send_timeout < 0:
            problems.append("send timeout must not be negative")
        if problems:
            raise ConfigurationError("Invalid debug configuration: " + "; ".join(problems))

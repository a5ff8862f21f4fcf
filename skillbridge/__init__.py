"""Skill debug bridge.

Runs a voice-assistant skill handler either behind AWS Lambda or, during
development, against the live assistant service through the debug relay.
"""

from .dispatcher import Skill
from .errors import (
    ConfigurationError,
    ConnectivityError,
    DecodeError,
    EncodeError,
    SkillBridgeError,
)
from .handler import HandlerContext
from .session import DebugSession, SessionState

__version__ = "0.1.0"

__all__ = [
    "Skill",
    "DebugSession",
    "SessionState",
    "HandlerContext",
    "SkillBridgeError",
    "ConfigurationError",
    "ConnectivityError",
    "DecodeError",
    "EncodeError",
]

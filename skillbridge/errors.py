"""Error types raised by the skill bridge.

Only transport-boundary failures end a debug session. Everything that goes
wrong inside a single frame's handle/encode step is answered in-band with a
failure frame instead.
"""


class SkillBridgeError(Exception):
    """Base class for all bridge errors."""


class ConfigurationError(SkillBridgeError):
    """Missing or invalid configuration (region, token, skill id)."""


class ConnectivityError(SkillBridgeError):
    """Connect, handshake, read or write failure on the relay connection."""


class DecodeError(SkillBridgeError):
    """A frame or its inner payload could not be decoded."""


class EncodeError(SkillBridgeError):
    """A handler result could not be serialized."""

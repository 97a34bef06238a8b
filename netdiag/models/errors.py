"""Failure taxonomy shared by the probes.

Probes raise these internally and translate them into empty or absent
results before returning to callers.
"""


class ProbeError(Exception):
    """Base class for probe failures."""


class ResolutionError(ProbeError):
    """Target could not be resolved to an address."""


class SocketError(ProbeError):
    """Socket creation, option setting, or send failed."""


class ProbeTimeoutError(ProbeError):
    """No reply arrived before the deadline."""


class DecodeError(ProbeError):
    """Wire data is malformed or truncated."""
